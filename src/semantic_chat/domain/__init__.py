"""
Domain package for the Semantic Model Chat system.

This package contains all domain models, enums and the exception
hierarchy used throughout the application.
"""

from .base_enums import (
    CatalogObjectType,
    ChatRole,
    ConnectionState,
    MessageKind,
    TransportFailureKind,
)
from .catalog_rows import CatalogRow, ColumnRow, MeasureRow, RelationshipRow, TableRow
from .chat import ChatMessage, ChatReply
from .connection import BridgeRequest, BridgeResponse, ConnectionStatus, QueryResult
from .semantic_model import (
    ColumnDescriptor,
    MeasureDescriptor,
    MetadataOptions,
    ModelSummary,
    RelationshipDescriptor,
    SemanticModelSnapshot,
    TableDescriptor,
)
from .validation import ResultValidation, ValidationResult

__all__ = [
    # Enums
    "CatalogObjectType",
    "ChatRole",
    "ConnectionState",
    "MessageKind",
    "TransportFailureKind",

    # Catalog rows
    "CatalogRow",
    "TableRow",
    "ColumnRow",
    "MeasureRow",
    "RelationshipRow",

    # Semantic model
    "ColumnDescriptor",
    "TableDescriptor",
    "MeasureDescriptor",
    "RelationshipDescriptor",
    "ModelSummary",
    "SemanticModelSnapshot",
    "MetadataOptions",

    # Connection and queries
    "ConnectionStatus",
    "QueryResult",
    "BridgeRequest",
    "BridgeResponse",
    "ValidationResult",
    "ResultValidation",

    # Chat
    "ChatMessage",
    "ChatReply",
]
