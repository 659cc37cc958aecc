"""
API response models for the Semantic Model Chat system.

These models define the structure for all outgoing API responses,
ensuring consistent response formats across endpoints.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .base_enums import ConnectionState, MessageKind
from .semantic_model import (
    MeasureDescriptor,
    ModelSummary,
    RelationshipDescriptor,
    Row,
    TableDescriptor,
)


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str = Field(..., description="Health status", examples=["healthy", "degraded"])
    timestamp: datetime = Field(..., description="Health check timestamp")
    version: str = Field(..., description="Application version")
    connection_status: str = Field(..., description="Semantic model connection state")
    chat_service_status: str = Field(..., description="Chat-completion client status")


class ErrorResponse(BaseModel):
    """Response model for error responses."""

    error: str = Field(..., description="Error type or category")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(default=None, description="Additional error details")
    trace_id: Optional[str] = Field(default=None, description="Trace ID for debugging")
    timestamp: datetime = Field(..., description="Error timestamp")


class SessionStatusResponse(BaseModel):
    """Connection state of the chat session."""

    trace_id: str = Field(..., description="Trace ID for debugging")
    state: ConnectionState = Field(..., description="Connection state shown to the user")
    is_connected: bool = Field(..., description="Result of the most recent query attempt")
    last_successful_query: Optional[datetime] = Field(default=None)
    server: str = Field(default="")
    database: str = Field(default="")
    summary: ModelSummary = Field(default_factory=ModelSummary, description="Counts of the current snapshot")


class MetadataResponse(BaseModel):
    """The current semantic model snapshot."""

    trace_id: str = Field(..., description="Trace ID for debugging")
    tables: List[TableDescriptor] = Field(default_factory=list)
    measures: List[MeasureDescriptor] = Field(default_factory=list)
    relationships: List[RelationshipDescriptor] = Field(default_factory=list)
    sample_data: Dict[str, List[Row]] = Field(default_factory=dict)
    summary: ModelSummary = Field(default_factory=ModelSummary)
    fetched_at: datetime = Field(..., description="When the snapshot was built")


class QueryResponse(BaseModel):
    """Rows returned by a direct DAX query."""

    trace_id: str = Field(..., description="Trace ID for debugging")
    data: List[Row] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    row_count: int = Field(default=0)
    executed_query: Optional[str] = Field(default=None, description="Final statement sent to the server")


class ChatResponse(BaseModel):
    """Reply to one chat message."""

    trace_id: str = Field(..., description="Trace ID for debugging")
    kind: MessageKind = Field(..., description="'chat' for a model answer, 'query' for a DAX result")
    content: str = Field(..., description="Markdown reply")
    warnings: List[str] = Field(default_factory=list)
    row_count: int = Field(default=0)


class ClearHistoryResponse(BaseModel):
    trace_id: str = Field(..., description="Trace ID for debugging")
    cleared_messages: int = Field(..., description="Number of history messages removed")


class ChatSettingsResponse(BaseModel):
    """Current chat-completion settings; the API key itself is never returned."""

    trace_id: str = Field(..., description="Trace ID for debugging")
    api_url: str = Field(..., description="Chat-completions URL")
    model: str = Field(..., description="Model name sent with every request")
    api_key_configured: bool = Field(..., description="Whether an API key is set")
    chat_service_status: str = Field(..., description="healthy once the client is configured")
