from enum import Enum


class CatalogObjectType(str, Enum):
    TABLE = "table"
    COLUMN = "column"
    MEASURE = "measure"
    RELATIONSHIP = "relationship"


class ChatRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ConnectionState(str, Enum):
    """Liveness as shown to the user."""
    NOT_CONNECTED = "not_connected"
    CONNECTED = "connected"
    CONNECTION_LOST = "connection_lost"
    CONNECTION_FAILED = "connection_failed"


class TransportFailureKind(str, Enum):
    """Transport failures that get a contextual hint."""
    REFUSED = "refused"
    RESET = "reset"
    TIMEOUT = "timeout"
    OTHER = "other"


class MessageKind(str, Enum):
    """How the session handled an incoming chat message."""
    CHAT = "chat"
    QUERY = "query"
