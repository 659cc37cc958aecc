from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .semantic_model import Row


class ConnectionStatus(BaseModel):
    """Liveness of one semantic model connection."""

    is_connected: bool = Field(default=False)
    last_successful_query: Optional[datetime] = Field(default=None)
    server: str = Field(..., description="Server as given by the host application")
    database: str = Field(..., description="Catalog name")


class QueryResult(BaseModel):
    """Rows returned by an analytical query, with every warning raised on the way."""

    data: List[Row] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list, description="Query validation warnings followed by result warnings")
    row_count: int = Field(default=0)
    executed_query: Optional[str] = Field(default=None, description="Final statement sent to the server")


class BridgeRequest(BaseModel):
    """Payload for the native query-execution bridge."""

    model_config = ConfigDict(populate_by_name=True)

    server: str
    database: str
    query: str
    timeout_seconds: int = Field(..., alias="timeoutSeconds")


class BridgeResponse(BaseModel):
    """Answer from the native query-execution bridge."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    success: bool
    row_count: int = Field(default=0, alias="rowCount")
    data: List[Dict[str, Any]] = Field(default_factory=list)
    error: Optional[str] = Field(default=None)
    error_type: Optional[str] = Field(default=None, alias="errorType")
