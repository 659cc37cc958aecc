"""
API request models for the Semantic Model Chat system.

These models define the structure for all incoming API requests,
ensuring type safety and validation at API boundaries.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ConnectRequest(BaseModel):
    """Request model for connecting the session to a semantic model."""

    server: str = Field(
        ...,
        description="Server address as given by the host application. "
                    "Example: 'localhost:54321' or 'https://host:port'",
        min_length=1,
    )
    database: str = Field(
        ...,
        description="Catalog (database) name of the semantic model",
        min_length=1,
    )


class QueryRequest(BaseModel):
    """Request model for running a DAX query directly."""

    query: str = Field(
        ...,
        description="DAX query text. EVALUATE is added when missing; "
                    "unlimited table expressions are wrapped in TOPN. "
                    "Example: \"'Sales'\" or \"EVALUATE TOPN(10, 'Sales')\"",
        min_length=1,
    )


class ChatRequest(BaseModel):
    """Request model for one chat message."""

    message: str = Field(
        ...,
        description="User message. Prefix with 'DAX:' or 'EXECUTE:' to run a query instead of chatting.",
        min_length=1,
    )


class ChatSettingsRequest(BaseModel):
    """
    Request model for changing the chat-completion settings at runtime.

    Omitted fields keep their current value.
    """

    api_url: Optional[str] = Field(
        default=None,
        description="Full chat-completions URL. Example: 'https://api.openai.com/v1/chat/completions'",
        min_length=1,
    )
    api_key: Optional[str] = Field(default=None, description="Bearer token for the chat API", min_length=1)
    model: Optional[str] = Field(default=None, description="Model name sent with every request", min_length=1)
