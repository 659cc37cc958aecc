from typing import List

from pydantic import BaseModel, Field

from .base_enums import ChatRole, MessageKind


class ChatMessage(BaseModel):
    """One message in a chat-completion exchange."""

    role: ChatRole = Field(..., description="Message author")
    content: str = Field(..., description="Message text")


class ChatReply(BaseModel):
    """What the session answers to one incoming message."""

    kind: MessageKind = Field(..., description="Chat turn or direct query execution")
    content: str = Field(..., description="Markdown text to show the user")
    warnings: List[str] = Field(default_factory=list, description="Query warnings (query replies only)")
    row_count: int = Field(default=0, description="Rows returned (query replies only)")
