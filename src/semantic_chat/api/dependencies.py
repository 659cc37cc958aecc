"""
FastAPI dependencies for dependency injection.

Routes depend on the ChatSession (the service layer) and Settings; the
chat client is exposed separately only for the health check.
"""

from typing import Annotated

from fastapi import Depends, Request

from ..config import Settings
from ..infrastructure.llm_client import ChatClient
from ..services.chat_session import ChatSession


def get_settings(request: Request) -> Settings:
    """
    Dependency to get the settings from app state.

    Raises:
        RuntimeError: If settings are not initialized
    """
    if not hasattr(request.app.state, "settings"):
        raise RuntimeError("Settings not initialized")

    return request.app.state.settings


def get_chat_session(request: Request) -> ChatSession:
    """
    Dependency to get the application's ChatSession.

    One session lives for the lifetime of the process; it owns the
    connection, the model snapshot and the chat history.

    Raises:
        RuntimeError: If the session is not initialized
    """
    if not hasattr(request.app.state, "chat_session"):
        raise RuntimeError("Chat session not initialized")

    return request.app.state.chat_session


def get_chat_client_optional(request: Request) -> ChatClient | None:
    """Get chat client if available, None otherwise."""
    return getattr(request.app.state, "chat_client", None)


SettingsDep = Annotated[Settings, Depends(get_settings)]
ChatSessionDep = Annotated[ChatSession, Depends(get_chat_session)]
OptionalChatClientDep = Annotated[ChatClient | None, Depends(get_chat_client_optional)]
