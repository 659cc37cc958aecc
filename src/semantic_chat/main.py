"""
Main FastAPI application for the Semantic Model Chat system.

The API replaces the desktop shell's IPC surface: connect to a semantic
model, inspect its metadata, run DAX queries and chat about the model.
One ChatSession per process holds the connection, snapshot and history.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, Union

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.dependencies import ChatSessionDep, OptionalChatClientDep, SettingsDep
from .api.middleware import (
    ERROR_RESPONSES,
    logging_middleware,
    register_exception_handlers,
    trace_id_middleware,
)
from .config import get_settings
from .domain.base_enums import ConnectionState
from .domain.requests import ChatRequest, ChatSettingsRequest, ConnectRequest, QueryRequest
from .domain.responses import (
    ChatResponse,
    ChatSettingsResponse,
    ClearHistoryResponse,
    HealthResponse,
    MetadataResponse,
    QueryResponse,
    SessionStatusResponse,
)
from .domain.semantic_model import SemanticModelSnapshot
from .infrastructure.llm_client import ChatClient
from .services.chat_session import ChatSession
from .utils.logging import configure_logging, get_module_logger
from .utils.tracing import get_trace_id, trace_scope

APP_VERSION = "0.1.0"

# Configure logging on module import
configure_logging()
logger = get_module_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting Semantic Model Chat API server", version=APP_VERSION)

    settings = get_settings()
    app.state.settings = settings

    chat_client = ChatClient(settings.chat)
    try:
        await chat_client.connect()
    except Exception as e:
        # Chat turns report the configuration problem; queries still work
        logger.error(f"Failed to configure chat client: {e}")

    chat_session = ChatSession(settings, chat_client)
    app.state.chat_client = chat_client
    app.state.chat_session = chat_session

    # Launched by the host application: connect right away
    if settings.connection.server and settings.connection.database:
        with trace_scope():
            try:
                await chat_session.connect(settings.connection.server, settings.connection.database)
            except Exception as e:
                logger.error(f"Initial connection failed: {e}")

    yield

    logger.info("Shutting down Semantic Model Chat API server")
    await chat_session.close()


app = FastAPI(
    title="Semantic Model Chat API",
    description="Chat with a tabular semantic model over XMLA, with safe DAX execution",
    version=APP_VERSION,
    lifespan=lifespan,
)

# The API is bound to localhost by default and called by a local UI
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last registered = first executed
app.middleware("http")(logging_middleware)
app.middleware("http")(trace_id_middleware)

register_exception_handlers(app)


def _status_response(session: ChatSession, trace_id: str) -> SessionStatusResponse:
    status = session.get_status()
    return SessionStatusResponse(
        trace_id=trace_id,
        state=session.state,
        is_connected=status.is_connected,
        last_successful_query=status.last_successful_query,
        server=status.server,
        database=status.database,
        summary=session.snapshot.summary,
    )


def _metadata_response(snapshot: SemanticModelSnapshot, trace_id: str) -> MetadataResponse:
    return MetadataResponse(
        trace_id=trace_id,
        tables=snapshot.tables,
        measures=snapshot.measures,
        relationships=snapshot.relationships,
        sample_data=snapshot.sample_data,
        summary=snapshot.summary,
        fetched_at=snapshot.fetched_at,
    )


# API Routes
@app.get("/", tags=["Root"])
async def root(settings: SettingsDep) -> Dict[str, Union[str, None]]:
    """Basic API information."""
    trace_id = get_trace_id()
    logger.info("Root endpoint accessed", trace_id=trace_id)

    return {
        "message": "Semantic Model Chat API",
        "version": APP_VERSION,
        "trace_id": trace_id,
        "log_level": settings.app.log_level,
    }


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health(session: ChatSessionDep, chat_client: OptionalChatClientDep) -> HealthResponse:
    """
    Health check.

    **Response Model**: `HealthResponse`
    - status: healthy when the model is connected and the chat client is configured
    - connection_status: not_connected / connected / connection_lost / connection_failed
    - chat_service_status: healthy / unhealthy / not_configured
    """
    trace_id = get_trace_id()
    logger.info("Health check endpoint accessed", trace_id=trace_id)

    chat_status = "not_configured"
    if chat_client:
        chat_status = "healthy" if chat_client.is_connected() else "unhealthy"

    overall_status = (
        "healthy"
        if session.state == ConnectionState.CONNECTED and chat_status == "healthy"
        else "degraded"
    )

    return HealthResponse(
        status=overall_status,
        timestamp=datetime.now(timezone.utc),
        version=APP_VERSION,
        connection_status=session.state.value,
        chat_service_status=chat_status,
    )


# -------------------------
# Session Endpoints
# -------------------------

@app.post(
    "/api/v1/session/connect",
    response_model=SessionStatusResponse,
    tags=["Session"],
    responses={k: v for k, v in ERROR_RESPONSES.items() if k in [400, 422, 503]},
)
async def connect(request: ConnectRequest, session: ChatSessionDep) -> SessionStatusResponse:
    """
    Connect the session to a semantic model and load its metadata.

    Replaces any previous connection, snapshot and monitor.

    **Possible Errors**:
    - 400: Missing server or database
    - 503: Model unreachable (message includes a refused/reset/timeout hint) or bridge unavailable
    """
    trace_id = get_trace_id()
    await session.connect(request.server, request.database)
    return _status_response(session, trace_id)


@app.get("/api/v1/session/status", response_model=SessionStatusResponse, tags=["Session"])
async def session_status(session: ChatSessionDep) -> SessionStatusResponse:
    """Connection state, last successful query time and snapshot counts."""
    return _status_response(session, get_trace_id())


# -------------------------
# Model Endpoints
# -------------------------

@app.get("/api/v1/model/metadata", response_model=MetadataResponse, tags=["Model"])
async def model_metadata(session: ChatSessionDep) -> MetadataResponse:
    """The current snapshot (empty when not connected)."""
    return _metadata_response(session.snapshot, get_trace_id())


@app.post(
    "/api/v1/model/refresh",
    response_model=MetadataResponse,
    tags=["Model"],
    responses={k: v for k, v in ERROR_RESPONSES.items() if k in [409]},
)
async def refresh_metadata(session: ChatSessionDep) -> MetadataResponse:
    """Fetch a fresh snapshot over the current connection."""
    trace_id = get_trace_id()
    snapshot = await session.refresh_metadata()
    logger.info("Metadata refreshed", **snapshot.summary.model_dump(), trace_id=trace_id)
    return _metadata_response(snapshot, trace_id)


@app.post(
    "/api/v1/query",
    response_model=QueryResponse,
    tags=["Query"],
    responses={k: v for k, v in ERROR_RESPONSES.items() if k in [409, 422, 502, 503]},
)
async def run_query(request: QueryRequest, session: ChatSessionDep) -> QueryResponse:
    """
    Run a DAX query through the safety pipeline.

    **Possible Errors**:
    - 409: Not connected
    - 422: Query rejected by validation (blocked pattern, SELECT syntax)
    - 502: SOAP fault from the server
    - 503: Transport failure
    """
    trace_id = get_trace_id()
    result = await session.execute_query(request.query)

    return QueryResponse(
        trace_id=trace_id,
        data=result.data,
        warnings=result.warnings,
        row_count=result.row_count,
        executed_query=result.executed_query,
    )


# -------------------------
# Chat Endpoints
# -------------------------

@app.post(
    "/api/v1/chat",
    response_model=ChatResponse,
    tags=["Chat"],
    responses={k: v for k, v in ERROR_RESPONSES.items() if k in [400, 409, 422, 502, 503]},
)
async def chat(request: ChatRequest, session: ChatSessionDep) -> ChatResponse:
    """
    Send one message.

    "DAX: <query>" / "EXECUTE: <query>" runs the query and returns a
    formatted result; anything else is answered by the chat model with
    the semantic model as context.
    """
    trace_id = get_trace_id()
    reply = await session.handle_message(request.message)

    return ChatResponse(
        trace_id=trace_id,
        kind=reply.kind,
        content=reply.content,
        warnings=reply.warnings,
        row_count=reply.row_count,
    )


@app.delete("/api/v1/chat/history", response_model=ClearHistoryResponse, tags=["Chat"])
async def clear_chat_history(session: ChatSessionDep) -> ClearHistoryResponse:
    """Forget the conversation; the model snapshot is kept."""
    trace_id = get_trace_id()
    cleared = len(session.history)
    session.clear_history()
    return ClearHistoryResponse(trace_id=trace_id, cleared_messages=cleared)


@app.put(
    "/api/v1/chat/settings",
    response_model=ChatSettingsResponse,
    tags=["Chat"],
    responses={k: v for k, v in ERROR_RESPONSES.items() if k in [400, 422]},
)
async def update_chat_settings(request: ChatSettingsRequest, session: ChatSessionDep) -> ChatSettingsResponse:
    """
    Change the chat API URL, key or model without restarting.

    The new values apply from the next chat turn. Omitted fields are kept.

    **Possible Errors**:
    - 400: URL or key still missing after the update (the other values are kept)
    """
    trace_id = get_trace_id()
    chat_client = session.chat_client
    await chat_client.reconfigure(api_url=request.api_url, api_key=request.api_key, model=request.model)

    return ChatSettingsResponse(
        trace_id=trace_id,
        api_url=chat_client.config.api_url,
        model=chat_client.config.default_model,
        api_key_configured=bool(chat_client.config.api_key.strip()),
        chat_service_status="healthy" if chat_client.is_connected() else "unhealthy",
    )
