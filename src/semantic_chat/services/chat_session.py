"""
Chat Session orchestrating one user's conversation with a semantic model.

The session explicitly owns everything that belongs to one connection:
- the XMLAConnection and its transport
- the current SemanticModelSnapshot (replaced wholesale on every fetch)
- the chat history (ordered user/assistant messages)
- the background connection monitor task

Incoming messages either run a DAX query ("DAX: ..." or "EXECUTE: ...")
or go to the chat-completion API with the model context as system prompt.
"""

import asyncio
import json
import re
from typing import Callable, List, Optional

from ..config import Settings
from ..domain.base_enums import ChatRole, ConnectionState, MessageKind
from ..domain.chat import ChatMessage, ChatReply
from ..domain.connection import ConnectionStatus, QueryResult
from ..domain.errors import (
    BadRequestError,
    BridgeUnavailableError,
    NotConnectedError,
    XMLATransportError,
)
from ..domain.semantic_model import MetadataOptions, SemanticModelSnapshot
from ..infrastructure.llm_client import ChatClient
from ..infrastructure.xmla_connection import XMLAConnection, describe_connection_error
from ..infrastructure.xmla_transport import QueryBridge, XMLATransport, create_transport
from ..repositories.chat_context import ChatContextRepository
from ..utils.logging import get_module_logger, preview
from ..utils.token_utils import InputValidator
from ..utils.tracing import current_trace_id, trace_scope
from .metadata_service import MetadataService


logger = get_module_logger()

# "DAX: <query>" or "EXECUTE: <query>", any case
QUERY_COMMAND_RE = re.compile(r"^\s*(DAX|EXECUTE):", re.IGNORECASE)


def extract_query_command(text: str) -> Optional[str]:
    """Return the query of a DAX:/EXECUTE: message, or None for chat text."""
    match = QUERY_COMMAND_RE.match(text)
    if not match:
        return None
    return text[match.end():].strip()


class ChatSession:
    """
    One chat session bound to at most one semantic model connection.

    Usage:
        session = ChatSession(settings, chat_client)
        await session.connect("localhost:54321", "db-id")
        reply = await session.handle_message("DAX: EVALUATE TOPN(5, 'Sales')")
        await session.close()
    """

    def __init__(
        self,
        settings: Settings,
        chat_client: ChatClient,
        transport_factory: Optional[Callable[[], XMLATransport]] = None,
        bridge: Optional[QueryBridge] = None,
        context_repository: Optional[ChatContextRepository] = None,
    ):
        self.settings = settings
        self.chat_client = chat_client
        self.context = context_repository or ChatContextRepository()
        self._transport_factory = transport_factory or (
            lambda: create_transport(settings.xmla, settings.query, bridge)
        )

        self.connection: Optional[XMLAConnection] = None
        self.snapshot = SemanticModelSnapshot()
        self.history: List[ChatMessage] = []
        self.state = ConnectionState.NOT_CONNECTED
        self._monitor_task: Optional[asyncio.Task] = None

    # -------------------------------------------------------------------------
    # Connection lifecycle
    # -------------------------------------------------------------------------

    @property
    def is_connected(self) -> bool:
        return self.connection is not None and self.state == ConnectionState.CONNECTED

    async def _fail_connect(self) -> None:
        self.stop_monitor()
        if self.connection is not None:
            await self.connection.close()
        self.connection = None
        self.state = ConnectionState.CONNECTION_FAILED

    async def connect(self, server: str, database: str) -> SemanticModelSnapshot:
        """
        Connect to a semantic model and load its metadata.

        Any previous connection is closed first. On success the snapshot is
        replaced and the connection monitor is (re)started.

        Raises:
            BadRequestError: If server or database is empty
            BridgeUnavailableError: If the native bridge cannot be loaded
            XMLATransportError: If the model cannot be reached (message carries a hint)
        """
        server, database = (server or "").strip(), (database or "").strip()
        if not server or not database:
            raise BadRequestError(
                "No semantic model connection available. Provide both server and database."
            )

        await self.disconnect()
        trace_id = current_trace_id()
        logger.info("Connecting to semantic model", server=server, database=database, trace_id=trace_id)

        try:
            connection = XMLAConnection(
                server,
                database,
                self.settings.query,
                self.settings.xmla,
                self._transport_factory(),
            )
            self.connection = connection
            await connection.verify()
            snapshot = await MetadataService(connection, self.settings.query).get_semantic_model_metadata(
                MetadataOptions(
                    fetch_sample_data=True,
                    max_sample_rows=self.settings.query.default_sample_rows,
                )
            )
        except BridgeUnavailableError:
            await self._fail_connect()
            raise
        except Exception as e:
            await self._fail_connect()
            message = describe_connection_error(e)
            logger.error(
                "Failed to connect to semantic model",
                error=str(e),
                error_type=type(e).__name__,
                trace_id=trace_id,
            )
            raise XMLATransportError(message, details={"server": server, "database": database}) from e

        self.snapshot = snapshot
        self.state = ConnectionState.CONNECTED
        self.start_monitor()

        logger.info("Connected to semantic model", **snapshot.summary.model_dump(), trace_id=trace_id)
        return snapshot

    async def refresh_metadata(self) -> SemanticModelSnapshot:
        """Fetch a fresh snapshot over the current connection."""
        connection = self._require_connection()
        self.snapshot = await MetadataService(connection, self.settings.query).get_semantic_model_metadata(
            MetadataOptions(
                fetch_sample_data=True,
                max_sample_rows=self.settings.query.default_sample_rows,
            )
        )
        return self.snapshot

    async def disconnect(self) -> None:
        """Stop monitoring and release the current connection, if any."""
        self.stop_monitor()
        if self.connection is not None:
            await self.connection.close()
        self.connection = None
        self.snapshot = SemanticModelSnapshot()
        self.state = ConnectionState.NOT_CONNECTED

    async def close(self) -> None:
        await self.disconnect()
        await self.chat_client.close()

    def get_status(self) -> ConnectionStatus:
        if self.connection is None:
            return ConnectionStatus(server="", database="")
        return self.connection.get_connection_status()

    def _require_connection(self) -> XMLAConnection:
        if self.connection is None:
            raise NotConnectedError("Not connected to semantic model")
        return self.connection

    # -------------------------------------------------------------------------
    # Connection monitor
    # -------------------------------------------------------------------------

    def start_monitor(self) -> None:
        self.stop_monitor()
        self._monitor_task = asyncio.create_task(self._monitor_loop())

    def stop_monitor(self) -> None:
        if self._monitor_task is not None:
            self._monitor_task.cancel()
            self._monitor_task = None

    async def _monitor_loop(self) -> None:
        interval = self.settings.connection.monitor_interval_seconds
        while True:
            await asyncio.sleep(interval)
            await self.check_connection()

    async def check_connection(self) -> bool:
        """One monitor probe; updates state, never raises."""
        connection = self.connection
        if connection is None:
            return False

        with trace_scope() as trace_id:
            try:
                alive = await connection.test_connection()
            except Exception as e:
                logger.error("Failed to check connection", error=str(e), trace_id=trace_id)
                return False

            if alive:
                if self.state != ConnectionState.CONNECTED:
                    logger.info("Connection restored", endpoint=connection.endpoint, trace_id=trace_id)
                self.state = ConnectionState.CONNECTED
            else:
                self.state = ConnectionState.CONNECTION_LOST
                logger.warning("Connection lost to semantic model", endpoint=connection.endpoint, trace_id=trace_id)
            return alive

    # -------------------------------------------------------------------------
    # Messages
    # -------------------------------------------------------------------------

    async def execute_query(self, query: str) -> QueryResult:
        """
        Run an analytical query on the current connection.

        Raises:
            NotConnectedError: If no connection is open
            QueryValidationError: If the query is rejected
        """
        return await self._require_connection().execute_analytical_query(query)

    async def handle_message(self, text: str) -> ChatReply:
        """
        Answer one user message.

        Query commands run directly and are not recorded in the chat
        history; everything else is a chat turn.

        Raises:
            BadRequestError: If the message is blank or longer than max_message_chars
        """
        if not text or not text.strip():
            raise BadRequestError("Message cannot be empty")

        message = text.strip()
        try:
            InputValidator.validate_char_limit(message, max_chars=self.settings.chat.max_message_chars)
        except ValueError as e:
            raise BadRequestError(str(e)) from e

        query = extract_query_command(message)

        if query is not None:
            logger.info(
                "Executing query from chat",
                query=preview(query, self.settings.query.log_preview_length),
                trace_id=current_trace_id(),
            )
            result = await self.execute_query(query)
            return ChatReply(
                kind=MessageKind.QUERY,
                content=self.format_query_result(result),
                warnings=result.warnings,
                row_count=result.row_count,
            )

        messages = self.context.build_messages(self.snapshot, self.history, message)
        answer = await self.chat_client.complete(messages)

        self.history.append(ChatMessage(role=ChatRole.USER, content=message))
        self.history.append(ChatMessage(role=ChatRole.ASSISTANT, content=answer))

        return ChatReply(kind=MessageKind.CHAT, content=answer)

    def format_query_result(self, result: QueryResult) -> str:
        """Markdown rendering of a query result, capped at display_row_limit rows."""
        limit = self.settings.query.display_row_limit
        text = f"**Query Results** ({result.row_count} rows):\n\n"

        if result.warnings:
            text += "**⚠️ Warnings:**\n"
            text += "".join(f"- {warning}\n" for warning in result.warnings)
            text += "\n"

        if result.data:
            shown = result.data[:limit]
            text += "```json\n" + json.dumps(shown, indent=2, ensure_ascii=False, default=str) + "\n```"
            if len(result.data) > limit:
                text += f"\n_Showing first {limit} of {len(result.data)} rows_"
        else:
            text += "No results returned."

        return text

    def build_system_prompt(self) -> str:
        return self.context.build_system_prompt(self.snapshot)

    def clear_history(self) -> None:
        self.history.clear()
        logger.info("Chat history cleared", trace_id=current_trace_id())
