"""
Unit tests for ChatSession.

Covers the connect lifecycle (success, failure hints, replacement),
query commands vs. chat turns, history handling, result formatting and
the connection monitor. XMLA traffic goes to a fake transport; the chat
API is replaced by a recording fake.
"""

import asyncio

import pytest

from semantic_chat.domain.base_enums import ChatRole, ConnectionState, MessageKind, TransportFailureKind
from semantic_chat.domain.connection import QueryResult
from semantic_chat.domain.errors import (
    BadRequestError,
    BridgeUnavailableError,
    NotConnectedError,
    QueryValidationError,
    XMLATransportError,
)
from semantic_chat.services.chat_session import extract_query_command

from fakes import Harness, catalog_handler, soap_rows


@pytest.fixture
async def harness():
    h = Harness(catalog_handler(samples={"Sales": [{"Sales[Amount]": "10"}]}))
    yield h
    await h.session.close()


## Query command parsing

@pytest.mark.parametrize("text,query", [
    ("DAX: EVALUATE 'Sales'", "EVALUATE 'Sales'"),
    ("dax:'Sales'", "'Sales'"),
    ("  EXECUTE:   TOPN(5, 'T')  ", "TOPN(5, 'T')"),
    ("Execute: x", "x"),
])
def test_extract_query_command(text, query):
    assert extract_query_command(text) == query


@pytest.mark.parametrize("text", ["What is DAX: a primer", "DAX EVALUATE 'T'", "hello"])
def test_chat_text_is_not_a_command(text):
    assert extract_query_command(text) is None


class TestConnect:

    async def test_connect_loads_snapshot(self, harness):
        snapshot = await harness.session.connect(" localhost:54321 ", " db ")

        assert harness.session.state == ConnectionState.CONNECTED
        assert harness.session.is_connected is True
        assert snapshot.summary.table_count == 3
        assert snapshot.sample_data == {"Sales": [{"Sales[Amount]": "10"}]}
        assert harness.session.snapshot is snapshot

        status = harness.session.get_status()
        assert status.is_connected is True
        assert status.server == "localhost:54321"
        assert status.database == "db"
        assert status.last_successful_query is not None

    @pytest.mark.parametrize("server,database", [("", "db"), ("host:1", "  "), (None, "db")])
    async def test_missing_server_or_database(self, harness, server, database):
        with pytest.raises(BadRequestError):
            await harness.session.connect(server, database)
        assert harness.transports == []

    async def test_refused_connection_carries_hint(self):
        h = Harness(lambda s: XMLATransportError("XMLA connection failed: refused", TransportFailureKind.REFUSED))

        with pytest.raises(XMLATransportError) as exc_info:
            await h.session.connect("localhost:1", "db")

        message = exc_info.value.message
        assert message.startswith("Failed to connect: XMLA connection failed: refused")
        assert message.count("Tip: Connection refused") == 1
        assert h.session.state == ConnectionState.CONNECTION_FAILED
        assert h.session.connection is None
        assert h.transports[0].closed is True

    async def test_plain_error_gets_hint_from_text(self):
        h = Harness(lambda s: RuntimeError("Connection reset by peer"))

        with pytest.raises(XMLATransportError, match="connection was reset"):
            await h.session.connect("localhost:1", "db")

    async def test_unknown_database_fails_before_metadata(self):
        h = Harness(catalog_handler(overrides={"DBSCHEMA_CATALOGS": soap_rows([])}))

        with pytest.raises(XMLATransportError, match="Failed to connect: Database 'db' was not found"):
            await h.session.connect("localhost:1", "db")

        assert h.session.state == ConnectionState.CONNECTION_FAILED
        assert not any("TMSCHEMA" in s for s in h.transports[0].statements)

    async def test_bridge_unavailable_reraised(self):
        h = Harness(catalog_handler())

        def no_bridge():
            raise BridgeUnavailableError("assembly missing")

        h.session._transport_factory = no_bridge
        with pytest.raises(BridgeUnavailableError, match="assembly missing"):
            await h.session.connect("localhost:1", "db")
        assert h.session.state == ConnectionState.CONNECTION_FAILED

    async def test_reconnect_replaces_previous_connection(self, harness):
        await harness.session.connect("localhost:1", "db")
        first = harness.session.connection
        await harness.session.connect("localhost:2", "db")

        assert harness.transports[0].closed is True
        assert harness.session.connection is not first
        assert harness.session.get_status().server == "localhost:2"

    async def test_disconnect_resets_everything(self, harness):
        await harness.session.connect("localhost:1", "db")
        await harness.session.disconnect()

        assert harness.session.state == ConnectionState.NOT_CONNECTED
        assert harness.session.snapshot.is_empty
        assert harness.session.get_status().server == ""

    async def test_refresh_requires_connection(self, harness):
        with pytest.raises(NotConnectedError):
            await harness.session.refresh_metadata()

    async def test_refresh_replaces_snapshot(self, harness):
        await harness.session.connect("localhost:1", "db")
        before = harness.session.snapshot
        after = await harness.session.refresh_metadata()
        assert after is not before
        assert harness.session.snapshot is after


class TestMessages:

    async def test_blank_message_rejected(self, harness):
        with pytest.raises(BadRequestError):
            await harness.session.handle_message("   ")

    async def test_oversized_message_rejected(self, harness):
        harness.session.settings.chat.max_message_chars = 10

        with pytest.raises(BadRequestError, match="Input too large: 11 characters"):
            await harness.session.handle_message("a" * 11)

        assert harness.chat_client.conversations == []
        assert harness.session.history == []

    async def test_query_needs_connection(self, harness):
        with pytest.raises(NotConnectedError):
            await harness.session.handle_message("DAX: EVALUATE 'Sales'")

    async def test_query_command_runs_query(self, harness):
        await harness.session.connect("localhost:1", "db")
        harness.handler = lambda s: soap_rows([{"Sales[Amount]": "10"}])

        reply = await harness.session.handle_message("DAX: 'Sales'")

        assert reply.kind == MessageKind.QUERY
        assert reply.row_count == 1
        assert reply.content.startswith("**Query Results** (1 rows):")
        assert "Automatically limited to 10000 rows for safety." in reply.warnings
        assert harness.transports[-1].statements[-1] == "EVALUATE TOPN(10000, 'Sales')"
        # Query commands never reach the chat API or the history
        assert harness.chat_client.conversations == []
        assert harness.session.history == []

    async def test_rejected_query_propagates(self, harness):
        await harness.session.connect("localhost:1", "db")
        with pytest.raises(QueryValidationError):
            await harness.session.handle_message("EXECUTE: SELECT * FROM Sales")

    async def test_chat_turn_uses_context_and_history(self, harness):
        await harness.session.connect("localhost:1", "db")

        first = await harness.session.handle_message("  Which tables exist?  ")
        await harness.session.handle_message("And measures?")

        assert first.kind == MessageKind.CHAT
        assert first.content == "Sure."

        conversation = harness.chat_client.conversations[1]
        assert conversation[0].role == ChatRole.SYSTEM
        assert "- **Sales**" in conversation[0].content
        assert [m.content for m in conversation[1:]] == ["Which tables exist?", "Sure.", "And measures?"]
        assert len(harness.session.history) == 4

    async def test_chat_works_without_connection(self, harness):
        reply = await harness.session.handle_message("hello")
        system_prompt = harness.chat_client.conversations[0][0].content
        assert reply.kind == MessageKind.CHAT
        assert "not connected" in system_prompt

    async def test_clear_history_keeps_snapshot(self, harness):
        await harness.session.connect("localhost:1", "db")
        await harness.session.handle_message("hi")
        harness.session.clear_history()

        assert harness.session.history == []
        assert harness.session.snapshot.summary.table_count == 3


class TestFormatQueryResult:

    def test_rows_and_truncation_note(self):
        session = Harness(catalog_handler(), display_row_limit=2).session
        result = QueryResult(data=[{"a": i} for i in range(3)], row_count=3)

        text = session.format_query_result(result)

        assert text.startswith("**Query Results** (3 rows):\n\n```json\n")
        assert '"a": 1' in text
        assert '"a": 2' not in text
        assert text.endswith("_Showing first 2 of 3 rows_")

    def test_warnings_block(self):
        session = Harness(catalog_handler()).session
        result = QueryResult(data=[{"a": 1}], warnings=["w1", "w2"], row_count=1)

        text = session.format_query_result(result)

        assert "**⚠️ Warnings:**\n- w1\n- w2\n\n```json" in text
        assert "_Showing first" not in text

    def test_no_rows(self):
        session = Harness(catalog_handler()).session
        text = session.format_query_result(QueryResult())
        assert text == "**Query Results** (0 rows):\n\nNo results returned."


class TestMonitor:

    async def test_check_connection_marks_lost_and_restored(self, harness):
        await harness.session.connect("localhost:1", "db")

        good_handler = harness.handler
        harness.handler = lambda s: XMLATransportError("gone")
        assert await harness.session.check_connection() is False
        assert harness.session.state == ConnectionState.CONNECTION_LOST

        harness.handler = good_handler
        assert await harness.session.check_connection() is True
        assert harness.session.state == ConnectionState.CONNECTED

    async def test_check_without_connection(self, harness):
        assert await harness.session.check_connection() is False

    async def test_monitor_loop_probes_periodically(self):
        h = Harness(catalog_handler(), monitor_interval=0.01)
        await h.session.connect("localhost:1", "db")
        try:
            h.handler = lambda s: XMLATransportError("gone")
            await asyncio.sleep(0.1)
            assert h.session.state == ConnectionState.CONNECTION_LOST
        finally:
            await h.session.close()

    async def test_close_stops_monitor_and_chat_client(self, harness):
        await harness.session.connect("localhost:1", "db")
        await harness.session.close()

        assert harness.session._monitor_task is None
        assert harness.chat_client.closed is True
