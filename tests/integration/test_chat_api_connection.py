"""
Integration tests for ChatClient against the configured chat-completions API.

Skipped unless CHAT__API_KEY is set (environment or .env).

Usage:
    pytest tests/integration/test_chat_api_connection.py -v -s
"""

import pytest

from semantic_chat.config import get_settings
from semantic_chat.domain.base_enums import ChatRole
from semantic_chat.domain.chat import ChatMessage
from semantic_chat.domain.semantic_model import SemanticModelSnapshot, TableDescriptor
from semantic_chat.infrastructure.llm_client import ChatClient
from semantic_chat.repositories.chat_context import ChatContextRepository


@pytest.fixture
def chat_config():
    """Get chat configuration from settings."""
    config = get_settings().chat
    if not config.api_key:
        pytest.skip("CHAT__API_KEY not set")
    return config


@pytest.fixture
async def chat_client(chat_config):
    """Create and connect the chat client."""
    client = ChatClient(chat_config)
    await client.connect()
    yield client
    if client.is_connected():
        await client.close()


@pytest.mark.integration
class TestChatAPIConnection:
    """Connectivity and basic completions."""

    @pytest.mark.asyncio
    async def test_basic_connection(self, chat_config):
        client = ChatClient(chat_config)

        await client.connect()
        assert client.is_connected()

        await client.close()
        assert not client.is_connected()

    @pytest.mark.asyncio
    async def test_simple_completion(self, chat_client):
        reply = await chat_client.complete([
            ChatMessage(role=ChatRole.USER, content="What is 2 + 2? Answer with just the number."),
        ])

        print(f"\nReply: {reply}")
        assert "4" in reply

    @pytest.mark.asyncio
    async def test_completion_with_model_context(self, chat_client):
        snapshot = SemanticModelSnapshot(
            tables=[TableDescriptor(name="Sales", columns=[{"name": "Amount"}, {"name": "Region"}])],
        )
        messages = ChatContextRepository().build_messages(
            snapshot, [], "Which table holds the Amount column? Answer with the table name only."
        )

        reply = await chat_client.complete(messages)

        print(f"\nReply: {reply}")
        assert "Sales" in reply
