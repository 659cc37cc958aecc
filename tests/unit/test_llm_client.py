"""Unit tests for the chat-completion client (no network calls)."""

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from semantic_chat.config import ChatConfig
from semantic_chat.domain.base_enums import ChatRole
from semantic_chat.domain.chat import ChatMessage
from semantic_chat.domain.errors import ChatConfigurationError, ChatError
from semantic_chat.infrastructure.llm_client import ChatClient, derive_base_url, to_langchain_messages


class FakeLLM:
    """Stands in for ChatOpenAI.ainvoke."""

    def __init__(self, reply="Hello!", error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    async def ainvoke(self, messages):
        self.calls.append(messages)
        if self.error:
            raise self.error
        return AIMessage(content=self.reply)


def connected_client(llm: FakeLLM, **overrides) -> ChatClient:
    client = ChatClient(ChatConfig(api_key="sk-test", **overrides))
    client._llm = llm
    client._is_connected = True
    return client


@pytest.mark.parametrize("url,base", [
    ("https://api.openai.com/v1/chat/completions", "https://api.openai.com/v1"),
    ("https://api.openai.com/v1/chat/completions/", "https://api.openai.com/v1"),
    ("http://localhost:11434/v1", "http://localhost:11434/v1"),
    ("  https://gateway.local/openai/chat/completions  ", "https://gateway.local/openai"),
])
def test_derive_base_url(url, base):
    assert derive_base_url(url) == base


def test_to_langchain_messages():
    messages = to_langchain_messages([
        ChatMessage(role=ChatRole.SYSTEM, content="s"),
        ChatMessage(role=ChatRole.USER, content="u"),
        ChatMessage(role=ChatRole.ASSISTANT, content="a"),
    ])
    assert [type(m) for m in messages] == [SystemMessage, HumanMessage, AIMessage]
    assert [m.content for m in messages] == ["s", "u", "a"]


class TestConnect:

    async def test_missing_key(self):
        client = ChatClient(ChatConfig(api_key=""))
        with pytest.raises(ChatConfigurationError, match="CHAT__API_KEY"):
            await client.connect()
        assert client.is_connected() is False

    async def test_missing_url(self):
        client = ChatClient(ChatConfig(api_url="  ", api_key="sk-test"))
        with pytest.raises(ChatConfigurationError, match="CHAT__API_URL"):
            await client.connect()

    async def test_configured(self):
        client = ChatClient(ChatConfig(api_key="sk-test"))
        await client.connect()
        assert client.is_connected() is True
        await client.close()
        assert client.is_connected() is False

    def test_configuration_error_is_400(self):
        assert ChatConfigurationError("x").http_status == 400
        assert ChatError("x").http_status == 503


class TestComplete:

    async def test_reply_returned(self):
        llm = FakeLLM(reply="The model has 3 tables.")
        client = connected_client(llm)
        reply = await client.complete([ChatMessage(role=ChatRole.USER, content="How many tables?")])
        assert reply == "The model has 3 tables."
        assert isinstance(llm.calls[0][0], HumanMessage)

    async def test_empty_reply_is_error(self):
        client = connected_client(FakeLLM(reply=""))
        with pytest.raises(ChatError, match="empty response"):
            await client.complete([ChatMessage(role=ChatRole.USER, content="hi")])

    async def test_api_failure_wrapped(self):
        client = connected_client(FakeLLM(error=RuntimeError("401 Unauthorized")))
        with pytest.raises(ChatError, match="Chat completion failed: 401 Unauthorized"):
            await client.complete([ChatMessage(role=ChatRole.USER, content="hi")])

    async def test_oversized_input_rejected_before_call(self):
        llm = FakeLLM()
        client = connected_client(llm, max_input_chars=10)
        with pytest.raises(ChatError):
            await client.complete([ChatMessage(role=ChatRole.USER, content="x" * 11)])
        assert llm.calls == []

    async def test_unconfigured_client_fails_on_first_turn(self):
        client = ChatClient(ChatConfig(api_key=""))
        with pytest.raises(ChatConfigurationError):
            await client.complete([ChatMessage(role=ChatRole.USER, content="hi")])
