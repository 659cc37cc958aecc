"""
Chat-completion client using LangChain.

Any OpenAI-compatible chat-completions endpoint works: the configured
URL is reduced to its base (trailing "/chat/completions" dropped) and
handed to LangChain's ChatOpenAI.
"""

from typing import List, Optional, Sequence

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from pydantic import SecretStr

from ..config import ChatConfig
from ..domain.base_enums import ChatRole
from ..domain.chat import ChatMessage
from ..domain.errors import ChatConfigurationError, ChatError
from ..utils.logging import get_module_logger
from ..utils.token_utils import InputValidator
from ..utils.tracing import current_trace_id


logger = get_module_logger()

CHAT_COMPLETIONS_SUFFIX = "/chat/completions"


def derive_base_url(api_url: str) -> str:
    """
    Drop a trailing "/chat/completions" from a chat-completions URL.

    Example:
        >>> derive_base_url("https://api.openai.com/v1/chat/completions")
        'https://api.openai.com/v1'
    """
    url = api_url.strip().rstrip("/")
    if url.endswith(CHAT_COMPLETIONS_SUFFIX):
        url = url[: -len(CHAT_COMPLETIONS_SUFFIX)]
    return url


def to_langchain_messages(messages: Sequence[ChatMessage]) -> List[BaseMessage]:
    converted: List[BaseMessage] = []
    for message in messages:
        if message.role == ChatRole.SYSTEM:
            converted.append(SystemMessage(content=message.content))
        elif message.role == ChatRole.ASSISTANT:
            converted.append(AIMessage(content=message.content))
        else:
            converted.append(HumanMessage(content=message.content))
    return converted


class ChatClient:
    """
    Chat-completion client built on ChatOpenAI.

    Thin infrastructure layer: prompt building and history live in the
    chat session.

    Usage:
        client = ChatClient(settings.chat)
        await client.connect()
        reply = await client.complete([ChatMessage(role=ChatRole.USER, content="Hi")])
        await client.close()
    """

    def __init__(self, config: ChatConfig):
        self.config = config
        self._llm: Optional[ChatOpenAI] = None
        self._is_connected = False

        logger.info(
            "ChatClient initialized",
            default_model=config.default_model,
            api_url=config.api_url,
            temperature=config.temperature,
        )

    async def connect(self) -> None:
        """
        Configure the ChatOpenAI client (no API call is made).

        Raises:
            ChatConfigurationError: If the API URL or key is missing
        """
        if self._is_connected:
            logger.warning("Chat client already connected")
            return

        if not self.config.api_url.strip():
            raise ChatConfigurationError("API URL is not configured. Set CHAT__API_URL.")
        if not self.config.api_key.strip():
            raise ChatConfigurationError("API key is not configured. Set CHAT__API_KEY.")

        trace_id = current_trace_id()
        base_url = derive_base_url(self.config.api_url)

        try:
            self._llm = ChatOpenAI(
                model=self.config.default_model,
                api_key=SecretStr(self.config.api_key),
                base_url=base_url,
                temperature=self.config.temperature,
                timeout=self.config.timeout_seconds,
                max_retries=self.config.max_retries,
            )
        except Exception as e:
            error_msg = f"Failed to initialize chat client: {e}"
            logger.error(error_msg, error_type=type(e).__name__, trace_id=trace_id)
            raise ChatError(error_msg) from e

        self._is_connected = True
        logger.info("Chat client initialized successfully", base_url=base_url, trace_id=trace_id)

    async def reconfigure(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
    ) -> None:
        """
        Replace the API URL, key or model and rebuild the ChatOpenAI client.

        Fields left as None keep their current value. The new values are
        kept even when the rebuild fails, so a later call can complete them.

        Raises:
            ChatConfigurationError: If the API URL or key is still missing
        """
        updates = {"api_url": api_url, "api_key": api_key, "default_model": model}
        self.config = self.config.model_copy(
            update={field: value for field, value in updates.items() if value is not None}
        )
        self._is_connected = False
        self._llm = None

        logger.info(
            "Chat client reconfigured",
            default_model=self.config.default_model,
            api_url=self.config.api_url,
            api_key_configured=bool(self.config.api_key.strip()),
            trace_id=current_trace_id(),
        )
        await self.connect()

    async def close(self) -> None:
        # ChatOpenAI needs no explicit cleanup
        self._is_connected = False
        self._llm = None
        logger.info("Chat client closed", trace_id=current_trace_id())

    def is_connected(self) -> bool:
        return self._is_connected and self._llm is not None

    async def complete(self, messages: Sequence[ChatMessage]) -> str:
        """
        Send a conversation and return the assistant's reply.

        Args:
            messages: System prompt, history and the new user message, in order

        Raises:
            ChatConfigurationError: If the client cannot be configured
            ChatError: If input is too large, or the request fails or returns nothing
        """
        if not self.is_connected():
            await self.connect()

        try:
            total_chars = InputValidator.validate_total_chars(
                (message.content for message in messages),
                max_chars=self.config.max_input_chars,
            )
        except ValueError as e:
            raise ChatError(str(e)) from e

        trace_id = current_trace_id()
        logger.info(
            "Requesting chat completion",
            messages=len(messages),
            total_chars=total_chars,
            model=self.config.default_model,
            trace_id=trace_id,
        )

        try:
            if not self._llm:
                raise ChatError("Chat client not initialized")

            response = await self._llm.ainvoke(to_langchain_messages(messages))

            if not response or not response.content:
                raise ChatError("Chat API returned an empty response")

            content = str(response.content)

        except ChatError:
            raise
        except Exception as e:
            error_msg = f"Chat completion failed: {e}"
            logger.error(error_msg, error_type=type(e).__name__, trace_id=trace_id)
            raise ChatError(error_msg) from e

        logger.info("Chat completion received", response_length=len(content), trace_id=trace_id)
        return content
