"""
Configuration module for the Semantic Model Chat application.

This module defines all configuration classes using Pydantic BaseModel and BaseSettings.
Configuration is loaded from environment variables with nested delimiter "__".

Example .env:
    CONNECTION__SERVER=localhost:54321
    CONNECTION__DATABASE=5f1c2a9e-...
    CHAT__API_KEY=sk-xxx
    QUERY__MAX_RESULT_ROWS=5000

Usage:
    from semantic_chat.config import get_settings
    settings = get_settings()
    print(settings.query.max_result_rows)
"""

from functools import lru_cache
from typing import List

from semantic_chat.config_constants import (
    CHAT_MODELS,
    DEFAULT_BLOCKED_PATTERNS,
    DEFAULT_DANGEROUS_FUNCTIONS,
    OPENAI_CHAT_COMPLETIONS_URL,
    XMLA_EXECUTE_SOAP_ACTION,
    LogLevel,
    XMLATransportKind,
)

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# QUERY SAFETY CONFIGURATION
# =============================================================================

class QueryConfig(BaseModel):
    """
    Analytical query limits and safety rules.

    Injected into QueryValidator and XMLAConnection. Nothing in the query
    pipeline reads these values from module globals, so tests can supply a
    minimal QueryConfig and check exact trigger conditions.
    """

    # Row cap used when auto-wrapping unlimited queries in TOPN(...)
    # Also the row count at which a result set is reported as truncated
    max_result_rows: int = 10000

    # Result sets larger than this produce a performance warning
    warning_threshold: int = 1000

    # Regexes (matched case-insensitively) that reject a query outright
    # Each one describes a known performance hazard on the server
    blocked_patterns: List[str] = Field(default_factory=lambda: list(DEFAULT_BLOCKED_PATTERNS))

    # Function names checked for self-nesting (warning only)
    dangerous_functions: List[str] = Field(default_factory=lambda: list(DEFAULT_DANGEROUS_FUNCTIONS))

    # Per-request timeout (seconds) passed to every query execution
    command_timeout_seconds: int = 30

    # Query text is logged truncated to this many characters
    log_preview_length: int = 200

    # Sample rows fetched per table when a session connects
    default_sample_rows: int = 3

    # Only the first N queryable tables are sampled
    max_sample_tables: int = 10

    # Query results shown in a chat reply are cut to this many rows
    display_row_limit: int = 100


# =============================================================================
# XMLA ENDPOINT CONFIGURATION
# =============================================================================

class XMLAConfig(BaseModel):
    """
    XMLA/SOAP endpoint settings.

    The endpoint is derived from the server string: a server that already
    carries a scheme is used as-is, otherwise default_protocol is prepended.
    """

    # Scheme used when the server string has none (local desktop instances)
    default_protocol: str = "http"

    # Path appended to the server to form the XMLA endpoint
    endpoint_path: str = "/xmla"

    # SOAPAction header sent with every HTTP request
    soap_action: str = XMLA_EXECUTE_SOAP_ACTION

    # HTTP timeout (seconds); slightly above the command timeout so the
    # server reports its own timeout before the client gives up
    request_timeout_seconds: float = 35.0

    # "http" posts envelopes directly; "bridge" routes them through the
    # native query-execution bridge
    transport: XMLATransportKind = XMLATransportKind.HTTP

    # Import path ("package.module:callable") of the native bridge adapter,
    # used only when transport is "bridge"
    bridge_target: str = ""


# =============================================================================
# CONNECTION CONFIGURATION
# =============================================================================

class ConnectionConfig(BaseModel):
    """
    Target semantic model.

    Usually supplied by the host application at launch
    ("Server=localhost:12345;Database=abc123"). Empty values mean
    standalone mode: the session waits for an explicit connect call.
    """

    # Server address, e.g. "localhost:54321" or "https://host:port"
    server: str = ""

    # Catalog (database) name of the semantic model
    database: str = ""

    # Seconds between liveness probes while a session is connected
    monitor_interval_seconds: float = 30.0


# =============================================================================
# CHAT CONFIGURATION
# =============================================================================

class ChatConfig(BaseModel):
    """
    Chat-completion client configuration.

    Any OpenAI-compatible chat-completions endpoint works; the base URL is
    derived from api_url by dropping the trailing "/chat/completions".
    """

    # Full chat-completions URL
    api_url: str = OPENAI_CHAT_COMPLETIONS_URL

    # Bearer token; chat turns fail with a configuration error while empty
    api_key: str = ""

    # Model name sent with every request
    default_model: str = CHAT_MODELS.GPT_4.value

    # Sampling temperature (0.0-1.0)
    temperature: float = 0.2

    # Maximum time (seconds) to wait for a completion
    timeout_seconds: int = 60

    # Retries on transient API errors (handled by the client library)
    max_retries: int = 2

    # Maximum characters across system prompt, history and user message
    # Sample data in the system prompt is the usual reason to hit this
    max_input_chars: int = 120000

    # Maximum characters in one user message (chat turn or query command)
    max_message_chars: int = 20000


# =============================================================================
# SERVER CONFIGURATION
# =============================================================================

class ServerConfig(BaseModel):
    """
    FastAPI/Uvicorn server configuration.

    Used by run_dev.py and run_prod.py scripts.
    """

    # Local-only by default: the API fronts a desktop model instance
    host: str = "127.0.0.1"

    port: int = 8000

    # Format: "package.module:app_variable"
    app_module: str = "semantic_chat.main:app"

    # Enable hot reload on code changes (development only)
    reload: bool = True

    # A session lives in process memory, so more than one worker would
    # split sessions between processes
    workers: int = 1


# =============================================================================
# APPLICATION CONFIGURATION
# =============================================================================

class AppConfig(BaseModel):
    """General application settings."""

    # DEBUG logs full envelopes and prompts; INFO is normal operation
    log_level: LogLevel = LogLevel.INFO


# =============================================================================
# ROOT SETTINGS (Environment Loading)
# =============================================================================

class Settings(BaseSettings):
    """
    Root settings class that loads all configuration from environment.

    Environment variables use "__" (double underscore) as nested delimiter.
    Example: QUERY__MAX_RESULT_ROWS sets settings.query.max_result_rows

    Every field has a default, so the application starts in standalone
    mode without any environment.
    """

    query: QueryConfig = QueryConfig()

    xmla: XMLAConfig = XMLAConfig()

    connection: ConnectionConfig = ConnectionConfig()

    chat: ChatConfig = ChatConfig()

    server: ServerConfig = ServerConfig()

    app: AppConfig = AppConfig()

    model_config = SettingsConfigDict(
        env_file=".env",            # Load from .env file in project root
        env_file_encoding="utf-8",  # UTF-8 encoding for .env file
        case_sensitive=False,       # ENV_VAR and env_var are equivalent
        env_nested_delimiter="__",  # Use __ for nested config (QUERY__MAX_RESULT_ROWS)
        extra="ignore",
    )


# =============================================================================
# SINGLETON ACCESSOR
# =============================================================================

@lru_cache
def get_settings() -> Settings:
    """
    Get cached Settings instance (singleton pattern).

    Settings are loaded once and cached for the lifetime of the application.

    Returns:
        Settings instance with all configuration loaded from environment
    """
    return Settings()
