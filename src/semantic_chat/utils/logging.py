import structlog
import logging
import inspect
import json
from typing import Any
from semantic_chat.config import get_settings

# Module-level flag to prevent multiple configuration
_logging_configured = False

# Event keys rendered in the header line of the dev formatter
_HEADER_FIELDS = {'timestamp', 'level', 'module', 'event', 'trace_id', 'logger'}


def _add_module_info(logger: Any, method_name: str, event_dict: structlog.types.EventDict) -> structlog.types.EventDict:
    """
    Add a short module name (last two dotted parts) for project loggers.

    "semantic_chat.infrastructure.xmla_connection" becomes
    "infrastructure.xmla_connection"; third-party loggers keep their name.
    """
    logger_name = event_dict.get('logger', 'unknown')

    if logger_name.startswith('semantic_chat.'):
        module_parts = logger_name.split('.')
        event_dict['module'] = '.'.join(module_parts[-2:])
    else:
        event_dict['module'] = logger_name

    return event_dict


def _pretty_json_renderer(logger: Any, method_name: str, event_dict: structlog.types.EventDict) -> str:
    """Render every event as indented JSON."""
    return json.dumps(event_dict, indent=2, ensure_ascii=False, default=str)


def _dev_formatter(logger: Any, method_name: str, event_dict: structlog.types.EventDict) -> str:
    """
    Single-line, colored formatter for interactive use.

    Selected with APP__LOG_LEVEL=DEBUG, where JSON output gets too noisy
    to follow XMLA round-trips.
    """
    timestamp = event_dict.get('timestamp', '')
    level = event_dict.get('level', '').upper()
    module = event_dict.get('module', '')
    event = event_dict.get('event', '')
    trace_id = event_dict.get('trace_id', '')

    colors = {
        'DEBUG': '\033[36m',    # Cyan
        'INFO': '\033[32m',     # Green
        'WARNING': '\033[33m',  # Yellow
        'ERROR': '\033[31m',    # Red
        'CRITICAL': '\033[35m', # Magenta
    }
    reset = '\033[0m'

    color = colors.get(level, '')
    main_msg = f"{timestamp} {color}[{level}]{reset} {module}: {event}"

    if trace_id:
        main_msg += f" (trace: {trace_id[:8]})"

    other_fields = [
        f"{key}={value}" for key, value in event_dict.items()
        if key not in _HEADER_FIELDS
    ]
    if other_fields:
        main_msg += f" | {', '.join(other_fields)}"

    return main_msg


def configure_logging() -> None:
    """Configure structured logging for the application."""

    global _logging_configured

    # ---- guard: run only once ----
    if _logging_configured:
        return
    _logging_configured = True

    settings = get_settings()
    log_level = settings.app.log_level.value

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level),
        handlers=[logging.StreamHandler()]
    )

    # httpx logs every request at INFO; XMLA probes run every 30 seconds
    logging.getLogger("httpx").setLevel(logging.WARNING)

    renderer = _dev_formatter if log_level == "DEBUG" else _pretty_json_renderer

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,  # Adds 'logger' field with module name
            structlog.stdlib.add_log_level,    # Adds 'level' field
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),  # Adds 'timestamp' field (ISO8601)
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            _add_module_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name, typically __name__ to get the module name

    Usage:
        logger = get_logger(__name__)
        logger.info("Catalog probe finished", rows=42, trace_id="abc-123")
    """
    return structlog.get_logger(name)


def get_module_logger() -> structlog.stdlib.BoundLogger:
    """
    Get a logger named after the calling module.

    Falls back to 'unknown' if frame inspection fails.
    """
    module_name = 'unknown'
    frame = None

    try:
        frame = inspect.currentframe()
        if frame is not None and frame.f_back is not None:
            module_name = frame.f_back.f_globals.get('__name__', 'unknown')
    except (AttributeError, RuntimeError):
        # Frame inspection can fail in some environments (e.g., some REPL implementations)
        pass
    finally:
        # Clean up frame references to avoid potential memory leaks
        if frame is not None:
            del frame

    return get_logger(module_name)


def preview(text: str, length: int) -> str:
    """Truncate query text for log lines."""
    if len(text) <= length:
        return text
    return text[:length] + "..."
