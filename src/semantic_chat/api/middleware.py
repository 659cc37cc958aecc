"""
Middleware and exception handlers for the Semantic Model Chat API.

This module contains:
- HTTP middleware for trace IDs and request logging
- Centralized exception handlers translating the error hierarchy to JSON

Exception Handling Strategy:
- SemanticChatException subclasses map to their own http_status/error_code
  (validation 422, not connected 409, XMLA faults 502, transport 503, ...)
- Responses are ErrorResponse bodies carrying trace_id and timestamp
- 4xx are logged as warnings, 5xx as errors

Usage in main.py:
    from .api.middleware import register_exception_handlers
    register_exception_handlers(app)
"""

from datetime import datetime, timezone
from typing import Callable, Dict

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..domain.errors import SemanticChatException
from ..domain.responses import ErrorResponse
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id, generate_trace_id, set_trace_id

logger = get_module_logger()


# =============================================================================
# Middleware Functions
# =============================================================================


async def trace_id_middleware(request: Request, call_next: Callable) -> Response:
    """
    Use the X-Trace-ID header (or a new UUID) as the trace ID of the request
    and echo it back in the response headers.
    """
    trace_id = request.headers.get("X-Trace-ID") or generate_trace_id()
    set_trace_id(trace_id)

    response = await call_next(request)
    response.headers["X-Trace-ID"] = trace_id
    return response


async def logging_middleware(request: Request, call_next: Callable) -> Response:
    """Log request start and completion with duration (also sent as X-Process-Time)."""
    start_time = datetime.now(timezone.utc)
    trace_id = current_trace_id()

    logger.info(
        "HTTP request started",
        method=request.method,
        url=str(request.url),
        client_ip=request.client.host if request.client else None,
        trace_id=trace_id,
    )

    response = await call_next(request)

    duration_ms = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000
    response.headers["X-Process-Time"] = str(round(duration_ms, 2))

    logger.info(
        "HTTP request completed",
        method=request.method,
        url=str(request.url),
        status_code=response.status_code,
        duration_ms=round(duration_ms, 2),
        trace_id=trace_id,
    )

    return response


# =============================================================================
# Exception Handlers
# =============================================================================


def _create_error_response(
    status_code: int,
    error_code: str,
    message: str,
    details: Dict | None = None,
) -> JSONResponse:
    """
    Create a standardized JSON error response.

    {
        "error": "error_code",
        "message": "Human readable message",
        "details": {...},  // Optional
        "trace_id": "uuid",
        "timestamp": "ISO8601"
    }
    """
    error_response = ErrorResponse(
        error=error_code.lower(),
        message=message,
        details=details,
        trace_id=current_trace_id(),
        timestamp=datetime.now(timezone.utc),
    )

    return JSONResponse(
        status_code=status_code,
        content=error_response.model_dump(mode="json", exclude_none=True),
    )


async def semantic_chat_exception_handler(request: Request, exc: SemanticChatException) -> JSONResponse:
    """Handler for all SemanticChatException subclasses."""
    log_level = "warning" if exc.http_status < 500 else "error"
    getattr(logger, log_level)(
        f"{exc.__class__.__name__}: {exc.message}",
        error_code=exc.error_code,
        http_status=exc.http_status,
        details=exc.details,
        url=str(request.url),
        method=request.method,
        trace_id=current_trace_id(),
    )

    return _create_error_response(
        status_code=exc.http_status,
        error_code=exc.error_code,
        message=exc.message,
        details=exc.details or None,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for request body validation errors (HTTP 422 with field details)."""
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]

    logger.warning(
        "Request validation failed",
        error_count=len(errors),
        errors=errors,
        url=str(request.url),
        method=request.method,
        trace_id=current_trace_id(),
    )

    return _create_error_response(
        status_code=422,
        error_code="VALIDATION_ERROR",
        message="Request validation failed",
        details={"errors": errors},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handler for Starlette/FastAPI HTTP exceptions (unknown routes, wrong methods)."""
    error_code_map = {
        400: "BAD_REQUEST",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        409: "CONFLICT",
        500: "INTERNAL_ERROR",
        502: "BAD_GATEWAY",
        503: "SERVICE_UNAVAILABLE",
    }
    error_code = error_code_map.get(exc.status_code, "HTTP_ERROR")

    log_level = "warning" if exc.status_code < 500 else "error"
    getattr(logger, log_level)(
        f"HTTP {exc.status_code}: {exc.detail}",
        error_code=error_code,
        url=str(request.url),
        method=request.method,
        trace_id=current_trace_id(),
    )

    return _create_error_response(
        status_code=exc.status_code,
        error_code=error_code,
        message=str(exc.detail) if exc.detail else f"HTTP {exc.status_code} error",
    )


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    """ValueError from business validation (e.g. a bad restriction name) maps to 400."""
    logger.warning(
        f"ValueError: {exc}",
        url=str(request.url),
        method=request.method,
        trace_id=current_trace_id(),
    )

    return _create_error_response(status_code=400, error_code="BAD_REQUEST", message=str(exc))


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback: log everything, expose nothing."""
    logger.error(
        "Unhandled exception occurred",
        error=str(exc),
        error_type=type(exc).__name__,
        url=str(request.url),
        method=request.method,
        trace_id=current_trace_id(),
        exc_info=True,
    )

    return _create_error_response(
        status_code=500,
        error_code="INTERNAL_ERROR",
        message="An internal server error occurred. Please try again later.",
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers with the FastAPI application.

    Priority (most specific first): SemanticChatException,
    RequestValidationError, StarletteHTTPException, ValueError, Exception.
    """
    # FastAPI's add_exception_handler typing does not accept subclass handlers
    app.add_exception_handler(SemanticChatException, semantic_chat_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(ValueError, value_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, general_exception_handler)  # type: ignore[arg-type]


# Used in route decorators to document error responses
ERROR_RESPONSES = {
    400: {"description": "Bad Request - empty message, missing server/database, or chat not configured"},
    409: {"description": "Conflict - the session is not connected to a semantic model"},
    422: {"description": "Validation Error - request body invalid, or DAX query rejected before execution"},
    502: {"description": "Bad Gateway - the server returned a SOAP fault or a malformed response"},
    503: {"description": "Service Unavailable - transport failure, bridge unavailable, or chat API failure"},
}
