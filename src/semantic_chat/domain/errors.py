"""
Custom exception hierarchy for the Semantic Model Chat system.

This module defines the exception hierarchy with:
- Consistent error codes for API responses
- HTTP status code mappings for FastAPI
- Detailed error messages for the chat UI

Error taxonomy:
- Validation failure: query rejected before any network call (QueryValidationError)
- Protocol fault: server-reported fault in a well-formed envelope (XMLAFaultError)
- Transport failure: refused/reset/timeout, with a contextual hint (XMLATransportError)
- Bridge unavailable: native bridge missing or failing to load (BridgeUnavailableError)
- Partial-data degradation is never raised; it is logged where it happens.

Usage:
    raise QueryValidationError.from_errors(["Query cannot be empty"])
    raise XMLAFaultError("Invalid object name")
"""

from typing import Any, Dict, List, Optional

from .base_enums import TransportFailureKind


class SemanticChatException(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable error code (e.g., "XMLA_FAULT")
        http_status: HTTP status code to return (default: 500)
        details: Optional dictionary with additional error context
    """

    error_code: str = "INTERNAL_ERROR"
    http_status: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
        http_status: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code
        if http_status:
            self.http_status = http_status

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        result: Dict[str, Any] = {
            "error_code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Client Errors (4xx)
# =============================================================================


class BadRequestError(SemanticChatException):
    """
    Raised when the request is malformed or invalid.

    HTTP Status: 400 Bad Request

    Examples:
        - Empty chat message
        - Connect without server or database
    """

    error_code = "BAD_REQUEST"
    http_status = 400


class NotConnectedError(SemanticChatException):
    """
    Raised when an operation needs a semantic model connection and there is none.

    HTTP Status: 409 Conflict
    """

    error_code = "NOT_CONNECTED"
    http_status = 409


class QueryValidationError(SemanticChatException):
    """
    Raised when an analytical query is rejected before execution.

    HTTP Status: 422 Unprocessable Entity

    User-correctable; the message carries every validation error joined
    with ", " so it can be shown verbatim.
    """

    error_code = "QUERY_VALIDATION_ERROR"
    http_status = 422

    @classmethod
    def from_errors(
        cls,
        errors: List[str],
        warnings: Optional[List[str]] = None,
    ) -> "QueryValidationError":
        return cls(
            f"Query validation failed: {', '.join(errors)}",
            details={"errors": list(errors), "warnings": list(warnings or [])},
        )


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(SemanticChatException):
    """
    Raised when configuration is invalid or missing.

    HTTP Status: 500 Internal Server Error
    """

    error_code = "CONFIGURATION_ERROR"
    http_status = 500


# =============================================================================
# XMLA Errors (5xx)
# =============================================================================


class XMLAError(SemanticChatException):
    """
    Base class for errors talking to the semantic model server.

    HTTP Status: 502 Bad Gateway
    """

    error_code = "XMLA_ERROR"
    http_status = 502


class XMLAFaultError(XMLAError):
    """
    Raised when the response envelope carries a SOAP fault.

    The transport exchange succeeded; the server refused the request.
    """

    error_code = "XMLA_FAULT"

    def __init__(self, fault_string: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"SOAP Fault: {fault_string}", details=details)
        self.fault_string = fault_string


class XMLAResponseError(XMLAError):
    """Raised when a response (or outbound envelope) is not well-formed XML."""

    error_code = "XMLA_RESPONSE_ERROR"


# Hints appended to transport failures, keyed by failure kind
TRANSPORT_HINTS: Dict[TransportFailureKind, str] = {
    TransportFailureKind.RESET: (
        "Tip: The connection was reset. This may mean:\n"
        "• The XMLA endpoint is not enabled\n"
        "• The port is incorrect\n"
        "• A firewall is blocking the connection"
    ),
    TransportFailureKind.REFUSED: (
        "Tip: Connection refused. Make sure:\n"
        "• The host application is running\n"
        "• The report is open\n"
        "• External tools are enabled"
    ),
    TransportFailureKind.TIMEOUT: (
        "Tip: The request timed out. The server may be slow or unreachable."
    ),
}


class XMLATransportError(XMLAError):
    """
    Raised when the request never completed at the transport level.

    HTTP Status: 503 Service Unavailable

    The message ends with a hint specific to refused, reset or timed-out
    connections so the user can tell them apart.
    """

    error_code = "XMLA_TRANSPORT_ERROR"
    http_status = 503

    def __init__(
        self,
        message: str,
        kind: TransportFailureKind = TransportFailureKind.OTHER,
        details: Optional[Dict[str, Any]] = None,
    ):
        hint = TRANSPORT_HINTS.get(kind)
        full_message = f"{message}\n\n{hint}" if hint else message
        super().__init__(full_message, details={**(details or {}), "kind": kind.value})
        self.kind = kind


class BridgeQueryError(XMLATransportError):
    """
    Raised when the native query bridge reports a failed query.

    The bridge reports an error type alongside the message; known types
    get a user-facing hint.
    """

    error_code = "BRIDGE_QUERY_ERROR"

    CONNECTION_ERROR_TYPE = "AdomdConnectionException"
    QUERY_ERROR_TYPE = "AdomdErrorResponseException"

    def __init__(self, error: str, error_type: Optional[str] = None):
        if error_type == self.CONNECTION_ERROR_TYPE:
            message = (
                f"Connection failed: {error}\n\nMake sure:\n"
                "• The host application is running\n"
                "• The report is open\n"
                "• External Tools are enabled"
            )
        elif error_type == self.QUERY_ERROR_TYPE:
            message = f"Query error: {error}\n\nCheck your DAX syntax and try again."
        else:
            message = error
        super().__init__(message, details={"error_type": error_type})
        self.error_type = error_type


class BridgeUnavailableError(XMLAError):
    """
    Raised when the native query bridge is missing or cannot be loaded.

    HTTP Status: 503 Service Unavailable

    Fatal for the operation and never retried; the message includes
    setup instructions.
    """

    error_code = "BRIDGE_UNAVAILABLE"
    http_status = 503

    SETUP_INSTRUCTIONS = (
        "The native query bridge is required to reach the semantic model.\n\n"
        "Troubleshooting steps:\n"
        "1. Build the bridge project in Release configuration\n"
        "2. Verify the bridge assembly exists where the bridge loader expects it\n"
        "3. Check that the required .NET runtime is installed\n"
        "4. Or set XMLA__TRANSPORT=http to post XMLA envelopes directly"
    )

    def __init__(self, reason: str):
        super().__init__(
            f"Failed to load query bridge: {reason}\n\n{self.SETUP_INSTRUCTIONS}",
            details={"reason": reason},
        )


# =============================================================================
# Chat Errors
# =============================================================================


class ChatError(SemanticChatException):
    """
    Raised when a chat-completion request fails.

    HTTP Status: 503 Service Unavailable
    """

    error_code = "CHAT_ERROR"
    http_status = 503


class ChatConfigurationError(ChatError):
    """
    Raised when the chat API URL or key is not configured.

    HTTP Status: 400 Bad Request
    """

    error_code = "CHAT_CONFIGURATION_ERROR"
    http_status = 400
