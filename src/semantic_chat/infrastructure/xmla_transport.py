"""
Transports that carry XMLA envelopes to the semantic model server.

Two ways to reach the server:
- HttpXMLATransport posts the envelope to the XMLA endpoint with httpx.
- BridgeXMLATransport hands the statement to a native query-execution
  bridge (an opaque async callable) and turns its JSON-style answer back
  into a rowset document, so callers decode both the same way.

Transport failures are mapped to XMLATransportError with a hint that
tells connection refused, reset and timeout apart.
"""

import importlib
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import urlsplit

import httpx
from pydantic import ValidationError

from ..config import QueryConfig, XMLAConfig
from ..config_constants import XMLATransportKind
from ..domain.base_enums import TransportFailureKind
from ..domain.connection import BridgeRequest, BridgeResponse
from ..domain.errors import (
    BridgeQueryError,
    BridgeUnavailableError,
    XMLAResponseError,
    XMLATransportError,
)
from ..utils.logging import get_module_logger, preview
from ..utils.tracing import current_trace_id
from .xmla_codec import decode_response, encode_rowset, extract_catalog, extract_statement


logger = get_module_logger()

# Native bridge: BridgeRequest -> BridgeResponse (or its dict form)
QueryBridge = Callable[[BridgeRequest], Awaitable[Any]]


class XMLATransport(ABC):
    """Sends one envelope to an endpoint and returns the raw response text."""

    @abstractmethod
    async def send(self, endpoint: str, envelope: str) -> str:
        ...

    async def close(self) -> None:
        """Release transport resources (no-op by default)."""


# =============================================================================
# HTTP
# =============================================================================


class HttpXMLATransport(XMLATransport):
    """
    Posts XMLA envelopes over HTTP.

    Owns a single httpx.AsyncClient, created lazily; pass ``client`` to
    inject one (tests use httpx.MockTransport).
    """

    def __init__(self, config: XMLAConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.request_timeout_seconds)
            )
        return self._client

    async def send(self, endpoint: str, envelope: str) -> str:
        trace_id = current_trace_id()
        client = self._get_client()

        try:
            response = await client.post(
                endpoint,
                content=envelope.encode("utf-8"),
                headers={
                    "Content-Type": "text/xml; charset=utf-8",
                    "SOAPAction": self.config.soap_action,
                },
            )
        except httpx.TimeoutException as e:
            logger.error("XMLA request timed out", endpoint=endpoint, trace_id=trace_id)
            raise XMLATransportError(f"XMLA request timed out: {e}", TransportFailureKind.TIMEOUT) from e
        except httpx.ConnectError as e:
            logger.error("XMLA connection refused", endpoint=endpoint, error=str(e), trace_id=trace_id)
            raise XMLATransportError(f"XMLA connection failed: {e}", TransportFailureKind.REFUSED) from e
        except (httpx.ReadError, httpx.RemoteProtocolError) as e:
            logger.error("XMLA connection reset", endpoint=endpoint, error=str(e), trace_id=trace_id)
            raise XMLATransportError(f"XMLA connection failed: {e}", TransportFailureKind.RESET) from e
        except httpx.HTTPError as e:
            logger.error("XMLA request failed", endpoint=endpoint, error=str(e), trace_id=trace_id)
            raise XMLATransportError(f"XMLA request failed: {e}") from e

        if response.is_error:
            # Faults come back as HTTP 500 with a SOAP body; decode_response raises
            # them as XMLAFaultError. Anything else reports the status line.
            try:
                decode_response(response.text)
            except XMLAResponseError:
                logger.debug("XMLA error body is not XML", endpoint=endpoint, trace_id=trace_id)

            logger.error(
                "XMLA request failed",
                endpoint=endpoint,
                status_code=response.status_code,
                trace_id=trace_id,
            )
            raise XMLATransportError(
                f"XMLA request failed: {response.status_code} {response.reason_phrase}",
                details={"status_code": response.status_code},
            )

        return response.text

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None


# =============================================================================
# Native bridge
# =============================================================================


def load_query_bridge(target: str) -> QueryBridge:
    """
    Import a bridge callable from a "package.module:callable" path.

    Raises:
        BridgeUnavailableError: If the path is empty, or the module or
            callable cannot be loaded
    """
    if not target:
        raise BridgeUnavailableError("no bridge configured (XMLA__BRIDGE_TARGET is empty)")

    module_name, _, attribute = target.partition(":")
    try:
        module = importlib.import_module(module_name)
    except (ImportError, OSError) as e:
        raise BridgeUnavailableError(f"{type(e).__name__}: {e}") from e

    bridge = getattr(module, attribute or "execute_query", None)
    if not callable(bridge):
        raise BridgeUnavailableError(f"{target} is not callable")
    return bridge


def bridge_server_from_endpoint(endpoint: str) -> str:
    """Reduce an XMLA endpoint URL to the host:port form the bridge expects."""
    try:
        parts = urlsplit(endpoint)
        port = parts.port
    except ValueError as e:
        raise XMLATransportError(
            "Invalid XMLA endpoint URL. Make sure the host application is running and the report is open."
        ) from e

    if not parts.scheme or not parts.hostname:
        raise XMLATransportError(
            "Invalid XMLA endpoint URL. Make sure the host application is running and the report is open."
        )
    return f"{parts.hostname}:{port}" if port is not None else parts.hostname


class BridgeXMLATransport(XMLATransport):
    """
    Routes Execute envelopes through the native query-execution bridge.

    The bridge speaks statements, not envelopes: the catalog and statement
    are pulled back out of the envelope, and successful row answers are
    rendered with encode_rowset().
    """

    def __init__(self, bridge: Optional[QueryBridge], query_config: QueryConfig):
        self._bridge = bridge
        self.query_config = query_config

    async def send(self, endpoint: str, envelope: str) -> str:
        trace_id = current_trace_id()

        if self._bridge is None:
            raise BridgeUnavailableError("no bridge configured")

        server = bridge_server_from_endpoint(endpoint)
        database = extract_catalog(envelope)
        query = extract_statement(envelope)

        logger.info(
            "Sending query through native bridge",
            server=server,
            database=database,
            query=preview(query, self.query_config.log_preview_length),
            trace_id=trace_id,
        )

        request = BridgeRequest(
            server=server,
            database=database,
            query=query,
            timeout_seconds=self.query_config.command_timeout_seconds,
        )

        try:
            raw = await self._bridge(request)
        except (ImportError, OSError) as e:
            logger.error("Native bridge failed to load", error=str(e), trace_id=trace_id)
            raise BridgeUnavailableError(f"{type(e).__name__}: {e}") from e

        try:
            response = raw if isinstance(raw, BridgeResponse) else BridgeResponse.model_validate(raw)
        except ValidationError as e:
            raise XMLAResponseError(f"Malformed bridge response: {e}") from e

        if not response.success:
            logger.error(
                "Native bridge query failed",
                error=response.error,
                error_type=response.error_type,
                trace_id=trace_id,
            )
            raise BridgeQueryError(response.error or "Unknown bridge error", response.error_type)

        logger.info("Native bridge query succeeded", rows=response.row_count, trace_id=trace_id)
        return encode_rowset(response.data)


def create_transport(
    config: XMLAConfig,
    query_config: QueryConfig,
    bridge: Optional[QueryBridge] = None,
) -> XMLATransport:
    """
    Build the transport selected by XMLAConfig.transport.

    For the bridge transport, ``bridge`` wins over config.bridge_target.
    """
    if config.transport == XMLATransportKind.BRIDGE:
        if bridge is None:
            bridge = load_query_bridge(config.bridge_target)
        return BridgeXMLATransport(bridge, query_config)
    return HttpXMLATransport(config)
