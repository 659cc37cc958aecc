"""
XMLA connection to one semantic model.

Owns the server/database pair, the derived endpoint and the liveness
state (is_connected, last_successful_query). Every schema and data fetch
goes through here: envelopes are built by the codec, carried by an
XMLATransport and decoded back into rows.

Analytical (DAX) queries run through the full safety pipeline:
validate -> sanitize -> ensure EVALUATE -> execute -> validate results.

Liveness is only written by this class, on its own call sites. Overlapping
calls may finish in any order; the last successful write wins.

Usage:
    connection = XMLAConnection("localhost:54321", "db-id", settings.query, settings.xmla, transport)
    if await connection.test_connection():
        tables = await connection.get_tables()
        result = await connection.execute_analytical_query("'Sales'")
"""

from datetime import datetime, timezone
from typing import List, Optional

from ..config import QueryConfig, XMLAConfig
from ..domain.base_enums import TransportFailureKind
from ..domain.catalog_rows import ColumnRow, MeasureRow, RelationshipRow, TableRow
from ..domain.connection import ConnectionStatus, QueryResult
from ..domain.errors import (
    TRANSPORT_HINTS,
    NotConnectedError,
    QueryValidationError,
    XMLATransportError,
)
from ..domain.semantic_model import Row
from ..repositories.query_validation import QueryValidator, has_evaluate_marker
from ..utils.logging import get_module_logger, preview
from ..utils.tracing import current_trace_id
from .xmla_codec import build_execute_request, decode_response
from .xmla_transport import XMLATransport


logger = get_module_logger()

TABLES_QUERY = "SELECT * FROM $SYSTEM.TMSCHEMA_TABLES"
COLUMNS_QUERY = "SELECT * FROM $SYSTEM.TMSCHEMA_COLUMNS"
MEASURES_QUERY = "SELECT * FROM $SYSTEM.TMSCHEMA_MEASURES"

# Column names differ between server versions; alias the name column
RELATIONSHIPS_QUERY = """
SELECT
    [Name] as RelationshipName,
    [FromTableID],
    [FromColumnID],
    [ToTableID],
    [ToColumnID]
FROM $SYSTEM.TMSCHEMA_RELATIONSHIPS
"""


def quote_dax_string(value: str) -> str:
    """Quote a name for DAX/DMV text: wrap in apostrophes, double embedded ones."""
    return "'" + value.replace("'", "''") + "'"


def describe_connection_error(exc: BaseException) -> str:
    """
    Build a user-facing connect failure message.

    Transport errors already carry their hint; for anything else the hint
    is picked from the error text.
    """
    message = f"Failed to connect: {exc}"
    if isinstance(exc, XMLATransportError):
        return message

    text = str(exc).lower()
    kind: Optional[TransportFailureKind] = None
    if "reset" in text:
        kind = TransportFailureKind.RESET
    elif "refused" in text:
        kind = TransportFailureKind.REFUSED
    elif "timeout" in text or "timed out" in text:
        kind = TransportFailureKind.TIMEOUT

    if kind is not None:
        message += f"\n\n{TRANSPORT_HINTS[kind]}"
    return message


class XMLAConnection:
    """
    One logical connection to a semantic model over XMLA.

    Attributes:
        server: Server as given ("localhost:54321" or "https://host:port")
        database: Catalog name
        endpoint: Derived XMLA endpoint URL
        is_connected: Result of the most recent query attempt
        last_successful_query: UTC time of the most recent successful query
    """

    def __init__(
        self,
        server: str,
        database: str,
        query_config: QueryConfig,
        xmla_config: XMLAConfig,
        transport: XMLATransport,
    ):
        self.server = server
        self.database = database
        self.query_config = query_config
        self.xmla_config = xmla_config
        self.transport = transport
        self.validator = QueryValidator(query_config)

        self.endpoint = self._derive_endpoint(server)
        self.is_connected = False
        self.last_successful_query: Optional[datetime] = None

        logger.info(
            "XMLAConnection initialized",
            server=server,
            database=database,
            endpoint=self.endpoint,
        )

    def _derive_endpoint(self, server: str) -> str:
        server = server.rstrip("/")
        path = self.xmla_config.endpoint_path
        if server.lower().startswith(("http://", "https://")):
            return f"{server}{path}"
        return f"{self.xmla_config.default_protocol}://{server}{path}"

    def _mark_success(self) -> None:
        self.is_connected = True
        self.last_successful_query = datetime.now(timezone.utc)

    async def verify(self) -> None:
        """
        Probe the catalog list for this database, raising on failure.

        Raises:
            NotConnectedError: The server has no catalog with this name
            XMLAError: Probe failed (fault, malformed response or transport)
        """
        query = (
            "SELECT [CATALOG_NAME] FROM $SYSTEM.DBSCHEMA_CATALOGS "
            f"WHERE [CATALOG_NAME] = {quote_dax_string(self.database)}"
        )
        try:
            rows = await self.execute_dmv_query(query)
            if not rows:
                raise NotConnectedError(
                    f"Database '{self.database}' was not found on {self.server}",
                    details={"server": self.server, "database": self.database},
                )
        except Exception:
            self.is_connected = False
            raise

    async def test_connection(self) -> bool:
        """
        Liveness probe used by the connection monitor.

        Never raises: any failure marks the connection lost and returns False.
        """
        try:
            await self.verify()
        except Exception as e:
            self.is_connected = False
            logger.warning(
                "Connection test failed",
                endpoint=self.endpoint,
                error=str(e),
                error_type=type(e).__name__,
                trace_id=current_trace_id(),
            )
            return False

        self._mark_success()
        return True

    def get_connection_status(self) -> ConnectionStatus:
        return ConnectionStatus(
            is_connected=self.is_connected,
            last_successful_query=self.last_successful_query,
            server=self.server,
            database=self.database,
        )

    async def execute_dmv_query(self, query: str) -> List[Row]:
        """
        Send one Execute request and decode its rows.

        Raises:
            XMLAFaultError: Server reported a fault
            XMLAResponseError: Response was not well-formed
            XMLATransportError: Request never completed
        """
        trace_id = current_trace_id()
        logger.debug(
            "Executing XMLA statement",
            query=preview(query.strip(), self.query_config.log_preview_length),
            trace_id=trace_id,
        )

        envelope = build_execute_request(query, self.database)
        response_text = await self.transport.send(self.endpoint, envelope)
        rows = decode_response(response_text)

        self._mark_success()
        logger.debug("XMLA statement returned rows", rows=len(rows), trace_id=trace_id)
        return rows

    async def execute_analytical_query(self, query: str) -> QueryResult:
        """
        Run a DAX query through the safety pipeline.

        Raises:
            QueryValidationError: Query rejected before any network call
            XMLAError: Execution failed (fault, malformed response or transport)
        """
        trace_id = current_trace_id()

        validation = self.validator.validate(query)
        if not validation.is_valid:
            logger.info(
                "Query rejected by validation",
                errors=validation.errors,
                trace_id=trace_id,
            )
            raise QueryValidationError.from_errors(validation.errors, validation.warnings)

        final_query = self.validator.sanitize(
            validation.modified_query if validation.modified else query
        )
        if not has_evaluate_marker(final_query):
            final_query = f"EVALUATE {final_query}"

        logger.info(
            "Executing analytical query",
            query=preview(final_query, self.query_config.log_preview_length),
            modified=validation.modified,
            trace_id=trace_id,
        )

        rows = await self.execute_dmv_query(final_query)
        result_validation = self.validator.validate_results(rows)

        return QueryResult(
            data=rows,
            warnings=[*validation.warnings, *result_validation.warnings],
            row_count=len(rows),
            executed_query=final_query,
        )

    # -------------------------------------------------------------------------
    # Catalog probes
    # -------------------------------------------------------------------------

    async def get_tables(self) -> List[TableRow]:
        rows = await self.execute_dmv_query(TABLES_QUERY)
        return [TableRow.model_validate(row) for row in rows]

    async def get_columns(self) -> List[ColumnRow]:
        rows = await self.execute_dmv_query(COLUMNS_QUERY)
        return [ColumnRow.model_validate(row) for row in rows]

    async def get_measures(self) -> List[MeasureRow]:
        rows = await self.execute_dmv_query(MEASURES_QUERY)
        return [MeasureRow.model_validate(row) for row in rows]

    async def get_relationships(self) -> List[RelationshipRow]:
        """
        Best-effort relationship probe.

        Older servers do not expose the relationships rowset; any failure
        returns an empty list. An empty list therefore does not tell
        "no relationships" from "probe failed".
        """
        try:
            rows = await self.execute_dmv_query(RELATIONSHIPS_QUERY)
        except Exception as e:
            logger.warning(
                "Failed to fetch relationships (may not be supported by this server version)",
                error=str(e),
                error_type=type(e).__name__,
                trace_id=current_trace_id(),
            )
            return []
        return [RelationshipRow.model_validate(row) for row in rows]

    async def get_sample_data(self, table_name: str, max_rows: Optional[int] = None) -> List[Row]:
        """
        Best-effort sample of a table's first rows.

        max_rows defaults to default_sample_rows (at least one row is
        requested). Never raises; failures return an empty list.
        """
        limit = max_rows if max_rows is not None else self.query_config.default_sample_rows
        limit = max(1, limit)

        try:
            result = await self.execute_analytical_query(f"TOPN({limit}, {quote_dax_string(table_name)})")
        except Exception as e:
            logger.warning(
                "Failed to fetch sample data",
                table=table_name,
                error=str(e),
                error_type=type(e).__name__,
                trace_id=current_trace_id(),
            )
            return []
        return result.data

    async def close(self) -> None:
        """Release the transport; the connection is unusable afterwards."""
        await self.transport.close()
        self.is_connected = False
        logger.info("XMLAConnection closed", endpoint=self.endpoint, trace_id=current_trace_id())
