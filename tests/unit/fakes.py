"""Fake XMLA transport, fake chat client and canned responses shared by unit tests."""

from typing import Callable, Dict, List, Optional, Union

from semantic_chat.config import ConnectionConfig, QueryConfig, Settings
from semantic_chat.infrastructure.xmla_codec import escape_xml, extract_statement
from semantic_chat.infrastructure.xmla_transport import XMLATransport
from semantic_chat.services.chat_session import ChatSession


def soap_rows(rows: List[Dict[str, str]]) -> str:
    """Response envelope shaped like a real XMLA rowset answer."""
    body = "".join(
        "<row>" + "".join(f"<{k}>{escape_xml(v)}</{k}>" for k, v in row.items()) + "</row>"
        for row in rows
    )
    return (
        '<soap:Envelope xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/">'
        "<soap:Body><ExecuteResponse xmlns=\"urn:schemas-microsoft-com:xml-analysis\">"
        "<return><root xmlns=\"urn:schemas-microsoft-com:xml-analysis:rowset\">"
        f"{body}"
        "</root></return></ExecuteResponse></soap:Body></soap:Envelope>"
    )


def soap_fault(message: str) -> str:
    return (
        '<soap:Envelope xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/">'
        "<soap:Body><soap:Fault><faultcode>XMLAnalysisError</faultcode>"
        f"<faultstring>{escape_xml(message)}</faultstring>"
        "</soap:Fault></soap:Body></soap:Envelope>"
    )


Handler = Callable[[str], Union[str, Exception]]


class FakeTransport(XMLATransport):
    """Answers each statement through a handler; records what was sent."""

    def __init__(self, handler: Handler):
        self.handler = handler
        self.statements: List[str] = []
        self.endpoints: List[str] = []
        self.closed = False

    async def send(self, endpoint: str, envelope: str) -> str:
        statement = extract_statement(envelope)
        self.endpoints.append(endpoint)
        self.statements.append(statement)
        result = self.handler(statement)
        if isinstance(result, Exception):
            raise result
        return result

    async def close(self) -> None:
        self.closed = True


# Small model: Sales -> Product, a measure, one good and one broken relationship
CATALOG_ROWS: Dict[str, List[Dict[str, str]]] = {
    "TMSCHEMA_TABLES": [
        {"ID": "1", "Name": "Sales"},
        {"ID": "2", "Name": "Product"},
        {"ID": "3", "Name": "Empty Table"},
    ],
    "TMSCHEMA_COLUMNS": [
        {"ID": "10", "TableID": "1", "ExplicitName": "Amount"},
        {"ID": "11", "TableID": "1", "ExplicitName": "ProductKey"},
        {"ID": "12", "TableID": "2", "InferredName": "ProductKey"},
        {"ID": "13", "TableID": "2", "ExplicitName": "Color"},
        {"ID": "14", "TableID": "99", "ExplicitName": "Orphan"},
    ],
    "TMSCHEMA_MEASURES": [
        {"ID": "20", "TableID": "1", "Name": "Total Sales", "Expression": "SUM(Sales[Amount])"},
        {"ID": "21", "TableID": "42", "Name": "Floating"},
    ],
    "TMSCHEMA_RELATIONSHIPS": [
        {"RelationshipName": "Sales_Product", "FromTableID": "1", "FromColumnID": "11",
         "ToTableID": "2", "ToColumnID": "12"},
        {"RelationshipName": "Broken", "FromTableID": "1", "FromColumnID": "999",
         "ToTableID": "2", "ToColumnID": "12"},
    ],
}


def catalog_handler(
    overrides: Optional[Dict[str, Union[str, Exception]]] = None,
    samples: Optional[Dict[str, Union[List[Dict[str, str]], Exception]]] = None,
) -> Handler:
    """
    Route statements to catalog rows, sample rows or overrides.

    overrides: catalog name -> raw response or exception
    samples: table name -> rows or exception (for TOPN sample queries)
    """
    overrides = overrides or {}
    samples = samples or {}

    def handle(statement: str) -> Union[str, Exception]:
        for catalog, rows in CATALOG_ROWS.items():
            if catalog in statement:
                return overrides.get(catalog, soap_rows(rows))
        if "DBSCHEMA_CATALOGS" in statement:
            return overrides.get("DBSCHEMA_CATALOGS", soap_rows([{"CATALOG_NAME": "db"}]))
        for table, result in samples.items():
            if f"'{table}'" in statement:
                return result if isinstance(result, Exception) else soap_rows(result)
        return soap_rows([])

    return handle


class FakeChatClient:
    """Records every conversation sent to the chat API."""

    def __init__(self, reply: str = "Sure."):
        self.reply = reply
        self.conversations: List[list] = []
        self.closed = False

    def is_connected(self) -> bool:
        return not self.closed

    async def complete(self, messages) -> str:
        self.conversations.append(list(messages))
        return self.reply

    async def close(self) -> None:
        self.closed = True


class Harness:
    """Session wired to fake transports; the handler can be swapped mid-test."""

    def __init__(self, handler, monitor_interval=3600.0, **query_overrides):
        self.handler = handler
        self.transports = []
        self.chat_client = FakeChatClient()
        settings = Settings(
            _env_file=None,
            query=QueryConfig(**query_overrides),
            connection=ConnectionConfig(monitor_interval_seconds=monitor_interval),
        )
        self.session = ChatSession(settings, self.chat_client, transport_factory=self._make_transport)

    def _make_transport(self):
        transport = FakeTransport(lambda statement: self.handler(statement))
        self.transports.append(transport)
        return transport
