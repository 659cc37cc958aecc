"""Shared fixtures for unit tests."""

import pytest

from semantic_chat.config import QueryConfig, XMLAConfig
from semantic_chat.infrastructure.xmla_connection import XMLAConnection

from fakes import FakeTransport, Handler


@pytest.fixture
def query_config() -> QueryConfig:
    return QueryConfig()


@pytest.fixture
def xmla_config() -> XMLAConfig:
    return XMLAConfig()


@pytest.fixture
def make_connection(query_config, xmla_config):
    def _make(handler: Handler, server: str = "localhost:54321", database: str = "db"):
        transport = FakeTransport(handler)
        return XMLAConnection(server, database, query_config, xmla_config, transport), transport
    return _make
