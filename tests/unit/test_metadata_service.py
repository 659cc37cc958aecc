"""Unit tests for MetadataService: concurrent probes, isolation and sampling."""

import pytest

from semantic_chat.config import QueryConfig, XMLAConfig
from semantic_chat.domain.errors import XMLATransportError
from semantic_chat.domain.semantic_model import MetadataOptions, TableDescriptor
from semantic_chat.infrastructure.xmla_connection import XMLAConnection
from semantic_chat.services.metadata_service import MetadataService

from fakes import FakeTransport, catalog_handler, soap_fault


class TestGetSemanticModelMetadata:

    async def test_full_snapshot_with_samples(self, make_connection, query_config):
        handler = catalog_handler(samples={
            "Sales": [{"Sales[Amount]": "10"}],
            "Product": [{"Product[Color]": "Red"}],
        })
        connection, transport = make_connection(handler)
        service = MetadataService(connection, query_config)

        snapshot = await service.get_semantic_model_metadata(MetadataOptions(max_sample_rows=2))

        assert snapshot.summary.table_count == 3
        assert snapshot.summary.relationship_count == 1
        assert snapshot.summary.tables_with_sample_data == 2
        assert snapshot.sample_data["Sales"] == [{"Sales[Amount]": "10"}]
        # Tables without columns are never sampled
        assert not any("'Empty Table'" in s for s in transport.statements)
        assert "EVALUATE TOPN(2, 'Sales')" in transport.statements

    async def test_requested_sample_rows_passed_through(self, make_connection, query_config):
        connection, transport = make_connection(catalog_handler())
        service = MetadataService(connection, query_config)

        await service.get_semantic_model_metadata(MetadataOptions(max_sample_rows=8))

        sampled = sorted(s for s in transport.statements if "TOPN" in s)
        assert sampled == ["EVALUATE TOPN(8, 'Product')", "EVALUATE TOPN(8, 'Sales')"]

    async def test_samples_skipped_when_disabled(self, make_connection, query_config):
        connection, transport = make_connection(catalog_handler())
        service = MetadataService(connection, query_config)

        snapshot = await service.get_semantic_model_metadata(MetadataOptions(fetch_sample_data=False))

        assert snapshot.sample_data == {}
        assert not any("TOPN" in s for s in transport.statements)
        assert len(transport.statements) == 4

    async def test_failed_probe_degrades_to_empty(self, make_connection, query_config):
        handler = catalog_handler(overrides={"TMSCHEMA_MEASURES": XMLATransportError("reset")})
        connection, _ = make_connection(handler)
        service = MetadataService(connection, query_config)

        snapshot = await service.get_semantic_model_metadata(MetadataOptions(fetch_sample_data=False))

        assert snapshot.measures == []
        assert snapshot.summary.table_count == 3

    async def test_failed_relationship_probe(self, make_connection, query_config):
        handler = catalog_handler(overrides={"TMSCHEMA_RELATIONSHIPS": soap_fault("not supported")})
        connection, _ = make_connection(handler)
        service = MetadataService(connection, query_config)

        snapshot = await service.get_semantic_model_metadata(MetadataOptions(fetch_sample_data=False))

        assert snapshot.relationships == []
        assert snapshot.summary.relationship_count == 0

    async def test_everything_failing_gives_empty_snapshot(self, make_connection, query_config):
        connection, _ = make_connection(lambda statement: XMLATransportError("down"))
        service = MetadataService(connection, query_config)

        snapshot = await service.get_semantic_model_metadata()

        assert snapshot.is_empty
        assert snapshot.sample_data == {}


class TestFetchSampleData:

    async def test_one_failure_does_not_affect_others(self, make_connection, query_config):
        handler = catalog_handler(samples={
            "A": [{"x": "1"}],
            "B": XMLATransportError("boom"),
            "C": [{"y": "2"}],
        })
        connection, _ = make_connection(handler)
        service = MetadataService(connection, query_config)
        tables = [TableDescriptor(name=n, columns=[{"name": "c"}]) for n in ["A", "B", "C"]]

        samples = await service.fetch_sample_data(tables, 3)

        assert samples == {"A": [{"x": "1"}], "C": [{"y": "2"}]}

    async def test_raising_connection_isolated(self, query_config):
        class Exploding(XMLAConnection):
            async def get_sample_data(self, table_name, max_rows=None):
                if table_name == "Bad":
                    raise RuntimeError("unexpected")
                return [{"ok": table_name}]

        connection = Exploding("h:1", "db", query_config, XMLAConfig(), FakeTransport(lambda s: ""))
        service = MetadataService(connection, query_config)
        tables = [TableDescriptor(name=n, columns=[{"name": "c"}]) for n in ["Bad", "Good"]]

        assert await service.fetch_sample_data(tables, 1) == {"Good": [{"ok": "Good"}]}

    async def test_table_count_capped(self, make_connection):
        config = QueryConfig(max_sample_tables=2)
        connection, transport = make_connection(lambda statement: soap_fault("unused"))
        service = MetadataService(connection, config)
        tables = [TableDescriptor(name=f"T{i}", columns=[{"name": "c"}]) for i in range(5)]

        await service.fetch_sample_data(tables, 1)

        sampled = [s for s in transport.statements if "TOPN" in s]
        assert sampled == ["EVALUATE TOPN(1, 'T0')", "EVALUATE TOPN(1, 'T1')"]

    async def test_no_queryable_tables(self, make_connection, query_config):
        connection, transport = make_connection(catalog_handler())
        service = MetadataService(connection, query_config)
        assert await service.fetch_sample_data([TableDescriptor(name="A")], 3) == {}
        assert transport.statements == []


def test_metadata_options_defaults():
    options = MetadataOptions()
    assert options.fetch_sample_data is True
    assert options.max_sample_rows == 3
    with pytest.raises(ValueError):
        MetadataOptions(max_sample_rows=0)
