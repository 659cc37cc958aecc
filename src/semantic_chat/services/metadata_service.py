"""
Metadata Service for building semantic model snapshots.

Orchestrates one metadata fetch:
1. Tables, columns, measures and relationships are probed concurrently
   and awaited together; each probe degrades to an empty list on failure.
2. The rows are joined by CatalogSynthesisRepository.
3. Optionally, sample rows are fetched concurrently for the first
   queryable tables, each table isolated from the others' failures.

Failures outside those isolated sub-fetches propagate to the caller.
"""

import asyncio
from typing import Awaitable, List, Optional, Tuple, TypeVar

from ..config import QueryConfig
from ..domain.semantic_model import MetadataOptions, Row, SemanticModelSnapshot, TableDescriptor
from ..domain.types import SampleDataMap
from ..infrastructure.xmla_connection import XMLAConnection
from ..repositories.catalog_synthesis import CatalogSynthesisRepository
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id


logger = get_module_logger()

T = TypeVar("T")


class MetadataService:
    """
    Builds SemanticModelSnapshot instances from a live connection.

    Usage:
        service = MetadataService(connection, settings.query)
        snapshot = await service.get_semantic_model_metadata(MetadataOptions(max_sample_rows=3))
    """

    def __init__(
        self,
        connection: XMLAConnection,
        query_config: QueryConfig,
        synthesis_repository: Optional[CatalogSynthesisRepository] = None,
    ):
        self.connection = connection
        self.query_config = query_config
        self.synthesis = synthesis_repository or CatalogSynthesisRepository()

    async def _isolated(self, source: str, probe: Awaitable[List[T]]) -> List[T]:
        """Await one catalog probe; a failure becomes an empty list."""
        try:
            return await probe
        except Exception as e:
            logger.warning(
                "Catalog probe failed, continuing with partial metadata",
                source=source,
                error=str(e),
                error_type=type(e).__name__,
                trace_id=current_trace_id(),
            )
            return []

    async def get_semantic_model_metadata(self, options: Optional[MetadataOptions] = None) -> SemanticModelSnapshot:
        """
        Fetch and synthesize the full model.

        Args:
            options: Sampling options (defaults: sample data on, 3 rows)

        Returns:
            A fresh snapshot; callers replace their previous one wholesale
        """
        options = options or MetadataOptions()
        trace_id = current_trace_id()

        logger.info(
            "Fetching semantic model metadata",
            database=self.connection.database,
            fetch_sample_data=options.fetch_sample_data,
            trace_id=trace_id,
        )

        tables, columns, measures, relationships = await asyncio.gather(
            self._isolated("tables", self.connection.get_tables()),
            self._isolated("columns", self.connection.get_columns()),
            self._isolated("measures", self.connection.get_measures()),
            self._isolated("relationships", self.connection.get_relationships()),
        )

        snapshot = self.synthesis.synthesize(tables, columns, measures, relationships)

        if options.fetch_sample_data and snapshot.tables:
            samples = await self.fetch_sample_data(snapshot.tables, options.max_sample_rows)
            snapshot = self.synthesis.with_sample_data(snapshot, samples)

        logger.info(
            "Semantic model metadata fetched",
            **snapshot.summary.model_dump(),
            trace_id=trace_id,
        )
        return snapshot

    async def fetch_sample_data(self, tables: List[TableDescriptor], max_rows: int) -> SampleDataMap:
        """
        Sample the first max_sample_tables tables that have columns.

        Runs concurrently; a failing table contributes nothing and never
        affects the others. Only non-empty results are returned.
        """
        to_sample = [table for table in tables if table.is_queryable][: self.query_config.max_sample_tables]

        logger.info(
            "Fetching sample data",
            tables=len(to_sample),
            rows_per_table=max_rows,
            trace_id=current_trace_id(),
        )

        results = await asyncio.gather(
            *(self._sample_table(table.name, max_rows) for table in to_sample)
        )

        samples: SampleDataMap = {name: rows for name, rows in results if rows}
        logger.info("Sample data fetched", tables_with_data=len(samples), trace_id=current_trace_id())
        return samples

    async def _sample_table(self, table_name: str, max_rows: int) -> Tuple[str, List[Row]]:
        try:
            return table_name, await self.connection.get_sample_data(table_name, max_rows)
        except Exception as e:
            logger.warning(
                "Failed to fetch sample data",
                table=table_name,
                error=str(e),
                error_type=type(e).__name__,
                trace_id=current_trace_id(),
            )
            return table_name, []
