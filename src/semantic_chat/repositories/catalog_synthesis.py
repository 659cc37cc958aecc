"""
Catalog Synthesis Repository.

Deterministic join of raw catalog rows into a normalized semantic model:
- Builds ID -> name lookups for tables and columns
- Groups columns under their owning table (catalog order kept)
- Resolves measure owners (unresolved owner -> None)
- Resolves relationship endpoints, dropping any relationship with an
  unresolved side
- Computes summary counts from the final structures

No I/O: rows come in already fetched, the snapshot goes out.
"""

from typing import Iterable, List, Optional

from ..domain.catalog_rows import ColumnRow, MeasureRow, RelationshipRow, TableRow
from ..domain.semantic_model import (
    ColumnDescriptor,
    MeasureDescriptor,
    ModelSummary,
    RelationshipDescriptor,
    SemanticModelSnapshot,
    TableDescriptor,
)
from ..domain.types import IdNameMap, SampleDataMap, TableColumnsMap
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id

logger = get_module_logger()


def build_table_lookup(tables: Iterable[TableRow]) -> IdNameMap:
    """Table ID -> name; rows without an ID or any name are skipped."""
    return {
        table.id: table.resolved_name
        for table in tables
        if table.id and table.resolved_name
    }


def build_column_lookup(columns: Iterable[ColumnRow]) -> IdNameMap:
    """Column ID -> name (explicit, else inferred)."""
    return {
        column.id: column.resolved_name
        for column in columns
        if column.id and column.resolved_name
    }


def format_endpoint(table: str, column: str) -> str:
    return f"{table}[{column}]"


class CatalogSynthesisRepository:
    """Joins catalog rows into SemanticModelSnapshot structures."""

    def group_columns(self, columns: Iterable[ColumnRow], table_lookup: IdNameMap) -> TableColumnsMap:
        """Columns keyed by owning table name; columns of unknown tables are dropped."""
        grouped: TableColumnsMap = {}
        for column in columns:
            table_name = table_lookup.get(column.table_id or "")
            column_name = column.resolved_name
            if table_name and column_name:
                grouped.setdefault(table_name, []).append(ColumnDescriptor(name=column_name))
        return grouped

    def build_tables(self, tables: Iterable[TableRow], columns_by_table: TableColumnsMap) -> List[TableDescriptor]:
        """
        One descriptor per named table, in catalog order.

        Table names are unique within a fetch; a repeated name keeps its
        first occurrence.
        """
        descriptors: List[TableDescriptor] = []
        seen = set()
        for table in tables:
            name = table.resolved_name
            if not name or name in seen:
                continue
            seen.add(name)
            descriptors.append(
                TableDescriptor(name=name, columns=list(columns_by_table.get(name, [])))
            )
        return descriptors

    def build_measures(self, measures: Iterable[MeasureRow], table_lookup: IdNameMap) -> List[MeasureDescriptor]:
        return [
            MeasureDescriptor(
                name=measure.resolved_name,
                table=table_lookup.get(measure.table_id or ""),
                expression=measure.expression,
            )
            for measure in measures
            if measure.resolved_name
        ]

    def resolve_relationship(
        self,
        relationship: RelationshipRow,
        table_lookup: IdNameMap,
        column_lookup: IdNameMap,
    ) -> Optional[RelationshipDescriptor]:
        """Resolve all four IDs; None if any of them does not resolve."""
        from_table = table_lookup.get(relationship.from_table_id or "")
        from_column = column_lookup.get(relationship.from_column_id or "")
        to_table = table_lookup.get(relationship.to_table_id or "")
        to_column = column_lookup.get(relationship.to_column_id or "")

        if not (from_table and from_column and to_table and to_column):
            return None

        return RelationshipDescriptor(
            name=relationship.name or "",
            from_=format_endpoint(from_table, from_column),
            to=format_endpoint(to_table, to_column),
        )

    def build_relationships(
        self,
        relationships: Iterable[RelationshipRow],
        table_lookup: IdNameMap,
        column_lookup: IdNameMap,
    ) -> List[RelationshipDescriptor]:
        resolved: List[RelationshipDescriptor] = []
        dropped = 0
        for relationship in relationships:
            descriptor = self.resolve_relationship(relationship, table_lookup, column_lookup)
            if descriptor is None:
                dropped += 1
            else:
                resolved.append(descriptor)

        if dropped:
            logger.debug(
                "Dropped relationships with unresolved endpoints",
                dropped=dropped,
                kept=len(resolved),
                trace_id=current_trace_id(),
            )
        return resolved

    def synthesize(
        self,
        tables: List[TableRow],
        columns: List[ColumnRow],
        measures: List[MeasureRow],
        relationships: List[RelationshipRow],
    ) -> SemanticModelSnapshot:
        """Join raw catalog rows into a snapshot without sample data."""
        table_lookup = build_table_lookup(tables)
        column_lookup = build_column_lookup(columns)

        table_descriptors = self.build_tables(tables, self.group_columns(columns, table_lookup))
        snapshot = SemanticModelSnapshot(
            tables=table_descriptors,
            measures=self.build_measures(measures, table_lookup),
            relationships=self.build_relationships(relationships, table_lookup, column_lookup),
        )
        return self.with_sample_data(snapshot, {})

    def with_sample_data(self, snapshot: SemanticModelSnapshot, sample_data: SampleDataMap) -> SemanticModelSnapshot:
        """Attach non-empty samples and recompute the summary."""
        samples = {name: rows for name, rows in sample_data.items() if rows}
        return snapshot.model_copy(
            update={
                "sample_data": samples,
                "summary": ModelSummary(
                    table_count=len(snapshot.tables),
                    measure_count=len(snapshot.measures),
                    relationship_count=len(snapshot.relationships),
                    total_columns=sum(len(table.columns) for table in snapshot.tables),
                    tables_with_sample_data=len(samples),
                ),
            }
        )
