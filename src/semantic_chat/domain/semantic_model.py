from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# One result row: column name -> cell text
Row = Dict[str, Any]


class ColumnDescriptor(BaseModel):
    """A column attached to its owning table."""

    name: str = Field(..., description="Column name (explicit name, or inferred name when absent)")


class TableDescriptor(BaseModel):
    """A model table with its columns in catalog order."""

    name: str = Field(..., description="Table name, unique within one metadata fetch")
    columns: List[ColumnDescriptor] = Field(default_factory=list, description="Columns in catalog order")

    @property
    def is_queryable(self) -> bool:
        """Tables without columns cannot be sampled."""
        return len(self.columns) > 0


class MeasureDescriptor(BaseModel):
    """A measure and the table it lives on."""

    name: str = Field(..., description="Measure name")
    table: Optional[str] = Field(default=None, description="Owning table name; None when the table ID did not resolve")
    expression: Optional[str] = Field(default=None, description="DAX expression, when the catalog exposes it")


class RelationshipDescriptor(BaseModel):
    """A relationship between two fully resolved columns."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(default="", description="Relationship name")
    from_: str = Field(..., alias="from", description="Source endpoint as Table[Column]")
    to: str = Field(..., description="Target endpoint as Table[Column]")


class ModelSummary(BaseModel):
    """Counts computed from the synthesized structures, not raw row counts."""

    table_count: int = Field(default=0)
    measure_count: int = Field(default=0)
    relationship_count: int = Field(default=0)
    total_columns: int = Field(default=0, description="Columns attached to tables")
    tables_with_sample_data: int = Field(default=0)


class SemanticModelSnapshot(BaseModel):
    """
    Normalized view of one semantic model.

    Built fresh on every metadata fetch and replaces the previous snapshot
    wholesale; nothing is merged incrementally.
    """

    tables: List[TableDescriptor] = Field(default_factory=list)
    measures: List[MeasureDescriptor] = Field(default_factory=list)
    relationships: List[RelationshipDescriptor] = Field(default_factory=list)
    sample_data: Dict[str, List[Row]] = Field(default_factory=dict, description="Table name -> sample rows (non-empty only)")
    summary: ModelSummary = Field(default_factory=ModelSummary)
    fetched_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_empty(self) -> bool:
        return not self.tables and not self.measures


class MetadataOptions(BaseModel):
    """Options for a metadata fetch."""

    fetch_sample_data: bool = Field(default=True, description="Fetch sample rows for the first queryable tables")
    max_sample_rows: int = Field(default=3, ge=1, description="Sample rows per table")
