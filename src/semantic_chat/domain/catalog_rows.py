"""
Typed records for raw schema catalog rows.

Catalog probes return flat string mappings whose keys vary by server
version. Each record names the fields the synthesizer joins on and keeps
everything else in an extra-field bag (pydantic ``extra="allow"``), so a
server that adds columns never breaks parsing.

All values arrive as XML text; empty strings are treated as missing.
"""

from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .base_enums import CatalogObjectType


class CatalogRow(BaseModel):
    """Base class for catalog rows."""

    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    object_type: CatalogObjectType = Field(..., exclude=True, description="Schema object type this row describes")
    id: Optional[str] = Field(default=None, validation_alias=AliasChoices("ID", "id"), description="Catalog ID of the object")

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def extra_fields(self) -> Dict[str, Any]:
        """Fields the server sent that this record does not model."""
        return dict(self.model_extra or {})


class TableRow(CatalogRow):
    """Row from the tables catalog."""

    object_type: CatalogObjectType = Field(default=CatalogObjectType.TABLE, frozen=True, exclude=True)
    name: Optional[str] = Field(default=None, validation_alias=AliasChoices("Name", "name"))
    explicit_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("ExplicitName", "explicit_name"))
    inferred_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("InferredName", "inferred_name"))

    @property
    def resolved_name(self) -> Optional[str]:
        return self.name or self.explicit_name or self.inferred_name


class ColumnRow(CatalogRow):
    """Row from the columns catalog."""

    object_type: CatalogObjectType = Field(default=CatalogObjectType.COLUMN, frozen=True, exclude=True)
    table_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("TableID", "table_id"))
    explicit_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("ExplicitName", "explicit_name"))
    inferred_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("InferredName", "inferred_name"))

    @property
    def resolved_name(self) -> Optional[str]:
        # Columns carry no plain Name; explicit wins over inferred
        return self.explicit_name or self.inferred_name


class MeasureRow(CatalogRow):
    """Row from the measures catalog."""

    object_type: CatalogObjectType = Field(default=CatalogObjectType.MEASURE, frozen=True, exclude=True)
    table_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("TableID", "table_id"))
    name: Optional[str] = Field(default=None, validation_alias=AliasChoices("Name", "name"))
    explicit_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("ExplicitName", "explicit_name"))
    inferred_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("InferredName", "inferred_name"))
    expression: Optional[str] = Field(default=None, validation_alias=AliasChoices("Expression", "expression"))

    @property
    def resolved_name(self) -> Optional[str]:
        return self.name or self.explicit_name or self.inferred_name


class RelationshipRow(CatalogRow):
    """Row from the relationships catalog (four foreign-key style IDs)."""

    object_type: CatalogObjectType = Field(default=CatalogObjectType.RELATIONSHIP, frozen=True, exclude=True)
    name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("RelationshipName", "Name", "name"),
    )
    from_table_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("FromTableID", "from_table_id"))
    from_column_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("FromColumnID", "from_column_id"))
    to_table_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("ToTableID", "to_table_id"))
    to_column_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("ToColumnID", "to_column_id"))
