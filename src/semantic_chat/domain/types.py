"""
Type aliases for the Semantic Model Chat system.

Reusable names for the lookup structures built while joining catalog rows.
"""

from typing import Dict, List

from .semantic_model import ColumnDescriptor, Row


# Catalog ID to resolved object name: {table_id: table_name}
IdNameMap = Dict[str, str]

# Columns grouped by owning table: {table_name: [column, ...]}
TableColumnsMap = Dict[str, List[ColumnDescriptor]]

# Sample rows by table: {table_name: [row, ...]}
SampleDataMap = Dict[str, List[Row]]
