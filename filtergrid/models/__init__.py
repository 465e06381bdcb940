"""
Models package for filtergrid data structures
"""

from filtergrid.models.column_definition import ColumnDefinition
from filtergrid.models.file_system_item import FileSystemItem
from filtergrid.models.filter_state import (
    ChecklistFilter, TextSearchFilter, NumericRangeFilter, DateRangeFilter, FilterState
)

__all__ = [
    'ColumnDefinition', 'FileSystemItem', 'ChecklistFilter', 'TextSearchFilter',
    'NumericRangeFilter', 'DateRangeFilter', 'FilterState'
]
