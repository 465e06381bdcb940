"""
Filter State Model - per-column filters combined with AND semantics
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

import pandas as pd

from filtergrid.core.errors import InvalidRangeError
from filtergrid.models.column_definition import normalize_value
from filtergrid.utils.constants import FilterKind


class ColumnFilter:
    """Base class for the per-column filter variants"""
    kind: str = ""

    def is_noop(self, all_values: Optional[Iterable[Any]] = None) -> bool:
        """True when the filter lets every row through"""
        return False


@dataclass(frozen=True)
class ChecklistFilter(ColumnFilter):
    """Rows pass when their value is in (or, with exclude=True, not in) values"""
    values: frozenset = frozenset()
    exclude: bool = False
    kind = FilterKind.CHECKLIST

    def __post_init__(self):
        object.__setattr__(self, "values", frozenset(normalize_value(v) for v in self.values))

    def accepts(self, value: Any) -> bool:
        return (normalize_value(value) in self.values) != self.exclude

    def is_noop(self, all_values: Optional[Iterable[Any]] = None) -> bool:
        if self.exclude and not self.values:
            return True
        if all_values is None:
            return False
        universe = {normalize_value(v) for v in all_values}
        if self.exclude:
            return not (self.values & universe)
        return universe <= self.values


@dataclass(frozen=True)
class TextSearchFilter(ColumnFilter):
    """Case-insensitive substring match on the value's display text"""
    text: str = ""
    kind = FilterKind.TEXT_SEARCH

    @property
    def needle(self) -> str:
        return self.text.casefold()

    def accepts(self, value: Any) -> bool:
        if value is None:
            return False
        return self.needle in str(value).casefold()

    def is_noop(self, all_values: Optional[Iterable[Any]] = None) -> bool:
        return not self.text.strip()


@dataclass(frozen=True)
class NumericRangeFilter(ColumnFilter):
    """Inclusive numeric range; a missing bound is open"""
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    kind = FilterKind.NUMERIC_RANGE

    def __post_init__(self):
        if self.minimum is not None and self.maximum is not None and self.minimum > self.maximum:
            raise InvalidRangeError(self.minimum, self.maximum)

    @property
    def bounds(self) -> Tuple[Any, Any]:
        return self.minimum, self.maximum

    def is_noop(self, all_values: Optional[Iterable[Any]] = None) -> bool:
        return self.minimum is None and self.maximum is None


def _to_timestamp(value: Any, end_of_day: bool = False) -> Optional[pd.Timestamp]:
    if value is None:
        return None
    if isinstance(value, date) and not isinstance(value, datetime):
        stamp = pd.Timestamp(value)
        if end_of_day:
            # A plain date as upper bound covers the whole day
            stamp = stamp + pd.Timedelta(days=1) - pd.Timedelta(1, unit="ns")
        return stamp
    return pd.Timestamp(value)


@dataclass(frozen=True)
class DateRangeFilter(ColumnFilter):
    """Inclusive date range; a missing bound is open"""
    start: Optional[Any] = None
    end: Optional[Any] = None
    kind = FilterKind.DATE_RANGE

    def __post_init__(self):
        start = _to_timestamp(self.start)
        end = _to_timestamp(self.end, end_of_day=True)
        if start is not None and end is not None and start > end:
            raise InvalidRangeError(self.start, self.end)
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    @property
    def bounds(self) -> Tuple[Any, Any]:
        return self.start, self.end

    def is_noop(self, all_values: Optional[Iterable[Any]] = None) -> bool:
        return self.start is None and self.end is None


class FilterState:
    """Active filters keyed by column key. Absent column = no restriction."""

    def __init__(self, filters: Optional[Dict[str, ColumnFilter]] = None):
        self._filters: Dict[str, ColumnFilter] = {}
        for column_key, column_filter in (filters or {}).items():
            self.set(column_key, column_filter)

    def get(self, column_key: str) -> Optional[ColumnFilter]:
        return self._filters.get(column_key)

    def set(self, column_key: str, column_filter: Optional[ColumnFilter],
            all_values: Optional[Iterable[Any]] = None) -> bool:
        """
        Set or replace a column's filter.

        Args:
            column_key: Column to filter
            column_filter: New filter; None or a filter that passes everything clears the column
            all_values: Distinct values of the column, used to spot "everything selected"

        Returns:
            True if the state changed
        """
        if column_filter is None or column_filter.is_noop(all_values):
            return self.clear(column_key)
        if self._filters.get(column_key) == column_filter:
            return False
        self._filters[column_key] = column_filter
        return True

    def clear(self, column_key: str) -> bool:
        return self._filters.pop(column_key, None) is not None

    def clear_all(self) -> bool:
        changed = bool(self._filters)
        self._filters.clear()
        return changed

    def is_active(self, column_key: str) -> bool:
        return column_key in self._filters

    def active_columns(self) -> List[str]:
        return list(self._filters)

    def items(self) -> List[Tuple[str, ColumnFilter]]:
        return list(self._filters.items())

    def copy(self) -> 'FilterState':
        clone = FilterState()
        clone._filters = dict(self._filters)
        return clone

    def __len__(self) -> int:
        return len(self._filters)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._filters))

    def __contains__(self, column_key: str) -> bool:
        return column_key in self._filters

    def __eq__(self, other) -> bool:
        if not isinstance(other, FilterState):
            return NotImplemented
        return self._filters == other._filters

    def __repr__(self) -> str:
        return f"FilterState({self._filters!r})"
