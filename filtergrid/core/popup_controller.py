"""
Filter Popup Controller - state behind one column's filter popup

Lists the column's distinct values with live counts (rows matching every
other active filter), narrows the list with an in-popup search, and keeps a
draft selection that is committed in one step on apply() or dropped on
cancel().
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from dateutil import parser as date_parser

from filtergrid.core.errors import InvalidRangeError
from filtergrid.models.column_definition import ColumnDefinition, display_value
from filtergrid.models.filter_state import (
    ColumnFilter, ChecklistFilter, TextSearchFilter, NumericRangeFilter, DateRangeFilter
)
from filtergrid.utils.constants import FilterKind

logger = logging.getLogger(__name__)


@dataclass
class FilterValueEntry:
    """One row of the popup's value list"""
    value: Any
    display: str
    count: int
    selected: bool = True

    @property
    def enabled(self) -> bool:
        """Zero-count values stay listed but greyed out"""
        return self.count > 0


def parse_numeric_bound(text: Any) -> Optional[float]:
    """Parse a typed numeric bound; blank means open. Accepts thousands separators."""
    if text is None:
        return None
    if isinstance(text, (int, float)):
        return text
    text = str(text).strip().replace(",", "")
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        raise ValueError(f"'{text}' is not a number")


def parse_date_bound(text: Any) -> Optional[Any]:
    """Parse a typed date bound; blank means open. Date-only input stays a date."""
    if text is None or isinstance(text, (date, datetime)):
        return text
    text = str(text).strip()
    if not text:
        return None
    try:
        parsed = date_parser.parse(text)
    except (ValueError, OverflowError):
        raise ValueError(f"'{text}' is not a date")
    if parsed.hour == parsed.minute == parsed.second == parsed.microsecond == 0 and ":" not in text:
        return parsed.date()
    return parsed


class FilterPopupController:
    """
    Draft filter for one column.

    host must provide current_filter(column_key), value_counts(column_key)
    and apply_filter(column_key, column_filter); FilterSession and the Qt
    view-model both do.
    """

    def __init__(self, host, column: ColumnDefinition):
        self.host = host
        self.column = column
        self.entries: List[FilterValueEntry] = []
        self.search_text = ""
        self.draft_text = ""
        self.draft_lower: Any = None
        self.draft_upper: Any = None
        self.is_open = False

    @property
    def column_key(self) -> str:
        return self.column.column_key

    def open(self) -> List[FilterValueEntry]:
        """Load value counts and seed the draft from the current filter"""
        counts: Dict[Any, int] = self.host.value_counts(self.column_key)
        current = self.host.current_filter(self.column_key)

        self.entries = []
        for value, count in counts.items():
            selected = current.accepts(value) if isinstance(current, ChecklistFilter) else True
            self.entries.append(FilterValueEntry(value, display_value(value), count, selected))

        self.search_text = ""
        self.draft_text = current.text if isinstance(current, TextSearchFilter) else ""
        if isinstance(current, (NumericRangeFilter, DateRangeFilter)):
            self.draft_lower, self.draft_upper = current.bounds
        else:
            self.draft_lower = self.draft_upper = None
        self.is_open = True
        logger.debug(f"Filter popup opened for '{self.column_key}' with {len(self.entries):,} values")
        return self.entries

    # ----- in-popup search -------------------------------------------------

    def set_search_text(self, text: str):
        self.search_text = text or ""

    @property
    def visible_entries(self) -> List[FilterValueEntry]:
        needle = self.search_text.strip().casefold()
        if not needle:
            return list(self.entries)
        return [e for e in self.entries if needle in e.display.casefold()]

    def info_text(self) -> str:
        total = len(self.entries)
        if self.search_text.strip():
            return f"Showing {len(self.visible_entries):,} of {total:,} values"
        return f"{total:,} values"

    # ----- draft selection -------------------------------------------------

    def _entry(self, value: Any) -> FilterValueEntry:
        for entry in self.entries:
            if entry.value == value or (entry.value is None and value is None):
                return entry
        raise KeyError(value)

    def set_selected(self, value: Any, selected: bool):
        self._entry(value).selected = selected

    def toggle(self, value: Any) -> bool:
        entry = self._entry(value)
        entry.selected = not entry.selected
        return entry.selected

    def select_all(self):
        """Select every displayed entry"""
        for entry in self.visible_entries:
            entry.selected = True

    def deselect_all(self):
        """Deselect every displayed entry"""
        for entry in self.visible_entries:
            entry.selected = False

    def selected_values(self) -> List[Any]:
        return [e.value for e in self.entries if e.selected]

    @property
    def all_selected(self) -> bool:
        return all(e.selected for e in self.entries)

    def set_text(self, text: str):
        self.draft_text = text or ""

    def set_range(self, lower: Any = None, upper: Any = None):
        """Set draft bounds from values or typed text (raises ValueError on unparsable input)"""
        if self.column.filter_kind == FilterKind.DATE_RANGE:
            self.draft_lower, self.draft_upper = parse_date_bound(lower), parse_date_bound(upper)
        else:
            self.draft_lower, self.draft_upper = parse_numeric_bound(lower), parse_numeric_bound(upper)

    # ----- commit / discard ------------------------------------------------

    def build_filter(self) -> Optional[ColumnFilter]:
        """
        Turn the draft into a filter.

        Raises:
            InvalidRangeError: If the draft range has lower > upper
        """
        kind = self.column.filter_kind
        if kind == FilterKind.TEXT_SEARCH and self.draft_text.strip():
            return TextSearchFilter(self.draft_text)
        if kind in FilterKind.RANGE_KINDS and (self.draft_lower is not None or self.draft_upper is not None):
            if kind == FilterKind.DATE_RANGE:
                return DateRangeFilter(self.draft_lower, self.draft_upper)
            return NumericRangeFilter(self.draft_lower, self.draft_upper)

        selected = self.selected_values()
        # Nothing checked behaves like everything checked
        if not selected or len(selected) == len(self.entries):
            return None
        return ChecklistFilter(frozenset(selected))

    def apply(self) -> bool:
        """Commit the draft as one filter change. Returns True if the filter state changed."""
        try:
            column_filter = self.build_filter()
        except InvalidRangeError as e:
            logger.warning(f"Filter for '{self.column_key}' rejected: {e}")
            raise
        changed = self.host.apply_filter(self.column_key, column_filter)
        self.is_open = False
        return changed

    def cancel(self):
        """Discard the draft; the filter state is left untouched"""
        self.entries = []
        self.search_text = ""
        self.draft_text = ""
        self.draft_lower = self.draft_upper = None
        self.is_open = False

    def clear_filter(self) -> bool:
        """Remove this column's filter"""
        for entry in self.entries:
            entry.selected = True
        self.draft_text = ""
        self.draft_lower = self.draft_upper = None
        changed = self.host.apply_filter(self.column_key, None)
        self.is_open = False
        return changed
