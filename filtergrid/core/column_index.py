"""
Column Index - distinct value -> ascending row positions for one column

Positions for every distinct value live in one array grouped by value
(a stable argsort of the per-row value codes), so each value's position list
is a read-only slice. Range columns also keep their non-blank values sorted
together with their positions for binary search.
"""

import logging
import threading
import time
from typing import Any, Dict, Iterable, List, Optional

import numpy as np
import pandas as pd

from filtergrid.core.errors import UnknownColumnError
from filtergrid.models.column_definition import ColumnDefinition, normalize_value, display_value, is_text_dtype
from filtergrid.models.filter_state import (
    ColumnFilter, ChecklistFilter, TextSearchFilter, NumericRangeFilter, DateRangeFilter
)
from filtergrid.utils.constants import FilterKind

logger = logging.getLogger(__name__)

EMPTY_POSITIONS = np.empty(0, dtype=np.int64)
EMPTY_POSITIONS.setflags(write=False)


def _readonly(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


def _blank_mask(series: pd.Series) -> np.ndarray:
    mask = series.isna().to_numpy(dtype=bool, copy=True)
    if is_text_dtype(series):
        mask |= series.map(lambda v: isinstance(v, str) and not v.strip()).to_numpy(dtype=bool)
    return mask


def _display_order(values: List[Any]) -> List[int]:
    """Blank first, then numbers/dates by value and strings case-insensitively"""
    blanks = [i for i, v in enumerate(values) if v is None]
    others = [i for i, v in enumerate(values) if v is not None]
    try:
        others.sort(key=lambda i: values[i].casefold() if isinstance(values[i], str) else values[i])
    except TypeError:
        # mixed types in one column
        others.sort(key=lambda i: str(values[i]).casefold())
    return blanks + others


def _range_values(series: pd.Series, filter_kind: str) -> np.ndarray:
    if filter_kind == FilterKind.DATE_RANGE:
        return pd.to_datetime(series, errors="coerce").to_numpy(dtype="datetime64[ns]")
    return pd.to_numeric(series, errors="coerce").to_numpy(dtype=np.float64, na_value=np.nan)


def _range_bound(sorted_values: np.ndarray, bound: Any):
    if np.issubdtype(sorted_values.dtype, np.datetime64):
        return pd.Timestamp(bound).to_datetime64().astype("datetime64[ns]")
    return float(bound)


class ColumnIndex:
    """Distinct-value index for one column. Immutable once built."""

    def __init__(self, column: ColumnDefinition, values: List[Any], codes: np.ndarray,
                 sorted_values: Optional[np.ndarray] = None,
                 sorted_positions: Optional[np.ndarray] = None):
        self.column = column
        self._values = values
        self._code_of: Dict[Any, int] = {v: i for i, v in enumerate(values)}
        self._codes = _readonly(codes)
        self._counts = _readonly(np.bincount(codes, minlength=len(values)).astype(np.int64))
        # stable sort keeps positions ascending inside each value group
        self._grouped = _readonly(np.argsort(codes, kind="stable").astype(np.int64))
        self._offsets = np.concatenate(([0], np.cumsum(self._counts)))
        self._sorted_values = sorted_values
        self._sorted_positions = sorted_positions

    @classmethod
    def from_series(cls, column: ColumnDefinition, series: pd.Series,
                    cancel_event: Optional[threading.Event] = None) -> Optional['ColumnIndex']:
        """
        Scan a column once and build its index.

        Returns None when cancel_event is set between the value scan and the
        range arrays.
        """
        start_time = time.perf_counter()

        blanks = _blank_mask(series)
        codes, uniques = pd.factorize(series.where(~blanks), use_na_sentinel=True)
        values = [normalize_value(v) for v in uniques]
        codes = codes.astype(np.int64)
        if blanks.any():
            values.insert(0, None)
            codes += 1

        # Renumber codes so code order == display order
        order = _display_order(values)
        remap = np.empty(len(values), dtype=np.int64)
        remap[order] = np.arange(len(values), dtype=np.int64)
        values = [values[i] for i in order]
        codes = remap[codes] if len(codes) else codes

        if cancel_event is not None and cancel_event.is_set():
            logger.debug(f"Index build for '{column.column_key}' cancelled")
            return None

        sorted_values = sorted_positions = None
        if column.filter_kind in FilterKind.RANGE_KINDS:
            raw = _range_values(series, column.filter_kind)
            present = np.flatnonzero(~pd.isna(raw))
            sort_idx = np.argsort(raw[present], kind="stable")
            sorted_values = _readonly(raw[present][sort_idx])
            sorted_positions = _readonly(present[sort_idx].astype(np.int64))

        index = cls(column, values, codes, sorted_values, sorted_positions)
        logger.debug(f"⏱️ [FILTER] Built index for '{column.column_key}': {len(values):,} distinct values, "
                     f"{(time.perf_counter() - start_time) * 1000:.2f}ms")
        return index

    # ----- introspection -------------------------------------------------

    @property
    def column_key(self) -> str:
        return self.column.column_key

    @property
    def row_count(self) -> int:
        return len(self._codes)

    @property
    def distinct_count(self) -> int:
        return len(self._values)

    @property
    def codes(self) -> np.ndarray:
        """Per-row value code (index into distinct_values)"""
        return self._codes

    @property
    def supports_range(self) -> bool:
        return self._sorted_values is not None

    def distinct_values(self) -> List[Any]:
        """Distinct values in display order (blank first)"""
        return list(self._values)

    def count(self, value: Any) -> int:
        code = self._code_of.get(normalize_value(value))
        return 0 if code is None else int(self._counts[code])

    def positions(self, value: Any) -> np.ndarray:
        """Ascending row positions holding value"""
        code = self._code_of.get(normalize_value(value))
        if code is None:
            return EMPTY_POSITIONS
        return self._grouped[self._offsets[code]:self._offsets[code + 1]]

    # ----- candidate sets --------------------------------------------------

    def _positions_for_codes(self, codes: Iterable[int]) -> np.ndarray:
        chunks = [self._grouped[self._offsets[c]:self._offsets[c + 1]] for c in codes]
        if not chunks:
            return EMPTY_POSITIONS
        if len(chunks) == 1:
            return chunks[0]
        # groups are disjoint, so sorting the concatenation is the union
        return np.sort(np.concatenate(chunks))

    def positions_for_values(self, values: Iterable[Any]) -> np.ndarray:
        codes = sorted({self._code_of[v] for v in (normalize_value(x) for x in values) if v in self._code_of})
        return self._positions_for_codes(codes)

    def matching_values(self, text: str) -> List[Any]:
        """Distinct values whose text contains text (case-insensitive); blanks never match"""
        needle = text.casefold()
        return [v for v in self._values if v is not None and needle in str(v).casefold()]

    def positions_matching_text(self, text: str) -> np.ndarray:
        needle = text.casefold()
        codes = [i for i, v in enumerate(self._values) if v is not None and needle in str(v).casefold()]
        return self._positions_for_codes(codes)

    def positions_in_range(self, lower: Any = None, upper: Any = None) -> np.ndarray:
        """Ascending positions with lower <= value <= upper (None = open bound)"""
        if not self.supports_range:
            raise UnknownColumnError(self.column_key)
        sorted_values = self._sorted_values
        left = 0
        right = len(sorted_values)
        if lower is not None:
            left = int(np.searchsorted(sorted_values, _range_bound(sorted_values, lower), side="left"))
        if upper is not None:
            right = int(np.searchsorted(sorted_values, _range_bound(sorted_values, upper), side="right"))
        if right <= left:
            return EMPTY_POSITIONS
        return np.sort(self._sorted_positions[left:right])

    def candidate_positions(self, column_filter: ColumnFilter) -> np.ndarray:
        """Row positions passing column_filter on this column"""
        if isinstance(column_filter, ChecklistFilter):
            selected = self.positions_for_values(column_filter.values)
            if column_filter.exclude:
                everything = np.arange(self.row_count, dtype=np.int64)
                return np.setdiff1d(everything, selected, assume_unique=True)
            return selected
        if isinstance(column_filter, TextSearchFilter):
            return self.positions_matching_text(column_filter.text)
        if isinstance(column_filter, (NumericRangeFilter, DateRangeFilter)):
            lower, upper = column_filter.bounds
            if self.supports_range:
                return self.positions_in_range(lower, upper)
            return self._positions_for_codes(self._codes_in_range(column_filter))
        raise TypeError(f"Unsupported filter type: {type(column_filter).__name__}")

    def _codes_in_range(self, column_filter: ColumnFilter) -> List[int]:
        """Range test over distinct values, for columns indexed without sorted arrays"""
        lower, upper = column_filter.bounds
        convert = pd.Timestamp if isinstance(column_filter, DateRangeFilter) else float
        codes = []
        for code, value in enumerate(self._values):
            if value is None:
                continue
            try:
                value = convert(value)
            except (TypeError, ValueError):
                continue
            if (lower is None or value >= lower) and (upper is None or value <= upper):
                codes.append(code)
        return codes

    # ----- counting --------------------------------------------------------

    def value_counts(self, positions: Optional[np.ndarray] = None) -> Dict[Any, int]:
        """
        Count rows per distinct value, restricted to positions when given.

        Every distinct value is present in the result (zero counts included),
        in display order.
        """
        if positions is None:
            counts = self._counts
        else:
            counts = np.bincount(self._codes[positions], minlength=len(self._values))
        return {value: int(counts[i]) for i, value in enumerate(self._values)}

    def display_values(self) -> List[str]:
        return [display_value(v) for v in self._values]

    def __repr__(self) -> str:
        return f"ColumnIndex({self.column_key!r}, rows={self.row_count}, distinct={self.distinct_count})"
