"""
Query Engine - computes the visible row set and popup value counts

Each active column filter yields a candidate set of row positions from its
column index. Candidate sets are intersected smallest first. Popup counts use
the same intersection with the target column's own filter left out.
"""

import logging
import operator
import time
from collections import OrderedDict
from functools import reduce
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from filtergrid.core.column_index import ColumnIndex, EMPTY_POSITIONS
from filtergrid.core.errors import UnknownColumnError
from filtergrid.core.row_store import RowStore
from filtergrid.models.column_definition import ColumnDefinition, normalize_value, is_blank, is_text_dtype
from filtergrid.models.filter_state import (
    FilterState, ColumnFilter, ChecklistFilter, TextSearchFilter, NumericRangeFilter, DateRangeFilter
)

logger = logging.getLogger(__name__)


class VisibleRowSet:
    """Read-only, ascending row positions that pass every active filter"""

    def __init__(self, positions: np.ndarray, total_rows: int, generation: int = 0):
        positions = np.asarray(positions, dtype=np.int64)
        if positions.flags.writeable:
            positions = positions.copy()
            positions.setflags(write=False)
        self._positions = positions
        self.total_rows = total_rows
        self.generation = generation

    @property
    def positions(self) -> np.ndarray:
        return self._positions

    @property
    def is_unfiltered(self) -> bool:
        return len(self._positions) == self.total_rows

    def __len__(self) -> int:
        return len(self._positions)

    def __iter__(self) -> Iterator[int]:
        return iter(self._positions.tolist())

    def __getitem__(self, item):
        return self._positions[item]

    def __contains__(self, position) -> bool:
        i = np.searchsorted(self._positions, position)
        return bool(i < len(self._positions) and self._positions[i] == position)

    def issubset(self, other: 'VisibleRowSet') -> bool:
        return len(np.setdiff1d(self._positions, other.positions, assume_unique=True)) == 0

    def to_frame(self, store: RowStore) -> pd.DataFrame:
        return store.take(self._positions)

    def __repr__(self) -> str:
        return f"VisibleRowSet({len(self)}/{self.total_rows} rows, generation={self.generation})"


def _scan_candidates(series: pd.Series, column_filter: ColumnFilter) -> np.ndarray:
    """Linear scan for a column that has no index"""
    if isinstance(column_filter, TextSearchFilter):
        text = series.map(lambda v: "" if is_blank(v) else str(v))
        mask = text.str.casefold().str.contains(column_filter.needle, regex=False)
    elif isinstance(column_filter, ChecklistFilter):
        mask = series.map(normalize_value).isin(list(column_filter.values))
        if column_filter.exclude:
            mask = ~mask
    elif isinstance(column_filter, NumericRangeFilter):
        values = pd.to_numeric(series, errors="coerce")
        mask = values.notna()
        if column_filter.minimum is not None:
            mask &= values >= column_filter.minimum
        if column_filter.maximum is not None:
            mask &= values <= column_filter.maximum
    elif isinstance(column_filter, DateRangeFilter):
        values = pd.to_datetime(series, errors="coerce")
        mask = values.notna()
        if column_filter.start is not None:
            mask &= values >= column_filter.start
        if column_filter.end is not None:
            mask &= values <= column_filter.end
    else:
        raise TypeError(f"Unsupported filter type: {type(column_filter).__name__}")
    return np.flatnonzero(mask.to_numpy(dtype=bool)).astype(np.int64)


def _binding_for(store: RowStore, column_key: str, bindings: Optional[Mapping[str, str]]) -> str:
    binding_key = (bindings or {}).get(column_key, column_key)
    if not store.has_column(binding_key):
        raise UnknownColumnError(column_key)
    return binding_key


class QueryEngine:
    """Stateless evaluator over (row store, column indexes, filter state)"""

    def candidate_positions(self, store: RowStore, indexes: Mapping[str, ColumnIndex],
                            state: FilterState, exclude: Optional[str] = None,
                            bindings: Optional[Mapping[str, str]] = None) -> Optional[np.ndarray]:
        """
        Intersect the candidate sets of every active filter except exclude.

        Args:
            bindings: column_key -> binding_key for columns without an index;
                keys missing from it are looked up as row fields directly

        Returns:
            Ascending positions, or None when no filter restricts the rows
        """
        candidates: List[np.ndarray] = []
        for column_key, column_filter in state.items():
            if column_key == exclude:
                continue
            index = indexes.get(column_key)
            if index is not None:
                candidates.append(index.candidate_positions(column_filter))
                continue
            binding_key = _binding_for(store, column_key, bindings)
            logger.debug(f"No index for '{column_key}', falling back to a full scan of '{binding_key}'")
            candidates.append(_scan_candidates(store.column(binding_key), column_filter))

        if not candidates:
            return None

        candidates.sort(key=len)
        result = candidates[0]
        for candidate in candidates[1:]:
            if len(result) == 0:
                break
            result = np.intersect1d(result, candidate, assume_unique=True)
        return result

    def evaluate(self, store: RowStore, indexes: Mapping[str, ColumnIndex],
                 state: FilterState, generation: int = 0,
                 bindings: Optional[Mapping[str, str]] = None) -> VisibleRowSet:
        """Visible row set for state, always in ascending row position order"""
        start_time = time.perf_counter()
        positions = self.candidate_positions(store, indexes, state, bindings=bindings)
        if positions is None:
            positions = np.arange(store.count(), dtype=np.int64)
        visible = VisibleRowSet(positions, store.count(), generation)
        logger.debug(f"⏱️ [FILTER] Evaluated {len(state)} filters: {len(visible):,}/{store.count():,} rows visible, "
                     f"{(time.perf_counter() - start_time) * 1000:.2f}ms")
        return visible

    def value_counts(self, store: RowStore, indexes: Mapping[str, ColumnIndex],
                     state: FilterState, target_column: str,
                     bindings: Optional[Mapping[str, str]] = None) -> Dict[Any, int]:
        """
        Rows per distinct value of target_column that match every OTHER active filter.

        Every distinct value of the column is listed; values that the other
        filters rule out are reported with a count of 0.
        """
        positions = self.candidate_positions(store, indexes, state, exclude=target_column, bindings=bindings)
        index = indexes.get(target_column)
        if index is not None:
            return OrderedDict(index.value_counts(positions))
        binding_key = _binding_for(store, target_column, bindings)

        # No prebuilt index: index the raw column for this one request
        logger.debug(f"No index for '{target_column}', indexing '{binding_key}' on demand for value counts")
        column = ColumnDefinition(header=target_column, binding_key=binding_key, column_key=target_column)
        transient = ColumnIndex.from_series(column, store.column(binding_key))
        return OrderedDict(transient.value_counts(positions))

    def global_search(self, store: RowStore, positions: Optional[np.ndarray], text: str,
                      binding_keys: Optional[Sequence[str]] = None) -> np.ndarray:
        """
        Narrow positions to rows where any column's text contains text (case-insensitive).
        Linear scan over the given rows.
        """
        if positions is None:
            positions = np.arange(store.count(), dtype=np.int64)
        needle = text.casefold().strip()
        if not needle or len(positions) == 0:
            return positions

        subset = store.take(positions)
        keys = binding_keys or list(subset.columns)
        column_masks = []
        for key in keys:
            col_str = subset[key].map(lambda v: "" if is_blank(v) else str(v)).str.casefold()
            column_masks.append(col_str.str.contains(needle, regex=False).to_numpy(dtype=bool))
        if not column_masks:
            return EMPTY_POSITIONS
        combined_mask = reduce(operator.or_, column_masks)
        return np.asarray(positions)[combined_mask]

    def sort_positions(self, store: RowStore, positions: np.ndarray, binding_key: str,
                       ascending: bool = True) -> np.ndarray:
        """Display order of positions sorted by one column (stable, blanks last)"""
        series = store.column(binding_key).iloc[positions].reset_index(drop=True)
        try:
            if is_text_dtype(series):
                ordered = series.sort_values(ascending=ascending, kind="stable", na_position="last",
                                             key=lambda s: s.map(_value_sort_key))
            else:
                ordered = series.sort_values(ascending=ascending, kind="stable", na_position="last")
        except TypeError:
            ordered = series.astype(str).str.casefold().sort_values(ascending=ascending, kind="stable")
        return np.asarray(positions)[ordered.index.to_numpy()]


def _value_sort_key(value: Any):
    if is_blank(value):
        return None
    return value.casefold() if isinstance(value, str) else value
