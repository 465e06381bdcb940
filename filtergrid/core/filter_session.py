"""
Filter Session - interactive-thread owner of the filter state and its results

Holds the FilterState, the visible row set computed from it, the global
search text and the display sort. Every mutation recomputes synchronously
against the manager's current snapshot.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from filtergrid.core.dataset_manager import DatasetManager, DatasetSnapshot
from filtergrid.core.query_engine import QueryEngine, VisibleRowSet
from filtergrid.models.column_definition import ColumnDefinition
from filtergrid.models.filter_state import FilterState, ColumnFilter

logger = logging.getLogger(__name__)

SortKey = Tuple[str, bool]  # (binding_key, ascending)


def compute_display_positions(engine: QueryEngine, snapshot: DatasetSnapshot, positions: np.ndarray,
                              search_text: str = "", sort_key: Optional[SortKey] = None) -> np.ndarray:
    """Apply the global search and the display sort to visible positions"""
    if search_text.strip():
        positions = engine.global_search(snapshot.store, positions, search_text)
    if sort_key is not None and snapshot.store.has_column(sort_key[0]):
        positions = engine.sort_positions(snapshot.store, positions, *sort_key)
    return positions


class FilterSession:
    """Filter state + derived results for one grid"""

    def __init__(self, manager: DatasetManager):
        self.manager = manager
        self.state = FilterState()
        self.search_text = ""
        self.sort_key: Optional[SortKey] = None
        self._visible = self.manager.evaluate(self.state)
        self._display_positions = self._visible.positions

    # ----- results ---------------------------------------------------------

    @property
    def snapshot(self) -> DatasetSnapshot:
        return self.manager.snapshot

    @property
    def visible(self) -> VisibleRowSet:
        """Rows passing the column filters (ascending positions)"""
        return self._visible

    @property
    def display_positions(self) -> np.ndarray:
        """Visible rows after global search, in display (sort) order"""
        return self._display_positions

    @property
    def is_stale(self) -> bool:
        return self._visible.generation != self.manager.snapshot.generation

    def columns(self) -> List[ColumnDefinition]:
        return list(self.snapshot.columns)

    def known_columns(self) -> set:
        snapshot = self.snapshot
        return ({c.column_key for c in snapshot.columns} | set(snapshot.store.columns)) - set(snapshot.errors)

    def unresolved_columns(self) -> List[str]:
        """Filtered columns the current snapshot cannot answer (e.g. set while a load is in flight)"""
        known = self.known_columns()
        return [key for key in self.state.active_columns() if key not in known]

    def resolved_state(self) -> FilterState:
        """Copy of the filter state without the filters in unresolved_columns()"""
        state = self.state.copy()
        for column_key in self.unresolved_columns():
            state.clear(column_key)
        return state

    def refresh(self, visible: Optional[VisibleRowSet] = None) -> VisibleRowSet:
        """Recompute the visible set (or adopt one computed elsewhere) and the display order"""
        snapshot = self.snapshot
        if visible is None or visible.generation != snapshot.generation:
            visible = self.manager.evaluate(self.resolved_state(), snapshot)
        self._visible = visible
        self._display_positions = compute_display_positions(
            self.manager.engine, snapshot, visible.positions, self.search_text, self.sort_key)
        return visible

    def adopt(self, visible: VisibleRowSet, display_positions: np.ndarray) -> bool:
        """Take results computed off-thread; refused if they belong to an older dataset"""
        if visible.generation != self.snapshot.generation:
            return False
        self._visible = visible
        self._display_positions = display_positions
        return True

    def _redisplay(self):
        self._display_positions = compute_display_positions(
            self.manager.engine, self.snapshot, self._visible.positions, self.search_text, self.sort_key)

    # ----- filter mutation -------------------------------------------------

    def current_filter(self, column_key: str) -> Optional[ColumnFilter]:
        return self.state.get(column_key)

    def value_counts(self, column_key: str) -> Dict[Any, int]:
        return self.manager.value_counts(self.resolved_state(), column_key)

    def set_filter(self, column_key: str, column_filter: Optional[ColumnFilter]) -> bool:
        """Mutate the filter state only. Returns True if anything changed."""
        index = self.snapshot.indexes.get(column_key)
        all_values = index.distinct_values() if index is not None else None
        changed = self.state.set(column_key, column_filter, all_values)
        if changed:
            logger.info(f"Filter on '{column_key}' {'set' if self.state.is_active(column_key) else 'cleared'}")
        return changed

    def apply_filter(self, column_key: str, column_filter: Optional[ColumnFilter]) -> bool:
        """Set one column's filter and recompute. Returns True if anything changed."""
        changed = self.set_filter(column_key, column_filter)
        if changed:
            self.refresh()
        return changed

    def clear_filter(self, column_key: str) -> bool:
        changed = self.state.clear(column_key)
        if changed:
            self.refresh()
        return changed

    def clear_all(self) -> bool:
        changed = self.state.clear_all()
        changed = bool(self.search_text) or changed
        self.search_text = ""
        self.refresh()
        return changed

    def set_search_text(self, text: str):
        self.search_text = text or ""
        self._redisplay()

    def set_sort(self, binding_key: Optional[str], ascending: bool = True):
        self.sort_key = None if binding_key is None else (binding_key, ascending)
        self._redisplay()

    def on_snapshot_published(self, recompute: bool = True) -> Optional[VisibleRowSet]:
        """Re-apply the latest filter state to a newly published dataset"""
        snapshot = self.snapshot
        for column_key in self.unresolved_columns():
            logger.info(f"Dropping filter on '{column_key}': column not available in generation "
                        f"{snapshot.generation}")
            self.state.clear(column_key)
        if self.sort_key is not None and not snapshot.store.has_column(self.sort_key[0]):
            self.sort_key = None
        if recompute:
            return self.refresh()
        return None
