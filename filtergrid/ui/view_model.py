"""
FilteredDataGridViewModel - Qt-facing owner of a filterable dataset

Loads and index builds run on DatasetManager's workers; their completion is
marshalled back to the interactive thread through a queued signal. Filter
changes recompute the visible rows synchronously, or on a RecomputeWorker
thread for very large datasets, where only the newest request's result is
kept.
"""

import logging
import time
from concurrent.futures import Future
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
from PyQt6.QtCore import QObject, QThread, QTimer, Qt, pyqtSignal

from filtergrid.core.dataset_manager import DatasetManager, DatasetSnapshot
from filtergrid.core.errors import ConcurrentLoadAbortedError, UnknownColumnError
from filtergrid.core.filter_session import FilterSession, SortKey, compute_display_positions
from filtergrid.core.performance_monitor import FilterPerformanceMonitor
from filtergrid.core.popup_controller import FilterPopupController
from filtergrid.core.query_engine import VisibleRowSet
from filtergrid.core.row_store import RowsLike
from filtergrid.models.column_definition import ColumnDefinition
from filtergrid.models.filter_state import ColumnFilter, FilterState
from filtergrid.utils.config import Config

logger = logging.getLogger(__name__)


class RecomputeWorker(QThread):
    """Background worker that evaluates a filter state copy against one snapshot"""

    recompute_completed = pyqtSignal(int, object, object)  # sequence, VisibleRowSet, display positions

    def __init__(self, manager: DatasetManager, snapshot: DatasetSnapshot, state: FilterState,
                 search_text: str, sort_key: Optional[SortKey], sequence: int):
        super().__init__()
        self.manager = manager
        self.snapshot = snapshot
        self.state = state
        self.search_text = search_text
        self.sort_key = sort_key
        self.sequence = sequence
        self._is_cancelled = False

    def run(self):
        """Evaluate filters, then global search and sort"""
        try:
            if self._is_cancelled:
                return
            visible = self.manager.evaluate(self.state, self.snapshot)
            if self._is_cancelled:
                return
            display = compute_display_positions(self.manager.engine, self.snapshot, visible.positions,
                                                self.search_text, self.sort_key)
            if not self._is_cancelled:
                self.recompute_completed.emit(self.sequence, visible, display)
        except Exception as e:
            logger.error(f"Recompute error: {e}", exc_info=True)

    def cancel(self):
        """Cancel the recompute (its result, if any, is dropped)"""
        self._is_cancelled = True


class FilteredDataGridViewModel(QObject):
    """Dataset + filter state + visible rows for one grid"""

    data_loaded = pyqtSignal(int, int)           # generation, row_count
    visible_rows_changed = pyqtSignal(int, int)  # displayed rows, total rows
    filters_changed = pyqtSignal(list)           # active column keys
    load_failed = pyqtSignal(str)
    schema_errors = pyqtSignal(dict)             # column_key -> SchemaMismatchError
    loading_changed = pyqtSignal(bool)

    _load_finished = pyqtSignal(object)  # Future, emitted from the load worker

    def __init__(self, config: Optional[Config] = None, manager: Optional[DatasetManager] = None,
                 parent=None):
        super().__init__(parent)
        self.config = config or Config()
        self.manager = manager or DatasetManager(
            self.config.max_index_workers,
            monitor=FilterPerformanceMonitor(slow_operation_ms=self.config.slow_operation_ms)
        )
        self.session = FilterSession(self.manager)

        self._load_finished.connect(self._on_load_finished, Qt.ConnectionType.QueuedConnection)

        self._recompute_sequence = 0
        self._recompute_worker: Optional[RecomputeWorker] = None
        self._workers: List[RecomputeWorker] = []

        self._search_debounce_timer = QTimer(self)
        self._search_debounce_timer.setSingleShot(True)
        self._search_debounce_timer.timeout.connect(self._execute_search)
        self._pending_search_text = ""

    # ----- read access -----------------------------------------------------

    @property
    def snapshot(self) -> DatasetSnapshot:
        return self.manager.snapshot

    @property
    def columns(self) -> List[ColumnDefinition]:
        return self.session.columns()

    @property
    def monitor(self) -> FilterPerformanceMonitor:
        return self.manager.monitor

    @property
    def visible(self) -> VisibleRowSet:
        return self.session.visible

    @property
    def display_positions(self) -> np.ndarray:
        return self.session.display_positions

    @property
    def state(self) -> FilterState:
        return self.session.state

    @property
    def is_loading(self) -> bool:
        return self.manager.is_loading

    @property
    def is_recomputing(self) -> bool:
        return self._recompute_worker is not None

    @property
    def search_text(self) -> str:
        return self.session.search_text

    @property
    def sort_key(self) -> Optional[SortKey]:
        return self.session.sort_key

    def row_count(self) -> int:
        return self.snapshot.row_count

    def display_count(self) -> int:
        return len(self.session.display_positions)

    # ----- loading ---------------------------------------------------------

    def load_dataset(self, rows: RowsLike, columns: Sequence[ColumnDefinition]) -> Future:
        """Start a background load; data_loaded or load_failed follows on this thread"""
        logger.info(f"Loading dataset with {len(columns)} columns")
        future = self.manager.load(rows, columns)
        self.loading_changed.emit(True)
        future.add_done_callback(self._load_finished.emit)
        return future

    def _on_load_finished(self, future: Future):
        try:
            snapshot = future.result()
        except ConcurrentLoadAbortedError as e:
            logger.info(f"Ignoring superseded load: {e}")
            return
        except Exception as e:
            logger.error(f"Dataset load failed: {e}", exc_info=True)
            self.loading_changed.emit(self.manager.is_loading)
            self.load_failed.emit(str(e))
            return

        if snapshot.generation != self.manager.snapshot.generation:
            # a newer snapshot is already published; its own completion will follow
            return

        self.loading_changed.emit(self.manager.is_loading)
        if snapshot.errors:
            self.schema_errors.emit(dict(snapshot.errors))

        before = self.session.state.active_columns()
        self.session.on_snapshot_published(recompute=False)
        if self.session.state.active_columns() != before:
            self.filters_changed.emit(self.session.state.active_columns())

        logger.info(f"Dataset generation {snapshot.generation} ready: {snapshot.row_count:,} rows "
                    f"({len(snapshot.indexes)} indexes, {len(snapshot.errors)} schema errors)")
        self.data_loaded.emit(snapshot.generation, snapshot.row_count)
        self._recompute()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return self.manager.wait_until_ready(timeout)

    # ----- filter host (used by FilterPopupController) ---------------------

    def current_filter(self, column_key: str) -> Optional[ColumnFilter]:
        return self.session.current_filter(column_key)

    def value_counts(self, column_key: str) -> Dict[Any, int]:
        """Counts per distinct value of column_key under every OTHER active filter"""
        return self.session.value_counts(column_key)

    def apply_filter(self, column_key: str, column_filter: Optional[ColumnFilter]) -> bool:
        return self.set_filter(column_key, column_filter)

    def popup_controller(self, column_key: str) -> FilterPopupController:
        return FilterPopupController(self, self.snapshot.column(column_key))

    # ----- filter mutation -------------------------------------------------

    def set_filter(self, column_key: str, column_filter: Optional[ColumnFilter]) -> bool:
        """
        Replace one column's filter and recompute the visible rows.

        Raises:
            UnknownColumnError: If the column is unknown and no load is in flight
        """
        if (column_filter is not None and column_key not in self.session.known_columns()
                and not self.manager.is_loading):
            raise UnknownColumnError(column_key)
        changed = self.session.set_filter(column_key, column_filter)
        if changed:
            self.filters_changed.emit(self.session.state.active_columns())
            self._recompute()
        return changed

    def clear_filter(self, column_key: str) -> bool:
        return self.set_filter(column_key, None)

    def clear_all_filters(self):
        """Clear every column filter and the global search"""
        self._search_debounce_timer.stop()
        self._pending_search_text = ""
        had_filters = len(self.session.state) > 0
        self.session.state.clear_all()
        self.session.search_text = ""
        if had_filters:
            self.filters_changed.emit([])
        self._recompute()

    def set_global_search(self, text: str):
        """Debounced search across all columns of the visible rows"""
        self._pending_search_text = text or ""
        self._search_debounce_timer.start(self.config.search_debounce_ms)

    def flush_search(self):
        """Run a pending debounced search now"""
        if self._search_debounce_timer.isActive():
            self._search_debounce_timer.stop()
            self._execute_search()

    def _execute_search(self):
        search_text = self._pending_search_text
        if search_text == self.session.search_text:
            return
        if self._use_worker():
            self.session.search_text = search_text
            self._recompute()
            return
        start_time = time.perf_counter()
        self.session.set_search_text(search_text)
        logger.info(f"⏱️ [FILTER] Global search '{search_text}': {self.display_count():,} rows "
                    f"in {(time.perf_counter() - start_time) * 1000:.2f}ms")
        self._emit_visible()

    def sort_by(self, binding_key: Optional[str], ascending: bool = True):
        """Display sort; None restores row position order"""
        if self._use_worker():
            self.session.sort_key = None if binding_key is None else (binding_key, ascending)
            self._recompute()
            return
        self.session.set_sort(binding_key, ascending)
        self._emit_visible()

    # ----- recompute -------------------------------------------------------

    def _use_worker(self) -> bool:
        return self.snapshot.row_count >= self.config.async_recompute_threshold

    def _recompute(self):
        unresolved = self.session.unresolved_columns()
        if unresolved:
            # filters for a dataset still loading; applied once it is published
            logger.debug(f"Deferring recompute until load completes (pending columns: {unresolved})")
            return

        if not self._use_worker():
            self.session.refresh()
            self._emit_visible()
            return

        self._recompute_sequence += 1
        if self._recompute_worker is not None:
            self._recompute_worker.cancel()
        worker = RecomputeWorker(self.manager, self.snapshot, self.session.resolved_state(),
                                 self.session.search_text, self.session.sort_key, self._recompute_sequence)
        worker.recompute_completed.connect(self._on_recompute_completed)
        worker.finished.connect(lambda w=worker: self._on_worker_finished(w))
        self._workers.append(worker)
        self._recompute_worker = worker
        worker.start()

    def _on_recompute_completed(self, sequence: int, visible: VisibleRowSet, display: np.ndarray):
        if sequence != self._recompute_sequence:
            logger.debug(f"Dropping stale recompute result {sequence} (latest {self._recompute_sequence})")
            return
        self._recompute_worker = None
        if self.session.adopt(visible, display):
            self._emit_visible()
        else:
            self._recompute()

    def _on_worker_finished(self, worker: RecomputeWorker):
        if worker in self._workers:
            self._workers.remove(worker)
        if self._recompute_worker is worker:
            self._recompute_worker = None

    def _emit_visible(self):
        self.visible_rows_changed.emit(self.display_count(), self.row_count())

    def shutdown(self):
        """Stop background work (call before the application exits)"""
        self._search_debounce_timer.stop()
        for worker in list(self._workers):
            worker.cancel()
            worker.wait()
        self._workers.clear()
        self.manager.shutdown(wait_for_load=False)
