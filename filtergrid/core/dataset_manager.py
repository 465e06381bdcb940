"""
Dataset Manager - bulk loads, index builds and generation-safe publication

A load runs row ingestion and the parallel index build on a worker and
publishes the finished store + indexes as one immutable DatasetSnapshot.
Starting a newer load cancels the one in flight; the older load's future
fails with ConcurrentLoadAbortedError and its work is never published.
Queries always run against the most recently published snapshot.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from filtergrid.core.column_index import ColumnIndex
from filtergrid.core.errors import ConcurrentLoadAbortedError, SchemaMismatchError, UnknownColumnError
from filtergrid.core.index_builder import ColumnIndexBuilder
from filtergrid.core.performance_monitor import FilterPerformanceMonitor
from filtergrid.core.query_engine import QueryEngine, VisibleRowSet
from filtergrid.core.row_store import RowStore, RowsLike
from filtergrid.models.column_definition import ColumnDefinition
from filtergrid.models.filter_state import FilterState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DatasetSnapshot:
    """Row store + column indexes of one load. Never mutated after publication."""
    generation: int
    store: RowStore
    columns: Tuple[ColumnDefinition, ...] = ()
    indexes: Mapping[str, ColumnIndex] = field(default_factory=lambda: MappingProxyType({}))
    errors: Mapping[str, SchemaMismatchError] = field(default_factory=lambda: MappingProxyType({}))
    load_ms: float = 0.0

    @staticmethod
    def empty() -> 'DatasetSnapshot':
        return DatasetSnapshot(generation=0, store=RowStore())

    @property
    def row_count(self) -> int:
        return self.store.count()

    @property
    def bindings(self) -> Dict[str, str]:
        """column_key -> binding_key for every declared column"""
        return {column.column_key: column.binding_key for column in self.columns}

    def column(self, column_key: str) -> ColumnDefinition:
        for column in self.columns:
            if column.column_key == column_key:
                return column
        raise UnknownColumnError(column_key)


@dataclass
class _PendingLoad:
    generation: int
    cancel_event: threading.Event
    future: Optional[Future] = None


class DatasetManager:
    """Owns the published snapshot and the in-flight load, if any"""

    def __init__(self, max_workers: Optional[int] = None, engine: Optional[QueryEngine] = None,
                 monitor: Optional[FilterPerformanceMonitor] = None):
        self.builder = ColumnIndexBuilder(max_workers)
        self.engine = engine or QueryEngine()
        self.monitor = monitor or FilterPerformanceMonitor()
        self._lock = threading.Lock()
        self._snapshot = DatasetSnapshot.empty()
        self._generation = 0
        self._pending: Optional[_PendingLoad] = None
        # one orchestrating worker; column fan-out happens inside the builder
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="dataset-load")

    # ----- loading ---------------------------------------------------------

    @property
    def snapshot(self) -> DatasetSnapshot:
        """Most recently published snapshot (consistent, possibly older than an in-flight load)"""
        return self._snapshot

    @property
    def generation(self) -> int:
        """Generation of the newest load requested (published or not)"""
        return self._generation

    @property
    def is_loading(self) -> bool:
        pending = self._pending
        return pending is not None and not (pending.future is not None and pending.future.done())

    def load(self, rows: RowsLike, columns: Sequence[ColumnDefinition]) -> Future:
        """
        Start a bulk load off the calling thread.

        Args:
            rows: DataFrame, sequence of dicts or sequence of dataclass rows
            columns: Column definitions to index

        Returns:
            Future resolving to the published DatasetSnapshot, or failing with
            ConcurrentLoadAbortedError if a newer load superseded this one
        """
        with self._lock:
            self._generation += 1
            generation = self._generation
            if self._pending is not None:
                logger.info(f"Load {generation} supersedes in-flight load {self._pending.generation}")
                self._pending.cancel_event.set()
            pending = _PendingLoad(generation, threading.Event())
            self._pending = pending
            pending.future = self._executor.submit(self._run_load, pending, rows, tuple(columns))
        return pending.future

    def load_sync(self, rows: RowsLike, columns: Sequence[ColumnDefinition],
                  timeout: Optional[float] = None) -> DatasetSnapshot:
        """Load and block until published"""
        return self.load(rows, columns).result(timeout)

    def _aborted(self, pending: _PendingLoad) -> ConcurrentLoadAbortedError:
        return ConcurrentLoadAbortedError(pending.generation, self._generation)

    def _run_load(self, pending: _PendingLoad, rows: RowsLike,
                  columns: Tuple[ColumnDefinition, ...]) -> DatasetSnapshot:
        start_time = time.perf_counter()
        try:
            if pending.cancel_event.is_set():
                raise self._aborted(pending)

            store = RowStore(rows)
            if pending.cancel_event.is_set():
                raise self._aborted(pending)

            try:
                result = self.builder.build(store, columns, pending.cancel_event, pending.generation)
            except ConcurrentLoadAbortedError:
                raise self._aborted(pending)

            load_ms = (time.perf_counter() - start_time) * 1000
            snapshot = DatasetSnapshot(
                generation=pending.generation,
                store=store,
                columns=columns,
                indexes=MappingProxyType(dict(result.indexes)),
                errors=MappingProxyType(dict(result.errors)),
                load_ms=load_ms
            )

            with self._lock:
                if pending.cancel_event.is_set() or pending.generation != self._generation:
                    raise self._aborted(pending)
                # single reference swap: readers see the old or the new snapshot, never a mix
                self._snapshot = snapshot
                self._pending = None

            self.monitor.record("load", load_ms, store.count(),
                                f"{len(result.indexes)} indexes, generation {pending.generation}")
            rate = store.count() / (load_ms / 1000) if load_ms > 0 else float(store.count())
            logger.info(f"⏱️ [FILTER] Dataset generation {pending.generation} published: {store.count():,} rows "
                        f"in {load_ms:.2f}ms ({rate:,.0f} rows/sec)")
            return snapshot
        except ConcurrentLoadAbortedError as e:
            logger.info(str(e))
            raise
        except Exception as e:
            logger.error(f"Load for generation {pending.generation} failed: {e}", exc_info=True)
            with self._lock:
                if self._pending is pending:
                    self._pending = None
            raise

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until no load is in flight. Returns False on timeout."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            with self._lock:
                pending = self._pending
            if pending is None or pending.future is None:
                return True
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            done, _ = wait([pending.future], timeout=remaining)
            if not done:
                return False
            if self._pending is pending:
                return True

    def shutdown(self, wait_for_load: bool = True):
        with self._lock:
            if self._pending is not None:
                self._pending.cancel_event.set()
        self._executor.shutdown(wait=wait_for_load)

    # ----- queries ---------------------------------------------------------

    def evaluate(self, state: FilterState, snapshot: Optional[DatasetSnapshot] = None) -> VisibleRowSet:
        snapshot = snapshot or self._snapshot
        start_time = time.perf_counter()
        visible = self.engine.evaluate(snapshot.store, snapshot.indexes, state, snapshot.generation,
                                       snapshot.bindings)
        self.monitor.record("evaluate", (time.perf_counter() - start_time) * 1000, snapshot.row_count,
                            f"{len(state)} filters, {len(visible):,} visible")
        return visible

    def value_counts(self, state: FilterState, column_key: str,
                     snapshot: Optional[DatasetSnapshot] = None) -> Dict[Any, int]:
        snapshot = snapshot or self._snapshot
        start_time = time.perf_counter()
        counts = self.engine.value_counts(snapshot.store, snapshot.indexes, state, column_key,
                                          snapshot.bindings)
        self.monitor.record("value_counts", (time.perf_counter() - start_time) * 1000, snapshot.row_count,
                            f"column '{column_key}', {len(counts):,} values")
        return counts
