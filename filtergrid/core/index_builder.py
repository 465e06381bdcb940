"""Column Index Builder - builds per-column indexes in parallel, one task per column"""

import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from filtergrid.core.column_index import ColumnIndex
from filtergrid.core.errors import SchemaMismatchError, ConcurrentLoadAbortedError
from filtergrid.core.row_store import RowStore
from filtergrid.models.column_definition import ColumnDefinition

logger = logging.getLogger(__name__)


@dataclass
class BuildResult:
    """Indexes that built successfully plus per-column schema errors"""
    indexes: Dict[str, ColumnIndex] = field(default_factory=dict)
    errors: Dict[str, SchemaMismatchError] = field(default_factory=dict)
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.errors


class ColumnIndexBuilder:
    """Fans out one index build per filterable column and joins before returning"""

    def __init__(self, max_workers: Optional[int] = None):
        self.max_workers = max_workers or min(8, os.cpu_count() or 1)

    def build(self, store: RowStore, columns: Sequence[ColumnDefinition],
              cancel_event: Optional[threading.Event] = None, generation: int = 0) -> BuildResult:
        """
        Build indexes for every filterable column of store.

        Args:
            store: Loaded row store
            columns: Column definitions; non-filterable columns are skipped
            cancel_event: When set, the build stops and nothing is returned
            generation: Dataset generation, used for error reporting

        Returns:
            BuildResult with one index per buildable column and a
            SchemaMismatchError for each column whose binding key is missing

        Raises:
            ConcurrentLoadAbortedError: If cancel_event was set before the join
        """
        start_time = time.perf_counter()
        result = BuildResult()
        targets: List[ColumnDefinition] = []

        seen = set()
        for column in columns:
            if not column.is_filterable:
                continue
            if column.column_key in seen:
                raise ValueError(f"Duplicate column key '{column.column_key}'")
            seen.add(column.column_key)
            if not store.has_column(column.binding_key):
                error = SchemaMismatchError(column.column_key, column.binding_key)
                logger.error(f"Index build failed for column '{column.column_key}': {error}")
                result.errors[column.column_key] = error
                continue
            targets.append(column)

        if targets:
            workers = max(1, min(self.max_workers, len(targets)))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="column-index") as executor:
                futures = {
                    executor.submit(self._build_one, store, column, cancel_event): column
                    for column in targets
                }
                for future in as_completed(futures):
                    column = futures[future]
                    index = future.result()
                    if index is not None:
                        result.indexes[column.column_key] = index

        if cancel_event is not None and cancel_event.is_set():
            logger.info(f"Index build for generation {generation} cancelled; partial indexes discarded")
            raise ConcurrentLoadAbortedError(generation)

        result.elapsed_ms = (time.perf_counter() - start_time) * 1000
        logger.info(f"⏱️ [FILTER] Built {len(result.indexes)} column indexes in parallel "
                    f"({len(result.errors)} failed) over {store.count():,} rows: {result.elapsed_ms:.2f}ms")
        return result

    @staticmethod
    def _build_one(store: RowStore, column: ColumnDefinition,
                   cancel_event: Optional[threading.Event]) -> Optional[ColumnIndex]:
        if cancel_event is not None and cancel_event.is_set():
            return None
        return ColumnIndex.from_series(column, store.column(column.binding_key), cancel_event)
