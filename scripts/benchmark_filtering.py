#!/usr/bin/env python3
"""Headless throughput report: generate, load, index, then time typical filter operations"""

import sys
import time
import argparse
from pathlib import Path

import pandas as pd

# Add parent directory to path so we can import filtergrid
sys.path.insert(0, str(Path(__file__).parent.parent))

from filtergrid.core.data_generator import generate_large_dataset, file_system_columns, log_dataset_stats
from filtergrid.core.dataset_manager import DatasetManager
from filtergrid.models.filter_state import (
    FilterState, ChecklistFilter, TextSearchFilter, NumericRangeFilter, DateRangeFilter
)
from filtergrid.utils.logger import setup_logging


def timed(label: str, func):
    start = time.perf_counter()
    result = func()
    print(f"  {label:<45} {(time.perf_counter() - start) * 1000:>10.2f}ms")
    return result


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Benchmark filtergrid indexing and queries")
    parser.add_argument("--rows", type=int, default=300_000)
    parser.add_argument("--distinct", type=int, default=1000)
    parser.add_argument("--workers", type=int, default=None)
    args = parser.parse_args(argv)

    setup_logging(log_level="WARNING")

    print(f"\n=== FilterGrid benchmark: {args.rows:,} rows ===")
    frame = timed("generate dataset", lambda: generate_large_dataset(args.rows, args.distinct))
    log_dataset_stats(frame)

    manager = DatasetManager(max_workers=args.workers)
    try:
        snapshot = timed("load + parallel index build",
                         lambda: manager.load_sync(frame, file_system_columns()))
        rate = snapshot.row_count / (snapshot.load_ms / 1000) if snapshot.load_ms else 0
        print(f"  {'load throughput':<45} {rate:>10,.0f} rows/sec")

        state = FilterState()
        extensions = snapshot.indexes["file_extension"].distinct_values()
        state.set("file_extension", ChecklistFilter([e for e in extensions if e in (".pdf", ".xlsx", ".py")]))
        visible = timed("evaluate (checklist)", lambda: manager.evaluate(state))
        print(f"    -> {len(visible):,} rows")

        state.set("size", NumericRangeFilter(100 * 1024, 10 * 1024 * 1024))
        visible = timed("evaluate (checklist + numeric range)", lambda: manager.evaluate(state))
        print(f"    -> {len(visible):,} rows")

        newest = snapshot.store.column("date_last_modified").max()
        state.set("date_last_modified", DateRangeFilter(newest - pd.Timedelta(days=90), None))
        visible = timed("evaluate (+ date range)", lambda: manager.evaluate(state))
        print(f"    -> {len(visible):,} rows")

        state.set("full_path", TextSearchFilter("report"))
        visible = timed("evaluate (+ text search)", lambda: manager.evaluate(state))
        print(f"    -> {len(visible):,} rows")

        for column_key in ("object_type", "file_extension", "object_name"):
            counts = timed(f"value counts '{column_key}'", lambda: manager.value_counts(state, column_key))
            print(f"    -> {len(counts):,} values")

        print()
        print(manager.monitor.report())
    finally:
        manager.shutdown()
    return 0


if __name__ == "__main__":
    sys.exit(main())
