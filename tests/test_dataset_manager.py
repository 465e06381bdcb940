"""Tests for DatasetManager: background loads, generation swaps and supersession"""

from concurrent.futures import wait

import pytest

from filtergrid.core.dataset_manager import DatasetManager, DatasetSnapshot
from filtergrid.core.errors import ConcurrentLoadAbortedError, UnknownColumnError
from filtergrid.models.column_definition import ColumnDefinition
from filtergrid.models.filter_state import FilterState, ChecklistFilter, NumericRangeFilter, TextSearchFilter
from filtergrid.utils.constants import FilterKind
from tests.conftest import GatedBuilder


def test_initial_snapshot_is_empty(manager):
    snapshot = manager.snapshot
    assert snapshot.generation == 0
    assert snapshot.row_count == 0
    assert len(manager.evaluate(FilterState())) == 0


def test_load_publishes_snapshot(loaded_manager, rows):
    snapshot = loaded_manager.snapshot
    assert snapshot.generation == 1
    assert snapshot.row_count == len(rows)
    assert set(snapshot.indexes) == {"table", "kind", "amount", "created"}
    assert not snapshot.errors
    assert not loaded_manager.is_loading


def test_snapshot_is_immutable(loaded_manager):
    snapshot = loaded_manager.snapshot
    with pytest.raises(TypeError):
        snapshot.indexes["kind"] = None
    with pytest.raises(AttributeError):
        snapshot.generation = 5


def test_schema_error_keeps_other_columns(manager, rows, columns):
    snapshot = manager.load_sync(rows, columns + [ColumnDefinition("Owner", "owner")], timeout=10)
    assert "owner" in snapshot.errors
    assert "kind" in snapshot.indexes
    assert len(manager.evaluate(FilterState({"kind": ChecklistFilter({"Table"})}))) == 3
    with pytest.raises(UnknownColumnError):
        manager.evaluate(FilterState({"owner": ChecklistFilter({"x"})}))


def test_aliased_column_without_index_is_filterable(manager, rows, columns):
    path = ColumnDefinition("Path", "table", column_key="path", filter_kind=FilterKind.TEXT_SEARCH,
                            is_filterable=False)
    snapshot = manager.load_sync(rows, columns + [path], timeout=10)
    assert "path" not in snapshot.indexes
    assert snapshot.bindings["path"] == "table"

    state = FilterState({"path": TextSearchFilter("cust")})
    assert manager.evaluate(state).positions.tolist() == [0, 1]
    counts = manager.value_counts(FilterState({"kind": ChecklistFilter({"View"})}), "path")
    assert counts["Invoices"] == 1
    assert counts["Customers"] == 0


def test_column_lookup(loaded_manager):
    assert loaded_manager.snapshot.column("amount").header == "Amount"
    with pytest.raises(UnknownColumnError):
        loaded_manager.snapshot.column("missing")


def test_reload_never_returns_old_positions(loaded_manager, columns):
    state = FilterState({"amount": NumericRangeFilter(0, 100)})
    assert len(loaded_manager.evaluate(state)) == 5

    new_rows = [
        {"table": "Accounts", "kind": "Table", "amount": 1, "created": None},
        {"table": "Ledger", "kind": "View", "amount": 2, "created": None},
    ]
    snapshot = loaded_manager.load_sync(new_rows, columns, timeout=10)
    visible = loaded_manager.evaluate(state)
    assert snapshot.generation == 2
    assert visible.generation == 2
    assert visible.total_rows == 2
    assert all(p < 2 for p in visible)


def test_newer_load_supersedes_in_flight_load(gate, rows, columns):
    manager = DatasetManager(max_workers=2)
    manager.builder = GatedBuilder(gate)
    try:
        first = manager.load(rows, columns)
        assert manager.builder.started.wait(5)
        # queries during the rebuild see the prior (empty) snapshot
        assert manager.snapshot.generation == 0
        assert manager.is_loading

        newest_rows = rows[:2]
        second = manager.load(newest_rows, columns)
        gate.set()

        with pytest.raises(ConcurrentLoadAbortedError) as excinfo:
            first.result(10)
        assert excinfo.value.generation == 1
        assert excinfo.value.superseded_by == 2

        snapshot = second.result(10)
        assert snapshot.generation == 2
        assert manager.snapshot is snapshot
        assert manager.snapshot.row_count == 2
        assert len(manager.evaluate(FilterState())) == 2
    finally:
        gate.set()
        manager.shutdown()


def test_only_newest_of_many_loads_is_published(gate, rows, columns):
    manager = DatasetManager(max_workers=2)
    manager.builder = GatedBuilder(gate)
    try:
        futures = [manager.load(rows[:n], columns) for n in (5, 4, 3, 2)]
        gate.set()
        wait(futures, timeout=10)
        for future in futures[:-1]:
            assert isinstance(future.exception(), ConcurrentLoadAbortedError)
        assert futures[-1].result().generation == 4
        assert manager.snapshot.row_count == 2
    finally:
        gate.set()
        manager.shutdown()


def test_wait_until_ready(gate, rows, columns):
    manager = DatasetManager()
    manager.builder = GatedBuilder(gate)
    try:
        manager.load(rows, columns)
        assert not manager.wait_until_ready(timeout=0.05)
        gate.set()
        assert manager.wait_until_ready(timeout=10)
        assert manager.snapshot.generation == 1
    finally:
        gate.set()
        manager.shutdown()


def test_failed_load_keeps_previous_snapshot(loaded_manager, columns):
    previous = loaded_manager.snapshot
    future = loaded_manager.load([{"kind": "Table"}], columns + columns[:1])
    with pytest.raises(ValueError):
        future.result(10)
    assert loaded_manager.snapshot is previous
    assert not loaded_manager.is_loading


def test_value_counts_and_metrics(loaded_manager):
    counts = loaded_manager.value_counts(FilterState(), "kind")
    assert counts == {None: 1, "Table": 3, "View": 1}
    operations = {m.operation for m in loaded_manager.monitor.recent(50)}
    assert {"load", "value_counts"} <= operations


def test_empty_snapshot_factory():
    snapshot = DatasetSnapshot.empty()
    assert snapshot.generation == 0
    assert snapshot.columns == ()
