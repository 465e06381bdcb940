"""Tests for QueryEngine evaluation and popup value counts"""

from datetime import date

import numpy as np
import pandas as pd
import pytest

from filtergrid.core.errors import UnknownColumnError
from filtergrid.core.index_builder import ColumnIndexBuilder
from filtergrid.core.query_engine import QueryEngine, VisibleRowSet
from filtergrid.core.row_store import RowStore
from filtergrid.models.column_definition import ColumnDefinition
from filtergrid.models.filter_state import (
    FilterState, ChecklistFilter, TextSearchFilter, NumericRangeFilter, DateRangeFilter
)
from filtergrid.utils.constants import FilterKind


@pytest.fixture
def engine():
    return QueryEngine()


@pytest.fixture
def indexes(store, columns):
    return ColumnIndexBuilder(max_workers=2).build(store, columns).indexes


def visible_values(store, visible, key):
    return [store.value_at(p, key) for p in visible]


def test_no_filters_returns_every_row(engine, store, indexes):
    visible = engine.evaluate(store, indexes, FilterState())
    assert visible.positions.tolist() == [0, 1, 2, 3, 4]
    assert visible.is_unfiltered


def test_numeric_range_five_to_ten():
    store = RowStore([{"n": v} for v in [3, 5, 7, 10, 12]])
    columns = [ColumnDefinition("N", "n", filter_kind=FilterKind.NUMERIC_RANGE)]
    indexes = ColumnIndexBuilder().build(store, columns).indexes
    state = FilterState({"n": NumericRangeFilter(5, 10)})
    visible = QueryEngine().evaluate(store, indexes, state)
    assert set(visible_values(store, visible, "n")) == {5, 7, 10}


def test_text_search_cust(engine, store, indexes):
    state = FilterState({"table": TextSearchFilter("cust")})
    visible = engine.evaluate(store, indexes, state)
    assert set(visible_values(store, visible, "table")) == {"Customers", "CustomerOrders"}


def test_filters_combine_with_and(engine, store, indexes):
    state = FilterState({
        "kind": ChecklistFilter({"Table"}),
        "amount": NumericRangeFilter(4, None),
    })
    assert engine.evaluate(store, indexes, state).positions.tolist() == [1, 3]


def test_more_restrictive_state_is_subset(engine, store, indexes):
    state = FilterState({"amount": NumericRangeFilter(None, 10)})
    looser = engine.evaluate(store, indexes, state)
    state.set("kind", ChecklistFilter({"Table"}))
    tighter = engine.evaluate(store, indexes, state)
    state.set("created", DateRangeFilter(date(2024, 1, 2), None))
    tightest = engine.evaluate(store, indexes, state)
    assert tighter.issubset(looser)
    assert tightest.issubset(tighter)
    assert tightest.positions.tolist() == [1]


def test_clearing_all_filters_restores_every_row(engine, store, indexes):
    state = FilterState({"kind": ChecklistFilter({"View"}), "table": TextSearchFilter("inv")})
    assert len(engine.evaluate(store, indexes, state)) == 1
    state.clear_all()
    assert engine.evaluate(store, indexes, state).positions.tolist() == list(range(store.count()))


def test_checklist_idempotent(engine, store, indexes):
    state = FilterState()
    state.set("kind", ChecklistFilter({"Table"}))
    once = engine.evaluate(store, indexes, state).positions.tolist()
    state.set("kind", ChecklistFilter({"Table"}))
    twice = engine.evaluate(store, indexes, state).positions.tolist()
    assert once == twice == [0, 1, 3]


def test_empty_checklist_matches_nothing(engine, store, indexes):
    state = FilterState({"kind": ChecklistFilter(set())})
    assert len(engine.evaluate(store, indexes, state)) == 0


def test_results_ascending(engine, store, indexes):
    state = FilterState({"kind": ChecklistFilter({"View"}, exclude=True),
                         "amount": NumericRangeFilter(0, 100)})
    visible = engine.evaluate(store, indexes, state)
    assert visible.positions.tolist() == [0, 1, 3, 4]
    assert np.all(np.diff(visible.positions) > 0)


@pytest.mark.parametrize("column_key, column_filter", [
    ("kind", ChecklistFilter({"Table"})),
    ("amount", NumericRangeFilter(5, 10)),
    ("created", DateRangeFilter(date(2024, 1, 2), None)),
    ("table", TextSearchFilter("cust")),
])
def test_value_counts_sum_to_rows_visible_without_own_filter(engine, store, indexes, column_key, column_filter):
    state = FilterState({
        "kind": ChecklistFilter({"Table", "View"}),
        "amount": NumericRangeFilter(3, 11),
        "table": TextSearchFilter("s"),
    })
    state.set(column_key, column_filter)
    without_own = state.copy()
    without_own.clear(column_key)

    counts = engine.value_counts(store, indexes, state, column_key)
    expected = len(engine.evaluate(store, indexes, without_own))
    assert sum(counts.values()) == expected


def test_value_counts_ignore_target_filter(engine, store, indexes):
    state = FilterState({"kind": ChecklistFilter({"View"}), "amount": NumericRangeFilter(5, 10)})
    counts = engine.value_counts(store, indexes, state, "kind")
    assert counts == {None: 0, "Table": 2, "View": 1}


def test_value_counts_without_filters(engine, store, indexes):
    counts = engine.value_counts(store, indexes, FilterState(), "kind")
    assert list(counts) == [None, "Table", "View"]
    assert sum(counts.values()) == store.count()


def test_unindexed_column_falls_back_to_scan(engine, store, indexes):
    for column_key, column_filter in [
        ("kind", ChecklistFilter({"Table"})),
        ("amount", NumericRangeFilter(5, 10)),
        ("created", DateRangeFilter(date(2024, 1, 2), date(2024, 1, 3))),
        ("table", TextSearchFilter("CUST")),
    ]:
        state = FilterState({column_key: column_filter})
        indexed = engine.evaluate(store, indexes, state).positions.tolist()
        scanned = engine.evaluate(store, {}, state).positions.tolist()
        assert indexed == scanned


def test_value_counts_for_unindexed_column(engine, store):
    counts = engine.value_counts(store, {}, FilterState({"amount": NumericRangeFilter(5, None)}), "kind")
    assert counts == {None: 1, "Table": 2, "View": 1}


def test_unindexed_alias_reads_its_binding_key(engine, store):
    bindings = {"object_kind": "kind", "table": "kind"}
    state = FilterState({"object_kind": ChecklistFilter({"View"})})
    assert engine.evaluate(store, {}, state, bindings=bindings).positions.tolist() == [2]
    # an alias that shadows another field still reads its own binding
    state = FilterState({"table": ChecklistFilter({"Table"})})
    assert engine.evaluate(store, {}, state, bindings=bindings).positions.tolist() == [0, 1, 3]
    counts = engine.value_counts(store, {}, FilterState({"amount": NumericRangeFilter(5, None)}),
                                 "object_kind", bindings)
    assert counts == {None: 1, "Table": 2, "View": 1}


def test_unknown_column_raises(engine, store, indexes):
    with pytest.raises(UnknownColumnError):
        engine.evaluate(store, indexes, FilterState({"owner": ChecklistFilter({"x"})}))
    with pytest.raises(KeyError):
        engine.value_counts(store, indexes, FilterState(), "owner")


def test_global_search_any_column(engine, store):
    assert engine.global_search(store, None, "VIEW").tolist() == [2]
    assert engine.global_search(store, np.array([0, 1, 2]), "cust").tolist() == [0, 1]
    assert engine.global_search(store, np.array([3, 4]), "").tolist() == [3, 4]


def test_sort_positions_blanks_last(engine, store):
    positions = np.arange(store.count())
    assert engine.sort_positions(store, positions, "amount", ascending=False).tolist() == [4, 3, 2, 1, 0]
    assert engine.sort_positions(store, positions, "kind").tolist() == [0, 1, 3, 2, 4]
    assert engine.sort_positions(store, positions, "created").tolist() == [0, 1, 2, 4, 3]


def test_visible_row_set_is_read_only():
    visible = VisibleRowSet(np.array([1, 3, 5]), total_rows=6, generation=2)
    assert 3 in visible
    assert 4 not in visible
    assert list(visible) == [1, 3, 5]
    with pytest.raises(ValueError):
        visible.positions[0] = 0


def test_sort_positions_string_dtype_blanks_last(engine):
    store = RowStore(pd.DataFrame({"name": pd.Series(["b", "", "A", None], dtype="string")}))
    positions = np.arange(store.count())
    assert engine.sort_positions(store, positions, "name").tolist() == [2, 0, 1, 3]
