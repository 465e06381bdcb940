"""Tests for ColumnIndex: distinct values, positions, counts and range lookup"""

import threading
from datetime import date

import numpy as np
import pandas as pd
import pytest

from filtergrid.core.column_index import ColumnIndex
from filtergrid.core.errors import UnknownColumnError
from filtergrid.models.column_definition import ColumnDefinition
from filtergrid.models.filter_state import (
    ChecklistFilter, TextSearchFilter, NumericRangeFilter, DateRangeFilter
)
from filtergrid.utils.constants import FilterKind


def build(store, key, kind=FilterKind.CHECKLIST):
    return ColumnIndex.from_series(ColumnDefinition(key, key, filter_kind=kind), store.column(key))


def test_distinct_values_blank_first(store):
    index = build(store, "kind")
    assert index.distinct_values() == [None, "Table", "View"]
    assert index.display_values() == ["(Blanks)", "Table", "View"]


def test_positions_ascending_and_read_only(store):
    index = build(store, "kind")
    positions = index.positions("Table")
    assert positions.tolist() == [0, 1, 3]
    assert not positions.flags.writeable
    with pytest.raises(ValueError):
        positions[0] = 99


def test_unknown_value_has_no_positions(store):
    index = build(store, "kind")
    assert len(index.positions("Synonym")) == 0
    assert index.count("Synonym") == 0


def test_every_blank_form_is_one_value():
    series = pd.Series(["a", "", "  ", None, np.nan, "a"], dtype=object)
    index = ColumnIndex.from_series(ColumnDefinition("C", "c"), series)
    assert index.distinct_values() == [None, "a"]
    assert index.positions(None).tolist() == [1, 2, 3, 4]
    assert index.count("") == 4


@pytest.mark.parametrize("dtype", [None, "string"])
def test_blank_strings_in_string_dtype_columns(dtype):
    series = pd.Series(["a", "", "  ", None, "a"], dtype=dtype)
    index = ColumnIndex.from_series(ColumnDefinition("C", "c"), series)
    assert index.distinct_values() == [None, "a"]
    assert index.positions(None).tolist() == [1, 2, 3]
    assert index.value_counts() == {None: 3, "a": 2}
    assert sum(index.value_counts().values()) == len(series)


def test_value_counts_include_zero_counts(store):
    index = build(store, "kind")
    assert index.value_counts() == {None: 1, "Table": 3, "View": 1}
    assert index.value_counts(np.array([2, 4])) == {None: 1, "Table": 0, "View": 1}


def test_numeric_range_inclusive(store):
    index = build(store, "amount", FilterKind.NUMERIC_RANGE)
    assert index.supports_range
    assert index.positions_in_range(5, 10).tolist() == [1, 2, 3]
    assert index.positions_in_range(None, 5).tolist() == [0, 1]
    assert index.positions_in_range(11, None).tolist() == [4]
    assert len(index.positions_in_range(8, 9)) == 0


def test_date_range_with_whole_day_end(store):
    index = build(store, "created", FilterKind.DATE_RANGE)
    flt = DateRangeFilter(date(2024, 1, 2), date(2024, 1, 3))
    assert index.candidate_positions(flt).tolist() == [1, 2]


def test_blank_dates_never_match_range(store):
    index = build(store, "created", FilterKind.DATE_RANGE)
    assert 3 not in index.candidate_positions(DateRangeFilter(date(2000, 1, 1), None)).tolist()


def test_range_on_checklist_index_uses_distinct_values(store):
    index = build(store, "amount")
    assert not index.supports_range
    assert index.candidate_positions(NumericRangeFilter(5, 10)).tolist() == [1, 2, 3]
    with pytest.raises(UnknownColumnError):
        index.positions_in_range(5, 10)


def test_text_search_is_case_insensitive(store):
    index = build(store, "table", FilterKind.TEXT_SEARCH)
    assert index.matching_values("cust") == ["CustomerOrders", "Customers"]
    assert index.candidate_positions(TextSearchFilter("CUST")).tolist() == [0, 1]


def test_exclude_checklist(store):
    index = build(store, "kind")
    flt = ChecklistFilter({"Table"}, exclude=True)
    assert index.candidate_positions(flt).tolist() == [2, 4]


def test_include_checklist_with_blank(store):
    index = build(store, "kind")
    assert index.candidate_positions(ChecklistFilter({"View", None})).tolist() == [2, 4]


def test_mixed_types_sort_as_text():
    series = pd.Series([2, "b", None, "A", 10], dtype=object)
    index = ColumnIndex.from_series(ColumnDefinition("M", "m"), series)
    assert index.distinct_values() == [None, 10, 2, "A", "b"]
    assert index.count(10) == 1


def test_codes_align_with_distinct_values(store):
    index = build(store, "kind")
    values = index.distinct_values()
    assert [values[c] for c in index.codes] == ["Table", "Table", "View", "Table", None]


def test_cancelled_build_returns_nothing(store):
    cancel = threading.Event()
    cancel.set()
    column = ColumnDefinition("Amount", "amount", filter_kind=FilterKind.NUMERIC_RANGE)
    assert ColumnIndex.from_series(column, store.column("amount"), cancel) is None
    assert ColumnIndex.from_series(column, store.column("amount"), threading.Event()).supports_range
