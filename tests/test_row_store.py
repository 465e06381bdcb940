"""Tests for RowStore ingestion and positional access"""

from datetime import datetime

import pandas as pd
import pytest

from filtergrid.core.row_store import RowStore, rows_to_frame
from filtergrid.models.file_system_item import FileSystemItem


def test_load_dicts_keeps_order(store, rows):
    assert store.count() == len(rows) == len(store)
    for position, row in enumerate(rows):
        assert store.value_at(position, "table") == row["table"]


def test_get_returns_row_dict(store):
    row = store.get(2)
    assert row["table"] == "Invoices"
    assert row["kind"] == "View"
    assert row["amount"] == 7


def test_get_out_of_range_raises(store):
    with pytest.raises(IndexError):
        store.get(5)
    with pytest.raises(IndexError):
        store.get(-1)


def test_dataframe_input_gets_positional_index():
    frame = pd.DataFrame({"a": [10, 20, 30]}, index=[7, 3, 9])
    store = RowStore(frame)
    assert list(store.frame.index) == [0, 1, 2]
    assert store.get(1) == {"a": 20}
    # caller's frame untouched
    assert list(frame.index) == [7, 3, 9]


def test_dataclass_rows():
    items = [
        FileSystemItem("C:\\a.txt", "File", "a.txt", ".txt", 100, datetime(2024, 5, 1)),
        FileSystemItem("C:\\docs", "Folder", "docs", "", None, None),
    ]
    store = RowStore(items)
    assert store.columns == ["full_path", "object_type", "object_name", "file_extension", "size",
                             "date_last_modified"]
    assert str(store.frame["size"].dtype) == "Int64"
    assert pd.api.types.is_datetime64_any_dtype(store.frame["date_last_modified"])
    assert pd.isna(store.value_at(1, "date_last_modified"))


def test_integral_floats_with_missing_become_nullable_int():
    frame = rows_to_frame([{"n": 1}, {"n": None}, {"n": 3}])
    assert str(frame["n"].dtype) == "Int64"
    assert frame["n"].iloc[0] == 1


def test_fractional_floats_stay_float():
    frame = rows_to_frame([{"x": 1.5}, {"x": None}])
    assert frame["x"].dtype == float


def test_empty_rows():
    store = RowStore([])
    assert store.count() == 0
    assert store.columns == []


def test_reload_replaces_rows(store):
    store.load([{"table": "Only"}])
    assert store.count() == 1
    assert not store.has_column("amount")


def test_take_preserves_requested_order(store):
    frame = store.take([4, 0])
    assert list(frame["table"]) == ["Suppliers", "Customers"]
