"""Shared fixtures: a small catalog-like dataset covering every filter kind"""

import os
import threading
from datetime import datetime

import pytest

# Run Qt headless so widget tests work without a display
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from filtergrid.core.dataset_manager import DatasetManager
from filtergrid.core.index_builder import ColumnIndexBuilder
from filtergrid.core.row_store import RowStore
from filtergrid.models.column_definition import ColumnDefinition
from filtergrid.utils.constants import FilterKind


def catalog_rows():
    """Five rows; amounts are [3, 5, 7, 10, 12]"""
    return [
        {"table": "Customers", "kind": "Table", "amount": 3, "created": datetime(2024, 1, 1, 9, 0)},
        {"table": "CustomerOrders", "kind": "Table", "amount": 5, "created": datetime(2024, 1, 2, 10, 30)},
        {"table": "Invoices", "kind": "View", "amount": 7, "created": datetime(2024, 1, 3)},
        {"table": "Products", "kind": "Table", "amount": 10, "created": None},
        {"table": "Suppliers", "kind": None, "amount": 12, "created": datetime(2024, 2, 1)},
    ]


def catalog_columns():
    return [
        ColumnDefinition("Table", "table", filter_kind=FilterKind.TEXT_SEARCH),
        ColumnDefinition("Kind", "kind"),
        ColumnDefinition("Amount", "amount", filter_kind=FilterKind.NUMERIC_RANGE, string_format="{:,}"),
        ColumnDefinition("Created", "created", filter_kind=FilterKind.DATE_RANGE,
                         string_format="{:%Y-%m-%d}"),
    ]


class GatedBuilder(ColumnIndexBuilder):
    """Index builder that holds every build until the gate opens"""

    def __init__(self, gate: threading.Event, max_workers=2):
        super().__init__(max_workers)
        self.gate = gate
        self.started = threading.Event()

    def build(self, store, columns, cancel_event=None, generation=0):
        self.started.set()
        self.gate.wait(10)
        return super().build(store, columns, cancel_event, generation)


@pytest.fixture
def rows():
    return catalog_rows()


@pytest.fixture
def columns():
    return catalog_columns()


@pytest.fixture
def store(rows):
    return RowStore(rows)


@pytest.fixture
def manager():
    manager = DatasetManager(max_workers=2)
    yield manager
    manager.shutdown()


@pytest.fixture
def loaded_manager(manager, rows, columns):
    manager.load_sync(rows, columns, timeout=10)
    return manager


@pytest.fixture
def gate():
    gate = threading.Event()
    yield gate
    gate.set()
