"""Tests for the folder scanner and loading its rows into the grid"""

import os
import threading

import pytest

from filtergrid.core import file_scanner
from filtergrid.core.data_generator import file_system_columns
from filtergrid.core.dataset_manager import DatasetManager
from filtergrid.core.file_scanner import scan_directory
from filtergrid.models.filter_state import FilterState, ChecklistFilter, NumericRangeFilter


@pytest.fixture
def tree(tmp_path):
    """
    tmp_path/
        readme.TXT (5 bytes)
        docs/
            a.pdf (10 bytes)
            old/
                b.txt (0 bytes)
        empty/
        tools.lnk
    """
    (tmp_path / "readme.TXT").write_bytes(b"hello")
    (tmp_path / "docs" / "old").mkdir(parents=True)
    (tmp_path / "docs" / "a.pdf").write_bytes(b"0123456789")
    (tmp_path / "docs" / "old" / "b.txt").write_bytes(b"")
    (tmp_path / "empty").mkdir()
    (tmp_path / "tools.lnk").write_bytes(b"shortcut")
    return tmp_path


def by_name(result):
    return {item.object_name: item for item in result.items}


def test_lists_every_folder_and_file(tree):
    result = scan_directory(str(tree))
    assert not result.cancelled
    assert result.error_count == 0
    assert [item.object_name for item in result.items] == [
        "readme.TXT", "tools.lnk", "docs", "a.pdf", "old", "b.txt", "empty"
    ]
    assert result.folder_count == 3
    assert result.file_count == 4
    assert result.status_text() == "Scan complete: 3 folders, 4 files"


def test_item_fields(tree):
    items = by_name(scan_directory(str(tree)))
    readme = items["readme.TXT"]
    assert readme.object_type == "File"
    assert readme.file_extension == ".TXT"
    assert readme.size == 5
    assert readme.full_path == os.path.join(str(tree), "readme.TXT")
    assert readme.date_last_modified is not None

    assert items["b.txt"].size == 0
    assert items["docs"].object_type == "Folder"
    assert items["docs"].size is None
    assert items["docs"].file_extension == ""
    assert items["tools.lnk"].object_type == ".lnk"
    assert items["tools.lnk"].size is None


def test_missing_root_raises(tmp_path):
    with pytest.raises(NotADirectoryError):
        scan_directory(str(tmp_path / "nowhere"))


def test_unreadable_folder_becomes_error_row(tree, monkeypatch):
    real_scandir = os.scandir

    def scandir(path):
        if os.path.basename(path) == "docs":
            raise PermissionError(13, "Permission denied", path)
        return real_scandir(path)

    monkeypatch.setattr(file_scanner.os, "scandir", scandir)
    result = scan_directory(str(tree))
    items = by_name(result)
    assert result.error_count == 1
    error = items["Cannot access folder: docs"]
    assert error.object_type == "Error"
    assert error.full_path == os.path.join(str(tree), "docs")
    assert "docs" not in items
    assert "a.pdf" not in items
    assert "empty" in items


def test_unreadable_file_becomes_error_row(tree, monkeypatch):
    real_file_item = file_scanner.file_item

    def file_item(entry):
        if entry.name == "a.pdf":
            raise OSError("stale handle")
        return real_file_item(entry)

    monkeypatch.setattr(file_scanner, "file_item", file_item)
    result = scan_directory(str(tree))
    assert result.error_count == 1
    assert by_name(result)["Cannot access file: a.pdf"].object_type == "Error"
    assert "b.txt" in by_name(result)


def test_cancel_returns_partial_rows(tree):
    cancel = threading.Event()
    cancel.set()
    result = scan_directory(str(tree), cancel_event=cancel)
    assert result.cancelled
    assert result.items == []
    assert result.status_text().startswith("Scan stopped")


def test_cancel_during_scan(tree, monkeypatch):
    cancel = threading.Event()
    real_file_item = file_scanner.file_item

    def file_item(entry):
        if entry.name == "a.pdf":
            cancel.set()
        return real_file_item(entry)

    monkeypatch.setattr(file_scanner, "file_item", file_item)
    result = scan_directory(str(tree), cancel_event=cancel)
    assert result.cancelled
    assert [item.object_name for item in result.items] == ["readme.TXT", "tools.lnk", "docs", "a.pdf"]


def test_progress_reports_final_count(tree):
    counts = []
    result = scan_directory(str(tree), progress_callback=counts.append)
    assert counts[-1] == len(result.items)


def test_scanned_rows_load_and_filter(tree):
    manager = DatasetManager(max_workers=2)
    try:
        snapshot = manager.load_sync(scan_directory(str(tree)).items, file_system_columns(), timeout=10)
        assert not snapshot.errors
        assert snapshot.row_count == 7
        assert manager.value_counts(FilterState(), "object_type") == {".lnk": 1, "File": 3, "Folder": 3}

        state = FilterState({
            "object_type": ChecklistFilter({"File"}),
            "size": NumericRangeFilter(1, None),
        })
        names = [snapshot.store.value_at(p, "object_name") for p in manager.evaluate(state)]
        assert names == ["readme.TXT", "a.pdf"]
    finally:
        manager.shutdown()


def test_window_scan_folder_loads_grid(qtbot, tree):
    from filtergrid.ui.main_window import FilterDemoWindow
    from filtergrid.utils.config import Config

    window = FilterDemoWindow(Config(max_index_workers=2))
    qtbot.addWidget(window)
    try:
        with qtbot.waitSignal(window.view_model.data_loaded, timeout=10000) as blocker:
            window.scan_folder(str(tree))
        assert blocker.args[1] == 7
        assert window.table.model.rowCount() == 7
        qtbot.waitUntil(lambda: not window.stop_scan_action.isEnabled(), timeout=5000)
    finally:
        window.view_model.shutdown()
