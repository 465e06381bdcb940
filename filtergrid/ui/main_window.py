"""Filter Demo Window - hosts the filterable grid over a generated dataset or a scanned folder"""

import logging
import threading
from typing import Optional

import pandas as pd
from PyQt6.QtCore import QThread, pyqtSignal
from PyQt6.QtGui import QAction
from PyQt6.QtWidgets import (QMainWindow, QWidget, QVBoxLayout, QLabel, QSpinBox, QToolBar,
                             QMessageBox, QPlainTextEdit, QDialog, QFileDialog)

from filtergrid.core.data_generator import generate_large_dataset, file_system_columns, log_dataset_stats
from filtergrid.core.file_scanner import ScanResult, scan_directory
from filtergrid.ui.view_model import FilteredDataGridViewModel
from filtergrid.ui.widgets.filter_table_view import FilterTableView
from filtergrid.utils.config import Config

logger = logging.getLogger(__name__)


class GeneratorWorker(QThread):
    """Background worker that synthesizes a dataset"""

    generation_completed = pyqtSignal(object)  # DataFrame
    generation_failed = pyqtSignal(str)

    def __init__(self, row_count: int, distinct_values_per_column: int, seed: Optional[int] = None):
        super().__init__()
        self.row_count = row_count
        self.distinct_values_per_column = distinct_values_per_column
        self.seed = seed

    def run(self):
        try:
            frame = generate_large_dataset(self.row_count, self.distinct_values_per_column,
                                           seed=self.seed if self.seed is not None else 42)
            log_dataset_stats(frame)
            self.generation_completed.emit(frame)
        except Exception as e:
            logger.error(f"Dataset generation failed: {e}", exc_info=True)
            self.generation_failed.emit(str(e))


class ScanWorker(QThread):
    """Background worker that lists a folder tree"""

    scan_progress = pyqtSignal(int)           # items so far
    scan_completed = pyqtSignal(object)       # ScanResult
    scan_failed = pyqtSignal(str)

    def __init__(self, root: str):
        super().__init__()
        self.root = root
        self._cancel_event = threading.Event()

    def run(self):
        try:
            result = scan_directory(self.root, self._cancel_event, self.scan_progress.emit)
            self.scan_completed.emit(result)
        except OSError as e:
            logger.error(f"Folder scan failed: {e}", exc_info=True)
            self.scan_failed.emit(str(e))

    def cancel(self):
        """Stop the scan; the rows found so far are still reported"""
        self._cancel_event.set()


class FilterDemoWindow(QMainWindow):
    """Main window: toolbar to (re)generate data, the grid, and a status bar"""

    def __init__(self, config: Config, view_model: Optional[FilteredDataGridViewModel] = None):
        super().__init__()
        self.config = config
        self.view_model = view_model or FilteredDataGridViewModel(config, parent=self)
        self._generator: Optional[GeneratorWorker] = None
        self._scanner: Optional[ScanWorker] = None
        self._seed = 42
        self.init_ui()

        self.view_model.data_loaded.connect(self.on_data_loaded)
        self.view_model.load_failed.connect(self.on_load_failed)
        self.view_model.schema_errors.connect(self.on_schema_errors)
        self.view_model.visible_rows_changed.connect(self.on_visible_rows_changed)
        logger.info("Filter demo window initialized")

    def init_ui(self):
        """Initialize the UI"""
        self.setWindowTitle(self.config.app_name)
        self.resize(self.config.window_width, self.config.window_height)
        self.setMinimumSize(self.config.window_min_width, self.config.window_min_height)

        toolbar = QToolBar("Dataset")
        toolbar.setMovable(False)
        self.addToolBar(toolbar)

        toolbar.addWidget(QLabel(" Rows: "))
        self.row_count_box = QSpinBox()
        self.row_count_box.setRange(0, 5_000_000)
        self.row_count_box.setSingleStep(50_000)
        self.row_count_box.setGroupSeparatorShown(True)
        self.row_count_box.setValue(self.config.default_row_count)
        toolbar.addWidget(self.row_count_box)

        self.generate_action = QAction("Generate && Load", self)
        self.generate_action.triggered.connect(self.generate_and_load)
        toolbar.addAction(self.generate_action)

        reload_action = QAction("Reload (new seed)", self)
        reload_action.triggered.connect(self.reload_with_new_seed)
        toolbar.addAction(reload_action)

        toolbar.addSeparator()
        self.scan_action = QAction("Scan Folder...", self)
        self.scan_action.triggered.connect(self.choose_folder)
        toolbar.addAction(self.scan_action)

        self.stop_scan_action = QAction("Stop Scan", self)
        self.stop_scan_action.setEnabled(False)
        self.stop_scan_action.triggered.connect(self.stop_scan)
        toolbar.addAction(self.stop_scan_action)

        toolbar.addSeparator()
        report_action = QAction("Performance Report", self)
        report_action.triggered.connect(self.show_performance_report)
        toolbar.addAction(report_action)

        central_widget = QWidget()
        self.setCentralWidget(central_widget)
        layout = QVBoxLayout(central_widget)
        layout.setContentsMargins(5, 5, 5, 5)

        self.table = FilterTableView(self.view_model)
        layout.addWidget(self.table)

        self.statusBar().showMessage("Ready")

    # ----- dataset ---------------------------------------------------------

    def generate_and_load(self):
        """Generate a dataset off the UI thread, then load it"""
        row_count = self.row_count_box.value()
        self.statusBar().showMessage(f"Generating {row_count:,} rows...")
        worker = GeneratorWorker(row_count, self.config.distinct_values_per_column, self._seed)
        worker.generation_completed.connect(self.on_generation_completed)
        worker.generation_failed.connect(self.on_load_failed)
        self._generator = worker
        worker.start()

    def reload_with_new_seed(self):
        self._seed += 1
        self.generate_and_load()

    def on_generation_completed(self, frame: pd.DataFrame):
        self.statusBar().showMessage(f"Indexing {len(frame):,} rows...")
        self.view_model.load_dataset(frame, file_system_columns())

    def choose_folder(self):
        folder = QFileDialog.getExistingDirectory(self, "Select Folder to Scan")
        if folder:
            self.scan_folder(folder)

    def scan_folder(self, folder: str):
        """List folder recursively off the UI thread, then load the rows"""
        if self._scanner is not None and self._scanner.isRunning():
            # the superseded scan's partial rows are never loaded
            self._scanner.scan_completed.disconnect(self.on_scan_completed)
            self._scanner.cancel()
            self._scanner.wait()
        self.statusBar().showMessage(f"Scanning {folder}...")
        worker = ScanWorker(folder)
        worker.scan_progress.connect(self.on_scan_progress)
        worker.scan_completed.connect(self.on_scan_completed)
        worker.scan_failed.connect(self.on_load_failed)
        worker.finished.connect(lambda w=worker: self._on_scan_finished(w))
        self._scanner = worker
        self.stop_scan_action.setEnabled(True)
        worker.start()

    def stop_scan(self):
        if self._scanner is not None:
            self._scanner.cancel()

    def _on_scan_finished(self, worker: ScanWorker):
        if self._scanner is worker:
            self.stop_scan_action.setEnabled(False)

    def on_scan_progress(self, item_count: int):
        self.statusBar().showMessage(f"Scanning... {item_count:,} items")

    def on_scan_completed(self, result: ScanResult):
        self.statusBar().showMessage(result.status_text())
        if not result.items:
            return
        self.view_model.load_dataset(result.items, file_system_columns())

    def on_data_loaded(self, generation: int, row_count: int):
        load_ms = self.view_model.snapshot.load_ms
        self.statusBar().showMessage(f"Loaded {row_count:,} rows (generation {generation}) in {load_ms:,.0f}ms")

    def on_visible_rows_changed(self, display_rows: int, total_rows: int):
        if total_rows:
            self.statusBar().showMessage(f"{display_rows:,} of {total_rows:,} rows visible")

    def on_load_failed(self, message: str):
        self.statusBar().showMessage(f"Load failed: {message}")

    def on_schema_errors(self, errors: dict):
        columns = ", ".join(sorted(errors))
        self.statusBar().showMessage(f"Columns unavailable (schema mismatch): {columns}")
        logger.warning(f"Schema mismatch for columns: {columns}")

    def show_performance_report(self):
        """Show the filter performance report"""
        dialog = QDialog(self)
        dialog.setWindowTitle("Filter Performance Report")
        dialog.resize(480, 420)
        layout = QVBoxLayout(dialog)
        text = QPlainTextEdit(self.view_model.monitor.report())
        text.setReadOnly(True)
        layout.addWidget(text)
        dialog.exec()

    def closeEvent(self, event):
        if self._scanner is not None and self._scanner.isRunning():
            self._scanner.cancel()
            self._scanner.wait()
        if self._generator is not None and self._generator.isRunning():
            reply = QMessageBox.question(self, "Exit", "A dataset is still being generated. Exit anyway?")
            if reply != QMessageBox.StandardButton.Yes:
                event.ignore()
                return
            self._generator.wait()
        self.view_model.shutdown()
        event.accept()
