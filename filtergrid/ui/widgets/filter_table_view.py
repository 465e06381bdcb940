"""FilterTableView - Excel-style filterable grid over a FilteredDataGridViewModel"""

import logging
import time
from typing import Optional

from PyQt6.QtCore import Qt, QAbstractTableModel, QModelIndex, pyqtSignal, QRect, QPoint
from PyQt6.QtGui import QFont, QAction, QPainter, QColor, QCursor
from PyQt6.QtWidgets import (QWidget, QVBoxLayout, QHBoxLayout, QTableView, QHeaderView, QLineEdit,
                             QPushButton, QMenu, QLabel, QApplication, QToolTip)

from filtergrid.ui.view_model import FilteredDataGridViewModel
from filtergrid.ui.widgets.filter_popup import FilterPopup
from filtergrid.utils.constants import UIColors

logger = logging.getLogger(__name__)


class ClickableHeaderView(QHeaderView):
    """Header view with clickable sort icons and a tint on filtered columns"""

    sort_clicked = pyqtSignal(int)  # column_index

    def __init__(self, orientation, parent=None):
        super().__init__(orientation, parent)
        self.sort_icon_width = 16
        self.sort_icon_margin = 4
        self.resize_margin = 5  # Pixels from edge for resize cursor
        self.hovered_section = -1
        self.sort_order = {}  # column_index -> Qt.SortOrder
        self.filtered_columns = set()  # column indexes with an active filter
        self.setMouseTracking(True)

    def paintSection(self, painter: QPainter, rect: QRect, logicalIndex: int):
        """Paint header section with sort icon"""
        super().paintSection(painter, rect, logicalIndex)

        if logicalIndex in self.filtered_columns:
            painter.save()
            tint = QColor(UIColors.FILTERED_HEADER)
            tint.setAlpha(80)
            painter.fillRect(rect, tint)
            painter.restore()

        icon_rect = self.get_sort_icon_rect(rect)

        painter.save()
        if logicalIndex == self.hovered_section:
            painter.fillRect(icon_rect, QColor(200, 220, 255, 100))

        painter.setPen(QColor(100, 100, 100))
        painter.setBrush(QColor(100, 100, 100))
        center_x = icon_rect.center().x()
        center_y = icon_rect.center().y()

        sort_order = self.sort_order.get(logicalIndex, None)
        if sort_order == Qt.SortOrder.DescendingOrder:
            painter.drawPolygon([
                QPoint(center_x - 4, center_y - 2),
                QPoint(center_x + 4, center_y - 2),
                QPoint(center_x, center_y + 3)
            ])
        elif sort_order == Qt.SortOrder.AscendingOrder:
            painter.drawPolygon([
                QPoint(center_x, center_y - 3),
                QPoint(center_x - 4, center_y + 2),
                QPoint(center_x + 4, center_y + 2)
            ])
        else:
            # small square = unsorted
            square_size = 6
            painter.drawRect(QRect(center_x - square_size // 2, center_y - square_size // 2,
                                   square_size, square_size))
        painter.restore()

    def get_sort_icon_rect(self, section_rect: QRect) -> QRect:
        """Get the rectangle for the sort icon within a section"""
        icon_x = section_rect.right() - self.sort_icon_width - self.sort_icon_margin
        icon_y = section_rect.top() + (section_rect.height() - self.sort_icon_width) // 2
        return QRect(icon_x, icon_y, self.sort_icon_width, self.sort_icon_width)

    def _section_rect(self, logical_index: int) -> QRect:
        return QRect(self.sectionViewportPosition(logical_index), 0,
                     self.sectionSize(logical_index), self.height())

    def is_on_resize_edge(self, pos: QPoint, logical_index: int) -> bool:
        """Check if position is on the resize edge of a column"""
        if logical_index < 0:
            return False
        section_start = self.sectionViewportPosition(logical_index)
        section_end = section_start + self.sectionSize(logical_index)
        x = pos.x()
        return (section_start <= x <= section_start + self.resize_margin
                or section_end - self.resize_margin <= x <= section_end)

    def set_sort_indicator(self, column_index: int, sort_order):
        """Set sort indicator for a column and trigger repaint"""
        self.sort_order.clear()
        if sort_order is not None:
            self.sort_order[column_index] = sort_order
        self.viewport().update()

    def mousePressEvent(self, event):
        """Sort icon click -> sort_clicked, elsewhere in the section -> sectionClicked (filter)"""
        pos = event.position().toPoint()
        logical_index = self.logicalIndexAt(pos)
        if logical_index >= 0 and not self.is_on_resize_edge(pos, logical_index):
            if self.get_sort_icon_rect(self._section_rect(logical_index)).contains(pos):
                logger.debug(f"Sort icon clicked for column {logical_index}")
                self.sort_clicked.emit(logical_index)
            else:
                self.sectionClicked.emit(logical_index)
            event.accept()
            return
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event):
        """Track which sort icon is hovered and show the resize cursor on edges"""
        pos = event.position().toPoint()
        logical_index = self.logicalIndexAt(pos)
        hovered = -1
        if logical_index >= 0 and self.is_on_resize_edge(pos, logical_index):
            self.setCursor(QCursor(Qt.CursorShape.SplitHCursor))
        else:
            self.setCursor(QCursor(Qt.CursorShape.ArrowCursor))
            if logical_index >= 0 and self.get_sort_icon_rect(self._section_rect(logical_index)).contains(pos):
                hovered = logical_index
        if hovered != self.hovered_section:
            self.hovered_section = hovered
            self.viewport().update()
        super().mouseMoveEvent(event)


class RowSetTableModel(QAbstractTableModel):
    """Table model that reads the row store through the displayed row positions (no copies)"""

    def __init__(self, view_model: FilteredDataGridViewModel, parent=None):
        super().__init__(parent)
        self.view_model = view_model
        self._snapshot = view_model.snapshot
        self._positions = view_model.display_positions
        self._columns = list(self._snapshot.columns)

    def reload(self):
        """Pick up a new snapshot (columns may have changed)"""
        self.beginResetModel()
        self._snapshot = self.view_model.snapshot
        self._columns = list(self._snapshot.columns)
        self._positions = self.view_model.display_positions
        self.endResetModel()

    def refresh_rows(self):
        """Pick up new display positions"""
        self.beginResetModel()
        self._snapshot = self.view_model.snapshot
        self._positions = self.view_model.display_positions
        self.endResetModel()

    def column(self, section: int):
        return self._columns[section]

    def position_at(self, row: int) -> int:
        return int(self._positions[row])

    def rowCount(self, parent=QModelIndex()):
        return len(self._positions)

    def columnCount(self, parent=QModelIndex()):
        return len(self._columns)

    def data(self, index, role=Qt.ItemDataRole.DisplayRole):
        if not index.isValid():
            return None

        if role in (Qt.ItemDataRole.DisplayRole, Qt.ItemDataRole.ToolTipRole):
            column = self._columns[index.column()]
            if not self._snapshot.store.has_column(column.binding_key):
                return ""
            value = self._snapshot.store.value_at(self.position_at(index.row()), column.binding_key)
            return column.format_value(value)

        return None

    def headerData(self, section, orientation, role=Qt.ItemDataRole.DisplayRole):
        if role == Qt.ItemDataRole.DisplayRole:
            if orientation == Qt.Orientation.Horizontal:
                column = self._columns[section]
                if self.view_model.state.is_active(column.column_key):
                    return f"{column.header} 🔽"
                return column.header
            return str(section + 1)
        return None


class FilterTableView(QWidget):
    """Excel-style filterable table view"""

    def __init__(self, view_model: FilteredDataGridViewModel, parent=None):
        super().__init__(parent)
        self.view_model = view_model
        self.model = RowSetTableModel(view_model, self)
        self.sort_order = {}  # column_index -> Qt.SortOrder
        self.active_popup: Optional[FilterPopup] = None

        self.init_ui()

        self.view_model.data_loaded.connect(self.on_data_loaded)
        self.view_model.visible_rows_changed.connect(self.on_visible_rows_changed)
        self.view_model.filters_changed.connect(self.update_header_indicators)
        self.view_model.loading_changed.connect(self.on_loading_changed)

    def init_ui(self):
        """Initialize the UI"""
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(5)

        # Global search box at top
        search_layout = QHBoxLayout()
        search_layout.addWidget(QLabel("🔍 Search:"))

        self.global_search_box = QLineEdit()
        self.global_search_box.setPlaceholderText("Search across all columns...")
        self.global_search_box.textChanged.connect(self.view_model.set_global_search)
        search_layout.addWidget(self.global_search_box)

        clear_btn = QPushButton("Clear All")
        clear_btn.setStyleSheet(f"""
            QPushButton {{
                background-color: {UIColors.PRIMARY};
                color: white;
                border: none;
                border-radius: 3px;
                padding: 4px 12px;
                font-size: 11px;
            }}
            QPushButton:hover {{
                background-color: {UIColors.PRIMARY_DARK};
            }}
        """)
        clear_btn.clicked.connect(self.clear_all_filters)
        search_layout.addWidget(clear_btn)
        layout.addLayout(search_layout)

        self.table_view = QTableView()
        self.table_view.setObjectName("filterTableView")
        self.table_view.setModel(self.model)
        self.table_view.setAlternatingRowColors(True)
        self.table_view.setContextMenuPolicy(Qt.ContextMenuPolicy.CustomContextMenu)
        self.table_view.customContextMenuRequested.connect(self.show_table_context_menu)
        self.table_view.setSelectionBehavior(QTableView.SelectionBehavior.SelectItems)
        self.table_view.setSelectionMode(QTableView.SelectionMode.ExtendedSelection)
        self.table_view.verticalHeader().setDefaultSectionSize(20)
        self.table_view.verticalHeader().setMinimumSectionSize(18)
        self.table_view.setStyleSheet("""
            QTableView#filterTableView {
                gridline-color: #d0d0d0;
                background-color: white;
                alternate-background-color: #f9f9f9;
                selection-background-color: #d4e4f7;
            }
            QTableView#filterTableView::item:selected {
                background-color: #d4e4f7;
                border: 1px solid #a8c8e8;
                color: #0A1E5E;
            }
            QHeaderView::section {
                background-color: #f0f0f0;
                color: #000000;
                padding: 3px 20px 3px 4px;  /* Extra padding on right for sort icon */
                border: 1px solid #d0d0d0;
                font-weight: normal;
                font-size: 11px;
            }
            QHeaderView::section:hover {
                background-color: #e0e0e0;
            }
        """)

        self.header = ClickableHeaderView(Qt.Orientation.Horizontal, self.table_view)
        self.table_view.setHorizontalHeader(self.header)
        self.header.setSectionResizeMode(QHeaderView.ResizeMode.Interactive)
        self.header.setStretchLastSection(True)
        self.header.sectionClicked.connect(self.show_filter_popup)
        self.header.sort_clicked.connect(self.on_sort_clicked)
        self.header.setContextMenuPolicy(Qt.ContextMenuPolicy.CustomContextMenu)
        self.header.customContextMenuRequested.connect(self.show_column_context_menu)

        self.table_view.setFont(QFont("Consolas", 9))
        layout.addWidget(self.table_view)

        # Info label at bottom
        self.info_label = QLabel("")
        self.info_label.setStyleSheet(f"color: {UIColors.MUTED}; font-size: 10px; padding: 2px;")
        layout.addWidget(self.info_label)

    # ----- view-model notifications ----------------------------------------

    def on_data_loaded(self, generation: int, row_count: int):
        self.model.reload()
        for i in range(self.model.columnCount()):
            width = self.model.column(i).width
            if width:
                self.table_view.setColumnWidth(i, width)
        if self.view_model.sort_key is None:
            self.sort_order.clear()
            self.header.set_sort_indicator(-1, None)
        self.update_header_indicators()
        self.update_info_label()
        logger.info(f"FilterTableView showing generation {generation}: {row_count:,} rows, "
                    f"{self.model.columnCount()} columns")

    def on_visible_rows_changed(self, display_rows: int, total_rows: int):
        self.model.refresh_rows()
        self.update_info_label()

    def on_loading_changed(self, loading: bool):
        if loading:
            self.info_label.setText("⏳ Loading dataset...")
        else:
            self.update_info_label()

    # ----- filtering -------------------------------------------------------

    def show_filter_popup(self, column_index: int):
        """Show the filter popup below the clicked column header"""
        if column_index < 0 or column_index >= self.model.columnCount():
            return
        column = self.model.column(column_index)
        if not column.is_filterable or column.column_key in self.view_model.snapshot.errors:
            logger.debug(f"Column '{column.column_key}' is not filterable")
            return

        start_time = time.perf_counter()
        logger.info(f"⏱️ [FILTER] Opening filter box for column: {column.header}")
        controller = self.view_model.popup_controller(column.column_key)
        controller.open()
        popup = FilterPopup(controller, self)
        popup.filter_applied.connect(self.on_filter_applied)
        self.active_popup = popup
        logger.info(f"⏱️ [FILTER] Filter box ready with {len(controller.entries):,} values in "
                    f"{(time.perf_counter() - start_time) * 1000:.2f}ms")

        section_x = self.header.sectionViewportPosition(column_index)
        header_bottom_left = self.header.mapToGlobal(self.header.rect().bottomLeft())
        popup.popup(QPoint(header_bottom_left.x() + section_x, header_bottom_left.y()))

    def on_filter_applied(self, column_key: str):
        self.update_header_indicators()
        self.active_popup = None

    def on_sort_clicked(self, column_index: int):
        """Cycle sort: none -> ascending -> descending -> none"""
        current_order = self.sort_order.get(column_index, None)
        if current_order is None:
            new_order = Qt.SortOrder.AscendingOrder
        elif current_order == Qt.SortOrder.AscendingOrder:
            new_order = Qt.SortOrder.DescendingOrder
        else:
            new_order = None

        self.sort_order.clear()
        if new_order is None:
            self.view_model.sort_by(None)
        else:
            self.sort_order[column_index] = new_order
            binding_key = self.model.column(column_index).binding_key
            self.view_model.sort_by(binding_key, new_order == Qt.SortOrder.AscendingOrder)
        self.header.set_sort_indicator(column_index, new_order)

    def update_header_indicators(self, *args):
        """Tint filtered columns and refresh header text"""
        self.header.filtered_columns.clear()
        for i in range(self.model.columnCount()):
            if self.view_model.state.is_active(self.model.column(i).column_key):
                self.header.filtered_columns.add(i)
        if self.model.columnCount():
            self.model.headerDataChanged.emit(Qt.Orientation.Horizontal, 0, self.model.columnCount() - 1)
        self.header.viewport().update()

    def clear_all_filters(self):
        """Clear all filters and the global search"""
        self.global_search_box.blockSignals(True)
        self.global_search_box.clear()
        self.global_search_box.blockSignals(False)
        self.view_model.clear_all_filters()
        self.update_header_indicators()

    def update_info_label(self):
        """Update the info label with current row counts"""
        total_rows = self.view_model.row_count()
        display_rows = self.view_model.display_count()
        active = len(self.view_model.state)

        if display_rows == total_rows:
            self.info_label.setText(f"Showing all {total_rows:,} rows")
        else:
            self.info_label.setText(
                f"Showing {display_rows:,} of {total_rows:,} rows "
                f"({active} column filter(s) active)"
            )

    # ----- context menus / clipboard ---------------------------------------

    def show_column_context_menu(self, pos):
        """Show context menu for column operations (hide/show, clear filter)"""
        column_index = self.header.logicalIndexAt(pos)
        if column_index < 0:
            return
        column_key = self.model.column(column_index).column_key

        menu = QMenu(self)
        hide_action = QAction("Hide Column", self)
        hide_action.triggered.connect(lambda: self.table_view.hideColumn(column_index))
        menu.addAction(hide_action)

        show_all_action = QAction("Show All Columns", self)
        show_all_action.triggered.connect(self.show_all_columns)
        menu.addAction(show_all_action)

        if self.view_model.state.is_active(column_key):
            menu.addSeparator()
            clear_action = QAction("Clear Filter", self)
            clear_action.triggered.connect(lambda: self.view_model.clear_filter(column_key))
            menu.addAction(clear_action)

        menu.exec(self.header.mapToGlobal(pos))

    def show_all_columns(self):
        """Show all hidden columns"""
        for i in range(self.model.columnCount()):
            self.table_view.showColumn(i)

    def show_table_context_menu(self, pos):
        """Show context menu for table cell operations"""
        menu = QMenu(self)
        index = self.table_view.indexAt(pos)
        if index.isValid():
            copy_cell_action = QAction("📋 Copy Cell", self)
            copy_cell_action.triggered.connect(lambda: self.copy_cell(index))
            menu.addAction(copy_cell_action)
            menu.addSeparator()

        display_rows = self.view_model.display_count()
        copy_visible_action = QAction(f"📋 Copy Visible Rows ({display_rows:,} rows)", self)
        copy_visible_action.triggered.connect(self.copy_visible_rows)
        menu.addAction(copy_visible_action)

        menu.exec(self.table_view.viewport().mapToGlobal(pos))

    def copy_cell(self, index: QModelIndex):
        """Copy the contents of a single cell to clipboard"""
        if not index.isValid():
            return
        cell_value = self.model.data(index, Qt.ItemDataRole.DisplayRole)
        QApplication.clipboard().setText(str(cell_value) if cell_value else "")
        logger.info(f"Copied cell value: {cell_value}")

    def visible_rows_text(self) -> str:
        """Displayed rows (display order) as tab-separated text with headers"""
        snapshot = self.view_model.snapshot
        frame = snapshot.store.take(self.view_model.display_positions)
        keys = [c.binding_key for c in snapshot.columns if snapshot.store.has_column(c.binding_key)]
        headers = [c.header for c in snapshot.columns if snapshot.store.has_column(c.binding_key)]
        return frame[keys].to_csv(sep='\t', index=False, header=headers)

    def copy_visible_rows(self):
        """Copy the displayed rows to clipboard (Excel-friendly)"""
        QApplication.clipboard().setText(self.visible_rows_text())
        display_rows = self.view_model.display_count()
        logger.info(f"Copied {display_rows:,} visible rows")
        QToolTip.showText(QCursor.pos(), f"✓ Copied {display_rows:,} rows to clipboard",
                          self.table_view, self.table_view.rect(), 2000)
