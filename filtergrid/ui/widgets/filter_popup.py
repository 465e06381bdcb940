"""FilterPopup - Excel-style column filter menu bound to a FilterPopupController"""

import logging
from typing import List, Optional

from PyQt6.QtCore import Qt, QAbstractListModel, QModelIndex, pyqtSignal, QTimer
from PyQt6.QtGui import QColor
from PyQt6.QtWidgets import (QWidget, QVBoxLayout, QHBoxLayout, QLineEdit, QPushButton, QMenu, QLabel,
                             QWidgetAction, QListView)

from filtergrid.core.errors import InvalidRangeError
from filtergrid.core.popup_controller import FilterPopupController, FilterValueEntry
from filtergrid.utils.constants import FilterKind, UIColors

logger = logging.getLogger(__name__)


def _is_checked(value) -> bool:
    # views hand over either the enum or its int value
    return value == Qt.CheckState.Checked or value == Qt.CheckState.Checked.value


class CheckableListModel(QAbstractListModel):
    """Lightweight model over the popup's value entries - only stores data, no widgets"""

    def __init__(self, entries: List[FilterValueEntry], parent=None):
        super().__init__(parent)
        self._entries = entries

    def set_entries(self, entries: List[FilterValueEntry]):
        self.beginResetModel()
        self._entries = entries
        self.endResetModel()

    def entry(self, row: int) -> FilterValueEntry:
        return self._entries[row]

    def rowCount(self, parent=QModelIndex()):
        return len(self._entries)

    def data(self, index, role=Qt.ItemDataRole.DisplayRole):
        if not index.isValid() or index.row() >= len(self._entries):
            return None

        entry = self._entries[index.row()]

        if role == Qt.ItemDataRole.DisplayRole:
            return f"{entry.display} ({entry.count:,})"
        elif role == Qt.ItemDataRole.CheckStateRole:
            return Qt.CheckState.Checked if entry.selected else Qt.CheckState.Unchecked
        elif role == Qt.ItemDataRole.ForegroundRole and not entry.enabled:
            # no rows under the other filters
            return QColor(UIColors.DISABLED)

        return None

    def setData(self, index, value, role=Qt.ItemDataRole.EditRole):
        if not index.isValid() or index.row() >= len(self._entries):
            return False

        if role == Qt.ItemDataRole.CheckStateRole:
            self._entries[index.row()].selected = _is_checked(value)
            self.dataChanged.emit(index, index, [role])
            return True

        return False

    def flags(self, index):
        if not index.isValid():
            return Qt.ItemFlag.NoItemFlags
        return Qt.ItemFlag.ItemIsEnabled | Qt.ItemFlag.ItemIsUserCheckable | Qt.ItemFlag.ItemIsSelectable

    def refresh_checks(self):
        """Repaint check boxes after a bulk selection change"""
        if self._entries:
            self.dataChanged.emit(self.index(0), self.index(len(self._entries) - 1),
                                  [Qt.ItemDataRole.CheckStateRole])


def _button_style(color: str, hover: str, padding: str = "2px 8px", font_size: str = "10px") -> str:
    return f"""
        QPushButton {{
            font-size: {font_size};
            padding: {padding};
            background-color: {color};
            color: white;
            border: none;
            border-radius: 3px;
        }}
        QPushButton:hover {{
            background-color: {hover};
        }}
    """


INPUT_STYLE = """
    QLineEdit {
        padding: 2px 6px;
        font-size: 10px;
        border: 1px solid #ccc;
        border-radius: 3px;
    }
    QLineEdit:focus {
        border: 1px solid #3498db;
    }
"""


class FilterPopup(QMenu):
    """Filter popup using a QListView so thousands of values render instantly"""

    filter_applied = pyqtSignal(str)  # column_key

    def __init__(self, controller: FilterPopupController, parent=None):
        super().__init__(parent)
        self.controller = controller
        if not controller.is_open:
            controller.open()

        self.model = CheckableListModel(controller.visible_entries)
        self.text_box: Optional[QLineEdit] = None
        self.lower_box: Optional[QLineEdit] = None
        self.upper_box: Optional[QLineEdit] = None

        self.init_ui()
        self.aboutToHide.connect(self._on_about_to_hide)

    @property
    def column_key(self) -> str:
        return self.controller.column_key

    def init_ui(self):
        """Initialize the filter popup UI"""
        container = QWidget()
        layout = QVBoxLayout(container)
        layout.setContentsMargins(5, 5, 5, 5)
        layout.setSpacing(3)

        # Top bar with column name and close button
        top_bar = QHBoxLayout()
        top_bar.setContentsMargins(0, 0, 0, 0)
        title = QLabel(self.controller.column.header)
        title.setStyleSheet("font-size: 10px; font-weight: bold;")
        top_bar.addWidget(title)
        top_bar.addStretch()

        close_btn = QPushButton("✕")
        close_btn.setFixedSize(20, 20)
        close_btn.setStyleSheet("""
            QPushButton {
                background-color: transparent;
                border: none;
                color: #666;
                font-size: 14px;
                font-weight: bold;
                padding: 0px;
            }
            QPushButton:hover {
                color: #000;
                background-color: #f0f0f0;
                border-radius: 3px;
            }
        """)
        close_btn.clicked.connect(self.close)
        top_bar.addWidget(close_btn)
        layout.addLayout(top_bar)

        kind = self.controller.column.filter_kind
        if kind == FilterKind.TEXT_SEARCH:
            self.text_box = QLineEdit(self.controller.draft_text)
            self.text_box.setPlaceholderText("Contains...")
            self.text_box.setFixedHeight(24)
            self.text_box.setStyleSheet(INPUT_STYLE)
            self.text_box.returnPressed.connect(self.apply_filter)
            layout.addWidget(self.text_box)
        elif kind in FilterKind.RANGE_KINDS:
            range_layout = QHBoxLayout()
            range_layout.setSpacing(3)
            is_date = kind == FilterKind.DATE_RANGE
            self.lower_box = QLineEdit(self._bound_text(self.controller.draft_lower))
            self.lower_box.setPlaceholderText("From (YYYY-MM-DD)" if is_date else "Min")
            self.upper_box = QLineEdit(self._bound_text(self.controller.draft_upper))
            self.upper_box.setPlaceholderText("To (YYYY-MM-DD)" if is_date else "Max")
            for box in (self.lower_box, self.upper_box):
                box.setFixedHeight(24)
                box.setStyleSheet(INPUT_STYLE)
                box.returnPressed.connect(self.apply_filter)
                range_layout.addWidget(box)
            layout.addLayout(range_layout)

        # Search box
        self.search_box = QLineEdit()
        self.search_box.setPlaceholderText("🔍 Search values...")
        self.search_box.setFixedHeight(24)
        self.search_box.setStyleSheet(INPUT_STYLE)
        self.search_box.textChanged.connect(self.on_search_changed)
        self.search_box.returnPressed.connect(self.apply_filter)
        layout.addWidget(self.search_box)

        # Control buttons row
        controls_layout = QHBoxLayout()
        controls_layout.setSpacing(5)

        clear_btn = QPushButton("Clear Filter")
        clear_btn.setStyleSheet(_button_style(UIColors.DANGER, UIColors.DANGER_DARK))
        clear_btn.clicked.connect(self.clear_filter)
        controls_layout.addWidget(clear_btn)

        # Select All / Deselect All toggle
        self.select_all_btn = QPushButton("Select All")
        self.select_all_btn.setStyleSheet(_button_style(UIColors.PRIMARY, UIColors.PRIMARY_DARK))
        self.select_all_btn.clicked.connect(self.toggle_select_all)
        controls_layout.addWidget(self.select_all_btn)

        controls_layout.addStretch()
        layout.addLayout(controls_layout)

        # List view for values (virtual rendering)
        self.list_view = QListView()
        self.list_view.setModel(self.model)
        self.list_view.setMinimumWidth(220)
        self.list_view.setMaximumWidth(420)
        self.list_view.setMinimumHeight(200)
        self.list_view.setMaximumHeight(400)
        self.list_view.setStyleSheet("""
            QListView {
                font-size: 10px;
                border: 1px solid #ccc;
                background-color: white;
            }
            QListView::item {
                padding: 2px;
            }
            QListView::item:hover {
                background-color: #e8f0fa;
            }
        """)
        self.model.dataChanged.connect(self.on_model_data_changed)
        layout.addWidget(self.list_view)

        # Info label
        self.info_label = QLabel(self.controller.info_text())
        self.info_label.setStyleSheet("font-size: 9px; color: #666; padding: 2px;")
        layout.addWidget(self.info_label)

        # Error label (invalid range, unparsable bound)
        self.error_label = QLabel("")
        self.error_label.setStyleSheet(f"font-size: 9px; color: {UIColors.DANGER}; padding: 2px;")
        self.error_label.setWordWrap(True)
        self.error_label.hide()
        layout.addWidget(self.error_label)

        ok_btn = QPushButton("OK")
        ok_btn.setStyleSheet(_button_style(UIColors.SUCCESS, UIColors.SUCCESS_DARK, "5px 15px", "11px"))
        ok_btn.clicked.connect(self.apply_filter)
        layout.addWidget(ok_btn)

        action = QWidgetAction(self)
        action.setDefaultWidget(container)
        self.addAction(action)

        self.setStyleSheet(f"""
            QMenu {{
                background-color: white;
                border: 2px solid {UIColors.PRIMARY};
                border-radius: 5px;
            }}
        """)

        # Auto-focus the most relevant input
        focus_target = self.text_box or self.lower_box or self.search_box
        QTimer.singleShot(0, focus_target.setFocus)

        self.update_select_all_button()

    @staticmethod
    def _bound_text(value) -> str:
        if value is None:
            return ""
        if hasattr(value, "strftime"):
            if getattr(value, "hour", 0) or getattr(value, "minute", 0) or getattr(value, "second", 0):
                return value.strftime("%Y-%m-%d %H:%M:%S")
            return value.strftime("%Y-%m-%d")
        return f"{value:g}" if isinstance(value, float) else str(value)

    def on_search_changed(self, text: str):
        """Narrow the list to values containing text"""
        self.controller.set_search_text(text)
        self.model.set_entries(self.controller.visible_entries)
        self.info_label.setText(self.controller.info_text())
        self.update_select_all_button()

    def on_model_data_changed(self):
        """Update button state when checks change"""
        self.update_select_all_button()

    def update_select_all_button(self):
        """Update the Select All button text based on the displayed entries"""
        entries = self.controller.visible_entries
        if entries and all(e.selected for e in entries):
            self.select_all_btn.setText("Deselect All")
        else:
            self.select_all_btn.setText("Select All")

    def toggle_select_all(self):
        """Toggle between select all and deselect all (displayed entries only)"""
        entries = self.controller.visible_entries
        if entries and all(e.selected for e in entries):
            self.controller.deselect_all()
        else:
            self.controller.select_all()
        self.model.refresh_checks()
        self.update_select_all_button()

    def _show_error(self, message: str):
        self.error_label.setText(message)
        self.error_label.show()

    def clear_filter(self):
        """Remove this column's filter and close"""
        self.controller.clear_filter()
        self.filter_applied.emit(self.column_key)
        self.close()

    def apply_filter(self):
        """Commit the draft; on invalid input the popup stays open and nothing changes"""
        try:
            if self.text_box is not None:
                self.controller.set_text(self.text_box.text())
            if self.lower_box is not None:
                self.controller.set_range(self.lower_box.text(), self.upper_box.text())
            self.controller.apply()
        except InvalidRangeError as e:
            self._show_error(str(e))
            return
        except ValueError as e:
            logger.warning(f"Invalid filter input for '{self.column_key}': {e}")
            self._show_error(str(e))
            return

        self.filter_applied.emit(self.column_key)
        self.close()

    def _on_about_to_hide(self):
        # closed without OK: drop the draft
        if self.controller.is_open:
            self.controller.cancel()
