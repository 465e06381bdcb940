"""
UI Widgets Package

Filterable grid components for filtergrid.
"""
from .filter_popup import FilterPopup
from .filter_table_view import FilterTableView

__all__ = ['FilterPopup', 'FilterTableView']
