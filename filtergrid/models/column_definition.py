"""
Column Definition Model - describes a filterable grid column
"""

from dataclasses import dataclass
from typing import Any

import numpy as np
import pandas as pd

from filtergrid.utils.constants import FilterKind, BLANK_DISPLAY


def is_blank(value: Any) -> bool:
    """True for None, NaN, NaT and empty/whitespace strings"""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if pd.api.types.is_scalar(value):
        return bool(pd.isna(value))
    return False


def is_text_dtype(series: pd.Series) -> bool:
    """True for object columns and pandas string columns (the default for text on pandas 3)"""
    return pd.api.types.is_object_dtype(series) or pd.api.types.is_string_dtype(series)


def normalize_value(value: Any) -> Any:
    """Collapse every blank representation to None and unwrap numpy scalars"""
    if is_blank(value):
        return None
    if isinstance(value, np.datetime64):
        return pd.Timestamp(value)
    if isinstance(value, np.generic):
        # numpy scalar -> python scalar so dict keys compare with plain ints/floats
        return value.item()
    return value


def display_value(value: Any) -> str:
    """Text shown for a distinct value in filter lists"""
    if is_blank(value):
        return BLANK_DISPLAY
    return str(value)


@dataclass(frozen=True)
class ColumnDefinition:
    """Metadata for one column of a filterable grid"""
    header: str
    binding_key: str
    column_key: str = ""
    filter_kind: str = FilterKind.CHECKLIST
    is_filterable: bool = True
    string_format: str = ""  # e.g. "{:,}" or "{:%Y-%m-%d %H:%M:%S}"
    width: int = 0  # 0 = let the view decide

    def __post_init__(self):
        if not self.column_key:
            object.__setattr__(self, "column_key", self.binding_key)
        if self.filter_kind not in FilterKind.ALL:
            raise ValueError(f"Unknown filter kind '{self.filter_kind}' for column '{self.column_key}'")

    @property
    def is_range(self) -> bool:
        return self.filter_kind in FilterKind.RANGE_KINDS

    def format_value(self, value: Any) -> str:
        """Render a cell value using string_format; blanks render empty"""
        if is_blank(value):
            return ""
        if self.string_format:
            try:
                return self.string_format.format(value)
            except (ValueError, TypeError):
                pass
        return str(value)

    def to_dict(self) -> dict:
        return {
            'header': self.header,
            'binding_key': self.binding_key,
            'column_key': self.column_key,
            'filter_kind': self.filter_kind,
            'is_filterable': self.is_filterable,
            'string_format': self.string_format,
            'width': self.width
        }

    @staticmethod
    def from_dict(data: dict) -> 'ColumnDefinition':
        return ColumnDefinition(
            header=data['header'],
            binding_key=data['binding_key'],
            column_key=data.get('column_key', ''),
            filter_kind=data.get('filter_kind', FilterKind.CHECKLIST),
            is_filterable=data.get('is_filterable', True),
            string_format=data.get('string_format', ''),
            width=data.get('width', 0)
        )
