"""Row Store - ordered, immutable-once-loaded table of rows backed by a DataFrame"""

import dataclasses
import logging
import time
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

RowsLike = Union[pd.DataFrame, Sequence[Dict[str, Any]], Sequence[Any]]


def rows_to_frame(rows: RowsLike) -> pd.DataFrame:
    """
    Convert a bulk row set to a DataFrame whose index equals row position.

    Args:
        rows: DataFrame, sequence of dicts, or sequence of dataclass instances

    Returns:
        New DataFrame with a RangeIndex (the caller's data is never mutated)
    """
    if isinstance(rows, pd.DataFrame):
        frame = rows.reset_index(drop=True)
    elif len(rows) == 0:
        frame = pd.DataFrame()
    elif dataclasses.is_dataclass(rows[0]):
        frame = pd.DataFrame([dataclasses.asdict(row) for row in rows])
    else:
        frame = pd.DataFrame.from_records(list(rows))

    # Object columns holding only datetimes (e.g. nullable dates) become datetime64
    for column in frame.columns:
        series = frame[column]
        if pd.api.types.is_object_dtype(series) and pd.api.types.infer_dtype(series, skipna=True) in ("datetime", "datetime64", "date"):
            frame[column] = pd.to_datetime(series)
        elif series.dtype == np.float64 and series.isna().any():
            # ints with missing values arrive as float; keep them integral
            present = series.dropna()
            if len(present) and np.isfinite(present).all() and (present == np.floor(present)).all():
                frame[column] = series.astype("Int64")
    return frame


class RowStore:
    """Ordered sequence of rows. Row position is the universal row identifier."""

    def __init__(self, rows: Optional[RowsLike] = None):
        self._frame = pd.DataFrame()
        if rows is not None:
            self.load(rows)

    def load(self, rows: RowsLike):
        """Replace any prior dataset with rows (O(n); run off the UI thread for large n)"""
        start_time = time.perf_counter()
        frame = rows_to_frame(rows)
        # Swap in one assignment so readers see either the old or the new frame
        self._frame = frame
        elapsed = time.perf_counter() - start_time
        rate = len(frame) / elapsed if elapsed > 0 else float(len(frame))
        logger.info(f"⏱️ [FILTER] Row store loaded {len(frame):,} rows, {len(frame.columns)} columns "
                    f"in {elapsed * 1000:.2f}ms ({rate:,.0f} rows/sec)")

    def get(self, position: int) -> Dict[str, Any]:
        """Return the row at position as a dict of field -> value"""
        if position < 0 or position >= len(self._frame):
            raise IndexError(f"Row position {position} out of range (0..{len(self._frame) - 1})")
        return self._frame.iloc[position].to_dict()

    def count(self) -> int:
        return len(self._frame)

    def __len__(self) -> int:
        return len(self._frame)

    @property
    def columns(self) -> List[str]:
        return [str(c) for c in self._frame.columns]

    @property
    def frame(self) -> pd.DataFrame:
        """Underlying DataFrame. Treat as read-only."""
        return self._frame

    def has_column(self, binding_key: str) -> bool:
        return binding_key in self._frame.columns

    def column(self, binding_key: str) -> pd.Series:
        return self._frame[binding_key]

    def value_at(self, position: int, binding_key: str) -> Any:
        return self._frame[binding_key].iat[position]

    def take(self, positions: Union[Sequence[int], np.ndarray]) -> pd.DataFrame:
        """Rows at the given positions, in the given order"""
        return self._frame.iloc[np.asarray(positions, dtype=np.int64)]
