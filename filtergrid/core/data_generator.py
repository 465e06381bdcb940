"""
Test data generator - synthesizes large file-system datasets for filter
performance testing (300k+ rows) and reports generation throughput.
"""

import logging
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import numpy as np
import pandas as pd

from filtergrid.models.column_definition import ColumnDefinition
from filtergrid.models.file_system_item import FileSystemItem
from filtergrid.utils.constants import FilterKind

logger = logging.getLogger(__name__)

PROGRESS_INTERVAL = 50_000

FILE_EXTENSIONS = [
    ".txt", ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
    ".jpg", ".png", ".gif", ".bmp", ".mp4", ".avi", ".mp3", ".wav",
    ".zip", ".rar", ".7z", ".tar", ".cs", ".js", ".py", ".java",
    ".html", ".css", ".xml", ".json", ".sql", ".exe", ".dll", ".log"
]

FOLDER_NAMES = [
    "Documents", "Downloads", "Pictures", "Videos", "Music", "Desktop",
    "Projects", "Work", "Personal", "Archive", "Backup", "Temp",
    "Development", "Resources", "Reports", "Data", "Config", "Logs"
]

FILE_NAME_PREFIXES = [
    "Report", "Document", "Image", "Photo", "Video", "Audio", "Backup",
    "Project", "File", "Data", "Config", "Log", "Archive", "Temp",
    "Draft", "Final", "Copy", "Original", "Updated", "Modified"
]

# (probability upper bound in %, low bytes, high bytes)
SIZE_BANDS = [
    (50, 1024, 100 * 1024),                          # small
    (80, 100 * 1024, 10 * 1024 * 1024),              # medium
    (95, 10 * 1024 * 1024, 100 * 1024 * 1024),       # large
    (100, 100 * 1024 * 1024, 1024 * 1024 * 1024),    # very large
]

COLUMN_ORDER = ["full_path", "object_type", "object_name", "file_extension", "size", "date_last_modified"]


def file_system_columns() -> List[ColumnDefinition]:
    """Column definitions for file-system rows, generated or scanned"""
    return [
        ColumnDefinition("Full Path", "full_path", filter_kind=FilterKind.TEXT_SEARCH, width=420),
        ColumnDefinition("Object Type", "object_type", width=100),
        ColumnDefinition("Object Name", "object_name", width=220),
        ColumnDefinition("File Extension", "file_extension", width=110),
        ColumnDefinition("Size", "size", filter_kind=FilterKind.NUMERIC_RANGE, string_format="{:,}", width=120),
        ColumnDefinition("Date Last Modified", "date_last_modified", filter_kind=FilterKind.DATE_RANGE,
                         string_format="{:%Y-%m-%d %H:%M:%S}", width=170),
    ]


def _distinct_paths(rng: np.random.Generator, count: int) -> np.ndarray:
    base_path = "C:\\Users\\TestUser"
    paths = []
    for i in range(count):
        depth = int(rng.integers(1, 5))  # 1-4 levels deep
        parts = [base_path]
        for _ in range(depth):
            folder = FOLDER_NAMES[int(rng.integers(len(FOLDER_NAMES)))]
            parts.append(folder + (f"_{i // 100}" if i % 100 == 0 else ""))
        paths.append("\\".join(parts))
    return np.array(paths, dtype=object)


def _distinct_names(rng: np.random.Generator, count: int) -> np.ndarray:
    names = []
    for i in range(count):
        prefix = FILE_NAME_PREFIXES[int(rng.integers(len(FILE_NAME_PREFIXES)))]
        suffix = int(rng.integers(1000, 10000))
        year = int(rng.integers(2020, 2026))
        pattern = int(rng.integers(5))
        if pattern == 0:
            names.append(f"{prefix}_{suffix}")
        elif pattern == 1:
            names.append(f"{prefix}_{year}_{suffix}")
        elif pattern == 2:
            names.append(f"{prefix}_{year}")
        elif pattern == 3:
            names.append(f"{prefix}_{i % 1000}")
        else:
            names.append(f"{prefix}{suffix}")
    return np.array(names, dtype=object)


def _generate_chunk(rng: np.random.Generator, size: int, paths: np.ndarray, names: np.ndarray,
                    reference_time: pd.Timestamp) -> pd.DataFrame:
    type_roll = rng.integers(100, size=size)
    object_type = np.where(type_roll < 80, "File", np.where(type_roll < 95, "Folder", ".lnk")).astype(object)
    is_file = object_type == "File"

    extension = np.array(FILE_EXTENSIONS, dtype=object)[rng.integers(len(FILE_EXTENSIONS), size=size)]
    extension = np.where(is_file, extension, "")

    object_name = pd.Series(names[rng.integers(len(names), size=size)]) + pd.Series(extension)
    full_path = pd.Series(paths[rng.integers(len(paths), size=size)]) + "\\" + object_name

    size_roll = rng.integers(100, size=size)
    sizes = np.zeros(size, dtype=np.int64)
    lower_bound = 0
    for upper_pct, low, high in SIZE_BANDS:
        band = (size_roll >= lower_bound) & (size_roll < upper_pct)
        sizes[band] = rng.integers(low, high, size=int(band.sum()))
        lower_bound = upper_pct
    size_column = pd.array(sizes, dtype="Int64")
    size_column[~is_file] = pd.NA

    days_ago = rng.integers(0, 730, size=size)
    hours = rng.integers(0, 24, size=size)
    modified = reference_time - pd.to_timedelta(days_ago, unit="D") + pd.to_timedelta(hours, unit="h")

    return pd.DataFrame({
        "full_path": full_path.to_numpy(dtype=object),
        "object_type": object_type,
        "object_name": object_name.to_numpy(dtype=object),
        "file_extension": extension,
        "size": size_column,
        "date_last_modified": modified,
    })


def generate_large_dataset(row_count: int = 300_000, distinct_values_per_column: int = 1000,
                           seed: int = 42, reference_time: Optional[datetime] = None,
                           progress_callback: Optional[Callable[[int, int], None]] = None) -> pd.DataFrame:
    """
    Generate a large file-system dataset for performance testing.

    Args:
        row_count: Number of rows to generate
        distinct_values_per_column: Variety of paths/names; lower = more duplicates
        seed: Random seed (same seed + reference_time = same data)
        reference_time: "Now" for modification dates; defaults to the current time
        progress_callback: Optional callable(rows_done, row_count)

    Returns:
        DataFrame with the columns described by file_system_columns()
    """
    start_time = time.perf_counter()
    logger.info(f"Generating {row_count:,} rows with ~{distinct_values_per_column} distinct values per column...")

    rng = np.random.default_rng(seed)
    reference = pd.Timestamp(reference_time or datetime.now()).floor("s")
    paths = _distinct_paths(rng, max(1, distinct_values_per_column))
    names = _distinct_names(rng, max(1, distinct_values_per_column))

    chunks = []
    done = 0
    while done < row_count:
        size = min(PROGRESS_INTERVAL, row_count - done)
        chunks.append(_generate_chunk(rng, size, paths, names, reference))
        done += size
        if done % PROGRESS_INTERVAL == 0 and done < row_count:
            logger.info(f"Generated {done:,} rows...")
        if progress_callback is not None:
            progress_callback(done, row_count)

    if chunks:
        frame = pd.concat(chunks, ignore_index=True)
    else:
        frame = pd.DataFrame({name: pd.Series(dtype=object) for name in COLUMN_ORDER})

    elapsed = time.perf_counter() - start_time
    rate = row_count / elapsed if elapsed > 0 else float(row_count)
    logger.info(f"Generated {row_count:,} rows in {elapsed * 1000:,.0f}ms ({rate:,.0f} rows/sec)")
    return frame


def generate_small_dataset(row_count: int = 1000, seed: int = 42,
                           reference_time: Optional[datetime] = None) -> pd.DataFrame:
    """Small dataset for quick testing"""
    return generate_large_dataset(row_count, distinct_values_per_column=100, seed=seed,
                                  reference_time=reference_time)


def generate_filter_test_dataset(row_count: int = 300_000, distinct_folders: int = 50,
                                 seed: int = 42) -> pd.DataFrame:
    """Low-variety dataset: more rows per distinct value stresses the filters"""
    logger.info(f"Generating filter test dataset: {row_count:,} rows")
    return generate_large_dataset(row_count, distinct_values_per_column=max(distinct_folders, 50), seed=seed)


def generate_items(row_count: int = 1000, seed: int = 42,
                   reference_time: Optional[datetime] = None) -> List[FileSystemItem]:
    """Generated rows as FileSystemItem objects"""
    frame = generate_small_dataset(row_count, seed=seed, reference_time=reference_time)
    items = []
    for row in frame.itertuples(index=False):
        items.append(FileSystemItem(
            full_path=row.full_path,
            object_type=row.object_type,
            object_name=row.object_name,
            file_extension=row.file_extension,
            size=None if pd.isna(row.size) else int(row.size),
            date_last_modified=row.date_last_modified.to_pydatetime()
        ))
    return items


def dataset_stats(frame: pd.DataFrame) -> Dict[str, Any]:
    """Summary statistics of a generated dataset"""
    stats: Dict[str, Any] = {"total_rows": len(frame)}
    if frame.empty:
        return stats

    for column in ("full_path", "object_type", "object_name", "file_extension"):
        if column in frame.columns:
            stats[f"distinct_{column}"] = int(frame[column].nunique(dropna=True))

    if "size" in frame.columns:
        sizes = frame["size"].dropna()
        stats["files_with_size"] = len(sizes)
        if len(sizes):
            stats["average_size"] = float(sizes.mean())
            stats["min_size"] = int(sizes.min())
            stats["max_size"] = int(sizes.max())

    if "date_last_modified" in frame.columns:
        dates = frame["date_last_modified"].dropna()
        stats["items_with_date"] = len(dates)
        if len(dates):
            stats["oldest"] = dates.min()
            stats["newest"] = dates.max()
    return stats


def log_dataset_stats(frame: pd.DataFrame) -> Dict[str, Any]:
    """Log dataset statistics (useful for verifying data quality)"""
    stats = dataset_stats(frame)
    if stats["total_rows"] == 0:
        logger.info("Dataset is empty")
        return stats

    logger.info("=== Dataset Statistics ===")
    logger.info(f"Total rows: {stats['total_rows']:,}")
    for column in ("full_path", "object_type", "object_name", "file_extension"):
        key = f"distinct_{column}"
        if key in stats:
            logger.info(f"Distinct {column}: {stats[key]:,}")
    if stats.get("files_with_size"):
        logger.info(f"Files with size: {stats['files_with_size']:,}")
        logger.info(f"Average size: {stats['average_size']:,.0f} bytes")
        logger.info(f"Min size: {stats['min_size']:,} bytes")
        logger.info(f"Max size: {stats['max_size']:,} bytes")
    if stats.get("items_with_date"):
        logger.info(f"Items with date: {stats['items_with_date']:,}")
        logger.info(f"Oldest: {stats['oldest']:%Y-%m-%d}")
        logger.info(f"Newest: {stats['newest']:%Y-%m-%d}")
    logger.info("==========================")
    return stats
