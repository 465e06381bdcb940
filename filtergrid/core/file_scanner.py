"""
File Scanner - lists a folder tree as FileSystemItem rows

Walks the tree depth first with os.scandir (stat info comes cached with each
entry). The root itself is not listed. Entries that cannot be read become
"Error" rows instead of stopping the scan; a cancelled scan returns the rows
collected so far.
"""

import logging
import os
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from filtergrid.models.file_system_item import FileSystemItem

logger = logging.getLogger(__name__)

SHORTCUT_EXTENSION = ".lnk"
PROGRESS_EVERY = 1000  # items between progress callbacks


@dataclass
class ScanResult:
    """Rows of one scan and how it ended"""
    root: str
    items: List[FileSystemItem] = field(default_factory=list)
    error_count: int = 0
    cancelled: bool = False
    elapsed_ms: float = 0.0

    @property
    def folder_count(self) -> int:
        return sum(1 for item in self.items if item.object_type == "Folder")

    @property
    def file_count(self) -> int:
        return sum(1 for item in self.items if item.object_type in ("File", SHORTCUT_EXTENSION))

    def status_text(self) -> str:
        state = "stopped" if self.cancelled else "complete"
        text = f"Scan {state}: {self.folder_count:,} folders, {self.file_count:,} files"
        if self.error_count:
            text += f", {self.error_count:,} inaccessible"
        return text


def error_item(path: str, kind: str, error: Exception) -> FileSystemItem:
    """Row standing in for an entry that could not be read"""
    name = os.path.basename(path.rstrip("\\/")) or path
    logger.debug(f"Cannot access {kind} {path}: {error}")
    return FileSystemItem(
        full_path=path,
        object_type="Error",
        object_name=f"Cannot access {kind}: {name}",
    )


def file_item(entry: os.DirEntry) -> FileSystemItem:
    stat = entry.stat(follow_symlinks=False)
    extension = os.path.splitext(entry.name)[1]
    if extension.lower() == SHORTCUT_EXTENSION:
        return FileSystemItem(
            full_path=entry.path,
            object_type=SHORTCUT_EXTENSION,
            object_name=entry.name,
            file_extension=extension,
            date_last_modified=datetime.fromtimestamp(stat.st_mtime),
        )
    return FileSystemItem(
        full_path=entry.path,
        object_type="File",
        object_name=entry.name,
        file_extension=extension,
        size=stat.st_size,
        date_last_modified=datetime.fromtimestamp(stat.st_mtime),
    )


def _list_directory(path: str) -> Tuple[List[os.DirEntry], List[os.DirEntry]]:
    """(folders, files) of one directory, each sorted case-insensitively"""
    folders, files = [], []
    with os.scandir(path) as entries:
        for entry in entries:
            # symlinked folders are listed as files so the walk cannot loop
            if entry.is_dir(follow_symlinks=False):
                folders.append(entry)
            else:
                files.append(entry)
    folders.sort(key=lambda e: e.name.lower())
    files.sort(key=lambda e: e.name.lower())
    return folders, files


def scan_directory(root: str, cancel_event: Optional[threading.Event] = None,
                   progress_callback: Optional[Callable[[int], None]] = None) -> ScanResult:
    """
    Recursively list every folder and file under root.

    Files directly under root come first. Each folder row is followed by
    its files and then its subfolders.

    Args:
        root: Folder to scan
        cancel_event: When set, the scan stops and returns what it has
        progress_callback: Called with the running item count

    Returns:
        ScanResult whose items load directly into a FilteredDataGridViewModel

    Raises:
        NotADirectoryError: If root is not an existing folder
        OSError: If root itself cannot be listed
    """
    if not os.path.isdir(root):
        raise NotADirectoryError(f"Not a folder: {root}")

    start_time = time.perf_counter()
    result = ScanResult(root=root)
    items = result.items
    next_progress = PROGRESS_EVERY

    def cancelled() -> bool:
        if cancel_event is not None and cancel_event.is_set():
            result.cancelled = True
        return result.cancelled

    folders, files = _list_directory(root)
    # reversed so folders pop in name order
    stack = list(reversed(folders))
    pending_files = files

    while True:
        for entry in pending_files:
            if cancelled():
                break
            try:
                items.append(file_item(entry))
            except OSError as e:
                items.append(error_item(entry.path, "file", e))
                result.error_count += 1
        if cancelled() or not stack:
            break

        if progress_callback is not None and len(items) >= next_progress:
            progress_callback(len(items))
            next_progress = len(items) + PROGRESS_EVERY

        folder = stack.pop()
        try:
            sub_folders, pending_files = _list_directory(folder.path)
            modified = datetime.fromtimestamp(folder.stat(follow_symlinks=False).st_mtime)
        except OSError as e:
            items.append(error_item(folder.path, "folder", e))
            result.error_count += 1
            pending_files = []
            continue

        items.append(FileSystemItem(
            full_path=folder.path,
            object_type="Folder",
            object_name=folder.name,
            date_last_modified=modified,
        ))
        stack.extend(reversed(sub_folders))

    result.elapsed_ms = (time.perf_counter() - start_time) * 1000
    rate = len(items) / (result.elapsed_ms / 1000) if result.elapsed_ms > 0 else float(len(items))
    logger.info(f"⏱️ [FILTER] Scanned {root}: {len(items):,} items ({result.error_count:,} errors"
                f"{', cancelled' if result.cancelled else ''}) in {result.elapsed_ms:.2f}ms "
                f"({rate:,.0f} items/sec)")
    if progress_callback is not None:
        progress_callback(len(items))
    return result
