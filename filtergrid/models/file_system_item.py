"""
File System Item Model - one row of the sample file-system dataset
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class FileSystemItem:
    """A file, folder or shortcut as listed by a directory scan"""
    full_path: str = ""
    object_type: str = ""  # "File", "Folder", ".lnk", "Error"
    object_name: str = ""
    file_extension: str = ""
    size: Optional[int] = None  # None for folders, shortcuts and error rows
    date_last_modified: Optional[datetime] = None
