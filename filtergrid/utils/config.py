"""Configuration management for filtergrid"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass
class Config:
    """Application configuration"""

    app_name: str = "FilterGrid Data Viewer"
    organization_name: str = "FilterGrid"
    version: str = "1.0.0"

    # Window settings
    window_width: int = 1400
    window_height: int = 850
    window_min_width: int = 900
    window_min_height: int = 600

    # Indexing and querying
    max_index_workers: int = min(8, os.cpu_count() or 1)
    async_recompute_threshold: int = 1_000_000  # rows; above this, recompute off the UI thread
    search_debounce_ms: int = 300
    slow_operation_ms: int = 100

    # Demo dataset
    default_row_count: int = 300_000
    distinct_values_per_column: int = 1000

    # Logging
    log_dir: Optional[str] = None
    log_level: str = "INFO"
    core_log_level: Optional[str] = None  # filtergrid.core; None = same as log_level


def load_config(app_dir: Optional[Path] = None) -> Config:
    """Load configuration (currently returns defaults)"""
    config = Config()

    # Set up default paths
    if app_dir is None:
        app_dir = Path.home() / '.filtergrid'
    app_dir.mkdir(parents=True, exist_ok=True)

    config.log_dir = str(app_dir / 'logs')
    Path(config.log_dir).mkdir(exist_ok=True)

    level = os.environ.get("FILTERGRID_LOG_LEVEL")
    if level:
        config.log_level = level.upper()
    core_level = os.environ.get("FILTERGRID_CORE_LOG_LEVEL")
    if core_level:
        config.core_log_level = core_level.upper()

    return config
