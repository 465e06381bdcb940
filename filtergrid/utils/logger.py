"""Logging configuration for filtergrid

Engine modules under filtergrid.core log their per-operation timings
("⏱️ [FILTER] ...") at DEBUG. Their level is set separately from the rest
of the application so the timings can be switched on without turning every
other logger up to DEBUG.
"""

import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Optional

CORE_LOGGER = "filtergrid.core"
LOG_FILE_NAME = "filtergrid.log"


def parse_level(name: Optional[str], default: int = logging.INFO) -> int:
    """Map a level name such as "debug" or "WARNING" to its logging constant"""
    if not name:
        return default
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else default


def setup_logging(log_dir: str = None, log_level: str = "INFO", core_log_level: Optional[str] = None) -> Path:
    """
    Set up logging configuration

    Args:
        log_dir: Directory for log files. If None, uses ~/.filtergrid/logs
        log_level: Level for the application (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        core_log_level: Level for the filtering engine (filtergrid.core);
            follows log_level when not given

    Returns:
        Path of the active log file
    """
    if log_dir is None:
        log_dir = Path.home() / '.filtergrid' / 'logs'
    else:
        log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    level = parse_level(log_level)
    core_level = parse_level(core_log_level, default=level)

    # Configure root logger
    logger = logging.getLogger()
    logger.setLevel(min(level, core_level))

    # Clear existing handlers
    logger.handlers.clear()

    # Application loggers follow log_level; the engine gets its own level
    logging.getLogger("filtergrid").setLevel(level)
    logging.getLogger(CORE_LOGGER).setLevel(core_level)

    # Console stays at INFO or above; DEBUG timings only reach the file
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(max(level, logging.INFO))
    console_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    # File handler with rotation
    log_file = log_dir / LOG_FILE_NAME
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=30,
        encoding='utf-8'
    )
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s - [%(filename)s:%(lineno)d]',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    file_handler.setFormatter(file_formatter)
    logger.addHandler(file_handler)

    logger.info("Logging initialized")
    logger.info(f"Log file: {log_file} (application {logging.getLevelName(level)}, "
                f"engine {logging.getLevelName(core_level)})")
    return log_file
