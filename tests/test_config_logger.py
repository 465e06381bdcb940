"""Tests for configuration loading and logging setup"""

import logging

import pytest

from filtergrid.utils.config import Config, load_config
from filtergrid.utils.logger import CORE_LOGGER, parse_level, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    package_levels = {name: logging.getLogger(name).level for name in ("filtergrid", CORE_LOGGER)}
    yield
    for name, package_level in package_levels.items():
        logging.getLogger(name).setLevel(package_level)
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_defaults():
    config = Config()
    assert config.max_index_workers >= 1
    assert config.search_debounce_ms == 300
    assert config.log_level == "INFO"


def test_load_config_creates_log_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("FILTERGRID_LOG_LEVEL", "debug")
    config = load_config(tmp_path / "app")
    assert config.log_dir == str(tmp_path / "app" / "logs")
    assert (tmp_path / "app" / "logs").is_dir()
    assert config.log_level == "DEBUG"


def test_setup_logging_writes_file(tmp_path, restore_root_logger):
    log_file = setup_logging(str(tmp_path), "DEBUG")
    assert log_file == tmp_path / "filtergrid.log"
    logging.getLogger("filtergrid.test").debug("hello from the grid")
    for handler in logging.getLogger().handlers:
        handler.flush()
    assert "hello from the grid" in log_file.read_text(encoding="utf-8")
    assert logging.getLogger().level == logging.DEBUG


def test_engine_level_is_separate(tmp_path, restore_root_logger):
    log_file = setup_logging(str(tmp_path), "WARNING", core_log_level="debug")
    assert logging.getLogger("filtergrid").level == logging.WARNING
    assert logging.getLogger(CORE_LOGGER).level == logging.DEBUG
    assert logging.getLogger().level == logging.DEBUG

    logging.getLogger("filtergrid.core.query_engine").debug("engine timing line")
    logging.getLogger("filtergrid.ui.view_model").info("view model chatter")
    for handler in logging.getLogger().handlers:
        handler.flush()
    text = log_file.read_text(encoding="utf-8")
    assert "engine timing line" in text
    assert "view model chatter" not in text


def test_engine_level_follows_application_level(tmp_path, restore_root_logger):
    setup_logging(str(tmp_path), "ERROR")
    assert logging.getLogger(CORE_LOGGER).level == logging.ERROR


def test_parse_level():
    assert parse_level("debug") == logging.DEBUG
    assert parse_level(" Warning ") == logging.WARNING
    assert parse_level("chatty") == logging.INFO
    assert parse_level(None, default=logging.ERROR) == logging.ERROR


def test_core_log_level_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("FILTERGRID_CORE_LOG_LEVEL", "debug")
    config = load_config(tmp_path / "app")
    assert config.core_log_level == "DEBUG"
