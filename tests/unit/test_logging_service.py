"""Unit tests for logging setup."""

import logging

import pytest

from tenancy.services.logging import get_log_level, setup_logging

pytestmark = pytest.mark.unit


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    level = root.level
    yield root
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(level)


class TestLogging:
    def test_level_from_settings(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "warning")
        assert get_log_level() == logging.WARNING

    def test_unknown_level_falls_back_to_info(self):
        assert get_log_level("chatty") == logging.INFO

    def test_setup_writes_to_file(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "logs" / "tenancy.log"
        logger = setup_logging(str(log_file), "DEBUG")
        logger.info("hello")

        assert len(restore_root_logger.handlers) == 2
        assert restore_root_logger.level == logging.DEBUG
        for handler in restore_root_logger.handlers:
            handler.flush()
        assert "tenancy - INFO - hello" in log_file.read_text()

    def test_setup_twice_keeps_two_handlers(self, tmp_path, restore_root_logger):
        setup_logging(str(tmp_path / "a.log"), "INFO")
        setup_logging(str(tmp_path / "b.log"), "INFO")
        assert len(restore_root_logger.handlers) == 2

    def test_sql_echo_stays_quiet(self, tmp_path, restore_root_logger):
        setup_logging(str(tmp_path / "t.log"), "DEBUG")
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
