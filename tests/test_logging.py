"""Tests for logging setup."""

import logging
from pathlib import Path

import pytest

from task_siphon.logging import PACKAGE_LOGGER, get_logger, setup_logging


@pytest.fixture(autouse=True)
def clean_package_logger():
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    saved = list(package_logger.handlers)
    yield
    for handler in package_logger.handlers:
        if handler not in saved:
            handler.close()
    package_logger.handlers = saved
    package_logger.setLevel(logging.NOTSET)


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_module_loggers_reach_log_file(self, tmp_path: Path) -> None:
        """Records from any task_siphon module land in the entry point's file."""
        setup_logging("sync", log_dir=tmp_path, console=False)

        get_logger("dumper").info("Dumped session: source=codex session=s1")
        for handler in logging.getLogger(PACKAGE_LOGGER).handlers:
            handler.flush()

        content = (tmp_path / "sync.log").read_text()
        assert "task_siphon.dumper: Dumped session: source=codex session=s1" in content
        assert "[INFO]" in content

    def test_repeated_setup_does_not_duplicate_handlers(self, tmp_path: Path) -> None:
        setup_logging("sync", log_dir=tmp_path)
        count = len(logging.getLogger(PACKAGE_LOGGER).handlers)

        setup_logging("sync", log_dir=tmp_path)

        assert len(logging.getLogger(PACKAGE_LOGGER).handlers) == count

    def test_creates_log_dir(self, tmp_path: Path) -> None:
        log_dir = tmp_path / "nested" / "logs"

        logger = setup_logging("query", log_dir=log_dir, console=False)

        assert log_dir.is_dir()
        assert logger.name == "task_siphon.query"


class TestGetLogger:
    """Tests for get_logger function."""

    def test_prefixes_name(self) -> None:
        assert get_logger("cache").name == "task_siphon.cache"
