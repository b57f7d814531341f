"""Logging configuration for task-siphon.

Entry points call setup_logging() once; library modules only use
get_logger(). Handlers are attached to the package logger, so records from
every task_siphon.* module end up in the entry point's log file under
~/task-siphon/logs/.
"""

import logging
import os
import sys
from pathlib import Path

PACKAGE_LOGGER = "task_siphon"
DEFAULT_LOG_DIR = Path.home() / "task-siphon" / "logs"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _has_file_handler(logger: logging.Logger, path: str) -> bool:
    return any(
        isinstance(handler, logging.FileHandler) and handler.baseFilename == path
        for handler in logger.handlers
    )


def _has_stderr_handler(logger: logging.Logger) -> bool:
    return any(
        type(handler) is logging.StreamHandler and handler.stream is sys.stderr
        for handler in logger.handlers
    )


def setup_logging(
    name: str,
    log_dir: Path | None = None,
    level: int = logging.INFO,
    console: bool = True,
) -> logging.Logger:
    """Configure logging for a task-siphon entry point.

    Args:
        name: Entry point name, used for the log filename (e.g. "sync")
        log_dir: Directory for log files (defaults to ~/task-siphon/logs/)
        level: Logging level (defaults to INFO)
        console: Whether to also log to stderr

    Returns:
        The task_siphon.<name> logger
    """
    if log_dir is None:
        log_dir = DEFAULT_LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(level)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    log_file = os.path.abspath(log_dir / f"{name}.log")
    if not _has_file_handler(package_logger, log_file):
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

    if console and not _has_stderr_handler(package_logger):
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        package_logger.addHandler(console_handler)

    return get_logger(name)


def get_logger(name: str) -> logging.Logger:
    """Get the task_siphon.<name> logger without attaching handlers."""
    return logging.getLogger(f"{PACKAGE_LOGGER}.{name}")
