"""Discovery of engineer log directories under a team root.

Two layouts are supported, and may be mixed under one root:
- Flat:   <root>/<engineer>/log
- Nested: <root>/<team>/<engineer>/log

A top-level entry that directly contains a log/ directory is an engineer;
any other directory is treated as a team.
"""

import os
from collections.abc import Iterable
from pathlib import Path

from task_siphon.logging import get_logger
from task_siphon.models import EngineerLogLocation

logger = get_logger("walker")

LOG_DIR_NAME = "log"
LOG_SUFFIX = ".jsonl"
DEFAULT_MAX_DEPTH = 16


def _selection(names: Iterable[str] | None) -> set[str] | None:
    """Turn an optional filter list into a set, treating empty as no filter."""
    if not names:
        return None
    return set(names)


def _list_subdirectories(path: Path) -> list[Path]:
    """List immediate subdirectories in name order, or [] if unreadable."""
    try:
        with os.scandir(path) as entries:
            dirs = [Path(entry.path) for entry in entries if entry.is_dir()]
    except OSError as e:
        logger.debug("Skipping unreadable directory: path=%s error=%s", path, e)
        return []
    return sorted(dirs, key=lambda p: p.name)


def list_engineer_logs(
    root: Path,
    teams: Iterable[str] | None = None,
    engineers: Iterable[str] | None = None,
) -> list[EngineerLogLocation]:
    """Find the log directories to scan under a team root.

    Args:
        root: Team root directory
        teams: Optional team names to keep (nested layout only)
        engineers: Optional engineer names to keep

    Returns:
        Engineer log locations in discovery order; [] when root is missing
    """
    selected_teams = _selection(teams)
    selected_engineers = _selection(engineers)
    results: list[EngineerLogLocation] = []

    if not os.path.isdir(root):
        return results

    for entry in _list_subdirectories(root):
        direct_log_dir = entry / LOG_DIR_NAME

        if os.path.isdir(direct_log_dir):
            if selected_engineers is not None and entry.name not in selected_engineers:
                continue
            results.append(EngineerLogLocation(engineer=entry.name, log_dir=direct_log_dir))
            continue

        if selected_teams is not None and entry.name not in selected_teams:
            continue

        for engineer_dir in _list_subdirectories(entry):
            if selected_engineers is not None and engineer_dir.name not in selected_engineers:
                continue
            log_dir = engineer_dir / LOG_DIR_NAME
            if os.path.isdir(log_dir):
                results.append(
                    EngineerLogLocation(engineer=engineer_dir.name, log_dir=log_dir, team=entry.name)
                )

    logger.debug("Discovered engineer logs: root=%s count=%d", root, len(results))
    return results


def walk_jsonl_files(log_dir: Path, max_depth: int = DEFAULT_MAX_DEPTH) -> list[Path]:
    """Recursively list .jsonl files below a log directory.

    Unreadable directories are skipped. Symlinked directories are followed
    once each, and recursion stops at max_depth levels below log_dir.

    Returns:
        Sorted list of file paths
    """
    files: list[Path] = []
    visited: set[str] = set()
    stack: list[tuple[Path, int]] = [(log_dir, 0)]

    while stack:
        current, depth = stack.pop()

        real = os.path.realpath(current)
        if real in visited:
            continue
        visited.add(real)

        try:
            with os.scandir(current) as entries:
                for entry in entries:
                    try:
                        if entry.is_dir():
                            if depth < max_depth:
                                stack.append((Path(entry.path), depth + 1))
                        elif entry.is_file() and entry.name.endswith(LOG_SUFFIX):
                            files.append(Path(entry.path))
                    except OSError:
                        continue
        except OSError as e:
            logger.debug("Skipping unreadable directory: path=%s error=%s", current, e)
            continue

    return sorted(files)
