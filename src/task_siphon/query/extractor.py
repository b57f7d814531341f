"""Extraction of task records from engineer JSONL logs."""

import asyncio
import json
from collections.abc import Iterable
from pathlib import Path

from task_siphon.logging import get_logger
from task_siphon.models import TaskRecord
from task_siphon.query.parsers import records_from_entry

logger = get_logger("extractor")


def extract_tasks_from_lines(path: Path, engineer: str, lines: Iterable[str]) -> list[TaskRecord]:
    """Extract task records from the lines of one log file.

    Blank lines, lines that are not valid JSON and lines that decode to
    anything but an object are skipped without aborting the file.

    Args:
        path: Log file the lines came from
        engineer: Engineer the log belongs to
        lines: Raw lines, in file order

    Returns:
        Records in file order, each carrying its 1-based line number
    """
    records: list[TaskRecord] = []

    for line_number, line in enumerate(lines, start=1):
        line_text = line.strip()
        if not line_text:
            continue

        try:
            entry = json.loads(line_text)
        except json.JSONDecodeError:
            continue

        if not isinstance(entry, dict):
            continue

        records.extend(records_from_entry(path, line_number, engineer, entry))

    return records


def extract_tasks_from_jsonl(path: Path, engineer: str) -> list[TaskRecord]:
    """Read a JSONL log file and extract its task records.

    An unreadable file yields no records.
    """
    try:
        raw = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.warning("Could not read log file: path=%s error=%s", path, e)
        return []

    return extract_tasks_from_lines(path, engineer, raw.split("\n"))


async def extract_tasks_async(path: Path, engineer: str) -> list[TaskRecord]:
    """Extract task records in a worker thread."""
    return await asyncio.to_thread(extract_tasks_from_jsonl, path, engineer)
