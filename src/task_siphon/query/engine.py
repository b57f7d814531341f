"""End-to-end task query over a team log tree.

Every query re-scans the tree: walk engineer log directories, extract
records from every .jsonl file concurrently, then rank.
"""

import asyncio
import os
from collections.abc import Iterable
from pathlib import Path

from task_siphon.config import Config, QueryConfig, expand_path
from task_siphon.logging import get_logger
from task_siphon.models import EngineerLogLocation, QueryResult, TaskRecord
from task_siphon.query.extractor import extract_tasks_async
from task_siphon.query.parsers import normalize_text
from task_siphon.query.scorer import clamp_limit, rank_records
from task_siphon.query.walker import list_engineer_logs, walk_jsonl_files

logger = get_logger("query")


def _distinct(values: Iterable[str | None]) -> list[str]:
    """Distinct non-empty values in first-seen order."""
    return list(dict.fromkeys(v for v in values if v))


async def _collect_files(locations: list[EngineerLogLocation]) -> list[tuple[Path, str]]:
    per_location = await asyncio.gather(
        *(asyncio.to_thread(walk_jsonl_files, location.log_dir) for location in locations)
    )
    return [
        (path, location.engineer)
        for location, paths in zip(locations, per_location)
        for path in paths
    ]


async def query_engineer_tasks(
    prompt: str,
    team_root: str | Path | None = None,
    teams: list[str] | None = None,
    engineers: list[str] | None = None,
    limit: int | None = None,
    now_ms: int | None = None,
    config: QueryConfig | None = None,
) -> QueryResult:
    """Query engineer task logs.

    Args:
        prompt: Free-text query; empty matches every record
        team_root: Root of the team tree (defaults to config team_root)
        teams: Optional team filter (nested layout)
        engineers: Optional engineer filter
        limit: Maximum matches, clamped to [1, max_limit]
        now_ms: Scoring time override
        config: Query settings

    Returns:
        Result envelope; never raises for a missing or empty tree
    """
    if config is None:
        config = QueryConfig()

    query = normalize_text(prompt or "")
    root = expand_path(str(team_root)) if team_root else config.team_root
    limit = clamp_limit(limit, default=config.default_limit, maximum=config.max_limit)

    result = QueryResult(team_root=str(root), query=query, text_limit=config.text_limit)

    if not os.path.exists(root):
        logger.debug("Team root does not exist: root=%s", root)
        return result

    locations = await asyncio.to_thread(list_engineer_logs, root, teams, engineers)
    files = await _collect_files(locations)

    per_file = await asyncio.gather(
        *(extract_tasks_async(path, engineer) for path, engineer in files)
    )
    all_tasks: list[TaskRecord] = [record for records in per_file for record in records]

    result.scanned_teams = _distinct(location.team for location in locations)
    result.scanned_engineers = _distinct(location.engineer for location in locations)
    result.scanned_files = len(files)
    result.extracted_tasks = len(all_tasks)
    result.matches = rank_records(all_tasks, query, limit, now_ms=now_ms)

    logger.info(
        "Query complete: query=%r engineers=%d files=%d tasks=%d matches=%d",
        query,
        len(result.scanned_engineers),
        result.scanned_files,
        result.extracted_tasks,
        len(result.matches),
    )
    return result


def run_query(
    prompt: str,
    team_root: str | Path | None = None,
    teams: list[str] | None = None,
    engineers: list[str] | None = None,
    limit: int | None = None,
    config: Config | None = None,
) -> QueryResult:
    """Synchronous wrapper around query_engineer_tasks()."""
    query_config = config.query if config is not None else None
    return asyncio.run(
        query_engineer_tasks(
            prompt,
            team_root=team_root,
            teams=teams,
            engineers=engineers,
            limit=limit,
            config=query_config,
        )
    )
