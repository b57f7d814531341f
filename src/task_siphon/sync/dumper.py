"""Dump remote sessions into an engineer log directory.

Output layout under out_dir:
    <source>-<sessionId>.jsonl        one user message per line
    _raw/<source>-<sessionId>.json    full fetched payload (unless skip_raw)
    index.json                        summary of the run

The .jsonl files use the session-trace shape, so the query pipeline reads
them back as user messages.
"""

import asyncio
import json
import re
from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path
from typing import Any, TypeVar

from task_siphon.config import SyncConfig
from task_siphon.exceptions import TaskSiphonError, UpstreamError
from task_siphon.logging import get_logger
from task_siphon.models import DumpResult, PullSummary, SessionCacheRow
from task_siphon.sync.cache import CacheBackend, load_session_cache_rows, make_cache_backend
from task_siphon.sync.client import ContextClient
from task_siphon.sync.credentials import resolve_api_key
from task_siphon.sync.selection import parse_source_filter, select_rows_or_raise
from task_siphon.timestamps import ms_to_iso, parse_timestamp_ms, utc_now_iso

logger = get_logger("dumper")

T = TypeVar("T")
R = TypeVar("R")

RAW_DIR_NAME = "_raw"
INDEX_FILE_NAME = "index.json"
DRY_RUN_PREVIEW_ROWS = 12
EPOCH_ISO = ms_to_iso(0)

_UNSAFE_FILENAME_RE = re.compile(r"[^a-zA-Z0-9._-]+")
_WHITESPACE_RE = re.compile(r"\s+")


def sanitize_file_name(value: str) -> str:
    """Replace every run of characters outside [A-Za-z0-9._-] with '_'."""
    return _UNSAFE_FILENAME_RE.sub("_", value)


def session_base_name(row: SessionCacheRow) -> str:
    return sanitize_file_name(f"{row.source}-{row.session_id}")


def extract_text_content(value: Any) -> str:
    """Pull text out of a string or a message-like object."""
    if isinstance(value, str):
        return value
    if not isinstance(value, dict):
        return ""

    for key in ("message", "text", "content"):
        if isinstance(value.get(key), str):
            return value[key]

    content = value.get("content")
    if isinstance(content, list):
        parts: list[str] = []
        for entry in content:
            if isinstance(entry, str):
                parts.append(entry)
            elif isinstance(entry, dict) and isinstance(entry.get("text"), str):
                parts.append(entry["text"])
        return "\n".join(part for part in parts if part)

    return ""


def is_user_message(message: Any) -> bool:
    """Check for a user role on the message, its content, or its raw event."""
    if not isinstance(message, dict):
        return False
    if message.get("role") == "user":
        return True

    content = message.get("content")
    if isinstance(content, dict):
        if content.get("role") == "user":
            return True
        raw = content.get("raw")
        if isinstance(raw, dict) and raw.get("type") == "user":
            return True

    return False


def extract_message_text(message: Any) -> str:
    """Find the text of a context message.

    Tries the content itself, then content.raw, then content.raw.message.
    """
    if not isinstance(message, dict):
        return ""

    content = message.get("content")
    direct = extract_text_content(content)
    if direct:
        return direct

    if isinstance(content, dict):
        raw = content.get("raw")
        from_raw = extract_text_content(raw)
        if from_raw:
            return from_raw
        if isinstance(raw, dict):
            from_raw_message = extract_text_content(raw.get("message"))
            if from_raw_message:
                return from_raw_message

    return ""


def extract_message_timestamp(message: Any, fallback_iso: str) -> str:
    """Pick the first parseable timestamp of a message, as ISO 8601."""
    if not isinstance(message, dict):
        return fallback_iso

    content = message.get("content") if isinstance(message.get("content"), dict) else {}
    metadata = message.get("metadata") if isinstance(message.get("metadata"), dict) else {}

    candidates = (
        content.get("timestamp"),
        metadata.get("timestamp"),
        message.get("timestamp"),
        content.get("created_at"),
    )
    for candidate in candidates:
        ms = parse_timestamp_ms(candidate)
        if ms > 0:
            return ms_to_iso(ms)

    return fallback_iso


def build_user_lines(row: SessionCacheRow, detail: dict[str, Any]) -> list[dict[str, Any]]:
    """Build the user-message records of one fetched session."""
    messages = detail.get("data")
    if not isinstance(messages, list):
        messages = []

    created_ms = parse_timestamp_ms(detail.get("created_at"))
    created_iso = ms_to_iso(created_ms) if created_ms > 0 else EPOCH_ISO

    lines: list[dict[str, Any]] = []
    for message in messages:
        if not is_user_message(message):
            continue
        text = _WHITESPACE_RE.sub(" ", extract_message_text(message)).strip()
        if not text:
            continue

        lines.append(
            {
                "type": "user",
                "source": row.source,
                "timestamp": extract_message_timestamp(message, created_iso),
                "sessionId": row.session_id,
                "contextId": row.context_id,
                "message": {"content": text},
            }
        )

    return lines


def _write_text(path: Path, content: str) -> None:
    path.write_text(content, encoding="utf-8")


def _to_pretty_json(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"


async def dump_session(
    row: SessionCacheRow,
    client: ContextClient,
    out_dir: Path,
    raw_dir: Path | None = None,
) -> DumpResult:
    """Fetch one session and write its files.

    Args:
        row: Selected cache row
        client: Context service client
        out_dir: Directory for the .jsonl output
        raw_dir: Directory for the raw payload dump; None skips it

    Raises:
        UpstreamError: If the context fetch fails
    """
    detail = await client.fetch_context(row.context_id)
    lines = build_user_lines(row, detail)

    base_name = session_base_name(row)
    out_file = out_dir / f"{base_name}.jsonl"
    body = "".join(json.dumps(line, ensure_ascii=False, separators=(",", ":")) + "\n" for line in lines)
    await asyncio.to_thread(_write_text, out_file, body)

    raw_file = None
    if raw_dir is not None:
        raw_file = raw_dir / f"{base_name}.json"
        raw_payload = {
            "pulledAt": utc_now_iso(),
            "cache": row.to_cache_metadata(),
            "detail": detail,
        }
        await asyncio.to_thread(_write_text, raw_file, _to_pretty_json(raw_payload))

    logger.debug(
        "Dumped session: source=%s session=%s user_messages=%d", row.source, row.session_id, len(lines)
    )
    return DumpResult(row=row, user_messages=len(lines), file=out_file, raw_file=raw_file)


async def map_with_concurrency(
    items: Sequence[T],
    concurrency: int,
    worker: Callable[[T], Awaitable[R]],
) -> list[R]:
    """Run worker over items with at most `concurrency` in flight.

    Results are returned in input order regardless of completion order.
    """
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def run(item: T) -> R:
        async with semaphore:
            return await worker(item)

    return list(await asyncio.gather(*(run(item) for item in items)))


def write_index(
    out_dir: Path,
    results: Sequence[DumpResult],
    source_filter: str,
    engineer_id: str | None,
    host: str | None,
) -> Path:
    """Write index.json summarizing a run, sessions in selection order."""
    index_path = out_dir / INDEX_FILE_NAME
    index = {
        "dumpedAt": utc_now_iso(),
        "sourceFilter": source_filter,
        "engineerIdFilter": engineer_id,
        "hostFilter": host,
        "totalSessions": len(results),
        "totalUserMessages": sum(result.user_messages for result in results),
        "sessions": [result.to_index_entry(out_dir) for result in results],
    }
    _write_text(index_path, _to_pretty_json(index))
    return index_path


def find_name_collisions(rows: Sequence[SessionCacheRow]) -> dict[str, list[SessionCacheRow]]:
    """Group rows whose output files would share a name."""
    by_name: dict[str, list[SessionCacheRow]] = {}
    for row in rows:
        by_name.setdefault(session_base_name(row), []).append(row)
    return {name: group for name, group in by_name.items() if len(group) > 1}


def format_preview_row(row: SessionCacheRow) -> str:
    return " | ".join(
        [row.source, row.engineer_id, row.host, row.session_id, row.context_id, row.updated_at_iso or "-"]
    )


async def pull_sessions(
    config: SyncConfig,
    backend: CacheBackend | None = None,
    client: ContextClient | None = None,
) -> PullSummary:
    """Pull the newest cached sessions into config.out_dir.

    Failures are isolated per session: a session whose fetch or write fails
    is logged and left out of the index. The run only fails when every
    selected session fails.

    Args:
        config: Sync settings
        backend: Cache backend (defaults to config.cache_backend on config.db_path)
        client: Context client (defaults to one built from config)

    Raises:
        ConfigurationError: If the source filter, cache backend or API key is invalid
        CacheQueryError: If the cache cannot be queried
        NoMatchingSessionsError: If no cache row matches the filters
        UpstreamError: If every selected session fails to dump
    """
    source = parse_source_filter(config.source)
    api_key = resolve_api_key(config.api_key, credentials_file=config.credentials_file)

    if backend is None:
        backend = make_cache_backend(config.cache_backend, config.db_path, timeout=config.timeout_seconds)

    rows = await load_session_cache_rows(backend)
    selected = select_rows_or_raise(
        rows,
        engineer_id=config.engineer_id,
        host=config.host,
        source=source,
        limit=config.limit,
    )

    logger.info(
        "Found sessions in daemon cache: count=%d source=%s engineer=%s host=%s",
        len(selected),
        source,
        config.engineer_id or "all",
        config.host or "all",
    )

    out_dir = config.out_dir

    if config.dry_run:
        preview = selected[:DRY_RUN_PREVIEW_ROWS]
        for row in preview:
            logger.info("Dry run: %s", format_preview_row(row))
        return PullSummary(
            out_dir=out_dir,
            total_sessions=len(selected),
            total_user_messages=0,
            dry_run=True,
            preview=preview,
        )

    for name, group in find_name_collisions(selected).items():
        logger.warning(
            "Sessions share an output file, last write wins: file=%s.jsonl contexts=%s",
            name,
            ",".join(row.context_id for row in group),
        )

    raw_dir = None if config.skip_raw else out_dir / RAW_DIR_NAME
    out_dir.mkdir(parents=True, exist_ok=True)
    if raw_dir is not None:
        raw_dir.mkdir(parents=True, exist_ok=True)

    owns_client = client is None
    if client is None:
        client = ContextClient(config.base_url, api_key, timeout=config.timeout_seconds)

    async def dump_or_skip(row: SessionCacheRow) -> DumpResult | None:
        try:
            return await dump_session(row, client, out_dir, raw_dir)
        except (TaskSiphonError, OSError) as e:
            logger.warning("Failed to dump session: source=%s session=%s error=%s", row.source, row.session_id, e)
            return None
        except Exception:
            logger.exception("Unexpected error dumping session: source=%s session=%s", row.source, row.session_id)
            return None

    try:
        outcomes = await map_with_concurrency(selected, config.concurrency, dump_or_skip)
    finally:
        if owns_client:
            await client.aclose()

    results = [outcome for outcome in outcomes if outcome is not None]
    failed = len(outcomes) - len(results)
    if not results:
        raise UpstreamError(f"All {failed} selected sessions failed to dump.")

    index_path = await asyncio.to_thread(
        write_index, out_dir, results, source, config.engineer_id, config.host
    )
    total_user_messages = sum(result.user_messages for result in results)

    logger.info(
        "Dumped sessions: count=%d failed=%d user_messages=%d out_dir=%s index=%s",
        len(results),
        failed,
        total_user_messages,
        out_dir,
        index_path,
    )
    return PullSummary(
        out_dir=out_dir,
        total_sessions=len(results),
        total_user_messages=total_user_messages,
        dry_run=False,
        failed_sessions=failed,
    )
