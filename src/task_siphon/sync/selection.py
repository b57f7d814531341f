"""Filtering and deduplication of session cache rows."""

from collections.abc import Iterable

from task_siphon.exceptions import ConfigurationError, NoMatchingSessionsError
from task_siphon.models import SessionCacheRow

SOURCE_FILTERS = ("all", "codex", "claude", "openclaw")
DEFAULT_SESSION_LIMIT = 120


def parse_source_filter(value: str | None) -> str:
    """Validate a source filter; None and "" mean "all"."""
    normalized = (value or "all").strip().lower()
    if normalized not in SOURCE_FILTERS:
        raise ConfigurationError(
            f"Invalid source filter: {value!r}", {"allowed": list(SOURCE_FILTERS)}
        )
    return normalized


def filter_rows(
    rows: Iterable[SessionCacheRow],
    engineer_id: str | None = None,
    host: str | None = None,
    source: str = "all",
) -> list[SessionCacheRow]:
    return [
        row
        for row in rows
        if (not engineer_id or row.engineer_id == engineer_id)
        and (not host or row.host == host)
        and (source == "all" or row.source == source)
    ]


def dedupe_rows(rows: Iterable[SessionCacheRow]) -> list[SessionCacheRow]:
    """Keep the most recently updated row per session.

    On equal update times the first row seen wins.
    """
    by_session: dict[tuple[str, str, str, str], SessionCacheRow] = {}
    for row in rows:
        current = by_session.get(row.dedup_key)
        if current is None or row.updated_at_unix > current.updated_at_unix:
            by_session[row.dedup_key] = row
    return list(by_session.values())


def select_rows(
    rows: Iterable[SessionCacheRow],
    engineer_id: str | None = None,
    host: str | None = None,
    source: str = "all",
    limit: int = DEFAULT_SESSION_LIMIT,
) -> list[SessionCacheRow]:
    """Filter, dedupe and order rows newest first, keeping at most limit."""
    filtered = filter_rows(rows, engineer_id=engineer_id, host=host, source=source)
    deduped = dedupe_rows(filtered)
    deduped.sort(key=lambda row: -row.updated_at_unix)
    return deduped[: max(1, limit)]


def select_rows_or_raise(
    rows: Iterable[SessionCacheRow],
    engineer_id: str | None = None,
    host: str | None = None,
    source: str = "all",
    limit: int = DEFAULT_SESSION_LIMIT,
) -> list[SessionCacheRow]:
    """Like select_rows(), but an empty selection is an error.

    Raises:
        NoMatchingSessionsError: If no row matches the filters
    """
    selected = select_rows(rows, engineer_id=engineer_id, host=host, source=source, limit=limit)
    if not selected:
        raise NoMatchingSessionsError(
            "No matching session contexts found in daemon cache.",
            {"source": source, "engineer_id": engineer_id or "all", "host": host or "all"},
        )
    return selected
