"""Session pointer rows from the local context cache.

The context daemon keeps a SQLite table of cache keys pointing at remote
contexts. Session keys look like:

    ctx:session:<source>:<host>:<engineerId>:<sessionId...>

where the session id may itself contain colons.
"""

import asyncio
import sqlite3
from pathlib import Path
from typing import Protocol

from task_siphon.exceptions import CacheQueryError, ConfigurationError
from task_siphon.logging import get_logger
from task_siphon.models import SessionCacheRow, SessionSource

logger = get_logger("cache")

# Unit separator; never appears in cache keys, ids or integer timestamps
FIELD_SEPARATOR = "\u001f"

SESSION_KEY_PREFIX = "ctx:session:"
KNOWN_SESSION_SOURCES: tuple[SessionSource, ...] = ("codex", "claude", "openclaw")

SESSION_ROWS_SQL = """
SELECT cache_key, context_id, updated_at
FROM context_cache
WHERE cache_key LIKE 'ctx:session:%'
ORDER BY updated_at DESC;
""".strip()

CACHE_BACKENDS = ("cli", "sqlite")


class CacheBackend(Protocol):
    """Read access to the context cache."""

    async def query_rows(self, sql: str) -> list[list[str]]:
        """Run a query and return each row as a list of text fields."""
        ...


class Sqlite3CliBackend:
    """Queries the cache through the sqlite3 command-line shell."""

    def __init__(
        self,
        db_path: Path,
        executable: str = "sqlite3",
        separator: str = FIELD_SEPARATOR,
        timeout: float | None = None,
    ) -> None:
        self._db_path = db_path
        self._executable = executable
        self._separator = separator
        self._timeout = timeout

    async def query_rows(self, sql: str) -> list[list[str]]:
        try:
            proc = await asyncio.create_subprocess_exec(
                self._executable,
                "-separator",
                self._separator,
                str(self._db_path),
                sql,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise CacheQueryError(f"Could not start {self._executable}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise CacheQueryError(f"{self._executable} timed out after {self._timeout}s") from None

        if proc.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip() or "unknown error"
            raise CacheQueryError(
                f"{self._executable} exited with code {proc.returncode}: {message}",
                returncode=proc.returncode,
                stderr=message,
            )

        text = stdout.decode("utf-8", errors="replace")
        return [line.split(self._separator) for line in (raw.strip() for raw in text.split("\n")) if line]


class SqliteCacheBackend:
    """Queries the cache in-process with the sqlite3 module, read-only."""

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path

    def _query(self, sql: str) -> list[list[str]]:
        try:
            conn = sqlite3.connect(f"file:{self._db_path}?mode=ro", uri=True)
        except sqlite3.Error as e:
            raise CacheQueryError(f"Could not open cache database {self._db_path}: {e}") from e

        try:
            cursor = conn.execute(sql)
            return [["" if value is None else str(value) for value in row] for row in cursor]
        except sqlite3.Error as e:
            raise CacheQueryError(f"Cache query failed: {e}") from e
        finally:
            conn.close()

    async def query_rows(self, sql: str) -> list[list[str]]:
        return await asyncio.to_thread(self._query, sql)


def make_cache_backend(kind: str, db_path: Path, timeout: float | None = None) -> CacheBackend:
    """Build the cache backend named in config.

    "cli" runs the sqlite3 shell; "sqlite" reads the file in-process.

    Raises:
        ConfigurationError: If kind is not a known backend
    """
    normalized = (kind or "cli").strip().lower()
    if normalized == "cli":
        return Sqlite3CliBackend(db_path, timeout=timeout)
    if normalized == "sqlite":
        return SqliteCacheBackend(db_path)
    raise ConfigurationError(f"Invalid cache backend: {kind!r}", {"allowed": list(CACHE_BACKENDS)})


def parse_session_cache_key(cache_key: str) -> dict | None:
    """Split a session cache key into its parts.

    Returns:
        Dict with source, host, engineer_id and session_id, or None when the
        key is not a ctx:session key with at least six segments
    """
    parts = cache_key.split(":")
    if len(parts) < 6:
        return None
    if parts[0] != "ctx" or parts[1] != "session":
        return None

    source_raw = parts[2].strip().lower()
    source: SessionSource = source_raw if source_raw in KNOWN_SESSION_SOURCES else "unknown"

    session_id = ":".join(parts[5:])
    if not session_id:
        return None

    return {
        "source": source,
        "host": parts[3],
        "engineer_id": parts[4],
        "session_id": session_id,
    }


def _parse_unix(value: str) -> int:
    try:
        return int(value.strip())
    except ValueError:
        pass
    try:
        return int(float(value))
    except (ValueError, OverflowError):
        return 0


def parse_cache_row(fields: list[str]) -> SessionCacheRow | None:
    """Decode one (cache_key, context_id, updated_at) row."""
    if len(fields) < 2:
        return None

    cache_key, context_id = fields[0], fields[1]
    updated_raw = fields[2] if len(fields) > 2 else "0"
    if not cache_key or not context_id:
        return None

    parsed = parse_session_cache_key(cache_key)
    if parsed is None:
        return None

    return SessionCacheRow(
        cache_key=cache_key,
        context_id=context_id,
        updated_at_unix=_parse_unix(updated_raw),
        **parsed,
    )


async def load_session_cache_rows(backend: CacheBackend) -> list[SessionCacheRow]:
    """Load every decodable session row, newest first.

    Raises:
        CacheQueryError: If the cache query fails
    """
    raw_rows = await backend.query_rows(SESSION_ROWS_SQL)
    rows: list[SessionCacheRow] = []
    skipped = 0

    for fields in raw_rows:
        row = parse_cache_row(fields)
        if row is None:
            skipped += 1
            continue
        rows.append(row)

    logger.debug("Loaded session cache rows: rows=%d skipped=%d", len(rows), skipped)
    return rows
