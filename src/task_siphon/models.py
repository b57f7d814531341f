"""Data models shared by the query and sync pipelines."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from task_siphon.timestamps import unix_to_iso

LogSource = Literal["claude", "codex", "unknown"]
SessionSource = Literal["codex", "claude", "openclaw", "unknown"]


@dataclass(frozen=True)
class TaskRecord:
    """A task utterance extracted from one line of an engineer log."""

    engineer: str
    source: LogSource
    text: str  # Whitespace-collapsed, never empty
    timestamp_ms: int  # 0 when unknown
    file: str
    line: int  # 1-based
    session_id: str | None = None
    project: str | None = None


@dataclass(frozen=True)
class ScoredMatch:
    """A TaskRecord with its relevance score for one query."""

    record: TaskRecord
    score: float

    def to_dict(self, text_limit: int = 600) -> dict:
        """Convert to the output shape of a query match."""
        record = self.record
        return {
            "engineer": record.engineer,
            "source": record.source,
            "text": record.text[:text_limit],
            "timestampMs": record.timestamp_ms,
            "sessionId": record.session_id,
            "project": record.project,
            "file": record.file,
            "line": record.line,
            "score": self.score,
        }


@dataclass(frozen=True)
class EngineerLogLocation:
    """Resolved log directory for one engineer."""

    engineer: str
    log_dir: Path
    team: str | None = None  # None for the flat <root>/<engineer>/log layout


@dataclass
class QueryResult:
    """Result envelope of a task query."""

    team_root: str
    query: str
    scanned_teams: list[str] = field(default_factory=list)
    scanned_engineers: list[str] = field(default_factory=list)
    scanned_files: int = 0
    extracted_tasks: int = 0
    matches: list[ScoredMatch] = field(default_factory=list)
    text_limit: int = 600

    def to_dict(self) -> dict:
        return {
            "teamRoot": self.team_root,
            "query": self.query,
            "scannedTeams": list(self.scanned_teams),
            "scannedEngineers": list(self.scanned_engineers),
            "scannedFiles": self.scanned_files,
            "extractedTasks": self.extracted_tasks,
            "matches": [match.to_dict(self.text_limit) for match in self.matches],
        }


@dataclass(frozen=True)
class SessionCacheRow:
    """A session pointer decoded from a ctx:session:* cache key."""

    cache_key: str
    context_id: str
    updated_at_unix: int  # Seconds since the epoch
    source: SessionSource
    host: str
    engineer_id: str
    session_id: str

    @property
    def dedup_key(self) -> tuple[str, str, str, str]:
        """Identity of the session this row points at."""
        return (self.source, self.host, self.engineer_id, self.session_id)

    @property
    def updated_at_iso(self) -> str | None:
        return unix_to_iso(self.updated_at_unix)

    def to_cache_metadata(self) -> dict:
        return {
            "cacheKey": self.cache_key,
            "contextId": self.context_id,
            "source": self.source,
            "host": self.host,
            "engineerId": self.engineer_id,
            "sessionId": self.session_id,
            "updatedAtUnix": self.updated_at_unix,
        }


@dataclass(frozen=True)
class DumpResult:
    """Outcome of writing one session to disk."""

    row: SessionCacheRow
    user_messages: int
    file: Path
    raw_file: Path | None = None

    def to_index_entry(self, out_dir: Path) -> dict:
        """Convert to a sessions entry of index.json with paths relative to out_dir."""
        row = self.row
        return {
            "source": row.source,
            "host": row.host,
            "engineerId": row.engineer_id,
            "sessionId": row.session_id,
            "contextId": row.context_id,
            "updatedAt": row.updated_at_iso,
            "userMessages": self.user_messages,
            "file": self.file.relative_to(out_dir).as_posix(),
            "rawFile": self.raw_file.relative_to(out_dir).as_posix() if self.raw_file else None,
        }


@dataclass
class PullSummary:
    """Summary of one sync run."""

    out_dir: Path
    total_sessions: int
    total_user_messages: int
    dry_run: bool
    failed_sessions: int = 0
    preview: list[SessionCacheRow] = field(default_factory=list)
