"""Record shapes found in engineer log lines.

Engineer log directories mix several JSONL formats:

- Codex history (~/.codex/history.jsonl):
    {"session_id": "...", "ts": 1700000000, "text": "..."}
- Claude Code history (~/.claude/history.jsonl):
    {"display": "...", "timestamp": 1700000000000, "sessionId": "...", "project": "/path"}
- Session traces (Claude Code project transcripts, pulled sessions):
    {"type": "user", "message": {"content": "..." | [{"type": "text", "text": "..."}]},
     "sessionId": "...", "timestamp": "2026-01-26T00:38:34.590Z"}

Each decoded line is classified into exactly one shape, tried in the order
above; anything else is Unrecognized and yields no records.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from task_siphon.models import LogSource, TaskRecord
from task_siphon.timestamps import parse_timestamp_ms

MIN_TASK_LENGTH = 4

_WHITESPACE_RE = re.compile(r"\s+")
_SLASH_COMMAND_RE = re.compile(r"^/[a-z0-9_-]+$", re.IGNORECASE)


@dataclass(frozen=True)
class CodexHistory:
    text: str
    ts: int | float | str
    session_id: str | None = None


@dataclass(frozen=True)
class ClaudeHistory:
    display: str
    timestamp: int | float | str
    session_id: str | None = None
    project: str | None = None


@dataclass(frozen=True)
class UserTrace:
    text: str
    timestamp: Any = None
    session_id: str | None = None


@dataclass(frozen=True)
class Unrecognized:
    pass


RecordShape = CodexHistory | ClaudeHistory | UserTrace | Unrecognized


def normalize_text(text: str) -> str:
    """Collapse whitespace runs to single spaces and trim."""
    return _WHITESPACE_RE.sub(" ", text).strip()


def looks_actionable(text: str) -> bool:
    """Check that text is long enough and not a bare slash command."""
    trimmed = normalize_text(text)
    if len(trimmed) < MIN_TASK_LENGTH:
        return False
    return not _SLASH_COMMAND_RE.match(trimmed)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def extract_text_from_content(content: Any) -> str:
    """Extract text from a message content field.

    Content is either a string or a list of blocks; string blocks and
    blocks carrying a string "text" are joined with newlines.
    """
    if isinstance(content, str):
        return content

    if isinstance(content, list):
        parts: list[str] = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and isinstance(block.get("text"), str):
                parts.append(block["text"])
        return "\n".join(parts)

    return ""


def _as_codex_history(record: dict[str, Any]) -> RecordShape | None:
    text = record.get("text")
    ts = record.get("ts")
    if isinstance(text, str) and (_is_number(ts) or isinstance(ts, str)):
        return CodexHistory(text=text, ts=ts, session_id=_optional_str(record.get("session_id")))
    return None


def _as_claude_history(record: dict[str, Any]) -> RecordShape | None:
    display = record.get("display")
    timestamp = record.get("timestamp")
    if isinstance(display, str) and (_is_number(timestamp) or isinstance(timestamp, str)):
        return ClaudeHistory(
            display=display,
            timestamp=timestamp,
            session_id=_optional_str(record.get("sessionId")),
            project=_optional_str(record.get("project")),
        )
    return None


def _as_user_trace(record: dict[str, Any]) -> RecordShape | None:
    if record.get("type") != "user":
        return None

    message = record.get("message")
    text = ""
    if isinstance(message, dict) and "content" in message:
        text = extract_text_from_content(message["content"])
    elif isinstance(message, str):
        text = message

    session_id = _optional_str(record.get("sessionId")) or _optional_str(record.get("session_id"))
    return UserTrace(text=text, timestamp=record.get("timestamp"), session_id=session_id)


# Tried in order; the first shape that matches wins
_SHAPE_MATCHERS: list[Callable[[dict[str, Any]], RecordShape | None]] = [
    _as_codex_history,
    _as_claude_history,
    _as_user_trace,
]


def classify_record(record: dict[str, Any]) -> RecordShape:
    """Classify a decoded log line into one of the known record shapes."""
    for matcher in _SHAPE_MATCHERS:
        shape = matcher(record)
        if shape is not None:
            return shape
    return Unrecognized()


def infer_source(path: str | Path, record: dict[str, Any]) -> LogSource:
    """Guess which tool wrote a record from its path and fields."""
    parts = Path(path).parts

    if ".codex" in parts or _is_number(record.get("ts")) or isinstance(record.get("session_id"), str):
        return "codex"

    if ".claude" in parts or isinstance(record.get("display"), str):
        return "claude"

    return "unknown"


def records_from_entry(
    path: str | Path,
    line: int,
    engineer: str,
    record: dict[str, Any],
) -> list[TaskRecord]:
    """Turn one decoded log line into zero or one TaskRecord.

    Args:
        path: Path of the log file the line came from
        line: 1-based line number
        engineer: Engineer the log belongs to
        record: Decoded JSON object

    Returns:
        A single-element list for an actionable record, else an empty list
    """
    shape = classify_record(record)
    source = infer_source(path, record)

    project = None
    if isinstance(shape, CodexHistory):
        text = shape.text
        timestamp_ms = parse_timestamp_ms(shape.ts)
        session_id = shape.session_id
        if source == "unknown":
            source = "codex"
    elif isinstance(shape, ClaudeHistory):
        text = shape.display
        timestamp_ms = parse_timestamp_ms(shape.timestamp)
        session_id = shape.session_id
        project = shape.project
        if source == "unknown":
            source = "claude"
    elif isinstance(shape, UserTrace):
        text = shape.text
        timestamp_ms = parse_timestamp_ms(shape.timestamp)
        session_id = shape.session_id
    else:
        return []

    text = normalize_text(text)
    if not looks_actionable(text):
        return []

    return [
        TaskRecord(
            engineer=engineer,
            source=source,
            text=text,
            timestamp_ms=timestamp_ms,
            file=str(path),
            line=line,
            session_id=session_id,
            project=project,
        )
    ]
