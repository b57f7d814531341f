"""Relevance scoring and ranking of task records against a query."""

import re
import time
from collections.abc import Iterable

from task_siphon.models import ScoredMatch, TaskRecord

DEFAULT_LIMIT = 20
MAX_LIMIT = 200

EXACT_MATCH_SCORE = 80
TOKEN_MATCH_SCORE = 10
EMPTY_QUERY_SCORE = 10
KNOWN_SOURCE_SCORE = 5
RECENCY_MAX_SCORE = 25

MS_PER_DAY = 86_400_000

_TOKEN_SPLIT_RE = re.compile(r"[^a-z0-9]+")


def tokenize(query: str) -> list[str]:
    """Split a query into lowercase alphanumeric tokens longer than one character."""
    return [token for token in _TOKEN_SPLIT_RE.split(query.lower()) if len(token) > 1]


def compute_score(
    record: TaskRecord,
    query_lower: str,
    query_tokens: list[str],
    now_ms: int,
) -> float:
    """Score a record against a query.

    Args:
        record: Record to score
        query_lower: Lowercased, normalized query ("" matches everything)
        query_tokens: Tokens from tokenize()
        now_ms: Scoring time in milliseconds since the epoch

    Returns:
        Non-negative score
    """
    text_lower = record.text.lower()
    score = 0.0

    if not query_lower:
        score += EMPTY_QUERY_SCORE
    else:
        if query_lower in text_lower:
            score += EXACT_MATCH_SCORE
        for token in query_tokens:
            if token in text_lower:
                score += TOKEN_MATCH_SCORE

    if record.source in ("codex", "claude"):
        score += KNOWN_SOURCE_SCORE

    if record.timestamp_ms > 0:
        age_days = max(0.0, (now_ms - record.timestamp_ms) / MS_PER_DAY)
        score += max(0.0, RECENCY_MAX_SCORE - age_days / 2)

    return score


def is_eligible(record: TaskRecord, query_lower: str, query_tokens: list[str]) -> bool:
    """Check whether a record matches the query at all."""
    if not query_lower:
        return True
    text_lower = record.text.lower()
    if query_lower in text_lower:
        return True
    return any(token in text_lower for token in query_tokens)


def clamp_limit(limit: int | None, default: int = DEFAULT_LIMIT, maximum: int = MAX_LIMIT) -> int:
    if limit is None:
        limit = default
    return min(max(int(limit), 1), maximum)


def rank_records(
    records: Iterable[TaskRecord],
    query: str,
    limit: int,
    now_ms: int | None = None,
) -> list[ScoredMatch]:
    """Score, filter and order records for a normalized query.

    Matches are ordered by descending score, then descending timestamp;
    remaining ties keep their input order.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)

    query_lower = query.lower()
    query_tokens = tokenize(query)

    matches = [
        ScoredMatch(record=record, score=compute_score(record, query_lower, query_tokens, now_ms))
        for record in records
        if is_eligible(record, query_lower, query_tokens)
    ]
    matches.sort(key=lambda m: (-m.score, -m.record.timestamp_ms))
    return matches[:limit]
