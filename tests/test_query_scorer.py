"""Tests for relevance scoring and ranking."""

import pytest

from task_siphon.models import TaskRecord
from task_siphon.query.scorer import (
    MS_PER_DAY,
    clamp_limit,
    compute_score,
    is_eligible,
    rank_records,
    tokenize,
)

NOW_MS = 1_800_000_000_000


def make_record(
    text: str,
    source: str = "codex",
    timestamp_ms: int = 0,
    line: int = 1,
) -> TaskRecord:
    return TaskRecord(
        engineer="alice",
        source=source,
        text=text,
        timestamp_ms=timestamp_ms,
        file="/team/alice/log/a.jsonl",
        line=line,
    )


class TestTokenize:
    """Tests for tokenize function."""

    def test_splits_on_non_alphanumerics(self) -> None:
        """Punctuation and spaces separate tokens, which are lowercased."""
        assert tokenize("Fix the LOGIN-bug, please!") == ["fix", "the", "login", "bug", "please"]

    def test_drops_single_characters(self) -> None:
        """Tokens of length one are ignored."""
        assert tokenize("a b cd") == ["cd"]

    def test_empty(self) -> None:
        """Empty queries have no tokens."""
        assert tokenize("") == []

    def test_non_ascii_letters_split(self) -> None:
        """Only ASCII letters and digits form tokens."""
        assert tokenize("café api") == ["caf", "api"]


class TestComputeScore:
    """Tests for compute_score function."""

    def test_empty_query_flat_score(self) -> None:
        """An empty query scores 10, plus the known source bonus."""
        assert compute_score(make_record("anything goes"), "", [], NOW_MS) == 15

    def test_unknown_source_gets_no_bonus(self) -> None:
        """Unknown sources miss the +5."""
        assert compute_score(make_record("anything goes", source="unknown"), "", [], NOW_MS) == 10

    def test_full_substring_and_tokens(self) -> None:
        """Full match scores 80 and each matching token 10."""
        record = make_record("Fix the login bug", source="unknown")
        assert compute_score(record, "login bug", ["login", "bug"], NOW_MS) == 100

    def test_tokens_only(self) -> None:
        """Tokens can match without the full query."""
        record = make_record("bug in login", source="unknown")
        assert compute_score(record, "login bug", ["login", "bug"], NOW_MS) == 20

    def test_duplicate_tokens_each_count(self) -> None:
        """Every token occurrence in the query contributes."""
        record = make_record("login page", source="unknown")
        assert compute_score(record, "login login", ["login", "login"], NOW_MS) == 20

    def test_recency_bonus_for_fresh_record(self) -> None:
        """A record from right now gets the full 25."""
        record = make_record("task text", source="unknown", timestamp_ms=NOW_MS)
        assert compute_score(record, "", [], NOW_MS) == 35

    def test_recency_bonus_decays_half_point_per_day(self) -> None:
        """Ten days old loses five points of recency."""
        record = make_record("task text", source="unknown", timestamp_ms=NOW_MS - 10 * MS_PER_DAY)
        assert compute_score(record, "", [], NOW_MS) == pytest.approx(30)

    def test_recency_bonus_floors_at_zero(self) -> None:
        """Old records get no recency bonus."""
        record = make_record("task text", source="unknown", timestamp_ms=NOW_MS - 100 * MS_PER_DAY)
        assert compute_score(record, "", [], NOW_MS) == 10

    def test_future_timestamps_capped(self) -> None:
        """A timestamp in the future counts as age zero."""
        record = make_record("task text", source="unknown", timestamp_ms=NOW_MS + 5 * MS_PER_DAY)
        assert compute_score(record, "", [], NOW_MS) == 35


class TestIsEligible:
    """Tests for is_eligible function."""

    def test_empty_query_matches_everything(self) -> None:
        assert is_eligible(make_record("whatever"), "", []) is True

    def test_substring_match(self) -> None:
        assert is_eligible(make_record("Fix the Login bug"), "login", ["login"]) is True

    def test_token_match(self) -> None:
        assert is_eligible(make_record("bug in login"), "login bug", ["login", "bug"]) is True

    def test_no_match(self) -> None:
        assert is_eligible(make_record("update docs"), "login bug", ["login", "bug"]) is False

    def test_single_character_query_matches_substring_only(self) -> None:
        """A one-letter query has no tokens but can still match in full."""
        assert is_eligible(make_record("fix x axis"), "x", []) is True
        assert is_eligible(make_record("fix y axis label"), "z", []) is False


class TestClampLimit:
    """Tests for clamp_limit function."""

    @pytest.mark.parametrize(
        ("limit", "expected"),
        [(None, 20), (0, 1), (-5, 1), (1, 1), (50, 50), (200, 200), (500, 200)],
    )
    def test_clamps(self, limit: int | None, expected: int) -> None:
        assert clamp_limit(limit) == expected


class TestRankRecords:
    """Tests for rank_records function."""

    def test_orders_by_score_then_timestamp(self) -> None:
        """Higher score first; equal scores ordered newest first."""
        old = make_record("login bug", source="unknown", timestamp_ms=1000, line=1)
        new = make_record("login bug", source="unknown", timestamp_ms=2000, line=2)
        best = make_record("the login bug again", source="codex", timestamp_ms=500, line=3)

        result = rank_records([old, new, best], "login bug", limit=10, now_ms=NOW_MS)

        assert [m.record.line for m in result] == [3, 2, 1]

    def test_filters_non_matching(self) -> None:
        """Records matching neither query nor tokens are dropped."""
        records = [make_record("update docs"), make_record("login flow")]

        result = rank_records(records, "login", limit=10, now_ms=NOW_MS)

        assert [m.record.text for m in result] == ["login flow"]

    def test_every_match_contains_query_or_token(self) -> None:
        """Matches for non-empty queries always share text with the query."""
        records = [make_record(t) for t in ["alpha beta", "beta gamma", "delta", "ALPHA"]]

        result = rank_records(records, "alpha gamma", limit=10, now_ms=NOW_MS)

        for match in result:
            text = match.record.text.lower()
            assert "alpha gamma" in text or any(token in text for token in ["alpha", "gamma"])
        assert len(result) == 3

    def test_truncates_to_limit(self) -> None:
        """Only the top `limit` matches are kept."""
        records = [make_record(f"task {i}", timestamp_ms=i + 1, line=i) for i in range(30)]

        result = rank_records(records, "", limit=5, now_ms=NOW_MS)

        assert len(result) == 5
        assert [m.record.line for m in result] == [29, 28, 27, 26, 25]

    def test_equal_score_and_timestamp_keep_input_order(self) -> None:
        """Full ties are stable across runs."""
        records = [make_record("same task", line=i) for i in range(5)]

        first = rank_records(records, "", limit=10, now_ms=NOW_MS)
        second = rank_records(records, "", limit=10, now_ms=NOW_MS)

        assert [m.record.line for m in first] == [0, 1, 2, 3, 4]
        assert first == second
