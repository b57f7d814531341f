"""Tests for engineer log discovery."""

import os
from pathlib import Path

import pytest

from task_siphon.models import EngineerLogLocation
from task_siphon.query.walker import list_engineer_logs, walk_jsonl_files


def make_log_dir(path: Path) -> Path:
    log_dir = path / "log"
    log_dir.mkdir(parents=True)
    return log_dir


class TestListEngineerLogs:
    """Tests for list_engineer_logs function."""

    def test_missing_root_returns_empty(self, tmp_path: Path) -> None:
        """A root that does not exist yields no locations."""
        assert list_engineer_logs(tmp_path / "missing") == []

    def test_flat_layout(self, tmp_path: Path) -> None:
        """<root>/<engineer>/log entries are engineers without a team."""
        alice_log = make_log_dir(tmp_path / "alice")
        bob_log = make_log_dir(tmp_path / "bob")

        result = list_engineer_logs(tmp_path)

        assert result == [
            EngineerLogLocation(engineer="alice", log_dir=alice_log),
            EngineerLogLocation(engineer="bob", log_dir=bob_log),
        ]

    def test_nested_layout(self, tmp_path: Path) -> None:
        """<root>/<team>/<engineer>/log entries carry the team name."""
        bob_log = make_log_dir(tmp_path / "teamA" / "bob")

        result = list_engineer_logs(tmp_path)

        assert result == [EngineerLogLocation(engineer="bob", log_dir=bob_log, team="teamA")]

    def test_mixed_layouts(self, tmp_path: Path) -> None:
        """Flat engineers and teams can share a root."""
        make_log_dir(tmp_path / "alice")
        make_log_dir(tmp_path / "teamA" / "bob")

        result = list_engineer_logs(tmp_path)

        assert [(loc.team, loc.engineer) for loc in result] == [(None, "alice"), ("teamA", "bob")]

    def test_team_member_without_log_dir_is_skipped(self, tmp_path: Path) -> None:
        """Only engineers that have a log/ directory are accepted."""
        (tmp_path / "teamA" / "carol").mkdir(parents=True)
        make_log_dir(tmp_path / "teamA" / "bob")

        result = list_engineer_logs(tmp_path)

        assert [loc.engineer for loc in result] == ["bob"]

    def test_files_at_top_level_are_ignored(self, tmp_path: Path) -> None:
        """Non-directory entries are not teams or engineers."""
        (tmp_path / "README.md").write_text("team notes")
        make_log_dir(tmp_path / "alice")

        assert [loc.engineer for loc in list_engineer_logs(tmp_path)] == ["alice"]

    def test_log_file_is_not_a_log_dir(self, tmp_path: Path) -> None:
        """A file named log does not make an entry a flat engineer."""
        (tmp_path / "teamA").mkdir()
        (tmp_path / "teamA" / "log").write_text("not a dir")
        make_log_dir(tmp_path / "teamA" / "bob")

        result = list_engineer_logs(tmp_path)

        assert [(loc.team, loc.engineer) for loc in result] == [("teamA", "bob")]

    def test_engineer_filter_applies_to_both_layouts(self, tmp_path: Path) -> None:
        """The engineer filter applies to flat and nested engineers."""
        make_log_dir(tmp_path / "alice")
        make_log_dir(tmp_path / "dave")
        make_log_dir(tmp_path / "teamA" / "bob")
        make_log_dir(tmp_path / "teamA" / "carol")

        result = list_engineer_logs(tmp_path, engineers=["alice", "carol"])

        assert [loc.engineer for loc in result] == ["alice", "carol"]

    def test_team_filter(self, tmp_path: Path) -> None:
        """The team filter skips other teams but not flat engineers."""
        make_log_dir(tmp_path / "alice")
        make_log_dir(tmp_path / "teamA" / "bob")
        make_log_dir(tmp_path / "teamB" / "carol")

        result = list_engineer_logs(tmp_path, teams=["teamA"])

        assert [(loc.team, loc.engineer) for loc in result] == [(None, "alice"), ("teamA", "bob")]

    def test_empty_filters_mean_no_filter(self, tmp_path: Path) -> None:
        """Empty filter lists keep everything."""
        make_log_dir(tmp_path / "alice")
        make_log_dir(tmp_path / "teamA" / "bob")

        assert len(list_engineer_logs(tmp_path, teams=[], engineers=[])) == 2

    @pytest.mark.skipif(os.geteuid() == 0, reason="root can read any directory")
    def test_unreadable_team_is_skipped(self, tmp_path: Path) -> None:
        """A team directory that cannot be listed is skipped."""
        make_log_dir(tmp_path / "alice")
        locked = tmp_path / "locked"
        make_log_dir(locked / "bob")
        locked.chmod(0o000)
        try:
            result = list_engineer_logs(tmp_path)
        finally:
            locked.chmod(0o755)

        assert [loc.engineer for loc in result] == ["alice"]


class TestWalkJsonlFiles:
    """Tests for walk_jsonl_files function."""

    def test_finds_nested_jsonl_files(self, tmp_path: Path) -> None:
        """Should find .jsonl files at any depth, sorted."""
        log_dir = make_log_dir(tmp_path / "alice")
        (log_dir / "b.jsonl").touch()
        (log_dir / "projects" / "p1").mkdir(parents=True)
        (log_dir / "projects" / "p1" / "a.jsonl").touch()
        (log_dir / "notes.txt").touch()
        (log_dir / "data.json").touch()

        result = walk_jsonl_files(log_dir)

        assert result == sorted([log_dir / "b.jsonl", log_dir / "projects" / "p1" / "a.jsonl"])

    def test_empty_directory(self, tmp_path: Path) -> None:
        """An empty log directory has no files."""
        log_dir = make_log_dir(tmp_path / "alice")
        assert walk_jsonl_files(log_dir) == []

    def test_missing_directory(self, tmp_path: Path) -> None:
        """A missing directory is skipped rather than raising."""
        assert walk_jsonl_files(tmp_path / "nope") == []

    def test_respects_max_depth(self, tmp_path: Path) -> None:
        """Files deeper than max_depth are not visited."""
        log_dir = make_log_dir(tmp_path / "alice")
        (log_dir / "top.jsonl").touch()
        deep = log_dir / "a" / "b"
        deep.mkdir(parents=True)
        (deep / "deep.jsonl").touch()

        assert walk_jsonl_files(log_dir, max_depth=1) == [log_dir / "top.jsonl"]
        assert len(walk_jsonl_files(log_dir, max_depth=2)) == 2

    def test_symlink_cycle_terminates(self, tmp_path: Path) -> None:
        """A symlink pointing back up the tree does not loop forever."""
        log_dir = make_log_dir(tmp_path / "alice")
        (log_dir / "sub").mkdir()
        (log_dir / "sub" / "x.jsonl").touch()
        (log_dir / "sub" / "loop").symlink_to(log_dir, target_is_directory=True)

        result = walk_jsonl_files(log_dir)

        assert result == [log_dir / "sub" / "x.jsonl"]
