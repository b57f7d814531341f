"""CLI entry point for task queries.

Allows querying engineer logs from the command line:
    python -m task_siphon.query "fix the login bug" --team payments
"""

import json
from datetime import datetime

import click

from task_siphon.config import load_config
from task_siphon.logging import setup_logging
from task_siphon.models import ScoredMatch
from task_siphon.query.engine import run_query


def format_timestamp(ts_ms: int) -> str:
    """Format a millisecond timestamp for display."""
    if ts_ms <= 0:
        return "unknown time"
    try:
        return datetime.fromtimestamp(ts_ms / 1000).strftime("%Y-%m-%d %H:%M:%S")
    except (ValueError, OverflowError, OSError):
        return "unknown time"


def print_match(match: ScoredMatch, verbose: bool = False) -> None:
    """Print a ranked task match."""
    record = match.record

    click.echo(
        f"\033[36m[{format_timestamp(record.timestamp_ms)}]\033[0m "
        f"\033[1m{record.engineer}\033[0m \033[32m{record.source}\033[0m (score {match.score:.1f})"
    )
    if verbose:
        if record.session_id:
            click.echo(f"Session: {record.session_id}")
        if record.project:
            click.echo(f"Project: {record.project}")
        click.echo(f"File: {record.file}:{record.line}")

    click.echo(f"\n{record.text[:600]}\n")
    click.echo("-" * 40)


@click.command()
@click.argument("query", default="")
@click.option("--root", "team_root", help="Team root directory (default: ~/team)")
@click.option("--team", "teams", multiple=True, help="Only scan this team (repeatable)")
@click.option("--engineer", "engineers", multiple=True, help="Only scan this engineer (repeatable)")
@click.option("--limit", "-n", type=int, default=None, help="Number of results (1-200)")
@click.option("--json", "as_json", is_flag=True, help="Print the result envelope as JSON")
@click.option("--verbose", "-v", is_flag=True, help="Show more details")
def cli(
    query: str,
    team_root: str | None,
    teams: tuple[str, ...],
    engineers: tuple[str, ...],
    limit: int | None,
    as_json: bool,
    verbose: bool,
) -> None:
    """Search engineer task history from Claude and Codex logs."""
    setup_logging("query", console=False)
    config = load_config()

    result = run_query(
        query,
        team_root=team_root,
        teams=list(teams),
        engineers=list(engineers),
        limit=limit,
        config=config,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        return

    click.echo(
        f"Scanned {len(result.scanned_engineers)} engineers, {result.scanned_files} files, "
        f"{result.extracted_tasks} tasks under {result.team_root}"
    )
    click.echo(f"Found {len(result.matches)} matches:\n")

    for match in result.matches:
        print_match(match, verbose)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
