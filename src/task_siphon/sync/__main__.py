"""CLI entry point for session sync.

Allows running a sync as a module:
    python -m task_siphon.sync pull --engineer-id eng1 --source codex
    python -m task_siphon.sync watch --interval 600
"""

import asyncio
import signal
import sys
from types import FrameType

import click

from task_siphon.config import load_config
from task_siphon.exceptions import TaskSiphonError
from task_siphon.logging import get_logger, setup_logging
from task_siphon.sync.cache import CACHE_BACKENDS
from task_siphon.sync.daemon import request_shutdown, run_sync_daemon
from task_siphon.sync.dumper import format_preview_row, pull_sessions
from task_siphon.sync.selection import SOURCE_FILTERS

logger = get_logger("sync")


def signal_handler(signum: int, frame: FrameType | None) -> None:
    """Handle shutdown signals gracefully."""
    sig_name = signal.Signals(signum).name
    logger.info("Received signal %s, shutting down", sig_name)
    request_shutdown()


@click.group()
def cli() -> None:
    """Pull coding-agent sessions from the context cache."""


@cli.command()
@click.option("--out-dir", help="Output directory (default: teams/demo/fabio/log)")
@click.option("--db-path", help="Context daemon database (default: ~/.ultracontext/daemon.db)")
@click.option(
    "--cache-backend",
    type=click.Choice(CACHE_BACKENDS, case_sensitive=False),
    help="How to read the daemon cache: sqlite3 shell (cli) or in-process (sqlite)",
)
@click.option("--engineer-id", help="Only pull sessions of this engineer")
@click.option("--host", help="Only pull sessions from this host")
@click.option("--source", type=click.Choice(SOURCE_FILTERS, case_sensitive=False), help="Session source")
@click.option("--limit", type=click.IntRange(min=1), help="Maximum sessions to pull")
@click.option("--base-url", help="Context service base URL")
@click.option("--api-key", help="Context service API key")
@click.option("--skip-raw", is_flag=True, help="Do not write raw payload dumps")
@click.option("--dry-run", is_flag=True, help="Only list the sessions that would be pulled")
def pull(**options: object) -> None:
    """Pull the newest sessions once."""
    setup_logging("sync")
    config = load_config()
    # Unset flags must not override values from the config file
    for flag in ("skip_raw", "dry_run"):
        options[flag] = options[flag] or None
    sync_config = config.sync.with_overrides(**options)

    try:
        summary = asyncio.run(pull_sessions(sync_config))
    except TaskSiphonError as e:
        click.echo(f"Failed to pull sessions: {e}", err=True)
        sys.exit(1)

    if summary.dry_run:
        click.echo(f"Found {summary.total_sessions} sessions:")
        for row in summary.preview:
            click.echo(format_preview_row(row))
        click.echo("Dry run complete.")
        return

    click.echo(f"Dumped {summary.total_sessions} sessions to {summary.out_dir}")
    click.echo(f"Total user messages: {summary.total_user_messages}")
    if summary.failed_sessions:
        click.echo(f"Failed sessions: {summary.failed_sessions}", err=True)


@cli.command()
@click.option("--interval", type=click.IntRange(min=1), help="Seconds between syncs")
def watch(interval: int | None) -> None:
    """Pull sessions periodically until interrupted."""
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    config = load_config()
    if interval is not None:
        config.sync.interval_seconds = interval

    try:
        asyncio.run(run_sync_daemon(config))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        request_shutdown()

    sys.exit(0)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
