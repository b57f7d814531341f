"""Coalescing scheduler for sync runs.

At most one sync runs at a time. Enqueue calls that arrive while a run is
in flight collapse into a single follow-up run, started as soon as the
current one completes. Runs execute as tasks on the running event loop, so
the running/pending flags are only touched between suspension points.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from task_siphon.config import Config, load_config
from task_siphon.logging import get_logger
from task_siphon.sync.dumper import pull_sessions

logger = get_logger("coordinator")

SyncRunner = Callable[[], Awaitable[Any]]


class SyncCoordinator:
    """Runs a sync function with at most one run in flight and one queued."""

    def __init__(self, runner: SyncRunner) -> None:
        self._runner = runner
        self._running = False
        self._pending = False
        self._task: asyncio.Task | None = None
        self._runs_started = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_pending(self) -> bool:
        return self._pending

    @property
    def runs_started(self) -> int:
        return self._runs_started

    def enqueue(self) -> None:
        """Request a sync; never raises for a failing run.

        Must be called from within a running event loop.
        """
        if self._running:
            self._pending = True
            logger.debug("Sync already running, marked pending")
            return
        self._start()

    def _start(self) -> None:
        # Raises RuntimeError outside a running loop; state stays untouched
        loop = asyncio.get_running_loop()
        self._running = True
        self._runs_started += 1
        self._task = loop.create_task(self._execute())

    async def _execute(self) -> None:
        try:
            await self._runner()
        except Exception:
            logger.exception("Sync run failed")
        finally:
            self._on_complete()

    def _on_complete(self) -> None:
        self._running = False
        if self._pending:
            self._pending = False
            self._start()

    async def wait_idle(self) -> None:
        """Wait until no run is in flight or queued."""
        while self._task is not None and not self._task.done():
            await self._task


_default_coordinator: SyncCoordinator | None = None


def get_coordinator(config: Config | None = None) -> SyncCoordinator:
    """Return the process-wide coordinator, creating it on first use."""
    global _default_coordinator
    if _default_coordinator is None:
        sync_config = (config or load_config()).sync

        async def run() -> None:
            await pull_sessions(sync_config)

        _default_coordinator = SyncCoordinator(run)
    return _default_coordinator


def enqueue_sync(config: Config | None = None) -> SyncCoordinator:
    """Fire-and-forget trigger for a sync run."""
    coordinator = get_coordinator(config)
    coordinator.enqueue()
    return coordinator


def reset_coordinator() -> None:
    """Drop the process-wide coordinator (useful for testing)."""
    global _default_coordinator
    _default_coordinator = None
