"""Sync daemon main loop: periodically pull cached sessions."""

import asyncio

from task_siphon.config import Config
from task_siphon.logging import get_logger, setup_logging
from task_siphon.sync.coordinator import SyncCoordinator, get_coordinator

logger = get_logger("sync")

# Global flag for graceful shutdown
_shutdown_requested = False


def request_shutdown() -> None:
    """Request graceful shutdown of the sync daemon."""
    global _shutdown_requested
    _shutdown_requested = True


def is_shutdown_requested() -> bool:
    """Check if shutdown has been requested."""
    return _shutdown_requested


def reset_shutdown() -> None:
    """Reset shutdown flag (useful for testing)."""
    global _shutdown_requested
    _shutdown_requested = False


async def _sleep_until_next_cycle(interval: float, tick: float) -> None:
    """Sleep in small increments so a shutdown request is noticed quickly."""
    remaining = interval
    while remaining > 0 and not is_shutdown_requested():
        step = min(tick, remaining)
        await asyncio.sleep(step)
        remaining -= step


async def run_sync_daemon(
    config: Config,
    coordinator: SyncCoordinator | None = None,
    tick: float = 1.0,
) -> int:
    """Enqueue a sync every interval until shutdown is requested.

    Args:
        config: Application configuration
        coordinator: Coordinator to trigger (defaults to the process-wide one)
        tick: Sleep granularity in seconds

    Returns:
        Number of enqueue calls made
    """
    reset_shutdown()
    setup_logging("sync")

    if coordinator is None:
        coordinator = get_coordinator(config)

    interval = config.sync.interval_seconds
    logger.info(
        "Starting sync daemon: db=%s out_dir=%s interval=%ds",
        config.sync.db_path,
        config.sync.out_dir,
        interval,
    )

    cycles = 0
    while not is_shutdown_requested():
        coordinator.enqueue()
        cycles += 1
        logger.debug("Enqueued sync: cycle=%d running=%s", cycles, coordinator.is_running)

        if is_shutdown_requested():
            break
        await _sleep_until_next_cycle(interval, tick)

    await coordinator.wait_idle()
    logger.info("Sync daemon stopped")
    return cycles
