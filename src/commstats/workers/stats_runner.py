"""Standalone runner for the community stats aggregation loop.

Runs one aggregation cycle immediately on startup, then sleeps for the
configured cooldown. Every time the cooldown expires it runs another cycle
followed by the stale login sweep. A failed cycle is logged and the loop
carries on; the previous snapshot stays in place.

Usage: python -m commstats.workers.stats_runner
"""

from __future__ import annotations

import asyncio
import enum
import logging
import signal
from collections.abc import Awaitable, Callable
from datetime import timedelta

from commstats.config import get_settings
from commstats.database import close_db, get_session_factory, init_db
from commstats.middleware.logging import setup_logging
from commstats.stats.service import run_aggregation_cycle
from commstats.workers.session_sweep import SessionDirectory, sweep_stale_sessions

logger = logging.getLogger(__name__)


class SchedulerState(enum.Enum):
    IDLE = "idle"
    RUNNING_CYCLE = "running_cycle"
    SWEEPING = "sweeping"
    SLEEPING = "sleeping"
    STOPPED = "stopped"


class AggregationScheduler:
    """Cycle -> sleep -> cycle + sweep -> sleep ... until stopped."""

    def __init__(
        self,
        cycle: Callable[[], Awaitable[object]],
        sweep: Callable[[], Awaitable[object]],
        cooldown_seconds: float,
    ) -> None:
        self._cycle = cycle
        self._sweep = sweep
        self._cooldown = cooldown_seconds
        self._stop_event = asyncio.Event()
        self.state = SchedulerState.IDLE
        self.cycles_run = 0

    def stop(self) -> None:
        self._stop_event.set()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    async def _run_cycle(self) -> None:
        self.state = SchedulerState.RUNNING_CYCLE
        try:
            await self._cycle()
        except Exception:
            logger.exception("Aggregation cycle failed")
        self.cycles_run += 1

    async def _run_sweep(self) -> None:
        self.state = SchedulerState.SWEEPING
        try:
            await self._sweep()
        except Exception:
            logger.exception("Session sweep failed")

    async def _sleep(self) -> bool:
        """Wait out the cooldown. Returns False if stopped meanwhile."""
        self.state = SchedulerState.SLEEPING
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self._cooldown)
        except asyncio.TimeoutError:
            return True
        return False

    async def run_forever(self) -> None:
        await self._run_cycle()
        while not self.stopped:
            if not await self._sleep():
                break
            await self._run_cycle()
            await self._run_sweep()
        self.state = SchedulerState.STOPPED


async def main() -> None:
    """Run the aggregation scheduler until SIGINT/SIGTERM."""
    settings = get_settings()
    setup_logging(settings)
    await init_db(settings.database_url)
    session_factory = get_session_factory()
    directory = SessionDirectory(session_factory)

    async def cycle() -> None:
        await run_aggregation_cycle(session_factory, settings)

    async def sweep() -> None:
        await sweep_stale_sessions(
            directory,
            max_age=timedelta(hours=settings.session_max_age_hours),
            page_size=settings.session_sweep_page_size,
        )

    scheduler = AggregationScheduler(cycle, sweep, settings.stats_cooldown_seconds)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, scheduler.stop)

    logger.info("Starting stats worker (cooldown=%ss)", settings.stats_cooldown_seconds)
    try:
        await scheduler.run_forever()
    finally:
        await close_db()
        logger.info("Stats worker stopped")


if __name__ == "__main__":
    asyncio.run(main())
