"""Periodic in-process scan trigger. Each tick starts a scan without waiting for it."""

import asyncio
import logging

from app.services.scanner import ScanOrchestrator, run_background_scan

logger = logging.getLogger(__name__)


class ScanScheduler:
    """
    Starts a "scheduled" scan every interval_seconds. Ticks are fire-and-forget: a slow scan
    never delays the timer, and a tick that lands on a running scan is skipped by the
    orchestrator's lock.
    """

    def __init__(self, orchestrator: ScanOrchestrator, interval_seconds: float) -> None:
        self._orchestrator = orchestrator
        self._interval = interval_seconds
        self._loop_task: asyncio.Task | None = None
        self._scan_tasks: set[asyncio.Task] = set()

    def tick(self) -> asyncio.Task:
        task = asyncio.create_task(run_background_scan(self._orchestrator, "scheduled"))
        self._scan_tasks.add(task)
        task.add_done_callback(self._scan_tasks.discard)
        return task

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            logger.info("Running scheduled security scan...")
            self.tick()

    def start(self) -> None:
        if self._loop_task is None:
            self._loop_task = asyncio.create_task(self._loop())
            logger.info("Scan scheduler started", extra={"interval_sec": self._interval})

    async def stop(self) -> None:
        if self._loop_task is not None:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None
        tasks = list(self._scan_tasks)
        for task in tasks:
            task.cancel()
        # Cancelled scans finalize their ScanRun before exiting.
        await asyncio.gather(*tasks, return_exceptions=True)
