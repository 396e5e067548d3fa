"""Cancellable periodic snapshot task."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)


class ScheduledSnapshotTask:
    """Run ``job`` every ``interval_seconds`` until stopped.

    The first run happens one interval after ``start()``.  A failing job is
    logged and the loop keeps going.

    Args:
        job: Zero-argument coroutine function, typically a scheduled build.
        interval_seconds: Delay between runs.

    Example:
        >>> task = ScheduledSnapshotTask(lambda: service.create_snapshot(reason="scheduled"), 3600)
        >>> task.start()
        >>> ...
        >>> await task.stop()
    """

    def __init__(
        self,
        job: Callable[[], Awaitable[Any]],
        interval_seconds: float,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        self.job = job
        self.interval_seconds = interval_seconds
        self.runs = 0
        self.failures = 0
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> "ScheduledSnapshotTask":
        """Start the loop on the running event loop."""
        if self.running:
            logger.warning("Scheduled snapshots already running")
            return self
        logger.info(
            "Scheduling automatic snapshots",
            extra={"interval_seconds": self.interval_seconds},
        )
        self._task = asyncio.get_running_loop().create_task(self._run())
        return self

    def cancel(self) -> None:
        """Request the loop to stop without waiting for it."""
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def stop(self) -> None:
        """Stop the loop and wait until it has exited."""
        task = self._task
        if task is None:
            return
        self.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Automatic snapshot scheduling stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            logger.info("Running scheduled snapshot")
            try:
                await self.job()
                self.runs += 1
            except Exception as e:
                self.failures += 1
                logger.error(f"Scheduled snapshot failed: {e}", exc_info=True)
