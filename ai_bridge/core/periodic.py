# ai_bridge/core/periodic.py
import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicSweeper:
    """
    Runs a synchronous sweep callback on a fixed interval in a background task.

    The callback returns the number of entries it removed; non-zero results are
    logged. Failures inside a sweep are logged and the loop keeps running.
    """

    def __init__(self, name: str, sweep: Callable[[], int], interval_seconds: float):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive.")
        self.name = name
        self._sweep = sweep
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the sweep loop on the running event loop."""
        if self.running:
            logger.warning(f"PeriodicSweeper '{self.name}' already running. Skipping start.")
            return
        self._task = asyncio.create_task(self._run(), name=f"sweep:{self.name}")
        logger.info(f"PeriodicSweeper '{self.name}' started (interval {self.interval_seconds}s).")

    async def _run(self) -> None:
        while True:
            try:
                await asyncio.sleep(self.interval_seconds)
                removed = self._sweep()
                if removed:
                    logger.info(f"PeriodicSweeper '{self.name}': removed {removed} expired entries")
            except asyncio.CancelledError:
                logger.info(f"PeriodicSweeper '{self.name}' cancelled")
                raise
            except Exception as e:
                logger.error(f"PeriodicSweeper '{self.name}' sweep failed: {e}", exc_info=True)

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        if not self._task:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info(f"PeriodicSweeper '{self.name}' stopped.")
