"""Base worker class for background tasks."""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Optional

logger = logging.getLogger(__name__)


class BaseWorker(ABC):
    """
    Abstract base class for periodic background workers.

    The first iteration runs one full interval after ``start``. ``stop``
    wakes the loop at once but never interrupts an iteration in progress.
    A failing iteration is logged and counted; the loop carries on.
    """

    def __init__(self, name: str, interval_seconds: float = 60):
        """
        Initialize the worker.

        Args:
            name: Worker name for logging
            interval_seconds: Pause between iterations
        """
        self.name = name
        self.interval_seconds = interval_seconds
        self.iterations = 0
        self.failures = 0
        self.last_error: Optional[str] = None
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._stop_event.is_set()

    @abstractmethod
    async def process(self) -> None:
        """Process one iteration of the background task."""

    async def start(self) -> None:
        if self.running:
            logger.warning(f"{self.name} worker is already running")
            return

        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name=f"worker-{self.name}")
        logger.info(f"{self.name} worker started with {self.interval_seconds}s interval")

    async def stop(self) -> None:
        """Signal the loop to exit and wait for the current iteration to finish."""
        if self._task is None:
            logger.warning(f"{self.name} worker is not running")
            return

        self._stop_event.set()
        await self._task
        self._task = None

        logger.info(
            f"{self.name} worker stopped",
            extra={"worker": self.name, "iterations": self.iterations, "failures": self.failures}
        )

    async def _wait_interval(self) -> bool:
        """Sleep one interval. Returns False when a stop was requested meanwhile."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
        except asyncio.TimeoutError:
            return True
        return False

    async def _run(self) -> None:
        logger.info(f"{self.name} worker loop started")

        while await self._wait_interval():
            start_time = time.perf_counter()
            try:
                await self.process()
            except Exception as e:
                self.failures += 1
                self.last_error = str(e)
                logger.error(
                    f"{self.name} worker error: {e}",
                    exc_info=True,
                    extra={"worker": self.name, "failures": self.failures}
                )
                continue
            finally:
                self.iterations += 1

            logger.debug(
                f"{self.name} worker iteration completed",
                extra={
                    "duration_seconds": time.perf_counter() - start_time,
                    "worker": self.name,
                }
            )

        logger.info(f"{self.name} worker loop exited")
