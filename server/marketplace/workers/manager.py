"""Worker manager for coordinating background tasks."""

import asyncio
import logging
from typing import Dict

from ..core.cache import QueryCache
from .base import BaseWorker
from .cache_sweep_worker import CacheSweepWorker

logger = logging.getLogger(__name__)


class WorkerManager:
    """
    Manages background workers for the application.

    One manager is created per application, around the objects the workers
    operate on.
    """

    def __init__(self, cache: QueryCache, cache_sweep_interval_seconds: float = 300):
        self.workers: Dict[str, BaseWorker] = {
            "cache_sweep": CacheSweepWorker(cache, interval_seconds=cache_sweep_interval_seconds),
        }
        logger.info(f"Initialized {len(self.workers)} workers")

    async def start_all(self) -> None:
        """Start all workers."""
        logger.info("Starting all workers")

        for name, worker in self.workers.items():
            try:
                await worker.start()
            except Exception as e:
                logger.error(f"Failed to start worker {name}: {str(e)}", exc_info=True)

        logger.info(f"Started {len(self.workers)} workers")

    async def stop_all(self) -> None:
        """Stop all running workers gracefully."""
        logger.info("Stopping all workers")

        running = {name: worker for name, worker in self.workers.items() if worker.running}
        results = await asyncio.gather(
            *(worker.stop() for worker in running.values()),
            return_exceptions=True
        )

        for name, result in zip(running, results):
            if isinstance(result, Exception):
                logger.error(f"Error stopping worker {name}: {str(result)}")

        logger.info("All workers stopped")

    def get_worker(self, name: str) -> BaseWorker:
        """
        Get a specific worker by name.

        Raises:
            KeyError: If worker not found
        """
        return self.workers[name]

    def get_worker_status(self) -> Dict[str, bool]:
        """Map of worker name to running status."""
        return {name: worker.running for name, worker in self.workers.items()}
