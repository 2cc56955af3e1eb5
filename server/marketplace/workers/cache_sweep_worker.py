"""Worker that evicts expired query cache entries."""

import logging

from ..core.cache import QueryCache
from ..core.observability import metrics_collector
from .base import BaseWorker

logger = logging.getLogger(__name__)


class CacheSweepWorker(BaseWorker):
    """
    Periodically sweeps expired entries out of the query cache.

    Entries that are never read again would otherwise sit in memory until
    LRU pressure pushes them out.
    """

    def __init__(self, cache: QueryCache, interval_seconds: float = 300):
        super().__init__("CacheSweep", interval_seconds)
        self.cache = cache

    async def process(self) -> None:
        """Sweep once; a destroyed cache is left alone."""
        if self.cache.destroyed:
            logger.debug("Query cache destroyed, skipping sweep")
            return

        removed = self.cache.sweep()
        if removed:
            metrics_collector.record_cache_sweep(removed)
