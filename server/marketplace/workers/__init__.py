"""Background workers for the marketplace service."""

from .cache_sweep_worker import CacheSweepWorker
from .manager import WorkerManager

__all__ = ["CacheSweepWorker", "WorkerManager"]
