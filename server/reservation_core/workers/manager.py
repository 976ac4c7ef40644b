"""Worker manager for coordinating background tasks."""

import asyncio
import logging
from typing import Dict

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.config import Settings
from ..services.lifecycle_service import BookingLifecycleService
from .base import BaseWorker
from .expiry_sweep_worker import ExpirySweepWorker

logger = logging.getLogger(__name__)


class WorkerManager:
    """
    Manages background workers for the application.

    Coordinates starting, stopping, and monitoring of all background workers.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], config: Settings):
        """Initialize the worker manager."""
        self.workers: Dict[str, BaseWorker] = {}
        self._setup_workers(session_factory, config)

    def _setup_workers(self, session_factory: async_sessionmaker[AsyncSession], config: Settings) -> None:
        """Initialize all workers."""
        self.workers["expiry_sweep"] = ExpirySweepWorker(
            BookingLifecycleService(session_factory, config),
            interval_seconds=config.expiry_sweep_interval_seconds,
            batch_size=config.expiry_sweep_batch_size,
        )

        logger.info(f"Initialized {len(self.workers)} workers")

    async def start_all(self) -> None:
        """Start all workers."""
        for name, worker in self.workers.items():
            await worker.start()
            logger.info(f"Started worker: {name}")

    async def stop_all(self) -> None:
        """Stop all workers gracefully."""
        logger.info("Stopping all workers")

        running = {name: worker for name, worker in self.workers.items() if worker.is_running}
        results = await asyncio.gather(
            *(worker.stop() for worker in running.values()), return_exceptions=True
        )

        for name, result in zip(running, results):
            if isinstance(result, Exception):
                logger.error(f"Error stopping worker {name}: {result!s}")
            else:
                logger.info(f"Stopped worker: {name}")

    def get_worker(self, name: str) -> BaseWorker:
        """
        Get a specific worker by name.

        Raises:
            KeyError: If worker not found
        """
        return self.workers[name]

    def get_worker_status(self) -> Dict[str, bool]:
        """Map worker names to their running status."""
        return {name: worker.is_running for name, worker in self.workers.items()}
