"""Background worker that cancels lapsed holds."""

import logging

from ..services.lifecycle_service import BookingLifecycleService
from .base import BaseWorker

logger = logging.getLogger(__name__)


class ExpirySweepWorker(BaseWorker):
    """
    Periodically cancels holds past their expiry and gives their inventory back.

    Reads and confirmations already expire lapsed holds on their own; the sweep
    only returns inventory sooner for holds nobody looks at again.
    """

    def __init__(self, lifecycle: BookingLifecycleService, interval_seconds: float = 300, batch_size: int = 50):
        super().__init__(name="ExpirySweep", interval_seconds=interval_seconds)
        self.lifecycle = lifecycle
        self.batch_size = batch_size
        self.last_expired_count = 0

    async def process(self) -> None:
        """Sweep expired holds in batches."""
        self.last_expired_count = await self.lifecycle.sweep_expired(self.batch_size)

        if self.last_expired_count > 0:
            logger.info(
                f"Expired {self.last_expired_count} holds",
                extra={"expired_count": self.last_expired_count, "worker": self.name}
            )
