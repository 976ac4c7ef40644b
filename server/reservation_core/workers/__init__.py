"""Background workers for the reservation core."""

from .expiry_sweep_worker import ExpirySweepWorker
from .manager import WorkerManager

__all__ = ["ExpirySweepWorker", "WorkerManager"]
