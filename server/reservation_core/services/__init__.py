"""Service layer package."""

from .booking_service import BookingService
from .inventory_service import InventoryService, ReservationOutcome
from .lifecycle_service import BookingLifecycleService
from .pricing_service import PricingService, calendar_nights, derive_quote
from .sequence_service import SequenceService, format_reservation_code

__all__ = [
    "BookingService",
    "BookingLifecycleService",
    "InventoryService",
    "PricingService",
    "ReservationOutcome",
    "SequenceService",
    "calendar_nights",
    "derive_quote",
    "format_reservation_code",
]
