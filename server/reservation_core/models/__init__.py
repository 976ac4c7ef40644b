"""Models module exporting all database models."""

from .booking import (
    TRANSITIONS,
    Booking,
    BookingStatus,
    ExcursionLine,
    FlightLine,
    LodgingLine,
    TransferLine,
)
from .inventory import Flight, RoomNight
from .pricing import PackagePrice
from .sequence import RESERVATION_SEQUENCE_ID, ReservationSequence

__all__ = [
    # Booking aggregate
    "Booking",
    "BookingStatus",
    "TRANSITIONS",
    "FlightLine",
    "LodgingLine",
    "TransferLine",
    "ExcursionLine",

    # Inventory
    "Flight",
    "RoomNight",

    # Reference prices
    "PackagePrice",

    # Reservation code counter
    "ReservationSequence",
    "RESERVATION_SEQUENCE_ID",
]
