"""Booking aggregate and line item model definitions."""

import secrets
import string
from datetime import date, datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import JSON, CheckConstraint, Date, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base, utcnow


class BookingStatus(str, Enum):
    """Booking status enumeration."""
    HOLD = "HOLD"
    CONFIRMED = "CONFIRMED"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


# Allowed lifecycle transitions; CANCELLED is terminal.
TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.HOLD: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.PAID, BookingStatus.CANCELLED}),
    BookingStatus.PAID: frozenset({BookingStatus.CANCELLED}),
    BookingStatus.CANCELLED: frozenset(),
}


def generate_line_number(prefix: str, length: int = 8) -> str:
    """Generate a supplier-facing booking number such as ``FLT-7QK2M9XA``."""
    alphabet = string.ascii_uppercase + string.digits
    return f"{prefix}-" + ''.join(secrets.choice(alphabet) for _ in range(length))


class Booking(Base):
    """Booking aggregate: one customer's trip and its inventory-holding line items."""

    __tablename__ = "bookings"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Human-readable identifier (PREFIX-NNNN)
    reservation_code: Mapped[str] = mapped_column(String(32), nullable=False, unique=True, index=True)
    status: Mapped[BookingStatus] = mapped_column(
        String(20),
        nullable=False,
        default=BookingStatus.HOLD,
        index=True
    )

    # Amounts in minor units
    total_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    # Customer
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    customer_phone: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Occupancy and stay
    adults: Mapped[int] = mapped_column(Integer, nullable=False)
    children: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    infants: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    check_in_date: Mapped[date] = mapped_column(Date, nullable=False)
    check_out_date: Mapped[date] = mapped_column(Date, nullable=False)
    passenger_details: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)

    # Lifecycle
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    payment_reference: Mapped[str | None] = mapped_column(String(128), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow
    )

    # Constraints
    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="ck_booking_total_non_negative"),
        CheckConstraint("adults > 0", name="ck_booking_adults_positive"),
        CheckConstraint("children >= 0 AND infants >= 0", name="ck_booking_party_non_negative"),
        CheckConstraint("check_out_date > check_in_date", name="ck_booking_dates_ordered"),
        CheckConstraint(
            "(status = 'HOLD') = (expires_at IS NOT NULL)",
            name="ck_booking_expiry_only_on_hold"
        ),
    )

    # Relationships
    flight_lines: Mapped[list["FlightLine"]] = relationship(
        back_populates="booking", cascade="all, delete-orphan", lazy="selectin"
    )
    lodging_lines: Mapped[list["LodgingLine"]] = relationship(
        back_populates="booking", cascade="all, delete-orphan", lazy="selectin"
    )
    transfer_lines: Mapped[list["TransferLine"]] = relationship(
        back_populates="booking", cascade="all, delete-orphan", lazy="selectin"
    )
    excursion_lines: Mapped[list["ExcursionLine"]] = relationship(
        back_populates="booking", cascade="all, delete-orphan", lazy="selectin"
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, reservation_code='{self.reservation_code}', "
            f"status={self.status}, expires_at={self.expires_at})>"
        )


class FlightLine(Base):
    """Seats on one flight held by a booking."""

    __tablename__ = "booking_flight_lines"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    booking_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    booking_number: Mapped[str] = mapped_column(
        String(32), nullable=False, unique=True, default=lambda: generate_line_number("FLT")
    )
    flight_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("flights.id"), nullable=False, index=True)
    passengers: Mapped[int] = mapped_column(Integer, nullable=False)
    cabin_class: Mapped[str] = mapped_column(String(32), nullable=False, default="economy")
    price: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("passengers > 0", name="ck_flight_line_passengers_positive"),
        CheckConstraint("price >= 0", name="ck_flight_line_price_non_negative"),
    )

    booking: Mapped["Booking"] = relationship(back_populates="flight_lines")


class LodgingLine(Base):
    """Rooms at one property for a date range; ``room_id`` links it to the room-night grid."""

    __tablename__ = "booking_lodging_lines"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    booking_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    booking_number: Mapped[str] = mapped_column(
        String(32), nullable=False, unique=True, default=lambda: generate_line_number("HTL")
    )
    lodging_option_id: Mapped[str] = mapped_column(String(64), nullable=False)
    hotel_name: Mapped[str] = mapped_column(String(255), nullable=False)
    room_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    room_type: Mapped[str] = mapped_column(String(64), nullable=False)
    check_in: Mapped[date] = mapped_column(Date, nullable=False)
    check_out: Mapped[date] = mapped_column(Date, nullable=False)
    nights: Mapped[int] = mapped_column(Integer, nullable=False)
    rooms: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    occupancy: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("nights > 0", name="ck_lodging_line_nights_positive"),
        CheckConstraint("rooms > 0", name="ck_lodging_line_rooms_positive"),
        CheckConstraint("price >= 0", name="ck_lodging_line_price_non_negative"),
    )

    booking: Mapped["Booking"] = relationship(back_populates="lodging_lines")


class TransferLine(Base):
    __tablename__ = "booking_transfer_lines"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    booking_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    booking_number: Mapped[str] = mapped_column(
        String(32), nullable=False, unique=True, default=lambda: generate_line_number("TRF")
    )
    transfer_id: Mapped[str] = mapped_column(String(64), nullable=False)
    transfer_date: Mapped[date] = mapped_column(Date, nullable=False)
    passengers: Mapped[int] = mapped_column(Integer, nullable=False)
    pickup_location: Mapped[str] = mapped_column(String(255), nullable=False)
    dropoff_location: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("passengers > 0", name="ck_transfer_line_passengers_positive"),
        CheckConstraint("price >= 0", name="ck_transfer_line_price_non_negative"),
    )

    booking: Mapped["Booking"] = relationship(back_populates="transfer_lines")


class ExcursionLine(Base):
    __tablename__ = "booking_excursion_lines"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    booking_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    booking_number: Mapped[str] = mapped_column(
        String(32), nullable=False, unique=True, default=lambda: generate_line_number("EXC")
    )
    excursion_id: Mapped[str] = mapped_column(String(64), nullable=False)
    excursion_date: Mapped[date] = mapped_column(Date, nullable=False)
    participants: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("participants > 0", name="ck_excursion_line_participants_positive"),
        CheckConstraint("price >= 0", name="ck_excursion_line_price_non_negative"),
    )

    booking: Mapped["Booking"] = relationship(back_populates="excursion_lines")
