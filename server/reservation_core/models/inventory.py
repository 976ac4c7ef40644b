"""Sellable inventory: flight seats and the lodging room-night grid."""

from datetime import date, datetime
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, DateTime, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base, utcnow


class Flight(Base):
    """A scheduled flight with a fixed seat capacity."""

    __tablename__ = "flights"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Flight details
    flight_number: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    origin: Mapped[str] = mapped_column(String(8), nullable=False)
    destination: Mapped[str] = mapped_column(String(8), nullable=False)
    departure_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    arrival_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Capacity management
    total_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    available_seats: Mapped[int] = mapped_column(Integer, nullable=False)

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
        CheckConstraint("total_seats > 0", name="ck_flight_total_seats_positive"),
        CheckConstraint("available_seats >= 0", name="ck_flight_available_seats_non_negative"),
        CheckConstraint("available_seats <= total_seats", name="ck_flight_available_lte_total"),
    )

    def __repr__(self) -> str:
        return (
            f"<Flight(id={self.id}, flight_number='{self.flight_number}', "
            f"available_seats={self.available_seats}/{self.total_seats})>"
        )


class RoomNight(Base):
    """Rooms of one type still sellable for one night."""

    __tablename__ = "room_nights"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    room_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    stay_date: Mapped[date] = mapped_column(Date, nullable=False)
    available_rooms: Mapped[int] = mapped_column(Integer, nullable=False)
    booked_rooms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow
    )

    __table_args__ = (
        UniqueConstraint("room_id", "stay_date", name="uq_room_night_room_date"),
        CheckConstraint("available_rooms >= 0", name="ck_room_night_available_non_negative"),
        CheckConstraint("booked_rooms >= 0", name="ck_room_night_booked_non_negative"),
    )

    @property
    def total_rooms(self) -> int:
        return self.available_rooms + self.booked_rooms

    def __repr__(self) -> str:
        return (
            f"<RoomNight(room_id='{self.room_id}', stay_date={self.stay_date}, "
            f"available_rooms={self.available_rooms}, booked_rooms={self.booked_rooms})>"
        )
