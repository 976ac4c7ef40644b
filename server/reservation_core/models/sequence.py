"""Reservation code counter model definition."""

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base, utcnow

RESERVATION_SEQUENCE_ID = "reservation"


class ReservationSequence(Base):
    """Singleton counter behind reservation codes; only ever moves forward."""

    __tablename__ = "reservation_sequences"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=RESERVATION_SEQUENCE_ID)
    current_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow
    )

    __table_args__ = (
        CheckConstraint("current_number >= 0", name="ck_reservation_sequence_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<ReservationSequence(id='{self.id}', current_number={self.current_number})>"
