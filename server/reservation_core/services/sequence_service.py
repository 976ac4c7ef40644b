"""Reservation code allocation backed by a durable counter."""

import re

from sqlalchemy import Integer, cast, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import SequenceCorruptionError, ValidationError
from ..core.observability import get_logger, metrics_collector
from ..core.transactions import RetryableConflict
from ..models.booking import Booking
from ..models.sequence import RESERVATION_SEQUENCE_ID, ReservationSequence

logger = get_logger(__name__)

PREFIX_PATTERN = re.compile(r"^[A-Za-z0-9]{1,10}$")


def validate_prefix(prefix: str) -> str:
    """Reject prefixes that are not 1-10 ASCII letters or digits."""
    if not isinstance(prefix, str) or not PREFIX_PATTERN.match(prefix):
        raise ValidationError(
            detail="Reservation prefix must be 1-10 ASCII letters or digits",
            violations=[{"path": "prefix", "message": f"invalid prefix {prefix!r}"}],
        )
    return prefix


def format_reservation_code(prefix: str, number: int) -> str:
    """Format ``PREFIX-NNNN``, zero-padded to at least four digits."""
    return f"{prefix}-{number:04d}"


class SequenceService:
    """Allocates reservation codes inside the caller's transaction."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def highest_issued(self, prefix: str) -> int:
        """Largest numeric suffix among existing codes for ``prefix`` (0 when none)."""
        suffix = func.substr(Booking.reservation_code, len(prefix) + 2)
        stmt = select(func.max(cast(suffix, Integer))).where(
            Booking.reservation_code.like(f"{prefix}-%")
        )
        return (await self.db.scalar(stmt)) or 0

    async def _load_counter(self) -> ReservationSequence | None:
        stmt = (
            select(ReservationSequence)
            .where(ReservationSequence.id == RESERVATION_SEQUENCE_ID)
            .execution_options(populate_existing=True)
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def next_code(self, prefix: str) -> str:
        """
        Allocate the next reservation code for ``prefix``.

        The counter is created lazily at the highest number already issued and
        fast-forwarded when it lags behind existing codes, so a lost or stale
        counter never hands out a code twice.

        Raises:
            ValidationError: If the prefix is malformed
            RetryableConflict: If another writer created the counter first
            SequenceCorruptionError: If the allocated code is already taken
        """
        validate_prefix(prefix)
        existing_max = await self.highest_issued(prefix)
        counter = await self._load_counter()

        if counter is None:
            self.db.add(ReservationSequence(id=RESERVATION_SEQUENCE_ID, current_number=existing_max))
            try:
                await self.db.flush()
            except IntegrityError as e:
                raise RetryableConflict("reservation counter created concurrently") from e
            logger.info("Reservation counter created", current_number=existing_max)
        elif counter.current_number < existing_max:
            await self.db.execute(
                update(ReservationSequence)
                .where(
                    ReservationSequence.id == RESERVATION_SEQUENCE_ID,
                    ReservationSequence.current_number < existing_max,
                )
                .values(current_number=existing_max)
                .execution_options(synchronize_session=False)
            )
            logger.warning(
                "Reservation counter behind issued codes, fast-forwarded",
                previous_number=counter.current_number,
                current_number=existing_max,
                prefix=prefix,
            )

        await self.db.execute(
            update(ReservationSequence)
            .where(ReservationSequence.id == RESERVATION_SEQUENCE_ID)
            .values(current_number=ReservationSequence.current_number + 1)
            .execution_options(synchronize_session=False)
        )
        number = await self.db.scalar(
            select(ReservationSequence.current_number).where(ReservationSequence.id == RESERVATION_SEQUENCE_ID)
        )
        code = format_reservation_code(prefix, number)

        taken = await self.db.scalar(select(Booking.id).where(Booking.reservation_code == code))
        if taken is not None:
            metrics_collector.record_sequence_corruption()
            logger.critical("Reservation code allocated twice", reservation_code=code, number=number)
            raise SequenceCorruptionError(code)

        return code
