"""Booking lifecycle: confirmation, payment, cancellation and hold expiry."""

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.config import Settings, settings as default_settings
from ..core.database import as_utc, utcnow
from ..core.exceptions import BookingAlreadyCancelledError, BookingExpiredError, InvalidStateError
from ..core.observability import get_logger, metrics_collector
from ..core.transactions import RetryableConflict, run_in_transaction
from ..models.booking import TRANSITIONS, Booking, BookingStatus
from .booking_service import get_booking_or_raise, transaction_options
from .inventory_service import InventoryService

logger = get_logger(__name__)

EXPIRY_REASON = "Hold expired before confirmation"


def is_expired_hold(booking: Booking, now: datetime) -> bool:
    return (
        booking.status == BookingStatus.HOLD
        and booking.expires_at is not None
        and as_utc(booking.expires_at) < now
    )


class BookingLifecycleService:
    """
    Moves bookings through HOLD -> CONFIRMED -> PAID, or to CANCELLED.

    Every status change is a conditional update on the status the caller saw,
    and inventory is given back only when that update changed a row. Two
    concurrent cancellations of the same booking therefore release once.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], config: Settings | None = None):
        self.session_factory = session_factory
        self.config = config or default_settings

    async def _run(self, operation, *args, name: str):
        return await run_in_transaction(
            self.session_factory, operation, *args, name=name, **transaction_options(self.config)
        )

    async def _transition(
        self,
        session: AsyncSession,
        booking: Booking,
        target: BookingStatus,
        extra_criteria: tuple = (),
        **values,
    ) -> bool:
        """Flip ``booking`` from the status it was read with to ``target``; False if someone else moved it first."""
        current = BookingStatus(booking.status)
        if target not in TRANSITIONS[current]:
            raise InvalidStateError(booking.reservation_code, current.value, target.value.lower())
        result = await session.execute(
            update(Booking)
            .where(Booking.id == booking.id, Booking.status == current.value, *extra_criteria)
            .values(status=target.value, updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def _release_inventory(self, session: AsyncSession, booking: Booking) -> None:
        inventory = InventoryService(session)
        for line in booking.flight_lines:
            await inventory.release_seats(line.flight_id, line.passengers)
        for line in booking.lodging_lines:
            if line.room_id is not None:
                await inventory.release_rooms(line.room_id, line.check_in, line.check_out, line.rooms)

    async def _cancel_and_release(
        self,
        session: AsyncSession,
        booking: Booking,
        reason: str | None,
        extra_criteria: tuple = (),
    ) -> bool:
        changed = await self._transition(
            session,
            booking,
            BookingStatus.CANCELLED,
            extra_criteria,
            expires_at=None,
            cancelled_at=utcnow(),
            cancellation_reason=reason,
        )
        if changed:
            await self._release_inventory(session, booking)
        return changed

    async def _expire(self, session: AsyncSession, booking: Booking, now: datetime) -> datetime | None:
        """Cancel a lapsed hold; returns its expiry if this caller's update landed."""
        expired_at = as_utc(booking.expires_at)
        changed = await self._cancel_and_release(
            session, booking, EXPIRY_REASON, extra_criteria=(Booking.expires_at < now,)
        )
        return expired_at if changed else None

    @staticmethod
    def _record_cancelled(reservation_code: str, previous_status: str, reason: str | None) -> None:
        metrics_collector.record_booking_cancelled(previous_status)
        logger.info(
            "Booking cancelled",
            reservation_code=reservation_code,
            previous_status=previous_status,
            reason=reason,
        )

    @classmethod
    def _record_expired(cls, reservation_code: str, expired_at: datetime, path: str) -> None:
        cls._record_cancelled(reservation_code, BookingStatus.HOLD.value, EXPIRY_REASON)
        metrics_collector.record_hold_expired(path)
        logger.info(
            "Hold expired",
            reservation_code=reservation_code,
            path=path,
            expired_at=expired_at.isoformat(),
        )

    async def confirm(self, reservation_code: str) -> Booking:
        """
        Confirm a booking in HOLD.

        Raises:
            NotFoundError: If the booking does not exist
            InvalidStateError: If the booking is not in HOLD
            BookingExpiredError: If the hold lapsed; it is cancelled first
        """
        booking, expired_at = await self._run(self._confirm, reservation_code, name="confirm_booking")
        if expired_at is not None:
            self._record_expired(reservation_code, expired_at, path="confirm")
            raise BookingExpiredError(reservation_code, expired_at)

        metrics_collector.record_booking_confirmed()
        logger.info("Booking confirmed", reservation_code=reservation_code)
        return booking

    async def _confirm(self, session: AsyncSession, reservation_code: str) -> tuple[Booking, datetime | None]:
        booking = await get_booking_or_raise(session, reservation_code)
        if booking.status != BookingStatus.HOLD:
            raise InvalidStateError(reservation_code, BookingStatus(booking.status).value, "confirmed")

        now = utcnow()
        if is_expired_hold(booking, now):
            expired_at = await self._expire(session, booking, now)
            if expired_at is None:
                raise RetryableConflict(f"booking {reservation_code} changed while expiring")
            return await get_booking_or_raise(session, reservation_code), expired_at

        if not await self._transition(session, booking, BookingStatus.CONFIRMED, expires_at=None, confirmed_at=now):
            raise RetryableConflict(f"booking {reservation_code} changed while confirming")
        return await get_booking_or_raise(session, reservation_code), None

    async def mark_paid(self, reservation_code: str, payment_reference: str) -> Booking:
        """
        Record a payment on a CONFIRMED booking.

        Raises:
            NotFoundError: If the booking does not exist
            InvalidStateError: If the booking is not CONFIRMED
        """
        booking = await self._run(self._mark_paid, reservation_code, payment_reference, name="mark_paid")
        metrics_collector.record_booking_paid()
        logger.info("Booking paid", reservation_code=reservation_code, payment_reference=payment_reference)
        return booking

    async def _mark_paid(self, session: AsyncSession, reservation_code: str, payment_reference: str) -> Booking:
        booking = await get_booking_or_raise(session, reservation_code)
        if booking.status != BookingStatus.CONFIRMED:
            raise InvalidStateError(reservation_code, BookingStatus(booking.status).value, "paid")
        changed = await self._transition(
            session,
            booking,
            BookingStatus.PAID,
            payment_reference=payment_reference,
            paid_at=utcnow(),
        )
        if not changed:
            raise RetryableConflict(f"booking {reservation_code} changed while recording payment")
        return await get_booking_or_raise(session, reservation_code)

    async def cancel(self, reservation_code: str, reason: str | None = None) -> Booking:
        """
        Cancel a booking from any live status and give its inventory back.

        Raises:
            NotFoundError: If the booking does not exist
            BookingAlreadyCancelledError: If the booking is already CANCELLED
        """
        booking, previous = await self._run(self._cancel, reservation_code, reason, name="cancel_booking")
        self._record_cancelled(reservation_code, previous, reason)
        return booking

    async def _cancel(self, session: AsyncSession, reservation_code: str, reason: str | None) -> tuple[Booking, str]:
        booking = await get_booking_or_raise(session, reservation_code)
        if booking.status == BookingStatus.CANCELLED:
            raise BookingAlreadyCancelledError(reservation_code)
        previous = BookingStatus(booking.status).value
        if not await self._cancel_and_release(session, booking, reason):
            raise RetryableConflict(f"booking {reservation_code} changed while cancelling")
        return await get_booking_or_raise(session, reservation_code), previous

    async def get_by_code(self, reservation_code: str) -> Booking:
        """
        Get a booking, cancelling it first if it is a lapsed hold.

        Raises:
            NotFoundError: If the booking does not exist
        """
        booking, expired_at = await self._run(self._get_by_code, reservation_code, name="get_booking")
        if expired_at is not None:
            self._record_expired(reservation_code, expired_at, path="read")
        return booking

    async def _get_by_code(self, session: AsyncSession, reservation_code: str) -> tuple[Booking, datetime | None]:
        booking = await get_booking_or_raise(session, reservation_code)
        now = utcnow()
        expired_at = None
        if is_expired_hold(booking, now):
            expired_at = await self._expire(session, booking, now)
            booking = await get_booking_or_raise(session, reservation_code)
        return booking, expired_at

    async def list_bookings(
        self,
        customer_email: str,
        status: BookingStatus | str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Booking]:
        """
        List a customer's bookings, newest first.

        Lapsed holds on the page are cancelled as they are read. When filtering
        by HOLD, those bookings drop out of the result.

        Args:
            customer_email: Lead customer email the bookings were made under
            status: Only bookings in this status
            limit: Page size
            offset: Bookings to skip

        Returns:
            The page of bookings
        """
        status_value = BookingStatus(status).value if status is not None else None
        bookings, expired = await self._run(
            self._list_bookings, customer_email, status_value, limit, offset, name="list_bookings"
        )
        for reservation_code, expired_at in expired:
            self._record_expired(reservation_code, expired_at, path="read")
        return bookings

    async def _list_bookings(
        self,
        session: AsyncSession,
        customer_email: str,
        status: str | None,
        limit: int,
        offset: int,
    ) -> tuple[list[Booking], list[tuple[str, datetime]]]:
        stmt = select(Booking).where(Booking.customer_email == customer_email)
        if status is not None:
            stmt = stmt.where(Booking.status == status)
        stmt = (
            stmt.order_by(Booking.created_at.desc(), Booking.reservation_code.desc())
            .limit(limit)
            .offset(offset)
            .execution_options(populate_existing=True)
        )
        bookings = list(await session.scalars(stmt))

        now = utcnow()
        expired = []
        page = []
        for booking in bookings:
            if is_expired_hold(booking, now):
                expired_at = await self._expire(session, booking, now)
                if expired_at is not None:
                    expired.append((booking.reservation_code, expired_at))
                booking = await get_booking_or_raise(session, booking.reservation_code)
            if status is None or booking.status == status:
                page.append(booking)
        return page, expired

    async def sweep_expired(self, batch_size: int | None = None) -> int:
        """
        Cancel every lapsed hold, one short transaction per batch.

        Returns:
            Number of holds this call cancelled
        """
        batch_size = batch_size or self.config.expiry_sweep_batch_size
        total = 0
        while True:
            selected, expired = await self._run(self._sweep_batch, batch_size, name="sweep_expired")
            for reservation_code, expired_at in expired:
                self._record_expired(reservation_code, expired_at, path="sweep")
            total += len(expired)
            if selected < batch_size:
                break

        if total:
            logger.info("Expired holds swept", expired_count=total, batch_size=batch_size)
        return total

    async def _sweep_batch(self, session: AsyncSession, batch_size: int) -> tuple[int, list[tuple[str, datetime]]]:
        now = utcnow()
        stmt = (
            select(Booking)
            .where(Booking.status == BookingStatus.HOLD.value, Booking.expires_at < now)
            .order_by(Booking.expires_at)
            .limit(batch_size)
            .execution_options(populate_existing=True)
        )
        bookings = list(await session.scalars(stmt))
        expired = []
        for booking in bookings:
            expired_at = await self._expire(session, booking, now)
            if expired_at is not None:
                expired.append((booking.reservation_code, expired_at))
        return len(bookings), expired
