"""Inventory ledger for flight seats and lodging room-nights."""

from datetime import date, datetime, timedelta
from enum import Enum
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import utcnow
from ..core.exceptions import NotFoundError, ValidationError
from ..core.observability import get_logger, metrics_collector
from ..core.transactions import RetryableConflict
from ..models.inventory import Flight, RoomNight

logger = get_logger(__name__)


class ReservationOutcome(str, Enum):
    """Result of a reservation attempt against the ledger."""
    RESERVED = "RESERVED"
    INSUFFICIENT_CAPACITY = "INSUFFICIENT_CAPACITY"


def stay_dates(check_in: date, check_out: date) -> list[date]:
    """Nights of a stay: every date in ``[check_in, check_out)``."""
    return [check_in + timedelta(days=offset) for offset in range((check_out - check_in).days)]


def _require_positive(name: str, value: int) -> None:
    if value <= 0:
        raise ValidationError(
            detail=f"{name} must be positive",
            violations=[{"path": name, "message": f"got {value}"}],
        )


class InventoryService:
    """
    Remaining sellable units with atomic compare-and-decrement.

    Every method runs on the caller's session so reservations and releases
    commit or roll back together with the booking that caused them.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_flight(
        self,
        flight_number: str,
        origin: str,
        destination: str,
        departure_at: datetime,
        arrival_at: datetime,
        total_seats: int,
    ) -> Flight:
        """Load a flight with every seat sellable."""
        _require_positive("total_seats", total_seats)
        flight = Flight(
            flight_number=flight_number,
            origin=origin,
            destination=destination,
            departure_at=departure_at,
            arrival_at=arrival_at,
            total_seats=total_seats,
            available_seats=total_seats,
        )
        self.db.add(flight)
        await self.db.flush()

        logger.info(
            "Flight loaded",
            flight_id=str(flight.id),
            flight_number=flight_number,
            total_seats=total_seats,
        )
        return flight

    async def get_flight(self, flight_id: UUID) -> Flight:
        """Get a flight by ID or raise NotFoundError."""
        stmt = select(Flight).where(Flight.id == flight_id).execution_options(populate_existing=True)
        flight = (await self.db.execute(stmt)).scalar_one_or_none()
        if not flight:
            raise NotFoundError(resource_type="flight", resource_id=str(flight_id))
        return flight

    async def try_reserve_seats(self, flight_id: UUID, quantity: int) -> ReservationOutcome:
        """
        Take ``quantity`` seats if at least that many remain.

        Raises:
            NotFoundError: If the flight does not exist
        """
        _require_positive("quantity", quantity)
        result = await self.db.execute(
            update(Flight)
            .where(Flight.id == flight_id, Flight.available_seats >= quantity)
            .values(available_seats=Flight.available_seats - quantity, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return ReservationOutcome.RESERVED

        flight = await self.get_flight(flight_id)
        metrics_collector.record_inventory_rejection("flight")
        logger.info(
            "Seat reservation refused",
            flight_id=str(flight_id),
            requested=quantity,
            available=flight.available_seats,
        )
        return ReservationOutcome.INSUFFICIENT_CAPACITY

    async def release_seats(self, flight_id: UUID, quantity: int) -> None:
        """Give back ``quantity`` seats, never exceeding the flight's total."""
        _require_positive("quantity", quantity)
        result = await self.db.execute(
            update(Flight)
            .where(Flight.id == flight_id, Flight.available_seats + quantity <= Flight.total_seats)
            .values(available_seats=Flight.available_seats + quantity, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return

        flight = await self.get_flight(flight_id)
        metrics_collector.record_release_anomaly("flight")
        logger.error(
            "Seat release exceeds flight capacity, clamping to total",
            flight_id=str(flight_id),
            released=quantity,
            available=flight.available_seats,
            total=flight.total_seats,
        )
        await self.db.execute(
            update(Flight)
            .where(Flight.id == flight_id)
            .values(available_seats=Flight.total_seats, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )

    async def try_reserve_rooms(
        self, room_id: str, check_in: date, check_out: date, rooms: int
    ) -> ReservationOutcome:
        """Take ``rooms`` rooms for every night of the stay, or none at all."""
        _require_positive("rooms", rooms)
        nights = stay_dates(check_in, check_out)
        if not nights:
            raise ValidationError(detail="check_out must be after check_in")

        in_stay = (
            RoomNight.room_id == room_id,
            RoomNight.stay_date >= check_in,
            RoomNight.stay_date < check_out,
        )
        sellable = await self.db.scalar(
            select(func.count(RoomNight.id)).where(*in_stay, RoomNight.available_rooms >= rooms)
        )
        if sellable != len(nights):
            metrics_collector.record_inventory_rejection("room")
            logger.info(
                "Room reservation refused",
                room_id=room_id,
                check_in=check_in.isoformat(),
                check_out=check_out.isoformat(),
                requested=rooms,
                sellable_nights=sellable,
                nights=len(nights),
            )
            return ReservationOutcome.INSUFFICIENT_CAPACITY

        result = await self.db.execute(
            update(RoomNight)
            .where(*in_stay, RoomNight.available_rooms >= rooms)
            .values(
                available_rooms=RoomNight.available_rooms - rooms,
                booked_rooms=RoomNight.booked_rooms + rooms,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != len(nights):
            raise RetryableConflict(f"room {room_id} changed while reserving")
        return ReservationOutcome.RESERVED

    async def release_rooms(self, room_id: str, check_in: date, check_out: date, rooms: int) -> None:
        """Give back ``rooms`` rooms for every night of the stay."""
        _require_positive("rooms", rooms)
        nights = stay_dates(check_in, check_out)
        in_stay = (
            RoomNight.room_id == room_id,
            RoomNight.stay_date >= check_in,
            RoomNight.stay_date < check_out,
        )
        result = await self.db.execute(
            update(RoomNight)
            .where(*in_stay, RoomNight.booked_rooms >= rooms)
            .values(
                available_rooms=RoomNight.available_rooms + rooms,
                booked_rooms=RoomNight.booked_rooms - rooms,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == len(nights):
            return

        metrics_collector.record_release_anomaly("room")
        logger.error(
            "Room release exceeds booked rooms, clamping to total",
            room_id=room_id,
            check_in=check_in.isoformat(),
            check_out=check_out.isoformat(),
            released=rooms,
            released_nights=result.rowcount,
            nights=len(nights),
        )
        await self.db.execute(
            update(RoomNight)
            .where(*in_stay, RoomNight.booked_rooms < rooms)
            .values(
                available_rooms=RoomNight.available_rooms + RoomNight.booked_rooms,
                booked_rooms=0,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )

    async def open_room_nights(self, room_id: str, start: date, end: date, total_rooms: int) -> int:
        """
        Create grid rows for ``[start, end)`` with ``total_rooms`` sellable each.

        Nights that already have a row are left untouched. Returns the number
        of nights created.
        """
        _require_positive("total_rooms", total_rooms)
        existing = set(
            await self.db.scalars(
                select(RoomNight.stay_date).where(
                    RoomNight.room_id == room_id,
                    RoomNight.stay_date >= start,
                    RoomNight.stay_date < end,
                )
            )
        )
        created = [
            RoomNight(room_id=room_id, stay_date=night, available_rooms=total_rooms, booked_rooms=0)
            for night in stay_dates(start, end)
            if night not in existing
        ]
        self.db.add_all(created)
        await self.db.flush()

        logger.info(
            "Room nights opened",
            room_id=room_id,
            start=start.isoformat(),
            end=end.isoformat(),
            total_rooms=total_rooms,
            created=len(created),
        )
        return len(created)

    async def room_calendar(self, room_id: str, start: date, end: date) -> list[RoomNight]:
        """Grid rows for ``[start, end)`` ordered by date; missing nights are omitted."""
        stmt = (
            select(RoomNight)
            .where(RoomNight.room_id == room_id, RoomNight.stay_date >= start, RoomNight.stay_date < end)
            .order_by(RoomNight.stay_date)
            .execution_options(populate_existing=True)
        )
        return list(await self.db.scalars(stmt))
