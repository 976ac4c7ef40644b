"""Booking transaction coordinator: code allocation, inventory and hold creation."""

from collections import Counter
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.config import Settings, settings as default_settings
from ..core.database import utcnow
from ..core.exceptions import (
    InsufficientInventoryError,
    NotFoundError,
    SequenceCorruptionError,
    ValidationError,
)
from ..core.observability import get_logger, metrics_collector
from ..core.transactions import run_in_transaction
from ..models.booking import Booking, BookingStatus, ExcursionLine, FlightLine, LodgingLine, TransferLine
from ..schemas.booking import CreateHoldRequest
from .inventory_service import InventoryService, ReservationOutcome, stay_dates
from .pricing_service import calendar_nights
from .sequence_service import SequenceService, validate_prefix

logger = get_logger(__name__)


async def find_booking(session: AsyncSession, reservation_code: str) -> Booking | None:
    """Load a booking with its line items, bypassing any stale identity-map copy."""
    stmt = (
        select(Booking)
        .where(Booking.reservation_code == reservation_code)
        .execution_options(populate_existing=True)
    )
    return (await session.execute(stmt)).scalar_one_or_none()


async def get_booking_or_raise(session: AsyncSession, reservation_code: str) -> Booking:
    booking = await find_booking(session, reservation_code)
    if not booking:
        raise NotFoundError(resource_type="booking", resource_id=reservation_code)
    return booking


def transaction_options(config: Settings) -> dict:
    """Keyword arguments for ``run_in_transaction`` taken from settings."""
    return {
        "timeout": config.transaction_timeout_seconds,
        "attempts": config.transaction_max_attempts,
        "backoff": config.transaction_retry_backoff_seconds,
    }


def validate_hold_request(request: CreateHoldRequest) -> None:
    """
    Check a hold request before any transaction opens.

    Raises:
        ValidationError: With one violation per problem found
    """
    violations = []

    if request.check_out_date <= request.check_in_date:
        violations.append({"path": "check_out_date", "message": "must be after check_in_date"})

    if request.passenger_details:
        counts = Counter(passenger.category for passenger in request.passenger_details)
        expected = {
            "adult": request.occupancy.adults,
            "child": request.occupancy.children,
            "infant": request.occupancy.infants,
        }
        for category, wanted in expected.items():
            if counts.get(category, 0) != wanted:
                violations.append({
                    "path": "passenger_details",
                    "message": f"expected {wanted} {category} passenger(s), got {counts.get(category, 0)}",
                })

    # Infants travel on a lap and take no seat
    seated = request.occupancy.adults + request.occupancy.children
    for index, line in enumerate(request.flight_lines):
        if line.passengers != seated:
            violations.append({
                "path": f"flight_lines.{index}.passengers",
                "message": f"expected {seated} seat(s) for the party, got {line.passengers}",
            })

    flights = Counter(line.flight_id for line in request.flight_lines)
    for flight_id, occurrences in flights.items():
        if occurrences > 1:
            violations.append({"path": "flight_lines", "message": f"flight {flight_id} listed {occurrences} times"})

    if request.reservation_prefix is not None:
        try:
            validate_prefix(request.reservation_prefix)
        except ValidationError:
            violations.append({"path": "reservation_prefix", "message": "must be 1-10 ASCII letters or digits"})

    if violations:
        raise ValidationError(detail="The hold request failed validation", violations=violations)


class BookingService:
    """
    Creates bookings as one all-or-nothing unit of work.

    Each public method opens its own serializable transaction through
    ``run_in_transaction``; nothing is written unless every step succeeds.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], config: Settings | None = None):
        self.session_factory = session_factory
        self.config = config or default_settings

    async def allocate_code(self, prefix: str | None = None) -> str:
        """Allocate a reservation code in a transaction of its own."""
        prefix = validate_prefix(prefix or self.config.reservation_code_prefix)
        code = await run_in_transaction(
            self.session_factory,
            self._allocate_code,
            prefix,
            name="allocate_code",
            **transaction_options(self.config),
        )
        logger.info("Reservation code allocated", reservation_code=code)
        return code

    async def _allocate_code(self, session: AsyncSession, prefix: str) -> str:
        return await SequenceService(session).next_code(prefix)

    async def create_hold(self, request: CreateHoldRequest) -> Booking:
        """
        Create a booking in HOLD with all its line items and inventory.

        Args:
            request: Hold creation request

        Returns:
            The booking aggregate as stored

        Raises:
            ValidationError: If the request is inconsistent
            NotFoundError: If a flight does not exist
            InsufficientInventoryError: If any line cannot be satisfied
            SequenceCorruptionError: If the allocated code is already in use
            TransactionTimeoutError: If the transaction keeps failing
        """
        validate_hold_request(request)
        prefix = request.reservation_prefix or self.config.reservation_code_prefix

        booking = await run_in_transaction(
            self.session_factory,
            self._create_hold,
            request,
            prefix,
            name="create_hold",
            **transaction_options(self.config),
        )

        metrics_collector.record_hold_created(booking.currency)
        logger.info(
            "Hold created",
            reservation_code=booking.reservation_code,
            booking_id=str(booking.id),
            total_amount=booking.total_amount,
            currency=booking.currency,
            flight_lines=len(booking.flight_lines),
            lodging_lines=len(booking.lodging_lines),
            expires_at=booking.expires_at.isoformat(),
        )
        return booking

    async def _reserve_flights(self, inventory: InventoryService, request: CreateHoldRequest) -> None:
        for line in request.flight_lines:
            outcome = await inventory.try_reserve_seats(line.flight_id, line.passengers)
            if outcome is ReservationOutcome.INSUFFICIENT_CAPACITY:
                flight = await inventory.get_flight(line.flight_id)
                raise InsufficientInventoryError(
                    unit_type="flight",
                    unit_id=str(line.flight_id),
                    requested=line.passengers,
                    available=flight.available_seats,
                )

    async def _reserve_rooms(self, inventory: InventoryService, request: CreateHoldRequest) -> None:
        for line in request.lodging_lines:
            if line.room_id is None:
                continue
            outcome = await inventory.try_reserve_rooms(line.room_id, line.check_in, line.check_out, line.rooms)
            if outcome is ReservationOutcome.INSUFFICIENT_CAPACITY:
                calendar = await inventory.room_calendar(line.room_id, line.check_in, line.check_out)
                nights = len(stay_dates(line.check_in, line.check_out))
                available = min((night.available_rooms for night in calendar), default=0)
                raise InsufficientInventoryError(
                    unit_type="room",
                    unit_id=line.room_id,
                    requested=line.rooms,
                    available=available if len(calendar) == nights else 0,
                )

    async def _create_hold(self, session: AsyncSession, request: CreateHoldRequest, prefix: str) -> Booking:
        code = await SequenceService(session).next_code(prefix)

        inventory = InventoryService(session)
        await self._reserve_flights(inventory, request)
        await self._reserve_rooms(inventory, request)

        now = utcnow()
        booking = Booking(
            reservation_code=code,
            status=BookingStatus.HOLD.value,
            total_amount=request.total_amount,
            currency=request.currency or self.config.default_currency,
            customer_name=request.customer.name,
            customer_email=request.customer.email,
            customer_phone=request.customer.phone,
            adults=request.occupancy.adults,
            children=request.occupancy.children,
            infants=request.occupancy.infants,
            check_in_date=request.check_in_date,
            check_out_date=request.check_out_date,
            passenger_details=[p.model_dump(mode="json") for p in request.passenger_details],
            expires_at=now + timedelta(seconds=self.config.hold_duration_seconds),
            notes=request.notes,
            created_at=now,
            updated_at=now,
        )
        booking.flight_lines = [
            FlightLine(
                flight_id=line.flight_id,
                passengers=line.passengers,
                cabin_class=line.cabin_class,
                price=line.price,
            )
            for line in request.flight_lines
        ]
        booking.lodging_lines = [
            LodgingLine(
                lodging_option_id=line.lodging_option_id,
                hotel_name=line.hotel_name,
                room_id=line.room_id,
                room_type=line.room_type,
                check_in=line.check_in,
                check_out=line.check_out,
                nights=calendar_nights(line.check_in, line.check_out),
                rooms=line.rooms,
                occupancy=line.occupancy,
                price=line.price,
            )
            for line in request.lodging_lines
        ]
        booking.transfer_lines = [
            TransferLine(**line.model_dump()) for line in request.transfer_lines
        ]
        booking.excursion_lines = [
            ExcursionLine(**line.model_dump()) for line in request.excursion_lines
        ]
        session.add(booking)

        try:
            await session.flush()
        except IntegrityError as e:
            if "reservation_code" not in str(e.orig):
                raise
            metrics_collector.record_sequence_corruption()
            logger.critical("Reservation code collided on insert", reservation_code=code)
            raise SequenceCorruptionError(code) from e

        return await get_booking_or_raise(session, code)

