"""Inventory router for loading flights and room-night allotments."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.config import Settings
from ..core.dependencies import get_session_factory, get_settings
from ..core.transactions import run_in_transaction
from ..schemas.common import PROBLEM_RESPONSES
from ..schemas.inventory import (
    CreateFlightRequest,
    Flight,
    GetFlightRequest,
    OpenRoomNightsRequest,
    OpenRoomNightsResponse,
    RoomCalendarRequest,
    RoomCalendarResponse,
    RoomNight,
)
from ..services.booking_service import transaction_options
from ..services.inventory_service import InventoryService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/inventory", tags=["inventory"], responses=PROBLEM_RESPONSES)

SESSION_FACTORY_DEPENDENCY = Depends(get_session_factory)
SETTINGS_DEPENDENCY = Depends(get_settings)


@router.post("/flights/create", response_model=Flight, status_code=201)
async def create_flight(
    request: CreateFlightRequest,
    session_factory: async_sessionmaker[AsyncSession] = SESSION_FACTORY_DEPENDENCY,
    config: Settings = SETTINGS_DEPENDENCY,
) -> Flight:
    """Load a flight with all of its seats sellable."""

    async def operation(session: AsyncSession) -> Flight:
        flight = await InventoryService(session).create_flight(**request.model_dump())
        return Flight.model_validate(flight)

    flight = await run_in_transaction(
        session_factory, operation, name="create_flight", **transaction_options(config)
    )
    logger.info(
        "Flight created",
        extra={"flight_id": str(flight.id), "flight_number": flight.flight_number}
    )
    return flight


@router.post("/flights/get", response_model=Flight)
async def get_flight(
    request: GetFlightRequest,
    session_factory: async_sessionmaker[AsyncSession] = SESSION_FACTORY_DEPENDENCY,
) -> Flight:
    """Get a flight and its remaining seats."""
    async with session_factory() as session:
        flight = await InventoryService(session).get_flight(request.flight_id)
        return Flight.model_validate(flight)


@router.post("/rooms/open", response_model=OpenRoomNightsResponse)
async def open_room_nights(
    request: OpenRoomNightsRequest,
    session_factory: async_sessionmaker[AsyncSession] = SESSION_FACTORY_DEPENDENCY,
    config: Settings = SETTINGS_DEPENDENCY,
) -> OpenRoomNightsResponse:
    """Open a room's nights for sale; nights already open are left as they are."""

    async def operation(session: AsyncSession) -> int:
        return await InventoryService(session).open_room_nights(
            request.room_id, request.start_date, request.end_date, request.total_rooms
        )

    created = await run_in_transaction(
        session_factory, operation, name="open_room_nights", **transaction_options(config)
    )
    return OpenRoomNightsResponse(room_id=request.room_id, nights_created=created)


@router.post("/rooms/calendar", response_model=RoomCalendarResponse)
async def room_calendar(
    request: RoomCalendarRequest,
    session_factory: async_sessionmaker[AsyncSession] = SESSION_FACTORY_DEPENDENCY,
) -> RoomCalendarResponse:
    """Availability of a room per night."""
    async with session_factory() as session:
        nights = await InventoryService(session).room_calendar(
            request.room_id, request.start_date, request.end_date
        )
        return RoomCalendarResponse(
            room_id=request.room_id,
            nights=[RoomNight.model_validate(night) for night in nights],
        )
