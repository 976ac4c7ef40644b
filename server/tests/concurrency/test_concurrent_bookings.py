"""Concurrency tests for code allocation, inventory and the booking lifecycle."""

import asyncio

import pytest

from reservation_core.core.exceptions import BookingAlreadyCancelledError, InsufficientInventoryError
from reservation_core.models.booking import BookingStatus
from reservation_core.schemas.booking import CreateHoldRequest
from reservation_core.services.booking_service import BookingService


@pytest.mark.asyncio
async def test_concurrent_code_allocation_is_unique(session_factory, test_settings):
    """Concurrent allocations each get a distinct, gap-free code."""
    num_concurrent_requests = 10

    async def allocate():
        return await BookingService(session_factory, test_settings).allocate_code()

    codes = await asyncio.gather(*(allocate() for _ in range(num_concurrent_requests)))

    assert len(set(codes)) == num_concurrent_requests
    numbers = sorted(int(code.split("-")[1]) for code in codes)
    assert numbers == list(range(1, num_concurrent_requests + 1))


@pytest.mark.asyncio
async def test_concurrent_holds_no_overbooking(session_factory, test_settings, make_flight, available_seats, hold_payload):
    """More concurrent holds than seats: exactly as many succeed as there are seats."""
    flight_id = await make_flight(total_seats=3)
    num_concurrent_requests = 8

    async def create_hold():
        service = BookingService(session_factory, test_settings)
        return await service.create_hold(CreateHoldRequest.model_validate(hold_payload([flight_id], passengers=1)))

    results = await asyncio.gather(*(create_hold() for _ in range(num_concurrent_requests)), return_exceptions=True)

    holds = [r for r in results if not isinstance(r, Exception)]
    failures = [r for r in results if isinstance(r, Exception)]
    assert len(holds) == 3
    assert all(isinstance(f, InsufficientInventoryError) for f in failures)
    assert len({hold.reservation_code for hold in holds}) == 3
    assert await available_seats(flight_id) == 0


@pytest.mark.asyncio
async def test_last_seat_goes_to_one_caller(session_factory, test_settings, make_flight, available_seats, hold_payload):
    flight_id = await make_flight(total_seats=1)

    async def create_hold():
        service = BookingService(session_factory, test_settings)
        return await service.create_hold(CreateHoldRequest.model_validate(hold_payload([flight_id], passengers=1)))

    results = await asyncio.gather(create_hold(), create_hold(), return_exceptions=True)

    assert sum(1 for r in results if not isinstance(r, Exception)) == 1
    assert sum(1 for r in results if isinstance(r, InsufficientInventoryError)) == 1
    assert await available_seats(flight_id) == 0


@pytest.mark.asyncio
async def test_concurrent_reads_expire_hold_once(
    booking_service, lifecycle_service, make_flight, available_seats, expire_hold, hold_payload
):
    """Two readers racing on a lapsed hold release its seats exactly once."""
    flight_id = await make_flight(total_seats=10)
    hold = await booking_service.create_hold(CreateHoldRequest.model_validate(hold_payload([flight_id])))
    await expire_hold(hold.reservation_code)

    first, second = await asyncio.gather(
        lifecycle_service.get_by_code(hold.reservation_code),
        lifecycle_service.get_by_code(hold.reservation_code),
    )

    assert first.status == BookingStatus.CANCELLED
    assert second.status == BookingStatus.CANCELLED
    assert await available_seats(flight_id) == 10


@pytest.mark.asyncio
async def test_sweep_racing_reader_releases_once(
    booking_service, lifecycle_service, make_flight, available_seats, expire_hold, hold_payload
):
    flight_id = await make_flight(total_seats=10)
    hold = await booking_service.create_hold(CreateHoldRequest.model_validate(hold_payload([flight_id])))
    await expire_hold(hold.reservation_code)

    swept, read = await asyncio.gather(
        lifecycle_service.sweep_expired(),
        lifecycle_service.get_by_code(hold.reservation_code),
    )

    assert swept in (0, 1)
    assert read.status == BookingStatus.CANCELLED
    assert await available_seats(flight_id) == 10


@pytest.mark.asyncio
async def test_concurrent_cancellations(booking_service, lifecycle_service, make_flight, available_seats, hold_payload):
    """One cancellation wins; the other is told the booking is already cancelled."""
    flight_id = await make_flight(total_seats=6)
    hold = await booking_service.create_hold(CreateHoldRequest.model_validate(hold_payload([flight_id])))

    results = await asyncio.gather(
        lifecycle_service.cancel(hold.reservation_code),
        lifecycle_service.cancel(hold.reservation_code),
        return_exceptions=True,
    )

    cancelled = [r for r in results if not isinstance(r, Exception)]
    rejected = [r for r in results if isinstance(r, BookingAlreadyCancelledError)]
    assert len(cancelled) == 1
    assert len(rejected) == 1
    assert await available_seats(flight_id) == 6


@pytest.mark.asyncio
async def test_hold_cancel_churn_restores_inventory(
    session_factory, test_settings, lifecycle_service, make_flight, available_seats, hold_payload
):
    """Interleaved holds and cancellations leave the ledger where it started."""
    flight_id = await make_flight(total_seats=20)

    async def hold_then_cancel():
        service = BookingService(session_factory, test_settings)
        hold = await service.create_hold(CreateHoldRequest.model_validate(hold_payload([flight_id], passengers=2)))
        await lifecycle_service.cancel(hold.reservation_code)

    await asyncio.gather(*(hold_then_cancel() for _ in range(6)))

    assert await available_seats(flight_id) == 20
