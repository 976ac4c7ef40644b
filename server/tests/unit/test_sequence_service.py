"""Unit tests for reservation code allocation."""

import pytest
from sqlalchemy import delete, select, update

from reservation_core.core.exceptions import SequenceCorruptionError, ValidationError
from reservation_core.models.sequence import RESERVATION_SEQUENCE_ID, ReservationSequence
from reservation_core.schemas.booking import CreateHoldRequest
from reservation_core.services.sequence_service import (
    SequenceService,
    format_reservation_code,
    validate_prefix,
)


def test_format_reservation_code_pads_to_four_digits():
    assert format_reservation_code("MXi", 1) == "MXi-0001"
    assert format_reservation_code("MXi", 42) == "MXi-0042"
    assert format_reservation_code("MXi", 12345) == "MXi-12345"


@pytest.mark.parametrize("prefix", ["", "MX-i", "ÄBC", "ABCDEFGHIJK", "MX i"])
def test_validate_prefix_rejects_malformed(prefix):
    with pytest.raises(ValidationError):
        validate_prefix(prefix)


def test_validate_prefix_accepts_letters_and_digits():
    assert validate_prefix("MXi") == "MXi"
    assert validate_prefix("A1") == "A1"


@pytest.mark.asyncio
async def test_first_code_starts_at_one(booking_service):
    """The counter is created lazily and the first code is 0001."""
    assert await booking_service.allocate_code() == "MXi-0001"
    assert await booking_service.allocate_code() == "MXi-0002"


@pytest.mark.asyncio
async def test_codes_are_strictly_increasing(booking_service):
    codes = [await booking_service.allocate_code() for _ in range(5)]
    numbers = [int(code.split("-")[1]) for code in codes]
    assert numbers == sorted(numbers)
    assert len(set(numbers)) == 5


@pytest.mark.asyncio
async def test_custom_prefix(booking_service):
    assert await booking_service.allocate_code("TST") == "TST-0001"


@pytest.mark.asyncio
async def test_invalid_prefix_rejected(booking_service):
    with pytest.raises(ValidationError):
        await booking_service.allocate_code("bad-prefix")


@pytest.mark.asyncio
async def test_counter_persists_across_sessions(booking_service, session_factory):
    await booking_service.allocate_code()
    await booking_service.allocate_code()

    async with session_factory() as session:
        current = await session.scalar(
            select(ReservationSequence.current_number).where(ReservationSequence.id == RESERVATION_SEQUENCE_ID)
        )
    assert current == 2


@pytest.mark.asyncio
async def test_stale_counter_is_fast_forwarded(booking_service, session_factory, hold_payload):
    """A counter behind the codes already issued skips past them."""
    booking = await booking_service.create_hold(CreateHoldRequest.model_validate(hold_payload()))
    assert booking.reservation_code == "MXi-0001"

    async with session_factory() as session:
        await session.execute(update(ReservationSequence).values(current_number=0))
        await session.commit()

    assert await booking_service.allocate_code() == "MXi-0002"


@pytest.mark.asyncio
async def test_missing_counter_resumes_after_issued_codes(booking_service, session_factory, hold_payload):
    """Losing the counter row does not reissue codes already in storage."""
    first = await booking_service.create_hold(CreateHoldRequest.model_validate(hold_payload()))
    second = await booking_service.create_hold(CreateHoldRequest.model_validate(hold_payload()))
    assert (first.reservation_code, second.reservation_code) == ("MXi-0001", "MXi-0002")

    async with session_factory() as session:
        await session.execute(delete(ReservationSequence))
        await session.commit()

    assert await booking_service.allocate_code() == "MXi-0003"

    async with session_factory() as session:
        current = await session.scalar(
            select(ReservationSequence.current_number).where(ReservationSequence.id == RESERVATION_SEQUENCE_ID)
        )
    assert current == 3


@pytest.mark.asyncio
async def test_duplicate_code_raises_corruption(booking_service, session_factory, hold_payload, monkeypatch):
    """If the counter hands out a code that exists, allocation fails loudly."""
    await booking_service.create_hold(CreateHoldRequest.model_validate(hold_payload()))

    async with session_factory() as session:
        await session.execute(update(ReservationSequence).values(current_number=0))
        await session.commit()

    async def blind_highest_issued(self, prefix):
        return 0

    monkeypatch.setattr(SequenceService, "highest_issued", blind_highest_issued)

    with pytest.raises(SequenceCorruptionError) as exc_info:
        await booking_service.allocate_code()
    assert exc_info.value.status_code == 500
    assert exc_info.value.problem_details["reservation_code"] == "MXi-0001"


@pytest.mark.asyncio
async def test_highest_issued_ignores_other_prefixes(booking_service, session_factory, hold_payload):
    await booking_service.create_hold(CreateHoldRequest.model_validate(hold_payload(reservation_prefix="ABC")))

    async with session_factory() as session:
        service = SequenceService(session)
        assert await service.highest_issued("ABC") == 1
        assert await service.highest_issued("XYZ") == 0
