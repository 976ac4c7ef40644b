"""Test configuration and fixtures."""

import os
from datetime import date, datetime, timedelta, timezone

# The module-level engine must never point at a real server during tests
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import update

from reservation_core.core.config import Settings
from reservation_core.core.database import build_engine, build_session_factory, init_db, utcnow
from reservation_core.core.dependencies import get_session_factory, get_settings
from reservation_core.models import *  # noqa: F403 - Import all models
from reservation_core.models.booking import Booking
from reservation_core.models.pricing import PackagePrice
from reservation_core.services.booking_service import BookingService
from reservation_core.services.inventory_service import InventoryService
from reservation_core.services.lifecycle_service import BookingLifecycleService

CHECK_IN = date(2031, 7, 1)
CHECK_OUT = date(2031, 7, 8)


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """
    Create a file-backed SQLite engine.

    A file rather than ``:memory:`` gives every session its own connection,
    so concurrent transactions contend on real database locks.
    """
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'reservations.db'}")
    await init_db(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """Session factory bound to the test engine."""
    return build_session_factory(test_engine)


@pytest_asyncio.fixture(scope="function")
async def test_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def test_settings():
    """Settings tuned for tests: generous retries, short backoff."""
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        reservation_code_prefix="MXi",
        default_currency="EUR",
        hold_duration_seconds=3600,
        transaction_timeout_seconds=20.0,
        transaction_max_attempts=8,
        transaction_retry_backoff_seconds=0.01,
        expiry_sweep_batch_size=2,
    )


@pytest.fixture
def booking_service(session_factory, test_settings):
    return BookingService(session_factory, test_settings)


@pytest.fixture
def lifecycle_service(session_factory, test_settings):
    return BookingLifecycleService(session_factory, test_settings)


@pytest.fixture
def make_flight(session_factory):
    """Factory fixture loading a flight and returning its ID."""

    async def _make_flight(total_seats: int = 10, flight_number: str = "FB1234"):
        departure_at = datetime(2031, 7, 1, 6, 30, tzinfo=timezone.utc)
        async with session_factory() as session:
            flight = await InventoryService(session).create_flight(
                flight_number=flight_number,
                origin="SOF",
                destination="HRG",
                departure_at=departure_at,
                arrival_at=departure_at + timedelta(hours=3),
                total_seats=total_seats,
            )
            await session.commit()
            return flight.id

    return _make_flight


@pytest.fixture
def open_rooms(session_factory):
    """Factory fixture opening room-nights for a room."""

    async def _open_rooms(room_id: str = "hotel-41-double", total_rooms: int = 2,
                          start: date = CHECK_IN, end: date = CHECK_OUT):
        async with session_factory() as session:
            created = await InventoryService(session).open_room_nights(room_id, start, end, total_rooms)
            await session.commit()
            return created

    return _open_rooms


@pytest.fixture
def seed_prices(session_factory):
    """Factory fixture loading reference package prices."""

    async def _seed_prices(rows):
        async with session_factory() as session:
            session.add_all([PackagePrice(**row) for row in rows])
            await session.commit()

    return _seed_prices


@pytest.fixture
def expire_hold(session_factory):
    """Factory fixture moving a hold's expiry into the past."""

    async def _expire_hold(reservation_code: str, minutes_ago: int = 5):
        async with session_factory() as session:
            await session.execute(
                update(Booking)
                .where(Booking.reservation_code == reservation_code)
                .values(expires_at=utcnow() - timedelta(minutes=minutes_ago))
            )
            await session.commit()

    return _expire_hold


@pytest.fixture
def available_seats(session_factory):
    """Factory fixture reading a flight's remaining seats."""

    async def _available_seats(flight_id):
        async with session_factory() as session:
            flight = await InventoryService(session).get_flight(flight_id)
            return flight.available_seats

    return _available_seats


@pytest.fixture
def hold_payload():
    """Factory fixture building a hold request body."""

    def _hold_payload(flight_ids=(), passengers: int = 2, room_id=None, rooms: int = 1, **overrides):
        payload = {
            "customer": {"name": "Maria Ivanova", "email": "maria@example.com", "phone": "+359888123456"},
            "occupancy": {"adults": passengers, "children": 0, "infants": 0},
            "check_in_date": CHECK_IN.isoformat(),
            "check_out_date": CHECK_OUT.isoformat(),
            "flight_lines": [
                {"flight_id": str(flight_id), "passengers": passengers, "price": 25000}
                for flight_id in flight_ids
            ],
            "lodging_lines": [
                {
                    "lodging_option_id": "hotel-41-double",
                    "hotel_name": "Sunrise Beach Resort",
                    "room_id": room_id,
                    "room_type": "double",
                    "check_in": CHECK_IN.isoformat(),
                    "check_out": CHECK_OUT.isoformat(),
                    "rooms": rooms,
                    "occupancy": passengers,
                    "price": 70000,
                }
            ],
            "transfer_lines": [
                {
                    "transfer_id": "HRG-SUNRISE",
                    "transfer_date": CHECK_IN.isoformat(),
                    "passengers": passengers,
                    "pickup_location": "Hurghada Airport",
                    "dropoff_location": "Sunrise Beach Resort",
                    "price": 3000,
                }
            ],
            "total_amount": 123000,
        }
        payload.update(overrides)
        return payload

    return _hold_payload


@pytest.fixture
def package_prices():
    """Reference prices for one flight/lodging option pair."""
    base = {"flight_option_id": "SOF-HRG-0701", "lodging_option_id": "hotel-41-double", "nights": 7, "currency": "EUR"}
    return [
        {**base, "adults_count": 2, "children_count": 0,
         "flight_price": 40000, "lodging_price": 60000, "transfer_price": 4000, "total_price": 104000},
        {**base, "adults_count": 2, "children_count": 2,
         "flight_price": 60000, "lodging_price": 80001, "transfer_price": 6000, "total_price": 146001},
        {**base, "adults_count": 3, "children_count": 0,
         "flight_price": 60000, "lodging_price": 85000, "transfer_price": 6000, "total_price": 151000},
    ]


@pytest_asyncio.fixture(scope="function")
async def test_app(session_factory, test_settings):
    """Create the application with its storage pointed at the test database."""
    from reservation_core.main import create_app

    app = create_app()
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_settings] = lambda: test_settings

    yield app

    # Clean up
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
