"""FastAPI dependencies for database sessions and services."""

from typing import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .config import Settings, settings
from .database import async_session_factory
from ..services.booking_service import BookingService
from ..services.lifecycle_service import BookingLifecycleService
from ..services.pricing_service import PricingService


def get_settings() -> Settings:
    """Settings dependency; overridden in tests."""
    return settings


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory dependency; services that own transactions open sessions from it."""
    return async_session_factory


async def get_db(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> AsyncGenerator[AsyncSession, None]:
    """
    Database dependency that provides a read session.

    Yields:
        AsyncSession: Database session
    """
    async with session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


def get_booking_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    config: Settings = Depends(get_settings),
) -> BookingService:
    return BookingService(session_factory, config)


def get_lifecycle_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    config: Settings = Depends(get_settings),
) -> BookingLifecycleService:
    return BookingLifecycleService(session_factory, config)


def get_pricing_service(db: AsyncSession = Depends(get_db)) -> PricingService:
    return PricingService(db)


BookingServiceDependency = Depends(get_booking_service)
LifecycleServiceDependency = Depends(get_lifecycle_service)
PricingServiceDependency = Depends(get_pricing_service)
