"""Booking router for reservation lifecycle operations."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ..core.dependencies import BookingServiceDependency, LifecycleServiceDependency
from ..models.booking import Booking as BookingModel
from ..schemas.booking import (
    AllocateCodeRequest,
    AllocateCodeResponse,
    Booking,
    CancelBookingRequest,
    CreateHoldRequest,
    ListBookingsRequest,
    ListBookingsResponse,
    PayBookingRequest,
    ReservationCodeRequest,
    SweepExpiredRequest,
    SweepExpiredResponse,
)
from ..schemas.common import PROBLEM_RESPONSES
from ..services.booking_service import BookingService
from ..services.lifecycle_service import BookingLifecycleService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/booking", tags=["booking"], responses=PROBLEM_RESPONSES)


def _booking_response(booking_model: BookingModel, status_code: int = 200) -> JSONResponse:
    """Convert a booking model to its JSON response."""
    return JSONResponse(
        status_code=status_code,
        content=Booking.model_validate(booking_model).model_dump(mode="json"),
    )


@router.post("/allocate-code", response_model=AllocateCodeResponse)
async def allocate_code(
    request: AllocateCodeRequest,
    booking_service: BookingService = BookingServiceDependency,
) -> AllocateCodeResponse:
    """Allocate the next reservation code without creating a booking."""
    code = await booking_service.allocate_code(request.prefix)
    return AllocateCodeResponse(code=code)


@router.post("/hold", response_model=Booking, status_code=201)
async def create_hold(
    request: CreateHoldRequest,
    booking_service: BookingService = BookingServiceDependency,
) -> JSONResponse:
    """
    Create a booking in HOLD.

    Seats and room-nights for every line are taken in the same transaction
    that writes the booking; any shortfall leaves nothing behind.
    """
    booking = await booking_service.create_hold(request)

    logger.info(
        "Hold request served",
        extra={
            "reservation_code": booking.reservation_code,
            "flight_lines": len(request.flight_lines),
            "lodging_lines": len(request.lodging_lines),
        }
    )

    return _booking_response(booking, status_code=201)


@router.post("/confirm", response_model=Booking)
async def confirm_booking(
    request: ReservationCodeRequest,
    lifecycle: BookingLifecycleService = LifecycleServiceDependency,
) -> JSONResponse:
    """Confirm a booking in HOLD; a lapsed hold is cancelled and answered with 410."""
    booking = await lifecycle.confirm(request.reservation_code)
    return _booking_response(booking)


@router.post("/pay", response_model=Booking)
async def pay_booking(
    request: PayBookingRequest,
    lifecycle: BookingLifecycleService = LifecycleServiceDependency,
) -> JSONResponse:
    """Record the payment reference of a CONFIRMED booking."""
    booking = await lifecycle.mark_paid(request.reservation_code, request.payment_reference)
    return _booking_response(booking)


@router.post("/cancel", response_model=Booking)
async def cancel_booking(
    request: CancelBookingRequest,
    lifecycle: BookingLifecycleService = LifecycleServiceDependency,
) -> JSONResponse:
    """Cancel a booking and give its inventory back."""
    booking = await lifecycle.cancel(request.reservation_code, request.reason)
    return _booking_response(booking)


@router.post("/get", response_model=Booking)
async def get_booking(
    request: ReservationCodeRequest,
    lifecycle: BookingLifecycleService = LifecycleServiceDependency,
) -> JSONResponse:
    """
    Get booking details.

    A hold found past its expiry is cancelled before it is returned.
    """
    booking = await lifecycle.get_by_code(request.reservation_code)
    return _booking_response(booking)


@router.post("/list", response_model=ListBookingsResponse)
async def list_bookings(
    request: ListBookingsRequest,
    lifecycle: BookingLifecycleService = LifecycleServiceDependency,
) -> ListBookingsResponse:
    """
    List a customer's bookings, newest first.

    Lapsed holds on the page are cancelled as they are read.
    """
    bookings = await lifecycle.list_bookings(
        request.customer_email,
        status=request.status.value if request.status else None,
        limit=request.limit,
        offset=request.offset,
    )
    return ListBookingsResponse(
        bookings=[Booking.model_validate(booking) for booking in bookings],
        count=len(bookings),
    )


@router.post("/sweep-expired", response_model=SweepExpiredResponse)
async def sweep_expired(
    request: SweepExpiredRequest | None = None,
    lifecycle: BookingLifecycleService = LifecycleServiceDependency,
) -> SweepExpiredResponse:
    """Cancel every lapsed hold now instead of waiting for the background sweep."""
    batch_size = request.batch_size if request else None
    expired_count = await lifecycle.sweep_expired(batch_size)
    return SweepExpiredResponse(expired_count=expired_count)
