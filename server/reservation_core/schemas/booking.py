"""Booking-related Pydantic schemas."""

from datetime import date, datetime
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, model_validator


class BookingStatus(str, Enum):
    """Booking status enumeration."""
    HOLD = "HOLD"
    CONFIRMED = "CONFIRMED"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class Customer(BaseModel):
    """Lead customer contact details."""

    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=64)


class Occupancy(BaseModel):
    """Party composition."""

    adults: int = Field(..., ge=1, le=20)
    children: int = Field(0, ge=0, le=10)
    infants: int = Field(0, ge=0, le=10)


class _PassengerBase(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    date_of_birth: date
    passport_number: Optional[str] = Field(None, max_length=32)
    nationality: Optional[str] = Field(None, min_length=2, max_length=2)


class AdultPassenger(_PassengerBase):
    category: Literal["adult"] = "adult"
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=64)


class ChildPassenger(_PassengerBase):
    category: Literal["child"] = "child"


class InfantPassenger(_PassengerBase):
    category: Literal["infant"] = "infant"


Passenger = Annotated[
    Union[AdultPassenger, ChildPassenger, InfantPassenger],
    Field(discriminator="category"),
]


class FlightLineRequest(BaseModel):
    """Seats to take on one flight."""

    flight_id: UUID
    passengers: int = Field(..., ge=1, le=30)
    cabin_class: str = Field("economy", max_length=32)
    price: int = Field(..., ge=0, description="Line price in minor units")


class LodgingLineRequest(BaseModel):
    """Rooms at one property; rooms without a ``room_id`` are contracted outside the ledger."""

    lodging_option_id: str = Field(..., min_length=1, max_length=64)
    hotel_name: str = Field(..., min_length=1, max_length=255)
    room_id: Optional[str] = Field(None, max_length=64)
    room_type: str = Field(..., min_length=1, max_length=64)
    check_in: date
    check_out: date
    rooms: int = Field(1, ge=1, le=10)
    occupancy: int = Field(..., ge=1, le=30)
    price: int = Field(..., ge=0, description="Line price in minor units")

    @model_validator(mode="after")
    def check_dates(self) -> "LodgingLineRequest":
        if self.check_out <= self.check_in:
            raise ValueError("check_out must be after check_in")
        return self


class TransferLineRequest(BaseModel):
    transfer_id: str = Field(..., min_length=1, max_length=64)
    transfer_date: date
    passengers: int = Field(..., ge=1, le=30)
    pickup_location: str = Field(..., min_length=1, max_length=255)
    dropoff_location: str = Field(..., min_length=1, max_length=255)
    price: int = Field(..., ge=0)


class ExcursionLineRequest(BaseModel):
    excursion_id: str = Field(..., min_length=1, max_length=64)
    excursion_date: date
    participants: int = Field(..., ge=1, le=30)
    name: str = Field(..., min_length=1, max_length=255)
    price: int = Field(..., ge=0)


class CreateHoldRequest(BaseModel):
    """Request schema for creating a booking in HOLD."""

    customer: Customer
    occupancy: Occupancy
    check_in_date: date
    check_out_date: date
    flight_lines: List[FlightLineRequest] = Field(default_factory=list)
    lodging_lines: List[LodgingLineRequest] = Field(default_factory=list)
    transfer_lines: List[TransferLineRequest] = Field(default_factory=list)
    excursion_lines: List[ExcursionLineRequest] = Field(default_factory=list)
    passenger_details: List[Passenger] = Field(default_factory=list)
    total_amount: int = Field(..., ge=0, description="Quoted total in minor units")
    currency: Optional[str] = Field(None, pattern=r"^[A-Z]{3}$", description="ISO 4217 currency code")
    reservation_prefix: Optional[str] = Field(None, description="Overrides the configured code prefix")
    notes: Optional[str] = Field(None, max_length=2000)


class AllocateCodeRequest(BaseModel):
    """Request schema for allocating a reservation code."""

    prefix: Optional[str] = Field(None, description="Code prefix; the configured prefix when omitted")


class AllocateCodeResponse(BaseModel):
    code: str = Field(..., description="Allocated reservation code")


class ReservationCodeRequest(BaseModel):
    """Request schema addressing a booking by its reservation code."""

    reservation_code: str = Field(..., min_length=1, max_length=32)


class PayBookingRequest(ReservationCodeRequest):
    """Request schema for recording a payment."""

    payment_reference: str = Field(..., min_length=1, max_length=128)


class CancelBookingRequest(ReservationCodeRequest):
    """Request schema for cancelling a booking."""

    reason: Optional[str] = Field(None, max_length=500)


class SweepExpiredRequest(BaseModel):
    batch_size: Optional[int] = Field(None, ge=1, le=1000)


class SweepExpiredResponse(BaseModel):
    expired_count: int = Field(..., ge=0, description="Holds cancelled by this sweep")


class FlightLine(BaseModel):
    booking_number: str
    flight_id: UUID
    passengers: int
    cabin_class: str
    price: int

    model_config = {"from_attributes": True}


class LodgingLine(BaseModel):
    booking_number: str
    lodging_option_id: str
    hotel_name: str
    room_id: Optional[str] = None
    room_type: str
    check_in: date
    check_out: date
    nights: int
    rooms: int
    occupancy: int
    price: int

    model_config = {"from_attributes": True}


class TransferLine(BaseModel):
    booking_number: str
    transfer_id: str
    transfer_date: date
    passengers: int
    pickup_location: str
    dropoff_location: str
    price: int

    model_config = {"from_attributes": True}


class ExcursionLine(BaseModel):
    booking_number: str
    excursion_id: str
    excursion_date: date
    participants: int
    name: str
    price: int

    model_config = {"from_attributes": True}


class Booking(BaseModel):
    """Booking response schema."""

    id: UUID = Field(..., description="Unique booking ID")
    reservation_code: str = Field(..., description="Human-readable reservation code")
    status: BookingStatus = Field(..., description="Booking status")
    total_amount: int = Field(..., ge=0, description="Total in minor units")
    currency: str
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    adults: int
    children: int
    infants: int
    check_in_date: date
    check_out_date: date
    passenger_details: List[dict] = Field(default_factory=list)
    expires_at: Optional[datetime] = Field(None, description="When an unconfirmed hold lapses (ISO 8601)")
    payment_reference: Optional[str] = None
    notes: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime
    flight_lines: List[FlightLine] = Field(default_factory=list)
    lodging_lines: List[LodgingLine] = Field(default_factory=list)
    transfer_lines: List[TransferLine] = Field(default_factory=list)
    excursion_lines: List[ExcursionLine] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class ListBookingsRequest(BaseModel):
    """Request schema for listing a customer's bookings."""

    customer_email: EmailStr
    status: Optional[BookingStatus] = Field(None, description="Only bookings in this status")
    limit: int = Field(20, ge=1, le=100)
    offset: int = Field(0, ge=0)


class ListBookingsResponse(BaseModel):
    bookings: List[Booking] = Field(default_factory=list, description="Newest first")
    count: int = Field(..., ge=0, description="Bookings on this page")
