"""Inventory-related Pydantic schemas."""

from datetime import date, datetime
from typing import List
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class CreateFlightRequest(BaseModel):
    """Request schema for loading a flight's seat allotment."""

    flight_number: str = Field(..., min_length=2, max_length=16)
    origin: str = Field(..., min_length=3, max_length=8, description="IATA airport code")
    destination: str = Field(..., min_length=3, max_length=8, description="IATA airport code")
    departure_at: datetime
    arrival_at: datetime
    total_seats: int = Field(..., ge=1, le=1000)

    @model_validator(mode="after")
    def check_times(self) -> "CreateFlightRequest":
        if self.arrival_at <= self.departure_at:
            raise ValueError("arrival_at must be after departure_at")
        return self


class GetFlightRequest(BaseModel):
    flight_id: UUID


class Flight(BaseModel):
    """Flight response schema."""

    id: UUID
    flight_number: str
    origin: str
    destination: str
    departure_at: datetime
    arrival_at: datetime
    total_seats: int
    available_seats: int

    model_config = {"from_attributes": True}


class OpenRoomNightsRequest(BaseModel):
    """Request schema for opening a room's nights for sale."""

    room_id: str = Field(..., min_length=1, max_length=64)
    start_date: date
    end_date: date = Field(..., description="First night not opened")
    total_rooms: int = Field(..., ge=1, le=500)

    @model_validator(mode="after")
    def check_range(self) -> "OpenRoomNightsRequest":
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        if (self.end_date - self.start_date).days > 366:
            raise ValueError("at most 366 nights can be opened at once")
        return self


class OpenRoomNightsResponse(BaseModel):
    room_id: str
    nights_created: int = Field(..., ge=0)


class RoomCalendarRequest(BaseModel):
    room_id: str = Field(..., min_length=1, max_length=64)
    start_date: date
    end_date: date


class RoomNight(BaseModel):
    stay_date: date
    available_rooms: int
    booked_rooms: int

    model_config = {"from_attributes": True}


class RoomCalendarResponse(BaseModel):
    room_id: str
    nights: List[RoomNight] = Field(default_factory=list)
