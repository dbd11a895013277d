"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from carpool.domain.enums import BookingStatus, TripState


# ── Requests ──────────────────────────────────────────────────────────


class TripCreateRequest(BaseModel):
    origin: str = Field(..., max_length=200)
    destination: str = Field(..., max_length=200)
    departure_time: str = Field(..., max_length=20, examples=["07:30"])
    fare_per_seat: float = Field(..., ge=0)
    departure_date: Optional[date] = Field(
        None, description="Defaults to today when omitted."
    )
    total_seats: Optional[int] = Field(
        None, ge=1, description="Defaults to the vehicle capacity."
    )
    route: Optional[str] = Field(None, max_length=500)


class TripUpdateRequest(BaseModel):
    origin: Optional[str] = Field(None, max_length=200)
    destination: Optional[str] = Field(None, max_length=200)
    route: Optional[str] = Field(None, max_length=500)
    departure_date: Optional[date] = None
    departure_time: Optional[str] = Field(None, max_length=20)
    fare_per_seat: Optional[float] = Field(None, ge=0)
    available_seats: Optional[int] = Field(
        None,
        ge=0,
        description="New size of the free pool; booked seats are preserved.",
    )


class PickupPoint(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)


class BookingCreateRequest(BaseModel):
    seats_requested: int = Field(1, ge=1)
    pickup_description: Optional[str] = Field(None, max_length=500)
    pickup_points: list[PickupPoint] = Field(
        default_factory=list,
        description="Alternative to pickup_description; names are joined.",
    )

    @model_validator(mode="after")
    def _require_pickup(self):
        if not (self.pickup_description or "").strip() and not self.pickup_points:
            raise ValueError("A pickup point is required")
        return self


# ── Responses ─────────────────────────────────────────────────────────


class UserSummary(BaseModel):
    id: int
    first_name: str
    last_name: str
    phone: str

    model_config = {"from_attributes": True}


class VehicleSummary(BaseModel):
    id: int
    plate: str
    brand: str
    model: str
    seat_capacity: int

    model_config = {"from_attributes": True}


class TripResponse(BaseModel):
    id: int
    driver_id: int
    vehicle_id: int
    origin: str
    destination: str
    route: Optional[str] = None
    departure_date: date
    departure_time: str
    total_seats: int
    available_seats: int
    fare_per_seat: float
    state: TripState
    driver: Optional[UserSummary] = None
    vehicle: Optional[VehicleSummary] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class BookingResponse(BaseModel):
    id: int
    trip_id: int
    passenger_id: int
    seats_requested: int
    pickup_description: str
    total_price: float
    status: BookingStatus
    created_at: Optional[datetime] = None
    passenger: Optional[UserSummary] = None

    model_config = {"from_attributes": True}


class BookingDetailResponse(BookingResponse):
    trip: TripResponse


class DriverTripResponse(TripResponse):
    bookings: list[BookingResponse] = []


class TripBookingsResponse(BaseModel):
    trip: TripResponse
    bookings: list[BookingResponse] = []


class TripCancelResponse(BaseModel):
    trip: TripResponse
    cancelled_bookings: int
    message: str


class SeatAuditResponse(BaseModel):
    trip_id: int
    state: TripState
    total_seats: int
    available_seats: int
    seats_consumed: int
    consistent: bool


class MessageResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    kind: str
    detail: str
