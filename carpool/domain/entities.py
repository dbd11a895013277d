"""
Domain rules with no persistence attached.

Patterns used
-------------
- **State Pattern**: ``ensure_booking_transition`` and
  ``ensure_trip_transition`` check every status change against the
  transition tables in ``enums``.
- ``SeatInventory`` encapsulates the seat invariants of a trip:
  ``0 <= available <= total`` and ``FULL`` iff nothing is left.

The services pre-check every seat change with ``SeatInventory`` and then
persist it with a conditional SQL update that repeats the same guard.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from typing import Optional

from .enums import (
    BOOKING_TRANSITIONS,
    TRIP_TRANSITIONS,
    BookingStatus,
    Capability,
    TripState,
)
from .errors import Conflict, InvalidStateTransition, ValidationError


def ensure_booking_transition(
    current: BookingStatus,
    new_status: BookingStatus,
    message: Optional[str] = None,
) -> None:
    if new_status not in BOOKING_TRANSITIONS.get(BookingStatus(current), set()):
        raise InvalidStateTransition(
            message
            or f"Cannot move booking from {BookingStatus(current).value} "
            f"to {new_status.value}"
        )


def ensure_trip_transition(current: TripState, new_status: TripState) -> None:
    if new_status not in TRIP_TRANSITIONS.get(TripState(current), set()):
        raise InvalidStateTransition(
            f"Cannot move trip from {TripState(current).value} "
            f"to {new_status.value}"
        )


def validate_departure_date(departure: date, today: Optional[date] = None) -> None:
    """Departure dates are compared at day granularity."""
    today = today or date.today()
    if departure < today:
        raise ValidationError("Departure date cannot be in the past")


def booking_total_price(fare_per_seat: float, seats: int) -> float:
    return round(fare_per_seat * seats, 2)


def viewer_capability(
    passenger_id: int, driver_id: int, requester_id: int
) -> Capability:
    """Relationship of *requester_id* to a booking, from ids alone."""
    if requester_id == passenger_id:
        return Capability.PASSENGER
    if requester_id == driver_id:
        return Capability.DRIVER
    return Capability.NONE


# ── Value Object ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class SeatInventory:
    total_seats: int
    available_seats: int
    state: TripState = TripState.OPEN

    def __post_init__(self):
        if not 0 <= self.available_seats <= self.total_seats:
            raise Conflict(
                f"Seat counters out of range: {self.available_seats}"
                f"/{self.total_seats}"
            )

    @classmethod
    def of(cls, trip) -> SeatInventory:
        """Snapshot the counters of a trip row."""
        return cls(trip.total_seats, trip.available_seats, TripState(trip.state))

    @property
    def booked_seats(self) -> int:
        return self.total_seats - self.available_seats

    def reserve(self, seats: int) -> SeatInventory:
        if self.state != TripState.OPEN:
            raise Conflict("This trip is not available for booking")
        if self.available_seats < seats:
            raise Conflict(f"Only {self.available_seats} seats available")
        remaining = self.available_seats - seats
        return replace(
            self,
            available_seats=remaining,
            state=TripState.FULL if remaining == 0 else self.state,
        )

    def release(self, seats: int) -> SeatInventory:
        return replace(
            self,
            available_seats=self.available_seats + seats,
            state=TripState.OPEN if self.state == TripState.FULL else self.state,
        )

    def resize(self, new_available: int, capacity: int) -> SeatInventory:
        """Resize the free pool while keeping already-booked seats."""
        if new_available < 0:
            raise ValidationError("Available seats cannot be negative")
        new_total = new_available + self.booked_seats
        if new_total > capacity:
            raise ValidationError(
                f"Total seats cannot exceed the vehicle capacity ({capacity})"
            )
        if new_total < 1:
            raise ValidationError("A trip must offer at least 1 seat")
        state = self.state
        if state in (TripState.OPEN, TripState.FULL):
            state = TripState.FULL if new_available == 0 else TripState.OPEN
        return SeatInventory(new_total, new_available, state)
