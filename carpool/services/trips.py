"""
Trip Lifecycle Controller
=========================

Creates, lists, edits, starts, completes, cancels and deactivates trips.
The trip row owns the authoritative seat counters; this module only
touches them through the conditional writes in ``TripRepository``.

Transactions
------------
The service never commits.  The caller (``get_db`` in the API, or a test /
script) owns the unit of work: commit on success, rollback on any raised
error.  Cancelling a trip therefore updates the trip *and* bulk-cancels its
bookings atomically.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from carpool.domain.entities import (
    SeatInventory,
    ensure_trip_transition,
    validate_departure_date,
)
from carpool.domain.enums import (
    EDITABLE_TRIP_STATES,
    TERMINAL_TRIP_STATES,
    TripState,
)
from carpool.domain.errors import Conflict, Forbidden, NotFound, ValidationError
from carpool.infrastructure.models import BookingModel, TripModel
from carpool.infrastructure.repositories import (
    BookingRepository,
    TripRepository,
    VehicleRepository,
)

logger = logging.getLogger(__name__)

_DETAIL_FIELDS = (
    "origin",
    "destination",
    "route",
    "departure_date",
    "departure_time",
    "fare_per_seat",
)
_REQUIRED_TEXT_FIELDS = ("origin", "destination", "departure_time")


@dataclass
class TripCancellation:
    trip: TripModel
    cancelled_bookings: int


@dataclass
class DriverTrip:
    trip: TripModel
    bookings: list[BookingModel] = field(default_factory=list)


@dataclass
class SeatAudit:
    trip_id: int
    state: TripState
    total_seats: int
    available_seats: int
    seats_consumed: int

    @property
    def consistent(self) -> bool:
        if self.state == TripState.CANCELLED:
            return self.available_seats == self.total_seats
        return self.available_seats + self.seats_consumed == self.total_seats


def _clean(value: Optional[str]) -> Optional[str]:
    return value.strip() if isinstance(value, str) else value


def _validate_fare(fare: Any) -> None:
    if fare is None:
        raise ValidationError(
            "Origin, destination, departure time and fare are required"
        )
    if fare < 0:
        raise ValidationError("Fare cannot be negative")


class TripService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.trips = TripRepository(session)
        self.bookings = BookingRepository(session)
        self.vehicles = VehicleRepository(session)

    # ── Queries ───────────────────────────────────────────────────────

    async def get_trip(self, trip_id: int) -> TripModel:
        trip = await self.trips.get_by_id(trip_id)
        if not trip:
            raise NotFound("Trip not found")
        return trip

    async def list_trips(
        self,
        *,
        origin: str | None = None,
        destination: str | None = None,
        departure_date: date | None = None,
        min_seats: int | None = None,
        state: TripState | None = None,
    ) -> list[TripModel]:
        return await self.trips.search(
            origin=_clean(origin),
            destination=_clean(destination),
            departure_date=departure_date,
            min_seats=min_seats,
            state=state or TripState.OPEN,
        )

    async def list_my_trips(self, driver_id: int) -> list[DriverTrip]:
        trips = await self.trips.get_for_driver(driver_id)
        return [
            DriverTrip(trip=trip, bookings=await self.bookings.get_for_trip(trip.id))
            for trip in trips
        ]

    async def seat_audit(self, trip_id: int) -> SeatAudit:
        trip = await self.get_trip(trip_id)
        return SeatAudit(
            trip_id=trip.id,
            state=TripState(trip.state),
            total_seats=trip.total_seats,
            available_seats=trip.available_seats,
            seats_consumed=await self.bookings.seats_consumed(trip.id),
        )

    # ── Commands ──────────────────────────────────────────────────────

    async def create_trip(
        self,
        driver_id: int,
        *,
        origin: str | None,
        destination: str | None,
        departure_time: str | None,
        fare_per_seat: float | None,
        departure_date: date | None = None,
        total_seats: int | None = None,
        route: str | None = None,
    ) -> TripModel:
        vehicle = await self.vehicles.get_active_for_driver(driver_id)
        if not vehicle:
            raise Forbidden("You must have a registered vehicle to create trips")

        origin, destination = _clean(origin), _clean(destination)
        departure_time = _clean(departure_time)
        if not (origin and destination and departure_time):
            raise ValidationError(
                "Origin, destination, departure time and fare are required"
            )
        _validate_fare(fare_per_seat)

        seats = total_seats if total_seats is not None else vehicle.seat_capacity
        if seats < 1:
            raise ValidationError("A trip must offer at least 1 seat")
        if seats > vehicle.seat_capacity:
            raise ValidationError(
                "Seats cannot exceed the vehicle capacity "
                f"({vehicle.seat_capacity})"
            )

        departure_date = departure_date or date.today()
        validate_departure_date(departure_date)

        trip = await self.trips.create(
            TripModel(
                driver_id=driver_id,
                vehicle_id=vehicle.id,
                origin=origin,
                destination=destination,
                route=_clean(route) or None,
                departure_date=departure_date,
                departure_time=departure_time,
                total_seats=seats,
                available_seats=seats,
                fare_per_seat=fare_per_seat,
                state=TripState.OPEN,
            )
        )
        logger.info(
            "Trip %s created by driver %s (%d seats)", trip.id, driver_id, seats
        )
        return trip

    async def edit_trip(
        self, trip_id: int, driver_id: int, patch: dict[str, Any]
    ) -> TripModel:
        """Partial update.  ``available_seats`` resizes the free pool only."""
        trip = await self._owned_trip(trip_id, driver_id)
        if TripState(trip.state) not in EDITABLE_TRIP_STATES:
            raise Conflict(
                "Trips that are in progress, completed or cancelled "
                "cannot be modified"
            )

        values = {
            name: _clean(patch[name])
            for name in _DETAIL_FIELDS
            if name in patch and patch[name] is not None
        }
        for name in _REQUIRED_TEXT_FIELDS:
            if name in values and not values[name]:
                label = name.replace("_", " ").capitalize()
                raise ValidationError(f"{label} cannot be empty")
        if "fare_per_seat" in values:
            _validate_fare(values["fare_per_seat"])
        if "departure_date" in values:
            validate_departure_date(values["departure_date"])

        resized: SeatInventory | None = None
        if patch.get("available_seats") is not None:
            vehicle = await self.vehicles.get_by_id(trip.vehicle_id)
            resized = SeatInventory.of(trip).resize(
                patch["available_seats"], vehicle.seat_capacity
            )

        if values and not await self.trips.update_details(trip.id, values):
            raise Conflict("Trip changed while editing; please retry")
        if resized and not await self.trips.resize_seats(
            trip.id,
            expected_total=trip.total_seats,
            expected_available=trip.available_seats,
            new_total=resized.total_seats,
            new_available=resized.available_seats,
            new_state=resized.state,
        ):
            logger.warning("Seat resize of trip %s lost a race", trip.id)
            raise Conflict("Trip seats changed while editing; please retry")

        changed = sorted(values) + (["available_seats"] if resized else [])
        logger.info(
            "Trip %s edited by driver %s (%s)", trip.id, driver_id, ", ".join(changed)
        )
        return await self.trips.refresh(trip.id)

    async def start_trip(self, trip_id: int, driver_id: int) -> TripModel:
        trip = await self._owned_trip(trip_id, driver_id)
        ensure_trip_transition(trip.state, TripState.IN_PROGRESS)
        if not await self.trips.transition(
            trip.id, EDITABLE_TRIP_STATES, TripState.IN_PROGRESS
        ):
            raise Conflict("Trip changed while starting; please retry")
        logger.info("Trip %s started by driver %s", trip.id, driver_id)
        return await self.trips.refresh(trip.id)

    async def complete_trip(self, trip_id: int, driver_id: int) -> TripModel:
        trip = await self._owned_trip(trip_id, driver_id)
        ensure_trip_transition(trip.state, TripState.COMPLETED)
        if not await self.trips.transition(
            trip.id, (TripState.IN_PROGRESS,), TripState.COMPLETED
        ):
            raise Conflict("Trip changed while completing; please retry")
        logger.info("Trip %s completed by driver %s", trip.id, driver_id)
        return await self.trips.refresh(trip.id)

    async def cancel_trip(self, trip_id: int, driver_id: int) -> TripCancellation:
        """Cancel the trip and every booking still holding seats on it."""
        trip = await self._owned_trip(trip_id, driver_id)
        if TripState(trip.state) in TERMINAL_TRIP_STATES:
            raise Conflict("The trip is already cancelled or completed")

        if not await self.trips.mark_cancelled(trip.id):
            raise Conflict("The trip is already cancelled or completed")
        cancelled = await self.bookings.cancel_all_for_trip(trip.id)

        logger.info(
            "Trip %s cancelled by driver %s; %d bookings cancelled",
            trip.id,
            driver_id,
            cancelled,
        )
        return TripCancellation(
            trip=await self.trips.refresh(trip.id), cancelled_bookings=cancelled
        )

    async def deactivate_trip(self, trip_id: int, driver_id: int) -> None:
        trip = await self._owned_trip(trip_id, driver_id)
        if not await self.trips.deactivate(trip.id):
            if await self.bookings.count_holding_seats(trip.id):
                raise Conflict(
                    "You cannot delete a trip with active bookings. "
                    "Cancel the bookings first."
                )
            raise NotFound("Trip not found")
        logger.info("Trip %s deactivated by driver %s", trip.id, driver_id)

    # ── Internals ─────────────────────────────────────────────────────

    async def _owned_trip(self, trip_id: int, driver_id: int) -> TripModel:
        trip = await self.get_trip(trip_id)
        if trip.driver_id != driver_id:
            raise Forbidden("Only the trip's driver can modify this trip")
        return trip
