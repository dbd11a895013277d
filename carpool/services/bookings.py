"""
Booking Lifecycle Controller
============================

The only writer of trip seat counters besides the driver's own edits.

State machine
-------------
``pending -> confirmed | cancelled``, ``confirmed -> completed | cancelled``;
``cancelled`` and ``completed`` are terminal.  Only the move into
``cancelled`` from a live status gives seats back to the trip.

Concurrency safety
------------------
* Seat reservation is one conditional ``UPDATE`` (decrement only if enough
  seats are left on an open trip).  A stale pre-check that loses the race
  is reported as a ``Conflict`` and the caller's rollback removes the
  booking row inserted in the same transaction.
* The partial unique index on ``(trip_id, passenger_id)`` backs the
  one-live-booking rule; a violation on insert becomes a ``Conflict``.
* Every status change is conditional on the source status, so two racing
  transitions cannot both win.
* Existing rows are locked trip first, then booking, in the same order as
  ``TripService.cancel_trip``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from carpool.domain.entities import (
    SeatInventory,
    booking_total_price,
    ensure_booking_transition,
    viewer_capability,
)
from carpool.domain.enums import (
    ACTIVE_BOOKING_STATUSES,
    BookingStatus,
    Capability,
    TripState,
)
from carpool.domain.errors import Conflict, Forbidden, NotFound, ValidationError
from carpool.infrastructure.models import BookingModel, TripModel
from carpool.infrastructure.repositories import BookingRepository, TripRepository

logger = logging.getLogger(__name__)

_CANCEL_REFUSALS = {
    BookingStatus.CANCELLED: "This booking is already cancelled",
    BookingStatus.COMPLETED: "Completed bookings cannot be cancelled",
}


@dataclass
class TripBookings:
    trip: TripModel
    bookings: list[BookingModel] = field(default_factory=list)


def pickup_from_points(points: Sequence[str]) -> str:
    """Join named pickup points into one description."""
    return ", ".join(p.strip() for p in points if p and p.strip())


class BookingService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.trips = TripRepository(session)
        self.bookings = BookingRepository(session)

    # ── Commands ──────────────────────────────────────────────────────

    async def create_booking(
        self,
        trip_id: int,
        passenger_id: int,
        seats_requested: int,
        pickup_description: Optional[str],
    ) -> BookingModel:
        if seats_requested is None or seats_requested < 1:
            raise ValidationError("You must book at least one seat")
        pickup = (pickup_description or "").strip()
        if not pickup:
            raise ValidationError("A pickup point is required")

        trip = await self.trips.get_by_id(trip_id)
        if not trip:
            raise NotFound("Trip not found")
        seats = SeatInventory.of(trip)
        if seats.state != TripState.OPEN:
            raise Conflict("This trip is not available for booking")
        if trip.driver_id == passenger_id:
            raise Forbidden("You cannot book your own trip")
        seats.reserve(seats_requested)
        if await self.bookings.get_open_for_passenger(trip.id, passenger_id):
            raise Conflict("You already have a booking for this trip")

        try:
            booking = await self.bookings.create(
                BookingModel(
                    trip_id=trip.id,
                    passenger_id=passenger_id,
                    seats_requested=seats_requested,
                    pickup_description=pickup,
                    total_price=booking_total_price(
                        trip.fare_per_seat, seats_requested
                    ),
                    status=BookingStatus.PENDING,
                )
            )
        except IntegrityError as exc:
            logger.warning(
                "Duplicate booking race on trip %s by passenger %s",
                trip.id,
                passenger_id,
            )
            raise Conflict("You already have a booking for this trip") from exc

        if not await self.trips.reserve_seats(trip.id, seats_requested):
            logger.warning(
                "Seat reservation lost a race on trip %s (%d requested)",
                trip.id,
                seats_requested,
            )
            raise Conflict("Not enough seats left on this trip")

        logger.info(
            "Booking %s created on trip %s by passenger %s (%d seats)",
            booking.id,
            trip.id,
            passenger_id,
            seats_requested,
        )
        await self.trips.refresh(trip.id)
        return await self.bookings.refresh(booking.id)

    async def cancel_booking(self, booking_id: int, passenger_id: int) -> BookingModel:
        booking = await self._get(booking_id)
        if booking.passenger_id != passenger_id:
            raise Forbidden("You can only cancel your own bookings")
        ensure_booking_transition(
            booking.status,
            BookingStatus.CANCELLED,
            _CANCEL_REFUSALS.get(BookingStatus(booking.status)),
        )

        trip = await self.trips.refresh(booking.trip_id)
        if not trip:
            raise NotFound("Trip not found")
        if trip.state == TripState.COMPLETED:
            raise Conflict("The trip has already been completed")
        SeatInventory.of(trip).release(booking.seats_requested)

        # Trip row before booking row; see module docstring.
        if not await self.trips.release_seats(trip.id, booking.seats_requested):
            logger.error(
                "Could not release %d seats of booking %s on trip %s",
                booking.seats_requested,
                booking.id,
                trip.id,
            )
            raise Conflict("The seats of this booking could not be released")
        if not await self.bookings.transition(
            booking.id, ACTIVE_BOOKING_STATUSES, BookingStatus.CANCELLED
        ):
            raise Conflict("This booking is already cancelled")

        logger.info(
            "Booking %s cancelled by passenger %s; %d seats released on trip %s",
            booking.id,
            passenger_id,
            booking.seats_requested,
            trip.id,
        )
        await self.trips.refresh(trip.id)
        return await self.bookings.refresh(booking.id)

    async def confirm_booking(self, booking_id: int, driver_id: int) -> BookingModel:
        return await self._driver_transition(
            booking_id,
            driver_id,
            target=BookingStatus.CONFIRMED,
            message="Only pending bookings can be confirmed",
        )

    async def complete_booking(self, booking_id: int, driver_id: int) -> BookingModel:
        return await self._driver_transition(
            booking_id,
            driver_id,
            target=BookingStatus.COMPLETED,
            message="Only confirmed bookings can be completed",
        )

    async def deactivate_booking(self, booking_id: int, passenger_id: int) -> None:
        booking = await self._get(booking_id)
        if booking.passenger_id != passenger_id:
            raise Forbidden("You can only delete your own bookings")
        if booking.status not in (BookingStatus.CANCELLED, BookingStatus.COMPLETED):
            raise Conflict(
                "Only cancelled or completed bookings can be deleted. "
                "Cancel an active booking first."
            )
        if not await self.bookings.deactivate(booking.id):
            raise Conflict("Booking changed while deleting; please retry")
        logger.info("Booking %s deactivated by passenger %s", booking.id, passenger_id)

    # ── Queries ───────────────────────────────────────────────────────

    async def list_my_bookings(self, passenger_id: int) -> list[BookingModel]:
        return await self.bookings.get_for_passenger(passenger_id)

    async def list_bookings_for_trip(
        self, trip_id: int, driver_id: int
    ) -> TripBookings:
        trip = await self.trips.get_by_id(trip_id)
        if not trip:
            raise NotFound("Trip not found")
        if trip.driver_id != driver_id:
            raise Forbidden("Only the trip's driver can see its bookings")
        return TripBookings(
            trip=trip, bookings=await self.bookings.get_for_trip(trip.id)
        )

    async def get_booking(self, booking_id: int, requester_id: int) -> BookingModel:
        booking = await self._get(booking_id)
        capability = viewer_capability(
            booking.passenger_id, booking.trip.driver_id, requester_id
        )
        if capability == Capability.NONE:
            raise Forbidden("You do not have permission to view this booking")
        return booking

    # ── Internals ─────────────────────────────────────────────────────

    async def _get(self, booking_id: int) -> BookingModel:
        booking = await self.bookings.get_by_id(booking_id)
        if not booking:
            raise NotFound("Booking not found")
        return booking

    async def _driver_transition(
        self,
        booking_id: int,
        driver_id: int,
        *,
        target: BookingStatus,
        message: str,
    ) -> BookingModel:
        booking = await self._get(booking_id)
        capability = viewer_capability(
            booking.passenger_id, booking.trip.driver_id, driver_id
        )
        if capability != Capability.DRIVER:
            raise Forbidden(
                f"Only the trip's driver can mark this booking {target.value}"
            )
        current = BookingStatus(booking.status)
        ensure_booking_transition(
            current, target, f"{message} (booking is {current.value})"
        )

        if not await self.bookings.transition(booking.id, (current,), target):
            raise Conflict(message)
        logger.info(
            "Booking %s %s by driver %s", booking.id, target.value, driver_id
        )
        return await self.bookings.refresh(booking.id)
