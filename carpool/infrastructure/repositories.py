"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  Every write that races with other requests
is a single conditional ``UPDATE``; callers look at the returned boolean
(rowcount) instead of re-reading and writing back.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import and_, case, func, literal, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    TRIP_STATE_TYPE,
    BookingModel,
    TripModel,
    UserModel,
    UserTokenModel,
    VehicleModel,
)
from carpool.domain.enums import (
    ACTIVE_BOOKING_STATUSES,
    EDITABLE_TRIP_STATES,
    SEAT_CONSUMING_STATUSES,
    TERMINAL_TRIP_STATES,
    BookingStatus,
    TripState,
)


def _trip_state(value: TripState):
    return literal(value, TRIP_STATE_TYPE)


class TripRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, trip: TripModel) -> TripModel:
        self.session.add(trip)
        await self.session.flush()
        return await self.refresh(trip.id)

    async def get_by_id(self, trip_id: int) -> Optional[TripModel]:
        """Active trip or ``None``; inactive trips are invisible."""
        result = await self.session.execute(
            select(TripModel)
            .where(TripModel.id == trip_id, TripModel.active.is_(True))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def refresh(self, trip_id: int) -> Optional[TripModel]:
        """Re-read a trip, overwriting any stale copy in the identity map."""
        result = await self.session.execute(
            select(TripModel)
            .where(TripModel.id == trip_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def search(
        self,
        *,
        origin: str | None = None,
        destination: str | None = None,
        departure_date: date | None = None,
        min_seats: int | None = None,
        state: TripState = TripState.OPEN,
    ) -> list[TripModel]:
        query = select(TripModel).where(
            TripModel.active.is_(True), TripModel.state == state
        )
        if origin:
            query = query.where(
                func.lower(TripModel.origin).contains(origin.lower(), autoescape=True)
            )
        if destination:
            query = query.where(
                func.lower(TripModel.destination).contains(
                    destination.lower(), autoescape=True
                )
            )
        if departure_date:
            query = query.where(TripModel.departure_date == departure_date)
        if min_seats:
            query = query.where(TripModel.available_seats >= min_seats)
        result = await self.session.execute(
            query.order_by(
                TripModel.departure_date, TripModel.departure_time, TripModel.id
            )
        )
        return list(result.scalars().all())

    async def get_for_driver(self, driver_id: int) -> list[TripModel]:
        result = await self.session.execute(
            select(TripModel)
            .where(TripModel.driver_id == driver_id, TripModel.active.is_(True))
            .order_by(TripModel.departure_date.desc(), TripModel.id.desc())
        )
        return list(result.scalars().all())

    async def update_details(self, trip_id: int, values: dict) -> bool:
        """Schedule / fare edits; only while the trip is still editable."""
        result = await self.session.execute(
            update(TripModel)
            .where(
                TripModel.id == trip_id,
                TripModel.active.is_(True),
                TripModel.state.in_(EDITABLE_TRIP_STATES),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def resize_seats(
        self,
        trip_id: int,
        *,
        expected_total: int,
        expected_available: int,
        new_total: int,
        new_available: int,
        new_state: TripState,
    ) -> bool:
        """Compare-and-swap on both seat counters."""
        result = await self.session.execute(
            update(TripModel)
            .where(
                TripModel.id == trip_id,
                TripModel.active.is_(True),
                TripModel.state.in_(EDITABLE_TRIP_STATES),
                TripModel.total_seats == expected_total,
                TripModel.available_seats == expected_available,
            )
            .values(
                total_seats=new_total,
                available_seats=new_available,
                state=new_state,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def reserve_seats(self, trip_id: int, seats: int) -> bool:
        """Decrement by *seats* only if that many are free on an open trip.

        Flips the trip to FULL in the same statement when nothing is left.
        """
        remaining = TripModel.available_seats - seats
        result = await self.session.execute(
            update(TripModel)
            .where(
                TripModel.id == trip_id,
                TripModel.active.is_(True),
                TripModel.state == TripState.OPEN,
                TripModel.available_seats >= seats,
            )
            .values(
                available_seats=remaining,
                state=case(
                    (remaining == 0, _trip_state(TripState.FULL)),
                    else_=TripModel.state,
                ),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def release_seats(self, trip_id: int, seats: int) -> bool:
        """Give *seats* back to a live trip, reopening it if it was FULL."""
        result = await self.session.execute(
            update(TripModel)
            .where(
                TripModel.id == trip_id,
                TripModel.state.notin_(TERMINAL_TRIP_STATES),
                TripModel.available_seats + seats <= TripModel.total_seats,
            )
            .values(
                available_seats=TripModel.available_seats + seats,
                state=case(
                    (
                        TripModel.state == TripState.FULL,
                        _trip_state(TripState.OPEN),
                    ),
                    else_=TripModel.state,
                ),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def transition(
        self, trip_id: int, source: tuple[TripState, ...], target: TripState
    ) -> bool:
        result = await self.session.execute(
            update(TripModel)
            .where(
                TripModel.id == trip_id,
                TripModel.active.is_(True),
                TripModel.state.in_(source),
            )
            .values(state=target)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def mark_cancelled(self, trip_id: int) -> bool:
        """Cancel a live trip; its whole seat pool returns to available."""
        result = await self.session.execute(
            update(TripModel)
            .where(
                TripModel.id == trip_id,
                TripModel.active.is_(True),
                TripModel.state.notin_(TERMINAL_TRIP_STATES),
            )
            .values(
                state=TripState.CANCELLED,
                available_seats=TripModel.total_seats,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def deactivate(self, trip_id: int) -> bool:
        """Soft delete, only when no booking still holds seats."""
        holding = (
            select(BookingModel.id)
            .where(
                BookingModel.trip_id == trip_id,
                BookingModel.active.is_(True),
                BookingModel.status.in_(ACTIVE_BOOKING_STATUSES),
            )
            .exists()
        )
        result = await self.session.execute(
            update(TripModel)
            .where(TripModel.id == trip_id, TripModel.active.is_(True), ~holding)
            .values(active=False, state=TripState.CANCELLED)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class BookingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, booking: BookingModel) -> BookingModel:
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def get_by_id(self, booking_id: int) -> Optional[BookingModel]:
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.id == booking_id, BookingModel.active.is_(True))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def refresh(self, booking_id: int) -> Optional[BookingModel]:
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.id == booking_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_open_for_passenger(
        self, trip_id: int, passenger_id: int
    ) -> Optional[BookingModel]:
        result = await self.session.execute(
            select(BookingModel).where(
                BookingModel.trip_id == trip_id,
                BookingModel.passenger_id == passenger_id,
                BookingModel.active.is_(True),
                BookingModel.status.in_(ACTIVE_BOOKING_STATUSES),
            )
        )
        return result.scalars().first()

    async def get_for_passenger(self, passenger_id: int) -> list[BookingModel]:
        result = await self.session.execute(
            select(BookingModel)
            .where(
                BookingModel.passenger_id == passenger_id,
                BookingModel.active.is_(True),
            )
            .order_by(BookingModel.created_at.desc(), BookingModel.id.desc())
        )
        return list(result.scalars().all())

    async def get_for_trip(self, trip_id: int) -> list[BookingModel]:
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.trip_id == trip_id, BookingModel.active.is_(True))
            .order_by(BookingModel.created_at.desc(), BookingModel.id.desc())
        )
        return list(result.scalars().all())

    async def count_holding_seats(self, trip_id: int) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(BookingModel)
            .where(
                BookingModel.trip_id == trip_id,
                BookingModel.active.is_(True),
                BookingModel.status.in_(ACTIVE_BOOKING_STATUSES),
            )
        )
        return result.scalar() or 0

    async def seats_consumed(self, trip_id: int) -> int:
        """Seats taken by bookings, soft-deleted ones included."""
        result = await self.session.execute(
            select(func.coalesce(func.sum(BookingModel.seats_requested), 0)).where(
                BookingModel.trip_id == trip_id,
                BookingModel.status.in_(SEAT_CONSUMING_STATUSES),
            )
        )
        return result.scalar() or 0

    async def transition(
        self,
        booking_id: int,
        source: tuple[BookingStatus, ...],
        target: BookingStatus,
    ) -> bool:
        """Move a booking to *target* only if it is still in *source*."""
        result = await self.session.execute(
            update(BookingModel)
            .where(
                BookingModel.id == booking_id,
                BookingModel.active.is_(True),
                BookingModel.status.in_(source),
            )
            .values(status=target)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def cancel_all_for_trip(self, trip_id: int) -> int:
        """Bulk-cancel every booking on the trip that still holds seats."""
        result = await self.session.execute(
            update(BookingModel)
            .where(
                BookingModel.trip_id == trip_id,
                BookingModel.status.in_(ACTIVE_BOOKING_STATUSES),
            )
            .values(status=BookingStatus.CANCELLED)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def deactivate(self, booking_id: int) -> bool:
        result = await self.session.execute(
            update(BookingModel)
            .where(
                BookingModel.id == booking_id,
                BookingModel.active.is_(True),
                BookingModel.status.in_(
                    (BookingStatus.CANCELLED, BookingStatus.COMPLETED)
                ),
            )
            .values(active=False)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class VehicleRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_active_for_driver(self, driver_id: int) -> Optional[VehicleModel]:
        result = await self.session.execute(
            select(VehicleModel).where(
                VehicleModel.driver_id == driver_id,
                VehicleModel.active.is_(True),
            )
        )
        return result.scalar_one_or_none()

    async def get_by_id(self, vehicle_id: int) -> Optional[VehicleModel]:
        return await self.session.get(VehicleModel, vehicle_id)


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_token(self, access_token: str) -> Optional[UserModel]:
        """User owning an unexpired token, or ``None``."""
        now = datetime.now(timezone.utc)
        result = await self.session.execute(
            select(UserModel)
            .join(UserTokenModel, UserTokenModel.user_id == UserModel.id)
            .where(
                and_(
                    UserTokenModel.access_token == access_token,
                    UserTokenModel.expires_at > now,
                )
            )
        )
        return result.scalar_one_or_none()
