"""
Trip endpoints
==============

POST   /api/v1/trips                   -- create a trip (driver with a vehicle)
GET    /api/v1/trips                   -- search open trips (public)
GET    /api/v1/trips/mine              -- the caller's trips with their bookings
GET    /api/v1/trips/{trip_id}         -- trip detail (public)
PATCH  /api/v1/trips/{trip_id}         -- partial edit (owning driver)
PATCH  /api/v1/trips/{trip_id}/start   -- mark in progress
PATCH  /api/v1/trips/{trip_id}/complete -- mark completed
PATCH  /api/v1/trips/{trip_id}/cancel  -- cancel trip and its live bookings
DELETE /api/v1/trips/{trip_id}         -- deactivate (no live bookings)
POST   /api/v1/trips/{trip_id}/bookings -- book seats (passenger)
GET    /api/v1/trips/{trip_id}/bookings -- bookings of a trip (owning driver)
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from carpool.api.dependencies import get_current_user, get_db
from carpool.api.middleware import limiter
from carpool.api.schemas import (
    BookingCreateRequest,
    BookingResponse,
    DriverTripResponse,
    ErrorResponse,
    MessageResponse,
    TripBookingsResponse,
    TripCancelResponse,
    TripCreateRequest,
    TripResponse,
    TripUpdateRequest,
)
from carpool.config import settings
from carpool.domain.enums import TripState
from carpool.infrastructure.models import UserModel
from carpool.services.bookings import BookingService, pickup_from_points
from carpool.services.trips import TripService

router = APIRouter(prefix="/trips", tags=["trips"])

_ERRORS = {
    code: {"model": ErrorResponse} for code in (400, 401, 403, 404, 409)
}


@router.post(
    "",
    status_code=201,
    response_model=TripResponse,
    summary="Create a trip",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def create_trip(
    request: Request,
    body: TripCreateRequest,
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await TripService(db).create_trip(
        user.id,
        origin=body.origin,
        destination=body.destination,
        departure_time=body.departure_time,
        fare_per_seat=body.fare_per_seat,
        departure_date=body.departure_date,
        total_seats=body.total_seats,
        route=body.route,
    )


@router.get(
    "",
    response_model=list[TripResponse],
    summary="Search trips",
    description=(
        "Public listing of active trips, ordered by departure date and time. "
        "Only ``open`` trips are returned unless ``state`` is given."
    ),
)
@limiter.limit(settings.rate_limit)
async def list_trips(
    request: Request,
    origin: Optional[str] = Query(None, description="Case-insensitive substring"),
    destination: Optional[str] = Query(None, description="Case-insensitive substring"),
    departure_date: Optional[date] = Query(None, alias="date"),
    min_seats: Optional[int] = Query(None, ge=1),
    state: Optional[TripState] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await TripService(db).list_trips(
        origin=origin,
        destination=destination,
        departure_date=departure_date,
        min_seats=min_seats,
        state=state,
    )


@router.get(
    "/mine",
    response_model=list[DriverTripResponse],
    summary="List the trips I drive",
)
@limiter.limit(settings.rate_limit)
async def list_my_trips(
    request: Request,
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    driver_trips = await TripService(db).list_my_trips(user.id)
    return [
        DriverTripResponse(
            **TripResponse.model_validate(item.trip).model_dump(),
            bookings=[BookingResponse.model_validate(b) for b in item.bookings],
        )
        for item in driver_trips
    ]


@router.get(
    "/{trip_id}",
    response_model=TripResponse,
    summary="Get a trip",
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def get_trip(
    request: Request,
    trip_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await TripService(db).get_trip(trip_id)


@router.patch(
    "/{trip_id}",
    response_model=TripResponse,
    summary="Edit a trip",
    description=(
        "Partial update by the owning driver.  ``available_seats`` resizes "
        "the free pool: already-booked seats are kept and the total is "
        "recomputed, bounded by the vehicle capacity."
    ),
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def edit_trip(
    request: Request,
    trip_id: int,
    body: TripUpdateRequest,
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await TripService(db).edit_trip(
        trip_id, user.id, body.model_dump(exclude_unset=True)
    )


@router.patch(
    "/{trip_id}/start",
    response_model=TripResponse,
    summary="Mark a trip as in progress",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def start_trip(
    request: Request,
    trip_id: int,
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await TripService(db).start_trip(trip_id, user.id)


@router.patch(
    "/{trip_id}/complete",
    response_model=TripResponse,
    summary="Mark a trip as completed",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def complete_trip(
    request: Request,
    trip_id: int,
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await TripService(db).complete_trip(trip_id, user.id)


@router.patch(
    "/{trip_id}/cancel",
    response_model=TripCancelResponse,
    summary="Cancel a trip",
    description=(
        "Cancels the trip and, in the same transaction, every pending or "
        "confirmed booking on it.  Completed bookings are left untouched."
    ),
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def cancel_trip(
    request: Request,
    trip_id: int,
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    outcome = await TripService(db).cancel_trip(trip_id, user.id)
    return TripCancelResponse(
        trip=TripResponse.model_validate(outcome.trip),
        cancelled_bookings=outcome.cancelled_bookings,
        message=(
            "Trip cancelled. "
            f"{outcome.cancelled_bookings} associated bookings were cancelled."
        ),
    )


@router.delete(
    "/{trip_id}",
    response_model=MessageResponse,
    summary="Delete (deactivate) a trip",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def deactivate_trip(
    request: Request,
    trip_id: int,
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await TripService(db).deactivate_trip(trip_id, user.id)
    return MessageResponse(message="Trip deleted")


@router.post(
    "/{trip_id}/bookings",
    status_code=201,
    response_model=BookingResponse,
    summary="Book seats on a trip",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def create_booking(
    request: Request,
    trip_id: int,
    body: BookingCreateRequest,
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    pickup = body.pickup_description or pickup_from_points(
        [point.name for point in body.pickup_points]
    )
    return await BookingService(db).create_booking(
        trip_id, user.id, body.seats_requested, pickup
    )


@router.get(
    "/{trip_id}/bookings",
    response_model=TripBookingsResponse,
    summary="List the bookings of one of my trips",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def list_trip_bookings(
    request: Request,
    trip_id: int,
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await BookingService(db).list_bookings_for_trip(trip_id, user.id)
    return TripBookingsResponse(
        trip=TripResponse.model_validate(result.trip),
        bookings=[BookingResponse.model_validate(b) for b in result.bookings],
    )
