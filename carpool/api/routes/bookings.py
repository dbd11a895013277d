"""
Booking endpoints
=================

GET    /api/v1/bookings/mine                 -- the caller's bookings (passenger)
GET    /api/v1/bookings/{booking_id}         -- detail (passenger or trip driver)
PATCH  /api/v1/bookings/{booking_id}/cancel  -- cancel and release seats (passenger)
PATCH  /api/v1/bookings/{booking_id}/confirm -- pending -> confirmed (driver)
PATCH  /api/v1/bookings/{booking_id}/complete -- confirmed -> completed (driver)
DELETE /api/v1/bookings/{booking_id}         -- deactivate a finished booking

Creating a booking lives under ``/trips/{trip_id}/bookings``.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from carpool.api.dependencies import get_current_user, get_db
from carpool.api.middleware import limiter
from carpool.api.schemas import (
    BookingDetailResponse,
    BookingResponse,
    ErrorResponse,
    MessageResponse,
)
from carpool.config import settings
from carpool.infrastructure.models import UserModel
from carpool.services.bookings import BookingService

router = APIRouter(prefix="/bookings", tags=["bookings"])

_ERRORS = {code: {"model": ErrorResponse} for code in (401, 403, 404, 409)}


@router.get(
    "/mine",
    response_model=list[BookingDetailResponse],
    summary="List my bookings",
)
@limiter.limit(settings.rate_limit)
async def list_my_bookings(
    request: Request,
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await BookingService(db).list_my_bookings(user.id)


@router.get(
    "/{booking_id}",
    response_model=BookingDetailResponse,
    summary="Get a booking",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def get_booking(
    request: Request,
    booking_id: int,
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await BookingService(db).get_booking(booking_id, user.id)


@router.patch(
    "/{booking_id}/cancel",
    response_model=BookingResponse,
    summary="Cancel a booking",
    description=(
        "Transitions a pending or confirmed booking to cancelled and gives "
        "its seats back to the trip.  A full trip becomes open again."
    ),
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def cancel_booking(
    request: Request,
    booking_id: int,
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await BookingService(db).cancel_booking(booking_id, user.id)


@router.patch(
    "/{booking_id}/confirm",
    response_model=BookingResponse,
    summary="Confirm a pending booking",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def confirm_booking(
    request: Request,
    booking_id: int,
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await BookingService(db).confirm_booking(booking_id, user.id)


@router.patch(
    "/{booking_id}/complete",
    response_model=BookingResponse,
    summary="Complete a confirmed booking",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def complete_booking(
    request: Request,
    booking_id: int,
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await BookingService(db).complete_booking(booking_id, user.id)


@router.delete(
    "/{booking_id}",
    response_model=MessageResponse,
    summary="Delete (deactivate) a booking",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def deactivate_booking(
    request: Request,
    booking_id: int,
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await BookingService(db).deactivate_booking(booking_id, user.id)
    return MessageResponse(message="Booking deleted")
