"""
Admin / observability endpoints
===============================

GET /api/v1/admin/health                  -- simple health check
GET /api/v1/admin/trips/{trip_id}/seats   -- seat counters vs. live bookings
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from carpool.api.dependencies import get_db
from carpool.api.middleware import limiter
from carpool.api.schemas import ErrorResponse, HealthResponse, SeatAuditResponse
from carpool.config import settings
from carpool.services.trips import TripService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/trips/{trip_id}/seats",
    response_model=SeatAuditResponse,
    summary="Compare a trip's seat counters with its live bookings",
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def trip_seat_audit(
    request: Request,
    trip_id: int,
    db: AsyncSession = Depends(get_db),
):
    audit = await TripService(db).seat_audit(trip_id)
    return SeatAuditResponse(
        trip_id=audit.trip_id,
        state=audit.state,
        total_seats=audit.total_seats,
        available_seats=audit.available_seats,
        seats_consumed=audit.seats_consumed,
        consistent=audit.consistent,
    )


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
