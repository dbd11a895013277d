"""
FastAPI application factory.

* Registers routes for trips, bookings and admin.
* Maps domain failures to stable ``(kind, detail)`` error bodies.
* Applies rate-limiting and CORS middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from carpool.api.errors import register_exception_handlers
from carpool.api.middleware import limiter
from carpool.api.routes import admin, bookings, trips
from carpool.config import settings

logging.basicConfig(level=settings.log_level)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Campus Carpool API",
        description=(
            "Drivers from the university community publish trips with a "
            "fixed number of seats; passengers search and book them.  Seat "
            "counters stay consistent with live bookings under concurrent "
            "requests."
        ),
        version="1.0.0",
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    register_exception_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(trips.router, prefix="/api/v1")
    app.include_router(bookings.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
