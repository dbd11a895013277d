"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 8 community members, each with a 30-day bearer token
  - 3 registered vehicles (one per driver)
  - 5 trips over the next days
  - bookings in every status, created through the services so the seat
    counters match the bookings exactly
"""

import asyncio
import secrets
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import text

from carpool.infrastructure.database import async_session_factory, engine
from carpool.infrastructure.models import UserModel, UserTokenModel, VehicleModel
from carpool.services.bookings import BookingService
from carpool.services.trips import TripService

USERS = [
    {"first_name": "Valentina", "last_name": "Ríos", "email": "vrios@campus.edu"},
    {"first_name": "Mateo", "last_name": "Gómez", "email": "mgomez@campus.edu"},
    {"first_name": "Sofía", "last_name": "Herrera", "email": "sherrera@campus.edu"},
    {"first_name": "Samuel", "last_name": "Castro", "email": "scastro@campus.edu"},
    {"first_name": "Isabella", "last_name": "Vargas", "email": "ivargas@campus.edu"},
    {"first_name": "Daniel", "last_name": "Torres", "email": "dtorres@campus.edu"},
    {"first_name": "Lucía", "last_name": "Mendoza", "email": "lmendoza@campus.edu"},
    {"first_name": "Tomás", "last_name": "Rojas", "email": "trojas@campus.edu"},
]

# (driver index into USERS, plate, brand, model, capacity)
VEHICLES = [
    (0, "KLM204", "Chevrolet", "Spark", 4),
    (1, "JTR881", "Mazda", "2", 4),
    (2, "HBC517", "Renault", "Duster", 5),
]

# (driver index, origin, destination, days ahead, time, fare, seats)
TRIPS = [
    (0, "North Campus", "Downtown Station", 1, "07:00", 4.0, 4),
    (0, "Downtown Station", "North Campus", 1, "18:30", 4.0, 3),
    (1, "South Residences", "Engineering Building", 2, "06:45", 3.5, 4),
    (2, "Airport", "Main Campus", 3, "14:15", 9.0, 5),
    (2, "Main Campus", "Stadium", 0, "20:00", 2.5, 2),
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM users"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Members ───────────────────────────────────────────────────
        expires = datetime.now(timezone.utc) + timedelta(days=30)
        users = []
        for u in USERS:
            m = UserModel(phone="+57 300 555 0100", **u)
            session.add(m)
            users.append(m)
        await session.flush()
        for m in users:
            token = secrets.token_urlsafe(32)
            session.add(
                UserTokenModel(user_id=m.id, access_token=token, expires_at=expires)
            )
            print(f"  {m.email:<24} Bearer {token}")
        print(f"  Created {len(users)} members")

        # ── Vehicles ──────────────────────────────────────────────────
        for driver, plate, brand, model, capacity in VEHICLES:
            session.add(
                VehicleModel(
                    driver_id=users[driver].id,
                    plate=plate,
                    brand=brand,
                    model=model,
                    seat_capacity=capacity,
                )
            )
        await session.flush()
        print(f"  Created {len(VEHICLES)} vehicles")

        # ── Trips ─────────────────────────────────────────────────────
        trip_service = TripService(session)
        trips = []
        for driver, origin, destination, days, time, fare, seats in TRIPS:
            trip = await trip_service.create_trip(
                users[driver].id,
                origin=origin,
                destination=destination,
                departure_date=date.today() + timedelta(days=days),
                departure_time=time,
                fare_per_seat=fare,
                total_seats=seats,
            )
            trips.append(trip)
        print(f"  Created {len(trips)} trips")

        # ── Bookings ──────────────────────────────────────────────────
        booking_service = BookingService(session)
        passengers = users[3:]

        async def book(trip, passenger, seats, pickup):
            return await booking_service.create_booking(
                trip.id, passenger.id, seats, pickup
            )

        # Trip 0: one confirmed, one pending, one cancelled
        confirmed = await book(trips[0], passengers[0], 2, "Gate 3")
        await booking_service.confirm_booking(confirmed.id, trips[0].driver_id)
        await book(trips[0], passengers[1], 1, "Library")
        cancelled = await book(trips[0], passengers[2], 1, "Gym entrance")
        await booking_service.cancel_booking(cancelled.id, passengers[2].id)

        # Trip 2: booked to full
        await book(trips[2], passengers[3], 3, "Block C")
        await book(trips[2], passengers[4], 1, "Block D")

        # Trip 4: driven and completed with one completed booking
        ride = await book(trips[4], passengers[0], 1, "Main square")
        await booking_service.confirm_booking(ride.id, trips[4].driver_id)
        await trip_service.start_trip(trips[4].id, trips[4].driver_id)
        await booking_service.complete_booking(ride.id, trips[4].driver_id)
        await trip_service.complete_trip(trips[4].id, trips[4].driver_id)
        print("  Created 7 bookings")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
