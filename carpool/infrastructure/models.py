"""
SQLAlchemy ORM models  (maps to PostgreSQL; SQLite-compatible for tests).

Tables
------
* ``users``        -- university community members (drivers and passengers)
* ``user_tokens``  -- opaque bearer tokens issued by the identity service
* ``vehicles``     -- one registered vehicle per driver, with a seat ceiling
* ``trips``        -- scheduled rides with the authoritative seat counters
* ``bookings``     -- a passenger's claim on seats of one trip

Constraints
-----------
* CHECK ``0 <= available_seats <= total_seats`` on ``trips``.
* Partial UNIQUE on ``bookings (trip_id, passenger_id)`` restricted to
  pending/confirmed rows: one live booking per passenger per trip.

Indexes
-------
* **B-Tree** on ``driver_id``, ``(state, departure_date)``,
  ``(origin, destination)`` for trip listings and ``trip_id`` /
  ``passenger_id`` for booking look-ups.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    func,
    text,
)
from sqlalchemy.orm import relationship

from .database import Base
from carpool.domain.enums import BookingStatus, TripState


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


# Stored as the lowercase values ("open", "pending", ...) in a VARCHAR.
TRIP_STATE_TYPE = Enum(
    TripState,
    name="trip_state",
    native_enum=False,
    length=20,
    values_callable=_enum_values,
)
BOOKING_STATUS_TYPE = Enum(
    BookingStatus,
    name="booking_status",
    native_enum=False,
    length=20,
    values_callable=_enum_values,
)


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    first_name = Column(String(80), nullable=False)
    last_name = Column(String(80), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    phone = Column(String(32), nullable=False)
    # Display hint only; authorisation never reads it.
    role = Column(String(20), default="member", nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class UserTokenModel(Base):
    __tablename__ = "user_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    access_token = Column(String(128), unique=True, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_user_tokens_user", "user_id"),)


class VehicleModel(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    plate = Column(String(16), unique=True, nullable=False)
    brand = Column(String(60), default="", nullable=False)
    model = Column(String(60), nullable=False)
    seat_capacity = Column(Integer, nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("seat_capacity BETWEEN 1 AND 5", name="ck_vehicles_capacity"),
    )


class TripModel(Base):
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False)

    origin = Column(String(200), nullable=False)
    destination = Column(String(200), nullable=False)
    route = Column(String(500), nullable=True)
    departure_date = Column(Date, nullable=False)
    departure_time = Column(String(20), nullable=False)

    total_seats = Column(Integer, nullable=False)
    available_seats = Column(Integer, nullable=False)
    fare_per_seat = Column(Float, nullable=False)

    state = Column(TRIP_STATE_TYPE, default=TripState.OPEN, nullable=False)
    active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    driver = relationship(UserModel, lazy="selectin")
    vehicle = relationship(VehicleModel, lazy="selectin")

    __mapper_args__ = {"eager_defaults": True}

    __table_args__ = (
        CheckConstraint("total_seats >= 1", name="ck_trips_total_seats"),
        CheckConstraint("available_seats >= 0", name="ck_trips_available_min"),
        CheckConstraint(
            "available_seats <= total_seats", name="ck_trips_available_max"
        ),
        CheckConstraint("fare_per_seat >= 0", name="ck_trips_fare"),
        Index("idx_trips_driver", "driver_id"),
        Index("idx_trips_state_date", "state", "departure_date"),
        Index("idx_trips_route", "origin", "destination"),
    )


_OPEN_BOOKING_CLAUSE = text("status IN ('pending', 'confirmed')")


class BookingModel(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=False)
    passenger_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    seats_requested = Column(Integer, nullable=False)
    pickup_description = Column(String(500), nullable=False)
    total_price = Column(Float, nullable=False)

    status = Column(
        BOOKING_STATUS_TYPE, default=BookingStatus.PENDING, nullable=False
    )
    active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    trip = relationship(TripModel, lazy="selectin")
    passenger = relationship(UserModel, lazy="selectin")

    __mapper_args__ = {"eager_defaults": True}

    __table_args__ = (
        CheckConstraint("seats_requested >= 1", name="ck_bookings_seats"),
        CheckConstraint("total_price >= 0", name="ck_bookings_price"),
        Index("idx_bookings_trip", "trip_id"),
        Index("idx_bookings_passenger", "passenger_id"),
        Index(
            "uq_bookings_trip_passenger_open",
            "trip_id",
            "passenger_id",
            unique=True,
            postgresql_where=_OPEN_BOOKING_CLAUSE,
            sqlite_where=_OPEN_BOOKING_CLAUSE,
        ),
    )
