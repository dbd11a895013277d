"""Domain enumerations and state-transition rules."""

import enum


class TripState(str, enum.Enum):
    OPEN = "open"
    FULL = "full"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


# State machine: maps current status -> set of valid next statuses
BOOKING_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.COMPLETED, BookingStatus.CANCELLED},
    BookingStatus.CANCELLED: set(),
    BookingStatus.COMPLETED: set(),
}

# OPEN <-> FULL is driven by the seat counter, never requested directly.
TRIP_TRANSITIONS: dict[TripState, set[TripState]] = {
    TripState.OPEN: {TripState.FULL, TripState.IN_PROGRESS, TripState.CANCELLED},
    TripState.FULL: {TripState.OPEN, TripState.IN_PROGRESS, TripState.CANCELLED},
    TripState.IN_PROGRESS: {TripState.COMPLETED, TripState.CANCELLED},
    TripState.COMPLETED: set(),
    TripState.CANCELLED: set(),
}

# Bookings holding seats against their trip
ACTIVE_BOOKING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)

# Completion keeps the seats consumed; only cancellation gives them back
SEAT_CONSUMING_STATUSES = ACTIVE_BOOKING_STATUSES + (BookingStatus.COMPLETED,)

TERMINAL_TRIP_STATES = (TripState.COMPLETED, TripState.CANCELLED)

# Trips whose schedule and seat pool can still be edited
EDITABLE_TRIP_STATES = (TripState.OPEN, TripState.FULL)


class Capability(str, enum.Enum):
    """How a requester relates to a booking."""

    PASSENGER = "passenger"
    DRIVER = "driver"
    NONE = "none"
