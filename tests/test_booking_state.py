"""Unit tests for booking / trip state machines and the seat inventory."""

from datetime import date, timedelta

import pytest

from carpool.domain.entities import (
    SeatInventory,
    booking_total_price,
    ensure_booking_transition,
    ensure_trip_transition,
    validate_departure_date,
    viewer_capability,
)
from carpool.domain.enums import BookingStatus, Capability, TripState
from carpool.domain.errors import Conflict, InvalidStateTransition, ValidationError
from carpool.services.bookings import pickup_from_points


class TestBookingStateMachine:
    # ── Valid transitions ─────────────────────────────────────────

    @pytest.mark.parametrize(
        "current, target",
        [
            (BookingStatus.PENDING, BookingStatus.CONFIRMED),
            (BookingStatus.PENDING, BookingStatus.CANCELLED),
            (BookingStatus.CONFIRMED, BookingStatus.COMPLETED),
            (BookingStatus.CONFIRMED, BookingStatus.CANCELLED),
        ],
    )
    def test_allowed(self, current, target):
        ensure_booking_transition(current, target)

    def test_accepts_raw_column_values(self):
        ensure_booking_transition("pending", BookingStatus.CONFIRMED)

    # ── Invalid transitions ───────────────────────────────────────

    def test_pending_to_completed_fails(self):
        with pytest.raises(InvalidStateTransition, match="pending to completed"):
            ensure_booking_transition(BookingStatus.PENDING, BookingStatus.COMPLETED)

    @pytest.mark.parametrize(
        "target",
        [BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.COMPLETED],
    )
    def test_cancelled_is_terminal(self, target):
        with pytest.raises(InvalidStateTransition):
            ensure_booking_transition(BookingStatus.CANCELLED, target)

    def test_completed_cannot_be_cancelled(self):
        with pytest.raises(InvalidStateTransition):
            ensure_booking_transition(BookingStatus.COMPLETED, BookingStatus.CANCELLED)

    def test_custom_message(self):
        with pytest.raises(InvalidStateTransition, match="^Already done$"):
            ensure_booking_transition(
                BookingStatus.COMPLETED, BookingStatus.COMPLETED, "Already done"
            )

    def test_invalid_transition_is_a_conflict(self):
        assert issubclass(InvalidStateTransition, Conflict)
        assert InvalidStateTransition.kind == "conflict"


class TestTripStateMachine:
    def test_open_can_start(self):
        ensure_trip_transition(TripState.OPEN, TripState.IN_PROGRESS)

    def test_full_can_start(self):
        ensure_trip_transition(TripState.FULL, TripState.IN_PROGRESS)

    def test_in_progress_can_complete(self):
        ensure_trip_transition(TripState.IN_PROGRESS, TripState.COMPLETED)

    def test_open_cannot_complete(self):
        with pytest.raises(InvalidStateTransition, match="open to completed"):
            ensure_trip_transition(TripState.OPEN, TripState.COMPLETED)

    @pytest.mark.parametrize("current", [TripState.COMPLETED, TripState.CANCELLED])
    def test_terminal_states_are_final(self, current):
        with pytest.raises(InvalidStateTransition):
            ensure_trip_transition(current, TripState.OPEN)


class TestSeatInventory:
    def test_counters_out_of_range_are_rejected(self):
        with pytest.raises(Conflict):
            SeatInventory(total_seats=3, available_seats=4)
        with pytest.raises(Conflict):
            SeatInventory(total_seats=3, available_seats=-1)

    def test_reserve_decrements(self):
        seats = SeatInventory(total_seats=4, available_seats=4).reserve(3)
        assert seats.available_seats == 1
        assert seats.booked_seats == 3
        assert seats.state == TripState.OPEN

    def test_reserving_last_seat_marks_full(self):
        seats = SeatInventory(total_seats=4, available_seats=1).reserve(1)
        assert seats.available_seats == 0
        assert seats.state == TripState.FULL
        with pytest.raises(Conflict, match="not available"):
            seats.reserve(1)

    def test_snapshot_of_trip_row(self):
        class Row:
            total_seats = 3
            available_seats = 0
            state = "full"

        seats = SeatInventory.of(Row())
        assert seats == SeatInventory(3, 0, TripState.FULL)

    def test_reserve_more_than_available_fails(self):
        seats = SeatInventory(total_seats=4, available_seats=2)
        with pytest.raises(Conflict, match="Only 2 seats available"):
            seats.reserve(3)

    def test_reserve_on_full_trip_fails(self):
        seats = SeatInventory(total_seats=2, available_seats=0, state=TripState.FULL)
        with pytest.raises(Conflict):
            seats.reserve(1)

    def test_release_reopens_full_trip(self):
        seats = SeatInventory(total_seats=2, available_seats=0, state=TripState.FULL)
        released = seats.release(2)
        assert released.available_seats == 2
        assert released.state == TripState.OPEN

    def test_release_keeps_in_progress(self):
        seats = SeatInventory(3, 1, TripState.IN_PROGRESS).release(1)
        assert seats.state == TripState.IN_PROGRESS

    def test_release_beyond_total_fails(self):
        with pytest.raises(Conflict):
            SeatInventory(total_seats=2, available_seats=2).release(1)

    # ── Resize ────────────────────────────────────────────────────

    def test_resize_keeps_booked_seats(self):
        seats = SeatInventory(total_seats=3, available_seats=1).resize(2, capacity=4)
        assert seats.total_seats == 4
        assert seats.available_seats == 2
        assert seats.state == TripState.OPEN

    def test_resize_to_zero_marks_full(self):
        seats = SeatInventory(total_seats=3, available_seats=1).resize(0, capacity=4)
        assert seats.total_seats == 2
        assert seats.state == TripState.FULL

    def test_resize_reopens_full_trip(self):
        seats = SeatInventory(2, 0, TripState.FULL).resize(1, capacity=4)
        assert seats.state == TripState.OPEN
        assert seats.total_seats == 3

    def test_resize_above_capacity_fails(self):
        with pytest.raises(ValidationError, match="capacity"):
            SeatInventory(total_seats=3, available_seats=1).resize(3, capacity=4)

    def test_resize_negative_fails(self):
        with pytest.raises(ValidationError):
            SeatInventory(total_seats=3, available_seats=3).resize(-1, capacity=4)

    def test_resize_to_empty_trip_fails(self):
        with pytest.raises(ValidationError, match="at least 1 seat"):
            SeatInventory(total_seats=3, available_seats=3).resize(0, capacity=4)


class TestBookingRules:
    def test_total_price_is_fare_times_seats(self):
        assert booking_total_price(4.5, 3) == 13.5

    def test_total_price_rounds_to_cents(self):
        assert booking_total_price(3.333, 3) == 10.0

    def test_capability_passenger(self):
        assert viewer_capability(10, 20, 10) == Capability.PASSENGER

    def test_capability_driver(self):
        assert viewer_capability(10, 20, 20) == Capability.DRIVER

    def test_capability_stranger(self):
        assert viewer_capability(10, 20, 30) == Capability.NONE

    def test_past_departure_date_is_rejected(self):
        today = date(2026, 3, 10)
        with pytest.raises(ValidationError, match="past"):
            validate_departure_date(today - timedelta(days=1), today=today)

    def test_today_is_a_valid_departure_date(self):
        today = date(2026, 3, 10)
        validate_departure_date(today, today=today)

    def test_pickup_points_are_joined(self):
        assert pickup_from_points([" Gate 3 ", "", "Library"]) == "Gate 3, Library"
