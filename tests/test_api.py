"""
Integration tests for the REST API endpoints.

Runs the real application against the per-test SQLite database; only the
``get_db`` dependency is overridden.
"""

from datetime import date, timedelta

import pytest
import pytest_asyncio
from httpx import AsyncClient

from tests.conftest import TOMORROW

TRIP_BODY = {
    "origin": "North Campus",
    "destination": "Downtown Station",
    "departure_time": "07:30",
    "fare_per_seat": 4.5,
    "departure_date": TOMORROW.isoformat(),
    "total_seats": 4,
}


@pytest_asyncio.fixture
async def trip(client: AsyncClient, community) -> dict:
    resp = await client.post(
        "/api/v1/trips", json=TRIP_BODY, headers=community.auth(community.driver)
    )
    assert resp.status_code == 201
    return resp.json()


async def book(client, community, trip_id, passenger_id, seats=1):
    return await client.post(
        f"/api/v1/trips/{trip_id}/bookings",
        json={"seats_requested": seats, "pickup_description": "Library steps"},
        headers=community.auth(passenger_id),
    )


# ── Health / errors ───────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/api/v1/admin/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_get_trip_not_found(client: AsyncClient):
    resp = await client.get("/api/v1/trips/9999")
    assert resp.status_code == 404
    assert resp.json() == {"kind": "not_found", "detail": "Trip not found"}
    assert resp.headers["X-Error"] == "NotFound"


@pytest.mark.asyncio
async def test_request_validation_is_a_400(client: AsyncClient, community):
    body = {**TRIP_BODY, "fare_per_seat": -3}
    resp = await client.post(
        "/api/v1/trips", json=body, headers=community.auth(community.driver)
    )
    assert resp.status_code == 400
    data = resp.json()
    assert data["kind"] == "validation_error"
    assert data["detail"].startswith("fare_per_seat")


# ── Identity ──────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_missing_token_is_unauthenticated(client: AsyncClient):
    resp = await client.post("/api/v1/trips", json=TRIP_BODY)
    assert resp.status_code == 401
    assert resp.json()["kind"] == "unauthenticated"


@pytest.mark.asyncio
async def test_unknown_token_is_unauthenticated(client: AsyncClient):
    resp = await client.get(
        "/api/v1/bookings/mine", headers={"Authorization": "Bearer nope"}
    )
    assert resp.status_code == 401
    assert "Invalid or expired" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_inactive_member_is_forbidden(client: AsyncClient, community):
    resp = await client.get(
        "/api/v1/bookings/mine", headers=community.auth(community.inactive)
    )
    assert resp.status_code == 403
    assert resp.json() == {"kind": "forbidden", "detail": "Account deactivated"}


# ── Trips ─────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_trip(trip: dict, community):
    assert trip["state"] == "open"
    assert trip["total_seats"] == trip["available_seats"] == 4
    assert trip["driver_id"] == community.driver
    assert trip["driver"]["first_name"] == "Dana"
    assert trip["vehicle"]["plate"] == "ABC123"


@pytest.mark.asyncio
async def test_create_trip_without_vehicle(client: AsyncClient, community):
    resp = await client.post(
        "/api/v1/trips", json=TRIP_BODY, headers=community.auth(community.alice)
    )
    assert resp.status_code == 403
    assert resp.json()["kind"] == "forbidden"


@pytest.mark.asyncio
async def test_create_trip_in_the_past(client: AsyncClient, community):
    body = {**TRIP_BODY, "departure_date": (date.today() - timedelta(days=1)).isoformat()}
    resp = await client.post(
        "/api/v1/trips", json=body, headers=community.auth(community.driver)
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Departure date cannot be in the past"


@pytest.mark.asyncio
async def test_search_is_public(client: AsyncClient, trip: dict):
    resp = await client.get(
        "/api/v1/trips",
        params={"origin": "north", "date": TOMORROW.isoformat(), "min_seats": 2},
    )
    assert resp.status_code == 200
    assert [t["id"] for t in resp.json()] == [trip["id"]]

    resp = await client.get("/api/v1/trips", params={"destination": "airport"})
    assert resp.json() == []


@pytest.mark.asyncio
async def test_search_by_state(client: AsyncClient, community, trip: dict):
    await book(client, community, trip["id"], community.alice, seats=4)

    assert (await client.get("/api/v1/trips")).json() == []
    resp = await client.get("/api/v1/trips", params={"state": "full"})
    assert [t["id"] for t in resp.json()] == [trip["id"]]


@pytest.mark.asyncio
async def test_edit_trip(client: AsyncClient, community, trip: dict):
    resp = await client.patch(
        f"/api/v1/trips/{trip['id']}",
        json={"route": "Via 7th Avenue", "available_seats": 3},
        headers=community.auth(community.driver),
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["route"] == "Via 7th Avenue"
    assert data["total_seats"] == data["available_seats"] == 3


@pytest.mark.asyncio
async def test_edit_trip_by_someone_else(client: AsyncClient, community, trip: dict):
    resp = await client.patch(
        f"/api/v1/trips/{trip['id']}",
        json={"origin": "Somewhere"},
        headers=community.auth(community.other_driver),
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_trip_lifecycle_endpoints(client: AsyncClient, community, trip: dict):
    headers = community.auth(community.driver)
    resp = await client.patch(f"/api/v1/trips/{trip['id']}/complete", headers=headers)
    assert resp.status_code == 409

    resp = await client.patch(f"/api/v1/trips/{trip['id']}/start", headers=headers)
    assert resp.json()["state"] == "in_progress"
    resp = await client.patch(f"/api/v1/trips/{trip['id']}/complete", headers=headers)
    assert resp.json()["state"] == "completed"


@pytest.mark.asyncio
async def test_cancel_trip_cascades(client: AsyncClient, community, trip: dict):
    await book(client, community, trip["id"], community.alice, seats=2)
    await book(client, community, trip["id"], community.bob)

    resp = await client.patch(
        f"/api/v1/trips/{trip['id']}/cancel", headers=community.auth(community.driver)
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["cancelled_bookings"] == 2
    assert data["trip"]["state"] == "cancelled"
    assert data["trip"]["available_seats"] == 4
    assert "2 associated bookings" in data["message"]

    mine = await client.get(
        "/api/v1/bookings/mine", headers=community.auth(community.alice)
    )
    assert [b["status"] for b in mine.json()] == ["cancelled"]


@pytest.mark.asyncio
async def test_delete_trip(client: AsyncClient, community, trip: dict):
    headers = community.auth(community.driver)
    booked = (await book(client, community, trip["id"], community.alice)).json()

    resp = await client.delete(f"/api/v1/trips/{trip['id']}", headers=headers)
    assert resp.status_code == 409

    await client.patch(
        f"/api/v1/bookings/{booked['id']}/cancel",
        headers=community.auth(community.alice),
    )
    resp = await client.delete(f"/api/v1/trips/{trip['id']}", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["message"] == "Trip deleted"
    assert (await client.get(f"/api/v1/trips/{trip['id']}")).status_code == 404


@pytest.mark.asyncio
async def test_my_trips(client: AsyncClient, community, trip: dict):
    await book(client, community, trip["id"], community.carol)
    resp = await client.get(
        "/api/v1/trips/mine", headers=community.auth(community.driver)
    )
    assert resp.status_code == 200
    (mine,) = resp.json()
    assert mine["id"] == trip["id"]
    assert [b["passenger_id"] for b in mine["bookings"]] == [community.carol]


# ── Bookings ──────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_booking(client: AsyncClient, community, trip: dict):
    resp = await book(client, community, trip["id"], community.alice, seats=3)
    assert resp.status_code == 201
    data = resp.json()
    assert data["status"] == "pending"
    assert data["total_price"] == 13.5
    assert data["passenger"]["first_name"] == "Alice"

    detail = (await client.get(f"/api/v1/trips/{trip['id']}")).json()
    assert detail["available_seats"] == 1


@pytest.mark.asyncio
async def test_booking_with_pickup_points(client: AsyncClient, community, trip: dict):
    resp = await client.post(
        f"/api/v1/trips/{trip['id']}/bookings",
        json={"pickup_points": [{"name": "Gate 2"}, {"name": "Cafeteria"}]},
        headers=community.auth(community.bob),
    )
    assert resp.status_code == 201
    assert resp.json()["pickup_description"] == "Gate 2, Cafeteria"
    assert resp.json()["seats_requested"] == 1


@pytest.mark.asyncio
async def test_booking_requires_pickup(client: AsyncClient, community, trip: dict):
    resp = await client.post(
        f"/api/v1/trips/{trip['id']}/bookings",
        json={"seats_requested": 1},
        headers=community.auth(community.bob),
    )
    assert resp.status_code == 400
    assert resp.json()["kind"] == "validation_error"


@pytest.mark.asyncio
async def test_overbooking_is_a_conflict(client: AsyncClient, community, trip: dict):
    await book(client, community, trip["id"], community.alice, seats=3)
    resp = await book(client, community, trip["id"], community.bob, seats=2)
    assert resp.status_code == 409
    assert resp.json() == {"kind": "conflict", "detail": "Only 1 seats available"}


@pytest.mark.asyncio
async def test_self_booking_is_forbidden(client: AsyncClient, community, trip: dict):
    resp = await book(client, community, trip["id"], community.driver)
    assert resp.status_code == 403
    assert resp.json()["detail"] == "You cannot book your own trip"


@pytest.mark.asyncio
async def test_duplicate_booking(client: AsyncClient, community, trip: dict):
    await book(client, community, trip["id"], community.alice)
    resp = await book(client, community, trip["id"], community.alice)
    assert resp.status_code == 409
    assert resp.json()["detail"] == "You already have a booking for this trip"


@pytest.mark.asyncio
async def test_booking_state_endpoints(client: AsyncClient, community, trip: dict):
    booking = (await book(client, community, trip["id"], community.bob)).json()
    driver = community.auth(community.driver)

    resp = await client.patch(
        f"/api/v1/bookings/{booking['id']}/confirm",
        headers=community.auth(community.bob),
    )
    assert resp.status_code == 403

    resp = await client.patch(f"/api/v1/bookings/{booking['id']}/confirm", headers=driver)
    assert resp.json()["status"] == "confirmed"
    resp = await client.patch(f"/api/v1/bookings/{booking['id']}/complete", headers=driver)
    assert resp.json()["status"] == "completed"

    resp = await client.patch(f"/api/v1/bookings/{booking['id']}/confirm", headers=driver)
    assert resp.status_code == 409
    assert resp.json()["kind"] == "conflict"


@pytest.mark.asyncio
async def test_cancel_booking_twice(client: AsyncClient, community, trip: dict):
    booking = (await book(client, community, trip["id"], community.alice, 2)).json()
    headers = community.auth(community.alice)

    resp = await client.patch(f"/api/v1/bookings/{booking['id']}/cancel", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["status"] == "cancelled"

    resp = await client.patch(f"/api/v1/bookings/{booking['id']}/cancel", headers=headers)
    assert resp.status_code == 409
    assert resp.json()["detail"] == "This booking is already cancelled"

    detail = (await client.get(f"/api/v1/trips/{trip['id']}")).json()
    assert detail["available_seats"] == 4


@pytest.mark.asyncio
async def test_booking_visibility(client: AsyncClient, community, trip: dict):
    booking = (await book(client, community, trip["id"], community.alice)).json()
    url = f"/api/v1/bookings/{booking['id']}"

    as_passenger = await client.get(url, headers=community.auth(community.alice))
    assert as_passenger.status_code == 200
    assert as_passenger.json()["trip"]["id"] == trip["id"]
    as_driver = await client.get(url, headers=community.auth(community.driver))
    assert as_driver.status_code == 200
    as_stranger = await client.get(url, headers=community.auth(community.carol))
    assert as_stranger.status_code == 403


@pytest.mark.asyncio
async def test_trip_bookings_for_driver(client: AsyncClient, community, trip: dict):
    await book(client, community, trip["id"], community.alice)
    url = f"/api/v1/trips/{trip['id']}/bookings"

    resp = await client.get(url, headers=community.auth(community.driver))
    assert resp.status_code == 200
    assert resp.json()["trip"]["available_seats"] == 3
    assert len(resp.json()["bookings"]) == 1

    resp = await client.get(url, headers=community.auth(community.alice))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_delete_booking(client: AsyncClient, community, trip: dict):
    booking = (await book(client, community, trip["id"], community.alice)).json()
    headers = community.auth(community.alice)
    url = f"/api/v1/bookings/{booking['id']}"

    assert (await client.delete(url, headers=headers)).status_code == 409
    await client.patch(f"{url}/cancel", headers=headers)
    resp = await client.delete(url, headers=headers)
    assert resp.status_code == 200
    assert (await client.get(url, headers=headers)).status_code == 404
    assert (await client.get("/api/v1/bookings/mine", headers=headers)).json() == []


@pytest.mark.asyncio
async def test_seat_audit(client: AsyncClient, community, trip: dict):
    await book(client, community, trip["id"], community.alice, seats=2)
    resp = await client.get(f"/api/v1/admin/trips/{trip['id']}/seats")
    assert resp.status_code == 200
    assert resp.json() == {
        "trip_id": trip["id"],
        "state": "open",
        "total_seats": 4,
        "available_seats": 2,
        "seats_consumed": 2,
        "consistent": True,
    }
