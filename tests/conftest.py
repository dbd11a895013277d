"""
Shared test fixtures.

Each test gets its own SQLite file database (via aiosqlite) built from the
production metadata, so tests run without Docker / PostgreSQL.  A file
database (rather than ``:memory:``) lets several sessions run truly
concurrent transactions against the same tables.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from carpool.infrastructure.database import Base
from carpool.infrastructure.models import UserModel, UserTokenModel, VehicleModel
from carpool.services.trips import TripService

TOMORROW = date.today() + timedelta(days=1)


@dataclass
class Community:
    """Ids and bearer tokens of the seeded members."""

    driver: int = 0
    other_driver: int = 0
    alice: int = 0
    bob: int = 0
    carol: int = 0
    inactive: int = 0
    tokens: dict[int, str] = field(default_factory=dict)

    def auth(self, user_id: int) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.tokens[user_id]}"}


# ── Database ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def test_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'carpool.db'}",
        echo=False,
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def uow(session_factory):
    """One transaction per ``async with``: commit on exit, rollback on error."""

    @asynccontextmanager
    async def _unit_of_work():
        async with session_factory() as session, session.begin():
            yield session

    return _unit_of_work


@pytest_asyncio.fixture
async def community(session_factory) -> Community:
    """Two drivers with vehicles, three passengers and a deactivated member."""
    people = [
        ("driver", "Dana", "Driver", True),
        ("other_driver", "Omar", "Okafor", True),
        ("alice", "Alice", "Moreno", True),
        ("bob", "Bob", "Lindqvist", True),
        ("carol", "Carol", "Ansah", True),
        ("inactive", "Ivan", "Idle", False),
    ]
    members = Community()
    expires = datetime.now(timezone.utc) + timedelta(days=1)

    async with session_factory() as session, session.begin():
        for slot, first, last, active in people:
            user = UserModel(
                first_name=first,
                last_name=last,
                email=f"{slot}@campus.example.edu",
                phone="+57 300 000 0000",
                active=active,
            )
            session.add(user)
            await session.flush()
            setattr(members, slot, user.id)
            token = f"token-{slot}"
            members.tokens[user.id] = token
            session.add(
                UserTokenModel(user_id=user.id, access_token=token, expires_at=expires)
            )

        session.add_all(
            [
                VehicleModel(
                    driver_id=members.driver,
                    plate="ABC123",
                    brand="Renault",
                    model="Logan",
                    seat_capacity=4,
                ),
                VehicleModel(
                    driver_id=members.other_driver,
                    plate="XYZ789",
                    brand="Kia",
                    model="Picanto",
                    seat_capacity=3,
                ),
            ]
        )
    return members


@pytest_asyncio.fixture
async def make_trip(uow, community):
    """Factory publishing a trip for ``community.driver`` by default."""

    async def _make_trip(driver_id=None, **overrides):
        values = {
            "origin": "North Campus",
            "destination": "Downtown Station",
            "departure_time": "07:30",
            "fare_per_seat": 4.5,
            "departure_date": TOMORROW,
        }
        values.update(overrides)
        async with uow() as db:
            return await TripService(db).create_trip(
                driver_id or community.driver, **values
            )

    return _make_trip


# ── HTTP client ───────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def client(session_factory, community) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient against the real app, with ``get_db`` bound to the test DB."""
    from carpool.api.app import create_app
    from carpool.api.dependencies import get_db

    async def _test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app = create_app()
    app.dependency_overrides[get_db] = _test_db

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
