"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  The production models are used directly;
every test gets a fresh engine, so nothing leaks between tests.  Mail goes
to an ``AsyncMock`` instead of SMTP.
"""

from datetime import datetime, timezone
from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from src.domain.entities import User
from src.domain.notifications import NotificationComposer
from src.infrastructure import models  # noqa: F401  (registers tables)
from src.infrastructure.database import Base
from src.infrastructure.repositories import UserRepository
from src.services.notifier import NotificationDispatcher
from src.services.ride_lifecycle import RideLifecycleService


TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

# Fixed "now" used by the service clock: Monday 19 Oct 2026, 12:00 UTC.
NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)

LINK_BASE = "https://carpool.example.edu/rides/"


# ── Database ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Create tables on a fresh in-memory engine, then drop everything."""
    engine = create_async_engine(TEST_DB_URL, echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def users(db_session) -> dict[str, User]:
    """alice and bob have full names, carol only a username."""
    repo = UserRepository(db_session)
    created = {}
    for username, first, last in [
        ("alice", "Alice", "Adams"),
        ("bob", "Bob", "Baker"),
        ("carol", None, None),
    ]:
        m = await repo.create(
            username=username,
            email=f"{username}@rice.edu",
            first_name=first,
            last_name=last,
        )
        created[username] = m.to_entity()
    await db_session.commit()
    return created


# ── Notifications ─────────────────────────────────────────────────────


@pytest.fixture
def composer() -> NotificationComposer:
    return NotificationComposer("America/Chicago", LINK_BASE)


@pytest.fixture
def mailer() -> AsyncMock:
    mock = AsyncMock()
    mock.send = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def notifier(mailer, composer) -> NotificationDispatcher:
    return NotificationDispatcher(mailer, composer)


# ── Service ───────────────────────────────────────────────────────────


@pytest.fixture
def service(db_session, notifier) -> RideLifecycleService:
    return RideLifecycleService(db_session, notifier, clock=lambda: NOW)


def sent_mail(mailer: AsyncMock) -> list[tuple[tuple[str, ...], str, str]]:
    """(recipients, subject, html) for every ``mailer.send`` call."""
    return [
        (tuple(call.args[0]), call.args[1], call.args[2])
        for call in mailer.send.await_args_list
    ]
