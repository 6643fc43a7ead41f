"""Shared pytest fixtures for contact-link tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from contact_link.models import Base, Contact, LinkPrecedence
from contact_link.storage import InMemoryContactStore, SqlContactStore

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


# In-memory SQLite shared across the sessions of one test
TEST_DATABASE_URL = "sqlite+aiosqlite://"

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)

# SQLite hands back naive datetimes; rows seeded directly must match
SQL_T0 = datetime(2024, 1, 1)


class SteppingClock:
    """Clock that advances one second per call, starting at T0."""

    def __init__(self, start: datetime = T0, step: timedelta = timedelta(seconds=1)) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now += self.step
        return current


@pytest.fixture
def clock() -> SteppingClock:
    return SteppingClock()


@pytest.fixture
def store(clock: SteppingClock) -> InMemoryContactStore:
    """Empty in-memory contact store with a deterministic clock."""
    return InMemoryContactStore(clock=clock)


@pytest.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create a test database engine with all tables.

    Tables are dropped at the end.
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def test_session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def db_session(
    test_session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session with transaction rollback.

    Each test gets its own transaction that is rolled back at the end.
    """
    async with test_session_factory() as session:
        async with session.begin():
            yield session
            await session.rollback()


@pytest.fixture
def sql_store(db_session: AsyncSession) -> SqlContactStore:
    return SqlContactStore(db_session)


# Type alias for factory fixture
MakeContact = Callable[..., Contact]


@pytest.fixture
def make_contact() -> MakeContact:
    """Factory fixture for Contact rows with explicit timestamps."""

    def _make(
        *,
        email: str | None = None,
        phone_number: str | None = None,
        linked_id: int | None = None,
        link_precedence: LinkPrecedence | None = None,
        created_at: datetime = SQL_T0,
        deleted_at: datetime | None = None,
    ) -> Contact:
        if link_precedence is None:
            link_precedence = (
                LinkPrecedence.PRIMARY if linked_id is None else LinkPrecedence.SECONDARY
            )
        return Contact(
            email=email,
            phone_number=phone_number,
            linked_id=linked_id,
            link_precedence=link_precedence,
            created_at=created_at,
            updated_at=created_at,
            deleted_at=deleted_at,
        )

    return _make
