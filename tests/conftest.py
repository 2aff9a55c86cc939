"""
Pytest configuration and fixtures.

Every test gets a fresh in-memory SQLite database (foreign keys enabled) and a
clock frozen on Monday 2026-10-19, so 2026-10-25 is the next Sunday.
"""

import os

# Must be set before the application settings are imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

from collections.abc import AsyncGenerator
from datetime import date

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import congregation_planner.congregation.models  # noqa: F401
import congregation_planner.core.audit  # noqa: F401
import congregation_planner.scheduling.models  # noqa: F401
from congregation_planner.congregation.models import Congregation, Publisher, PublicTalk, Speaker
from congregation_planner.core.audit import AuditLogger
from congregation_planner.core.database import Base, get_db
from congregation_planner.core.dates import FixedClock, get_clock
from congregation_planner.scheduling.models import ScheduledPublicTalk, SpeakerSourceType
from congregation_planner.scheduling.services import ensure_weekend_program

TODAY = date(2026, 10, 19)  # Monday
NEXT_SUNDAY = date(2026, 10, 25)
SUNDAY_AFTER = date(2026, 11, 1)
SATURDAY = date(2026, 10, 24)
PAST_SUNDAY = date(2020, 1, 5)

ADMIN_HEADERS = {"X-User-Id": "user-1", "X-User-Email": "admin@example.org", "X-User-Role": "admin"}


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "api: marks tests that go through the HTTP layer"
    )


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """A private in-memory database with the full schema."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_maker: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(TODAY)


@pytest.fixture
def audit(db: AsyncSession) -> AuditLogger:
    return AuditLogger(db, "user-1", "admin@example.org")


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def make_publisher(db: AsyncSession):
    """Create a publisher; capability flags are passed as keyword arguments."""

    async def _make(first_name: str = "Jan", last_name: str = "Kowalski", **flags) -> Publisher:
        publisher = Publisher(first_name=first_name, last_name=last_name, **flags)
        db.add(publisher)
        await db.commit()
        return publisher

    return _make


@pytest.fixture
def make_talk(db: AsyncSession):
    async def _make(no: int, title: str | None = None) -> PublicTalk:
        talk = PublicTalk(no=no, title=title or f"Public talk {no}")
        db.add(talk)
        await db.commit()
        return talk

    return _make


@pytest.fixture
def make_congregation(db: AsyncSession):
    async def _make(name: str = "Kraków Północ") -> Congregation:
        congregation = Congregation(name=name)
        db.add(congregation)
        await db.commit()
        return congregation

    return _make


@pytest.fixture
def make_speaker(db: AsyncSession):
    """Create a visiting speaker approved for the given talks."""

    async def _make(
        first_name: str = "Piotr",
        last_name: str = "Nowak",
        talks: list[PublicTalk] | None = None,
        congregation: Congregation | None = None,
        archived: bool = False,
    ) -> Speaker:
        speaker = Speaker(
            first_name=first_name,
            last_name=last_name,
            congregation=congregation,
            talks=list(talks or []),
            archived=archived,
        )
        db.add(speaker)
        await db.commit()
        return speaker

    return _make


@pytest.fixture
def give_talk(db: AsyncSession):
    """
    Record a talk as given on a (typically past) date, bypassing the
    future-Sunday rule the services enforce.
    """

    async def _give(
        day: date,
        talk: PublicTalk,
        speaker: Speaker | None = None,
        publisher: Publisher | None = None,
    ) -> ScheduledPublicTalk:
        program, part = await ensure_weekend_program(db, day)
        schedule = ScheduledPublicTalk(
            date=day,
            meeting_program_id=program.id,
            part_id=part.id,
            speaker_source_type=(
                SpeakerSourceType.VISITING_SPEAKER if speaker else SpeakerSourceType.LOCAL_PUBLISHER
            ),
            speaker_id=speaker.id if speaker else None,
            publisher_id=publisher.id if publisher else None,
            talk_id=talk.id,
        )
        db.add(schedule)
        await db.commit()
        return schedule

    return _give


# =============================================================================
# HTTP client
# =============================================================================


@pytest.fixture
async def client(
    session_maker: async_sessionmaker[AsyncSession],
    clock: FixedClock,
) -> AsyncGenerator[AsyncClient, None]:
    """API client bound to the test database and clock."""
    from congregation_planner.main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
