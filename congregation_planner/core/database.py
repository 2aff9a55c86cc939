"""
Database

Async engine, session factory and declarative base shared by the
congregation, scheduling and audit models.
"""

from collections.abc import AsyncGenerator
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from congregation_planner.core.config import settings

engine = create_async_engine(settings.database_url, echo=settings.debug)

async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    """Timezone-aware current time used for created/updated columns."""
    return datetime.now(timezone.utc)


async def init_db() -> None:
    """Create missing tables. Deployed databases are migrated with alembic."""
    import congregation_planner.congregation.models  # noqa: F401
    import congregation_planner.core.audit  # noqa: F401
    import congregation_planner.scheduling.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    One session per request. Committed when the handler returns, rolled
    back when it raises, so a failed request never leaves partial writes.
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
