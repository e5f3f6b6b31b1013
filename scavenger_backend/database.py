"""
Database engine and session handling for Scavenger Backend.

PostgreSQL (asyncpg) is the production target; SQLite (aiosqlite) is used
for tests and local runs.
"""

from datetime import datetime, timezone
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from scavenger_backend.config import Settings, get_settings


class Base(DeclarativeBase):
    """Declarative base shared by the hunt tables."""
    pass


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def build_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine described by ``settings.database_url``."""
    if settings.database_url.startswith("sqlite"):
        # No pool sizing for SQLite
        return create_async_engine(
            settings.database_url,
            echo=settings.debug_mode,
            connect_args={"check_same_thread": False},
        )
    return create_async_engine(
        settings.database_url,
        echo=settings.debug_mode,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
    )


engine = build_engine(get_settings())

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_db() -> None:
    """Create the players, challenges, player_locations and player_progress tables."""
    from scavenger_backend.models import Challenge, Player, PlayerLocation, PlayerProgress  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose of pooled connections."""
    await engine.dispose()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped session dependency.
    Commits once the route returns and rolls back if it raises.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
