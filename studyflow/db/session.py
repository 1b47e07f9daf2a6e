"""Async SQLAlchemy engine, session factory and declarative base."""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from sqlalchemy.orm import DeclarativeBase

from studyflow.config import get_settings

settings = get_settings()


class Base(DeclarativeBase):
    """Declarative base for all models."""


engine = create_async_engine(
    settings.database_url or "sqlite+aiosqlite://",
    echo=settings.debug,
    pool_pre_ping=True,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


def worker_session_maker() -> async_sessionmaker[AsyncSession]:
    """
    Session factory for a Celery task.

    Each task runs its own event loop, so connections must not outlive it.
    """
    worker_engine = create_async_engine(
        settings.database_url or "sqlite+aiosqlite://", poolclass=NullPool
    )
    return async_sessionmaker(
        worker_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


async def init_db() -> None:
    """Create tables that do not exist yet (development and tests)."""
    # Importing the models registers them on Base.metadata
    from studyflow.db import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
