"""Selection of the persistence backend, made once at startup."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Union

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from studyflow.config import Settings
from studyflow.services.database import DatabaseService
from studyflow.services.demo_database import DemoDatabase

logger = logging.getLogger(__name__)

Store = Union[DatabaseService, DemoDatabase]


class StoreProvider:
    """
    Hands out persistence gateways bound to the backend chosen at startup.

    The provider is built in the application lifespan and shared through
    `app.state`, so request handlers and background work always agree on
    which backend is active.
    """

    def __init__(
        self,
        session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
        demo: Optional[DemoDatabase] = None,
    ):
        if session_maker is None and demo is None:
            raise ValueError("StoreProvider needs a session maker or a demo store")
        self.session_maker = session_maker
        self.demo = demo

    @property
    def backend(self) -> str:
        return "demo" if self.demo is not None else "database"

    @property
    def is_demo(self) -> bool:
        return self.demo is not None

    @asynccontextmanager
    async def session(self) -> AsyncIterator[Store]:
        """Open a gateway for one unit of work."""
        if self.demo is not None:
            yield self.demo
            return
        async with self.session_maker() as db:
            yield DatabaseService(db)

    @classmethod
    async def resolve(
        cls,
        settings: Settings,
        session_maker: async_sessionmaker[AsyncSession],
    ) -> "StoreProvider":
        """
        Probe the database and pick a backend.

        Falls back to the in-memory demo store only when the settings allow
        it (never in production); otherwise the connection error propagates
        and startup fails.
        """
        try:
            async with session_maker() as db:
                await db.execute(text("SELECT 1"))
            logger.info("Database reachable, using relational store")
            return cls(session_maker=session_maker)
        except Exception as e:
            if not settings.allow_demo_fallback:
                logger.error(f"Database unreachable at startup: {e}")
                raise
            logger.warning(
                f"Database unreachable ({e}); using the in-memory demo store. "
                "All data will be lost on restart."
            )
            return cls(demo=DemoDatabase())
