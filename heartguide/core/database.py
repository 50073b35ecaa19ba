"""Async database engine and session management.

The engine and session factory live on a Database object built by
create_app() from the application Settings and stored on app.state.
get_db() hands out one AsyncSession per request.
"""

import logging
from collections.abc import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from heartguide.core.config import Settings

logger = logging.getLogger(__name__)


class Database:
    """Owns the async engine and session factory for one application.

    Args:
        settings: Application settings providing the database URL.
        engine: Pre-built engine (tests pass a SQLite engine here).
    """

    def __init__(self, settings: Settings, engine: AsyncEngine | None = None) -> None:
        if engine is None:
            url = settings.database_url
            engine_kwargs: dict = {"echo": settings.environment == "development"}
            if url.startswith("postgresql"):
                engine_kwargs["pool_pre_ping"] = True
            engine = create_async_engine(url, **engine_kwargs)
        self.engine = engine
        self.session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def dispose(self) -> None:
        """Close all pooled connections."""
        await self.engine.dispose()
        logger.info("Database engine disposed")

    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session that commits on success and rolls back on error."""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides a database session."""
    database: Database = request.app.state.database
    async for session in database.session():
        yield session
