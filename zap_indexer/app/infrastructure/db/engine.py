from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from zap_indexer.app.config import settings


def create_app_async_engine(*, url: str | None = None, echo: bool = False) -> AsyncEngine:
    """
    Factory for AsyncEngine used by sync workers and the distribution job.

    Every worker shares this one pool; workers never share in-memory state,
    the database is their only coordination point.
    """
    return create_async_engine(
        url or settings.database_url,  # postgresql+asyncpg://...
        echo=echo,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=10,
    )
