"""
AsyncEngine factory for a direct PostgreSQL external store.

Each ingest run opens one session and commits once, so no pool is kept.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool


def to_asyncpg_url(database_url: str) -> str:
    for prefix in ("postgresql+asyncpg://", "postgresql://", "postgres://"):
        if database_url.startswith(prefix):
            return "postgresql+asyncpg://" + database_url[len(prefix):]
    return database_url


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    return create_async_engine(to_asyncpg_url(database_url), poolclass=NullPool, echo=echo)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    # expire_on_commit=False: the connection is returned after commit
    return async_sessionmaker(engine, expire_on_commit=False)
