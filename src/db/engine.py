"""Database engine and async session factories."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from src.db.base import Base
from src.settings import get_settings

_async_engine = None


def build_async_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create an engine with pool settings suited to the backend."""
    if url.startswith("sqlite"):
        # SQLite serializes writers; pooled connections only add lock contention.
        return create_async_engine(
            url,
            echo=echo,
            poolclass=NullPool,
            connect_args={"timeout": 30},
        )
    return create_async_engine(
        url,
        echo=echo,
        pool_size=20,
        max_overflow=10,
        pool_pre_ping=True,
    )


def get_async_engine(url: Optional[str] = None) -> AsyncEngine:
    """Get or create the async database engine.

    Passing ``url`` always builds a fresh engine and does not touch the
    process-wide cached one.
    """
    global _async_engine
    if url is not None:
        return build_async_engine(url)
    if _async_engine is None:
        settings = get_settings()
        _async_engine = build_async_engine(settings.database_url, settings.database_echo)
    return _async_engine


def get_async_session_factory(engine: Optional[AsyncEngine] = None) -> async_sessionmaker:
    return async_sessionmaker(bind=engine or get_async_engine(), expire_on_commit=False)


async def init_db(engine: Optional[AsyncEngine] = None) -> None:
    """Create all gateway tables that do not exist yet."""
    # Registers the tables on Base.metadata.
    import src.db.models  # noqa: F401

    engine = engine or get_async_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    global _async_engine
    if _async_engine is not None:
        await _async_engine.dispose()
        _async_engine = None


# Convenience alias
AsyncSessionLocal = get_async_session_factory
