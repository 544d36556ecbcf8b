"""Async SQLAlchemy plumbing for the booking store.

One lazily created engine per process. Sessions are short-lived: the store
adapter opens one per read or per reservation transaction.
"""

import os
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..domain.models import Base

DATABASE_URL_ENV = "DATABASE_URL"
DEFAULT_URL = "postgresql+asyncpg://spa_user:change_me@db:5432/spa_booking"

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def database_url() -> str:
    return os.getenv(DATABASE_URL_ENV) or DEFAULT_URL


def _make_engine(url: str) -> AsyncEngine:
    """Create the async engine; asyncpg connections run in UTC."""
    kwargs: dict = {"pool_pre_ping": True}
    if make_url(url).get_driver_name() == "asyncpg":
        kwargs["connect_args"] = {"server_settings": {"timezone": "UTC"}}
    return create_async_engine(url, **kwargs)


def get_engine() -> AsyncEngine:
    global _engine, _session_factory
    if _engine is None:
        _engine = _make_engine(database_url())
        _session_factory = async_sessionmaker(_engine, expire_on_commit=False)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    get_engine()
    assert _session_factory is not None
    return _session_factory


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    """Yield a session that is always closed on exit."""
    session = get_session_factory()()
    try:
        yield session
    finally:
        await session.close()


async def init_db(force: bool = False) -> None:
    """Create tables from the ORM metadata (development only; Alembic owns production)."""
    engine = get_engine()
    async with engine.begin() as conn:
        if force:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    """Close pooled connections and forget the engine.

    Connections are bound to the event loop that opened them; call this before
    that loop ends so the next loop builds a fresh engine.
    """
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


def _reset_engine_for_tests() -> None:
    global _engine, _session_factory
    _engine = None
    _session_factory = None


__all__ = [
    "database_url",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_db",
    "dispose_engine",
    "_reset_engine_for_tests",
]
