from __future__ import annotations

import datetime as dt

from sqlalchemy import DateTime, event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator
from newsletter_feeds.core.config import settings

def _sqlite_url(path: str) -> str:
    # Ensure absolute path works inside container volume, sqlite is file-based
    return f"sqlite+aiosqlite:///{path}"

def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()

def make_engine(path: str) -> AsyncEngine:
    eng = create_async_engine(
        _sqlite_url(path),
        echo=False,
        # Parallel refreshes write from separate connections; wait for the lock instead of failing
        connect_args={"timeout": 30},
    )
    event.listen(eng.sync_engine, "connect", _enable_foreign_keys)
    return eng

def make_session_factory(eng: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(eng, expire_on_commit=False, class_=AsyncSession)

engine = make_engine(settings.db_path)

SessionLocal = make_session_factory(engine)

class Base(DeclarativeBase):
    pass

class UTCDateTime(TypeDecorator):
    """Stores naive UTC, hands back aware UTC. Naive input is assumed to be UTC."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value
        return value.astimezone(dt.timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value.replace(tzinfo=dt.timezone.utc)

def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)

async def init_models(eng: AsyncEngine | None = None) -> None:
    # Import so every table is registered on Base.metadata
    from newsletter_feeds import models  # noqa: F401

    async with (eng or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return SessionLocal
