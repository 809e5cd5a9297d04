"""
db/session.py
-------------
Async SQLAlchemy engine and session factory.

  - asyncpg in production; pool sized by DB_POOL_SIZE / DB_MAX_OVERFLOW with
    pre-ping so connections that died during a DB restart are replaced.
  - expire_on_commit=False: the bulk assignment path commits after every
    item and keeps using already-loaded rows afterwards.
  - SQLite (tests, local runs): foreign keys are switched on per connection
    and the driver's implicit BEGIN is replaced with an explicit one so that
    SAVEPOINT / begin_nested() behaves like it does on PostgreSQL.
"""

from typing import Any, AsyncIterator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from portal.core.config import settings


def _engine_options() -> dict[str, Any]:
    options: dict[str, Any] = {"echo": settings.DEBUG}
    if not settings.is_sqlite:
        options.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_pre_ping=True,
            pool_recycle=3600,
        )
    return options


def _install_sqlite_hooks(async_engine: AsyncEngine) -> None:
    @event.listens_for(async_engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):  # noqa: ANN001
        # Hand transaction control to SQLAlchemy; see "begin" below.
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(async_engine.sync_engine, "begin")
    def _on_begin(conn):  # noqa: ANN001
        conn.exec_driver_sql("BEGIN")


engine = create_async_engine(settings.DATABASE_URL, **_engine_options())
if settings.is_sqlite:
    _install_sqlite_hooks(engine)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncIterator[AsyncSession]:
    """
    FastAPI dependency that yields a database session.
    Commits when the request handler returns, rolls back if it raises.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
