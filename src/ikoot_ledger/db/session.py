"""Async engine and session factories shared by the API and the ledger services."""

from __future__ import annotations

from typing import AsyncIterator

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from ikoot_ledger.core.settings import settings


def _configure_sqlite(engine: AsyncEngine) -> None:
    """Serialize SQLite writers so ledger transactions behave like row-locked ones.

    pysqlite's implicit BEGIN is deferred until the first DML statement, which lets a
    read-then-write transaction race another writer. Every transaction instead opens
    with ``BEGIN IMMEDIATE`` and waits on the busy timeout for the write lock.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record) -> None:  # noqa: ARG001
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_engine_for_url(database_url: str, *, echo: bool = False) -> AsyncEngine:
    url = make_url(database_url)
    connect_args: dict[str, object] = {}
    if url.get_backend_name() == "sqlite":
        connect_args["timeout"] = settings.sqlite_busy_timeout_seconds

    engine = create_async_engine(database_url, echo=echo, future=True, connect_args=connect_args)
    if url.get_backend_name() == "sqlite":
        _configure_sqlite(engine)
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


engine = create_engine_for_url(settings.database_url, echo=settings.database_echo)
async_session = create_session_factory(engine)


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return async_session
