"""Async SQLAlchemy storage handle with an explicit open/close lifecycle."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from farmledger.db import models  # noqa: F401  (registers tables on Base.metadata)
from farmledger.db.base import Base
from farmledger.errors import FarmLedgerError, StorageFailure

logger = structlog.get_logger()


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """One logical store shared by every engine component.

    ``open()`` must be called before use and ``close()`` when done. Each
    ``transaction()`` is a single unit of work: it commits on success and
    rolls back on any exception.
    """

    def __init__(self, url: str, echo: bool = False) -> None:
        self.url = url
        self.echo = echo
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> AsyncEngine:
        """Get the async engine instance."""
        if self._engine is None:
            msg = "Database not opened. Call open() first."
            raise StorageFailure(msg)
        return self._engine

    async def open(self) -> None:
        """Create the engine and verify the store is reachable."""
        if self._engine is not None:
            return

        is_sqlite = self.url.startswith("sqlite")
        options: dict[str, Any] = {"echo": self.echo}
        if not is_sqlite:
            options.update(pool_size=20, max_overflow=10, pool_pre_ping=True)

        engine = create_async_engine(self.url, **options)
        if is_sqlite:
            event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

        try:
            async with engine.connect():
                pass
        except (SQLAlchemyError, OSError) as exc:
            await engine.dispose()
            logger.error("database_connect_failed", backend=engine.url.get_backend_name(), error=str(exc))
            msg = "Could not connect to the database"
            raise StorageFailure(msg) from exc

        self._engine = engine
        self._session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        logger.info(
            "database_opened",
            backend=engine.url.get_backend_name(),
            url=engine.url.render_as_string(hide_password=True),
        )

    async def close(self) -> None:
        """Dispose of the engine. Safe to call more than once."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("database_closed")

    async def create_schema(self) -> None:
        """Create all tables and indexes that are missing, atomically."""
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all, checkfirst=True)
        except SQLAlchemyError as exc:
            msg = "Schema creation failed"
            raise StorageFailure(msg) from exc
        logger.info("schema_created", tables=sorted(Base.metadata.tables))

    async def drop_schema(self) -> None:
        """Drop every engine table. Used by tests and local resets."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """Yield a session inside a transaction.

        Engine failures raised inside the block pass through untouched;
        SQLAlchemy errors surface as ``StorageFailure``.
        """
        if self._session_factory is None:
            msg = "Database not opened. Call open() first."
            raise StorageFailure(msg)

        try:
            async with self._session_factory() as session, session.begin():
                yield session
        except FarmLedgerError:
            raise
        except SQLAlchemyError as exc:
            logger.error("storage_failure", error=str(exc), exc_info=exc)
            msg = "Storage operation failed"
            raise StorageFailure(msg) from exc
