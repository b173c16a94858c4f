"""Async SQLAlchemy engine and session handling for the snapshot store."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

import structlog
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from attrstack.config import get_settings
from attrstack.database.models import Base

logger = structlog.get_logger(__name__)


def _ensure_sqlite_directory(url: str) -> None:
    if url.startswith("sqlite") and ":memory:" not in url:
        Path(url.split("///")[-1]).parent.mkdir(parents=True, exist_ok=True)


class SnapshotDatabase:
    """
    One async engine and its session factory, created lazily.

    Example:
        database = SnapshotDatabase("sqlite+aiosqlite:///./data/attrstack.db")
        await database.create_schema()
        async with database.session() as session:
            session.add(AttributeSnapshot(scope=SnapshotScope.GLOBAL, document=doc))
        await database.dispose()
    """

    def __init__(self, url: str, echo: bool = False) -> None:
        self.url = url
        self.echo = echo
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            _ensure_sqlite_directory(self.url)
            self._engine = create_async_engine(self.url, echo=self.echo)
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            self._session_factory = async_sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )
        return self._session_factory

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Session that commits on success and rolls back on error."""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_schema(self) -> None:
        """Create the snapshot table if it does not exist."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("snapshot_schema_ready", url=self.url)

    async def dispose(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None


_database: SnapshotDatabase | None = None


def get_database() -> SnapshotDatabase:
    """Shared database built from ``Settings.database_url`` on first use."""
    global _database

    if _database is None:
        settings = get_settings()
        _database = SnapshotDatabase(settings.database_url, echo=settings.debug)
    return _database


async def close_database() -> None:
    """Dispose of the shared database. Call on shutdown."""
    global _database

    if _database is not None:
        await _database.dispose()
        _database = None
