"""SQL-backed snapshot store using async SQLAlchemy.

Stores the same document as :mod:`attrstack.persistence.yaml_store`, one row
per scope in ``attribute_snapshots``. Loading reads the row inside a session
and installs it into the registry after the session closes.
"""

from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from attrstack.database import (
    GLOBAL_OWNER_ID,
    AttributeSnapshot,
    SnapshotDatabase,
    SnapshotScope,
    get_database,
)
from attrstack.errors import PersistenceError
from attrstack.persistence.document import (
    build_entity_document,
    build_global_document,
    load_entity_document,
    load_global_document,
)
from attrstack.registry import AttributeRegistry

logger = structlog.get_logger(__name__)


class SqlAttributeStore:
    """Loads and saves registry state as JSON documents in the database."""

    def __init__(self, database: SnapshotDatabase | None = None) -> None:
        """
        Initialize the store.

        Args:
            database: Database to use; defaults to the one built from settings
        """
        self._database = database

    @property
    def database(self) -> SnapshotDatabase:
        if self._database is None:
            self._database = get_database()
        return self._database

    async def _read(self, scope: SnapshotScope, owner_id: UUID) -> dict[str, Any] | None:
        try:
            async with self.database.session() as session:
                snapshot = await self._find(session, scope, owner_id)
                return None if snapshot is None else dict(snapshot.document)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Error reading {scope.value} snapshot: {e}")

    async def _write(
        self, scope: SnapshotScope, owner_id: UUID, document: dict[str, Any]
    ) -> None:
        try:
            async with self.database.session() as session:
                snapshot = await self._find(session, scope, owner_id)
                if snapshot is None:
                    session.add(
                        AttributeSnapshot(scope=scope, owner_id=owner_id, document=document)
                    )
                else:
                    snapshot.document = document
        except SQLAlchemyError as e:
            raise PersistenceError(f"Error writing {scope.value} snapshot: {e}")

    @staticmethod
    async def _find(
        session: AsyncSession, scope: SnapshotScope, owner_id: UUID
    ) -> AttributeSnapshot | None:
        query = select(AttributeSnapshot).where(
            AttributeSnapshot.scope == scope, AttributeSnapshot.owner_id == owner_id
        )
        result = await session.execute(query)
        return result.scalar_one_or_none()

    async def load_globals(self, registry: AttributeRegistry) -> bool:
        """
        Load global instances and cap overrides.

        Returns:
            True if a snapshot existed
        """
        document = await self._read(SnapshotScope.GLOBAL, GLOBAL_OWNER_ID)
        if document is None:
            return False
        loaded = load_global_document(registry, document)
        logger.info("globals_loaded", store="sql", attributes=len(loaded))
        return True

    async def save_globals(self, registry: AttributeRegistry) -> None:
        await self._write(SnapshotScope.GLOBAL, GLOBAL_OWNER_ID, build_global_document(registry))
        logger.info("globals_saved", store="sql")

    async def load_entity(self, registry: AttributeRegistry, entity_id: UUID) -> bool:
        """
        Load one entity's instances.

        Returns:
            True if a snapshot existed
        """
        document = await self._read(SnapshotScope.ENTITY, entity_id)
        if document is None:
            return False
        loaded = load_entity_document(registry, document, entity_id)
        logger.info("entity_loaded", store="sql", entity_id=str(entity_id), attributes=len(loaded))
        return True

    async def save_entity(self, registry: AttributeRegistry, entity_id: UUID) -> None:
        await self._write(
            SnapshotScope.ENTITY, entity_id, build_entity_document(registry, entity_id)
        )
        logger.info("entity_saved", store="sql", entity_id=str(entity_id))

    async def delete_entity(self, entity_id: UUID) -> bool:
        """Delete an entity snapshot. Returns True if one existed."""
        try:
            async with self.database.session() as session:
                snapshot = await self._find(session, SnapshotScope.ENTITY, entity_id)
                if snapshot is None:
                    return False
                await session.delete(snapshot)
                return True
        except SQLAlchemyError as e:
            raise PersistenceError(f"Error deleting entity snapshot: {e}")
