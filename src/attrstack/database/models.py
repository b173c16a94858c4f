"""Snapshot table holding persisted attribute documents."""

import enum
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Enum, UniqueConstraint, Uuid, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for attrstack tables."""

    pass


# Owner id of the single global snapshot row
GLOBAL_OWNER_ID = uuid.UUID(int=0)


class SnapshotScope(enum.Enum):
    """Which registry scope a snapshot belongs to."""

    GLOBAL = "global"
    ENTITY = "entity"


class AttributeSnapshot(Base):
    """One persisted attribute document (the global scope or one entity)."""

    __tablename__ = "attribute_snapshots"
    __table_args__ = (UniqueConstraint("scope", "owner_id", name="uq_snapshot_scope_owner"),)

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        comment="Unique snapshot identifier",
    )

    scope: Mapped[SnapshotScope] = mapped_column(
        Enum(SnapshotScope),
        nullable=False,
        index=True,
        comment="global or entity",
    )

    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        nullable=False,
        default=GLOBAL_OWNER_ID,
        index=True,
        comment="Owning entity id; GLOBAL_OWNER_ID for the global snapshot",
    )

    document: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
        comment="Attribute document (see attrstack.persistence.document)",
    )

    saved_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
        comment="When the document was last written",
    )

    def __repr__(self) -> str:
        return f"<AttributeSnapshot(scope={self.scope.value}, owner_id={self.owner_id})>"
