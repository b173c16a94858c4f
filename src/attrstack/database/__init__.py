"""Async database access for attribute snapshots."""

from .engine import SnapshotDatabase, close_database, get_database
from .models import GLOBAL_OWNER_ID, AttributeSnapshot, Base, SnapshotScope

__all__ = [
    "GLOBAL_OWNER_ID",
    "AttributeSnapshot",
    "Base",
    "SnapshotDatabase",
    "SnapshotScope",
    "close_database",
    "get_database",
]
