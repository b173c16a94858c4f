"""YAML file store for attribute snapshots.

Files:
    <data_dir>/global.yml           global instances and cap overrides
    <data_dir>/entities/<uuid>.yml  one entity's instances
"""

from pathlib import Path
from typing import Any
from uuid import UUID

import structlog
import yaml

from attrstack.config import get_settings
from attrstack.errors import PersistenceError
from attrstack.persistence.document import (
    build_entity_document,
    build_global_document,
    load_entity_document,
    load_global_document,
)
from attrstack.registry import AttributeRegistry

logger = structlog.get_logger(__name__)


def read_yaml_document(file_path: Path) -> dict[str, Any] | None:
    """
    Read a snapshot file.

    Args:
        file_path: Path to the YAML file

    Returns:
        The parsed mapping, or None if the file does not exist

    Raises:
        PersistenceError: If the file cannot be read or is not a mapping
    """
    if not file_path.exists():
        return None

    try:
        with open(file_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise PersistenceError(f"YAML parsing error in {file_path}: {e}")
    except OSError as e:
        raise PersistenceError(f"Error reading {file_path}: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise PersistenceError(f"Snapshot root must be a mapping in {file_path}")
    return data


def write_yaml_document(file_path: Path, document: dict[str, Any]) -> None:
    """
    Write a snapshot file, creating parent directories.

    Raises:
        PersistenceError: If the file cannot be written
    """
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(document, f, sort_keys=False)
    except (OSError, yaml.YAMLError) as e:
        raise PersistenceError(f"Error writing {file_path}: {e}")


class YamlAttributeStore:
    """Loads and saves registry state as YAML documents."""

    def __init__(self, data_dir: Path | None = None) -> None:
        """
        Initialize the store.

        Args:
            data_dir: Snapshot root; defaults to ``Settings.data_dir``
        """
        self.data_dir = Path(data_dir) if data_dir is not None else get_settings().data_dir

    @property
    def global_path(self) -> Path:
        return self.data_dir / "global.yml"

    def entity_path(self, entity_id: UUID) -> Path:
        return self.data_dir / "entities" / f"{entity_id}.yml"

    def load_globals(self, registry: AttributeRegistry) -> bool:
        """
        Load global instances and cap overrides.

        Returns:
            True if a snapshot existed
        """
        document = read_yaml_document(self.global_path)
        if document is None:
            return False
        loaded = load_global_document(registry, document)
        logger.info("globals_loaded", path=str(self.global_path), attributes=len(loaded))
        return True

    def save_globals(self, registry: AttributeRegistry) -> Path:
        write_yaml_document(self.global_path, build_global_document(registry))
        logger.info("globals_saved", path=str(self.global_path))
        return self.global_path

    def load_entity(self, registry: AttributeRegistry, entity_id: UUID) -> bool:
        """
        Load one entity's instances.

        Returns:
            True if a snapshot existed
        """
        path = self.entity_path(entity_id)
        document = read_yaml_document(path)
        if document is None:
            return False
        loaded = load_entity_document(registry, document, entity_id)
        logger.info(
            "entity_loaded", entity_id=str(entity_id), path=str(path), attributes=len(loaded)
        )
        return True

    def save_entity(self, registry: AttributeRegistry, entity_id: UUID) -> Path:
        path = self.entity_path(entity_id)
        write_yaml_document(path, build_entity_document(registry, entity_id))
        logger.info("entity_saved", entity_id=str(entity_id), path=str(path))
        return path

    def saved_entity_ids(self) -> list[UUID]:
        """Entity ids that have a snapshot file; unparseable names are skipped."""
        folder = self.data_dir / "entities"
        if not folder.exists():
            return []

        entity_ids = []
        for path in sorted(folder.glob("*.yml")):
            try:
                entity_ids.append(UUID(path.stem))
            except ValueError:
                logger.debug("non_entity_snapshot_skipped", path=str(path))
        return entity_ids
