"""Registry owning attribute definitions, instances and refresh notification.

One :class:`AttributeRegistry` is created per hosting session and passed to
every collaborator (persistence, refresh dispatch, the game bridge).

Thread safety: the definition and instance maps are guarded by a lock, so
concurrent registration and lookup (for example an asynchronous persistence
load) is safe. The lock does NOT make a compute atomic with respect to a
concurrent ``set_*_modifier`` / ``remove_*_modifier`` on the same instance; a
computation running alongside such a mutation may see a partially updated
bucket set. Run mutations and computations for one entity on the same
logical thread.
"""

import threading
from collections.abc import Mapping
from types import MappingProxyType
from typing import Protocol
from uuid import UUID

import structlog

from attrstack.compute.engine import ComputationEngine, ExternalValueProvider
from attrstack.config import get_settings
from attrstack.errors import ModifierValidationError, UnknownAttributeError
from attrstack.expiry import ExpiryHandle, ModifierExpiryScheduler
from attrstack.model.definition import AttributeDefinition
from attrstack.model.instance import AttributeInstance
from attrstack.model.modifiers import ModifierEntry, is_namespaced_key
from attrstack.model.stages import AttributeValueStages

logger = structlog.get_logger(__name__)


class AttributeRefreshListener(Protocol):
    """Observer told to re-push computed values into live game state."""

    def notify_entity(self, entity_id: UUID, attribute_id: str) -> None:
        """One attribute of one entity changed."""
        ...

    def notify_all(self, attribute_id: str) -> None:
        """One attribute changed for every entity (global scope mutation)."""
        ...

    def forget_entity(self, entity_id: UUID) -> None:
        """The entity was purged; drop anything still queued for it."""
        ...


def normalize_id(attribute_id: str) -> str:
    return attribute_id.strip().lower()


class AttributeRegistry:
    """
    Owns definitions, global and per-entity instances, and baseline resolvers.

    Write paths against an unregistered attribute id raise
    :class:`UnknownAttributeError`; :meth:`compute` instead logs a warning and
    returns an all-zero result, since read paths are called speculatively.
    """

    def __init__(
        self,
        engine: ComputationEngine | None = None,
        expiry: ModifierExpiryScheduler | None = None,
    ) -> None:
        """
        Initialize an empty registry.

        Args:
            engine: Computation engine; defaults to one using the configured
                drift epsilon
            expiry: Scheduler for timed modifiers; defaults to a monotonic clock
        """
        self.engine = (
            engine if engine is not None else ComputationEngine(get_settings().drift_epsilon)
        )
        self.expiry = expiry if expiry is not None else ModifierExpiryScheduler()
        self._lock = threading.RLock()
        self._definitions: dict[str, AttributeDefinition] = {}
        self._resolvers: dict[str, ExternalValueProvider] = {}
        self._global_instances: dict[str, AttributeInstance] = {}
        self._entity_instances: dict[UUID, dict[str, AttributeInstance]] = {}
        self._listener: AttributeRefreshListener | None = None

    # ------------------------------------------------------------------
    # Definitions
    # ------------------------------------------------------------------

    def register_definition(self, definition: AttributeDefinition) -> None:
        """
        Register or replace a definition.

        The global instance is created on first registration and kept across
        replacements so live state survives a configuration reload.
        """
        with self._lock:
            replaced = definition.id in self._definitions
            self._definitions[definition.id] = definition
            if definition.id not in self._global_instances:
                self._global_instances[definition.id] = definition.new_instance()

        logger.info(
            "attribute_definition_registered",
            attribute_id=definition.id,
            dynamic=definition.dynamic,
            replaced=replaced,
        )

    def register_baseline_resolver(
        self, attribute_id: str, resolver: ExternalValueProvider
    ) -> None:
        """Install the live value source used for a dynamic attribute."""
        with self._lock:
            self._resolvers[normalize_id(attribute_id)] = resolver

    def get_definition(self, attribute_id: str | None) -> AttributeDefinition | None:
        if attribute_id is None:
            return None
        with self._lock:
            return self._definitions.get(normalize_id(attribute_id))

    def definitions(self) -> list[AttributeDefinition]:
        with self._lock:
            return list(self._definitions.values())

    def definition_ids(self) -> list[str]:
        with self._lock:
            return list(self._definitions)

    def _require_definition(self, attribute_id: str) -> AttributeDefinition:
        definition = self.get_definition(attribute_id)
        if definition is None:
            raise UnknownAttributeError(attribute_id)
        return definition

    # ------------------------------------------------------------------
    # Instances
    # ------------------------------------------------------------------

    def get_or_create_global_instance(self, attribute_id: str) -> AttributeInstance:
        """
        Get the global instance for an attribute, creating it if needed.

        Raises:
            UnknownAttributeError: If the attribute is not registered
        """
        definition = self._require_definition(attribute_id)
        with self._lock:
            instance = self._global_instances.get(definition.id)
            if instance is None:
                instance = definition.new_instance()
                self._global_instances[definition.id] = instance
            return instance

    def get_or_create_entity_instance(
        self, entity_id: UUID, attribute_id: str
    ) -> AttributeInstance:
        """
        Get an entity's instance for an attribute, creating it on first access.

        New entity instances use the entity id as their cap override key.

        Raises:
            UnknownAttributeError: If the attribute is not registered
        """
        definition = self._require_definition(attribute_id)
        with self._lock:
            store = self._entity_instances.setdefault(entity_id, {})
            instance = store.get(definition.id)
            if instance is None:
                instance = definition.new_instance(cap_override_key=str(entity_id))
                store[definition.id] = instance
                logger.debug(
                    "entity_instance_created",
                    entity_id=str(entity_id),
                    attribute_id=definition.id,
                )
            return instance

    def global_instances(self) -> Mapping[str, AttributeInstance]:
        """Read-only snapshot of attribute id -> global instance."""
        with self._lock:
            return MappingProxyType(dict(self._global_instances))

    def entity_instances(self, entity_id: UUID) -> Mapping[str, AttributeInstance]:
        """Read-only snapshot of attribute id -> instance for one entity."""
        with self._lock:
            return MappingProxyType(dict(self._entity_instances.get(entity_id, {})))

    def entity_ids(self) -> list[UUID]:
        with self._lock:
            return list(self._entity_instances)

    def purge_entity(self, entity_id: UUID) -> dict[str, AttributeInstance]:
        """
        Drop every instance of an entity (despawn, session end).

        Returns:
            The removed instances, so callers can persist them first
        """
        with self._lock:
            removed = self._entity_instances.pop(entity_id, {})
        cancelled = self.expiry.cancel_entity(entity_id)
        listener = self._listener
        if listener is not None:
            listener.forget_entity(entity_id)
        logger.info(
            "entity_instances_purged",
            entity_id=str(entity_id),
            attributes=len(removed),
            cancelled_expiries=cancelled,
        )
        return removed

    # ------------------------------------------------------------------
    # Computation
    # ------------------------------------------------------------------

    def compute(self, attribute_id: str, entity_id: UUID | None = None) -> AttributeValueStages:
        """
        Compute the six stages for an attribute, optionally for one entity.

        Args:
            attribute_id: Attribute to compute (case-insensitive)
            entity_id: Entity whose instance participates; None computes the
                global scope only. An entity without an instance is computed
                from a fresh one that is not stored.

        Returns:
            The stage values, or an all-zero result for an unknown attribute
        """
        definition = self.get_definition(attribute_id)
        if definition is None:
            logger.warning("unknown_attribute_computed", attribute_id=attribute_id)
            return AttributeValueStages.zero()

        with self._lock:
            global_instance = self._global_instances.get(definition.id)
            resolver = self._resolvers.get(definition.id)
            entity_instance = (
                self._entity_instances.get(entity_id, {}).get(definition.id)
                if entity_id is not None
                else None
            )
        if entity_id is not None and entity_instance is None:
            # Untouched entities read through a throwaway instance
            entity_instance = definition.new_instance(cap_override_key=str(entity_id))
        return self.engine.compute(
            definition, global_instance, entity_instance, resolver, entity_id
        )

    # ------------------------------------------------------------------
    # Modifiers
    # ------------------------------------------------------------------

    @staticmethod
    def validate_modifier(entry: ModifierEntry) -> ModifierEntry:
        """
        Check that a modifier key follows ``<owner>.<name>``.

        Raises:
            ModifierValidationError: If the key is not namespaced
        """
        if not is_namespaced_key(entry.key):
            raise ModifierValidationError(
                f"Modifier keys must follow <owner>.<name> format: {entry.key!r}"
            )
        return entry

    def set_global_modifier(self, attribute_id: str, entry: ModifierEntry) -> None:
        """
        Add or replace a global modifier and broadcast a refresh.

        Raises:
            UnknownAttributeError: If the attribute is not registered
            ModifierValidationError: If the key is malformed
        """
        definition = self._require_definition(attribute_id)
        self.validate_modifier(entry)
        instance = self.get_or_create_global_instance(definition.id)
        replaced = instance.add_modifier(entry)
        self._track_expiry(ExpiryHandle(definition.id, entry.key), entry)

        logger.debug(
            "global_modifier_set",
            attribute_id=definition.id,
            key=entry.key,
            operation=entry.operation.value,
            amount=entry.amount,
            replaced=replaced is not None,
        )
        self._notify_all(definition.id)

    def set_entity_modifier(
        self, entity_id: UUID, attribute_id: str, entry: ModifierEntry
    ) -> None:
        """
        Add or replace an entity modifier and refresh that entity.

        Raises:
            UnknownAttributeError: If the attribute is not registered
            ModifierValidationError: If the key is malformed
        """
        definition = self._require_definition(attribute_id)
        self.validate_modifier(entry)
        instance = self.get_or_create_entity_instance(entity_id, definition.id)
        replaced = instance.add_modifier(entry)
        self._track_expiry(ExpiryHandle(definition.id, entry.key, entity_id), entry)

        logger.debug(
            "entity_modifier_set",
            entity_id=str(entity_id),
            attribute_id=definition.id,
            key=entry.key,
            operation=entry.operation.value,
            amount=entry.amount,
            replaced=replaced is not None,
        )
        self._notify_entity(entity_id, definition.id)

    def remove_global_modifier(self, attribute_id: str, key: str) -> bool:
        """
        Remove a global modifier; refresh only if something was removed.

        Returns:
            True if a modifier was removed
        """
        normalized_id = normalize_id(attribute_id)
        with self._lock:
            instance = self._global_instances.get(normalized_id)
        if instance is None or instance.remove_modifier(key) is None:
            return False

        self.expiry.cancel(ExpiryHandle(normalized_id, key.lower()))
        logger.debug("global_modifier_removed", attribute_id=normalized_id, key=key.lower())
        self._notify_all(normalized_id)
        return True

    def remove_entity_modifier(self, entity_id: UUID, attribute_id: str, key: str) -> bool:
        """
        Remove an entity modifier; refresh only if something was removed.

        Returns:
            True if a modifier was removed
        """
        normalized_id = normalize_id(attribute_id)
        with self._lock:
            instance = self._entity_instances.get(entity_id, {}).get(normalized_id)
        if instance is None or instance.remove_modifier(key) is None:
            return False

        self.expiry.cancel(ExpiryHandle(normalized_id, key.lower(), entity_id))
        logger.debug(
            "entity_modifier_removed",
            entity_id=str(entity_id),
            attribute_id=normalized_id,
            key=key.lower(),
        )
        self._notify_entity(entity_id, normalized_id)
        return True

    def purge_temporary(self, entity_id: UUID) -> int:
        """
        Drop every temporary modifier of an entity.

        Returns:
            Number of modifiers removed
        """
        with self._lock:
            instances = dict(self._entity_instances.get(entity_id, {}))

        total = 0
        for attribute_id, instance in instances.items():
            removed = instance.purge_temporary_modifiers()
            if not removed:
                continue
            total += len(removed)
            for key in removed:
                self.expiry.cancel(ExpiryHandle(attribute_id, key, entity_id))
            self._notify_entity(entity_id, attribute_id)
        return total

    def purge_global_temporary(self) -> int:
        """
        Drop every temporary global modifier.

        Returns:
            Number of modifiers removed
        """
        with self._lock:
            instances = dict(self._global_instances)

        total = 0
        for attribute_id, instance in instances.items():
            removed = instance.purge_temporary_modifiers()
            if not removed:
                continue
            total += len(removed)
            for key in removed:
                self.expiry.cancel(ExpiryHandle(attribute_id, key))
            self._notify_all(attribute_id)
        return total

    def expire_modifiers(self, now: float | None = None) -> list[ExpiryHandle]:
        """
        Remove every timed modifier whose duration has elapsed.

        Args:
            now: Time to compare deadlines against; defaults to the scheduler clock

        Returns:
            Handles of the modifiers that were removed
        """
        expired: list[ExpiryHandle] = []
        for handle in self.expiry.pop_due(now):
            if handle.entity_id is None:
                removed = self.remove_global_modifier(handle.attribute_id, handle.key)
            else:
                removed = self.remove_entity_modifier(
                    handle.entity_id, handle.attribute_id, handle.key
                )
            if removed:
                expired.append(handle)

        if expired:
            logger.info("modifiers_expired", count=len(expired))
        return expired

    def _track_expiry(self, handle: ExpiryHandle, entry: ModifierEntry) -> None:
        if entry.duration_seconds is not None:
            self.expiry.schedule(handle, entry.duration_seconds)
        else:
            self.expiry.cancel(handle)

    # ------------------------------------------------------------------
    # Caps
    # ------------------------------------------------------------------

    def set_entity_cap_override(self, entity_id: UUID, attribute_id: str, cap: float) -> None:
        """
        Give one entity its own maximum for an attribute.

        The cap is bounded below by the definition's global minimum. The
        definition is replaced with one whose CapConfig carries the override.

        Raises:
            UnknownAttributeError: If the attribute is not registered
        """
        definition = self._require_definition(attribute_id)
        instance = self.get_or_create_entity_instance(entity_id, definition.id)
        if not instance.cap_override_key:
            instance.cap_override_key = str(entity_id)

        self.set_cap_override(definition.id, instance.cap_override_key, cap)
        self._notify_entity(entity_id, definition.id)

    def set_cap_override(self, attribute_id: str, override_key: str, cap: float) -> float:
        """
        Install an override maximum on a definition's CapConfig.

        Returns:
            The stored maximum (never below ``global_min``)

        Raises:
            UnknownAttributeError: If the attribute is not registered
            ConfigurationError: If ``override_key`` is blank
        """
        with self._lock:
            definition = self._require_definition(attribute_id)
            updated = definition.with_cap_config(
                definition.cap_config.with_override(override_key, cap)
            )
            self._definitions[definition.id] = updated

        stored = updated.cap_config.resolve_max(override_key)
        logger.info(
            "cap_override_set",
            attribute_id=definition.id,
            override_key=override_key.lower(),
            cap=stored,
        )
        return stored

    # ------------------------------------------------------------------
    # Refresh notification
    # ------------------------------------------------------------------

    def set_refresh_listener(self, listener: AttributeRefreshListener | None) -> None:
        self._listener = listener

    def refresh_all_for_entity(self, entity_id: UUID) -> None:
        """Notify the listener about every attribute of one entity."""
        for attribute_id in self.definition_ids():
            self._notify_entity(entity_id, attribute_id)

    def refresh_all(self) -> None:
        """Broadcast every attribute to the listener."""
        for attribute_id in self.definition_ids():
            self._notify_all(attribute_id)

    def _notify_entity(self, entity_id: UUID, attribute_id: str) -> None:
        listener = self._listener
        if listener is not None:
            listener.notify_entity(entity_id, attribute_id)

    def _notify_all(self, attribute_id: str) -> None:
        listener = self._listener
        if listener is not None:
            listener.notify_all(attribute_id)
