"""Batched refresh dispatch from the registry to live game state.

:class:`RefreshDispatcher` is an :class:`AttributeRefreshListener`. It queues
notifications and, on :meth:`flush` (once per host tick), computes each
queued pair and hands the result to an apply callback that writes the
native game attribute. Repeated notifications within one tick collapse.
"""

from collections.abc import Callable, Iterable
from uuid import UUID

import structlog

from attrstack.model.stages import AttributeValueStages
from attrstack.registry import AttributeRegistry

logger = structlog.get_logger(__name__)

ApplyCallback = Callable[[UUID, str, AttributeValueStages], None]


class RefreshDispatcher:
    """Queues refresh notifications and applies computed values on flush."""

    def __init__(
        self,
        registry: AttributeRegistry,
        apply: ApplyCallback,
        live_entities: Callable[[], Iterable[UUID]] = lambda: (),
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            registry: Registry used to compute refreshed values
            apply: Receives (entity_id, attribute_id, stages) for every refresh
            live_entities: Returns the entities a broadcast refresh reaches
        """
        self._registry = registry
        self._apply = apply
        self._live_entities = live_entities
        self._pending_entities: dict[UUID, set[str]] = {}
        self._pending_broadcasts: set[str] = set()

    def notify_entity(self, entity_id: UUID, attribute_id: str) -> None:
        if entity_id is None or attribute_id is None:
            return
        self._pending_entities.setdefault(entity_id, set()).add(attribute_id)

    def notify_all(self, attribute_id: str) -> None:
        if attribute_id is None:
            return
        self._pending_broadcasts.add(attribute_id)

    def forget_entity(self, entity_id: UUID) -> None:
        if self._pending_entities.pop(entity_id, None) is not None:
            logger.debug("refresh_dropped_for_purged_entity", entity_id=str(entity_id))

    @property
    def has_pending(self) -> bool:
        return bool(self._pending_entities or self._pending_broadcasts)

    def flush(self) -> int:
        """
        Compute and apply every queued refresh.

        Returns:
            Number of (entity, attribute) values applied
        """
        entity_snapshot = self._pending_entities
        broadcast_snapshot = self._pending_broadcasts
        self._pending_entities = {}
        self._pending_broadcasts = set()

        targets: dict[UUID, set[str]] = {
            entity_id: set(attributes) for entity_id, attributes in entity_snapshot.items()
        }
        if broadcast_snapshot:
            for entity_id in self._live_entities():
                targets.setdefault(entity_id, set()).update(broadcast_snapshot)

        applied = 0
        for entity_id, attributes in targets.items():
            for attribute_id in sorted(attributes):
                stages = self._registry.compute(attribute_id, entity_id)
                self._apply(entity_id, attribute_id, stages)
                applied += 1

        if applied:
            logger.debug(
                "refresh_flushed",
                applied=applied,
                entities=len(targets),
                broadcasts=len(broadcast_snapshot),
            )
        return applied
