"""Deadlines for temporary modifiers that carry a duration.

The scheduler only tracks deadlines; :meth:`AttributeRegistry.expire_modifiers`
pops the due handles and removes the modifiers so refresh notifications fire.
The host calls it once per tick.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from uuid import UUID

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ExpiryHandle:
    """Identifies one scheduled modifier. ``entity_id`` is None for global scope."""

    attribute_id: str
    key: str
    entity_id: UUID | None = None

    @property
    def is_global(self) -> bool:
        return self.entity_id is None


class ModifierExpiryScheduler:
    """Tracks when timed modifiers should be removed."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        """
        Initialize the scheduler.

        Args:
            clock: Returns the current time in seconds; injectable for tests
        """
        self._clock = clock
        self._deadlines: dict[ExpiryHandle, float] = {}

    def schedule(self, handle: ExpiryHandle, duration_seconds: float) -> float:
        """
        Schedule (or reschedule) a modifier for removal.

        Args:
            handle: The modifier to expire
            duration_seconds: Lifetime from now

        Returns:
            The absolute deadline
        """
        deadline = self._clock() + duration_seconds
        self._deadlines[handle] = deadline
        logger.debug(
            "modifier_expiry_scheduled",
            attribute_id=handle.attribute_id,
            key=handle.key,
            entity_id=str(handle.entity_id) if handle.entity_id else None,
            deadline=deadline,
        )
        return deadline

    def cancel(self, handle: ExpiryHandle) -> bool:
        """Forget a scheduled handle. Returns True if it was pending."""
        return self._deadlines.pop(handle, None) is not None

    def cancel_entity(self, entity_id: UUID) -> int:
        """Forget every handle belonging to an entity. Returns how many were dropped."""
        return self.cancel_matching(lambda handle: handle.entity_id == entity_id)

    def cancel_matching(self, predicate: Callable[[ExpiryHandle], bool]) -> int:
        """Forget every handle the predicate selects. Returns how many were dropped."""
        doomed = [handle for handle in self._deadlines if predicate(handle)]
        for handle in doomed:
            del self._deadlines[handle]
        return len(doomed)

    def deadline(self, handle: ExpiryHandle) -> float | None:
        return self._deadlines.get(handle)

    def pending(self) -> dict[ExpiryHandle, float]:
        """Copy of every pending handle and its deadline."""
        return dict(self._deadlines)

    def pop_due(self, now: float | None = None) -> list[ExpiryHandle]:
        """
        Remove and return every handle whose deadline has passed.

        Args:
            now: Time to compare against; defaults to the scheduler clock

        Returns:
            Due handles, earliest deadline first
        """
        current = self._clock() if now is None else now
        due = sorted(
            (item for item in self._deadlines.items() if item[1] <= current),
            key=lambda item: item[1],
        )
        for handle, _ in due:
            del self._deadlines[handle]
        return [handle for handle, _ in due]

    def __len__(self) -> int:
        return len(self._deadlines)
