"""Modifier entries: single named contributions to an attribute.

A modifier targets the default layer, the current layer, both, or neither,
and is either permanent or temporary. Additive entries are scaled by the
multipliers they are eligible for; multiplicative entries contribute their
amount as a literal factor (``2.0`` doubles, ``1.1`` is +10%).
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import StrEnum

from attrstack.errors import ModifierValidationError

# Any key an instance can hold.
ENTRY_KEY_PATTERN = re.compile(r"[a-z0-9_.-]+", re.IGNORECASE)

# Keys accepted at the registry boundary: "<owner>.<name>".
NAMESPACED_KEY_PATTERN = re.compile(r"[a-z0-9_-]+\.[a-z0-9_.-]+", re.IGNORECASE)


class ModifierOperation(StrEnum):
    """Supported modifier operations."""

    ADD = "add"
    MULTIPLY = "multiply"

    @classmethod
    def parse(cls, value: str) -> "ModifierOperation":
        """
        Parse an operation name case-insensitively.

        Raises:
            ModifierValidationError: If the name is not a known operation
        """
        try:
            return cls(value.strip().lower())
        except (AttributeError, ValueError):
            raise ModifierValidationError(f"Unknown modifier operation: {value!r}")


def is_namespaced_key(key: str) -> bool:
    """Check a key against the ``<owner>.<name>`` format."""
    return bool(key) and NAMESPACED_KEY_PATTERN.fullmatch(key) is not None


def namespaced_key(owner: str, name: str) -> str:
    """
    Build a validated ``<owner>.<name>`` key.

    Raises:
        ModifierValidationError: If the combined key is malformed
    """
    key = f"{owner}.{name}".lower()
    if not is_namespaced_key(key):
        raise ModifierValidationError(f"Modifier keys must follow <owner>.<name> format: {key!r}")
    return key


def _normalize_multiplier_keys(keys: Iterable[str] | None) -> tuple[str, ...]:
    if not keys:
        return ()
    seen: dict[str, None] = {}
    for key in keys:
        if key and key.strip():
            seen.setdefault(key.strip().lower(), None)
    return tuple(seen)


@dataclass(frozen=True)
class ModifierEntry:
    """
    A single keyed contribution to an attribute.

    Attributes:
        key: Lower-cased modifier key, unique within one scope and attribute
        operation: ADD or MULTIPLY
        amount: Additive amount or literal multiplicative factor
        temporary: Temporary entries are dropped by purges and run in the
            temporary stages
        applies_to_default: Participates in the default-layer stages
        applies_to_current: Participates in the current-layer stages
        uses_explicit_multiplier_keys: When True an additive entry is scaled
            only by the multipliers listed in ``multiplier_keys``
        multiplier_keys: Ordered, lower-cased multiplier keys
        duration_seconds: Optional lifetime for temporary entries
    """

    key: str
    operation: ModifierOperation
    amount: float
    temporary: bool = False
    applies_to_default: bool = False
    applies_to_current: bool = True
    uses_explicit_multiplier_keys: bool = False
    multiplier_keys: tuple[str, ...] = field(default_factory=tuple)
    duration_seconds: float | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.key, str) or ENTRY_KEY_PATTERN.fullmatch(self.key) is None:
            raise ModifierValidationError(
                f"Modifier keys must match {ENTRY_KEY_PATTERN.pattern}: {self.key!r}"
            )
        object.__setattr__(self, "key", self.key.lower())
        if not isinstance(self.operation, ModifierOperation):
            object.__setattr__(self, "operation", ModifierOperation.parse(self.operation))
        object.__setattr__(self, "amount", float(self.amount))
        object.__setattr__(
            self, "multiplier_keys", _normalize_multiplier_keys(self.multiplier_keys)
        )

        if self.duration_seconds is not None:
            if not self.temporary:
                raise ModifierValidationError("Duration may only be set for temporary modifiers")
            if self.duration_seconds <= 0:
                raise ModifierValidationError("Duration must be positive when specified")

    @property
    def permanent(self) -> bool:
        """True when the entry survives temporary purges."""
        return not self.temporary

    @property
    def is_additive(self) -> bool:
        return self.operation is ModifierOperation.ADD

    @property
    def is_multiplicative(self) -> bool:
        return self.operation is ModifierOperation.MULTIPLY

    def accepts_multiplier(self, multiplier_key: str) -> bool:
        """
        Check whether this (additive) entry may be scaled by a multiplier.

        Args:
            multiplier_key: Key of the multiplicative entry

        Returns:
            True if the entry scales by all multipliers, or the key is in its
            explicit multiplier set
        """
        if not self.uses_explicit_multiplier_keys:
            return True
        return multiplier_key.lower() in self.multiplier_keys
