"""Mutable attribute state for one scope (global or a single entity).

An instance holds two baselines:

- **default**: the configured base, the reference point for every entity.
- **current**: the live base for this scope. For static attributes the
  engine shifts it by every change of the default-final value so manual
  per-entity adjustments survive configuration changes.

Modifiers are kept in a flat key -> entry map plus eight buckets
(``{default, current} x {permanent, temporary} x {additive, multiplicative}``).
An entry lands in zero, one or two buckets depending on its layer flags.

Instances are not synchronized. Mutating an instance while another thread
computes from it may expose a half-updated bucket set; callers serialize
mutation and computation per instance (normally by running both on the
simulation thread).
"""

from enum import StrEnum
from typing import NamedTuple

from attrstack.model.modifiers import ModifierEntry, ModifierOperation


class Layer(StrEnum):
    """Computation layer a bucket feeds."""

    DEFAULT = "default"
    CURRENT = "current"


class BucketKey(NamedTuple):
    layer: Layer
    temporary: bool
    operation: ModifierOperation


ALL_BUCKETS: tuple[BucketKey, ...] = tuple(
    BucketKey(layer, temporary, operation)
    for layer in Layer
    for temporary in (False, True)
    for operation in ModifierOperation
)


class AttributeInstance:
    """
    Baselines and modifier buckets for one attribute in one scope.

    Attributes:
        attribute_id: Lower-cased id of the owning definition
        default_base_value: Default-layer baseline
        current_base_value: Current-layer baseline (stored, never clamped by reads)
        cap_override_key: Key selecting an override maximum, usually the entity id
        last_known_default_final: Default-final value the current baseline was
            last synchronized against; None until first computed
    """

    def __init__(
        self,
        attribute_id: str,
        default_base_value: float,
        current_base_value: float,
        cap_override_key: str | None = None,
        last_known_default_final: float | None = None,
    ) -> None:
        self.attribute_id = attribute_id.lower()
        self.default_base_value = float(default_base_value)
        self.current_base_value = float(current_base_value)
        self.cap_override_key = cap_override_key
        self.last_known_default_final = last_known_default_final
        self._modifiers: dict[str, ModifierEntry] = {}
        self._buckets: dict[BucketKey, dict[str, ModifierEntry]] = {
            bucket: {} for bucket in ALL_BUCKETS
        }

    def add_modifier(self, entry: ModifierEntry) -> ModifierEntry | None:
        """
        Add a modifier, replacing any entry with the same key.

        Args:
            entry: The modifier to install

        Returns:
            The entry that was replaced, if any
        """
        previous = self._modifiers.get(entry.key)
        if previous is not None:
            self._discard(entry.key)

        self._modifiers[entry.key] = entry
        for bucket in self._target_buckets(entry):
            self._buckets[bucket][entry.key] = entry
        return previous

    def remove_modifier(self, key: str | None) -> ModifierEntry | None:
        """
        Remove a modifier from the flat map and every bucket.

        Args:
            key: Modifier key (case-insensitive); None is ignored

        Returns:
            The removed entry, or None if nothing matched
        """
        if key is None:
            return None
        normalized = key.lower()
        if normalized not in self._modifiers:
            return None
        return self._discard(normalized)

    def purge_temporary_modifiers(self) -> list[str]:
        """
        Drop every temporary modifier; permanent entries are untouched.

        Returns:
            Keys of the removed entries
        """
        removed = [key for key, entry in self._modifiers.items() if entry.temporary]
        for key in removed:
            del self._modifiers[key]
        for bucket, entries in self._buckets.items():
            if bucket.temporary:
                entries.clear()
        return removed

    def has_modifier(self, key: str) -> bool:
        return key.lower() in self._modifiers

    def get_modifier(self, key: str) -> ModifierEntry | None:
        return self._modifiers.get(key.lower())

    def modifiers(self) -> dict[str, ModifierEntry]:
        """Copy of the flat key -> entry map, in insertion order."""
        return dict(self._modifiers)

    def bucket(
        self, layer: Layer, temporary: bool, operation: ModifierOperation
    ) -> dict[str, ModifierEntry]:
        """Copy of one of the eight modifier buckets."""
        return dict(self._buckets[BucketKey(Layer(layer), temporary, operation)])

    def additives(self, layer: Layer, temporary: bool) -> list[ModifierEntry]:
        return list(self._buckets[BucketKey(layer, temporary, ModifierOperation.ADD)].values())

    def multipliers(self, layer: Layer, temporary: bool) -> list[ModifierEntry]:
        return list(
            self._buckets[BucketKey(layer, temporary, ModifierOperation.MULTIPLY)].values()
        )

    def _target_buckets(self, entry: ModifierEntry) -> list[BucketKey]:
        layers = []
        if entry.applies_to_default:
            layers.append(Layer.DEFAULT)
        if entry.applies_to_current:
            layers.append(Layer.CURRENT)
        return [BucketKey(layer, entry.temporary, entry.operation) for layer in layers]

    def _discard(self, key: str) -> ModifierEntry | None:
        removed = self._modifiers.pop(key, None)
        for entries in self._buckets.values():
            entries.pop(key, None)
        return removed

    def __repr__(self) -> str:
        return (
            f"AttributeInstance(attribute_id={self.attribute_id!r}, "
            f"default_base={self.default_base_value}, current_base={self.current_base_value}, "
            f"modifiers={len(self._modifiers)})"
        )
