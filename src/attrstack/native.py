"""Reconstruct engine-side baselines for dynamic attributes.

The host game exposes each native attribute as a base value plus a list of
named modifiers. Equipment and effects write there, and so does the bridge
that pushes attrstack results back. Those pushed modifiers carry the
``attrstack:`` name prefix and must be skipped here, otherwise every refresh
would feed attrstack's own contribution back into its input.
"""

from collections.abc import Callable
from enum import StrEnum
from uuid import UUID

import structlog
from pydantic import BaseModel, Field

from attrstack.config import get_settings

logger = structlog.get_logger(__name__)

OWN_MODIFIER_PREFIX = "attrstack:"


def own_modifier_prefix() -> str:
    """Name prefix of modifiers attrstack writes, from ``Settings.modifier_namespace``."""
    return f"{get_settings().modifier_namespace.lower()}:"


class NativeOperation(StrEnum):
    """Operations understood by the host engine's attribute system."""

    ADD_NUMBER = "add_number"
    ADD_SCALAR = "add_scalar"  # adds amount * base
    MULTIPLY_SCALAR_1 = "multiply_scalar_1"  # multiplies by (1 + amount)


class NativeModifier(BaseModel):
    """A modifier as reported by the host engine."""

    name: str = Field(default="", description="Modifier name, used to detect own entries")
    operation: NativeOperation = Field(..., description="Native operation")
    amount: float = Field(..., description="Native amount")

    def is_own(self, prefix: str = OWN_MODIFIER_PREFIX) -> bool:
        return self.name.lower().startswith(prefix)


class NativeAttribute(BaseModel):
    """Snapshot of one native attribute of one entity."""

    base_value: float = Field(..., description="Native base value")
    modifiers: list[NativeModifier] = Field(default_factory=list)


def resolve_native_value(
    attribute: NativeAttribute | None,
    fallback: float,
    own_prefix: str = OWN_MODIFIER_PREFIX,
) -> float:
    """
    Compute the native value while ignoring attrstack's own modifiers.

    Formula: ``(base + sum(add) + base * sum(scalar)) * prod(1 + mul)``.

    Args:
        attribute: Native snapshot, or None when the entity lacks the attribute
        fallback: Value returned when there is no snapshot
        own_prefix: Name prefix identifying modifiers attrstack wrote

    Returns:
        The externally-sourced value
    """
    if attribute is None:
        return fallback

    base = attribute.base_value
    additive = 0.0
    scalar = 0.0
    multiplier = 1.0
    for modifier in attribute.modifiers:
        if modifier.is_own(own_prefix):
            continue
        match modifier.operation:
            case NativeOperation.ADD_NUMBER:
                additive += modifier.amount
            case NativeOperation.ADD_SCALAR:
                scalar += modifier.amount
            case NativeOperation.MULTIPLY_SCALAR_1:
                multiplier *= 1 + modifier.amount

    return (base + additive + base * scalar) * multiplier


class NativeBaselineResolver:
    """
    Adapts a native snapshot lookup into the ``resolver(entity_id) -> float`` shape.

    Example:
        registry.register_baseline_resolver(
            "armor",
            NativeBaselineResolver(lambda eid: bridge.snapshot(eid, "armor"), fallback=0.0),
        )
    """

    def __init__(
        self,
        lookup: Callable[[UUID], NativeAttribute | None],
        fallback: float = 0.0,
        own_prefix: str | None = None,
    ) -> None:
        self._lookup = lookup
        self.fallback = fallback
        self.own_prefix = own_prefix or own_modifier_prefix()

    def __call__(self, entity_id: UUID) -> float:
        snapshot = self._lookup(entity_id)
        if snapshot is None:
            logger.debug("native_attribute_missing", entity_id=str(entity_id))
        return resolve_native_value(snapshot, self.fallback, self.own_prefix)
