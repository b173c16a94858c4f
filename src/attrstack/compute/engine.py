"""Six-stage attribute computation engine.

Stages, in order:

1. ``raw_default``: capped default baseline (entity, else global, else definition)
2. ``default_permanent``: permanent default-layer modifiers
3. ``default_final``: temporary default-layer modifiers
4. static drift synchronization of the current baseline (non-dynamic only)
5. ``raw_current``: stored current baseline, or the external value plus the
   scope's own offset for dynamic attributes
6. ``current_permanent`` / ``current_final``: same pattern on the current layer

Modifiers from the global and the entity instance contribute together to every
stage. Multiplicative amounts are literal factors. Within a layer every
additive entry is scaled by every multiplier it is eligible for exactly once:
the permanent stage applies the permanent multipliers, the temporary stage
applies the temporary multipliers to the running value and the permanent plus
temporary multipliers to its own additive entries.
"""

import math
from collections.abc import Callable, Iterable, Sequence
from typing import assert_never
from uuid import UUID

import structlog

from attrstack.model.definition import AttributeDefinition
from attrstack.model.instance import AttributeInstance, Layer
from attrstack.model.modifiers import ModifierEntry, ModifierOperation
from attrstack.model.stages import AttributeValueStages

logger = structlog.get_logger(__name__)

# Returns the live engine-side value for an entity, excluding attrstack's own
# contributions.
ExternalValueProvider = Callable[[UUID], float]

DEFAULT_DRIFT_EPSILON = 1e-9


def partition_modifiers(
    entries: Iterable[ModifierEntry],
) -> tuple[list[ModifierEntry], list[ModifierEntry]]:
    """
    Split entries into additive and multiplicative lists, preserving order.

    Args:
        entries: Modifier entries of one stage

    Returns:
        Tuple of (additives, multipliers)
    """
    additives: list[ModifierEntry] = []
    multipliers: list[ModifierEntry] = []
    for entry in entries:
        match entry.operation:
            case ModifierOperation.ADD:
                additives.append(entry)
            case ModifierOperation.MULTIPLY:
                multipliers.append(entry)
            case _:
                assert_never(entry.operation)
    return additives, multipliers


class ComputationEngine:
    """
    Stateless orchestrator turning a definition and its instances into stages.

    The engine keeps no reference to the instances it is given. The only
    mutation it performs is stage 4, which moves the target instance's
    current baseline and drift marker. Drift is tracked against the default
    final clamped to the global range, so a per-entity override maximum never
    rewrites the stored baseline.
    """

    def __init__(self, drift_epsilon: float = DEFAULT_DRIFT_EPSILON) -> None:
        self.drift_epsilon = drift_epsilon

    def compute(
        self,
        definition: AttributeDefinition,
        global_instance: AttributeInstance | None = None,
        entity_instance: AttributeInstance | None = None,
        external_provider: ExternalValueProvider | None = None,
        entity_id: UUID | None = None,
    ) -> AttributeValueStages:
        """
        Resolve the six stage values for one attribute.

        Args:
            definition: The attribute definition
            global_instance: Shared instance, if any
            entity_instance: Per-entity instance, if any
            external_provider: Live value source for dynamic attributes
            entity_id: Entity the provider is queried for

        Returns:
            AttributeValueStages with every stage clamped to the resolved cap
        """
        scopes = [instance for instance in (global_instance, entity_instance) if instance]
        preferred = entity_instance or global_instance
        cap_key = preferred.cap_override_key if preferred else None
        caps = definition.cap_config

        # Stage 1
        base_default = (
            preferred.default_base_value if preferred else definition.default_base_value
        )
        raw_default = caps.clamp(base_default, cap_key)

        # Stages 2-3
        default_permanent, default_final = self._apply_layer(
            definition, Layer.DEFAULT, raw_default, scopes, cap_key
        )

        # Stage 4
        if not definition.dynamic and preferred is not None:
            drift_reference = default_final
            if cap_key:
                # Override maxima shape the returned stages only
                _, drift_reference = self._apply_layer(
                    definition, Layer.DEFAULT, caps.clamp(base_default, None), scopes, None
                )
            self._synchronize_current_base(definition, preferred, drift_reference)

        # Stage 5
        raw_current = self._resolve_raw_current(
            definition, preferred, external_provider, entity_id, cap_key
        )

        # Stage 6
        current_permanent, current_final = self._apply_layer(
            definition, Layer.CURRENT, raw_current, scopes, cap_key
        )

        return AttributeValueStages(
            raw_default=raw_default,
            default_permanent=default_permanent,
            default_final=default_final,
            raw_current=raw_current,
            current_permanent=current_permanent,
            current_final=current_final,
        )

    def _apply_layer(
        self,
        definition: AttributeDefinition,
        layer: Layer,
        start: float,
        scopes: Sequence[AttributeInstance],
        cap_key: str | None,
    ) -> tuple[float, float]:
        permanent_adds, permanent_muls = partition_modifiers(
            self._collect(scopes, layer, temporary=False)
        )
        temporary_adds, temporary_muls = partition_modifiers(
            self._collect(scopes, layer, temporary=True)
        )

        permanent = self.apply(definition, start, permanent_adds, permanent_muls, cap_key)
        final = self.apply(
            definition,
            permanent,
            temporary_adds,
            temporary_muls,
            cap_key,
            carried_multipliers=permanent_muls,
        )
        return permanent, final

    @staticmethod
    def _collect(
        scopes: Sequence[AttributeInstance], layer: Layer, temporary: bool
    ) -> list[ModifierEntry]:
        entries: list[ModifierEntry] = []
        for instance in scopes:
            entries.extend(instance.additives(layer, temporary))
            entries.extend(instance.multipliers(layer, temporary))
        return entries

    def apply(
        self,
        definition: AttributeDefinition,
        start: float,
        additives: Sequence[ModifierEntry],
        multipliers: Sequence[ModifierEntry],
        cap_key: str | None,
        carried_multipliers: Sequence[ModifierEntry] = (),
    ) -> float:
        """
        Apply one stage of modifiers to a running value.

        ``start`` is scaled by the product of the eligible stage multipliers.
        Each additive is scaled by the eligible stage and carried multipliers
        it accepts (all of them, or only its explicit keys) and then added.

        Args:
            definition: Supplies multiplier applicability and caps
            start: Value entering the stage
            additives: Additive entries of the stage
            multipliers: Multiplicative entries of the stage
            cap_key: Cap override key for the final clamp
            carried_multipliers: Multipliers already folded into ``start`` by an
                earlier stage of the same layer

        Returns:
            The clamped stage value
        """
        policy = definition.multiplier_applicability
        eligible = [entry for entry in multipliers if policy.can_apply(entry.key)]
        carried = [entry for entry in carried_multipliers if policy.can_apply(entry.key)]

        value = start * math.prod(entry.amount for entry in eligible)
        for additive in additives:
            factor = math.prod(
                entry.amount
                for entry in (*carried, *eligible)
                if additive.accepts_multiplier(entry.key)
            )
            value += additive.amount * factor

        return definition.cap_config.clamp(value, cap_key)

    def _synchronize_current_base(
        self,
        definition: AttributeDefinition,
        target: AttributeInstance,
        default_final: float,
    ) -> None:
        if target.last_known_default_final is None:
            target.last_known_default_final = default_final
            return

        delta = default_final - target.last_known_default_final
        if abs(delta) <= self.drift_epsilon:
            return

        previous = target.current_base_value
        target.current_base_value = definition.cap_config.clamp(previous + delta, None)
        target.last_known_default_final = default_final
        logger.debug(
            "attribute_drift_applied",
            attribute_id=definition.id,
            delta=delta,
            old_current_base=previous,
            new_current_base=target.current_base_value,
        )

    @staticmethod
    def _resolve_raw_current(
        definition: AttributeDefinition,
        preferred: AttributeInstance | None,
        external_provider: ExternalValueProvider | None,
        entity_id: UUID | None,
        cap_key: str | None,
    ) -> float:
        caps = definition.cap_config
        if not definition.dynamic:
            stored = (
                preferred.current_base_value if preferred else definition.default_current_value
            )
            return caps.clamp(stored, cap_key)

        if external_provider is None or entity_id is None:
            external = definition.default_current_value
        else:
            external = external_provider(entity_id)

        if preferred is not None:
            external += preferred.current_base_value - definition.default_current_value
        return caps.clamp(external, cap_key)
