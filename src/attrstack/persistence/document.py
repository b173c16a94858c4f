"""Format-agnostic persisted document for attribute state.

Layout (keys are the on-disk names)::

    attributes:
      <attribute-id>:
        default-base: 20.0
        current-base: 26.4
        default-final-baseline: 26.4
        modifiers:
          <owner.name>:
            operation: ADD
            amount: 4.0
            temporary: false
            applies-to-default: true
            applies-to-current: false
            uses-explicit-multiplier-keys: false
            multiplier-keys: []
            duration-seconds: 30.0     # temporary entries only, optional
    caps:                               # global document only
      <attribute-id>:
        <override-key>: 5.0

Loading skips, with a warning, any attribute id that is not registered and
any modifier that fails validation; the rest of the document still loads.
"""

from collections.abc import Mapping
from typing import Any
from uuid import UUID

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from attrstack.errors import AttrStackError
from attrstack.model.instance import AttributeInstance
from attrstack.model.modifiers import ModifierEntry, ModifierOperation
from attrstack.registry import AttributeRegistry

logger = structlog.get_logger(__name__)


class ModifierRecord(BaseModel):
    """Persisted form of a :class:`ModifierEntry`."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    operation: str = Field(default="ADD")
    amount: float = Field(default=0.0)
    temporary: bool = Field(default=False)
    applies_to_default: bool = Field(default=False, alias="applies-to-default")
    applies_to_current: bool | None = Field(default=None, alias="applies-to-current")
    uses_explicit_multiplier_keys: bool = Field(
        default=False, alias="uses-explicit-multiplier-keys"
    )
    multiplier_keys: list[str] = Field(default_factory=list, alias="multiplier-keys")
    duration_seconds: float | None = Field(default=None, alias="duration-seconds")

    @classmethod
    def from_entry(cls, entry: ModifierEntry) -> "ModifierRecord":
        return cls(
            operation=entry.operation.name,
            amount=entry.amount,
            temporary=entry.temporary,
            applies_to_default=entry.applies_to_default,
            applies_to_current=entry.applies_to_current,
            uses_explicit_multiplier_keys=entry.uses_explicit_multiplier_keys,
            multiplier_keys=list(entry.multiplier_keys),
            duration_seconds=entry.duration_seconds,
        )

    def to_entry(self, key: str) -> ModifierEntry:
        """
        Build the modifier entry.

        A missing ``applies-to-current`` flag defaults to the opposite of
        ``applies-to-default``.

        Raises:
            ModifierValidationError: If the key, operation or duration is invalid
        """
        applies_to_current = (
            not self.applies_to_default
            if self.applies_to_current is None
            else self.applies_to_current
        )
        return ModifierEntry(
            key=key,
            operation=ModifierOperation.parse(self.operation),
            amount=self.amount,
            temporary=self.temporary,
            applies_to_default=self.applies_to_default,
            applies_to_current=applies_to_current,
            uses_explicit_multiplier_keys=self.uses_explicit_multiplier_keys,
            multiplier_keys=tuple(self.multiplier_keys),
            duration_seconds=self.duration_seconds if self.temporary else None,
        )

    def dump(self) -> dict[str, Any]:
        data = self.model_dump(by_alias=True)
        if data["duration-seconds"] is None:
            del data["duration-seconds"]
        return data


class AttributeRecord(BaseModel):
    """Persisted baselines of one instance; modifiers are validated one by one."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    default_base: float | None = Field(default=None, alias="default-base")
    current_base: float | None = Field(default=None, alias="current-base")
    default_final_baseline: float | None = Field(default=None, alias="default-final-baseline")
    modifiers: dict[str, Any] = Field(default_factory=dict)


def encode_instance(instance: AttributeInstance) -> dict[str, Any]:
    """Serialize one instance into the document layout."""
    return {
        "default-base": instance.default_base_value,
        "current-base": instance.current_base_value,
        "default-final-baseline": instance.last_known_default_final,
        "modifiers": {
            key: ModifierRecord.from_entry(entry).dump()
            for key, entry in instance.modifiers().items()
        },
    }


def encode_instances(instances: Mapping[str, AttributeInstance]) -> dict[str, Any]:
    return {attribute_id: encode_instance(instance) for attribute_id, instance in instances.items()}


def build_global_document(registry: AttributeRegistry) -> dict[str, Any]:
    """Document holding every global instance plus configured cap overrides."""
    caps = {
        definition.id: dict(definition.cap_config.override_max_values)
        for definition in registry.definitions()
        if definition.cap_config.override_max_values
    }
    return {
        "attributes": encode_instances(registry.global_instances()),
        "caps": caps,
    }


def build_entity_document(registry: AttributeRegistry, entity_id: UUID) -> dict[str, Any]:
    """Document holding every instance of one entity."""
    return {"attributes": encode_instances(registry.entity_instances(entity_id))}


def load_global_document(registry: AttributeRegistry, document: Mapping[str, Any]) -> list[str]:
    """
    Install cap overrides and global instances from a document.

    Returns:
        Ids of the attributes that were loaded
    """
    load_cap_overrides(registry, document.get("caps") or {})
    return decode_into(registry, document.get("attributes") or {}, entity_id=None)


def load_entity_document(
    registry: AttributeRegistry, document: Mapping[str, Any], entity_id: UUID
) -> list[str]:
    """Install one entity's instances from a document."""
    return decode_into(registry, document.get("attributes") or {}, entity_id=entity_id)


def load_cap_overrides(registry: AttributeRegistry, caps: Mapping[str, Any]) -> int:
    """
    Apply ``caps`` overrides to registered definitions.

    Returns:
        Number of overrides installed
    """
    installed = 0
    for raw_id, overrides in caps.items():
        attribute_id = str(raw_id)
        if registry.get_definition(attribute_id) is None:
            logger.warning("persisted_cap_unknown_attribute", attribute_id=attribute_id)
            continue
        if not isinstance(overrides, Mapping):
            logger.warning("persisted_cap_malformed", attribute_id=attribute_id)
            continue
        for override_key, value in overrides.items():
            try:
                registry.set_cap_override(attribute_id, str(override_key), float(value))
                installed += 1
            except (AttrStackError, TypeError, ValueError) as e:
                logger.warning(
                    "persisted_cap_skipped",
                    attribute_id=attribute_id,
                    override_key=override_key,
                    error=str(e),
                )
    return installed


def decode_into(
    registry: AttributeRegistry,
    attributes: Mapping[str, Any],
    entity_id: UUID | None,
) -> list[str]:
    """
    Install persisted instances into fresh registry instances.

    Baselines are re-clamped with the instance's cap override key; the drift
    marker only to the global range. Modifiers go through the registry so key
    validation, expiry tracking and refresh notification apply as for live
    mutations.

    Args:
        registry: Target registry
        attributes: ``attributes`` section of a document
        entity_id: Owning entity, or None for the global scope

    Returns:
        Ids of the attributes that were loaded
    """
    loaded: list[str] = []
    for raw_id, raw in attributes.items():
        attribute_id = str(raw_id)
        definition = registry.get_definition(attribute_id)
        if definition is None:
            logger.warning(
                "persisted_attribute_unknown",
                attribute_id=attribute_id,
                entity_id=str(entity_id) if entity_id else None,
            )
            continue

        try:
            record = AttributeRecord.model_validate(raw or {})
        except ValidationError as e:
            logger.warning(
                "persisted_attribute_malformed",
                attribute_id=attribute_id,
                entity_id=str(entity_id) if entity_id else None,
                error=str(e),
            )
            continue

        instance = (
            registry.get_or_create_global_instance(definition.id)
            if entity_id is None
            else registry.get_or_create_entity_instance(entity_id, definition.id)
        )
        for stale_key in instance.modifiers():
            instance.remove_modifier(stale_key)
        registry.expiry.cancel_matching(
            lambda handle: handle.attribute_id == definition.id and handle.entity_id == entity_id
        )

        caps = definition.cap_config
        cap_key = instance.cap_override_key

        default_base = (
            definition.default_base_value if record.default_base is None else record.default_base
        )
        current_base = (
            definition.default_current_value
            if record.current_base is None
            else record.current_base
        )
        instance.default_base_value = caps.clamp(default_base, cap_key)
        instance.current_base_value = caps.clamp(current_base, cap_key)
        instance.last_known_default_final = (
            None
            if record.default_final_baseline is None
            else caps.clamp(record.default_final_baseline)
        )

        for key, modifier_raw in record.modifiers.items():
            _load_modifier(registry, definition.id, str(key), modifier_raw, entity_id)

        loaded.append(definition.id)

    logger.info(
        "persisted_attributes_loaded",
        entity_id=str(entity_id) if entity_id else None,
        count=len(loaded),
    )
    return loaded


def _load_modifier(
    registry: AttributeRegistry,
    attribute_id: str,
    key: str,
    raw: Any,
    entity_id: UUID | None,
) -> None:
    try:
        entry = ModifierRecord.model_validate(raw or {}).to_entry(key)
        if entity_id is None:
            registry.set_global_modifier(attribute_id, entry)
        else:
            registry.set_entity_modifier(entity_id, attribute_id, entry)
    except (ValidationError, AttrStackError) as e:
        logger.warning(
            "persisted_modifier_skipped",
            attribute_id=attribute_id,
            key=key,
            entity_id=str(entity_id) if entity_id else None,
            error=str(e),
        )
