"""Tests for the persisted attribute document."""

import pytest

from attrstack.errors import ModifierValidationError
from attrstack.model import CapConfig, ModifierOperation
from attrstack.persistence import (
    ModifierRecord,
    build_entity_document,
    build_global_document,
    decode_into,
    encode_instance,
    load_entity_document,
    load_global_document,
)
from conftest import PLAYER_ID, add, make_definition, mul


@pytest.fixture
def definitions(registry):
    registry.register_definition(
        make_definition("max_health", default_base=20.0, cap=CapConfig(0.0, 100.0))
    )
    registry.register_definition(make_definition("armor", dynamic=True, default_base=0.0))


class TestModifierRecord:
    """Tests for the modifier record."""

    def test_dump_uses_hyphenated_keys(self):
        """Records dump with on-disk names and the enum name as operation."""
        entry = mul("potion.x", 1.2, temporary=True, applies_to_default=True)

        assert ModifierRecord.from_entry(entry).dump() == {
            "operation": "MULTIPLY",
            "amount": 1.2,
            "temporary": True,
            "applies-to-default": True,
            "applies-to-current": True,
            "uses-explicit-multiplier-keys": False,
            "multiplier-keys": [],
        }

    def test_duration_dumped_when_set(self):
        """Timed entries keep their duration."""
        entry = add("potion.x", 1.0, temporary=True, duration_seconds=30.0)
        assert ModifierRecord.from_entry(entry).dump()["duration-seconds"] == 30.0

    def test_missing_current_flag_defaults_to_opposite_of_default(self):
        """Older records without applies-to-current infer it."""
        default_only = ModifierRecord.model_validate(
            {"operation": "ADD", "amount": 1.0, "applies-to-default": True}
        ).to_entry("a.b")
        current_only = ModifierRecord.model_validate({"amount": 1.0}).to_entry("a.c")

        assert (default_only.applies_to_default, default_only.applies_to_current) == (True, False)
        assert (current_only.applies_to_default, current_only.applies_to_current) == (False, True)

    def test_operation_parsed_case_insensitively(self):
        """Lower-case operation names load."""
        entry = ModifierRecord.model_validate({"operation": "multiply"}).to_entry("a.b")
        assert entry.operation is ModifierOperation.MULTIPLY

    def test_duration_dropped_for_permanent(self):
        """A stray duration on a permanent record is ignored."""
        entry = ModifierRecord.model_validate({"duration-seconds": 5.0}).to_entry("a.b")
        assert entry.duration_seconds is None

    def test_bad_operation(self):
        """An unknown operation fails entry construction."""
        with pytest.raises(ModifierValidationError):
            ModifierRecord.model_validate({"operation": "divide"}).to_entry("a.b")


class TestEncode:
    """Tests for building documents from registry state."""

    def test_encode_instance(self, registry, definitions):
        """Instances encode baselines, the drift marker and modifiers."""
        registry.set_entity_modifier(PLAYER_ID, "max_health", add("gear.ring", 2.0))
        registry.compute("max_health", PLAYER_ID)

        encoded = encode_instance(registry.entity_instances(PLAYER_ID)["max_health"])

        assert encoded["default-base"] == 20.0
        assert encoded["current-base"] == 20.0
        assert encoded["default-final-baseline"] == 20.0
        assert list(encoded["modifiers"]) == ["gear.ring"]

    def test_global_document_has_caps(self, registry, definitions):
        """The global document carries cap overrides."""
        registry.set_cap_override("max_health", "Hero", 50.0)

        document = build_global_document(registry)

        assert set(document["attributes"]) == {"max_health", "armor"}
        assert document["caps"] == {"max_health": {"hero": 50.0}}

    def test_entity_document(self, registry, definitions):
        """Entity documents only list that entity's instances."""
        registry.set_entity_modifier(PLAYER_ID, "armor", add("gear.plate", 2.0))
        document = build_entity_document(registry, PLAYER_ID)
        assert list(document["attributes"]) == ["armor"]


class TestDecode:
    """Tests for installing documents into a registry."""

    def test_entity_round_trip_preserves_stages(self, registry, definitions):
        """Saving and loading an entity reproduces its computed stages."""
        registry.set_global_modifier(
            "max_health",
            add("event.global", 4.0, applies_to_default=True, applies_to_current=False),
        )
        registry.set_entity_modifier(PLAYER_ID, "max_health", mul("setbonus.plate", 1.05))
        before = registry.compute("max_health", PLAYER_ID)
        document = build_entity_document(registry, PLAYER_ID)

        registry.purge_entity(PLAYER_ID)
        load_entity_document(registry, document, PLAYER_ID)

        assert registry.compute("max_health", PLAYER_ID).as_tuple() == pytest.approx(
            before.as_tuple()
        )

    def test_unknown_attribute_skipped(self, registry, definitions):
        """Attributes that are not registered are skipped, the rest load."""
        loaded = decode_into(
            registry,
            {"ghost": {"default-base": 1.0}, "armor": {"current-base": 3.0}},
            entity_id=PLAYER_ID,
        )

        assert loaded == ["armor"]
        assert registry.entity_instances(PLAYER_ID)["armor"].current_base_value == 3.0

    def test_invalid_modifier_skipped(self, registry, definitions):
        """Modifiers that fail validation are skipped individually."""
        decode_into(
            registry,
            {
                "max_health": {
                    "modifiers": {
                        "nodot": {"operation": "ADD", "amount": 1.0},
                        "gear.bad": {"operation": "explode", "amount": 1.0},
                        "gear.broken": {"amount": "lots"},
                        "gear.ring": {"operation": "ADD", "amount": 2.0},
                    }
                }
            },
            entity_id=PLAYER_ID,
        )

        instance = registry.entity_instances(PLAYER_ID)["max_health"]
        assert list(instance.modifiers()) == ["gear.ring"]

    def test_non_string_attribute_id_skipped(self, registry, definitions):
        """A numeric attribute key from a hand-edited file skips only that entry."""
        loaded = decode_into(
            registry,
            {123: {"current-base": 5.0}, "max_health": {"current-base": 25.0}},
            entity_id=PLAYER_ID,
        )

        assert loaded == ["max_health"]
        assert registry.entity_instances(PLAYER_ID)["max_health"].current_base_value == 25.0

    def test_malformed_attribute_skipped(self, registry, definitions):
        """An attribute whose record does not validate is skipped."""
        loaded = decode_into(
            registry, {"max_health": {"default-base": "high"}}, entity_id=PLAYER_ID
        )
        assert loaded == []

    def test_baselines_clamped_on_load(self, registry, definitions):
        """Baselines clamp to the instance's cap key, the drift marker to the global range."""
        registry.set_cap_override("max_health", str(PLAYER_ID), 30.0)

        decode_into(
            registry,
            {
                "max_health": {
                    "default-base": 500.0,
                    "current-base": 45.0,
                    "default-final-baseline": 40.0,
                }
            },
            entity_id=PLAYER_ID,
        )

        instance = registry.entity_instances(PLAYER_ID)["max_health"]
        assert instance.default_base_value == 30.0
        assert instance.current_base_value == 30.0
        assert instance.last_known_default_final == 40.0

    def test_missing_fields_use_definition(self, registry, definitions):
        """Absent baselines fall back to the definition; an absent marker is None."""
        decode_into(registry, {"max_health": {}}, entity_id=None)

        instance = registry.global_instances()["max_health"]
        assert instance.default_base_value == 20.0
        assert instance.current_base_value == 20.0
        assert instance.last_known_default_final is None

    def test_load_replaces_existing_modifiers(self, registry, definitions):
        """Loading replaces the instance's modifiers instead of merging."""
        registry.set_entity_modifier(
            PLAYER_ID, "max_health", add("potion.x", 1.0, temporary=True, duration_seconds=9)
        )

        decode_into(
            registry,
            {"max_health": {"modifiers": {"gear.ring": {"amount": 2.0}}}},
            entity_id=PLAYER_ID,
        )

        instance = registry.entity_instances(PLAYER_ID)["max_health"]
        assert list(instance.modifiers()) == ["gear.ring"]
        assert len(registry.expiry) == 0

    def test_timed_modifier_rescheduled(self, registry, definitions, clock):
        """A persisted duration restarts from load time."""
        decode_into(
            registry,
            {
                "max_health": {
                    "modifiers": {
                        "potion.x": {"amount": 1.0, "temporary": True, "duration-seconds": 10.0}
                    }
                }
            },
            entity_id=PLAYER_ID,
        )

        clock.advance(10.0)
        assert len(registry.expire_modifiers()) == 1

    def test_global_document_restores_caps(self, registry, definitions):
        """Cap overrides load before instances and skip unknown attributes."""
        load_global_document(
            registry,
            {
                "caps": {"max_health": {"hero": 25.0}, "ghost": {"hero": 1.0}, "armor": 5},
                "attributes": {},
            },
        )

        assert registry.get_definition("max_health").cap_config.resolve_max("hero") == 25.0
        assert registry.get_definition("armor").cap_config.override_max_values == {}

    def test_numeric_cap_attribute_skipped(self, registry, definitions):
        """A numeric attribute key under caps is reported unknown, not fatal."""
        load_global_document(
            registry, {"caps": {7: {"hero": 1.0}, "max_health": {"hero": 25.0}}}
        )

        assert registry.get_definition("max_health").cap_config.resolve_max("hero") == 25.0

    def test_empty_document(self, registry, definitions):
        """Documents without sections load nothing."""
        assert load_global_document(registry, {}) == []
        assert load_entity_document(registry, {"attributes": None}, PLAYER_ID) == []
