"""Tests for modifier entries and key helpers."""

import pytest

from attrstack.errors import ModifierValidationError
from attrstack.model import (
    ModifierEntry,
    ModifierOperation,
    is_namespaced_key,
    namespaced_key,
)


class TestModifierOperation:
    """Tests for operation parsing."""

    @pytest.mark.parametrize("raw", ["ADD", "add", " Add "])
    def test_parse_add(self, raw):
        """Operation names parse case-insensitively."""
        assert ModifierOperation.parse(raw) is ModifierOperation.ADD

    def test_parse_multiply(self):
        """MULTIPLY parses from its persisted name."""
        assert ModifierOperation.parse("MULTIPLY") is ModifierOperation.MULTIPLY

    @pytest.mark.parametrize("raw", ["divide", "", None])
    def test_parse_unknown(self, raw):
        """Unknown names raise a validation error."""
        with pytest.raises(ModifierValidationError):
            ModifierOperation.parse(raw)


class TestModifierKeys:
    """Tests for <owner>.<name> key handling."""

    @pytest.mark.parametrize(
        "key", ["potion.strength", "my-plugin.buff_1", "gear.ring.left", "A.B"]
    )
    def test_namespaced_keys(self, key):
        """Keys with an owner segment and a name are namespaced."""
        assert is_namespaced_key(key)

    @pytest.mark.parametrize("key", ["nodot", ".name", "owner.", "has space.x", "", "a/b.c"])
    def test_not_namespaced(self, key):
        """Keys without a valid owner and name are rejected."""
        assert not is_namespaced_key(key)

    def test_namespaced_key_builder(self):
        """namespaced_key joins and lower-cases the parts."""
        assert namespaced_key("AttrStack", "Drift") == "attrstack.drift"

    def test_namespaced_key_builder_rejects_bad_owner(self):
        """A malformed owner is rejected."""
        with pytest.raises(ModifierValidationError):
            namespaced_key("bad owner", "x")


class TestModifierEntry:
    """Tests for entry construction and normalization."""

    def test_defaults(self):
        """A bare entry is permanent and targets the current layer only."""
        entry = ModifierEntry("gear.ring", ModifierOperation.ADD, 2)

        assert entry.permanent
        assert not entry.temporary
        assert entry.applies_to_current
        assert not entry.applies_to_default
        assert entry.amount == 2.0
        assert entry.is_additive
        assert not entry.is_multiplicative

    def test_key_lower_cased(self):
        """Keys are stored lower-cased."""
        entry = ModifierEntry("Gear.Ring", ModifierOperation.ADD, 1.0)
        assert entry.key == "gear.ring"

    def test_instance_keys_need_not_be_namespaced(self):
        """The entry itself accepts any key matching the character class."""
        entry = ModifierEntry("perm-mult", ModifierOperation.MULTIPLY, 2.0)
        assert entry.key == "perm-mult"

    @pytest.mark.parametrize("key", ["", "has space", "semi;colon"])
    def test_invalid_key(self, key):
        """Keys outside [a-z0-9_.-] are rejected."""
        with pytest.raises(ModifierValidationError):
            ModifierEntry(key, ModifierOperation.ADD, 1.0)

    def test_operation_string_is_parsed(self):
        """A string operation is converted to the enum."""
        entry = ModifierEntry("a.b", "multiply", 1.5)  # type: ignore[arg-type]
        assert entry.operation is ModifierOperation.MULTIPLY

    def test_multiplier_keys_normalized(self):
        """Explicit multiplier keys are lower-cased, deduplicated and ordered."""
        entry = ModifierEntry(
            "a.b",
            ModifierOperation.ADD,
            1.0,
            uses_explicit_multiplier_keys=True,
            multiplier_keys=("Potion.X", "gear.y", "potion.x", "  "),
        )
        assert entry.multiplier_keys == ("potion.x", "gear.y")

    def test_accepts_multiplier(self):
        """Explicit keys restrict which multipliers scale an additive entry."""
        open_entry = ModifierEntry("a.b", ModifierOperation.ADD, 1.0)
        restricted = ModifierEntry(
            "a.c",
            ModifierOperation.ADD,
            1.0,
            uses_explicit_multiplier_keys=True,
            multiplier_keys=("potion.x",),
        )

        assert open_entry.accepts_multiplier("anything.else")
        assert restricted.accepts_multiplier("POTION.X")
        assert not restricted.accepts_multiplier("gear.y")

    def test_explicit_flag_with_no_keys_accepts_nothing(self):
        """An empty explicit key set means no multiplier scales the entry."""
        entry = ModifierEntry(
            "a.b", ModifierOperation.ADD, 1.0, uses_explicit_multiplier_keys=True
        )
        assert not entry.accepts_multiplier("potion.x")

    def test_duration_requires_temporary(self):
        """A duration on a permanent entry is rejected."""
        with pytest.raises(ModifierValidationError):
            ModifierEntry("a.b", ModifierOperation.ADD, 1.0, duration_seconds=5.0)

    @pytest.mark.parametrize("duration", [0.0, -1.0])
    def test_duration_must_be_positive(self, duration):
        """Durations must be positive."""
        with pytest.raises(ModifierValidationError):
            ModifierEntry(
                "a.b", ModifierOperation.ADD, 1.0, temporary=True, duration_seconds=duration
            )

    def test_entries_are_immutable(self):
        """Entries are frozen."""
        entry = ModifierEntry("a.b", ModifierOperation.ADD, 1.0)
        with pytest.raises(AttributeError):
            entry.amount = 5.0  # type: ignore[misc]
