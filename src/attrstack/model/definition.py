"""Immutable attribute definitions."""

from dataclasses import dataclass, field, replace

from attrstack.model.caps import CapConfig
from attrstack.model.instance import AttributeInstance
from attrstack.model.policy import MultiplierApplicability


@dataclass(frozen=True)
class AttributeDefinition:
    """
    Configuration for one attribute, replaced wholesale on reload.

    Attributes:
        id: Unique, case-insensitive identifier (stored lower case)
        dynamic: Current-layer raw value comes from an external provider
        default_base_value: Configured default-layer baseline
        default_current_value: Configured current-layer baseline
        cap_config: Clamping rules
        multiplier_applicability: Which multipliers contribute at all
        display_name: Human readable name (defaults to the id)
    """

    id: str
    dynamic: bool = False
    default_base_value: float = 0.0
    default_current_value: float = 0.0
    cap_config: CapConfig = field(default_factory=CapConfig.unbounded)
    multiplier_applicability: MultiplierApplicability = field(
        default_factory=MultiplierApplicability.apply_all
    )
    display_name: str = ""

    def __post_init__(self) -> None:
        if not self.id or not self.id.strip():
            raise ValueError("Attribute id must not be blank")
        object.__setattr__(self, "id", self.id.strip().lower())
        object.__setattr__(self, "default_base_value", float(self.default_base_value))
        object.__setattr__(self, "default_current_value", float(self.default_current_value))
        if not self.display_name:
            object.__setattr__(self, "display_name", self.id)

    def new_instance(self, cap_override_key: str | None = None) -> AttributeInstance:
        """
        Create a fresh instance seeded from this definition's defaults.

        The drift marker starts at the default baseline, so the first
        computation shifts the current baseline by whatever the default-layer
        modifiers already add on top of it.

        Args:
            cap_override_key: Optional key selecting an override maximum

        Returns:
            A new, modifier-free AttributeInstance
        """
        return AttributeInstance(
            self.id,
            self.default_base_value,
            self.default_current_value,
            cap_override_key=cap_override_key,
            last_known_default_final=self.default_base_value,
        )

    def with_cap_config(self, cap_config: CapConfig) -> "AttributeDefinition":
        """Return a copy using ``cap_config``."""
        return replace(self, cap_config=cap_config)
