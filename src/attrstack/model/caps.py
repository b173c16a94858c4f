"""Cap configuration: min/max clamping with per-scope override maxima.

Caps are applied after every computation stage. ``override_max_values`` lets
specific contexts (usually an entity id) use a different maximum while the
global minimum always applies.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from attrstack.errors import ConfigurationError


def _normalize_key(key: str | None) -> str | None:
    if key is None or not key.strip():
        return None
    return key.lower()


@dataclass(frozen=True)
class CapConfig:
    """Inclusive ``[global_min, global_max]`` range with optional override maxima.

    Attributes:
        global_min: Lower bound applied to every value
        global_max: Upper bound used when no override matches
        override_max_values: Lower-cased override key -> maximum
    """

    global_min: float
    global_max: float
    override_max_values: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.global_max < self.global_min:
            raise ConfigurationError(
                f"Global max ({self.global_max}) must be greater than or equal to "
                f"global min ({self.global_min})"
            )

        normalized: dict[str, float] = {}
        for key, value in (self.override_max_values or {}).items():
            normalized_key = _normalize_key(key)
            if normalized_key is None:
                continue
            normalized[normalized_key] = float(value)
        object.__setattr__(self, "override_max_values", MappingProxyType(normalized))

    @classmethod
    def unbounded(cls) -> "CapConfig":
        """Create a cap that never clamps finite values."""
        return cls(float("-inf"), float("inf"))

    def resolve_max(self, override_key: str | None = None) -> float:
        """
        Resolve the maximum bound for an override key.

        Args:
            override_key: Scope key (case-insensitive); blank or unknown keys
                fall back to ``global_max``

        Returns:
            The override maximum if one is configured, else ``global_max``
        """
        normalized = _normalize_key(override_key)
        if normalized is None:
            return self.global_max
        return self.override_max_values.get(normalized, self.global_max)

    def clamp(self, value: float, override_key: str | None = None) -> float:
        """Clamp ``value`` into ``[global_min, resolve_max(override_key)]``."""
        return max(self.global_min, min(value, self.resolve_max(override_key)))

    def with_override(self, override_key: str, max_value: float) -> "CapConfig":
        """
        Return a copy carrying an extra (or replaced) override maximum.

        The override is bounded below by ``global_min`` so the resulting
        range is never empty.

        Raises:
            ConfigurationError: If ``override_key`` is blank
        """
        normalized = _normalize_key(override_key)
        if normalized is None:
            raise ConfigurationError("Cap override key must not be blank")
        overrides = dict(self.override_max_values)
        overrides[normalized] = max(self.global_min, max_value)
        return CapConfig(self.global_min, self.global_max, overrides)

    def without_override(self, override_key: str) -> "CapConfig":
        """Return a copy with ``override_key`` removed (no-op if absent)."""
        overrides = dict(self.override_max_values)
        overrides.pop(_normalize_key(override_key) or "", None)
        return CapConfig(self.global_min, self.global_max, overrides)
