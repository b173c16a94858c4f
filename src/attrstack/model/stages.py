"""Six-stage computation result."""

from dataclasses import astuple, dataclass


@dataclass(frozen=True)
class AttributeValueStages:
    """
    Running totals after each stage of the computation pipeline.

    Attributes:
        raw_default: Capped default baseline before any modifier
        default_permanent: Default baseline after permanent default-layer modifiers
        default_final: Default baseline after all default-layer modifiers
        raw_current: Current baseline after drift synchronization (static
            attributes) or external resolution (dynamic attributes)
        current_permanent: Current baseline after permanent current-layer modifiers
        current_final: Fully resolved current value
    """

    raw_default: float
    default_permanent: float
    default_final: float
    raw_current: float
    current_permanent: float
    current_final: float

    @classmethod
    def zero(cls) -> "AttributeValueStages":
        """Result used when an attribute cannot be resolved."""
        return cls(0.0, 0.0, 0.0, 0.0, 0.0, 0.0)

    def as_tuple(self) -> tuple[float, float, float, float, float, float]:
        return astuple(self)  # type: ignore[return-value]

    def as_dict(self) -> dict[str, float]:
        return {
            "raw_default": self.raw_default,
            "default_permanent": self.default_permanent,
            "default_final": self.default_final,
            "raw_current": self.raw_current,
            "current_permanent": self.current_permanent,
            "current_final": self.current_final,
        }
