"""Multiplier eligibility policy for attribute definitions."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import StrEnum


class ApplicabilityMode(StrEnum):
    """How a definition decides which multipliers contribute."""

    APPLY_ALL = "apply_all"  # every multiplier not explicitly ignored
    ALLOW_LIST = "allow_list"  # only multipliers in allowed_keys
    IGNORE_LIST = "ignore_list"  # every multiplier except ignored_keys


def _normalize(keys: Iterable[str] | None) -> frozenset[str]:
    if not keys:
        return frozenset()
    return frozenset(key.lower() for key in keys if key)


@dataclass(frozen=True)
class MultiplierApplicability:
    """Decides whether a multiplicative modifier contributes at all."""

    mode: ApplicabilityMode = ApplicabilityMode.APPLY_ALL
    allowed_keys: frozenset[str] = field(default_factory=frozenset)
    ignored_keys: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        object.__setattr__(self, "mode", ApplicabilityMode(self.mode))
        object.__setattr__(self, "allowed_keys", _normalize(self.allowed_keys))
        object.__setattr__(self, "ignored_keys", _normalize(self.ignored_keys))

    @classmethod
    def apply_all(cls) -> "MultiplierApplicability":
        """Every multiplier applies."""
        return cls()

    @classmethod
    def allow_only(cls, keys: Iterable[str]) -> "MultiplierApplicability":
        """Only the listed multiplier keys apply."""
        return cls(ApplicabilityMode.ALLOW_LIST, allowed_keys=frozenset(keys))

    @classmethod
    def ignoring(cls, keys: Iterable[str]) -> "MultiplierApplicability":
        """Every multiplier applies except the listed keys."""
        return cls(ApplicabilityMode.IGNORE_LIST, ignored_keys=frozenset(keys))

    def can_apply(self, multiplier_key: str) -> bool:
        """
        Check whether a multiplier key contributes for this definition.

        The ignore list is evaluated first, then the allow/apply-all rule.

        Args:
            multiplier_key: Modifier key of the multiplicative entry

        Returns:
            True if the multiplier should be part of the product
        """
        key = multiplier_key.lower()
        if key in self.ignored_keys:
            return False
        if self.mode is ApplicabilityMode.ALLOW_LIST:
            return key in self.allowed_keys
        return True
