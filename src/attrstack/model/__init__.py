"""Attribute data model: definitions, caps, modifiers, instances, results."""

from .caps import CapConfig
from .definition import AttributeDefinition
from .instance import ALL_BUCKETS, AttributeInstance, BucketKey, Layer
from .modifiers import (
    ENTRY_KEY_PATTERN,
    NAMESPACED_KEY_PATTERN,
    ModifierEntry,
    ModifierOperation,
    is_namespaced_key,
    namespaced_key,
)
from .policy import ApplicabilityMode, MultiplierApplicability
from .stages import AttributeValueStages

__all__ = [
    "ALL_BUCKETS",
    "ENTRY_KEY_PATTERN",
    "NAMESPACED_KEY_PATTERN",
    "ApplicabilityMode",
    "AttributeDefinition",
    "AttributeInstance",
    "AttributeValueStages",
    "BucketKey",
    "CapConfig",
    "Layer",
    "ModifierEntry",
    "ModifierOperation",
    "MultiplierApplicability",
    "is_namespaced_key",
    "namespaced_key",
]
