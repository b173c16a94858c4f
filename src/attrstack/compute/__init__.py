"""Attribute computation."""

from .engine import ComputationEngine, ExternalValueProvider, partition_modifiers

__all__ = ["ComputationEngine", "ExternalValueProvider", "partition_modifiers"]
