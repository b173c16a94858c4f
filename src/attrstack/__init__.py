"""attrstack: layered attribute computation for game entities."""

from attrstack.compute import ComputationEngine
from attrstack.errors import (
    AttrStackError,
    ConfigurationError,
    ModifierValidationError,
    PersistenceError,
    UnknownAttributeError,
)
from attrstack.model import (
    ApplicabilityMode,
    AttributeDefinition,
    AttributeInstance,
    AttributeValueStages,
    CapConfig,
    Layer,
    ModifierEntry,
    ModifierOperation,
    MultiplierApplicability,
)
from attrstack.registry import AttributeRefreshListener, AttributeRegistry

__version__ = "0.1.0"

__all__ = [
    "ApplicabilityMode",
    "AttrStackError",
    "AttributeDefinition",
    "AttributeInstance",
    "AttributeRefreshListener",
    "AttributeRegistry",
    "AttributeValueStages",
    "CapConfig",
    "ComputationEngine",
    "ConfigurationError",
    "Layer",
    "ModifierEntry",
    "ModifierOperation",
    "ModifierValidationError",
    "MultiplierApplicability",
    "PersistenceError",
    "UnknownAttributeError",
]
