"""Exception hierarchy for attrstack."""


class AttrStackError(Exception):
    """Base class for every error raised by attrstack."""

    pass


class ConfigurationError(AttrStackError):
    """Raised when an attribute definition or cap configuration is inconsistent."""

    pass


class ModifierValidationError(AttrStackError, ValueError):
    """Raised when a modifier entry is malformed (bad key, bad duration, ...)."""

    pass


class UnknownAttributeError(AttrStackError, KeyError):
    """Raised when a write path targets an attribute id that was never registered."""

    def __init__(self, attribute_id: str) -> None:
        super().__init__(attribute_id)
        self.attribute_id = attribute_id

    def __str__(self) -> str:
        return f"Unknown attribute: {self.attribute_id}"


class PersistenceError(AttrStackError):
    """Raised when persisted attribute state cannot be read or written."""

    pass
