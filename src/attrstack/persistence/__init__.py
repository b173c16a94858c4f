"""Persistence of attribute state."""

from .document import (
    AttributeRecord,
    ModifierRecord,
    build_entity_document,
    build_global_document,
    decode_into,
    encode_instance,
    encode_instances,
    load_entity_document,
    load_global_document,
)
from .sql_store import SqlAttributeStore
from .yaml_store import YamlAttributeStore

__all__ = [
    "AttributeRecord",
    "ModifierRecord",
    "SqlAttributeStore",
    "YamlAttributeStore",
    "build_entity_document",
    "build_global_document",
    "decode_into",
    "encode_instance",
    "encode_instances",
    "load_entity_document",
    "load_global_document",
]
