from .schema import FORMAT_VERSION, SchemaError, validate, validate_file
from .document import (
    DocumentMetadata,
    SerializedBlueprint,
    blueprint_from_dict,
    blueprint_to_dict,
    definition_from_dict,
    definition_to_dict,
    deserialize,
    load_document,
    load_file,
    serialize,
)

__all__ = [
    "DocumentMetadata",
    "FORMAT_VERSION",
    "SchemaError",
    "SerializedBlueprint",
    "blueprint_from_dict",
    "blueprint_to_dict",
    "definition_from_dict",
    "definition_to_dict",
    "deserialize",
    "load_document",
    "load_file",
    "serialize",
    "validate",
    "validate_file",
]
