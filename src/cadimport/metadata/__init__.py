"""Metadata values and units of measure."""

from .units import AngleUnit, LengthUnit, convert_length
from .values import (
    Boolean,
    Integer,
    Length,
    MetadataValue,
    Real,
    Text,
    convert,
    metadata_value,
    to_python,
)

__all__ = [
    "AngleUnit",
    "LengthUnit",
    "convert_length",
    "Boolean",
    "Integer",
    "Length",
    "MetadataValue",
    "Real",
    "Text",
    "convert",
    "metadata_value",
    "to_python",
]
