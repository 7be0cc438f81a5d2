"""Typed metadata values.

Metadata is a closed set of value kinds. Adding a kind is a deliberate change
to this module; free-form Python objects are rejected by metadata_value().
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Union

from .units import LengthUnit, convert_length


@dataclass(frozen=True)
class Text:
    value: str

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Integer:
    value: int

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class Real:
    value: float

    def __str__(self) -> str:
        return repr(self.value)


@dataclass(frozen=True)
class Boolean:
    value: bool

    def __str__(self) -> str:
        return "true" if self.value else "false"


@dataclass(frozen=True)
class Length:
    """A length that always carries its unit.

    Attributes:
        value: Magnitude in ``unit``
        unit: The unit the magnitude is expressed in
    """

    value: float
    unit: LengthUnit = LengthUnit.METER

    def to(self, target: LengthUnit) -> Length:
        """Return this length expressed in ``target``."""
        return Length(convert_length(self.value, self.unit, target), target)

    @property
    def in_meters(self) -> float:
        return self.value * self.unit.in_meters

    def isclose(self, other: Length, rel_tol: float = 1e-9, abs_tol: float = 0.0) -> bool:
        """Compare two lengths in the meter base."""
        return math.isclose(self.in_meters, other.in_meters, rel_tol=rel_tol, abs_tol=abs_tol)

    def __str__(self) -> str:
        return f"{self.value!r} {self.unit.symbol}"


MetadataValue = Union[Text, Integer, Real, Boolean, Length]

METADATA_TYPES = (Text, Integer, Real, Boolean, Length)


def metadata_value(value: object) -> MetadataValue:
    """Coerce a Python scalar into a metadata value.

    Existing metadata values pass through unchanged. ``bool`` is checked before
    ``int`` since it is a subclass of it.

    Raises:
        TypeError: If the value has no metadata kind
    """
    if isinstance(value, METADATA_TYPES):
        return value
    if isinstance(value, bool):
        return Boolean(value)
    if isinstance(value, int):
        return Integer(value)
    if isinstance(value, float):
        return Real(value)
    if isinstance(value, str):
        return Text(value)

    # numpy scalars and similar number-likes
    if hasattr(value, "item"):
        return metadata_value(value.item())

    raise TypeError(f"Unsupported metadata value type: {type(value).__name__}")


def convert(value: Length, target_unit: LengthUnit) -> Length:
    """Convert a length metadata value to another unit.

    Pure: the input value is not modified.

    Raises:
        TypeError: If ``value`` is not a Length
    """
    if not isinstance(value, Length):
        raise TypeError(f"Only Length values carry a unit, got {type(value).__name__}")
    return value.to(target_unit)


def to_python(value: MetadataValue) -> object:
    """Unwrap a metadata value; lengths become (value, unit symbol) pairs."""
    if isinstance(value, Length):
        return (value.value, value.unit.symbol)
    return value.value
