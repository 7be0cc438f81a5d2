"""Length and angle units.

Every length unit carries its size in meters; conversions always go through
that base, so converting between any two units is a single multiply/divide.
"""

from __future__ import annotations

import math
from enum import Enum


class LengthUnit(Enum):
    """A unit of length, valued by its size in meters."""

    MICROMETER = 1e-6
    MILLIMETER = 1e-3
    CENTIMETER = 1e-2
    DECIMETER = 1e-1
    METER = 1.0
    KILOMETER = 1e3
    INCH = 0.0254
    FOOT = 0.3048
    YARD = 0.9144
    MILE = 1609.344

    @property
    def in_meters(self) -> float:
        """Size of one unit in meters."""
        return self.value

    @property
    def symbol(self) -> str:
        return _SYMBOLS[self]

    def factor_to(self, target: LengthUnit) -> float:
        """Factor that converts a length in this unit to ``target``."""
        return self.value / target.value

    @classmethod
    def parse(cls, text: str | LengthUnit) -> LengthUnit:
        """Parse a unit from its name, plural, or symbol.

        Accepts e.g. "mm", "millimeter", "Millimeters", "in", "inches", "feet".

        Raises:
            ValueError: If the text names no known unit
        """
        if isinstance(text, LengthUnit):
            return text
        key = text.strip().lower()
        unit = _ALIASES.get(key)
        if unit is None and len(key) > 3 and key.endswith("s"):
            unit = _ALIASES.get(key[:-1])
        if unit is None:
            raise ValueError(f"Unknown length unit: {text!r}")
        return unit

    def __str__(self) -> str:
        return self.name.lower()


_SYMBOLS: dict[LengthUnit, str] = {
    LengthUnit.MICROMETER: "um",
    LengthUnit.MILLIMETER: "mm",
    LengthUnit.CENTIMETER: "cm",
    LengthUnit.DECIMETER: "dm",
    LengthUnit.METER: "m",
    LengthUnit.KILOMETER: "km",
    LengthUnit.INCH: "in",
    LengthUnit.FOOT: "ft",
    LengthUnit.YARD: "yd",
    LengthUnit.MILE: "mi",
}

_ALIASES: dict[str, LengthUnit] = {
    **{unit.name.lower(): unit for unit in LengthUnit},
    **{symbol: unit for unit, symbol in _SYMBOLS.items()},
    "metre": LengthUnit.METER,
    "millimetre": LengthUnit.MILLIMETER,
    "centimetre": LengthUnit.CENTIMETER,
    "kilometre": LengthUnit.KILOMETER,
    "micron": LengthUnit.MICROMETER,
    "feet": LengthUnit.FOOT,
    "inches": LengthUnit.INCH,
}


def convert_length(value: float, source: LengthUnit, target: LengthUnit) -> float:
    """Convert a length between units via meters."""
    return value * source.value / target.value


class AngleUnit(Enum):
    """A unit of angle, valued by its size in radians."""

    RADIAN = 1.0
    DEGREE = math.pi / 180.0
    GRADIAN = math.pi / 200.0

    def to_radians(self, value: float) -> float:
        return value * self.value

    def from_radians(self, value: float) -> float:
        return value / self.value
