"""Tests for loader option declarations and resolution."""

import pytest

from cadimport import InvalidOption, LengthUnit
from cadimport.loaders import OptionDescriptor, OptionsDescriptor, bool_option, resolve_options


def positive(value) -> bool:
    return value > 0


DESCRIPTOR = OptionsDescriptor([
    bool_option("merge", "Merge primitives"),
    OptionDescriptor("tolerance", "Weld tolerance", default=1e-6, validator=positive, convert=float),
])


def test_first_declaration_wins():
    options = OptionsDescriptor([
        OptionDescriptor("depth", "first", default=1),
        OptionDescriptor("depth", "second", default=2),
    ])
    assert len(options) == 1
    assert options["depth"].description == "first"
    assert not options.add(OptionDescriptor("depth", "third"))


def test_defaults_are_filled_in():
    resolved = resolve_options(DESCRIPTOR)
    assert resolved == {
        "target_unit": None,
        "mime_type": None,
        "merge": False,
        "tolerance": 1e-6,
    }


def test_values_are_converted_and_validated():
    resolved = resolve_options(DESCRIPTOR, {"tolerance": "0.5", "target_unit": "mm", "merge": True})
    assert resolved["tolerance"] == 0.5
    assert resolved["target_unit"] is LengthUnit.MILLIMETER
    assert resolved["merge"] is True


@pytest.mark.parametrize("values", [
    {"unknown": 1},
    {"tolerance": -1.0},
    {"tolerance": "abc"},
    {"merge": "yes"},
    {"target_unit": "furlong"},
])
def test_invalid_options_are_rejected(values):
    with pytest.raises(InvalidOption):
        resolve_options(DESCRIPTOR, values)
