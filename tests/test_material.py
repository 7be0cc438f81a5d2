"""Tests for Material validation and derived properties."""

import pytest

from cadimport import Material, ResourceId


def test_defaults():
    material = Material()
    assert material.opacity == 1.0
    assert not material.is_textured
    assert material.diffuse_color == (0.8, 0.8, 0.8)


def test_colors_are_normalized_to_float_tuples():
    material = Material(name="steel", diffuse_color=[1, 0, 0], transparency=0.25)
    assert material.diffuse_color == (1.0, 0.0, 0.0)
    assert isinstance(material.diffuse_color[0], float)
    assert material.opacity == pytest.approx(0.75)


@pytest.mark.parametrize("kwargs", [
    {"diffuse_color": (1.0, 0.0)},
    {"emissive_color": (0.0, 0.0, 0.0, 1.0)},
    {"transparency": 1.5},
    {"transparency": -0.1},
])
def test_invalid_material(kwargs):
    with pytest.raises(ValueError):
        Material(**kwargs)


def test_texture_reference():
    material = Material(texture=ResourceId(3))
    assert material.is_textured
    assert material.texture == ResourceId(3)
