"""Tests for YAML configuration loading."""

import logging

import pytest

from cadimport import ImportConfig, LengthUnit, load_config, load_config_string

FULL_CONFIG = """
log_level: debug
target_unit: millimeters
extensions:
  .GLTF2: Model/GLTF+JSON
loaders:
  trimesh:
    process: true
"""


def test_load_full_config():
    config = load_config_string(FULL_CONFIG)

    assert config.log_level == "DEBUG"
    assert config.level == logging.DEBUG
    assert config.target_unit is LengthUnit.MILLIMETER
    assert config.extensions == {"gltf2": "model/gltf+json"}
    assert config.loaders == {"trimesh": {"process": True}}


def test_options_for_includes_target_unit():
    config = load_config_string(FULL_CONFIG)
    assert config.options_for("trimesh") == {"process": True, "target_unit": LengthUnit.MILLIMETER}
    assert config.options_for("other") == {"target_unit": LengthUnit.MILLIMETER}


def test_empty_config_uses_defaults():
    config = load_config_string("")
    assert config == ImportConfig()
    assert config.options_for("trimesh") == {}


def test_load_config_file(tmp_path):
    path = tmp_path / "cadimport.yaml"
    path.write_text("target_unit: inch\n")
    assert load_config(path).target_unit is LengthUnit.INCH


@pytest.mark.parametrize("text", [
    "- just\n- a list\n",
    "unknown_key: 1\n",
    "log_level: LOUD\n",
    "target_unit: furlong\n",
    "extensions:\n  foo: bar\n",
    "loaders:\n  trimesh: 3\n",
])
def test_invalid_config(text):
    with pytest.raises(ValueError):
        load_config_string(text)
