"""Load import configuration from YAML files.

YAML format:
```yaml
log_level: INFO
target_unit: millimeter      # rescale every loaded arena to this unit
extensions:                  # extra extension -> MIME type aliases
  gltf2: model/gltf+json
loaders:                     # per-loader default options, keyed by loader name
  trimesh:
    process: false
```
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .metadata.units import LengthUnit

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ImportConfig:
    """Settings shared by every load performed through a registry.

    Attributes:
        log_level: Name of the logging level for the cadimport logger
        target_unit: Unit every loaded arena is rescaled to, if set
        extensions: Extension -> MIME type aliases used as a dispatch fallback
        loaders: Loader name -> default option values
    """

    log_level: str = "INFO"
    target_unit: LengthUnit | None = None
    extensions: dict[str, str] = field(default_factory=dict)
    loaders: dict[str, dict[str, Any]] = field(default_factory=dict)

    @property
    def level(self) -> int:
        """Numeric logging level."""
        return logging.getLevelName(self.log_level)

    def options_for(self, loader_name: str) -> dict[str, Any]:
        """Default options for a loader, including the global target unit."""
        options = dict(self.loaders.get(loader_name, {}))
        if self.target_unit is not None:
            options.setdefault("target_unit", self.target_unit)
        return options

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ImportConfig:
        """Build a config from parsed YAML data.

        Raises:
            ValueError: If a value has the wrong shape or an unknown unit/level
        """
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValueError(f"Config must be a mapping, got {type(data).__name__}")

        unknown = set(data) - {"log_level", "target_unit", "extensions", "loaders"}
        if unknown:
            raise ValueError(f"Unknown config keys: {sorted(unknown)}")

        log_level = str(data.get("log_level", "INFO")).upper()
        if log_level not in _LOG_LEVELS:
            raise ValueError(f"Unknown log level: {log_level}")

        target_unit = data.get("target_unit")
        if target_unit is not None:
            target_unit = LengthUnit.parse(str(target_unit))

        extensions = data.get("extensions") or {}
        if not isinstance(extensions, dict):
            raise ValueError("'extensions' must map extensions to MIME types")
        aliases = {}
        for ext, mime in extensions.items():
            if "/" not in str(mime):
                raise ValueError(f"Extension alias {ext!r} must map to a MIME type, got {mime!r}")
            aliases[str(ext).lower().lstrip(".")] = str(mime).lower()

        loaders = data.get("loaders") or {}
        if not isinstance(loaders, dict) or not all(
            isinstance(opts, dict) for opts in loaders.values() if opts is not None
        ):
            raise ValueError("'loaders' must map loader names to option mappings")

        return cls(
            log_level=log_level,
            target_unit=target_unit,
            extensions=aliases,
            loaders={str(name): dict(opts or {}) for name, opts in loaders.items()},
        )


def load_config(path: str | Path) -> ImportConfig:
    """Load a configuration from a YAML file.

    Args:
        path: Path to the YAML file

    Returns:
        Parsed ImportConfig

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the content is invalid
    """
    path = Path(path)
    with open(path) as f:
        data = yaml.safe_load(f)

    return ImportConfig.from_dict(data)


def load_config_string(yaml_string: str) -> ImportConfig:
    """Load a configuration from a YAML string."""
    data = yaml.safe_load(yaml_string)
    return ImportConfig.from_dict(data)
