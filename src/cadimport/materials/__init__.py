"""Material system for surface appearance."""

from .material import Material

__all__ = ["Material"]
