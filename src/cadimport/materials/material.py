"""Material class for surface appearance of primitives."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..core.ids import ResourceId

RGB = tuple[float, float, float]


@dataclass(frozen=True)
class Material:
    """Phong style material definition.

    Colors are normalized 0-1. Textures are not embedded: they are resources
    owned by the arena and referenced here by id, so several materials can
    share one image.

    Attributes:
        name: Material identifier from the source file
        diffuse_color: Color reflected from all light sources
        specular_color: Color of specular highlights
        emissive_color: Color of "glowing" objects
        ambient_intensity: How much ambient light the surface reflects
        shininess: Highlight sharpness (0-1)
        transparency: 1.0 is fully transparent, 0.0 fully opaque
        texture: Optional id of the diffuse/albedo image resource
    """

    name: str = ""
    diffuse_color: RGB = (0.8, 0.8, 0.8)
    specular_color: RGB = (0.0, 0.0, 0.0)
    emissive_color: RGB = (0.0, 0.0, 0.0)
    ambient_intensity: float = 0.2
    shininess: float = 0.2
    transparency: float = 0.0
    texture: ResourceId | None = field(default=None)

    def __post_init__(self) -> None:
        for attr in ("diffuse_color", "specular_color", "emissive_color"):
            color = tuple(float(c) for c in getattr(self, attr))
            if len(color) != 3:
                raise ValueError(f"{attr} must have 3 components, got {len(color)}")
            object.__setattr__(self, attr, color)
        if not 0.0 <= self.transparency <= 1.0:
            raise ValueError(f"transparency must be within [0, 1], got {self.transparency}")

    @property
    def opacity(self) -> float:
        return 1.0 - self.transparency

    @property
    def is_textured(self) -> bool:
        return self.texture is not None
