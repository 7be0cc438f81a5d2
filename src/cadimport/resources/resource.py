"""Resource records for bulk data shared between nodes and materials."""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from enum import Enum

from PIL import Image

from ..core.ids import ResourceId


class ResourceKind(Enum):
    """What a resource's bytes represent."""

    IMAGE = "image"
    BUFFER = "buffer"


@dataclass(frozen=True)
class Resource:
    """A logical unit of bulk data owned by an arena.

    Nodes and materials refer to resources by id only; the bytes live here
    once no matter how many references exist.

    Attributes:
        id: Arena-unique resource id
        kind: Image or raw buffer
        data: The raw bytes
        mime_type: MIME type of ``data`` if known
        locator: Where the bytes came from, if they came from a provider
    """

    id: ResourceId
    kind: ResourceKind
    data: bytes = field(repr=False)
    mime_type: str | None = None
    locator: str | None = None

    @property
    def size(self) -> int:
        return len(self.data)

    def image(self) -> Image.Image:
        """Decode an image resource.

        Raises:
            ValueError: If this resource is not an image
            PIL.UnidentifiedImageError: If the bytes are not a known image format
        """
        if self.kind is not ResourceKind.IMAGE:
            raise ValueError(f"Resource {self.id} is a {self.kind.value}, not an image")
        image = Image.open(io.BytesIO(self.data))
        image.load()
        return image
