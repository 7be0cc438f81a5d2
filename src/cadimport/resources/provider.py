"""Resource provider interface.

Adapters never touch the filesystem directly. They read the main file and any
auxiliary files (buffers, textures, material libraries) through a provider,
addressed by a locator: a '/'-separated relative path inside the provider.
"""

from __future__ import annotations

import posixpath
from typing import BinaryIO, Protocol, runtime_checkable


@runtime_checkable
class ResourceProvider(Protocol):
    """Protocol for anything that can serve bytes by locator.

    Implementations raise NotFound, AccessDenied or IoFailure
    (see cadimport.errors) rather than bare OSErrors.
    """

    def open(self, locator: str) -> BinaryIO:
        """Open a resource for binary reading.

        Args:
            locator: Locator of the resource

        Returns:
            A readable binary stream; the caller closes it
        """
        ...

    def list(self, locator: str = "") -> list[str]:
        """List the locators directly below ``locator``."""
        ...


def normalize_locator(locator: str) -> str:
    """Normalize a locator to a clean '/'-separated relative path."""
    locator = locator.replace("\\", "/").strip()
    if not locator:
        return ""
    normalized = posixpath.normpath(locator).lstrip("/")
    return "" if normalized == "." else normalized


def join_locator(base: str, relative: str) -> str:
    """Resolve ``relative`` against the directory of ``base``.

    Used for sibling files, e.g. the .bin buffer next to a .gltf file.

    Example:
        join_locator("models/car.gltf", "textures/paint.png")
        -> "models/textures/paint.png"
    """
    directory = posixpath.dirname(normalize_locator(base))
    return normalize_locator(posixpath.join(directory, relative.replace("\\", "/")))


def locator_extension(locator: str) -> str:
    """Lowercase extension of a locator without the leading dot ('' if none)."""
    name = posixpath.basename(normalize_locator(locator))
    _, ext = posixpath.splitext(name)
    return ext[1:].lower()
