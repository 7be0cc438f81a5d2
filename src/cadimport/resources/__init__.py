"""Resource providers and arena-owned resource records."""

from .resource import Resource, ResourceKind
from .provider import ResourceProvider, join_locator, locator_extension, normalize_locator
from .providers import FileResourceProvider, MemoryResourceProvider, ZipResourceProvider
from .cache import ResourceCache

__all__ = [
    "Resource",
    "ResourceKind",
    "ResourceProvider",
    "join_locator",
    "locator_extension",
    "normalize_locator",
    "FileResourceProvider",
    "MemoryResourceProvider",
    "ZipResourceProvider",
    "ResourceCache",
]
