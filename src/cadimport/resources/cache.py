"""Locator -> ResourceId cache so shared files are stored once per arena."""

from __future__ import annotations

import logging
import mimetypes
import threading
from typing import TYPE_CHECKING

from ..core.ids import ResourceId
from .provider import ResourceProvider, normalize_locator
from .resource import ResourceKind

if TYPE_CHECKING:
    from ..core.arena import AssemblyArena

logger = logging.getLogger(__name__)


class ResourceCache:
    """Reads each locator through the provider once and stores it in the arena.

    Several materials referencing the same texture file get the same
    ResourceId.
    """

    def __init__(self, provider: ResourceProvider, arena: AssemblyArena) -> None:
        self.provider = provider
        self.arena = arena
        self._cache: dict[str, ResourceId] = {}
        self._lock = threading.Lock()

    def resolve(self, locator: str, kind: ResourceKind = ResourceKind.BUFFER) -> ResourceId:
        """Return the id of the resource at ``locator``, reading it on first use.

        Raises:
            NotFound, AccessDenied, IoFailure: From the provider
        """
        key = normalize_locator(locator)
        with self._lock:
            if key in self._cache:
                return self._cache[key]

            with self.provider.open(key) as stream:
                data = stream.read()
            mime_type, _ = mimetypes.guess_type(key)
            resource_id = self.arena.add_resource(kind, data, mime_type=mime_type, locator=key)
            self._cache[key] = resource_id
            logger.debug("Loaded resource %r (%d bytes) as %s", key, len(data), resource_id)
            return resource_id

    def __contains__(self, locator: str) -> bool:
        return normalize_locator(locator) in self._cache

    def __len__(self) -> int:
        return len(self._cache)
