"""Base classes and protocols for format loaders."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol, runtime_checkable

from ..core.arena import AssemblyArena
from ..resources.provider import ResourceProvider
from .options import OptionsDescriptor


@dataclass(frozen=True)
class LoaderInfo:
    """Static description of a loader.

    Attributes:
        name: Unique loader name, also the key for per-loader config options
        extensions: Lowercase file extensions without the leading dot
        mime_types: MIME types the loader accepts
        priority: Higher wins when several loaders are registered via
            register_loader() for the same key
        options: Options the loader accepts
    """

    name: str
    extensions: tuple[str, ...] = ()
    mime_types: tuple[str, ...] = ()
    priority: int = 0
    options: OptionsDescriptor = field(default_factory=OptionsDescriptor)


@runtime_checkable
class Loader(Protocol):
    """Protocol for format adapters.

    Any object with an ``info`` and a load() that populates the given arena
    satisfies this protocol. The loader never creates the arena itself.
    """

    info: LoaderInfo

    def load(
        self,
        provider: ResourceProvider,
        locator: str,
        arena: AssemblyArena,
        options: Mapping[str, Any],
    ) -> None:
        """Read ``locator`` through ``provider`` and populate ``arena``."""
        ...


class StreamLoader(ABC):
    """Abstract base class for loaders that parse a single byte stream.

    Subclasses implement parse(); load() reads the main resource through the
    provider. Auxiliary files must still be read through the provider by the
    subclass.
    """

    info: LoaderInfo

    def load(
        self,
        provider: ResourceProvider,
        locator: str,
        arena: AssemblyArena,
        options: Mapping[str, Any],
    ) -> None:
        with provider.open(locator) as stream:
            data = stream.read()
        self.parse(data, provider, locator, arena, options)

    @abstractmethod
    def parse(
        self,
        data: bytes,
        provider: ResourceProvider,
        locator: str,
        arena: AssemblyArena,
        options: Mapping[str, Any],
    ) -> None:
        """Populate the arena from the bytes of the main resource."""
        pass
