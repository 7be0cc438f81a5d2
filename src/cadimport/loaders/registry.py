"""Loader registry: maps extensions and MIME types to loaders and runs loads.

Dispatch for a locator tries, in order:

1. the locator's file extension
2. the caller supplied MIME type
3. the configured extension -> MIME alias for the extension

A load either returns a fully populated, frozen arena or raises. The arena of a
failed load is emptied before the error propagates.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Any, Mapping

from ..config import ImportConfig
from ..core.arena import AssemblyArena
from ..errors import AdapterFailure, CadImportError, RegistryFrozen, UnsupportedFormat
from ..resources.provider import ResourceProvider, locator_extension
from .base import Loader
from .options import resolve_options
from .trimesh_loader import TrimeshLoader

logger = logging.getLogger(__name__)


class LoadState(Enum):
    """States of a single load call."""

    IDLE = "idle"
    DISPATCHING = "dispatching"
    ADAPTING = "adapting"
    POPULATED = "populated"
    FAILED = "failed"


def _normalize_key(key: str) -> tuple[bool, str]:
    """Return (is_mime, normalized key) for a registration or lookup key."""
    key = key.strip().lower()
    if "/" in key:
        return True, key.split(";", 1)[0].strip()
    return False, key.lstrip(".")


class LoadJob:
    """One load call: dispatch, adapt, and the resulting state.

    Created by LoaderRegistry.job(); run() may be called once.

    Attributes:
        state: Current LoadState
        loader: Loader chosen by dispatch, once known
        arena: The populated arena after a successful run
        error: The raised error after a failed run
    """

    def __init__(
        self,
        registry: LoaderRegistry,
        locator: str,
        provider: ResourceProvider,
        mime_type: str | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> None:
        self.registry = registry
        self.locator = locator
        self.provider = provider
        self.mime_type = mime_type
        self.options = dict(options or {})

        self.state = LoadState.IDLE
        self.loader: Loader | None = None
        self.arena: AssemblyArena | None = None
        self.error: CadImportError | None = None

    def _transition(self, state: LoadState) -> None:
        logger.debug("Load of %r: %s -> %s", self.locator, self.state.value, state.value)
        self.state = state

    def _fail(self, error: CadImportError) -> None:
        self.error = error
        self._transition(LoadState.FAILED)

    def run(self) -> AssemblyArena:
        """Perform the load.

        Returns:
            The populated, frozen arena

        Raises:
            UnsupportedFormat: If no loader matches
            InvalidOption: If the options are rejected
            AdapterFailure: If the loader raised; the loader's exception is the cause
        """
        if self.state is not LoadState.IDLE:
            raise RuntimeError(f"Load job for {self.locator!r} already ran ({self.state.value})")

        self._transition(LoadState.DISPATCHING)
        try:
            loader = self.registry.resolve(self.locator, self.mime_type)
            self.loader = loader
            options = self.registry.config.options_for(loader.info.name)
            options.update(self.options)
            if self.mime_type is not None:
                options.setdefault("mime_type", self.mime_type)
            options = resolve_options(loader.info.options, options)
        except CadImportError as e:
            self._fail(e)
            raise

        arena = AssemblyArena()
        self._transition(LoadState.ADAPTING)
        try:
            loader.load(self.provider, self.locator, arena, options)
            if options["target_unit"] is not None:
                arena.rescale_to(options["target_unit"])
        except Exception as e:
            arena.discard()
            error = AdapterFailure(loader.info.name, self.locator, e)
            logger.warning("Loader %r failed on %r: %s", loader.info.name, self.locator, e)
            self._fail(error)
            raise error from e

        arena.freeze()
        self.arena = arena
        self._transition(LoadState.POPULATED)
        logger.info(
            "Loaded %r with %r: %d nodes, %d primitives",
            self.locator, loader.info.name, len(arena), arena.primitive_count,
        )
        return arena


class LoaderRegistry:
    """Dispatch table from extensions and MIME types to loaders.

    Example:
        registry = LoaderRegistry()
        registry.register("off", OffLoader())
        arena = registry.load("part.off", FileResourceProvider("models"))
    """

    def __init__(self, config: ImportConfig | None = None) -> None:
        """Create an empty registry.

        Args:
            config: Extension aliases and default loader options
        """
        self.config = config if config is not None else ImportConfig()
        self._by_extension: dict[str, Loader] = {}
        self._by_mime: dict[str, Loader] = {}
        self._lock = threading.Lock()
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Make the dispatch table read-only so it can be shared between threads."""
        self._frozen = True

    def _table(self, is_mime: bool) -> dict[str, Loader]:
        return self._by_mime if is_mime else self._by_extension

    def register(self, key: str, loader: Loader) -> None:
        """Register a loader under an extension ("off", ".glb") or a MIME type.

        Keys are case-insensitive. Registering an existing key replaces the
        previous loader and logs a warning.

        Raises:
            TypeError: If ``loader`` does not implement the Loader protocol
            ValueError: If ``key`` is empty
            RegistryFrozen: If the registry is frozen
        """
        if not isinstance(loader, Loader):
            raise TypeError(f"{type(loader).__name__} does not implement the Loader protocol")
        is_mime, normalized = _normalize_key(key)
        if not normalized:
            raise ValueError(f"Invalid registry key: {key!r}")

        with self._lock:
            if self._frozen:
                raise RegistryFrozen(f"Cannot register {key!r}: registry is frozen")
            table = self._table(is_mime)
            previous = table.get(normalized)
            if previous is not None and previous is not loader:
                logger.warning(
                    "Replacing loader %r for %s %r with %r",
                    previous.info.name,
                    "MIME type" if is_mime else "extension",
                    normalized,
                    loader.info.name,
                )
            table[normalized] = loader

    def register_loader(self, loader: Loader) -> None:
        """Register a loader under every extension and MIME type it declares.

        A key already held by a loader of higher priority is left alone.
        """
        info = loader.info
        for key in (*info.extensions, *info.mime_types):
            is_mime, normalized = _normalize_key(key)
            current = self._table(is_mime).get(normalized)
            if current is not None and current.info.priority > info.priority:
                logger.debug(
                    "Keeping %r for %r (priority %d > %d)",
                    current.info.name, normalized, current.info.priority, info.priority,
                )
                continue
            self.register(key, loader)

    def unregister(self, key: str) -> Loader:
        """Remove a key from the table and return the loader it mapped to.

        Raises:
            KeyError: If the key is not registered
            RegistryFrozen: If the registry is frozen
        """
        is_mime, normalized = _normalize_key(key)
        with self._lock:
            if self._frozen:
                raise RegistryFrozen(f"Cannot unregister {key!r}: registry is frozen")
            return self._table(is_mime).pop(normalized)

    def keys(self) -> set[str]:
        """All registered extensions and MIME types."""
        return set(self._by_extension) | set(self._by_mime)

    def loaders(self) -> list[Loader]:
        """Distinct registered loaders, in registration order."""
        seen: dict[int, Loader] = {}
        for loader in (*self._by_extension.values(), *self._by_mime.values()):
            seen.setdefault(id(loader), loader)
        return list(seen.values())

    def resolve(self, locator: str, mime_type: str | None = None) -> Loader:
        """Pick the loader for a locator.

        Raises:
            UnsupportedFormat: If neither the extension, the MIME type nor a
                configured alias matches
        """
        extension = locator_extension(locator)
        if extension:
            loader = self._by_extension.get(extension)
            if loader is not None:
                logger.debug("Dispatching %r by extension %r to %r", locator, extension, loader.info.name)
                return loader

        if mime_type:
            _, mime = _normalize_key(mime_type)
            loader = self._by_mime.get(mime)
            if loader is not None:
                logger.debug("Dispatching %r by MIME type %r to %r", locator, mime, loader.info.name)
                return loader

        alias = self.config.extensions.get(extension) if extension else None
        if alias is not None:
            loader = self._by_mime.get(alias)
            if loader is not None:
                logger.debug("Dispatching %r by alias %r -> %r", locator, extension, alias)
                return loader

        raise UnsupportedFormat(locator, mime_type)

    def job(
        self,
        locator: str,
        provider: ResourceProvider,
        mime_type: str | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> LoadJob:
        """Create a load job without running it."""
        return LoadJob(self, locator, provider, mime_type=mime_type, options=options)

    def load(
        self,
        locator: str,
        provider: ResourceProvider,
        mime_type: str | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> AssemblyArena:
        """Load ``locator`` from ``provider`` into a new arena.

        Args:
            locator: Locator of the main file
            provider: Where the main file and any auxiliary files are read from
            mime_type: Optional MIME type, used when the extension is unknown
            options: Loader options; override configured defaults

        Returns:
            The populated arena, frozen

        Raises:
            UnsupportedFormat: If no loader matches
            InvalidOption: If the options are rejected
            AdapterFailure: If the loader failed
        """
        return self.job(locator, provider, mime_type=mime_type, options=options).run()

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        is_mime, normalized = _normalize_key(key)
        return normalized in self._table(is_mime)

    def __repr__(self) -> str:
        names = ", ".join(loader.info.name for loader in self.loaders())
        return f"LoaderRegistry([{names}])"


def default_registry(config: ImportConfig | None = None) -> LoaderRegistry:
    """Create a registry with the bundled trimesh loader registered."""
    registry = LoaderRegistry(config=config)
    registry.register_loader(TrimeshLoader())
    return registry
