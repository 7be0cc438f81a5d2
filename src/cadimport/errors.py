"""Error types raised by the import core.

Every error derives from CadImportError and from the builtin exception that
matches its meaning, so callers can catch either.
"""

from __future__ import annotations


class CadImportError(Exception):
    """Base class for all errors raised by cadimport."""


class InvalidParent(CadImportError, ValueError):
    """A node was requested under a missing parent, or as a second root."""


class UnknownNode(CadImportError, LookupError):
    """A node id is absent from the arena (never allocated or removed)."""

    def __init__(self, node_id: object) -> None:
        super().__init__(f"Unknown node id: {node_id}")
        self.node_id = node_id


class UnknownPrimitive(CadImportError, LookupError):
    """A primitive id is absent from the arena."""

    def __init__(self, primitive_id: object) -> None:
        super().__init__(f"Unknown primitive id: {primitive_id}")
        self.primitive_id = primitive_id


class UnknownResource(CadImportError, LookupError):
    """A resource id is absent from the arena (never added or evicted)."""

    def __init__(self, resource_id: object) -> None:
        super().__init__(f"Unknown resource id: {resource_id}")
        self.resource_id = resource_id


class MalformedPrimitive(CadImportError, ValueError):
    """Primitive data violates the attribute length or index bounds rules."""


class KeyNotFound(CadImportError, KeyError):
    """A metadata key is not set on the node."""

    def __init__(self, node_id: object, key: str) -> None:
        super().__init__(f"Metadata key {key!r} not set on node {node_id}")
        self.node_id = node_id
        self.key = key

    def __str__(self) -> str:
        return str(self.args[0])


class FrozenArena(CadImportError, RuntimeError):
    """A mutation was attempted on a frozen arena."""


class ResourceError(CadImportError, OSError):
    """Base class for failures reported by a resource provider."""

    def __init__(self, locator: str, message: str) -> None:
        super().__init__(message)
        self.locator = locator

    def __str__(self) -> str:
        return str(self.args[0])


class NotFound(ResourceError, FileNotFoundError):
    """The locator does not name an existing resource."""


class AccessDenied(ResourceError, PermissionError):
    """The provider refused to serve the locator."""


class IoFailure(ResourceError):
    """Reading the resource failed."""


class UnsupportedFormat(CadImportError, LookupError):
    """No loader is registered for the extension or MIME type."""

    def __init__(self, locator: str, mime_type: str | None = None) -> None:
        detail = f" (mime type {mime_type!r})" if mime_type else ""
        super().__init__(f"No loader registered for {locator!r}{detail}")
        self.locator = locator
        self.mime_type = mime_type


class AdapterFailure(CadImportError, RuntimeError):
    """A loader raised while populating an arena.

    The loader's exception is kept unchanged in ``cause`` (and ``__cause__``).
    """

    def __init__(self, loader_name: str, locator: str, cause: BaseException) -> None:
        super().__init__(f"Loader {loader_name!r} failed on {locator!r}: {cause}")
        self.loader_name = loader_name
        self.locator = locator
        self.cause = cause


class InvalidOption(CadImportError, ValueError):
    """A loader option is unknown or its value failed validation."""


class RegistryFrozen(CadImportError, RuntimeError):
    """A registration was attempted on a frozen loader registry."""
