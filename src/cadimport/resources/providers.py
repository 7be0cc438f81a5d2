"""Concrete resource providers: directory, in-memory and zip archive."""

from __future__ import annotations

import io
import logging
import zipfile
from pathlib import Path
from typing import BinaryIO, Mapping

from ..errors import AccessDenied, IoFailure, NotFound
from .provider import normalize_locator

logger = logging.getLogger(__name__)


class FileResourceProvider:
    """Serves files below a root directory.

    Locators that resolve outside the root (through '..' or symlinks) are
    refused with AccessDenied.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).resolve()

    def _path(self, locator: str) -> Path:
        path = (self.root / normalize_locator(locator)).resolve()
        if path != self.root and self.root not in path.parents:
            raise AccessDenied(locator, f"Locator {locator!r} escapes provider root {self.root}")
        return path

    def open(self, locator: str) -> BinaryIO:
        path = self._path(locator)
        try:
            return open(path, "rb")
        except FileNotFoundError:
            raise NotFound(locator, f"No such resource: {locator!r}") from None
        except PermissionError as e:
            raise AccessDenied(locator, f"Permission denied for {locator!r}") from e
        except OSError as e:
            raise IoFailure(locator, f"Failed to open {locator!r}: {e}") from e

    def list(self, locator: str = "") -> list[str]:
        path = self._path(locator)
        if not path.is_dir():
            raise NotFound(locator, f"No such directory: {locator!r}")
        try:
            entries = sorted(path.iterdir())
        except PermissionError as e:
            raise AccessDenied(locator, f"Permission denied for {locator!r}") from e
        except OSError as e:
            raise IoFailure(locator, f"Failed to list {locator!r}: {e}") from e
        return [entry.relative_to(self.root).as_posix() for entry in entries]

    def __repr__(self) -> str:
        return f"FileResourceProvider({str(self.root)!r})"


class MemoryResourceProvider:
    """Serves byte strings from a dict; handy for tests and embedded data.

    Example:
        provider = MemoryResourceProvider({"part.off": off_bytes})
    """

    def __init__(self, files: Mapping[str, bytes | str] | None = None) -> None:
        self._files: dict[str, bytes] = {}
        for locator, data in (files or {}).items():
            self.add(locator, data)

    def add(self, locator: str, data: bytes | str) -> None:
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._files[normalize_locator(locator)] = bytes(data)

    def open(self, locator: str) -> BinaryIO:
        data = self._files.get(normalize_locator(locator))
        if data is None:
            raise NotFound(locator, f"No such resource: {locator!r}")
        return io.BytesIO(data)

    def list(self, locator: str = "") -> list[str]:
        prefix = normalize_locator(locator)
        if prefix:
            prefix += "/"
        entries = set()
        for name in self._files:
            if name.startswith(prefix):
                head = name[len(prefix):].split("/", 1)[0]
                entries.add(prefix + head)
        return sorted(entries)

    def __repr__(self) -> str:
        return f"MemoryResourceProvider({len(self._files)} files)"


class ZipResourceProvider:
    """Serves the members of a zip archive (e.g. a zipped glTF with its buffers)."""

    def __init__(self, archive: Path | str | BinaryIO) -> None:
        try:
            self._zip = zipfile.ZipFile(archive)
        except FileNotFoundError:
            raise NotFound(str(archive), f"No such archive: {archive}") from None
        except (OSError, zipfile.BadZipFile) as e:
            raise IoFailure(str(archive), f"Cannot read archive {archive}: {e}") from e
        self._names = {normalize_locator(name): name for name in self._zip.namelist()
                       if not name.endswith("/")}
        logger.debug("Opened zip archive with %d members", len(self._names))

    def open(self, locator: str) -> BinaryIO:
        name = self._names.get(normalize_locator(locator))
        if name is None:
            raise NotFound(locator, f"No such archive member: {locator!r}")
        try:
            return io.BytesIO(self._zip.read(name))
        except (OSError, zipfile.BadZipFile) as e:
            raise IoFailure(locator, f"Failed to read {locator!r}: {e}") from e

    def list(self, locator: str = "") -> list[str]:
        prefix = normalize_locator(locator)
        if prefix:
            prefix += "/"
        return sorted({
            prefix + name[len(prefix):].split("/", 1)[0]
            for name in self._names
            if name.startswith(prefix)
        })

    def close(self) -> None:
        self._zip.close()

    def __enter__(self) -> ZipResourceProvider:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
