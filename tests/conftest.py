"""Shared fixtures: small in-test loaders and providers."""

from typing import Any, Mapping

import numpy as np
import pytest

from cadimport import (
    ROOT,
    AssemblyArena,
    LengthUnit,
    LoaderInfo,
    LoaderRegistry,
    MemoryResourceProvider,
    Primitive,
)
from cadimport.loaders import OptionsDescriptor, bool_option

# Two triangles sharing an edge: 4 vertices, 6 emitted corners
SOUP_TEXT = """\
v 0 0 0
v 1 0 0
v 1 1 0
v 0 1 0
f 0 1 2
f 0 2 3
"""


class SoupLoader:
    """Reads a tiny 'v x y z' / 'f a b c' format into one non-indexed primitive."""

    info = LoaderInfo(
        name="soup",
        extensions=("soup",),
        mime_types=("model/x-soup",),
        options=OptionsDescriptor([bool_option("flip", "Reverse triangle winding")]),
    )

    def __init__(self, length_unit: LengthUnit = LengthUnit.METER) -> None:
        self.length_unit = length_unit
        self.calls: list[dict[str, Any]] = []

    def load(
        self,
        provider,
        locator: str,
        arena: AssemblyArena,
        options: Mapping[str, Any],
    ) -> None:
        self.calls.append(dict(options))
        with provider.open(locator) as stream:
            lines = stream.read().decode("utf-8").splitlines()

        vertices = [[float(v) for v in line.split()[1:]] for line in lines if line.startswith("v ")]
        faces = [[int(i) for i in line.split()[1:]] for line in lines if line.startswith("f ")]
        if options["flip"]:
            faces = [face[::-1] for face in faces]

        positions = np.asarray(vertices)[np.asarray(faces).reshape(-1)]
        arena.length_unit = self.length_unit
        root = arena.create_node(ROOT, name=locator)
        arena.attach_geometry(root, Primitive.non_indexed(positions))


class FailingLoader:
    """Creates a few nodes, then raises."""

    info = LoaderInfo(name="failing", extensions=("bad",))

    def __init__(self) -> None:
        self.arena: AssemblyArena | None = None
        self.error = ValueError("corrupt header")

    def load(self, provider, locator, arena, options) -> None:
        self.arena = arena
        root = arena.create_node(ROOT, "root")
        child = arena.create_node(root, "child")
        arena.create_node(child, "grandchild")
        raise self.error


@pytest.fixture
def soup_loader() -> SoupLoader:
    return SoupLoader()


@pytest.fixture
def provider() -> MemoryResourceProvider:
    return MemoryResourceProvider({
        "part.soup": SOUP_TEXT,
        "blob": SOUP_TEXT,
        "part.mesh": SOUP_TEXT,
        "broken.bad": b"\x00\x01",
    })


@pytest.fixture
def registry(soup_loader: SoupLoader) -> LoaderRegistry:
    registry = LoaderRegistry()
    registry.register_loader(soup_loader)
    return registry


@pytest.fixture
def triangle() -> Primitive:
    return Primitive.non_indexed([[0, 0, 0], [1, 0, 0], [0, 1, 0]])
