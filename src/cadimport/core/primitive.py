"""Primitive and Vertices classes for drawable geometry.

A Primitive is one drawable unit in one of two variants:

- indexed: vertex attributes plus an index table listing the vertices in
  emission order
- non-indexed: vertex attributes consumed directly in emission order (flat
  triangle soups and point clouds)

Both variants validate on construction; a primitive that exists is well formed.
Conversion between the variants is always explicit (to_indexed/to_non_indexed).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, Flag, IntEnum, auto
from typing import TYPE_CHECKING, Sequence

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ..errors import MalformedPrimitive
from .geometry import (
    compute_vertex_normals,
    fan_to_triangles,
    strip_to_segments,
    strip_to_triangles,
)

if TYPE_CHECKING:
    import trimesh
    from ..materials.material import Material


class PrimitiveType(IntEnum):
    """How emitted vertices combine into primitives (glTF mode numbering)."""

    POINTS = 0
    LINES = 1
    LINE_LOOP = 2
    LINE_STRIP = 3
    TRIANGLES = 4
    TRIANGLE_STRIP = 5
    TRIANGLE_FAN = 6

    @property
    def is_surface(self) -> bool:
        return self >= PrimitiveType.TRIANGLES

    @property
    def is_line(self) -> bool:
        return PrimitiveType.LINES <= self <= PrimitiveType.LINE_STRIP


class PrimitiveKind(Enum):
    """The two primitive variants."""

    INDEXED = "indexed"
    NON_INDEXED = "non_indexed"


class Attribute(Flag):
    """Vertex attributes a primitive can carry."""

    POSITION = auto()
    NORMAL = auto()
    COLOR = auto()
    TEXCOORD = auto()


# (multiple of, minimum) on the number of emitted vertices; zero is always allowed
_COUNT_RULES: dict[PrimitiveType, tuple[int, int]] = {
    PrimitiveType.POINTS: (1, 1),
    PrimitiveType.LINES: (2, 2),
    PrimitiveType.LINE_LOOP: (1, 2),
    PrimitiveType.LINE_STRIP: (1, 2),
    PrimitiveType.TRIANGLES: (3, 3),
    PrimitiveType.TRIANGLE_STRIP: (1, 3),
    PrimitiveType.TRIANGLE_FAN: (1, 3),
}


def _float_array(name: str, data: ArrayLike) -> NDArray[np.float64]:
    try:
        return np.array(data, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise MalformedPrimitive(f"{name} is not numeric: {exc}") from exc


def _source_normals(mesh: trimesh.Trimesh) -> NDArray[np.float64] | None:
    """Vertex normals the mesh was created with, or None.

    trimesh computes vertex_normals lazily on access, so this checks its cache
    without triggering the computation. There is no public accessor; trimesh's
    own glTF and PLY exporters make the same check (trimesh 4.x).
    """
    if "vertex_normals" in mesh._cache:
        return np.array(mesh.vertex_normals, dtype=np.float64)
    return None


def _attribute_array(name: str, data: ArrayLike, width: int) -> NDArray[np.float64]:
    array = _float_array(name, data)
    if array.size == 0:
        array = array.reshape(0, width)
    if array.ndim != 2 or array.shape[1] != width:
        raise MalformedPrimitive(
            f"{name} must have shape (N, {width}), got {array.shape}"
        )
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class Vertices:
    """Per-vertex attribute arrays of equal length.

    Attributes:
        positions: Nx3 array of vertex positions
        normals: Optional Nx3 array of vertex normals
        colors: Optional Nx4 array of RGBA colors (0-1); Nx3 input gets alpha 1
        texcoords: Optional Nx2 array of texture coordinates
    """

    positions: NDArray[np.float64]
    normals: NDArray[np.float64] | None = None
    colors: NDArray[np.float64] | None = None
    texcoords: NDArray[np.float64] | None = None

    def __post_init__(self) -> None:
        positions = _attribute_array("positions", self.positions, 3)
        object.__setattr__(self, "positions", positions)
        count = len(positions)

        if self.normals is not None:
            object.__setattr__(self, "normals", _attribute_array("normals", self.normals, 3))
        if self.colors is not None:
            colors = _float_array("colors", self.colors)
            if colors.ndim == 2 and colors.shape[1] == 3:
                colors = np.hstack([colors, np.ones((len(colors), 1))])
            object.__setattr__(self, "colors", _attribute_array("colors", colors, 4))
        if self.texcoords is not None:
            object.__setattr__(
                self, "texcoords", _attribute_array("texcoords", self.texcoords, 2)
            )

        for name in ("normals", "colors", "texcoords"):
            array = getattr(self, name)
            if array is not None and len(array) != count:
                raise MalformedPrimitive(
                    f"Got {count} vertices, but {name} attribute has {len(array)} entries"
                )

    def __len__(self) -> int:
        return len(self.positions)

    @property
    def attributes(self) -> Attribute:
        """The attributes present on these vertices."""
        present = Attribute.POSITION
        if self.normals is not None:
            present |= Attribute.NORMAL
        if self.colors is not None:
            present |= Attribute.COLOR
        if self.texcoords is not None:
            present |= Attribute.TEXCOORD
        return present

    def take(self, indices: NDArray[np.int64]) -> Vertices:
        """Gather the vertices at ``indices`` (repeats allowed)."""
        return Vertices(
            positions=self.positions[indices],
            normals=self.normals[indices] if self.normals is not None else None,
            colors=self.colors[indices] if self.colors is not None else None,
            texcoords=self.texcoords[indices] if self.texcoords is not None else None,
        )

    def stacked(self) -> NDArray[np.float64]:
        """All present attributes side by side, one row per vertex."""
        columns = [self.positions]
        for array in (self.normals, self.colors, self.texcoords):
            if array is not None:
                columns.append(array)
        return np.hstack(columns)

    def equals(self, other: Vertices) -> bool:
        """True if both carry the same attributes with identical values."""
        if self.attributes != other.attributes or len(self) != len(other):
            return False
        return bool(np.array_equal(self.stacked(), other.stacked()))

    @staticmethod
    def concatenate(parts: Sequence[Vertices]) -> Vertices:
        """Concatenate vertex sets, keeping only attributes all of them have."""
        if not parts:
            return Vertices(positions=np.empty((0, 3)))
        common = parts[0].attributes
        for part in parts[1:]:
            common &= part.attributes

        def _stack(name: str, flag: Attribute) -> NDArray[np.float64] | None:
            if flag not in common:
                return None
            return np.vstack([getattr(part, name) for part in parts])

        return Vertices(
            positions=np.vstack([part.positions for part in parts]),
            normals=_stack("normals", Attribute.NORMAL),
            colors=_stack("colors", Attribute.COLOR),
            texcoords=_stack("texcoords", Attribute.TEXCOORD),
        )


class Primitive:
    """One drawable geometric unit, indexed or non-indexed.

    Construction validates that all attribute arrays have equal length, that
    indices are integers within bounds, and that the number of emitted
    vertices fits the primitive type. Violations raise MalformedPrimitive.
    Primitives are immutable once built.
    """

    def __init__(
        self,
        vertices: Vertices,
        primitive_type: PrimitiveType = PrimitiveType.TRIANGLES,
        indices: ArrayLike | None = None,
        material: Material | None = None,
    ) -> None:
        """Create a primitive.

        Args:
            vertices: Vertex attribute arrays
            primitive_type: How emitted vertices form primitives
            indices: Optional index table (any shape, read in row-major order).
                None makes a non-indexed primitive.
            material: Optional material
        """
        if not isinstance(vertices, Vertices):
            raise MalformedPrimitive(
                f"vertices must be a Vertices instance, got {type(vertices).__name__}"
            )
        self.vertices = vertices
        self.primitive_type = PrimitiveType(primitive_type)
        self.material = material
        self.indices = self._validate_indices(indices, len(vertices))
        self._validate_count(self.emitted_count)

    @classmethod
    def indexed(
        cls,
        positions: ArrayLike,
        indices: ArrayLike,
        primitive_type: PrimitiveType = PrimitiveType.TRIANGLES,
        normals: ArrayLike | None = None,
        colors: ArrayLike | None = None,
        texcoords: ArrayLike | None = None,
        material: Material | None = None,
    ) -> Primitive:
        """Create an indexed primitive from raw attribute arrays."""
        vertices = Vertices(positions, normals=normals, colors=colors, texcoords=texcoords)
        return cls(vertices, primitive_type, indices=indices, material=material)

    @classmethod
    def non_indexed(
        cls,
        positions: ArrayLike,
        primitive_type: PrimitiveType = PrimitiveType.TRIANGLES,
        normals: ArrayLike | None = None,
        colors: ArrayLike | None = None,
        texcoords: ArrayLike | None = None,
        material: Material | None = None,
    ) -> Primitive:
        """Create a non-indexed primitive from raw attribute arrays."""
        vertices = Vertices(positions, normals=normals, colors=colors, texcoords=texcoords)
        return cls(vertices, primitive_type, indices=None, material=material)

    @staticmethod
    def _validate_indices(
        indices: ArrayLike | None, vertex_count: int
    ) -> NDArray[np.int64] | None:
        if indices is None:
            return None
        array = np.asarray(indices)
        if array.size == 0:
            array = np.empty(0, dtype=np.int64)
        elif not np.issubdtype(array.dtype, np.integer):
            raise MalformedPrimitive(f"Indices must be integers, got dtype {array.dtype}")
        array = array.astype(np.int64).reshape(-1)

        if len(array):
            low, high = int(array.min()), int(array.max())
            if low < 0:
                raise MalformedPrimitive(f"Indices must be non-negative, got {low}")
            if high >= vertex_count:
                raise MalformedPrimitive(
                    f"Indices reference vertex {high}, but only got {vertex_count} vertices"
                )
        array.setflags(write=False)
        return array

    def _validate_count(self, count: int) -> None:
        if count == 0:
            return
        multiple, minimum = _COUNT_RULES[self.primitive_type]
        name = self.primitive_type.name.lower()
        if count < minimum:
            raise MalformedPrimitive(
                f"{name} needs at least {minimum} emitted vertices, got {count}"
            )
        if count % multiple != 0:
            raise MalformedPrimitive(
                f"{name} needs a multiple of {multiple} emitted vertices, got {count}"
            )

    @property
    def kind(self) -> PrimitiveKind:
        return PrimitiveKind.NON_INDEXED if self.indices is None else PrimitiveKind.INDEXED

    @property
    def is_indexed(self) -> bool:
        return self.indices is not None

    @property
    def attributes(self) -> Attribute:
        """Attributes present on every vertex of this primitive."""
        return self.vertices.attributes

    @property
    def vertex_count(self) -> int:
        """Number of stored vertices."""
        return len(self.vertices)

    @property
    def emitted_count(self) -> int:
        """Number of vertices emitted in draw order (index count if indexed)."""
        if self.indices is not None:
            return len(self.indices)
        return len(self.vertices)

    @property
    def num_primitives(self) -> int:
        """Number of points, lines or triangles this primitive draws."""
        n = self.emitted_count
        ptype = self.primitive_type
        if ptype in (PrimitiveType.POINTS, PrimitiveType.LINE_LOOP):
            return n
        if ptype is PrimitiveType.LINES:
            return n // 2
        if ptype is PrimitiveType.LINE_STRIP:
            return max(n - 1, 0)
        if ptype is PrimitiveType.TRIANGLES:
            return n // 3
        return max(n - 2, 0)

    @property
    def max_index(self) -> int | None:
        """Highest referenced vertex, or None if nothing is emitted."""
        if self.emitted_count == 0:
            return None
        if self.indices is None:
            return len(self.vertices) - 1
        return int(self.indices.max())

    def emission_indices(self) -> NDArray[np.int64]:
        """Vertex indices in emission order, for either variant."""
        if self.indices is not None:
            return self.indices
        return np.arange(len(self.vertices), dtype=np.int64)

    def emitted_vertices(self) -> Vertices:
        """The vertex sequence exactly as it is emitted."""
        if self.indices is None:
            return self.vertices
        return self.vertices.take(self.indices)

    def to_indexed(self) -> Primitive:
        """Deduplicate emitted vertices into an indexed primitive.

        Vertices are merged only when every attribute is bit-identical; unique
        vertices keep the order of their first emission. Expanding the result
        reproduces the original emitted sequence.
        """
        emitted = self.emitted_vertices()
        if len(emitted) == 0:
            return Primitive(emitted, self.primitive_type, np.empty(0, dtype=np.int64), self.material)

        rows = np.ascontiguousarray(emitted.stacked())
        # Compare raw bytes so -0.0/0.0 and NaN payloads never merge
        keys = rows.view(np.dtype((np.void, rows.dtype.itemsize * rows.shape[1]))).reshape(-1)
        _, first, inverse = np.unique(keys, return_index=True, return_inverse=True)
        inverse = inverse.reshape(-1)

        order = np.argsort(first, kind="stable")
        rank = np.empty_like(order)
        rank[order] = np.arange(len(order))

        unique_vertices = emitted.take(first[order])
        return Primitive(unique_vertices, self.primitive_type, rank[inverse], self.material)

    def to_non_indexed(self) -> Primitive:
        """Expand into a non-indexed primitive in emission order."""
        return Primitive(self.emitted_vertices(), self.primitive_type, None, self.material)

    def triangles(self) -> NDArray[np.int64]:
        """Triangle corner indices into ``vertices`` as an Mx3 array.

        Strips and fans are decomposed keeping a consistent winding. Point and
        line primitives have no triangles.
        """
        sequence = self.emission_indices()
        if self.primitive_type is PrimitiveType.TRIANGLES:
            return sequence.reshape(-1, 3)
        if self.primitive_type is PrimitiveType.TRIANGLE_STRIP:
            return strip_to_triangles(sequence)
        if self.primitive_type is PrimitiveType.TRIANGLE_FAN:
            return fan_to_triangles(sequence)
        return np.empty((0, 3), dtype=np.int64)

    def segments(self) -> NDArray[np.int64]:
        """Line segment indices into ``vertices`` as an Mx2 array."""
        sequence = self.emission_indices()
        if self.primitive_type is PrimitiveType.LINES:
            return sequence.reshape(-1, 2)
        if self.primitive_type is PrimitiveType.LINE_STRIP:
            return strip_to_segments(sequence)
        if self.primitive_type is PrimitiveType.LINE_LOOP:
            return strip_to_segments(sequence, closed=True)
        return np.empty((0, 2), dtype=np.int64)

    def with_normals(self) -> Primitive:
        """Return a copy with smooth vertex normals computed from triangles."""
        normals = compute_vertex_normals(self.vertices.positions, self.triangles())
        vertices = Vertices(
            positions=self.vertices.positions,
            normals=normals,
            colors=self.vertices.colors,
            texcoords=self.vertices.texcoords,
        )
        return Primitive(vertices, self.primitive_type, self.indices, self.material)

    def transform(self, matrix: NDArray[np.float64]) -> Primitive:
        """Apply a 4x4 transformation matrix, returning a new primitive.

        Args:
            matrix: 4x4 transformation matrix

        Returns:
            New Primitive with transformed positions and normals
        """
        matrix = np.asarray(matrix, dtype=np.float64)
        positions = self.vertices.positions @ matrix[:3, :3].T + matrix[:3, 3]

        normals = None
        if self.vertices.normals is not None:
            # Inverse transpose of the upper-left 3x3
            normal_matrix = np.linalg.inv(matrix[:3, :3]).T
            normals = self.vertices.normals @ normal_matrix.T
            norms = np.linalg.norm(normals, axis=1, keepdims=True)
            normals = np.divide(normals, norms, where=norms != 0, out=normals)

        vertices = Vertices(
            positions=positions,
            normals=normals,
            colors=self.vertices.colors,
            texcoords=self.vertices.texcoords,
        )
        return Primitive(vertices, self.primitive_type, self.indices, self.material)

    @staticmethod
    def merge(primitives: Sequence[Primitive]) -> Primitive:
        """Merge primitives into one indexed primitive.

        Surface primitives are merged as a triangle list, line primitives as a
        line list and points as points. All inputs must be of the same family.
        Only attributes every input carries are kept; materials are dropped.

        Raises:
            ValueError: If the primitives mix points, lines and surfaces
        """
        if not primitives:
            return Primitive(
                Vertices(positions=np.empty((0, 3))),
                PrimitiveType.TRIANGLES,
                np.empty(0, dtype=np.int64),
            )

        families = {_family(p.primitive_type) for p in primitives}
        if len(families) != 1:
            raise ValueError("Cannot merge points, lines and surfaces into one primitive")
        family = families.pop()

        all_indices = []
        vertex_offset = 0
        for primitive in primitives:
            if family is PrimitiveType.TRIANGLES:
                local = primitive.triangles()
            elif family is PrimitiveType.LINES:
                local = primitive.segments()
            else:
                local = primitive.emission_indices()
            all_indices.append(local.reshape(-1) + vertex_offset)
            vertex_offset += primitive.vertex_count

        vertices = Vertices.concatenate([p.vertices for p in primitives])
        return Primitive(vertices, family, np.concatenate(all_indices))

    def to_trimesh(self) -> trimesh.Trimesh:
        """Convert a surface primitive to a trimesh.Trimesh object.

        Raises:
            ValueError: If this is a point or line primitive
        """
        import trimesh as tm

        if not self.primitive_type.is_surface:
            raise ValueError(
                f"Only surface primitives convert to trimesh, got {self.primitive_type.name}"
            )

        mesh = tm.Trimesh(
            vertices=np.array(self.vertices.positions),
            faces=self.triangles(),
            process=False,  # Keep vertex order and count
        )

        if self.vertices.normals is not None:
            mesh.vertex_normals = np.array(self.vertices.normals)

        if self.vertices.texcoords is not None:
            mesh.visual = tm.visual.TextureVisuals(uv=np.array(self.vertices.texcoords))
        elif self.vertices.colors is not None:
            mesh.visual = tm.visual.ColorVisuals(
                mesh, vertex_colors=np.round(self.vertices.colors * 255).astype(np.uint8)
            )

        return mesh

    @classmethod
    def from_trimesh(cls, mesh: trimesh.Trimesh, material: Material | None = None) -> Primitive:
        """Create an indexed triangle primitive from a trimesh.Trimesh object."""
        positions = np.array(mesh.vertices, dtype=np.float64)
        normals = _source_normals(mesh)

        colors = None
        texcoords = None
        visual = getattr(mesh, "visual", None)
        uv = getattr(visual, "uv", None)
        if uv is not None and len(uv) == len(positions):
            texcoords = np.array(uv, dtype=np.float64)
        elif getattr(visual, "kind", None) == "vertex":
            colors = np.array(visual.vertex_colors, dtype=np.float64) / 255.0

        return cls.indexed(
            positions,
            np.array(mesh.faces, dtype=np.int64),
            PrimitiveType.TRIANGLES,
            normals=normals,
            colors=colors,
            texcoords=texcoords,
            material=material,
        )

    def __repr__(self) -> str:
        index_str = f", indices={len(self.indices)}" if self.indices is not None else ""
        return (
            f"Primitive({self.primitive_type.name}, {self.kind.value}, "
            f"vertices={self.vertex_count}{index_str})"
        )


def _family(primitive_type: PrimitiveType) -> PrimitiveType:
    if primitive_type.is_surface:
        return PrimitiveType.TRIANGLES
    if primitive_type.is_line:
        return PrimitiveType.LINES
    return PrimitiveType.POINTS
