"""Geometry utilities for triangle decomposition and normal computation.

Winding convention: counter-clockwise when viewed from outside is front
facing. For triangle (A, B, C) the normal direction is (B-A) x (C-A).
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray


def compute_face_normals(
    positions: NDArray[np.float64], triangles: NDArray[np.int64]
) -> NDArray[np.float64]:
    """Compute unnormalized (area weighted) normals for an Mx3 triangle array."""
    v0 = positions[triangles[:, 0]]
    v1 = positions[triangles[:, 1]]
    v2 = positions[triangles[:, 2]]
    return np.cross(v1 - v0, v2 - v0)


def compute_vertex_normals(
    positions: NDArray[np.float64], triangles: NDArray[np.int64]
) -> NDArray[np.float64]:
    """Compute smooth per-vertex normals by accumulating face normals.

    Vertices not referenced by any non-degenerate triangle get +Y.

    Args:
        positions: Nx3 vertex positions
        triangles: Mx3 vertex indices

    Returns:
        Nx3 array of unit normals
    """
    normals = np.zeros_like(positions, dtype=np.float64)
    if len(triangles):
        face_normals = compute_face_normals(positions, triangles)
        for corner in range(3):
            np.add.at(normals, triangles[:, corner], face_normals)

    lengths = np.linalg.norm(normals, axis=1)
    degenerate = lengths <= 1e-10
    normals[degenerate] = (0.0, 1.0, 0.0)
    lengths[degenerate] = 1.0
    return normals / lengths[:, None]


def strip_to_triangles(sequence: NDArray[np.int64]) -> NDArray[np.int64]:
    """Decompose a triangle strip into a triangle list.

    Every second triangle is flipped so all triangles keep the winding of the
    first one.
    """
    count = len(sequence) - 2
    if count <= 0:
        return np.empty((0, 3), dtype=np.int64)
    k = np.arange(count)
    a = sequence[k]
    b = sequence[k + 1]
    c = sequence[k + 2]
    odd = (k % 2) == 1
    return np.stack([a, np.where(odd, c, b), np.where(odd, b, c)], axis=1)


def fan_to_triangles(sequence: NDArray[np.int64]) -> NDArray[np.int64]:
    """Decompose a triangle fan (or a convex polygon) into a triangle list."""
    count = len(sequence) - 2
    if count <= 0:
        return np.empty((0, 3), dtype=np.int64)
    k = np.arange(count)
    return np.stack(
        [np.full(count, sequence[0]), sequence[k + 1], sequence[k + 2]], axis=1
    )


def strip_to_segments(sequence: NDArray[np.int64], closed: bool = False) -> NDArray[np.int64]:
    """Decompose a line strip (or loop when ``closed``) into line segments."""
    if len(sequence) < 2:
        return np.empty((0, 2), dtype=np.int64)
    segments = np.stack([sequence[:-1], sequence[1:]], axis=1)
    if closed:
        segments = np.vstack([segments, [[sequence[-1], sequence[0]]]])
    return segments
