"""Transform class for node-local affine transformations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Self

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy.spatial.transform import Rotation

from ..metadata.units import AngleUnit


@dataclass
class Transform:
    """A 3D transformation with translation, rotation, and scale.

    Rotation is stored as Euler angles (XYZ order) in radians.
    """

    translation: NDArray[np.float64] = field(
        default_factory=lambda: np.zeros(3, dtype=np.float64)
    )
    rotation: NDArray[np.float64] = field(
        default_factory=lambda: np.zeros(3, dtype=np.float64)
    )
    scale: NDArray[np.float64] = field(
        default_factory=lambda: np.ones(3, dtype=np.float64)
    )

    def __post_init__(self) -> None:
        self.translation = np.asarray(self.translation, dtype=np.float64).reshape(3)
        self.rotation = np.asarray(self.rotation, dtype=np.float64).reshape(3)
        self.scale = np.asarray(self.scale, dtype=np.float64).reshape(3)

    def to_matrix(self) -> NDArray[np.float64]:
        """Convert to a 4x4 transformation matrix.

        Order: Scale -> Rotate -> Translate
        """
        s = np.diag([*self.scale, 1.0])

        rx, ry, rz = self.rotation

        cos_x, sin_x = np.cos(rx), np.sin(rx)
        cos_y, sin_y = np.cos(ry), np.sin(ry)
        cos_z, sin_z = np.cos(rz), np.sin(rz)

        rot_x = np.array([
            [1, 0, 0, 0],
            [0, cos_x, -sin_x, 0],
            [0, sin_x, cos_x, 0],
            [0, 0, 0, 1],
        ], dtype=np.float64)

        rot_y = np.array([
            [cos_y, 0, sin_y, 0],
            [0, 1, 0, 0],
            [-sin_y, 0, cos_y, 0],
            [0, 0, 0, 1],
        ], dtype=np.float64)

        rot_z = np.array([
            [cos_z, -sin_z, 0, 0],
            [sin_z, cos_z, 0, 0],
            [0, 0, 1, 0],
            [0, 0, 0, 1],
        ], dtype=np.float64)

        # Z * Y * X for XYZ Euler
        r = rot_z @ rot_y @ rot_x

        t = np.eye(4, dtype=np.float64)
        t[:3, 3] = self.translation

        return t @ r @ s

    @classmethod
    def from_matrix(cls, matrix: ArrayLike, exact: bool = False) -> Self:
        """Create a Transform from a 4x4 transformation matrix.

        A reflection is folded into a negative X scale. Shear cannot be held
        by translation, rotation and scale; by default it is dropped.

        Args:
            matrix: 4x4 affine matrix
            exact: Raise instead of dropping shear

        Raises:
            ValueError: If ``matrix`` is not 4x4, or if ``exact`` is set and
                the matrix is not reproduced by the decomposition
        """
        matrix = np.asarray(matrix, dtype=np.float64)
        if matrix.shape != (4, 4):
            raise ValueError(f"Expected a 4x4 matrix, got shape {matrix.shape}")
        translation = matrix[:3, 3].copy()

        scale = np.array([
            np.linalg.norm(matrix[:3, 0]),
            np.linalg.norm(matrix[:3, 1]),
            np.linalg.norm(matrix[:3, 2]),
        ], dtype=np.float64)
        if np.linalg.det(matrix[:3, :3]) < 0:
            scale[0] = -scale[0]

        rot = matrix[:3, :3].copy()
        rot[:, 0] /= scale[0] if scale[0] != 0 else 1
        rot[:, 1] /= scale[1] if scale[1] != 0 else 1
        rot[:, 2] /= scale[2] if scale[2] != 0 else 1

        cos_y = np.hypot(rot[0, 0], rot[1, 0])
        ry = np.arctan2(-rot[2, 0], cos_y)
        if cos_y > 1e-9:
            rx = np.arctan2(rot[2, 1], rot[2, 2])
            rz = np.arctan2(rot[1, 0], rot[0, 0])
        else:
            # Gimbal lock
            rz = 0.0
            if rot[2, 0] < 0:
                rx = np.arctan2(rot[0, 1], rot[0, 2])
            else:
                rx = np.arctan2(-rot[0, 1], -rot[0, 2])

        result = cls(
            translation=translation,
            rotation=np.array([rx, ry, rz], dtype=np.float64),
            scale=scale,
        )
        if exact:
            tolerance = 1e-8 * max(1.0, float(np.abs(matrix).max()))
            if not np.allclose(result.to_matrix(), matrix, rtol=1e-7, atol=tolerance):
                raise ValueError(
                    "Matrix has shear or a projective row and cannot be held as "
                    "translation, rotation and scale"
                )
        return result

    @classmethod
    def from_euler(
        cls,
        angles: ArrayLike,
        unit: AngleUnit = AngleUnit.RADIAN,
        translation: ArrayLike | None = None,
        scale: ArrayLike | None = None,
    ) -> Self:
        """Create a Transform from XYZ Euler angles given in ``unit``."""
        rotation = np.array(
            [unit.to_radians(float(a)) for a in np.asarray(angles).reshape(3)]
        )
        return cls(
            translation=np.zeros(3) if translation is None else translation,
            rotation=rotation,
            scale=np.ones(3) if scale is None else scale,
        )

    @classmethod
    def from_quaternion(
        cls,
        quaternion: ArrayLike,
        translation: ArrayLike | None = None,
        scale: ArrayLike | None = None,
    ) -> Self:
        """Create a Transform from a unit quaternion in (x, y, z, w) order.

        This is the layout glTF uses for node rotations.
        """
        r = Rotation.from_quat(np.asarray(quaternion, dtype=np.float64))
        # Extrinsic xyz equals the intrinsic Z * Y * X composition used above
        rotation = r.as_euler("xyz")
        return cls(
            translation=np.zeros(3) if translation is None else translation,
            rotation=rotation,
            scale=np.ones(3) if scale is None else scale,
        )

    def apply(self, points: ArrayLike) -> NDArray[np.float64]:
        """Transform an Nx3 array of points."""
        points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        matrix = self.to_matrix()
        return points @ matrix[:3, :3].T + matrix[:3, 3]

    def is_identity(self, atol: float = 1e-12) -> bool:
        return np.allclose(self.to_matrix(), np.eye(4), atol=atol)

    def scaled(self, factor: float) -> Transform:
        """Return this transform preceded by a uniform scale of the parent space.

        Used to change the length unit of a root node: both the translation and
        the scale grow by ``factor``, the rotation is unchanged.
        """
        return Transform(
            translation=self.translation * factor,
            rotation=self.rotation.copy(),
            scale=self.scale * factor,
        )

    def copy(self) -> Self:
        """Create a deep copy of this transform."""
        return Transform(
            translation=self.translation.copy(),
            rotation=self.rotation.copy(),
            scale=self.scale.copy(),
        )

    @staticmethod
    def identity() -> Transform:
        """Create an identity transform."""
        return Transform()

    def __matmul__(self, other: Transform) -> Transform:
        """Combine two transforms via matrix multiplication."""
        combined = self.to_matrix() @ other.to_matrix()
        return Transform.from_matrix(combined)
