"""Tests for Transform construction and matrix conversion."""

import numpy as np
import pytest

from cadimport import AngleUnit, Transform


@pytest.mark.parametrize("seed", range(5))
def test_matrix_round_trip(seed):
    rng = np.random.default_rng(seed)
    t = Transform(
        translation=rng.normal(size=3),
        rotation=rng.uniform(-1.2, 1.2, size=3),
        scale=rng.uniform(0.5, 3.0, size=3),
    )
    again = Transform.from_matrix(t.to_matrix())
    np.testing.assert_allclose(again.to_matrix(), t.to_matrix(), atol=1e-10)


def test_reflection_survives_round_trip():
    t = Transform(rotation=[0.2, 0.0, 0.5], scale=[-1.0, 2.0, 1.0])
    again = Transform.from_matrix(t.to_matrix())
    np.testing.assert_allclose(again.to_matrix(), t.to_matrix(), atol=1e-10)


def test_from_quaternion_and_euler_degrees_agree():
    half = np.sqrt(0.5)
    by_quat = Transform.from_quaternion([0.0, 0.0, half, half])
    by_euler = Transform.from_euler([0, 0, 90], unit=AngleUnit.DEGREE)

    np.testing.assert_allclose(by_quat.apply([1, 0, 0]), [[0, 1, 0]], atol=1e-12)
    np.testing.assert_allclose(by_quat.to_matrix(), by_euler.to_matrix(), atol=1e-12)


def test_scaled_scales_the_parent_space():
    t = Transform(translation=[1, 2, 3], rotation=[0.1, 0.2, 0.3])
    scaled = t.scaled(1000.0)
    expected = np.diag([1000.0, 1000.0, 1000.0, 1.0]) @ t.to_matrix()
    np.testing.assert_allclose(scaled.to_matrix(), expected, atol=1e-9)


def test_compose_and_identity():
    a = Transform(translation=[1, 0, 0])
    b = Transform(rotation=[0, 0, np.pi / 2])
    np.testing.assert_allclose((a @ b).to_matrix(), a.to_matrix() @ b.to_matrix(), atol=1e-12)
    assert Transform.identity().is_identity()
    assert not a.is_identity()


def test_copy_is_independent():
    t = Transform(translation=[1, 2, 3])
    c = t.copy()
    c.translation[0] = 9.0
    assert t.translation[0] == 1.0


def test_exact_decomposition_rejects_shear():
    sheared = np.eye(4)
    sheared[0, 1] = 0.5
    # Dropped silently unless asked to be exact
    Transform.from_matrix(sheared)
    with pytest.raises(ValueError):
        Transform.from_matrix(sheared, exact=True)


def test_from_matrix_rejects_wrong_shape():
    with pytest.raises(ValueError):
        Transform.from_matrix(np.eye(3))


@pytest.mark.parametrize("ry", [np.pi / 2, -np.pi / 2, np.pi / 2 - 1e-6])
def test_decomposition_near_gimbal_lock_is_exact(ry):
    t = Transform(translation=[1, 2, 3], rotation=[0.4, ry, 0.3], scale=[2, 1, 1])
    again = Transform.from_matrix(t.to_matrix(), exact=True)
    np.testing.assert_allclose(again.to_matrix(), t.to_matrix(), atol=1e-9)
