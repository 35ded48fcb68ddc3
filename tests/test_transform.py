from __future__ import annotations

import math

import numpy as np

from world.transform import (
    apply_homogeneous,
    convert_local_to_panorama,
    convert_panorama_to_local,
    invert_rigid,
    rigid_matrix,
    rotation_x,
    rotation_y,
    rotation_z,
)


def test_rotations_are_orthonormal() -> None:
    for R in (rotation_x(0.3), rotation_y(-1.2), rotation_z(2.5)):
        assert np.allclose(R @ R.T, np.eye(3))
        assert math.isclose(float(np.linalg.det(R)), 1.0, abs_tol=1e-12)


def test_rotation_z_quarter_turn() -> None:
    p = rotation_z(math.pi / 2) @ np.array([1.0, 0.0, 0.0])
    assert np.allclose(p, [0.0, 1.0, 0.0])


def test_invert_rigid_is_exact_inverse() -> None:
    T = rigid_matrix(rotation_z(0.4) @ rotation_x(-0.2), [1.0, -2.0, 3.5])
    inv = invert_rigid(T)
    assert np.allclose(inv @ T, np.eye(4))
    assert np.allclose(T @ inv, np.eye(4))


def test_invert_rigid_keeps_z_translation() -> None:
    T = rigid_matrix(np.eye(3), [0.0, 0.0, 2.0])
    p = apply_homogeneous(invert_rigid(T), [0.0, 0.0, 5.0])
    assert np.allclose(p, [0.0, 0.0, 3.0])


def test_panorama_conversion_round_trip() -> None:
    width, height = 360, 180
    phi_per_pixel = math.pi / height
    for uv in [(10.0, 30.0), (200.5, 90.0), (359.0, 150.25)]:
        ray = convert_panorama_to_local(width, height, phi_per_pixel, uv)
        assert math.isclose(float(np.linalg.norm(ray)), 1.0, rel_tol=1e-12)
        back = convert_local_to_panorama(width, height, phi_per_pixel, ray * 7.0)
        assert np.allclose(back, uv, atol=1e-9)


def test_azimuth_runs_clockwise_from_x() -> None:
    width, height = 400, 200
    phi_per_pixel = math.pi / height
    # -Y is a quarter turn clockwise from +X seen from above.
    uv = convert_local_to_panorama(width, height, phi_per_pixel, [0.0, -1.0, 0.0])
    assert np.allclose(uv, [100.0, 100.0])


def test_seam_ratio_maps_to_column_zero() -> None:
    uv = convert_local_to_panorama(100, 50, math.pi / 50, [1.0, 1e-300, 0.0])
    assert uv[0] == 0.0
    assert uv[1] == 25.0


def test_vertical_is_not_clamped() -> None:
    # Straight up lands above row 0 for a phi_range smaller than pi.
    uv = convert_local_to_panorama(100, 50, (math.pi / 2) / 50, [0.0, 0.0, 1.0])
    assert uv[1] < 0.0


def test_invert_rigid_canonical_last_row() -> None:
    T = rigid_matrix(rotation_y(0.7), [2.0, 0.0, -1.0])
    T[3] = [0.1, 0.2, 0.3, 2.0]
    inv = invert_rigid(T)
    assert inv[3].tolist() == [0.0, 0.0, 0.0, 1.0]
    p = np.array([0.3, -4.0, 1.5])
    assert np.allclose(apply_homogeneous(inv, apply_homogeneous(T, p)), p)
