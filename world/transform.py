from __future__ import annotations

import math

import numpy as np


def rotation_x(rx: float) -> np.ndarray:
    c, s = math.cos(rx), math.sin(rx)
    return np.array([[1.0, 0.0, 0.0], [0.0, c, -s], [0.0, s, c]], dtype=np.float64)


def rotation_y(ry: float) -> np.ndarray:
    c, s = math.cos(ry), math.sin(ry)
    return np.array([[c, 0.0, s], [0.0, 1.0, 0.0], [-s, 0.0, c]], dtype=np.float64)


def rotation_z(rz: float) -> np.ndarray:
    c, s = math.cos(rz), math.sin(rz)
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]], dtype=np.float64)


def rigid_matrix(R: np.ndarray, t: list[float] | np.ndarray) -> np.ndarray:
    """Compose a 4x4 homogeneous transform from rotation R and translation t."""
    T = np.eye(4, dtype=np.float64)
    T[:3, :3] = np.asarray(R, dtype=np.float64).reshape(3, 3)
    T[:3, 3] = np.asarray(t, dtype=np.float64).reshape(3)
    return T


def invert_rigid(T: np.ndarray) -> np.ndarray:
    """
    Exact inverse of a rotation+translation: [R^T | -R^T t].
    The last row is always the canonical [0, 0, 0, 1], whatever T carries there.
    """
    T = np.asarray(T, dtype=np.float64).reshape(4, 4)
    R = T[:3, :3]
    t = T[:3, 3]
    inv = np.eye(4, dtype=np.float64)
    inv[:3, :3] = R.T
    inv[:3, 3] = -R.T @ t
    return inv


def apply_homogeneous(T: np.ndarray, point: list[float] | np.ndarray) -> np.ndarray:
    p = np.asarray(point, dtype=np.float64).reshape(3)
    p4 = np.array([p[0], p[1], p[2], 1.0], dtype=np.float64)
    out = np.asarray(T, dtype=np.float64) @ p4
    return out[:3]


def convert_local_to_panorama(
    width: int,
    height: int,
    phi_per_pixel: float,
    ray: list[float] | np.ndarray,
) -> np.ndarray:
    """
    Local ray -> equirectangular pixel (u, v).

    The local frame has the panorama's vertical axis as +Z. Azimuth runs
    clockwise seen from above, starting at +X. No clamping on v.
    """
    x, y, z = (float(c) for c in np.asarray(ray, dtype=np.float64).reshape(3))

    theta = -math.atan2(y, x)
    if theta < 0.0:
        theta += 2.0 * math.pi
    theta_ratio = max(0.0, min(1.0, theta / (2.0 * math.pi)))
    # Seam: a ratio of exactly 1.0 would land on column `width`.
    if theta_ratio == 1.0:
        theta_ratio = 0.0

    horizontal = math.sqrt(x * x + y * y)
    phi = math.atan2(z, horizontal)
    u = theta_ratio * width
    v = height / 2.0 - phi / phi_per_pixel
    return np.array([u, v], dtype=np.float64)


def convert_panorama_to_local(
    width: int,
    height: int,
    phi_per_pixel: float,
    uv: list[float] | np.ndarray,
) -> np.ndarray:
    """Equirectangular pixel -> unit ray in the local frame."""
    u, v = (float(c) for c in np.asarray(uv, dtype=np.float64).reshape(2))
    theta = -2.0 * math.pi * u / width
    phi = (height / 2.0 - v) * phi_per_pixel
    return np.array(
        [math.cos(phi) * math.cos(theta), math.cos(phi) * math.sin(theta), math.sin(phi)],
        dtype=np.float64,
    )
