"""
ASCII PGM/PPM dumps of segmentation stages, written through OpenCV.

Diagnostic only; small enough to diff as golden files in tests.
Colors in this module are RGB; OpenCV's BGR order stays inside the I/O helpers.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any

import cv2
import numpy as np

from segmentation.boundary import CandidateGrid

BLOCKED_COLOR = (255, 0, 255)
CENTER_COLOR = (255, 0, 0)
CENTER_HALF_SIZE = 2

# Plain-text P2/P3 instead of binary P5/P6.
_ASCII_PXM = [cv2.IMWRITE_PXM_BINARY, 0]


def _write_pnm(path: Path, values: np.ndarray) -> dict[str, Any]:
    """(H, W) values -> P2, (H, W, 3) RGB values -> P3."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    img = np.clip(np.asarray(values), 0, 255).astype(np.uint8)
    if img.ndim == 3:
        img = cv2.cvtColor(img, cv2.COLOR_RGB2BGR)
    if not cv2.imwrite(str(path), img, _ASCII_PXM):
        raise OSError(f"cv2.imwrite failed for {path}")
    return {
        "format": "P3" if img.ndim == 3 else "P2",
        "path": str(path),
        "width": int(img.shape[1]),
        "height": int(img.shape[0]),
    }


def read_pnm(path: Path) -> np.ndarray:
    """Read back a P2 (H, W) or P3 (H, W, 3, RGB) file written by this module."""
    img = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
    if img is None:
        raise OSError(f"cannot decode {path}")
    if img.ndim == 3:
        img = cv2.cvtColor(img, cv2.COLOR_BGR2RGB)
    return img


def write_mask_pgm(mask: np.ndarray, path: Path) -> dict[str, Any]:
    """Free space is black (0), everything else white (255)."""
    mask = np.asarray(mask, dtype=bool)
    values = np.where(mask, 0, 255)
    return _write_pnm(path, values)


def write_distance_ppm(distance: np.ndarray, mask: np.ndarray, path: Path) -> dict[str, Any]:
    mask = np.asarray(mask, dtype=bool)
    gray = np.minimum(255, np.floor(3.0 * np.where(mask, distance, 0.0))).astype(np.int32)
    rgb = np.stack([gray, gray, gray], axis=-1)
    rgb[~mask] = BLOCKED_COLOR
    return _write_pnm(path, rgb)


def convert_evidence(field: np.ndarray, scale: float) -> np.ndarray:
    """Evidence -> 0..255 intensity: clip(value * scale * 255)."""
    v = np.asarray(field, dtype=np.float64) * float(scale) * 255.0
    return np.clip(np.floor(v), 0, 255).astype(np.int32)


def write_door_detection_ppm(
    door_evidence: np.ndarray,
    mask: np.ndarray,
    path: Path,
    *,
    scale: float = 0.01,
) -> dict[str, Any]:
    mask = np.asarray(mask, dtype=bool)
    gray = convert_evidence(door_evidence, scale)
    rgb = np.stack([gray, gray, gray], axis=-1)
    rgb[~mask] = BLOCKED_COLOR
    return _write_pnm(path, rgb)


def render_clusters(
    grid: CandidateGrid,
    centers: list[int],
    clusters: list[list[int]],
    rng: np.random.Generator,
) -> np.ndarray:
    """
    White canvas, one random color block per clustered candidate, a red
    5x5 square on every center.
    """
    rgb = np.full((grid.height, grid.width, 3), 255, dtype=np.int32)
    margin = grid.subsample // 2

    def paint(x: int, y: int, half: int, color) -> None:
        y0, y1 = max(0, y - half), min(grid.height, y + half + 1)
        x0, x1 = max(0, x - half), min(grid.width, x + half + 1)
        rgb[y0:y1, x0:x1] = color

    for members in clusters:
        color = tuple(int(c) for c in rng.integers(0, 255, size=3))
        for index in members:
            x, y = grid.pixel(index)
            paint(x, y, margin, color)
    for center in centers:
        x, y = grid.pixel(center)
        paint(x, y, CENTER_HALF_SIZE, CENTER_COLOR)
    return rgb


def write_cluster_ppm(
    grid: CandidateGrid,
    centers: list[int],
    clusters: list[list[int]],
    path: Path,
    rng: np.random.Generator,
) -> dict[str, Any]:
    rgb = render_clusters(grid, centers, clusters, rng)
    return _write_pnm(path, rgb)
