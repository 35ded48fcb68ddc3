from __future__ import annotations

import heapq
import math

import numpy as np
from scipy.ndimage import binary_opening

from core.errors import PreconditionViolation
from observability.monitoring import monitor_stage

# 8-connected steps and their Euclidean lengths.
NEIGHBORS_8: list[tuple[int, int, float]] = [
    (dx, dy, math.sqrt(dx * dx + dy * dy))
    for dy in (-1, 0, 1)
    for dx in (-1, 0, 1)
    if not (dx == 0 and dy == 0)
]


def build_mask(evidence: np.ndarray, threshold: float) -> np.ndarray:
    """Free space = evidence strictly above threshold; the outer ring is never free."""
    ev = np.asarray(evidence, dtype=np.float64)
    if ev.ndim != 2:
        raise ValueError(f"evidence must be 2-D (height, width), got {ev.shape}")
    mask = ev > float(threshold)
    clear_border(mask)
    return mask


def clear_border(mask: np.ndarray) -> None:
    mask[0, :] = False
    mask[-1, :] = False
    mask[:, 0] = False
    mask[:, -1] = False


def check_border(mask: np.ndarray) -> None:
    """Grid walks index neighbors without bounds checks; a free border would escape the raster."""
    if mask.ndim != 2 or mask.shape[0] < 3 or mask.shape[1] < 3:
        raise PreconditionViolation(f"mask must be 2-D and at least 3x3, got {mask.shape}")
    if mask[0, :].any() or mask[-1, :].any() or mask[:, 0].any() or mask[:, -1].any():
        raise PreconditionViolation("mask has free cells on its outer border")


def open_mask(mask: np.ndarray, kernel_width: int = 9, iterations: int = 20) -> np.ndarray:
    """Repeated morphological opening with a square kernel; removes thin noise."""
    out = np.asarray(mask, dtype=bool).copy()
    k = int(kernel_width)
    if k < 1:
        raise ValueError(f"kernel_width must be >= 1, got {kernel_width}")
    structure = np.ones((k, k), dtype=bool)
    for _ in range(int(iterations)):
        out = binary_opening(out, structure=structure)
    clear_border(out)
    return out


def count_mask(mask: np.ndarray) -> int:
    return int(np.count_nonzero(mask))


def is_boundary_cell(mask: np.ndarray, x: int, y: int) -> bool:
    """Free cell with at least one blocked 4-neighbor. (x, y) must not be on the border."""
    if not mask[y, x]:
        return False
    return not (mask[y, x - 1] and mask[y, x + 1] and mask[y - 1, x] and mask[y + 1, x])


@monitor_stage("distance_to_boundary")
def distance_to_boundary(mask: np.ndarray) -> np.ndarray:
    """
    Geodesic distance (pixels) from every free cell to the nearest boundary cell.

    Multi-source Dijkstra over the 8-connected grid. Heap entries are never
    updated in place; an entry whose distance is worse than the recorded one
    is stale and skipped. Blocked cells stay +inf.
    """
    mask = np.asarray(mask, dtype=bool)
    check_border(mask)
    height, width = mask.shape

    dist = np.full((height, width), np.inf, dtype=np.float64)
    water_front: list[tuple[float, int, int]] = []
    for y in range(1, height - 1):
        for x in range(1, width - 1):
            if is_boundary_cell(mask, x, y):
                dist[y, x] = 0.0
                water_front.append((0.0, x, y))
    heapq.heapify(water_front)

    while water_front:
        score, x, y = heapq.heappop(water_front)
        if score > dist[y, x]:
            continue
        for dx, dy, step in NEIGHBORS_8:
            nx = x + dx
            ny = y + dy
            if not mask[ny, nx]:
                continue
            new_score = score + step
            if new_score < dist[ny, nx]:
                dist[ny, nx] = new_score
                heapq.heappush(water_front, (new_score, nx, ny))

    return dist
