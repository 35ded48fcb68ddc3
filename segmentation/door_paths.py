"""
Door evidence from shortest paths between free-space seeds.

Cells crossed by many seed-to-seed shortest paths are likely doorways:
every path between two rooms has to squeeze through them.
"""
from __future__ import annotations

import heapq
import logging
import math
from dataclasses import dataclass

import numpy as np
from scipy.ndimage import convolve

from core.deadline import UNBOUNDED, Deadline
from core.errors import PreconditionViolation
from observability.monitoring import monitor_stage
from segmentation.boundary import Pixel
from segmentation.mask import NEIGHBORS_8, check_border

logger = logging.getLogger(__name__)

NO_PARENT = -1


@dataclass
class ShortestPathTree:
    """Single-source result: cumulative cost per cell and the parent pixel it came from."""

    seed: Pixel
    scores: np.ndarray
    parents: np.ndarray

    def reached(self, pixel: Pixel) -> bool:
        return bool(np.isfinite(self.scores[pixel[1], pixel[0]]))

    def parent(self, pixel: Pixel) -> Pixel:
        px, py = self.parents[pixel[1], pixel[0]]
        return (int(px), int(py))


def _check_seed(mask: np.ndarray, seed: Pixel) -> None:
    height, width = mask.shape
    x, y = int(seed[0]), int(seed[1])
    if x < 1 or width - 1 <= x or y < 1 or height - 1 <= y:
        raise PreconditionViolation(f"seed ({x}, {y}) must lie strictly inside the {width}x{height} raster")


def foreground_path(mask: np.ndarray, distance_to_boundary: np.ndarray, seed: Pixel) -> ShortestPathTree:
    """
    Dijkstra from `seed` over free space. Leaving a cell costs its
    distance-to-boundary times the step length.
    """
    mask = np.asarray(mask, dtype=bool)
    check_border(mask)
    _check_seed(mask, seed)
    height, width = mask.shape

    scores = np.full((height, width), np.inf, dtype=np.float64)
    parents = np.full((height, width, 2), NO_PARENT, dtype=np.int32)
    sx, sy = int(seed[0]), int(seed[1])
    scores[sy, sx] = 0.0

    water_front: list[tuple[float, int, int]] = [(0.0, sx, sy)]
    while water_front:
        score, x, y = heapq.heappop(water_front)
        if score > scores[y, x]:
            continue
        weight = float(distance_to_boundary[y, x])
        for dx, dy, step in NEIGHBORS_8:
            nx = x + dx
            ny = y + dy
            if not mask[ny, nx]:
                continue
            new_score = score + weight * step
            if new_score < scores[ny, nx]:
                scores[ny, nx] = new_score
                parents[ny, nx] = (x, y)
                heapq.heappush(water_front, (new_score, nx, ny))

    return ShortestPathTree(seed=(sx, sy), scores=scores, parents=parents)


def trace_back(tree: ShortestPathTree, seed: Pixel, target: Pixel) -> list[Pixel]:
    """Cells from target back to (excluding) seed; empty if target was never reached."""
    if not tree.reached(target):
        return []
    path: list[Pixel] = []
    pixel = (int(target[0]), int(target[1]))
    seed = (int(seed[0]), int(seed[1]))
    while pixel != seed:
        path.append(pixel)
        pixel = tree.parent(pixel)
        if pixel[0] == NO_PARENT:
            raise PreconditionViolation(f"{target} is not connected to seed {seed} in this tree")
    return path


def find_shortest_paths(
    mask: np.ndarray,
    distance_to_boundary: np.ndarray,
    seed: Pixel,
    seeds: list[Pixel],
) -> np.ndarray:
    """How many seed->target shortest paths cross each cell."""
    tree = foreground_path(mask, distance_to_boundary, seed)
    path_counts = np.zeros(mask.shape, dtype=np.float64)
    for target in seeds:
        for x, y in trace_back(tree, seed, target):
            path_counts[y, x] += 1.0
    return path_counts


def seed_grid(mask: np.ndarray, step: int = 10) -> list[Pixel]:
    height, width = mask.shape
    return [(x, y) for y in range(0, height, int(step)) for x in range(0, width, int(step)) if mask[y, x]]


@monitor_stage("accumulate_door_evidence")
def accumulate_door_evidence(
    mask: np.ndarray,
    distance_to_boundary: np.ndarray,
    seeds: list[Pixel],
    *,
    deadline: Deadline = UNBOUNDED,
) -> np.ndarray:
    """Sum of path counts over every seed pair; O(seeds^2) traces."""
    evidence = np.zeros(np.asarray(mask).shape, dtype=np.float64)
    for i, seed in enumerate(seeds):
        deadline.check("accumulate_door_evidence")
        if i % 20 == 0:
            logger.debug("Shortest paths %d / %d", i, len(seeds))
        evidence += find_shortest_paths(mask, distance_to_boundary, seed, seeds)
    return evidence


def gaussian_kernel(sigma: float) -> np.ndarray:
    half = int(math.ceil(2.0 * float(sigma)))
    r = np.arange(-half, half + 1, dtype=np.float64)
    xx, yy = np.meshgrid(r, r)
    return np.exp(-(xx * xx + yy * yy) / (2.0 * float(sigma) * float(sigma)))


def blur_field(field: np.ndarray, mask: np.ndarray, sigma: float) -> np.ndarray:
    """
    Gaussian blur restricted to free space: each free cell averages only
    free taps, renormalized by their kernel weight. Blocked cells keep their value.
    """
    field = np.asarray(field, dtype=np.float64)
    inside = np.asarray(mask, dtype=bool)
    kernel = gaussian_kernel(sigma)

    weights = inside.astype(np.float64)
    numer = convolve(field * weights, kernel, mode="constant", cval=0.0)
    denom = convolve(weights, kernel, mode="constant", cval=0.0)

    out = field.copy()
    ok = inside & (denom > 0.0)
    if int(np.count_nonzero(inside & ~ok)) > 0:
        logger.warning("blur_field: %d free cells had no kernel support", int(np.count_nonzero(inside & ~ok)))
    out[ok] = numer[ok] / denom[ok]
    return out
