from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np

from core.deadline import UNBOUNDED, Deadline
from core.errors import PreconditionViolation
from observability.monitoring import monitor_stage
from segmentation.mask import is_boundary_cell

logger = logging.getLogger(__name__)

Pixel = tuple[int, int]
Signature = list[tuple[int, float]]


@dataclass(frozen=True)
class CandidateGrid:
    """
    Regular lattice of candidate pixels, every `subsample` pixels in x and y.
    Candidate i sits at pixel ((i % sub_width) * subsample, (i // sub_width) * subsample).
    """

    width: int
    height: int
    subsample: int

    @property
    def sub_width(self) -> int:
        return self.width // self.subsample

    @property
    def sub_height(self) -> int:
        return self.height // self.subsample

    @property
    def count(self) -> int:
        return self.sub_width * self.sub_height

    def pixel(self, index: int) -> Pixel:
        return ((index % self.sub_width) * self.subsample, (index // self.sub_width) * self.subsample)

    def index(self, pixel: Pixel) -> int:
        return (pixel[1] // self.subsample) * self.sub_width + pixel[0] // self.subsample


def find_boundary(mask: np.ndarray) -> list[Pixel]:
    """Free cells with a blocked 4-neighbor, row-major order, border ring excluded."""
    mask = np.asarray(mask, dtype=bool)
    height, width = mask.shape
    boundary: list[Pixel] = []
    for y in range(1, height - 1):
        for x in range(1, width - 1):
            if is_boundary_cell(mask, x, y):
                boundary.append((x, y))
    return boundary


def subsample_boundary(boundary: list[Pixel], ratio: float, rng: np.random.Generator) -> list[Pixel]:
    """
    Random subset of int(ratio * n) points, re-sorted by (x, y) so boundary
    indices are stable once chosen.
    """
    keep = int(len(boundary) * float(ratio))
    order = rng.permutation(len(boundary))[:keep]
    return sorted(boundary[int(i)] for i in order)


def _round_half_up(v: float) -> int:
    return int(math.floor(v + 0.5))


def is_visible(mask: np.ndarray, source: Pixel, target: Pixel, margin: int = 10) -> bool:
    """
    Straight-line visibility on the free-space mask.

    The segment is supersampled at 2*ceil(length)+1 steps and the first
    `margin` steps next to the source are ignored.
    """
    height, width = mask.shape
    sx, sy = float(source[0]), float(source[1])
    dx = float(target[0]) - sx
    dy = float(target[1]) - sy
    num_steps = int(math.ceil(math.hypot(dx, dy))) * 2 + 1
    dx /= num_steps
    dy /= num_steps

    for i in range(int(margin), num_steps):
        x = _round_half_up(sx + i * dx)
        y = _round_half_up(sy + i * dy)
        if x < 0 or width <= x or y < 0 or height <= y:
            raise PreconditionViolation(
                f"visibility walk left the raster at ({x}, {y}) in {width}x{height}"
            )
        if not mask[y, x]:
            return False
    return True


@monitor_stage("compute_visibility")
def compute_visibility(
    mask: np.ndarray,
    boundary: list[Pixel],
    distance_to_boundary: np.ndarray,
    grid: CandidateGrid,
    *,
    margin_from_boundary: float = 5.0,
    visibility_margin: int = 10,
    deadline: Deadline = UNBOUNDED,
) -> list[list[int]]:
    """For each candidate, the indices of boundary points it can see."""
    mask = np.asarray(mask, dtype=bool)
    visibility: list[list[int]] = [[] for _ in range(grid.count)]

    tested = 0
    for index in range(grid.count):
        x, y = grid.pixel(index)
        if not mask[y, x]:
            continue
        if distance_to_boundary[y, x] < margin_from_boundary:
            continue
        deadline.check("compute_visibility")

        visible = visibility[index]
        for b, point in enumerate(boundary):
            if is_visible(mask, (x, y), point, visibility_margin):
                visible.append(b)
        tested += 1

    logger.debug("Visibility computed for %d candidates against %d boundary points", tested, len(boundary))
    return visibility


def associate_weight_to_visibility(
    boundary: list[Pixel],
    visibility: list[list[int]],
    grid: CandidateGrid,
) -> list[Signature]:
    """Visible sets -> inverse-distance weights 1/(d+1), normalized to sum to 1."""
    signatures: list[Signature] = [[] for _ in range(len(visibility))]
    for index, visible in enumerate(visibility):
        if not visible:
            continue
        x, y = grid.pixel(index)
        weights = [1.0 / (math.hypot(boundary[b][0] - x, boundary[b][1] - y) + 1.0) for b in visible]
        total = sum(weights)
        signatures[index] = [(b, w / total) for b, w in zip(visible, weights)]
    return signatures
