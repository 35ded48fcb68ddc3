from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np

from config.loader import FrameCfg
from core.errors import InputDataError

logger = logging.getLogger(__name__)


@dataclass
class SweepPoint:
    position: np.ndarray
    normal: np.ndarray
    weight: float = 1.0


@dataclass
class Sweep:
    """One scan session: origin plus its point samples."""

    center: np.ndarray
    points: list[SweepPoint] = field(default_factory=list)

    def positions(self) -> np.ndarray:
        if not self.points:
            return np.zeros((0, 3), dtype=np.float64)
        return np.stack([p.position for p in self.points]).astype(np.float64)


@dataclass
class Frame:
    """
    Metric-to-pixel rasterization context of a segmentation run.

    size = (width, height, depth); depth is carried but unused by the 2-D grid.
    """

    size: list[int] = field(default_factory=lambda: [0, 0, 0])
    ranges: np.ndarray = field(default_factory=lambda: np.zeros((3, 2), dtype=np.float64))
    unit: float = 1.0
    axes: np.ndarray = field(default_factory=lambda: np.eye(3, dtype=np.float64))

    @property
    def width(self) -> int:
        return int(self.size[0])

    @property
    def height(self) -> int:
        return int(self.size[1])

    @property
    def shape(self) -> tuple[int, int]:
        """Raster shape in numpy (row, col) order."""
        return (self.height, self.width)

    def to_pixel(self, point) -> np.ndarray:
        p = np.asarray(point, dtype=np.float64).reshape(3)
        coords = self.axes @ p
        return np.array(
            [(coords[0] - self.ranges[0][0]) / self.unit, (coords[1] - self.ranges[1][0]) / self.unit],
            dtype=np.float64,
        )


def convert_points_to_sweep(positions, normals) -> Sweep:
    """
    The first point of a scan file is the scanner origin; the rest are samples.
    """
    pos = np.asarray(positions, dtype=np.float64).reshape(-1, 3)
    nrm = np.asarray(normals, dtype=np.float64).reshape(-1, 3)
    if pos.shape[0] == 0:
        raise InputDataError("empty point list; a sweep needs at least its origin")
    if nrm.shape[0] != pos.shape[0]:
        raise InputDataError(f"positions ({pos.shape[0]}) and normals ({nrm.shape[0]}) differ in length")

    sweep = Sweep(center=pos[0].copy())
    sweep.points = [SweepPoint(position=pos[i].copy(), normal=nrm[i].copy(), weight=1.0) for i in range(1, pos.shape[0])]
    return sweep


def compute_average_distance(sweeps: list[Sweep]) -> float:
    total = 0.0
    count = 0
    for sweep in sweeps:
        pts = sweep.positions()
        if pts.shape[0] == 0:
            continue
        total += float(np.sum(np.linalg.norm(pts - np.asarray(sweep.center, dtype=np.float64), axis=1)))
        count += int(pts.shape[0])

    if count == 0:
        logger.warning("No sweep points; average distance falls back to 1.0")
        return 1.0
    return total / count


def set_ranges(
    sweeps: list[Sweep],
    average_distance: float,
    frame: Frame,
    *,
    lower_percentile: int = 5,
    upper_percentile: int = 95,
    margin_ratio: float = 0.05,
    unit_divisor: float = 50.0,
    max_resolution: int = 600,
) -> Frame:
    """
    Percentile-fit the bounding box of all sweep points along the frame axes,
    then choose `unit` so the raster fits in max_resolution.
    Point weights are ignored.
    """
    all_pts = [s.positions() for s in sweeps]
    pts = np.concatenate(all_pts, axis=0) if all_pts else np.zeros((0, 3))
    if pts.shape[0] == 0:
        raise InputDataError("cannot fit a frame without sweep points")

    projected = pts @ np.asarray(frame.axes, dtype=np.float64).T
    n = projected.shape[0]
    lo_idx = n * int(lower_percentile) // 100
    hi_idx = min(n - 1, n * int(upper_percentile) // 100)

    ranges = np.zeros((3, 2), dtype=np.float64)
    for a in range(3):
        histogram = np.sort(projected[:, a])
        lo = float(histogram[lo_idx])
        hi = float(histogram[hi_idx])
        margin = (hi - lo) * float(margin_ratio)
        ranges[a, 0] = lo - margin
        ranges[a, 1] = hi + margin

    unit = float(average_distance) / float(unit_divisor)
    if unit <= 0.0:
        raise InputDataError(f"non-positive unit {unit} from average distance {average_distance}")
    width = int(round((ranges[0, 1] - ranges[0, 0]) / unit))
    height = int(round((ranges[1, 1] - ranges[1, 0]) / unit))
    max_current = max(width, height)
    if max_current > int(max_resolution):
        unit *= max_current / float(max_resolution)

    frame.ranges = ranges
    frame.unit = unit
    frame.size = [int(round((ranges[a, 1] - ranges[a, 0]) / unit)) for a in range(3)]
    logger.info("Frame size %s unit=%.4f", frame.size, unit)
    return frame


def compute_frame(sweeps: list[Sweep], average_distance: float, cfg: FrameCfg | None = None) -> Frame:
    cfg = cfg or FrameCfg()
    frame = Frame(axes=np.eye(3, dtype=np.float64))
    return set_ranges(sweeps, average_distance, frame, **cfg.model_dump())
