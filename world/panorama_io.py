from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import cv2
import numpy as np

from config.loader import PanoramaCfg
from core.errors import PanoramaLoadError
from world.panorama import Panorama

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PanoramaFileLayout:
    """Where the per-panorama files live under a data directory."""

    data_directory: Path
    image_pattern: str = "panorama/{index:03d}.png"
    depth_pattern: str = "depth/{index:03d}.depth"
    transform_pattern: str = "transformations/{index:03d}.txt"

    @classmethod
    def from_config(cls, data_directory: Path | str, cfg: PanoramaCfg) -> "PanoramaFileLayout":
        return cls(
            Path(data_directory),
            image_pattern=cfg.image_pattern,
            depth_pattern=cfg.depth_pattern,
            transform_pattern=cfg.transform_pattern,
        )

    def image_path(self, index: int) -> Path:
        return Path(self.data_directory) / self.image_pattern.format(index=int(index))

    def depth_path(self, index: int) -> Path:
        return Path(self.data_directory) / self.depth_pattern.format(index=int(index))

    def transform_path(self, index: int) -> Path:
        return Path(self.data_directory) / self.transform_pattern.format(index=int(index))


def _read_tokens(path: Path) -> list[str]:
    try:
        return path.read_text(encoding="utf-8").split()
    except OSError as exc:
        raise PanoramaLoadError(str(path), str(exc)) from exc


def _floats(path: Path, tokens: list[str]) -> list[float]:
    try:
        return [float(t) for t in tokens]
    except ValueError as exc:
        raise PanoramaLoadError(str(path), f"non-numeric value: {exc}") from exc


def read_depth_file(path: Path | str) -> tuple[np.ndarray, float, float]:
    """
    Text depth grid:
        <tag> <width> <height> <min_depth> <max_depth>
        width*height samples, row-major.
    Returns (depth[height, width], min_depth, max_depth).
    """
    path = Path(path)
    tokens = _read_tokens(path)
    if len(tokens) < 5:
        raise PanoramaLoadError(str(path), "truncated header")
    try:
        width = int(tokens[1])
        height = int(tokens[2])
    except ValueError as exc:
        raise PanoramaLoadError(str(path), f"bad dimensions: {exc}") from exc
    if width <= 0 or height <= 0:
        raise PanoramaLoadError(str(path), f"bad dimensions {width}x{height}")
    min_depth, max_depth = _floats(path, tokens[3:5])

    n = width * height
    samples = tokens[5 : 5 + n]
    if len(samples) < n:
        raise PanoramaLoadError(str(path), f"expected {n} samples, found {len(samples)}")
    depth = np.asarray(_floats(path, samples), dtype=np.float64).reshape(height, width)
    return depth, float(min_depth), float(max_depth)


def read_transform_file(path: Path | str) -> tuple[np.ndarray, float]:
    """
    <tag>
    16 values of the local->global matrix, row-major
    <phi_range>
    """
    path = Path(path)
    tokens = _read_tokens(path)
    if len(tokens) < 18:
        raise PanoramaLoadError(str(path), f"expected tag + 16 values + phi_range, found {len(tokens)} tokens")
    values = _floats(path, tokens[1:18])
    local_to_global = np.asarray(values[:16], dtype=np.float64).reshape(4, 4)
    return local_to_global, float(values[16])


def load_panorama(layout: PanoramaFileLayout, index: int) -> Panorama:
    image_path = layout.image_path(index)
    rgb = cv2.imread(str(image_path), cv2.IMREAD_COLOR)
    if rgb is None or rgb.size == 0:
        raise PanoramaLoadError(str(image_path), "image cannot be decoded")

    depth, _, _ = read_depth_file(layout.depth_path(index))
    local_to_global, phi_range = read_transform_file(layout.transform_path(index))

    pano = Panorama(rgb, depth, local_to_global, phi_range)
    logger.info(
        "Loaded panorama %d: rgb %dx%d depth %dx%d avg_distance=%.3f",
        int(index),
        pano.width,
        pano.height,
        pano.depth_width,
        pano.depth_height,
        pano.average_distance,
    )
    return pano
