from __future__ import annotations

import logging

import cv2
import numpy as np

from core.errors import InputDataError, PreconditionViolation
from world.transform import (
    apply_homogeneous,
    convert_local_to_panorama,
    convert_panorama_to_local,
    invert_rigid,
)

logger = logging.getLogger(__name__)


class Panorama:
    """
    One equirectangular photo plus its co-registered depth grid.

    The RGB raster (height, width, 3) and the depth raster
    (depth_height, depth_width) have independent resolutions. Pixel coordinates
    are (u, v) = (column, row) as floats; both rasters wrap horizontally.
    """

    def __init__(
        self,
        rgb_image: np.ndarray,
        depth_image: np.ndarray,
        local_to_global: np.ndarray,
        phi_range: float,
    ) -> None:
        rgb = np.asarray(rgb_image)
        if rgb.ndim != 3 or rgb.shape[2] != 3 or rgb.shape[0] < 2 or rgb.shape[1] < 1:
            raise InputDataError(f"rgb image must be (H>=2, W>=1, 3), got {rgb.shape}")
        depth = np.asarray(depth_image, dtype=np.float64)
        if depth.ndim != 2:
            raise InputDataError(f"depth image must be 2-D, got {depth.shape}")
        if not np.isfinite(phi_range) or float(phi_range) <= 0.0:
            raise InputDataError(f"phi_range must be positive, got {phi_range}")

        self.rgb_image = rgb
        self.depth_image = depth
        self.local_to_global = np.asarray(local_to_global, dtype=np.float64).reshape(4, 4).copy()
        self.global_to_local = invert_rigid(self.local_to_global)
        self.center = self.local_to_global[:3, 3].copy()
        self.phi_range = float(phi_range)

        self.phi_per_pixel = self.phi_range / self.height
        self.phi_per_depth_pixel = self.phi_range / max(1, self.depth_height)

        if depth.size == 0:
            logger.warning("Empty depth raster; average_distance falls back to 1.0")
            self.average_distance = 1.0
        else:
            self.average_distance = float(np.mean(depth))

    @property
    def width(self) -> int:
        return int(self.rgb_image.shape[1])

    @property
    def height(self) -> int:
        return int(self.rgb_image.shape[0])

    @property
    def depth_width(self) -> int:
        return int(self.depth_image.shape[1])

    @property
    def depth_height(self) -> int:
        return int(self.depth_image.shape[0])

    # -- coordinate transforms -------------------------------------------------

    def global_to_local_point(self, point) -> np.ndarray:
        return apply_homogeneous(self.global_to_local, point)

    def local_to_global_point(self, point) -> np.ndarray:
        return apply_homogeneous(self.local_to_global, point)

    def project(self, global_point) -> np.ndarray:
        """World point -> RGB pixel (u, v). Callers check is_inside_rgb."""
        local = self.global_to_local_point(global_point)
        return convert_local_to_panorama(self.width, self.height, self.phi_per_pixel, local)

    def unproject(self, pixel, distance: float) -> np.ndarray:
        """RGB pixel + radial distance -> world point."""
        ray = convert_panorama_to_local(self.width, self.height, self.phi_per_pixel, pixel)
        return self.local_to_global_point(ray * float(distance))

    def rgb_to_depth(self, pixel) -> np.ndarray:
        u, v = float(pixel[0]), float(pixel[1])
        return np.array([u * self.depth_width / self.width, v * self.depth_height / self.height])

    def depth_to_rgb(self, depth_pixel) -> np.ndarray:
        u, v = float(depth_pixel[0]), float(depth_pixel[1])
        return np.array([u * self.width / self.depth_width, v * self.height / self.depth_height])

    # -- sampling --------------------------------------------------------------

    def is_inside_rgb(self, pixel) -> bool:
        u, v = float(pixel[0]), float(pixel[1])
        return 0.0 <= u < self.width and 0.0 <= v < self.height - 1

    def is_inside_depth(self, depth_pixel) -> bool:
        u, v = float(depth_pixel[0]), float(depth_pixel[1])
        return 0.0 <= u < self.depth_width and 0.0 <= v < self.depth_height - 1

    def get_rgb(self, pixel) -> np.ndarray:
        """Bilinear color at (u, v); channels in stored (OpenCV BGR) order."""
        if not self.is_inside_rgb(pixel):
            raise PreconditionViolation(
                f"rgb pixel ({pixel[0]}, {pixel[1]}) outside {self.width}x{self.height}"
            )
        return np.asarray(_bilinear(self.rgb_image, float(pixel[0]), float(pixel[1])), dtype=np.float64)

    def get_depth(self, depth_pixel) -> float:
        if not self.is_inside_depth(depth_pixel):
            raise PreconditionViolation(
                f"depth pixel ({depth_pixel[0]}, {depth_pixel[1]}) outside "
                f"{self.depth_width}x{self.depth_height}"
            )
        return float(_bilinear(self.depth_image, float(depth_pixel[0]), float(depth_pixel[1])))

    def resize_rgb(self, size: tuple[int, int]) -> None:
        """Rescale the color raster to (width, height); depth is untouched."""
        w, h = int(size[0]), int(size[1])
        if w < 1 or h < 2:
            raise InputDataError(f"invalid rgb size {size}")
        self.rgb_image = cv2.resize(self.rgb_image, (w, h))
        self.phi_per_pixel = self.phi_range / self.height


def _bilinear(image: np.ndarray, u: float, v: float):
    width = image.shape[1]
    u0 = int(np.floor(u))
    v0 = int(np.floor(v))
    u1 = u0 + 1
    v1 = v0 + 1

    w00 = (u1 - u) * (v1 - v)
    w01 = (u - u0) * (v1 - v)
    w10 = (u1 - u) * (v - v0)
    w11 = (u - u0) * (v - v0)
    # Horizontally cyclic; rows never wrap.
    u1c = u1 % width

    return (
        w00 * image[v0, u0]
        + w01 * image[v0, u1c]
        + w10 * image[v1, u0]
        + w11 * image[v1, u1c]
    )
