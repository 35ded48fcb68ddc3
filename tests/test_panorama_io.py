from __future__ import annotations

import math
from pathlib import Path

import cv2
import numpy as np
import pytest

from config.loader import PanoramaCfg
from core.errors import InputDataError, PanoramaLoadError
from world.panorama_io import PanoramaFileLayout, load_panorama, read_depth_file, read_transform_file


def _write_inputs(root: Path, index: int = 0, *, depth_text: str | None = None) -> PanoramaFileLayout:
    layout = PanoramaFileLayout(root)
    for p in (layout.image_path(index), layout.depth_path(index), layout.transform_path(index)):
        p.parent.mkdir(parents=True, exist_ok=True)

    image = np.zeros((20, 40, 3), dtype=np.uint8)
    image[:, :, 2] = 255
    assert cv2.imwrite(str(layout.image_path(index)), image)

    if depth_text is None:
        values = " ".join(str(float(v)) for v in range(8))
        depth_text = f"depth 4 2 0.0 7.0\n{values}\n"
    layout.depth_path(index).write_text(depth_text, encoding="utf-8")

    matrix = "1 0 0 0.5\n0 1 0 -1\n0 0 1 2\n0 0 0 1\n"
    layout.transform_path(index).write_text(f"transformation\n{matrix}{math.pi}\n", encoding="utf-8")
    return layout


def test_layout_paths_are_zero_padded(tmp_path: Path) -> None:
    layout = PanoramaFileLayout(tmp_path)
    assert layout.image_path(7) == tmp_path / "panorama" / "007.png"
    assert layout.depth_path(12) == tmp_path / "depth" / "012.depth"
    assert layout.transform_path(3) == tmp_path / "transformations" / "003.txt"


def test_read_depth_file_is_row_major(tmp_path: Path) -> None:
    layout = _write_inputs(tmp_path)
    depth, lo, hi = read_depth_file(layout.depth_path(0))
    assert depth.shape == (2, 4)
    assert depth[0, 3] == 3.0
    assert depth[1, 0] == 4.0
    assert (lo, hi) == (0.0, 7.0)


def test_read_transform_file(tmp_path: Path) -> None:
    layout = _write_inputs(tmp_path)
    T, phi_range = read_transform_file(layout.transform_path(0))
    assert T.shape == (4, 4)
    assert np.allclose(T[:3, 3], [0.5, -1.0, 2.0])
    assert math.isclose(phi_range, math.pi)


def test_load_panorama(tmp_path: Path) -> None:
    layout = _write_inputs(tmp_path)
    pano = load_panorama(layout, 0)
    assert (pano.width, pano.height) == (40, 20)
    assert (pano.depth_width, pano.depth_height) == (4, 2)
    assert math.isclose(pano.average_distance, 3.5)
    assert np.allclose(pano.center, [0.5, -1.0, 2.0])
    # OpenCV keeps BGR order.
    assert np.allclose(pano.get_rgb((5.0, 5.0)), [0.0, 0.0, 255.0])


def test_missing_image_raises(tmp_path: Path) -> None:
    layout = _write_inputs(tmp_path)
    layout.image_path(0).unlink()
    with pytest.raises(PanoramaLoadError):
        load_panorama(layout, 0)


def test_missing_depth_raises(tmp_path: Path) -> None:
    layout = _write_inputs(tmp_path)
    with pytest.raises(PanoramaLoadError) as err:
        read_depth_file(layout.depth_path(5))
    assert "005.depth" in err.value.path


def test_truncated_depth_raises(tmp_path: Path) -> None:
    layout = _write_inputs(tmp_path, depth_text="depth 4 2 0.0 7.0\n1 2 3\n")
    with pytest.raises(PanoramaLoadError):
        load_panorama(layout, 0)


def test_non_numeric_depth_raises(tmp_path: Path) -> None:
    layout = _write_inputs(tmp_path, depth_text="depth 2 1 0.0 1.0\n1 x\n")
    with pytest.raises(InputDataError):
        read_depth_file(layout.depth_path(0))


def test_short_transform_raises(tmp_path: Path) -> None:
    layout = _write_inputs(tmp_path)
    layout.transform_path(0).write_text("transformation\n1 0 0 0\n", encoding="utf-8")
    with pytest.raises(PanoramaLoadError):
        read_transform_file(layout.transform_path(0))


def test_layout_from_config(tmp_path: Path) -> None:
    cfg = PanoramaCfg(image_pattern="rgb_{index}.jpg")
    layout = PanoramaFileLayout.from_config(tmp_path, cfg)
    assert layout.image_path(4) == tmp_path / "rgb_4.jpg"
    assert layout.depth_path(4) == tmp_path / "depth" / "004.depth"


def test_non_canonical_last_row_is_rewritten(tmp_path: Path) -> None:
    layout = _write_inputs(tmp_path)
    matrix = "0 -1 0 0.5\n1 0 0 -1\n0 0 1 2\n0.1 0.2 0.3 2\n"
    layout.transform_path(0).write_text(f"transformation\n{matrix}{math.pi}\n", encoding="utf-8")
    pano = load_panorama(layout, 0)

    assert pano.global_to_local[3].tolist() == [0.0, 0.0, 0.0, 1.0]
    assert np.allclose(pano.center, [0.5, -1.0, 2.0])
    rng = np.random.default_rng(2)
    for p in rng.uniform(-4.0, 4.0, size=(10, 3)):
        assert np.allclose(pano.local_to_global_point(pano.global_to_local_point(p)), p)
        assert np.allclose(pano.global_to_local_point(pano.local_to_global_point(p)), p)
