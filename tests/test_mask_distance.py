from __future__ import annotations

import math

import numpy as np
import pytest

from core.errors import PreconditionViolation
from observability.monitoring import stage_monitor
from segmentation.boundary import find_boundary
from segmentation.mask import NEIGHBORS_8, build_mask, distance_to_boundary, open_mask


def _square(size: int = 20) -> np.ndarray:
    mask = np.zeros((size, size), dtype=bool)
    mask[1 : size - 1, 1 : size - 1] = True
    return mask


def test_build_mask_thresholds_and_clears_border() -> None:
    evidence = np.full((6, 8), 150.0)
    evidence[2, 3] = 100.0
    mask = build_mask(evidence, 100.0)
    assert not mask[0].any() and not mask[-1].any()
    assert not mask[:, 0].any() and not mask[:, -1].any()
    assert not mask[2, 3]
    assert mask[2, 2]


def test_open_mask_removes_thin_noise() -> None:
    mask = _square(30)
    mask[5, 2:28] = False
    mask[20:22, 10] = False
    opened = open_mask(mask, kernel_width=3, iterations=2)
    assert opened[10:20, 11:20].all()
    assert not opened[5, 10]
    assert not opened[20, 10]
    # One-pixel gaps at both ends of the wall close.
    assert not opened[5, 1] and not opened[5, 28]

    speck = np.zeros((30, 30), dtype=bool)
    speck[10, 10] = True
    speck[14:17, 14:17] = True
    cleaned = open_mask(speck, kernel_width=3, iterations=1)
    assert not cleaned[10, 10]
    assert cleaned[14:17, 14:17].all()


def test_distance_zero_on_boundary_and_max_at_center() -> None:
    mask = _square(20)
    dist = distance_to_boundary(mask)

    for x, y in find_boundary(mask):
        assert dist[y, x] == 0.0
    assert np.isinf(dist[~mask]).all()

    assert dist.max() == 8.0
    ys, xs = np.nonzero(dist == dist.max())
    assert np.all(np.abs(xs - 9.5) <= 1.0)
    assert np.all(np.abs(ys - 9.5) <= 1.0)


def test_distance_is_monotone_away_from_boundary() -> None:
    dist = distance_to_boundary(_square(20))
    row = dist[9, 1:10]
    assert np.all(np.diff(row) >= 0.0)


def test_distance_is_lipschitz_on_the_grid() -> None:
    mask = _square(20)
    mask[8:12, 8:12] = False
    dist = distance_to_boundary(mask)
    ys, xs = np.nonzero(mask)
    for x, y in zip(xs, ys):
        for dx, dy, step in NEIGHBORS_8:
            if mask[y + dy, x + dx]:
                assert dist[y, x] <= dist[y + dy, x + dx] + step + 1e-12


def test_boundary_is_both_perimeters() -> None:
    mask = _square(20)
    mask[8:12, 8:12] = False

    outer = {(x, y) for x in range(1, 19) for y in range(1, 19) if x in (1, 18) or y in (1, 18)}
    inner = {(x, y) for x in range(8, 12) for y in (7, 12)} | {(x, y) for y in range(8, 12) for x in (7, 12)}

    boundary = find_boundary(mask)
    assert set(boundary) == outer | inner
    assert len(boundary) == 68 + 16
    assert boundary == sorted(boundary, key=lambda p: (p[1], p[0]))


def test_free_border_is_rejected() -> None:
    mask = np.ones((5, 5), dtype=bool)
    with pytest.raises(PreconditionViolation):
        distance_to_boundary(mask)


def test_distance_stage_is_monitored() -> None:
    stage_monitor.reset()
    distance_to_boundary(_square(6))
    summary = stage_monitor.summary()
    assert summary["distance_to_boundary"]["count"] == 1
    assert summary["distance_to_boundary"]["failures"] == 0

    with pytest.raises(PreconditionViolation):
        distance_to_boundary(np.ones((4, 4), dtype=bool))
    assert stage_monitor.summary()["distance_to_boundary"]["failures"] == 1


def test_diagonal_steps_cost_sqrt2() -> None:
    mask = np.zeros((7, 7), dtype=bool)
    mask[1:6, 1:6] = True
    dist = distance_to_boundary(mask)
    assert dist[3, 3] == 2.0
    assert math.isclose(dist[2, 2], 1.0)
