"""Test configuration.

Ensure the project root is on sys.path so tests can import `segmentation.*`
when executed from different working directories.
"""

import os
import sys

import numpy as np
import pytest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)


def make_two_rooms(door: bool = False) -> np.ndarray:
    """
    41x21 raster: two 19x19 rooms (x 1..19 and 21..39) split by a wall at x=20.
    With door=True the wall has a 3-pixel gap at y 9..11.
    """
    mask = np.zeros((21, 41), dtype=bool)
    mask[1:20, 1:40] = True
    mask[:, 20] = False
    if door:
        mask[9:12, 20] = True
    return mask


@pytest.fixture
def two_rooms() -> np.ndarray:
    return make_two_rooms(door=False)


@pytest.fixture
def two_rooms_with_door() -> np.ndarray:
    return make_two_rooms(door=True)
