"""
Door / room segmentation over rasterized free-space evidence.

Attributes are loaded lazily so `segmentation.mask` can be used without
importing the whole pipeline (and its export/config dependencies).
"""

from importlib import import_module
from typing import Dict, Tuple

_EXPORTS: Dict[str, Tuple[str, str]] = {
    # Mask & distance field
    "build_mask": (".mask", "build_mask"),
    "open_mask": (".mask", "open_mask"),
    "distance_to_boundary": (".mask", "distance_to_boundary"),
    # Boundary & visibility
    "CandidateGrid": (".boundary", "CandidateGrid"),
    "find_boundary": (".boundary", "find_boundary"),
    "is_visible": (".boundary", "is_visible"),
    "compute_visibility": (".boundary", "compute_visibility"),
    # Clustering
    "visibility_distance": (".clustering", "visibility_distance"),
    "cluster_merge": (".clustering", "cluster_merge"),
    # Shortest-path door evidence
    "find_shortest_paths": (".door_paths", "find_shortest_paths"),
    "blur_field": (".door_paths", "blur_field"),
    # Pipeline
    "detect_doors": (".door_detection", "detect_doors"),
    "DoorDetectionResult": (".door_detection", "DoorDetectionResult"),
}

__all__ = list(_EXPORTS.keys())


def __getattr__(name: str):
    if name not in _EXPORTS:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

    module_name, attr_name = _EXPORTS[name]
    module = import_module(module_name, __name__)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value
