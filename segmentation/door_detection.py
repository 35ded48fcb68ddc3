"""
Door / room segmentation over a rasterized free-space evidence grid.

Two independent door signals come out of one run:
  - room clusters from weighted-visibility k-medoids (always computed);
  - a blurred shortest-path count field (door_paths.enabled).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numpy as np

from config.loader import AppConfig
from core.deadline import Deadline
from core.errors import InputDataError
from export.raster_export import (
    write_cluster_ppm,
    write_distance_ppm,
    write_door_detection_ppm,
    write_mask_pgm,
)
from observability.stage_trace import add_trace_event
from segmentation.boundary import (
    CandidateGrid,
    Pixel,
    Signature,
    associate_weight_to_visibility,
    compute_visibility,
    find_boundary,
    subsample_boundary,
)
from segmentation.clustering import ClusteringResult, cluster_merge, initial_centers
from segmentation.door_paths import accumulate_door_evidence, blur_field, seed_grid
from segmentation.mask import build_mask, count_mask, distance_to_boundary, open_mask
from world.frame import Frame

logger = logging.getLogger(__name__)


@dataclass
class DoorDetectionResult:
    mask_before_open: np.ndarray
    mask: np.ndarray
    boundary: list[Pixel]
    distance_to_boundary: np.ndarray
    grid: CandidateGrid
    signatures: list[Signature]
    clusterings: list[ClusteringResult] = field(default_factory=list)
    door_evidence: np.ndarray | None = None
    trace: list[dict[str, Any]] = field(default_factory=list)
    files: list[dict[str, Any]] = field(default_factory=list)


def _as_raster(frame: Frame, values, name: str) -> np.ndarray:
    arr = np.asarray(values, dtype=np.float64)
    if arr.ndim == 1:
        if arr.size != frame.width * frame.height:
            raise InputDataError(f"{name} has {arr.size} cells, frame is {frame.width}x{frame.height}")
        arr = arr.reshape(frame.height, frame.width)
    if arr.shape != frame.shape:
        raise InputDataError(f"{name} shape {arr.shape} does not match frame {frame.shape}")
    return arr


def detect_doors(
    frame: Frame,
    free_space_evidence,
    config: AppConfig | None = None,
    *,
    rng: np.random.Generator | None = None,
    output_directory: Path | None = None,
    point_evidence=None,
) -> DoorDetectionResult:
    """
    point_evidence is accepted for interface parity with the evidence stage;
    the current pipeline thresholds free-space evidence only.
    """
    cfg = config or AppConfig()
    if rng is None:
        rng = np.random.default_rng(cfg.random_seed)
    # Cluster colors come from a child stream; clustering draws do not depend on diagnostics.
    colors_rng = rng.spawn(1)[0]
    evidence = _as_raster(frame, free_space_evidence, "free_space_evidence")
    if point_evidence is not None:
        _as_raster(frame, point_evidence, "point_evidence")

    trace: list[dict[str, Any]] = []
    files: list[dict[str, Any]] = []
    out_dir = Path(output_directory) if output_directory is not None else None
    write = out_dir is not None and cfg.export.write_diagnostics

    mask_before = build_mask(evidence, cfg.mask.free_space_threshold)
    mask = open_mask(mask_before, cfg.mask.kernel_width, cfg.mask.open_iterations)
    add_trace_event(trace, "mask", {"free_before_open": count_mask(mask_before), "free_after_open": count_mask(mask)})
    if write:
        files.append(write_mask_pgm(mask_before, out_dir / "mask_before_open.pgm"))
        files.append(write_mask_pgm(mask, out_dir / "mask_after_open.pgm"))

    logger.info("FindBoundary...")
    full_boundary = find_boundary(mask)
    boundary = subsample_boundary(full_boundary, cfg.boundary.subsample_ratio, rng)
    add_trace_event(trace, "boundary", {"found": len(full_boundary), "kept": len(boundary)})
    if not boundary:
        logger.warning("Empty boundary set; no visibility signatures will be produced")

    logger.info("SetDistanceToBoundary...")
    dist = distance_to_boundary(mask)
    if write:
        files.append(write_distance_ppm(dist, mask, out_dir / "distance_to_boundary.ppm"))

    logger.info("ComputeVisibility...")
    grid = CandidateGrid(frame.width, frame.height, cfg.visibility.candidate_subsample)
    visibility = compute_visibility(
        mask,
        boundary,
        dist,
        grid,
        margin_from_boundary=cfg.visibility.margin_from_boundary,
        visibility_margin=cfg.visibility.visibility_margin,
        deadline=Deadline(cfg.visibility.timeout_s),
    )
    signatures = associate_weight_to_visibility(boundary, visibility, grid)
    non_empty = sum(1 for s in signatures if s)
    add_trace_event(trace, "visibility", {"candidates": grid.count, "with_signature": non_empty})

    result = DoorDetectionResult(
        mask_before_open=mask_before,
        mask=mask,
        boundary=boundary,
        distance_to_boundary=dist,
        grid=grid,
        signatures=signatures,
        trace=trace,
        files=files,
    )

    if non_empty > 0:
        for s in range(cfg.clustering.restarts):
            centers = initial_centers(signatures, cfg.clustering.initial_clusters, rng)
            logger.info("ClusterMerge %d...", s)
            clustering = cluster_merge(
                signatures,
                centers,
                threshold=cfg.clustering.merge_threshold,
                max_rounds=cfg.clustering.max_rounds,
                iterations=cfg.clustering.iterations,
            )
            result.clusterings.append(clustering)
            add_trace_event(trace, "clustering", {"restart": s, "clusters": clustering.num_clusters, "rounds": clustering.rounds})
            if write:
                path = out_dir / f"cluster-{s:02d}.ppm"
                files.append(write_cluster_ppm(grid, clustering.centers, clustering.clusters, path, colors_rng))
                logger.info("Wrote: %s", path)
    else:
        add_trace_event(trace, "clustering", {"skipped": "no signatures"}, level="warning")

    if cfg.door_paths.enabled:
        seeds = seed_grid(mask, cfg.door_paths.seed_step)
        logger.info("Shortest paths over %d seeds...", len(seeds))
        door = accumulate_door_evidence(mask, dist, seeds, deadline=Deadline(cfg.door_paths.timeout_s))
        door = blur_field(door, mask, cfg.door_paths.blur_sigma)
        result.door_evidence = door
        add_trace_event(trace, "door_paths", {"seeds": len(seeds), "max_evidence": float(door.max(initial=0.0))})
        if write:
            files.append(
                write_door_detection_ppm(door, mask, out_dir / "door_detection.ppm", scale=cfg.door_paths.evidence_scale)
            )

    return result
