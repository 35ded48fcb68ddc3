#!/usr/bin/env python3
"""
Batch door/room segmentation of one free-space evidence raster.

Input .npz keys:
  free_space_evidence  (height, width) float   required
  ranges               (3, 2) float            optional frame bounding box
  unit                 float                   optional frame unit
"""

import argparse
import json
import logging
import sys
from pathlib import Path

import numpy as np
import yaml

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from config.loader import AppConfig, find_default_config, load_app_config  # noqa: E402
from core.errors import DeadlineExceeded, InputDataError  # noqa: E402
from observability.logging import configure_logging  # noqa: E402
from observability.monitoring import stage_monitor  # noqa: E402
from segmentation.door_detection import detect_doors  # noqa: E402
from world.frame import Frame  # noqa: E402

logger = logging.getLogger("detect_doors")


def frame_from_npz(data) -> Frame:
    evidence = np.asarray(data["free_space_evidence"])
    if evidence.ndim != 2:
        raise InputDataError(f"free_space_evidence must be 2-D, got {evidence.shape}")
    height, width = evidence.shape
    frame = Frame(size=[int(width), int(height), 1])
    if "ranges" in data:
        frame.ranges = np.asarray(data["ranges"], dtype=np.float64).reshape(3, 2)
    if "unit" in data:
        frame.unit = float(np.asarray(data["unit"]).reshape(-1)[0])
    return frame


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    ap.add_argument("--evidence", required=True, help="npz with free_space_evidence")
    ap.add_argument("--config", default=None, help="YAML config (default: config/default.yaml)")
    ap.add_argument("--out", default="out/door_detection", help="output directory")
    ap.add_argument("--seed", type=int, default=None, help="override random_seed")
    ap.add_argument("--door-paths", action="store_true", help="also compute shortest-path door evidence")
    args = ap.parse_args(argv)

    cfg_path = Path(args.config) if args.config else find_default_config()
    try:
        cfg = load_app_config(cfg_path) if cfg_path is not None else AppConfig()
    except (OSError, ValueError, yaml.YAMLError) as exc:
        logger.error("Invalid config %s: %s", cfg_path, exc)
        return 2
    updates = {}
    if args.seed is not None:
        updates["random_seed"] = args.seed
    if args.door_paths:
        updates["door_paths"] = cfg.door_paths.model_copy(update={"enabled": True})
    if updates:
        cfg = cfg.model_copy(update=updates)

    configure_logging(cfg.observability)

    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)
    try:
        with np.load(args.evidence) as data:
            frame = frame_from_npz(data)
            evidence = np.asarray(data["free_space_evidence"], dtype=np.float64)
    except (OSError, KeyError, InputDataError) as exc:
        logger.error("Cannot read evidence %s: %s", args.evidence, exc)
        return 2

    try:
        result = detect_doors(frame, evidence, cfg, output_directory=out_dir)
    except DeadlineExceeded as exc:
        logger.error("%s", exc)
        return 3

    arrays = {
        "mask": result.mask,
        "distance_to_boundary": result.distance_to_boundary,
    }
    if result.door_evidence is not None:
        arrays["door_evidence"] = result.door_evidence
    np.savez_compressed(str(out_dir / "door_detection.npz"), **arrays)

    summary = {
        "frame": {"width": frame.width, "height": frame.height},
        "boundary_points": len(result.boundary),
        "clusterings": [
            {"centers": c.centers, "clusters": [len(m) for m in c.clusters]} for c in result.clusterings
        ],
        "files": result.files,
        "stages": stage_monitor.summary(),
        "trace": result.trace,
    }
    (out_dir / "summary.json").write_text(json.dumps(summary, indent=2, default=str), encoding="utf-8")
    logger.info("Wrote %s", out_dir / "summary.json")
    return 0


if __name__ == "__main__":
    sys.exit(main())
