from __future__ import annotations

import json
from pathlib import Path

import numpy as np

from scripts.detect_doors import main

SMALL_CONFIG = """
mask:
  kernel_width: 3
  open_iterations: 1
boundary:
  subsample_ratio: 0.5
visibility:
  candidate_subsample: 2
clustering:
  initial_clusters: 4
  restarts: 1
door_paths:
  seed_step: 4
  blur_sigma: 1.5
observability:
  json_logs: false
random_seed: 0
"""


def test_cli_writes_outputs(tmp_path: Path, two_rooms_with_door) -> None:
    evidence = tmp_path / "evidence.npz"
    np.savez(evidence, free_space_evidence=two_rooms_with_door.astype(np.float64) * 200.0)
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text(SMALL_CONFIG, encoding="utf-8")
    out = tmp_path / "out"

    rc = main(["--evidence", str(evidence), "--config", str(cfg), "--out", str(out), "--door-paths"])
    assert rc == 0

    with np.load(out / "door_detection.npz") as data:
        assert np.array_equal(data["mask"], two_rooms_with_door)
        assert data["door_evidence"].shape == (21, 41)

    summary = json.loads((out / "summary.json").read_text(encoding="utf-8"))
    assert summary["frame"] == {"width": 41, "height": 21}
    assert len(summary["clusterings"]) == 1
    assert "compute_visibility" in summary["stages"]
    assert (out / "cluster-00.ppm").exists()


def test_cli_rejects_bad_evidence(tmp_path: Path) -> None:
    evidence = tmp_path / "evidence.npz"
    np.savez(evidence, free_space_evidence=np.zeros(10))
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text(SMALL_CONFIG, encoding="utf-8")
    assert main(["--evidence", str(evidence), "--config", str(cfg), "--out", str(tmp_path / "o")]) == 2
    assert main(["--evidence", str(tmp_path / "missing.npz"), "--config", str(cfg), "--out", str(tmp_path / "o")]) == 2


def test_cli_rejects_invalid_config(tmp_path: Path, two_rooms) -> None:
    evidence = tmp_path / "evidence.npz"
    np.savez(evidence, free_space_evidence=two_rooms.astype(np.float64) * 200.0)
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text("mask:\n  kernel_width: 0\n", encoding="utf-8")
    assert main(["--evidence", str(evidence), "--config", str(cfg), "--out", str(tmp_path / "o")]) == 2


def test_cli_rejects_malformed_yaml(tmp_path: Path, two_rooms) -> None:
    evidence = tmp_path / "evidence.npz"
    np.savez(evidence, free_space_evidence=two_rooms.astype(np.float64) * 200.0)
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text("mask: [kernel_width: 3\n", encoding="utf-8")
    assert main(["--evidence", str(evidence), "--config", str(cfg), "--out", str(tmp_path / "o")]) == 2
