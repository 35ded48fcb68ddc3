from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class PanoramaCfg(_Frozen):
    image_pattern: str = "panorama/{index:03d}.png"
    depth_pattern: str = "depth/{index:03d}.depth"
    transform_pattern: str = "transformations/{index:03d}.txt"


class FrameCfg(_Frozen):
    lower_percentile: int = Field(default=5, ge=0, le=100)
    upper_percentile: int = Field(default=95, ge=0, le=100)
    margin_ratio: float = Field(default=0.05, ge=0.0)
    # unit = average_distance / unit_divisor before the resolution cap
    unit_divisor: float = Field(default=50.0, gt=0.0)
    max_resolution: int = Field(default=600, gt=0)


class MaskCfg(_Frozen):
    free_space_threshold: float = 100.0
    kernel_width: int = Field(default=9, ge=1)
    open_iterations: int = Field(default=20, ge=0)


class BoundaryCfg(_Frozen):
    subsample_ratio: float = Field(default=0.2, gt=0.0, le=1.0)


class VisibilityCfg(_Frozen):
    candidate_subsample: int = Field(default=4, ge=1)
    margin_from_boundary: float = 5.0
    visibility_margin: int = Field(default=10, ge=0)
    timeout_s: float | None = None


class ClusteringCfg(_Frozen):
    initial_clusters: int = Field(default=20, ge=1)
    iterations: int = Field(default=10, ge=1)
    merge_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    max_rounds: int = Field(default=5, ge=1)
    restarts: int = Field(default=5, ge=1)


class DoorPathCfg(_Frozen):
    enabled: bool = False
    seed_step: int = Field(default=10, ge=1)
    blur_sigma: float = Field(default=5.0, gt=0.0)
    evidence_scale: float = 0.01
    timeout_s: float | None = None


class ExportCfg(_Frozen):
    write_diagnostics: bool = True


class ObservabilityCfg(_Frozen):
    json_logs: bool = True
    log_level: str = "INFO"


class AppConfig(_Frozen):
    panorama: PanoramaCfg = Field(default_factory=PanoramaCfg)
    frame: FrameCfg = Field(default_factory=FrameCfg)
    mask: MaskCfg = Field(default_factory=MaskCfg)
    boundary: BoundaryCfg = Field(default_factory=BoundaryCfg)
    visibility: VisibilityCfg = Field(default_factory=VisibilityCfg)
    clustering: ClusteringCfg = Field(default_factory=ClusteringCfg)
    door_paths: DoorPathCfg = Field(default_factory=DoorPathCfg)
    export: ExportCfg = Field(default_factory=ExportCfg)
    observability: ObservabilityCfg = Field(default_factory=ObservabilityCfg)
    random_seed: int | None = None


def load_app_config(path: Path) -> AppConfig:
    raw = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config YAML must be a mapping, got {type(raw).__name__}")
    return AppConfig(**raw)


def find_default_config() -> Path | None:
    candidates = [
        Path("config") / "default.yaml",
        Path(__file__).with_name("default.yaml"),
    ]
    for p in candidates:
        if p.exists() and p.is_file():
            return p
    return None
