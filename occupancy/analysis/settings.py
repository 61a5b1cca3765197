"""
Run configuration

Everything a run depends on is carried in these dataclasses and passed into
each step explicitly:

- OccupancyPriors: prior constants of the occupancy-detection model
- SamplerConfig: MCMC settings handed to PyMC
- PlotTheme: figure styling
- RunPaths: where results and cached fits live

Base directories can be overridden with OCCUPANCY_RESULTS_DIR and
OCCUPANCY_CACHE_DIR.
"""
from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Tuple


REPO_ROOT = Path(__file__).resolve().parents[2]


@dataclass(frozen=True)
class OccupancyPriors:
    # Normal(0, mu_sigma) on the logit-scale hyper-means
    mu_sigma: float = 1.5
    # Exponential(sd_rate) on every random-effect standard deviation
    sd_rate: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SamplerConfig:
    draws: int = 2000
    tune: int = 2000
    chains: int = 4
    thin: int = 1
    cores: int = 4
    target_accept: float = 0.95
    random_seed: int = 42
    init_occupancy: int = 1

    def __post_init__(self):
        if self.draws < 1 or self.tune < 0 or self.chains < 1 or self.cores < 1:
            raise ValueError(f"Invalid sampler settings: {self}")
        if self.thin < 1:
            raise ValueError(f"thin must be >= 1, got {self.thin}")
        if self.init_occupancy not in (0, 1):
            raise ValueError(f"init_occupancy must be 0 or 1, got {self.init_occupancy}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PlotTheme:
    style: str = "whitegrid"
    context: str = "notebook"
    palette: Dict[str, str] = field(default_factory=lambda: {"acoustic": "dodgerblue", "standard": "crimson"})
    point_color: str = "black"
    dpi: int = 300
    formats: Tuple[str, ...] = ("png", "pdf")


@dataclass
class RunPaths:
    results_dir: Path
    cache_dir: Path
    run_name: str

    @property
    def runs_dir(self) -> Path:
        return self.results_dir / "runs"

    @property
    def run_dir(self) -> Path:
        return self.runs_dir / self.run_name

    @property
    def figures_dir(self) -> Path:
        return self.run_dir / "figures"

    def create(self) -> "RunPaths":
        self.figures_dir.mkdir(parents=True, exist_ok=True)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        return self


def default_results_dir() -> Path:
    return Path(os.environ.get("OCCUPANCY_RESULTS_DIR", str(REPO_ROOT / "results")))


def default_cache_dir(results_dir: Optional[Path] = None) -> Path:
    base = Path(results_dir) if results_dir is not None else default_results_dir()
    return Path(os.environ.get("OCCUPANCY_CACHE_DIR", str(base / "cache")))


def make_run_name(label: str = "", timestamp: bool = True, now: Optional[datetime] = None) -> str:
    """Run folder name: ``<label>_<YYYYmmdd_HHMMSS>``, either part optional."""
    parts = [label.strip()] if label and label.strip() else []
    if timestamp:
        parts.append((now or datetime.now()).strftime("%Y%m%d_%H%M%S"))
    return "_".join(parts) or "latest"
