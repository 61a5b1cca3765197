#!/usr/bin/env python3
"""
Regenerate the interval figures from a finished run's summary CSVs.

Default source: the run named in RESULTS/runs/LAST_SUCCESSFUL_RUN.json

Environment overrides:
- OCCUPANCY_RESULTS_DIR: base results directory containing runs/
- RUN_DIR: explicit run folder (takes precedence over the marker)

Reads site_effects.csv, detection_by_species.csv and detection_by_guild.csv
and writes the figures into <run>/figures without touching the posterior.
"""
from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from occupancy.analysis.pipeline_utils import read_last_successful_run, setup_logging
from occupancy.analysis.plots import render_figures
from occupancy.analysis.settings import PlotTheme, default_results_dir


log = logging.getLogger(__name__)

REQUIRED = ("site_effects.csv", "detection_by_species.csv", "detection_by_guild.csv")


def resolve_run_dir(explicit: Optional[str] = None) -> Path:
    # 1) Explicit argument or RUN_DIR override
    override = explicit or os.environ.get("RUN_DIR")
    if override:
        return Path(override)

    # 2) Last successful run marker
    runs_dir = default_results_dir() / "runs"
    info = read_last_successful_run(runs_dir)
    if info is None:
        raise FileNotFoundError(
            f"No run given and no LAST_SUCCESSFUL_RUN.json under {runs_dir}. "
            "Pass --run-dir, set RUN_DIR, or set OCCUPANCY_RESULTS_DIR."
        )
    log.info(f"Last successful run: {info.get('timestamp', '?')} ({info.get('run_name', '?')})")
    return Path(info["run_dir"])


def common_names(run_dir: Path) -> Optional[Dict[str, str]]:
    """Species code -> common name from the run's superiority table, if any."""
    tables = sorted(run_dir.glob("prob_*_better.csv"))
    if not tables:
        return None
    table = pd.read_csv(tables[0], dtype={"species": str})
    return dict(zip(table["species"], table["common_name"]))


def main(argv: List[str] | None = None, configure_logging: bool = True) -> int:
    ap = argparse.ArgumentParser(description="Regenerate occupancy figures from summary CSVs")
    ap.add_argument("--run-dir", type=str, default=None)
    ap.add_argument("--formats", type=str, default="png,pdf", help="Comma-separated figure formats")
    ap.add_argument("--dpi", type=int, default=300)
    args = ap.parse_args(argv)
    if configure_logging:
        setup_logging()

    run_dir = resolve_run_dir(args.run_dir)
    missing = [name for name in REQUIRED if not (run_dir / name).exists()]
    if missing:
        raise FileNotFoundError(f"Run folder {run_dir} is missing {missing}")

    sites = pd.read_csv(run_dir / "site_effects.csv", dtype={"site": str})
    species = pd.read_csv(run_dir / "detection_by_species.csv", dtype={"species": str})
    guilds = pd.read_csv(run_dir / "detection_by_guild.csv", dtype={"guild": str})

    names = common_names(run_dir)

    theme = PlotTheme(dpi=args.dpi, formats=tuple(f.strip() for f in args.formats.split(",") if f.strip()))
    render_figures(sites, species, guilds, run_dir / "figures", theme, names)
    log.info(f"✅ Figures regenerated in {run_dir / 'figures'}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
