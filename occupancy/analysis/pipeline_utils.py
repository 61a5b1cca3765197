"""
Shared run utilities.

Functions provided:
- setup_logging: console + run.log handlers for a pipeline run.
- save_table: write a DataFrame to CSV inside the run folder and log it.
- write_run_manifest: write manifest.json alongside outputs capturing
  CLI args, resolved inputs, fit cache key and diagnostics.
- write_last_successful_run / read_last_successful_run: the
  LAST_SUCCESSFUL_RUN.json marker in the runs directory, used by the
  figure and lookup scripts to find the newest completed run.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import pandas as pd


LAST_RUN_MARKER = "LAST_SUCCESSFUL_RUN.json"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"

log = logging.getLogger(__name__)


def setup_logging(log_path: Optional[Path] = None, level: int = logging.INFO) -> None:
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_path is not None:
        Path(log_path).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, mode="w"))
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)


def save_table(df: pd.DataFrame, run_dir: Path, name: str, index: bool = False) -> Path:
    path = Path(run_dir) / name
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=index)
    log.info(f"✅ Saved {name}: {path}")
    return path


def write_run_manifest(run_dir: Path, info: Dict[str, Any]) -> Path:
    run_dir = Path(run_dir)
    run_dir.mkdir(parents=True, exist_ok=True)
    out_path = run_dir / "manifest.json"
    with out_path.open("w", encoding="utf-8") as f:
        json.dump(info, f, indent=2, sort_keys=True, default=str)
    return out_path


def write_last_successful_run(runs_dir: Path, run_name: str, run_dir: Path,
                              now: Optional[datetime] = None) -> Path:
    runs_dir = Path(runs_dir)
    runs_dir.mkdir(parents=True, exist_ok=True)
    marker = runs_dir / LAST_RUN_MARKER
    marker.write_text(json.dumps({
        "timestamp": (now or datetime.now()).strftime("%Y%m%d_%H%M%S"),
        "run_name": run_name,
        "run_dir": str(run_dir),
    }, indent=2))
    return marker


def read_last_successful_run(runs_dir: Path) -> Optional[Dict[str, Any]]:
    marker = Path(runs_dir) / LAST_RUN_MARKER
    if not marker.exists():
        return None
    return json.loads(marker.read_text())
