#!/usr/bin/env python3
"""
Reproducibility Suite: Acoustic vs Standard Survey Occupancy
============================================================

End-to-end check of the analysis on a simulated survey:

  1. simulate survey records + species lookup into data/
  2. fit the occupancy-detection model and write all summaries/figures
  3. re-run without --refit and confirm the cached fit is reused

Usage:
    python reproduce_all.py [--draws N] [--tune N] [--chains N]
"""

import argparse
import json
import logging
import sys
import time
from datetime import datetime
from pathlib import Path

import pandas as pd

from occupancy.data_prep import default_species_lookup, simulate_survey
from occupancy.analysis import run_occupancy

ROOT = Path(__file__).resolve().parent
DATA_DIR = ROOT / "data"
RESULTS_DIR = ROOT / "results" / "reproduce"

DATA_DIR.mkdir(exist_ok=True)
RESULTS_DIR.mkdir(parents=True, exist_ok=True)

LOG_PATH = RESULTS_DIR / "reproducibility_log.txt"
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    handlers=[
        logging.FileHandler(LOG_PATH, mode='w'),
        logging.StreamHandler(sys.stdout),
    ]
)
log = logging.getLogger(__name__)


class Validator:
    def __init__(self):
        self.checks = []

    def check(self, name, condition, detail=""):
        status = "PASS" if condition else "FAIL"
        self.checks.append((name, status, detail))
        sym = "✓" if condition else "✗"
        log.info(f"  {sym} {name}: {status}  {detail}")
        return condition

    def summary(self):
        passed = sum(1 for _, s, _ in self.checks if s == "PASS")
        return passed, len(self.checks)


def step1_simulate(v, n_sites=15, seed=42):
    log.info("=" * 70)
    log.info("STEP 1: Simulated survey")
    log.info("=" * 70)
    lookup = default_species_lookup()
    records = simulate_survey(lookup, n_sites=n_sites, seed=seed)
    survey_path = DATA_DIR / "simulated_survey.csv"
    species_path = DATA_DIR / "simulated_species.csv"
    records.to_csv(survey_path, index=False)
    lookup.to_csv(species_path, index=False)
    log.info(f"  {len(records)} records, {records['site'].nunique()} sites, {len(lookup)} species")
    v.check("Every site/species/method has records",
            records.groupby(["site", "species", "method"]).ngroups == n_sites * len(lookup) * 2)
    return survey_path, species_path


def _run(survey_path, species_path, label, sampler_args):
    argv = [
        "--survey", str(survey_path),
        "--species", str(species_path),
        "--results-dir", str(RESULTS_DIR),
        "--run-label", label,
        "--no-timestamp",
        *sampler_args,
    ]
    code = run_occupancy.main(argv, configure_logging=False)
    run_dir = RESULTS_DIR / "runs" / label
    return code, run_dir, json.loads((run_dir / "manifest.json").read_text())


def step2_fit(v, survey_path, species_path, sampler_args):
    log.info("")
    log.info("=" * 70)
    log.info("STEP 2: Model fit and summaries")
    log.info("=" * 70)
    code, run_dir, manifest = _run(survey_path, species_path, "fit", sampler_args + ["--refit"])
    v.check("Pipeline exit code 0", code == 0)

    prob = pd.read_csv(run_dir / "prob_acoustic_better.csv")
    v.check("Superiority probabilities within [0, 1]",
            prob["probability"].between(0.0, 1.0).all(), f"n={len(prob)}")
    det = pd.read_csv(run_dir / "detection_by_species.csv")
    v.check("Detection intervals ordered",
            ((det["q05"] <= det["q25"]) & (det["q25"] <= det["median"]) &
             (det["median"] <= det["q75"]) & (det["q75"] <= det["q95"])).all())
    conv = manifest["convergence"]
    v.check("Max R-hat < 1.05", conv["max_rhat"] < 1.05, f"{conv['max_rhat']:.3f}")
    v.check("Figures written", len(list((run_dir / "figures").glob("*.png"))) >= 3)


def step3_cache(v, survey_path, species_path, sampler_args):
    log.info("")
    log.info("=" * 70)
    log.info("STEP 3: Cached fit reuse")
    log.info("=" * 70)
    code, _, manifest = _run(survey_path, species_path, "cached", sampler_args + ["--no-plots"])
    v.check("Second run reuses cached fit", code == 0 and manifest["fit"]["reused"],
            manifest["fit"]["cache_path"])


def main(argv=None):
    ap = argparse.ArgumentParser(description="Reproduce the occupancy analysis on simulated data")
    ap.add_argument("--draws", type=int, default=1000)
    ap.add_argument("--tune", type=int, default=1000)
    ap.add_argument("--chains", type=int, default=4)
    ap.add_argument("--cores", type=int, default=4)
    args = ap.parse_args(argv)
    sampler_args = ["--draws", str(args.draws), "--tune", str(args.tune),
                    "--chains", str(args.chains), "--cores", str(args.cores)]

    start = time.time()
    log.info("=" * 70)
    log.info("REPRODUCIBILITY SUITE: ACOUSTIC VS STANDARD OCCUPANCY")
    log.info(f"Timestamp: {datetime.now().isoformat()}")
    log.info(f"Data:    {DATA_DIR}")
    log.info(f"Results: {RESULTS_DIR}")
    log.info(f"Log:     {LOG_PATH}")
    log.info("=" * 70)

    v = Validator()
    failures = []
    paths = None

    steps = [
        ("Simulate survey", lambda: step1_simulate(v)),
        ("Model fit", lambda: step2_fit(v, *paths, sampler_args)),
        ("Cached fit", lambda: step3_cache(v, *paths, sampler_args)),
    ]

    for name, fn in steps:
        if name != "Simulate survey" and paths is None:
            failures.append((name, "skipped: no simulated data"))
            continue
        try:
            result = fn()
            if name == "Simulate survey":
                paths = result
        except Exception as e:
            log.exception(f"STEP FAILED: {name}: {e}")
            failures.append((name, str(e)))

    elapsed = time.time() - start
    passed, total = v.summary()

    log.info("")
    log.info("=" * 70)
    log.info("REPRODUCIBILITY SUMMARY")
    log.info("=" * 70)
    log.info(f"Validation: {passed}/{total} checks passed")
    log.info(f"Failures:   {len(failures)} step(s) failed")
    log.info(f"Elapsed:    {elapsed:.1f}s")
    for name, err in failures:
        log.info(f"  ✗ {name}: {err}")

    if passed == total and not failures:
        log.info("\n★ ALL CHECKS PASSED")
        return 0
    log.info("\n⚠ SOME CHECKS FAILED, review above")
    return 1


if __name__ == "__main__":
    sys.exit(main())
