#!/usr/bin/env python3
"""
Acoustic vs standard survey occupancy analysis

Loads the survey records and species lookup, fits (or reuses) the hierarchical
occupancy-detection model, checks convergence and writes summaries, figures
and the per-species superiority report into a run folder:

  <results-dir>/runs/<run-name>/
      naive_detection.csv        share of sites with ≥1 detection
      convergence.csv            min ESS / max R-hat per parameter
      summary.csv                ArviZ summary of monitored parameters
      site_effects.csv           site random effects
      occupancy_by_species.csv   baseline occupancy probability
      detection_by_species.csv   detection probability per species × method
      detection_by_guild.csv     detection probability per guild × method
      prob_acoustic_better.csv   P(p_acoustic > p_standard) per species
      figures/                   interval plots (png + pdf)
      manifest.json, run.log

Fits are cached under --cache-dir keyed by a hash of data, priors and sampler
settings; pass --refit to sample again anyway.

Usage:
  occupancy-run --survey data/survey.csv --species data/species.csv
  python -m occupancy.analysis.run_occupancy --survey ... --species ... --refit
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import arviz as az

from ..data_prep import build_survey_arrays, load_species_lookup, load_survey_records, naive_detection_table
from .diagnostics import check_convergence, log_convergence
from .model import MONITORED_VARS
from .pipeline_utils import save_table, setup_logging, write_last_successful_run, write_run_manifest
from .plots import format_superiority_report, plot_trace_diagnostics, render_figures, save_figure
from .posterior import (
    detection_summary,
    guild_detection_summary,
    occupancy_summary,
    prob_method_better,
    site_effect_summary,
    superiority_table,
)
from .sampling import Sampler, fit_or_load
from .settings import (
    OccupancyPriors,
    PlotTheme,
    RunPaths,
    SamplerConfig,
    default_cache_dir,
    default_results_dir,
    make_run_name,
)


log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    d = SamplerConfig()
    p = argparse.ArgumentParser(description="Occupancy-detection model comparing acoustic and standard surveys")
    p.add_argument("--survey", type=str, required=True, help="Survey records CSV/TSV")
    p.add_argument("--species", type=str, required=True, help="Species lookup CSV/TSV")
    p.add_argument("--results-dir", type=str, default=str(default_results_dir()),
                   help="Base results directory (env: OCCUPANCY_RESULTS_DIR)")
    p.add_argument("--cache-dir", type=str, default=None,
                   help="Fit cache directory (env: OCCUPANCY_CACHE_DIR; default <results-dir>/cache)")
    p.add_argument("--run-label", type=str, default="", help="Label prefix for the run folder")
    p.add_argument("--no-timestamp", action="store_true", help="Do not append a timestamp to the run folder")
    p.add_argument("--refit", action="store_true", help="Sample even if a cached fit exists")
    p.add_argument("--draws", type=int, default=d.draws, help="Post-burn-in draws per chain")
    p.add_argument("--tune", type=int, default=d.tune, help="Burn-in (tuning) iterations per chain")
    p.add_argument("--chains", type=int, default=d.chains)
    p.add_argument("--thin", type=int, default=d.thin, help="Keep every n-th draw")
    p.add_argument("--cores", type=int, default=d.cores, help="Chains run in parallel")
    p.add_argument("--target-accept", type=float, default=d.target_accept)
    p.add_argument("--seed", type=int, default=d.random_seed)
    p.add_argument("--better", type=str, default="acoustic", choices=["acoustic", "standard"],
                   help="Method tested for higher detection (other method is the comparison)")
    p.add_argument("--no-plots", action="store_true", help="Skip figures")
    p.add_argument("--plots-extended", action="store_true", help="Also write ArviZ trace plots")
    return p


def _resolve_paths(args: argparse.Namespace) -> RunPaths:
    results_dir = Path(args.results_dir)
    cache_dir = Path(args.cache_dir) if args.cache_dir else default_cache_dir(results_dir)
    run_name = make_run_name(args.run_label, timestamp=not args.no_timestamp)
    return RunPaths(results_dir=results_dir, cache_dir=cache_dir, run_name=run_name).create()


def main(argv: Optional[List[str]] = None, sampler: Optional[Sampler] = None,
         configure_logging: bool = True) -> int:
    args = build_parser().parse_args(argv)
    paths = _resolve_paths(args)
    if configure_logging:
        setup_logging(paths.run_dir / "run.log")

    config = SamplerConfig(
        draws=args.draws, tune=args.tune, chains=args.chains, thin=args.thin,
        cores=args.cores, target_accept=args.target_accept, random_seed=args.seed,
    )
    priors = OccupancyPriors()
    theme = PlotTheme()
    worse = "standard" if args.better == "acoustic" else "acoustic"

    log.info("=" * 70)
    log.info("LOADING DATA")
    log.info("=" * 70)
    records = load_survey_records(args.survey)
    lookup = load_species_lookup(args.species)
    log.info(f"   Survey records: {len(records)} from {args.survey}")
    log.info(f"   Species lookup: {len(lookup)} species, {lookup['guild'].nunique()} guilds")

    arrays = build_survey_arrays(records, lookup)
    log.info(f"   Count array: {arrays.n_sites} sites × {arrays.n_species} species × "
             f"{len(arrays.methods)} methods ({int(arrays.counts.sum())} detections)")
    save_table(naive_detection_table(arrays), paths.run_dir, "naive_detection.csv")

    log.info("=" * 70)
    log.info("MODEL FIT")
    log.info("=" * 70)
    fit = fit_or_load(arrays, priors, config, paths.cache_dir, refit=args.refit, sampler=sampler)
    idata = fit.idata

    report = check_convergence(idata)
    log_convergence(report)
    save_table(report.table, paths.run_dir, "convergence.csv")
    monitored = [v for v in MONITORED_VARS if v in idata.posterior.data_vars]
    save_table(az.summary(idata, var_names=monitored, hdi_prob=0.9), paths.run_dir, "summary.csv", index=True)

    log.info("=" * 70)
    log.info("POSTERIOR SUMMARIES")
    log.info("=" * 70)
    sites = site_effect_summary(idata)
    species = detection_summary(idata)
    guilds = guild_detection_summary(idata, arrays.guilds)
    save_table(sites, paths.run_dir, "site_effects.csv")
    save_table(occupancy_summary(idata), paths.run_dir, "occupancy_by_species.csv")
    save_table(species, paths.run_dir, "detection_by_species.csv")
    save_table(guilds, paths.run_dir, "detection_by_guild.csv")

    prob = prob_method_better(idata, better=args.better, worse=worse)
    table = superiority_table(prob, lookup)
    save_table(table, paths.run_dir, f"prob_{args.better}_better.csv")
    for line in format_superiority_report(table, args.better, worse).splitlines():
        log.info(line)

    figures: Dict[str, Any] = {}
    if not args.no_plots:
        log.info("=" * 70)
        log.info("FIGURES")
        log.info("=" * 70)
        names = dict(zip(lookup["species"], lookup["common_name"]))
        figures = render_figures(sites, species, guilds, paths.figures_dir, theme, names)
        if args.plots_extended:
            fig = plot_trace_diagnostics(idata, ["mu_psi", "mu_p", "sd_site", "sd_method"], theme)
            figures["trace"] = save_figure(fig, paths.figures_dir, "trace_hyperparameters", theme)

    write_run_manifest(paths.run_dir, {
        "pipeline": "occupancy",
        "args": vars(args),
        "inputs": {"survey": str(Path(args.survey).resolve()), "species": str(Path(args.species).resolve())},
        "dims": {"sites": arrays.n_sites, "species": arrays.n_species, "methods": list(arrays.methods)},
        "fit": {"cache_path": str(fit.cache_path), "key": fit.key, "reused": fit.reused},
        "sampler": config.to_dict(),
        "priors": priors.to_dict(),
        "convergence": {"min_ess": report.min_ess, "max_rhat": report.max_rhat, "warnings": report.warnings},
        "figures": {k: [str(p) for p in v] for k, v in figures.items()},
    })
    write_last_successful_run(paths.runs_dir, paths.run_name, paths.run_dir)

    log.info(f"✅ Occupancy analysis complete. Results: {paths.run_dir}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
