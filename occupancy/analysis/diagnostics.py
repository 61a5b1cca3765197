"""
Convergence diagnostics

Minimum bulk ESS and maximum R-hat over the monitored parameters, pooled over
all chains. The report is advisory: thresholds only decide whether a warning
is logged, the run continues either way.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import arviz as az
import numpy as np
import pandas as pd

from .model import MONITORED_VARS


log = logging.getLogger(__name__)

RHAT_WARN = 1.05
ESS_WARN = 400


@dataclass
class ConvergenceReport:
    min_ess: float
    max_rhat: float
    table: pd.DataFrame
    warnings: List[str] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        return not self.warnings


def _present(idata: az.InferenceData, var_names: Sequence[str]) -> List[str]:
    names = [v for v in var_names if v in idata.posterior.data_vars]
    if not names:
        raise KeyError(f"None of {list(var_names)} found in posterior")
    return names


def check_convergence(idata: az.InferenceData, var_names: Optional[Sequence[str]] = None,
                      rhat_warn: float = RHAT_WARN, ess_warn: float = ESS_WARN) -> ConvergenceReport:
    names = _present(idata, var_names or MONITORED_VARS)
    rhat = az.rhat(idata, var_names=names)
    ess = az.ess(idata, var_names=names)

    rows = []
    for var in names:
        r = np.asarray(rhat[var].values, dtype=float)
        e = np.asarray(ess[var].values, dtype=float)
        rows.append({
            "variable": var,
            "size": int(r.size),
            "ess_min": float(np.nanmin(e)),
            "rhat_max": float(np.nanmax(r)),
        })
    table = pd.DataFrame(rows)

    report = ConvergenceReport(
        min_ess=float(table["ess_min"].to_numpy().min()),
        max_rhat=float(table["rhat_max"].to_numpy().max()),
        table=table,
    )
    n_chains = idata.posterior.sizes.get("chain", 1)
    if n_chains < 2:
        report.warnings.append(f"Only {n_chains} chain; R-hat needs at least 2 chains")
    elif not np.isfinite(report.max_rhat):
        report.warnings.append("R-hat could not be computed (non-finite values)")
    elif report.max_rhat > rhat_warn:
        worst = table.loc[table["rhat_max"].idxmax(), "variable"]
        report.warnings.append(f"Max R-hat {report.max_rhat:.3f} > {rhat_warn} ({worst})")
    if not np.isfinite(report.min_ess):
        report.warnings.append("ESS could not be computed (non-finite values)")
    elif report.min_ess < ess_warn:
        worst = table.loc[table["ess_min"].idxmin(), "variable"]
        report.warnings.append(f"Min ESS {report.min_ess:.0f} < {ess_warn} ({worst})")
    return report


def log_convergence(report: ConvergenceReport) -> None:
    log.info("=" * 70)
    log.info("CONVERGENCE DIAGNOSTICS")
    log.info("=" * 70)
    log.info(f"   Max R-hat: {report.max_rhat:.4f}")
    log.info(f"   Min ESS:   {report.min_ess:.0f}")
    for msg in report.warnings:
        log.warning(f"   ⚠ {msg}")
    if report.converged:
        log.info("   ✅ No convergence warnings")
