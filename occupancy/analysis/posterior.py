"""
Posterior summaries

All summaries work on labelled posterior variables (dims ``chain``, ``draw``
plus model dims ``site`` / ``species`` / ``method``). Quantiles are taken over
the pooled draws of every dim not used as a grouping key.

Summary tables have one row per group and the columns
``median, q25, q75, q05, q95`` (50% and 90% central credible intervals).
"""
from __future__ import annotations

from typing import Dict, List, Mapping, Sequence, Union

import arviz as az
import numpy as np
import pandas as pd
import xarray as xr
from scipy.special import expit


QUANTILES: Dict[str, float] = {
    "median": 0.50,
    "q25": 0.25,
    "q75": 0.75,
    "q05": 0.05,
    "q95": 0.95,
}
SUMMARY_COLUMNS: List[str] = list(QUANTILES)


def posterior_var(idata: az.InferenceData, name: str) -> xr.DataArray:
    if name not in idata.posterior.data_vars:
        raise KeyError(f"Posterior has no variable '{name}'; available: {list(idata.posterior.data_vars)}")
    return idata.posterior[name]


def interval_summary(draws: xr.DataArray, by: Union[str, Sequence[str]]) -> pd.DataFrame:
    """Quantile summary of ``draws`` for each coordinate combination of ``by``.

    Every other dim (chain, draw and any model dim not in ``by``) is pooled
    into one sample. Row order follows the coordinate order of ``by``.
    """
    by = [by] if isinstance(by, str) else list(by)
    missing = [d for d in by if d not in draws.dims]
    if missing:
        raise ValueError(f"Cannot group by {missing}; draws have dims {draws.dims}")

    pooled = [d for d in draws.dims if d not in by]
    values = draws.transpose(*by, *pooled).values
    values = values.reshape(values.shape[:len(by)] + (-1,))
    qs = np.quantile(values, list(QUANTILES.values()), axis=-1)

    labels = [draws[d].values for d in by]
    if len(by) == 1:
        index = pd.Index(labels[0], name=by[0])
    else:
        index = pd.MultiIndex.from_product(labels, names=by)
    out = pd.DataFrame({name: qs[j].reshape(-1) for j, name in enumerate(QUANTILES)}, index=index)
    return out[SUMMARY_COLUMNS].reset_index()


def site_effect_summary(idata: az.InferenceData) -> pd.DataFrame:
    """Site random effects on the occupancy logit scale."""
    return interval_summary(posterior_var(idata, "site_eff"), "site")


def detection_summary(idata: az.InferenceData) -> pd.DataFrame:
    """Detection probability per species and survey method."""
    return interval_summary(posterior_var(idata, "p"), ["species", "method"])


def occupancy_summary(idata: az.InferenceData) -> pd.DataFrame:
    """Baseline occupancy probability per species (site effect at zero)."""
    return interval_summary(expit(posterior_var(idata, "beta_spp")), "species")


def prob_method_better(idata: az.InferenceData, better: str = "acoustic",
                       worse: str = "standard") -> pd.Series:
    """Per species, the share of posterior draws with p[better] > p[worse]."""
    p = posterior_var(idata, "p")
    methods = list(p["method"].values)
    for m in (better, worse):
        if m not in methods:
            raise ValueError(f"Method '{m}' not in posterior methods {methods}")
    wins = (p.sel(method=better) > p.sel(method=worse)).mean(dim=("chain", "draw"))
    return wins.to_series().rename(f"prob_{better}_better")


def guild_detection_summary(idata: az.InferenceData, guilds: Mapping[str, str]) -> pd.DataFrame:
    """Detection probability per guild and method.

    Draws of every species in the guild are pooled before taking quantiles.
    This is an approximation: larger guilds pool more draws, and species are
    weighted equally regardless of abundance.
    """
    p = posterior_var(idata, "p")
    species = [str(s) for s in p["species"].values]
    unknown = [s for s in species if s not in guilds]
    if unknown:
        raise KeyError(f"No guild assigned for species: {unknown}")

    frames = []
    for guild in dict.fromkeys(guilds[s] for s in species):
        members = [s for s in species if guilds[s] == guild]
        df = interval_summary(p.sel(species=members), "method")
        df.insert(0, "guild", guild)
        df["n_species"] = len(members)
        frames.append(df)
    return pd.concat(frames, ignore_index=True)


def superiority_table(prob: pd.Series, lookup: pd.DataFrame, decimals: int = 2) -> pd.DataFrame:
    """Report table of the per-species probability, rounded for display."""
    out = prob.rename("probability").rename_axis("species").reset_index()
    out = out.merge(lookup[["species", "common_name", "guild"]], on="species", how="left")
    out["probability"] = out["probability"].round(decimals)
    return out[["species", "common_name", "guild", "probability"]]
