"""
HIERARCHICAL OCCUPANCY-DETECTION MODEL
======================================

Occupancy (site i, species k):
    logit(psi[i,k]) = beta_spp[k] + site_eff[i]
    z[i,k] ~ Bernoulli(psi[i,k])

Detection (species k, method m):
    logit(p[k,m]) = alpha_spp[k] + eps[k,m],   eps[k,m] ~ Normal(0, sd_method)

Observation:
    y[i,k,m] ~ Binomial(replicates[i,m], z[i,k] * p[k,m])

Baselines:
    beta_spp[k]  ~ Normal(mu_psi, sd_spp_psi)
    alpha_spp[k] ~ Normal(mu_p, sd_spp_p)
    site_eff[i]  ~ Normal(0, sd_site)
    mu_psi, mu_p ~ Normal(0, priors.mu_sigma)
    sd_*         ~ Exponential(priors.sd_rate)

Site and method effects are written non-centred (standard-normal offsets
scaled by their sd). All variables carry named dims so posterior draws are
indexed by site, species and method labels.
"""
from __future__ import annotations

from typing import List, Optional

import pymc as pm

from ..data_prep.count_arrays import SurveyArrays
from .settings import OccupancyPriors


# Bump when the model structure changes; part of the fit cache key.
MODEL_VERSION = "occupancy-detection-v1"

MONITORED_VARS: List[str] = [
    "mu_psi", "sd_spp_psi", "beta_spp",
    "sd_site", "site_eff",
    "mu_p", "sd_spp_p", "alpha_spp",
    "sd_method", "p",
]


def build_occupancy_model(arrays: SurveyArrays, priors: Optional[OccupancyPriors] = None) -> pm.Model:
    """Build the PyMC model for the given survey arrays."""
    priors = priors or OccupancyPriors()
    reps = arrays.replicates

    with pm.Model(coords=arrays.coords()) as model:

        # =====================================================================
        # OCCUPANCY
        # =====================================================================

        mu_psi = pm.Normal("mu_psi", mu=0.0, sigma=priors.mu_sigma)
        sd_spp_psi = pm.Exponential("sd_spp_psi", lam=priors.sd_rate)
        beta_spp = pm.Normal("beta_spp", mu=mu_psi, sigma=sd_spp_psi, dims="species")

        sd_site = pm.Exponential("sd_site", lam=priors.sd_rate)
        site_offset = pm.Normal("site_offset", mu=0.0, sigma=1.0, dims="site")
        site_eff = pm.Deterministic("site_eff", site_offset * sd_site, dims="site")

        psi = pm.Deterministic(
            "psi",
            pm.math.invlogit(site_eff[:, None] + beta_spp[None, :]),
            dims=("site", "species"),
        )
        z = pm.Bernoulli("z", p=psi, dims=("site", "species"))

        # =====================================================================
        # DETECTION
        # =====================================================================

        mu_p = pm.Normal("mu_p", mu=0.0, sigma=priors.mu_sigma)
        sd_spp_p = pm.Exponential("sd_spp_p", lam=priors.sd_rate)
        alpha_spp = pm.Normal("alpha_spp", mu=mu_p, sigma=sd_spp_p, dims="species")

        sd_method = pm.Exponential("sd_method", lam=priors.sd_rate)
        method_offset = pm.Normal("method_offset", mu=0.0, sigma=1.0, dims=("species", "method"))
        logit_p = pm.Deterministic(
            "logit_p", alpha_spp[:, None] + method_offset * sd_method, dims=("species", "method")
        )
        p = pm.Deterministic("p", pm.math.invlogit(logit_p), dims=("species", "method"))

        # =====================================================================
        # LIKELIHOOD
        # =====================================================================

        pm.Binomial(
            "y",
            n=reps[:, None, :],
            p=z[:, :, None] * p[None, :, :],
            observed=arrays.counts,
            dims=("site", "species", "method"),
        )

    return model
