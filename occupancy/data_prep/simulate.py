"""
Synthetic survey generator

Draws survey records from the same occupancy-detection process the model
assumes, for demos and tests. Output tables use the canonical column names of
``survey_loader``.
"""
from __future__ import annotations

from typing import Dict, Optional, Tuple

import numpy as np
import pandas as pd
from scipy.special import expit

from .survey_loader import METHODS


DEFAULT_SPECIES = [
    (1, "AMRO", "American Robin", "ground"),
    (2, "WBNU", "White-breasted Nuthatch", "bark"),
    (3, "BCCH", "Black-capped Chickadee", "foliage"),
    (4, "DOWO", "Downy Woodpecker", "bark"),
    (5, "NOCA", "Northern Cardinal", "ground"),
    (6, "REVI", "Red-eyed Vireo", "foliage"),
]


def default_species_lookup() -> pd.DataFrame:
    return pd.DataFrame(DEFAULT_SPECIES, columns=["species_number", "species", "common_name", "guild"])


def simulate_survey(
    lookup: Optional[pd.DataFrame] = None,
    n_sites: int = 12,
    n_replicates: Tuple[int, int] = (4, 3),
    psi_logit: float = 0.5,
    site_sd: float = 0.5,
    p_logit: Optional[Dict[str, float]] = None,
    seed: int = 42,
) -> pd.DataFrame:
    """Simulate survey records.

    Parameters
    ----------
    lookup : DataFrame, optional
        Species lookup; defaults to ``default_species_lookup()``.
    n_sites : int
        Number of sites (named S01, S02, ...).
    n_replicates : (int, int)
        Replicates per site for the acoustic and standard methods.
    psi_logit : float
        Mean occupancy on the logit scale.
    site_sd : float
        Standard deviation of the site effect.
    p_logit : dict, optional
        Mean detection logit per method; defaults to acoustic 0.3, standard -0.5.
    seed : int
        Seed for ``numpy.random.default_rng``.
    """
    rng = np.random.default_rng(seed)
    lookup = default_species_lookup() if lookup is None else lookup
    p_logit = p_logit or {"acoustic": 0.3, "standard": -0.5}
    species = lookup.sort_values("species_number")["species"].tolist()

    site_eff = rng.normal(0.0, site_sd, n_sites)
    spp_eff = rng.normal(psi_logit, 0.5, len(species))
    det = {m: expit(rng.normal(p_logit[m], 0.4, len(species))) for m in METHODS}
    reps = dict(zip(METHODS, n_replicates))

    rows = []
    for i in range(n_sites):
        site = f"S{i + 1:02d}"
        for k, sp in enumerate(species):
            z = rng.random() < expit(spp_eff[k] + site_eff[i])
            for method in METHODS:
                for rep in range(1, reps[method] + 1):
                    seen = bool(z) and rng.random() < det[method][k]
                    rows.append((site, method, rep, sp, int(seen)))
    return pd.DataFrame(rows, columns=["site", "method", "replicate", "species", "observed"])
