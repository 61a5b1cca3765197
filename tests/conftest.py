from __future__ import annotations

from typing import Dict, Sequence

import arviz as az
import matplotlib
import numpy as np
import pandas as pd
import pytest
from scipy.special import expit

matplotlib.use("Agg")

from occupancy.data_prep import build_survey_arrays, simulate_survey


def make_lookup() -> pd.DataFrame:
    # Species numbers deliberately not in alphabetical order of codes.
    return pd.DataFrame(
        [
            (1, "WBNU", "White-breasted Nuthatch", "bark"),
            (2, "AMRO", "American Robin", "ground"),
            (3, "DOWO", "Downy Woodpecker", "bark"),
            (4, "REVI", "Red-eyed Vireo", "foliage"),
        ],
        columns=["species_number", "species", "common_name", "guild"],
    )


def fake_idata(coords: Dict[str, Sequence[str]], chains: int = 2, draws: int = 200,
               seed: int = 0) -> az.InferenceData:
    """Posterior with the occupancy model's variable names and dims, random values."""
    rng = np.random.default_rng(seed)
    n_site = len(coords["site"])
    n_spp = len(coords["species"])
    n_method = len(coords["method"])
    shape = (chains, draws)

    posterior = {
        "mu_psi": rng.normal(0.5, 0.2, shape),
        "sd_spp_psi": np.abs(rng.normal(0.6, 0.1, shape)),
        "beta_spp": rng.normal(0.5, 0.3, shape + (n_spp,)),
        "sd_site": np.abs(rng.normal(0.5, 0.1, shape)),
        "site_eff": rng.normal(0.0, 0.5, shape + (n_site,)),
        "mu_p": rng.normal(0.0, 0.2, shape),
        "sd_spp_p": np.abs(rng.normal(0.5, 0.1, shape)),
        "alpha_spp": rng.normal(0.0, 0.3, shape + (n_spp,)),
        "sd_method": np.abs(rng.normal(0.4, 0.1, shape)),
        "p": expit(rng.normal(0.0, 0.5, shape + (n_spp, n_method))),
    }
    dims = {
        "beta_spp": ["species"],
        "site_eff": ["site"],
        "alpha_spp": ["species"],
        "p": ["species", "method"],
    }
    return az.from_dict(posterior=posterior, coords={k: list(v) for k, v in coords.items()}, dims=dims)


class StubSampler:
    """Stands in for pm.sample; records calls and returns a fake posterior."""

    def __init__(self, seed: int = 0):
        self.calls = 0
        self.seed = seed

    def __call__(self, model, config):
        self.calls += 1
        coords = {k: list(model.coords[k]) for k in ("site", "species", "method")}
        return fake_idata(coords, chains=config.chains, draws=config.draws, seed=self.seed)


@pytest.fixture
def lookup() -> pd.DataFrame:
    return make_lookup()


@pytest.fixture
def records(lookup) -> pd.DataFrame:
    return simulate_survey(lookup, n_sites=6, n_replicates=(4, 3), seed=7)


@pytest.fixture
def arrays(records, lookup):
    return build_survey_arrays(records, lookup)


@pytest.fixture
def idata(arrays) -> az.InferenceData:
    return fake_idata(arrays.coords())


@pytest.fixture
def stub_sampler() -> StubSampler:
    return StubSampler()
