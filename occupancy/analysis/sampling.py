"""
MCMC sampling and fit caching

``fit_or_load`` is the only entry point the pipeline uses. Fits are cached as
NetCDF files named by a SHA-256 key over everything that determines the
posterior: survey arrays and their labels, priors, sampler settings and the
model version. Changing any of them produces a new key, so an old cache is
never silently reused for different inputs.
"""
from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

import arviz as az
import numpy as np
import pymc as pm

from ..data_prep.count_arrays import SurveyArrays
from .model import MODEL_VERSION, build_occupancy_model
from .settings import OccupancyPriors, SamplerConfig


log = logging.getLogger(__name__)

Sampler = Callable[[pm.Model, SamplerConfig], az.InferenceData]


@dataclass
class FitResult:
    idata: az.InferenceData
    cache_path: Path
    key: str
    reused: bool


def thin_draws(idata: az.InferenceData, thin: int) -> az.InferenceData:
    """Keep every ``thin``-th draw of each chain."""
    if thin <= 1:
        return idata
    return idata.sel(draw=slice(None, None, thin))


def sample_posterior(model: pm.Model, config: SamplerConfig) -> az.InferenceData:
    """Run ``pm.sample`` on the occupancy model.

    Continuous parameters get NUTS and the latent occupancy matrix ``z`` gets
    PyMC's binary Gibbs step. Every chain starts with ``z`` set to
    ``config.init_occupancy``.
    """
    z_shape = tuple(len(model.coords[d]) for d in ("site", "species"))
    initvals = {"z": np.full(z_shape, config.init_occupancy, dtype=int)}

    log.info(f"Sampling: {config.draws} draws × {config.chains} chains "
             f"(tune={config.tune}, thin={config.thin}, cores={config.cores})")
    with model:
        idata = pm.sample(
            draws=config.draws,
            tune=config.tune,
            chains=config.chains,
            cores=config.cores,
            target_accept=config.target_accept,
            random_seed=config.random_seed,
            initvals=initvals,
            return_inferencedata=True,
            progressbar=False,
        )
    return thin_draws(idata, config.thin)


def fit_cache_key(arrays: SurveyArrays, priors: OccupancyPriors, config: SamplerConfig) -> str:
    """SHA-256 over data, labels, priors and result-relevant sampler settings."""
    sampler_settings = config.to_dict()
    # Parallelism does not change the draws for a fixed seed.
    sampler_settings.pop("cores", None)
    meta = {
        "model_version": MODEL_VERSION,
        "coords": arrays.coords(),
        "guilds": arrays.guilds,
        "priors": priors.to_dict(),
        "sampler": sampler_settings,
    }
    h = hashlib.sha256()
    h.update(json.dumps(meta, sort_keys=True).encode("utf-8"))
    h.update(np.ascontiguousarray(arrays.counts, dtype=np.int64).tobytes())
    h.update(np.ascontiguousarray(arrays.replicates, dtype=np.int64).tobytes())
    return h.hexdigest()


def cache_path_for(cache_dir: Union[str, Path], key: str) -> Path:
    return Path(cache_dir) / f"fit_{key[:16]}.nc"


def load_cached_fit(path: Union[str, Path]) -> az.InferenceData:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Cached fit not found: {path}")
    return az.from_netcdf(str(path))


def write_cached_fit(idata: az.InferenceData, path: Union[str, Path]) -> Path:
    """Write ``idata`` to ``path`` through a temporary file.

    A failed or interrupted write leaves no file at ``path``.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".part")
    try:
        idata.to_netcdf(str(tmp))
        tmp.replace(path)
    finally:
        tmp.unlink(missing_ok=True)
    return path


def fit_or_load(
    arrays: SurveyArrays,
    priors: OccupancyPriors,
    config: SamplerConfig,
    cache_dir: Union[str, Path],
    refit: bool = False,
    sampler: Optional[Sampler] = None,
) -> FitResult:
    """Return a posterior for ``arrays``, sampling only when needed.

    Parameters
    ----------
    refit : bool
        Sample even when a cached fit with the same key exists (the cache file
        is overwritten).
    sampler : callable, optional
        ``sampler(model, config) -> InferenceData``; defaults to
        ``sample_posterior``.
    """
    key = fit_cache_key(arrays, priors, config)
    path = cache_path_for(cache_dir, key)

    if path.exists() and not refit:
        log.info(f"✅ Reusing cached fit: {path}")
        return FitResult(idata=load_cached_fit(path), cache_path=path, key=key, reused=True)

    if path.exists():
        log.info(f"Refit requested; replacing cached fit {path}")
    sampler = sampler or sample_posterior
    model = build_occupancy_model(arrays, priors)
    idata = sampler(model, config)

    write_cached_fit(idata, path)
    try:
        size_mb = path.stat().st_size / (1024 * 1024)
        log.info(f"✅ Saved posterior (NetCDF): {path} ({size_mb:.1f} MB)")
    except OSError:
        log.info(f"✅ Saved posterior (NetCDF): {path}")
    return FitResult(idata=idata, cache_path=path, key=key, reused=False)
