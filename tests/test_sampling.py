import dataclasses
from pathlib import Path

import numpy as np
import pytest

from occupancy.analysis.sampling import (
    cache_path_for,
    fit_cache_key,
    fit_or_load,
    load_cached_fit,
    thin_draws,
    write_cached_fit,
)
from occupancy.analysis.settings import OccupancyPriors, SamplerConfig

from conftest import StubSampler, fake_idata


@pytest.fixture
def config():
    return SamplerConfig(draws=50, tune=10, chains=2, cores=1)


def test_first_call_samples_and_writes_cache(arrays, config, stub_sampler, tmp_path):
    fit = fit_or_load(arrays, OccupancyPriors(), config, tmp_path, sampler=stub_sampler)
    assert stub_sampler.calls == 1
    assert not fit.reused
    assert fit.cache_path.exists()
    assert fit.cache_path == cache_path_for(tmp_path, fit.key)
    assert fit.idata.posterior.sizes["draw"] == 50


def test_cached_fit_is_reused_without_sampling(arrays, config, tmp_path):
    key = fit_cache_key(arrays, OccupancyPriors(), config)
    path = cache_path_for(tmp_path, key)
    fake_idata(arrays.coords(), chains=2, draws=30).to_netcdf(str(path))

    stub = StubSampler()
    fit = fit_or_load(arrays, OccupancyPriors(), config, tmp_path, sampler=stub)
    assert stub.calls == 0
    assert fit.reused
    assert fit.idata.posterior.sizes["draw"] == 30
    assert list(fit.idata.posterior["species"].values) == list(arrays.species)


def test_refit_samples_again(arrays, config, stub_sampler, tmp_path):
    fit_or_load(arrays, OccupancyPriors(), config, tmp_path, sampler=stub_sampler)
    fit = fit_or_load(arrays, OccupancyPriors(), config, tmp_path, refit=True, sampler=stub_sampler)
    assert stub_sampler.calls == 2
    assert not fit.reused


def test_cache_key_tracks_inputs(arrays, config):
    base = fit_cache_key(arrays, OccupancyPriors(), config)
    assert base == fit_cache_key(arrays, OccupancyPriors(), config)
    assert base != fit_cache_key(arrays, OccupancyPriors(mu_sigma=2.0), config)
    assert base != fit_cache_key(arrays, OccupancyPriors(), dataclasses.replace(config, draws=51))
    assert base != fit_cache_key(arrays, OccupancyPriors(), dataclasses.replace(config, random_seed=1))

    counts = arrays.counts.copy()
    counts[0, 0, 0] = 1 - min(counts[0, 0, 0], 1)
    changed = dataclasses.replace(arrays, counts=counts)
    assert base != fit_cache_key(changed, OccupancyPriors(), config)


def test_cache_key_ignores_cores(arrays, config):
    assert fit_cache_key(arrays, OccupancyPriors(), config) == \
        fit_cache_key(arrays, OccupancyPriors(), dataclasses.replace(config, cores=4))


def test_thin_draws(arrays):
    idata = fake_idata(arrays.coords(), chains=2, draws=100)
    thinned = thin_draws(idata, 5)
    assert thinned.posterior.sizes["draw"] == 20
    np.testing.assert_array_equal(
        thinned.posterior["mu_p"].values, idata.posterior["mu_p"].values[:, ::5]
    )
    assert thin_draws(idata, 1) is idata


def test_load_cached_fit_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_cached_fit(tmp_path / "fit_missing.nc")


def test_interrupted_cache_write_leaves_no_file(arrays, tmp_path, monkeypatch):
    idata = fake_idata(arrays.coords(), chains=2, draws=20)

    def partial_write(self, filename, *args, **kwargs):
        Path(filename).write_bytes(b"truncated")
        raise OSError("No space left on device")

    monkeypatch.setattr(type(idata), "to_netcdf", partial_write)
    path = tmp_path / "fit_abc.nc"
    with pytest.raises(OSError, match="No space"):
        write_cached_fit(idata, path)
    assert list(tmp_path.iterdir()) == []


def test_write_cached_fit_round_trip(arrays, tmp_path):
    idata = fake_idata(arrays.coords(), chains=2, draws=20)
    path = write_cached_fit(idata, tmp_path / "cache" / "fit_abc.nc")
    assert [p.name for p in path.parent.iterdir()] == ["fit_abc.nc"]
    np.testing.assert_allclose(load_cached_fit(path).posterior["mu_p"].values,
                               idata.posterior["mu_p"].values)
