import json

import pandas as pd
import pytest

from occupancy.analysis import run_occupancy
from occupancy.analysis.pipeline_utils import read_last_successful_run

from conftest import StubSampler


@pytest.fixture
def inputs(tmp_path, records, lookup):
    survey = tmp_path / "survey.csv"
    species = tmp_path / "species.csv"
    records.rename(columns={"replicate": "rep", "observed": "obs"}).to_csv(survey, index=False)
    lookup.to_csv(species, index=False)
    return survey, species


@pytest.fixture(autouse=True)
def _no_env_dirs(monkeypatch):
    monkeypatch.delenv("OCCUPANCY_RESULTS_DIR", raising=False)
    monkeypatch.delenv("OCCUPANCY_CACHE_DIR", raising=False)


def _argv(inputs, results_dir, label, *extra):
    survey, species = inputs
    return [
        "--survey", str(survey), "--species", str(species),
        "--results-dir", str(results_dir), "--run-label", label, "--no-timestamp",
        "--draws", "40", "--tune", "10", "--chains", "2", "--cores", "1",
        *extra,
    ]


def test_full_run_writes_outputs(inputs, tmp_path):
    results = tmp_path / "results"
    stub = StubSampler()
    code = run_occupancy.main(_argv(inputs, results, "pilot"), sampler=stub, configure_logging=False)
    assert code == 0
    assert stub.calls == 1

    run_dir = results / "runs" / "pilot"
    for name in ("naive_detection.csv", "convergence.csv", "summary.csv", "site_effects.csv",
                 "occupancy_by_species.csv", "detection_by_species.csv", "detection_by_guild.csv",
                 "prob_acoustic_better.csv", "manifest.json"):
        assert (run_dir / name).exists(), name
    for stem in ("site_effects", "detection_by_species", "detection_by_guild"):
        assert (run_dir / "figures" / f"{stem}.png").exists()
        assert (run_dir / "figures" / f"{stem}.pdf").exists()

    prob = pd.read_csv(run_dir / "prob_acoustic_better.csv")
    assert prob["species"].tolist() == ["WBNU", "AMRO", "DOWO", "REVI"]
    assert prob["probability"].between(0, 1).all()

    manifest = json.loads((run_dir / "manifest.json").read_text())
    assert manifest["dims"] == {"sites": 6, "species": 4, "methods": ["acoustic", "standard"]}
    assert manifest["fit"]["reused"] is False
    assert manifest["sampler"]["draws"] == 40
    assert (results / "cache").exists()

    marker = read_last_successful_run(results / "runs")
    assert marker["run_name"] == "pilot"


def test_second_run_reuses_cached_fit(inputs, tmp_path):
    results = tmp_path / "results"
    stub = StubSampler()
    run_occupancy.main(_argv(inputs, results, "first", "--no-plots"), sampler=stub, configure_logging=False)
    run_occupancy.main(_argv(inputs, results, "second", "--no-plots"), sampler=stub, configure_logging=False)
    assert stub.calls == 1

    first = json.loads((results / "runs" / "first" / "manifest.json").read_text())
    second = json.loads((results / "runs" / "second" / "manifest.json").read_text())
    assert second["fit"]["reused"] is True
    assert second["fit"]["cache_path"] == first["fit"]["cache_path"]
    assert not (results / "runs" / "second" / "figures" / "site_effects.png").exists()

    run_occupancy.main(_argv(inputs, results, "third", "--no-plots", "--refit"),
                       sampler=stub, configure_logging=False)
    assert stub.calls == 2


def test_changed_sampler_settings_do_not_reuse(inputs, tmp_path):
    results = tmp_path / "results"
    stub = StubSampler()
    run_occupancy.main(_argv(inputs, results, "a", "--no-plots"), sampler=stub, configure_logging=False)
    run_occupancy.main(_argv(inputs, results, "b", "--no-plots", "--seed", "7"),
                       sampler=stub, configure_logging=False)
    assert stub.calls == 2


def test_standard_better_report(inputs, tmp_path):
    results = tmp_path / "results"
    run_occupancy.main(_argv(inputs, results, "std", "--no-plots", "--better", "standard"),
                       sampler=StubSampler(), configure_logging=False)
    assert (results / "runs" / "std" / "prob_standard_better.csv").exists()


def test_incomplete_survey_fails(inputs, tmp_path, records):
    survey, _ = inputs
    cell = (records["site"] == "S01") & (records["species"] == "WBNU") & (records["method"] == "standard")
    records[~cell].to_csv(survey, index=False)
    with pytest.raises(ValueError, match="incomplete"):
        run_occupancy.main(_argv(inputs, tmp_path / "results", "bad", "--no-plots"),
                           sampler=StubSampler(), configure_logging=False)
