import json

import pandas as pd
import pytest

import find_run_results
import gen_figures
from occupancy.analysis.pipeline_utils import (
    read_last_successful_run,
    save_table,
    write_last_successful_run,
    write_run_manifest,
)
from occupancy.analysis.posterior import (
    detection_summary,
    guild_detection_summary,
    site_effect_summary,
)


@pytest.fixture
def finished_run(tmp_path, idata, arrays):
    runs_dir = tmp_path / "runs"
    run_dir = runs_dir / "pilot_20261019_141205"
    save_table(site_effect_summary(idata), run_dir, "site_effects.csv")
    save_table(detection_summary(idata), run_dir, "detection_by_species.csv")
    save_table(guild_detection_summary(idata, arrays.guilds), run_dir, "detection_by_guild.csv")
    write_run_manifest(run_dir, {
        "fit": {"cache_path": "cache/fit_abc.nc", "reused": True},
        "convergence": {"max_rhat": 1.002, "min_ess": 812.0},
        "dims": {"sites": 6},
    })
    write_last_successful_run(runs_dir, run_dir.name, run_dir)
    (runs_dir / "other_run").mkdir()
    return runs_dir, run_dir


def test_last_run_marker_round_trip(finished_run):
    runs_dir, run_dir = finished_run
    info = read_last_successful_run(runs_dir)
    assert info["run_name"] == run_dir.name
    assert info["run_dir"] == str(run_dir)
    assert read_last_successful_run(runs_dir / "missing") is None


def test_find_runs_by_partial_name(finished_run):
    runs_dir, run_dir = finished_run
    matches = find_run_results.find_runs("20261019", runs_dir)
    assert [m["run_name"] for m in matches] == [run_dir.name]
    assert matches[0]["fit"]["reused"] is True
    assert len(matches[0]["paths"]["summaries"]) == 3
    assert find_run_results.find_runs("nothing", runs_dir) == []


def test_find_run_results_cli(finished_run, capsys):
    runs_dir, _ = finished_run
    assert find_run_results.main(["pilot", "--runs-dir", str(runs_dir), "--json"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["matches"][0]["convergence"]["max_rhat"] == 1.002
    assert find_run_results.main(["nothing", "--runs-dir", str(runs_dir)]) == 1


def test_gen_figures_uses_marker(finished_run, monkeypatch):
    runs_dir, run_dir = finished_run
    monkeypatch.setenv("OCCUPANCY_RESULTS_DIR", str(runs_dir.parent))
    monkeypatch.delenv("RUN_DIR", raising=False)
    assert gen_figures.resolve_run_dir() == run_dir
    assert gen_figures.main(["--formats", "png", "--dpi", "40"], configure_logging=False) == 0
    for stem in ("site_effects", "detection_by_species", "detection_by_guild"):
        assert (run_dir / "figures" / f"{stem}.png").exists()


def test_gen_figures_run_dir_env(tmp_path, monkeypatch):
    monkeypatch.setenv("RUN_DIR", str(tmp_path / "explicit"))
    assert gen_figures.resolve_run_dir() == tmp_path / "explicit"
    assert gen_figures.resolve_run_dir(str(tmp_path / "arg")) == tmp_path / "arg"


def test_gen_figures_without_any_run(tmp_path, monkeypatch):
    monkeypatch.setenv("OCCUPANCY_RESULTS_DIR", str(tmp_path))
    monkeypatch.delenv("RUN_DIR", raising=False)
    with pytest.raises(FileNotFoundError):
        gen_figures.resolve_run_dir()


def test_gen_figures_missing_tables(tmp_path):
    (tmp_path / "run").mkdir()
    with pytest.raises(FileNotFoundError, match="missing"):
        gen_figures.main(["--run-dir", str(tmp_path / "run")], configure_logging=False)


def test_saved_summary_reads_back(finished_run):
    _, run_dir = finished_run
    df = pd.read_csv(run_dir / "detection_by_guild.csv")
    assert {"guild", "method", "n_species", "median"} <= set(df.columns)


def test_common_names_from_standard_better_table(tmp_path, lookup):
    table = lookup[["species", "common_name", "guild"]].assign(probability=0.5)
    table.to_csv(tmp_path / "prob_standard_better.csv", index=False)
    names = gen_figures.common_names(tmp_path)
    assert names["AMRO"] == "American Robin"
    assert gen_figures.common_names(tmp_path / "empty") is None
