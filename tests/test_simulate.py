import pandas as pd

from occupancy.data_prep import build_survey_arrays, default_species_lookup, simulate_survey


def test_simulation_is_deterministic():
    a = simulate_survey(seed=3)
    b = simulate_survey(seed=3)
    pd.testing.assert_frame_equal(a, b)
    assert not a.equals(simulate_survey(seed=4))


def test_simulated_records_are_complete():
    lookup = default_species_lookup()
    records = simulate_survey(lookup, n_sites=5, n_replicates=(3, 2))
    assert len(records) == 5 * len(lookup) * (3 + 2)
    arrays = build_survey_arrays(records, lookup)
    assert arrays.replicates.tolist() == [[3, 2]] * 5
    assert arrays.sites[0] == "S01"


def test_no_detection_without_occupancy():
    # Detection probability far below zero on the logit scale for both methods.
    records = simulate_survey(n_sites=4, p_logit={"acoustic": -50.0, "standard": -50.0})
    assert records["observed"].sum() == 0
