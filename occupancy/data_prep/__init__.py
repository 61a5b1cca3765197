from .survey_loader import METHODS, load_survey_records, load_species_lookup
from .count_arrays import SurveyArrays, build_survey_arrays, naive_detection_table
from .simulate import simulate_survey, default_species_lookup

__all__ = [
    "METHODS",
    "load_survey_records",
    "load_species_lookup",
    "SurveyArrays",
    "build_survey_arrays",
    "naive_detection_table",
    "simulate_survey",
    "default_species_lookup",
]
