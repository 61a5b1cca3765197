"""
Survey table loaders

Reads the raw survey records and the species lookup table into pandas
DataFrames with canonical column names:

- survey records: site, method, replicate, species, observed
- species lookup: species_number, species, common_name, guild

Column headers are matched case-insensitively against alias lists, and survey
method labels are normalised to "acoustic" / "standard". Anything that cannot
be mapped raises; there is no partial recovery.
"""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Union

import pandas as pd


METHODS = ("acoustic", "standard")

SURVEY_COLS = {
    "site": ["site", "site_id", "siteid", "point", "station"],
    "method": ["method", "survey_method", "surveymethod", "survey_type", "type"],
    "replicate": ["replicate", "rep", "visit", "survey", "replicate_number"],
    "species": ["species", "spp", "species_code", "spp_code", "code", "alpha_code"],
    "observed": ["observed", "obs", "detected", "detection", "present"],
}

LOOKUP_COLS = {
    "species_number": ["species_number", "spp_num", "sppnum", "species_num", "number", "num"],
    "species": ["species", "species_code", "spp_code", "spp", "code", "alpha_code"],
    "common_name": ["common_name", "commonname", "name", "english_name"],
    "guild": ["guild", "stratum", "foraging_stratum", "foraging_guild", "foraging"],
}

METHOD_ALIASES = {
    "acoustic": "acoustic",
    "aru": "acoustic",
    "recorder": "acoustic",
    "audio": "acoustic",
    "acoustic recorder": "acoustic",
    "standard": "standard",
    "std": "standard",
    "point count": "standard",
    "point_count": "standard",
    "pointcount": "standard",
    "pc": "standard",
    "observer": "standard",
}


def _read_table(path: Union[str, Path]) -> pd.DataFrame:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input table not found: {path}")
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return pd.read_csv(path)
    if suffix in (".tsv", ".txt", ".tab"):
        return pd.read_csv(path, sep="\t")
    raise ValueError(f"Unsupported file type: {path}")


def _standardize_columns(df: pd.DataFrame, expected: Dict[str, List[str]], required: List[str],
                         source: str) -> pd.DataFrame:
    colmap: Dict[str, str] = {}
    low = {str(c).strip().lower(): c for c in df.columns}
    for key, candidates in expected.items():
        for cand in candidates:
            if cand in low and low[cand] not in colmap:
                colmap[low[cand]] = key
                break
    out = df.rename(columns=colmap)
    missing = [c for c in required if c not in out.columns]
    if missing:
        raise ValueError(
            f"{source}: missing required column(s) {missing}; found {list(df.columns)}"
        )
    keep = [c for c in expected if c in out.columns]
    return out[keep].copy()


def normalize_method(label) -> str:
    """Map a raw survey-method label onto 'acoustic' or 'standard'."""
    key = str(label).strip().lower()
    if key not in METHOD_ALIASES:
        raise ValueError(f"Unknown survey method label: {label!r}")
    return METHOD_ALIASES[key]


def load_survey_records(path: Union[str, Path]) -> pd.DataFrame:
    """Load raw survey records (one row per site/method/replicate/species)."""
    df = _standardize_columns(_read_table(path), SURVEY_COLS, list(SURVEY_COLS), source=str(path))
    return clean_survey_records(df)


def _require_values(df: pd.DataFrame, columns: List[str], table: str) -> None:
    """Raise if any of ``columns`` has an empty or missing cell."""
    for col in columns:
        blank = df[col].isna() | (df[col].astype(str).str.strip() == "")
        if blank.any():
            rows = [int(i) for i in df.index[blank][:10]]
            raise ValueError(f"{table}: missing '{col}' value in row(s) {rows}")


def _require_integers(values: pd.Series, message: str) -> pd.Series:
    numbers = pd.to_numeric(values, errors="coerce")
    bad = numbers.isna() | (numbers % 1 != 0)
    if bad.any():
        raise ValueError(f"{message}; offending values: {values[bad].head(5).tolist()}")
    return numbers.astype(int)


def clean_survey_records(df: pd.DataFrame) -> pd.DataFrame:
    """Coerce types and validate an already-standardised survey table."""
    _require_values(df, ["site", "species", "method"], "Survey records")
    out = df.copy()
    out["site"] = out["site"].astype(str).str.strip()
    out["species"] = out["species"].astype(str).str.strip()
    out["method"] = out["method"].map(normalize_method)

    out["replicate"] = _require_integers(out["replicate"], "Replicate numbers must be positive integers")
    if (out["replicate"] < 1).any():
        bad = out.loc[out["replicate"] < 1].head(5)
        raise ValueError(f"Replicate numbers must be positive integers; offending rows:\n{bad}")

    out["observed"] = pd.to_numeric(out["observed"], errors="coerce")
    if not out["observed"].isin([0, 1]).all():
        bad = out.loc[~out["observed"].isin([0, 1])].head(5)
        raise ValueError(f"Observed flag must be 0 or 1; offending rows:\n{bad}")
    out["observed"] = out["observed"].astype(int)
    return out.reset_index(drop=True)


def load_species_lookup(path: Union[str, Path]) -> pd.DataFrame:
    """Load the species lookup table, ordered by species number.

    ``common_name`` is optional in the file; when absent the species code is
    used in its place.
    """
    df = _standardize_columns(
        _read_table(path), LOOKUP_COLS, ["species_number", "species", "guild"], source=str(path)
    )
    return clean_species_lookup(df)


def clean_species_lookup(df: pd.DataFrame) -> pd.DataFrame:
    _require_values(df, ["species_number", "species", "guild"], "Species lookup")
    out = df.copy()
    out["species"] = out["species"].astype(str).str.strip()
    out["guild"] = out["guild"].astype(str).str.strip()
    if "common_name" not in out.columns:
        out["common_name"] = out["species"]
    out["common_name"] = out["common_name"].fillna(out["species"]).astype(str)

    out["species_number"] = _require_integers(out["species_number"],
                                              "Species lookup has non-integer species numbers")

    dup = out["species"][out["species"].duplicated()].unique().tolist()
    if dup:
        raise ValueError(f"Species lookup has duplicate species codes: {dup}")
    dup_num = out["species_number"][out["species_number"].duplicated()].unique().tolist()
    if dup_num:
        raise ValueError(f"Species lookup has duplicate species numbers: {dup_num}")

    out = out.sort_values("species_number").reset_index(drop=True)
    return out[["species_number", "species", "common_name", "guild"]]
