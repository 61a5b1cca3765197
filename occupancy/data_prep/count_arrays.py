"""
Dense model arrays from survey records

The occupancy model needs two complete arrays:

- counts[site, species, method]: number of replicates in which the species was
  recorded by the method at the site
- replicates[site, method]: number of replicates (the maximum replicate index)

Every (site, species, method) combination must be present in the records. A
missing cell means the input is malformed; it is never filled with zero.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .survey_loader import METHODS


@dataclass(frozen=True, eq=False)
class SurveyArrays:
    """Count array, replicate matrix and the coordinate labels of each axis."""
    counts: np.ndarray
    replicates: np.ndarray
    sites: Tuple[str, ...]
    species: Tuple[str, ...]
    methods: Tuple[str, ...]
    guilds: Dict[str, str]

    @property
    def n_sites(self) -> int:
        return len(self.sites)

    @property
    def n_species(self) -> int:
        return len(self.species)

    def coords(self) -> Dict[str, List[str]]:
        return {"site": list(self.sites), "species": list(self.species), "method": list(self.methods)}


def _format_missing(index: pd.Index, limit: int = 10) -> str:
    shown = ", ".join(str(t) for t in list(index[:limit]))
    more = f" (+{len(index) - limit} more)" if len(index) > limit else ""
    return shown + more


def natural_key(label: str) -> List[Union[int, str]]:
    """Sort key that orders "S2" before "S10" and "2" before "10"."""
    return [int(t) if t.isdigit() else t.lower() for t in re.split(r"(\d+)", str(label))]


def replicate_matrix(records: pd.DataFrame, sites: Sequence[str],
                     methods: Sequence[str] = METHODS) -> np.ndarray:
    """Maximum replicate index per (site, method), as a sites x methods int array."""
    grouped = records.groupby(["site", "method"])["replicate"].max()
    full = grouped.reindex(pd.MultiIndex.from_product([list(sites), list(methods)],
                                                      names=["site", "method"]))
    missing = full.index[full.isna()]
    if len(missing):
        raise ValueError(f"No replicates recorded for (site, method): {_format_missing(missing)}")
    return full.to_numpy(dtype=int).reshape(len(sites), len(methods))


def count_array(records: pd.DataFrame, sites: Sequence[str], species: Sequence[str],
                methods: Sequence[str] = METHODS) -> np.ndarray:
    """Total detections per (site, species, method), as a dense int array."""
    grouped = records.groupby(["site", "species", "method"])["observed"].sum()
    full = grouped.reindex(pd.MultiIndex.from_product([list(sites), list(species), list(methods)],
                                                      names=["site", "species", "method"]))
    missing = full.index[full.isna()]
    if len(missing):
        raise ValueError(
            f"Survey records are incomplete; {len(missing)} (site, species, method) "
            f"cell(s) have no records: {_format_missing(missing)}"
        )
    return full.to_numpy(dtype=int).reshape(len(sites), len(species), len(methods))


def _check_lookup(records: pd.DataFrame, lookup: pd.DataFrame) -> None:
    numbers = lookup["species_number"].to_numpy()
    expected = np.arange(1, len(lookup) + 1)
    if not np.array_equal(np.sort(numbers), expected):
        raise ValueError(
            f"Species numbers must run 1..{len(lookup)} without gaps; got {sorted(numbers.tolist())}"
        )
    unknown = sorted(set(records["species"]) - set(lookup["species"]))
    if unknown:
        raise ValueError(f"Survey species missing from the species lookup: {unknown}")
    unsurveyed = sorted(set(lookup["species"]) - set(records["species"]))
    if unsurveyed:
        raise ValueError(f"Lookup species with no survey records: {unsurveyed}")
    extra_methods = sorted(set(records["method"]) - set(METHODS))
    if extra_methods:
        raise ValueError(f"Unexpected survey methods: {extra_methods}")


def build_survey_arrays(records: pd.DataFrame, lookup: pd.DataFrame) -> SurveyArrays:
    """Reshape survey records into the arrays consumed by the model.

    Parameters
    ----------
    records : DataFrame
        Standardised survey records (see ``load_survey_records``).
    lookup : DataFrame
        Standardised species lookup (see ``load_species_lookup``).

    Returns
    -------
    SurveyArrays
        Species ordered by species number, sites in natural order
        ("S2" before "S10"), methods in
        ``METHODS`` order.
    """
    _check_lookup(records, lookup)

    keys = ["site", "species", "method", "replicate"]
    dups = records[records.duplicated(subset=keys, keep=False)]
    if not dups.empty:
        raise ValueError(f"Duplicate survey records for the same replicate:\n{dups[keys].head(10)}")

    ordered = lookup.sort_values("species_number")
    species = tuple(ordered["species"])
    sites = tuple(sorted(records["site"].unique(), key=natural_key))
    methods = tuple(METHODS)

    reps = replicate_matrix(records, sites, methods)
    counts = count_array(records, sites, species, methods)

    over = np.argwhere(counts > reps[:, None, :])
    if len(over):
        i, k, m = over[0]
        raise ValueError(
            f"Detections exceed replicates at site={sites[i]}, species={species[k]}, "
            f"method={methods[m]}: {counts[i, k, m]} > {reps[i, m]}"
        )

    return SurveyArrays(
        counts=counts,
        replicates=reps,
        sites=sites,
        species=species,
        methods=methods,
        guilds=dict(zip(ordered["species"], ordered["guild"])),
    )


def naive_detection_table(arrays: SurveyArrays) -> pd.DataFrame:
    """Fraction of sites where each species was recorded at least once, per method."""
    frac = (arrays.counts > 0).mean(axis=0)
    rows = []
    for k, sp in enumerate(arrays.species):
        for m, method in enumerate(arrays.methods):
            rows.append({
                "species": sp,
                "guild": arrays.guilds[sp],
                "method": method,
                "naive_detection": float(frac[k, m]),
                "sites_detected": int((arrays.counts[:, k, m] > 0).sum()),
            })
    return pd.DataFrame(rows)
