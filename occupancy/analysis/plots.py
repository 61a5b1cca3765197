"""
Interval plots and the superiority report

Each interval is drawn as a median point, a thick 50% band (q25-q75) and a
thin 90% band (q05-q95). Styling comes from the PlotTheme passed in; seaborn
style and context are applied only inside each plotting call.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

import arviz as az
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

from .settings import PlotTheme


log = logging.getLogger(__name__)


def save_figure(fig, out_dir: Path, stem: str, theme: PlotTheme) -> List[Path]:
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    paths = []
    for fmt in theme.formats:
        path = out_dir / f"{stem}.{fmt}"
        fig.savefig(path, dpi=theme.dpi, bbox_inches="tight")
        paths.append(path)
    plt.close(fig)
    log.info(f"✅ Figure saved: {paths[0].with_suffix('')}.{{{','.join(theme.formats)}}}")
    return paths


def draw_intervals(ax, y: np.ndarray, summary: pd.DataFrame, color: str, label: Optional[str] = None):
    """Median point with 50% and 90% bands at vertical positions ``y``."""
    ax.hlines(y, summary["q05"], summary["q95"], color=color, linewidth=1.2)
    ax.hlines(y, summary["q25"], summary["q75"], color=color, linewidth=4.0)
    ax.plot(summary["median"], y, "o", color=color, markersize=5,
            markeredgecolor="black", markeredgewidth=0.6, label=label)


def _labels(keys: Sequence[str], names: Optional[Mapping[str, str]]) -> List[str]:
    if not names:
        return [str(k) for k in keys]
    return [str(names.get(k, k)) for k in keys]


def plot_site_effects(summary: pd.DataFrame, theme: PlotTheme):
    """Site random effects (logit scale) with a zero reference line."""
    with sns.axes_style(theme.style), sns.plotting_context(theme.context):
        sites = summary["site"].tolist()
        y = np.arange(len(sites))
        fig, ax = plt.subplots(figsize=(7, max(3.0, 0.35 * len(sites) + 1.5)))
        draw_intervals(ax, y, summary, theme.point_color)
        ax.axvline(0.0, color="gray", linestyle=":", linewidth=1.5)
        ax.set_yticks(y)
        ax.set_yticklabels(sites)
        ax.invert_yaxis()
        ax.set_xlabel("Site effect (logit occupancy)")
        ax.set_ylabel("Site")
        ax.set_title("Site random effects (median, 50% and 90% CrI)")
        fig.tight_layout()
    return fig


def _plot_by_method(summary: pd.DataFrame, key: str, theme: PlotTheme, title: str, ylabel: str,
                    names: Optional[Mapping[str, str]] = None):
    keys = list(dict.fromkeys(summary[key]))
    methods = list(dict.fromkeys(summary["method"]))
    offsets = np.linspace(-0.18, 0.18, len(methods)) if len(methods) > 1 else [0.0]
    base = np.arange(len(keys))

    with sns.axes_style(theme.style), sns.plotting_context(theme.context):
        fig, ax = plt.subplots(figsize=(7.5, max(3.0, 0.45 * len(keys) + 1.5)))
        for method, off in zip(methods, offsets):
            sub = summary[summary["method"] == method].set_index(key).reindex(keys)
            draw_intervals(ax, base + off, sub, theme.palette.get(method, "gray"), label=method)
        ax.set_yticks(base)
        ax.set_yticklabels(_labels(keys, names))
        ax.invert_yaxis()
        ax.set_xlim(0.0, 1.0)
        ax.set_xlabel("Detection probability per replicate")
        ax.set_ylabel(ylabel)
        ax.set_title(title)
        ax.legend(title="Survey method", loc="best", framealpha=0.95)
        fig.tight_layout()
    return fig


def plot_species_detection(summary: pd.DataFrame, theme: PlotTheme,
                           names: Optional[Mapping[str, str]] = None):
    return _plot_by_method(summary, "species", theme,
                           "Detection probability by species and method", "Species", names)


def plot_guild_detection(summary: pd.DataFrame, theme: PlotTheme):
    names = None
    if "n_species" in summary.columns:
        names = {g: f"{g} (n={n})" for g, n in zip(summary["guild"], summary["n_species"])}
    return _plot_by_method(summary, "guild", theme,
                           "Detection probability by foraging guild (pooled species draws)",
                           "Foraging guild", names)


def plot_trace_diagnostics(idata: az.InferenceData, var_names: Sequence[str], theme: PlotTheme):
    avail = [v for v in var_names if v in idata.posterior.data_vars]
    with sns.axes_style(theme.style), sns.plotting_context(theme.context):
        axes = az.plot_trace(idata, var_names=avail, compact=True)
        fig = np.ravel(axes)[0].figure
        fig.tight_layout()
    return fig


def render_figures(site_summary: pd.DataFrame, species_summary: pd.DataFrame,
                   guild_summary: pd.DataFrame, out_dir: Path, theme: PlotTheme,
                   names: Optional[Mapping[str, str]] = None) -> Dict[str, List[Path]]:
    """Render the three interval figures into ``out_dir``."""
    return {
        "site_effects": save_figure(plot_site_effects(site_summary, theme), out_dir, "site_effects", theme),
        "detection_by_species": save_figure(
            plot_species_detection(species_summary, theme, names), out_dir, "detection_by_species", theme
        ),
        "detection_by_guild": save_figure(
            plot_guild_detection(guild_summary, theme), out_dir, "detection_by_guild", theme
        ),
    }


def format_superiority_report(table: pd.DataFrame, better: str = "acoustic", worse: str = "standard") -> str:
    header = f"P({better} detection > {worse} detection) by species"
    body = table.to_string(index=False, float_format=lambda x: f"{x:.2f}")
    return f"{header}\n{'-' * len(header)}\n{body}"
