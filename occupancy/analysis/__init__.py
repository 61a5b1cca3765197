from .settings import OccupancyPriors, SamplerConfig, PlotTheme, RunPaths
from .sampling import FitResult, fit_or_load

__all__ = [
    "OccupancyPriors",
    "SamplerConfig",
    "PlotTheme",
    "RunPaths",
    "FitResult",
    "fit_or_load",
]
