"""
Occupancy-detection analysis of paired acoustic / standard bird surveys.

Subpackages:
- occupancy.data_prep: survey loaders, dense model arrays, synthetic surveys
- occupancy.analysis: model, sampling + cache, diagnostics, summaries, plots, CLI
"""

__version__ = "0.1.0"
