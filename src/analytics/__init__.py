"""
Analytics: grouped attempt statistics and corpus calibration.
"""

from src.analytics.calibration import CalibrationAnalyzer, CalibrationConfig, CalibrationReport
from src.analytics.stats import compute_stats, compute_totals, median, percentile

__all__ = [
    "CalibrationAnalyzer",
    "CalibrationConfig",
    "CalibrationReport",
    "compute_stats",
    "compute_totals",
    "median",
    "percentile",
]
