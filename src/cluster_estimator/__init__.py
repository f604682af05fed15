"""
Cluster estimator - mountain (subtractive) clustering of integer points.

This package provides:
- Euclidean distances over int16 candidate sets (matrix or on-the-fly)
- potential and suppression fields
- the peak-extraction estimator (`estimate`)
- experiment orchestration and analysis utilities
"""

from .algorithms import MountainConfig, NoPeakError, estimate, mountain_cluster_centers

__all__ = [
    "distances",
    "algorithms",
    "MountainConfig",
    "NoPeakError",
    "estimate",
    "mountain_cluster_centers",
]
