"""
Co-accessibility Module

Scores pairwise co-accessibility between enhancer peaks on metacell
pseudo-bulk profiles.
"""

from .edges import EDGE_COLUMNS, score_coaccessibility
from .estimator import CoaccessEstimator, GraphicalLassoEstimator
from .metacells import aggregate_metacells, sample_metacells

__all__ = [
    "EDGE_COLUMNS",
    "score_coaccessibility",
    "CoaccessEstimator",
    "GraphicalLassoEstimator",
    "aggregate_metacells",
    "sample_metacells",
]
