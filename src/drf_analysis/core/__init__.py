"""
Core shared types and utilities for DRF analysis.

This module provides foundational components used across multiple submodules,
keeping the IRT model representation decoupled from the imputation engine.
"""

from drf_analysis.core.utils import antilogit, get_rng, logistic, logit

__all__ = [
    "antilogit",
    "get_rng",
    "logistic",
    "logit",
]
