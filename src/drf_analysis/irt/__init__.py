"""
IRT (Item Response Theory) model representation.

This module provides:
- Item parameter classes (dichotomous, graded, rating scale) with
  category probabilities and expected scores
- The fitted multiple-group model and its flat parameter vector
- Expected test scores and expected response frequencies on θ grids
- Sampling functions for generating responses
"""

from drf_analysis.irt.grid import theta_grid, validate_theta_nodes
from drf_analysis.irt.items import (
    DichotomousItem,
    GradedItem,
    GroupParameters,
    ItemParameters,
    RatingScaleItem,
)
from drf_analysis.irt.model import (
    GroupStructure,
    MultipleGroupModel,
    flatten_groups,
    reload_parameters,
)
from drf_analysis.irt.sampling import simulate_group_responses
from drf_analysis.irt.scoring import expected_frequencies, expected_test

__all__ = [
    "DichotomousItem",
    "GradedItem",
    "GroupParameters",
    "GroupStructure",
    "ItemParameters",
    "MultipleGroupModel",
    "RatingScaleItem",
    "expected_frequencies",
    "expected_test",
    "flatten_groups",
    "reload_parameters",
    "simulate_group_responses",
    "theta_grid",
    "validate_theta_nodes",
]
