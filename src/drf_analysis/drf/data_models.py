"""
Result containers returned by the DRF entry point.

This module defines the data structures for:
- DRFTestResult: Bundle/test-level statistics table
- DIFResult: Item-level signed and unsigned tables
- PointwiseResult: Curve differences at explicit θ nodes
"""

from dataclasses import dataclass

import numpy as np
import pandas as pd
from numpy.typing import NDArray


@dataclass(frozen=True)
class DRFTestResult:
    """
    Test-level (DTF) or bundle-level (DBF) statistics.

    Attributes:
        table: Without imputation one row with columns n_focal_items,
            sDRF and uDRF. With imputation rows sDRF and uDRF with columns
            n_focal_items, stat, the two CI bounds, X2, df and p.
        scores: Imputed statistics, shape (n_draws, 4), columns sDRF, uDRF,
            lower and upper components. None without imputation.
        param_set: Parameter sets behind scores.
    """

    table: pd.DataFrame
    scores: NDArray[np.float64] | None = None
    param_set: NDArray[np.float64] | None = None

    @property
    def imputed(self) -> bool:
        return self.scores is not None


@dataclass(frozen=True)
class DIFResult:
    """
    Item-level statistics, one row per focal item.

    Attributes:
        signed: sDIF table. Without imputation it holds both sDIF and uDIF.
        unsigned: uDIF table, or None without imputation.
        scores: Imputed statistics, shape (n_draws, 4 * n_focal), laid out
            as [signed, unsigned, lower, upper] blocks.
        param_set: Parameter sets behind scores.
    """

    signed: pd.DataFrame
    unsigned: pd.DataFrame | None = None
    scores: NDArray[np.float64] | None = None
    param_set: NDArray[np.float64] | None = None

    @property
    def imputed(self) -> bool:
        return self.scores is not None


@dataclass(frozen=True)
class PointwiseResult:
    """
    Signed curve difference at explicit θ nodes.

    Attributes:
        table: θ column(s), sDRF and, with imputation, the CI bounds.
        scores: Imputed curve differences, shape (n_draws, n_nodes).
        param_set: Parameter sets behind scores.
    """

    table: pd.DataFrame
    scores: NDArray[np.float64] | None = None
    param_set: NDArray[np.float64] | None = None
