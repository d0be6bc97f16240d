"""
Data models for observed response data.

This module defines the data structures for:
- ResponseMatrix: Scored responses of one group of examinees
"""

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from drf_analysis.core.constants import MISSING_VALUE


@dataclass(frozen=True)
class ResponseMatrix:
    """
    Scored item responses for one group.

    Attributes:
        responses: Array of shape (n_persons, n_items) containing category
            indices (0-indexed, minimum score already subtracted). Missing
            responses are indicated by MISSING_VALUE.
        n_categories: Number of response categories per item.
    """

    responses: NDArray[np.int8]
    n_categories: tuple[int, ...]

    def __post_init__(self) -> None:
        """Validate response matrix."""
        if self.responses.ndim != 2:
            raise ValueError(
                f"responses must be 2D, got shape {self.responses.shape}"
            )
        if len(self.n_categories) != self.responses.shape[1]:
            raise ValueError(
                f"n_categories has {len(self.n_categories)} entries but "
                f"responses has {self.responses.shape[1]} items"
            )
        if any(k < 2 for k in self.n_categories):
            raise ValueError(
                f"n_categories must be >= 2, got {self.n_categories}"
            )
        valid = self.valid_mask
        if np.any(self.responses[valid] < 0):
            raise ValueError(
                f"Response values must be >= 0 or {MISSING_VALUE}"
            )
        upper = np.asarray(self.n_categories)[np.newaxis, :]
        too_large = valid & (self.responses >= upper)
        if np.any(too_large):
            bad_items = sorted(set(np.where(too_large)[1].tolist()))
            raise ValueError(
                f"Response values exceed n_categories for items {bad_items}"
            )

    @property
    def n_persons(self) -> int:
        """Number of examinees (rows)."""
        return self.responses.shape[0]

    @property
    def n_items(self) -> int:
        """Number of items (columns)."""
        return self.responses.shape[1]

    @property
    def missing_mask(self) -> NDArray[np.bool_]:
        """Boolean mask where True indicates missing response."""
        result: NDArray[np.bool_] = self.responses == MISSING_VALUE
        return result

    @property
    def valid_mask(self) -> NDArray[np.bool_]:
        """Boolean mask where True indicates valid (non-missing) response."""
        result: NDArray[np.bool_] = self.responses != MISSING_VALUE
        return result

    def resample(self, rng: np.random.Generator) -> "ResponseMatrix":
        """Draw persons with replacement (nonparametric bootstrap)."""
        rows = rng.integers(0, self.n_persons, size=self.n_persons)
        return ResponseMatrix(
            responses=self.responses[rows, :],
            n_categories=self.n_categories,
        )
