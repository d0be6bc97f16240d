"""
Signed and unsigned differential response functioning statistics.

For the focal items, the expected score curves T1(θ) and T2(θ) of the two
groups are compared over a θ grid. With population weights w(θ) derived
from both groups' expected response frequencies:

    sDRF = Σ w(θ) (T1(θ) - T2(θ))
    uDRF = Σ w(θ) |T1(θ) - T2(θ)|

uDRF is further split by a sign mask (T1 < T2) into the magnitude over the
masked nodes (lower) and over the remaining nodes (upper). The mask of the
fitted model is reused for every imputed parameter set.
"""

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from drf_analysis.drf.exceptions import FrequencyTableError
from drf_analysis.irt.model import MultipleGroupModel
from drf_analysis.irt.scoring import expected_frequencies, expected_test


@dataclass(frozen=True)
class DRFStatistics:
    """
    DRF statistics of one parameter set.

    Each statistic has one entry for the whole focal set, or one per focal
    item in item-level mode.

    Attributes:
        signed: Weighted mean difference of the curves.
        unsigned: Weighted mean absolute difference.
        lower: Part of unsigned over nodes where the mask is set.
        upper: Part of unsigned over the remaining nodes.
        signs: Sign mask, shape (n_nodes,) or (n_nodes, n_focal).
    """

    signed: NDArray[np.float64]
    unsigned: NDArray[np.float64]
    lower: NDArray[np.float64]
    upper: NDArray[np.float64]
    signs: NDArray[np.bool_]

    @property
    def vector(self) -> NDArray[np.float64]:
        """Statistics concatenated as [signed, unsigned, lower, upper]."""
        return np.concatenate([self.signed, self.unsigned, self.lower, self.upper])

    @property
    def n_statistics(self) -> int:
        return len(self.signed)


def population_weights(rs: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Normalize a (n_nodes, n_groups) expected frequency table to node weights.

    Returns:
        Weights of shape (n_nodes,) summing to 1.
    """
    totals = np.asarray(rs, dtype=np.float64).sum(axis=1)
    grand_total = totals.sum()
    if not grand_total > 0:
        raise FrequencyTableError(
            "Expected frequency table has no mass; cannot weight the θ grid"
        )
    result: NDArray[np.float64] = totals / grand_total
    return result


def curve_difference(
    model: MultipleGroupModel,
    theta: NDArray[np.float64],
    focal_items: Sequence[int],
    dif: bool,
) -> NDArray[np.float64]:
    """
    Expected score difference of the first minus the second group.

    Returns:
        Shape (n_nodes,), or (n_nodes, n_focal) when dif is True.
    """
    t1 = expected_test(model, theta, group=0, items=focal_items, individual=dif)
    t2 = expected_test(model, theta, group=1, items=focal_items, individual=dif)
    return t1 - t2


def compute_drf(
    model: MultipleGroupModel,
    theta: NDArray[np.float64],
    focal_items: Sequence[int],
    dif: bool,
    rs: NDArray[np.float64] | None = None,
    signs: NDArray[np.bool_] | None = None,
) -> DRFStatistics:
    """
    Population-weighted DRF statistics.

    Args:
        model: Model holding the parameter set to evaluate.
        theta: Grid, shape (n_nodes, nfact).
        focal_items: Items whose expected scores are compared.
        dif: Report one statistic per focal item.
        rs: Expected frequency table (n_nodes, 2). Recomputed from the
            model's response data when None.
        signs: Sign mask to decompose uDRF with. Computed from this
            parameter set when None.

    Returns:
        DRFStatistics for the parameter set.
    """
    if rs is None:
        if model.responses is None:
            raise FrequencyTableError(
                "Population weights need the response data of both groups "
                "or a pre-computed expected frequency table"
            )
        rs = expected_frequencies(model, theta)

    weights = population_weights(rs)
    diff = curve_difference(model, theta, focal_items, dif)
    if diff.ndim == 2:
        weights = weights[:, np.newaxis]

    if signs is None:
        signs = diff < 0
    elif signs.shape != diff.shape:
        raise ValueError(
            f"Sign mask has shape {signs.shape}, expected {diff.shape}"
        )

    weighted = diff * weights
    return DRFStatistics(
        signed=np.atleast_1d(weighted.sum(axis=0)),
        unsigned=np.atleast_1d(np.abs(weighted).sum(axis=0)),
        lower=np.atleast_1d(-np.where(signs, weighted, 0.0).sum(axis=0)),
        upper=np.atleast_1d(np.where(signs, 0.0, weighted).sum(axis=0)),
        signs=signs,
    )


def compute_pointwise(
    model: MultipleGroupModel,
    nodes: NDArray[np.float64],
    focal_items: Sequence[int],
    dif: bool = False,
) -> NDArray[np.float64]:
    """
    Unweighted curve difference at explicit θ nodes.

    Returns:
        Shape (n_nodes,), or (n_nodes, n_focal) when dif is True.
    """
    return curve_difference(model, nodes, focal_items, dif)
