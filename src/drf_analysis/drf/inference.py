"""
Confidence intervals and significance tests from imputed statistics.

Scalar contrasts (signed statistics) use a z test with the imputation
standard deviation as standard error. The unsigned statistics are tested
through their lower/upper decomposition as a two-component chi-square
quadratic form. Degenerate tests (p = 1, or draws that never vary) are
reported as NaN.
"""

from dataclasses import dataclass

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy.stats import chi2, norm
from statsmodels.stats.multitest import multipletests

from drf_analysis.drf.exceptions import DRFConfigurationError

# R-style method names mapped onto statsmodels' multipletests methods
P_ADJUST_MAPPING = {
    "bonferroni": "bonferroni",
    "holm": "holm",
    "hochberg": "simes-hochberg",
    "hommel": "hommel",
    "BH": "fdr_bh",
    "fdr": "fdr_bh",
    "BY": "fdr_by",
}


@dataclass(frozen=True)
class TestStatistics:
    """
    Test statistics, one entry per contrast.

    Attributes:
        X2: Squared z or chi-square statistic.
        df: Degrees of freedom.
        p: Upper-tail p-value.
    """

    __test__ = False

    X2: NDArray[np.float64]
    df: NDArray[np.float64]
    p: NDArray[np.float64]


def _imputation_sd(
    scores: NDArray[np.float64],
) -> tuple[NDArray[np.float64], NDArray[np.bool_]]:
    """
    Column standard deviations (ddof=1) and a flag for columns whose draws
    never vary. Constant columns get sd 1; rounding can leave a tiny nonzero
    sd for them, so they are detected from the range instead.
    """
    scores = np.asarray(scores, dtype=np.float64)
    if scores.ndim == 1:
        scores = scores[:, np.newaxis]
    if scores.shape[0] < 2:
        return np.full(scores.shape[1], np.nan), np.zeros(scores.shape[1], bool)
    constant = np.ptp(scores, axis=0) == 0
    sd = np.std(scores, axis=0, ddof=1)
    return np.where(constant, 1.0, sd), constant


def _mask_degenerate(
    x2: NDArray[np.float64],
    df: NDArray[np.float64],
    p: NDArray[np.float64],
    constant: NDArray[np.bool_],
) -> TestStatistics:
    degenerate = (p == 1) | np.isnan(p) | constant
    x2 = np.where(degenerate, np.nan, x2)
    df = np.where(degenerate, np.nan, df)
    p = np.where(degenerate, np.nan, p)
    return TestStatistics(X2=x2, df=df, p=p)


def percentile_ci(scores: ArrayLike, ci: float) -> NDArray[np.float64]:
    """
    Percentile confidence intervals of each statistic.

    Args:
        scores: Imputed statistics, shape (n_draws, n_statistics).
        ci: Confidence level.

    Returns:
        Array of shape (2, n_statistics): lower bounds then upper bounds.
    """
    if not (0 < ci < 1):
        raise DRFConfigurationError(f"ci must be in (0, 1), got {ci}")
    alpha = (1 - ci) / 2
    result: NDArray[np.float64] = np.quantile(
        np.asarray(scores, dtype=np.float64), [alpha, ci + alpha], axis=0
    )
    return result


def ci_labels(ci: float) -> tuple[str, str]:
    """Column names of the interval bounds, e.g. ("CI_2.5", "CI_97.5")."""
    alpha = (1 - ci) / 2
    return (
        f"CI_{round(alpha, 3) * 100:g}",
        f"CI_{round(ci + alpha, 3) * 100:g}",
    )


def pointwise_ci(
    scores: ArrayLike, ci: float
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Lower and upper percentile bands of imputed curves, one per node."""
    bounds = percentile_ci(scores, ci)
    return bounds[0], bounds[1]


def z_test(observed: ArrayLike, scores: ArrayLike) -> TestStatistics:
    """
    Two-sided z test of each statistic against zero.

    Args:
        observed: Statistics of the fitted model, shape (m,).
        scores: Imputed statistics, shape (n_draws, m).

    Returns:
        TestStatistics with X2 = z², df = 1.
    """
    observed = np.atleast_1d(np.asarray(observed, dtype=np.float64))
    sd, constant = _imputation_sd(np.asarray(scores))
    z = observed / sd
    p = 2 * norm.sf(np.abs(z))
    return _mask_degenerate(z**2, np.ones_like(z), p, constant)


def chi_square_test(observed: ArrayLike, scores: ArrayLike) -> TestStatistics:
    """
    Chi-square test of the lower/upper components against zero.

    Each component is standardized by its imputation standard deviation;
    the squares are summed. Components that are exactly zero do not count
    towards the degrees of freedom.

    Args:
        observed: Components of the fitted model, shape (m, 2) with columns
            (lower, upper), or (2,) for a single contrast.
        scores: Imputed components, shape (n_draws, 2m), all lower
            components first.

    Returns:
        TestStatistics with one entry per contrast.
    """
    observed = np.atleast_2d(np.asarray(observed, dtype=np.float64))
    m = observed.shape[0]
    sd, constant = _imputation_sd(np.asarray(scores))
    if len(sd) != 2 * m:
        raise ValueError(
            f"scores has {len(sd)} columns, expected {2 * m} for {m} contrasts"
        )

    squared = (observed.T.ravel() / sd) ** 2
    x2 = squared[:m] + squared[m:]
    df = 2.0 - (observed == 0).sum(axis=1)
    with np.errstate(invalid="ignore"):
        p = np.where(df > 0, chi2.sf(x2, np.maximum(df, 1.0)), 1.0)
    # A contrast is only untestable when neither component varies
    return _mask_degenerate(x2, df, p, constant[:m] & constant[m:])


def adjust_p_values(p_values: ArrayLike, method: str) -> NDArray[np.float64]:
    """
    Multiplicity-adjusted p-values.

    Missing p-values stay missing and do not count towards the family size.

    Args:
        p_values: Raw p-values.
        method: One of none, bonferroni, holm, hochberg, hommel, BH, fdr, BY.

    Returns:
        Adjusted p-values in the input order.
    """
    p = np.asarray(p_values, dtype=np.float64)
    if method == "none":
        return p.copy()
    if method not in P_ADJUST_MAPPING:
        raise DRFConfigurationError(
            f"Unknown p-value adjustment {method!r}; expected 'none' or one "
            f"of {tuple(P_ADJUST_MAPPING)}"
        )

    adjusted = np.full_like(p, np.nan)
    present = ~np.isnan(p)
    if np.any(present):
        _, corrected, _, _ = multipletests(
            p[present], method=P_ADJUST_MAPPING[method]
        )
        adjusted[present] = corrected
    return adjusted
