"""
Differential response functioning analysis for two-group IRT models.

Statistical methodology:
- Statistics: population-weighted signed/unsigned differences between the
  groups' expected score curves (see functional.py)
- Sampling variability: statistics re-evaluated for parameter sets drawn
  from the parameter covariance (or a nonparametric bootstrap)
- Intervals: percentile confidence intervals over the imputed statistics
- Tests: z test for signed statistics, chi-square on the lower/upper
  components for unsigned statistics, optional multiplicity correction
  across items
"""

import logging
from collections.abc import Sequence

import numpy as np
import pandas as pd
from matplotlib.figure import Figure
from numpy.random import Generator
from numpy.typing import ArrayLike, NDArray

from drf_analysis.core.utils import get_rng
from drf_analysis.drf.aggregation import impute_statistics
from drf_analysis.drf.config import DRFConfig
from drf_analysis.drf.data_models import DIFResult, DRFTestResult, PointwiseResult
from drf_analysis.drf.draws import RefitFunction, draw_parameters
from drf_analysis.drf.exceptions import DRFConfigurationError
from drf_analysis.drf.functional import compute_drf, compute_pointwise
from drf_analysis.drf.inference import (
    TestStatistics,
    adjust_p_values,
    chi_square_test,
    ci_labels,
    percentile_ci,
    pointwise_ci,
    z_test,
)
from drf_analysis.drf.plotting import plot_drf
from drf_analysis.irt.grid import theta_grid, validate_theta_nodes
from drf_analysis.irt.model import MultipleGroupModel

logger = logging.getLogger(__name__)

DRFResult = DRFTestResult | DIFResult | PointwiseResult | Figure


def resolve_focal_items(
    focal_items: Sequence[int] | None, n_items: int
) -> tuple[int, ...]:
    """Validate focal item indices; None selects every item."""
    if focal_items is None:
        return tuple(range(n_items))
    items = tuple(int(ix) for ix in focal_items)
    if not items:
        raise DRFConfigurationError("focal_items must contain at least one item")
    if len(set(items)) != len(items):
        raise DRFConfigurationError(f"focal_items contains duplicates: {items}")
    out_of_range = [ix for ix in items if ix < 0 or ix >= n_items]
    if out_of_range:
        raise DRFConfigurationError(
            f"focal_items {out_of_range} outside 0..{n_items - 1}"
        )
    return items


def _theta_columns(nodes: NDArray[np.float64]) -> dict[str, NDArray[np.float64]]:
    if nodes.shape[1] == 1:
        return {"Theta": nodes[:, 0]}
    return {f"Theta_{k + 1}": nodes[:, k] for k in range(nodes.shape[1])}


def _test_columns(tests: TestStatistics) -> dict[str, NDArray[np.float64]]:
    return {"X2": tests.X2, "df": tests.df, "p": tests.p}


def _validate_param_set(
    param_set: ArrayLike, model: MultipleGroupModel
) -> NDArray[np.float64]:
    arr = np.asarray(param_set, dtype=np.float64)
    n_pars = len(model.longpars)
    if arr.ndim != 2 or arr.shape[1] != n_pars or arr.shape[0] == 0:
        raise DRFConfigurationError(
            f"param_set must have shape (n_draws, {n_pars}), got {arr.shape}"
        )
    return arr


def drf(
    model: MultipleGroupModel,
    config: DRFConfig | None = None,
    *,
    focal_items: Sequence[int] | None = None,
    param_set: ArrayLike | None = None,
    theta_nodes: ArrayLike | None = None,
    plot: bool = False,
    dif: bool = False,
    rng: Generator | None = None,
    refit: RefitFunction | None = None,
    rs: NDArray[np.float64] | None = None,
    rs_list: Sequence[NDArray[np.float64]] | None = None,
) -> DRFResult:
    """
    Compute differential response functioning statistics.

    One focal item gives a DIF statistic, all items the full-test DTF and
    any other subset a bundle-level DBF.

    Args:
        model: Fitted two-group model.
        config: Draw count, CI level, grids and parallelism. Defaults to
            DRFConfig().
        focal_items: Item indices to compare. None selects every item.
        param_set: Pre-drawn parameter sets (n_draws, n_parameters) on the
            natural scale. Overrides config.draws.
        theta_nodes: Explicit nodes (n_nodes, nfact) for unweighted curve
            differences.
        plot: Return a figure of the curve difference instead of tables.
        dif: Report one statistic per focal item.
        rng: Random number generator. Defaults to one seeded by config.seed.
        refit: Bootstrap only. Refits the model to resampled responses.
        rs: Expected frequency table of the fitted model on the grid.
        rs_list: Expected frequency table of each parameter set.

    Returns:
        DRFTestResult, DIFResult, PointwiseResult, or a Figure when plot.

    Raises:
        DRFConfigurationError: Invalid combination of inputs.
        CovarianceNotAvailableError: Parametric draws without a positive
            definite covariance.
        DrawLimitExceededError: A draw could not satisfy the constraints.
        FrequencyTableError: No response data and no frequency table.
    """
    if config is None:
        config = DRFConfig()

    if model.n_groups != 2:
        raise DRFConfigurationError(
            f"DRF only supports two-group models, got {model.n_groups} groups"
        )
    if dif and theta_nodes is not None:
        raise DRFConfigurationError("dif must be False when using theta_nodes")
    if plot and theta_nodes is not None:
        raise DRFConfigurationError("plot cannot be combined with theta_nodes")
    if plot and model.nfact != 1:
        raise DRFConfigurationError("plot is only supported for unidimensional models")

    focal = resolve_focal_items(focal_items, model.n_items)

    nodes: NDArray[np.float64] | None = None
    if theta_nodes is not None:
        try:
            nodes = validate_theta_nodes(theta_nodes, model.nfact)
        except ValueError as err:
            raise DRFConfigurationError(str(err)) from err

    if not model.hyperparameters_estimated:
        logger.warning(
            "No hyper-parameters were estimated in the DIF model. For effective "
            "DRF testing freeing the focal group hyper-parameters is recommended."
        )

    draws: NDArray[np.float64] | None = None
    if param_set is not None:
        draws = _validate_param_set(param_set, model)
    elif config.draws is not None:
        if rng is None:
            rng = get_rng(config.seed)
        draws = draw_parameters(
            model,
            config.draws,
            method=config.method,
            redraws=config.redraws,
            rng=rng,
            n_workers=config.n_workers,
            backend=config.backend,  # type: ignore[arg-type]
            refit=refit,
        )
    impute = draws is not None

    quadpts = config.quadpts if config.quadpts is not None else model.quadpts
    theta = theta_grid(config.theta_lim, quadpts, model.nfact)
    if plot:
        nodes = theta_grid(config.theta_lim, config.npts, 1)

    item_names = [model.item_names[ix] for ix in focal]

    # Statistics of the fitted parameters
    signs: NDArray[np.bool_] | None = None
    if nodes is not None:
        observed_curve = compute_pointwise(model, nodes, focal, dif)
        if not impute:
            if plot:
                return plot_drf(nodes[:, 0], observed_curve, item_names, dif=dif)
            return PointwiseResult(
                table=pd.DataFrame(
                    {**_theta_columns(nodes), "sDRF": observed_curve}
                )
            )
    else:
        observed = compute_drf(model, theta, focal, dif, rs=rs)
        signs = observed.signs
        if not impute:
            return _unimputed_result(observed.signed, observed.unsigned, focal, item_names, dif)

    assert draws is not None
    logger.info(f"Imputing statistics over {draws.shape[0]} parameter sets")
    scores = impute_statistics(
        model,
        draws,
        theta,
        focal,
        dif,
        signs,
        rs_list=rs_list,
        theta_nodes=nodes,
        n_workers=config.n_workers,
        backend=config.backend,  # type: ignore[arg-type]
    )

    lo_label, hi_label = ci_labels(config.ci)
    if nodes is not None:
        lower, upper = pointwise_ci(scores, config.ci)
        if plot:
            shape = (len(focal), nodes.shape[0]) if dif else (1, nodes.shape[0])
            return plot_drf(
                nodes[:, 0],
                observed_curve,
                item_names,
                lower=lower.reshape(shape).T,
                upper=upper.reshape(shape).T,
                dif=dif,
            )
        return PointwiseResult(
            table=pd.DataFrame(
                {
                    **_theta_columns(nodes),
                    "sDRF": observed_curve,
                    lo_label: lower,
                    hi_label: upper,
                }
            ),
            scores=scores,
            param_set=draws,
        )

    logger.info("Computing confidence intervals and tests")
    m = observed.n_statistics
    bounds = percentile_ci(scores[:, : 2 * m], config.ci)
    components = np.column_stack([observed.lower, observed.upper])
    signed_tests = z_test(observed.signed, scores[:, :m])
    unsigned_tests = chi_square_test(components, scores[:, 2 * m :])

    if dif:
        index = pd.Index(item_names, name="item")
        signed = pd.DataFrame(
            {
                "sDIF": observed.signed,
                lo_label: bounds[0, :m],
                hi_label: bounds[1, :m],
                **_test_columns(signed_tests),
            },
            index=index,
        )
        unsigned = pd.DataFrame(
            {
                "uDIF": observed.unsigned,
                lo_label: bounds[0, m:],
                hi_label: bounds[1, m:],
                **_test_columns(unsigned_tests),
            },
            index=index,
        )
        if config.p_adjust != "none":
            signed["adj_pvals"] = adjust_p_values(signed["p"], config.p_adjust)
            unsigned["adj_pvals"] = adjust_p_values(
                unsigned["p"], config.p_adjust
            )
        return DIFResult(
            signed=signed, unsigned=unsigned, scores=scores, param_set=draws
        )

    table = pd.DataFrame(
        {
            "n_focal_items": len(focal),
            "stat": [observed.signed[0], observed.unsigned[0]],
            lo_label: bounds[0],
            hi_label: bounds[1],
            "X2": np.concatenate([signed_tests.X2, unsigned_tests.X2]),
            "df": np.concatenate([signed_tests.df, unsigned_tests.df]),
            "p": np.concatenate([signed_tests.p, unsigned_tests.p]),
        },
        index=pd.Index(["sDRF", "uDRF"]),
    )
    return DRFTestResult(table=table, scores=scores, param_set=draws)


def _unimputed_result(
    signed: NDArray[np.float64],
    unsigned: NDArray[np.float64],
    focal: tuple[int, ...],
    item_names: list[str],
    dif: bool,
) -> DRFTestResult | DIFResult:
    if dif:
        return DIFResult(
            signed=pd.DataFrame(
                {"sDIF": signed, "uDIF": unsigned},
                index=pd.Index(item_names, name="item"),
            )
        )
    return DRFTestResult(
        table=pd.DataFrame(
            {
                "n_focal_items": [len(focal)],
                "sDRF": signed,
                "uDRF": unsigned,
            }
        )
    )
