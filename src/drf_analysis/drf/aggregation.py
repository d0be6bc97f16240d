"""
Evaluate the DRF functional for every imputed parameter set.
"""

import logging
from collections.abc import Sequence
from functools import partial

import numpy as np
from numpy.typing import NDArray

from drf_analysis.core.parallel import Backend, parallel_map
from drf_analysis.drf.exceptions import DRFConfigurationError
from drf_analysis.drf.functional import compute_drf, compute_pointwise
from drf_analysis.irt.model import MultipleGroupModel

logger = logging.getLogger(__name__)


def _impute_one(
    task: tuple[NDArray[np.float64], NDArray[np.float64] | None],
    model: MultipleGroupModel,
    theta: NDArray[np.float64],
    focal_items: tuple[int, ...],
    dif: bool,
    signs: NDArray[np.bool_] | None,
    theta_nodes: NDArray[np.float64] | None,
) -> NDArray[np.float64]:
    longpars, rs = task
    working = model.with_parameters(longpars)
    if theta_nodes is not None:
        # Curves stacked item by item
        return compute_pointwise(working, theta_nodes, focal_items, dif).ravel(
            order="F"
        )
    return compute_drf(
        working, theta, focal_items, dif, rs=rs, signs=signs
    ).vector


def impute_statistics(
    model: MultipleGroupModel,
    param_set: NDArray[np.float64],
    theta: NDArray[np.float64],
    focal_items: Sequence[int],
    dif: bool,
    signs: NDArray[np.bool_] | None,
    rs_list: Sequence[NDArray[np.float64]] | None = None,
    theta_nodes: NDArray[np.float64] | None = None,
    n_workers: int | None = None,
    backend: Backend = "process",
) -> NDArray[np.float64]:
    """
    Compute the statistics of every parameter set.

    Each row of param_set is loaded into a draw-local copy of the model.
    Population-weighted statistics are decomposed with the fixed sign mask.
    When theta_nodes is given, the unweighted curve difference at those
    nodes is returned instead.

    Args:
        model: Fitted model; never modified.
        param_set: Parameter sets, shape (n_draws, n_parameters), natural
            scale.
        theta: Grid for the population-weighted statistics.
        focal_items: Items whose expected scores are compared.
        dif: Item-level statistics.
        signs: Sign mask of the fitted model.
        rs_list: Optional expected frequency table per draw.
        theta_nodes: Nodes for curve differences.
        n_workers: Worker pool size; None runs sequentially.
        backend: "process" or "thread".

    Returns:
        Array of shape (n_draws, n_statistics), ordered like the draws.
    """
    param_set = np.asarray(param_set, dtype=np.float64)
    n_pars = len(model.longpars)
    if param_set.ndim != 2 or param_set.shape[1] != n_pars:
        raise DRFConfigurationError(
            f"param_set must have shape (n_draws, {n_pars}), "
            f"got {param_set.shape}"
        )
    if rs_list is not None and len(rs_list) != param_set.shape[0]:
        raise DRFConfigurationError(
            f"rs_list has {len(rs_list)} tables for {param_set.shape[0]} draws"
        )

    tasks: list[tuple[NDArray[np.float64], NDArray[np.float64] | None]] = [
        (row, None if rs_list is None else rs_list[i])
        for i, row in enumerate(param_set)
    ]
    fn = partial(
        _impute_one,
        model=model,
        theta=theta,
        focal_items=tuple(focal_items),
        dif=dif,
        signs=signs,
        theta_nodes=theta_nodes,
    )

    logger.info(f"Evaluating statistics for {len(tasks)} parameter sets")
    rows = parallel_map(fn, tasks, n_workers=n_workers, backend=backend)
    return np.vstack(rows)
