"""
Plausible parameter draws for imputing sampling variability.

Parametric draws perturb the free parameters with multivariate normal noise
from the parameter covariance, then enforce equality constraints, bounds
and category ordering by rejection. Probability-scale parameters (g, u)
are sampled on the logit scale.

Bootstrap draws resample persons within each group and refit the model
through a caller-supplied function.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from functools import partial

import numpy as np
from numpy.random import Generator
from numpy.typing import NDArray

from drf_analysis.core.data_models import ResponseMatrix
from drf_analysis.core.parallel import Backend, parallel_map
from drf_analysis.core.utils import antilogit, get_rng, logit, spawn_seeds
from drf_analysis.drf.config import DEFAULT_REDRAWS, DRAW_METHODS
from drf_analysis.drf.exceptions import (
    CovarianceNotAvailableError,
    DRFConfigurationError,
    DrawLimitExceededError,
)
from drf_analysis.irt.model import GroupStructure, MultipleGroupModel, reload_parameters

logger = logging.getLogger(__name__)

RefitFunction = Callable[[MultipleGroupModel, Sequence[ResponseMatrix]], MultipleGroupModel]


@dataclass(frozen=True)
class ParametricDrawContext:
    """
    Read-only inputs shared by every parametric draw.

    All vectors are on the estimation scale (logit for logit_mask entries).

    Attributes:
        shortpars: Point estimates of the free parameters.
        root: Symmetric square root of the free-parameter covariance.
        longpars: Full parameter vector at the point estimate.
        free_indices: Positions of the free parameters in longpars.
        constraints: Equality-constraint groups, anchor first.
        lbound: Lower bounds.
        ubound: Upper bounds.
        estimated: Whether each parameter was estimated.
        logit_mask: Parameters sampled on the logit scale.
        skeleton: Group structures used to check orderings, or None when
            no parameter has an ordering constraint.
        redraws: Maximum attempts per draw.
    """

    shortpars: NDArray[np.float64]
    root: NDArray[np.float64]
    longpars: NDArray[np.float64]
    free_indices: NDArray[np.intp]
    constraints: tuple[tuple[int, ...], ...]
    lbound: NDArray[np.float64]
    ubound: NDArray[np.float64]
    estimated: NDArray[np.bool_]
    logit_mask: NDArray[np.bool_]
    skeleton: tuple[GroupStructure, ...] | None
    redraws: int

    @classmethod
    def from_model(
        cls, model: MultipleGroupModel, redraws: int = DEFAULT_REDRAWS
    ) -> "ParametricDrawContext":
        if model.vcov is None or not model.second_order_test:
            raise CovarianceNotAvailableError(
                "Parameter covariance matrix is not positive definite; "
                "parametric draws are unavailable"
            )

        logit_mask = model.logit_mask
        longpars = _to_logit(model.longpars, logit_mask)
        lbound = _to_logit(model.lbound, logit_mask)
        ubound = _to_logit(model.ubound, logit_mask)

        # Negative eigenvalues from numerical noise are truncated to zero
        eigvals, eigvecs = np.linalg.eigh(model.vcov)
        root = eigvecs @ np.diag(np.sqrt(np.maximum(eigvals, 0.0))) @ eigvecs.T

        check_ordering = model.has_ordinal_items or bool(
            np.any(model.estimated & model.hyperparameter_mask)
        )
        return cls(
            shortpars=model.shortpars,
            root=root,
            longpars=longpars,
            free_indices=model.free_indices,
            constraints=model.constraints,
            lbound=lbound,
            ubound=ubound,
            estimated=model.estimated,
            logit_mask=logit_mask,
            skeleton=model.groups if check_ordering else None,
            redraws=redraws,
        )

    def propose(self, rng: Generator) -> NDArray[np.float64]:
        """Perturb the free parameters and propagate equality constraints."""
        z = rng.standard_normal(len(self.shortpars))
        candidate = self.longpars.copy()
        candidate[self.free_indices] = self.shortpars + z @ self.root
        for constraint in self.constraints:
            candidate[list(constraint[1:])] = candidate[constraint[0]]
        return candidate

    def is_admissible(self, candidate: NDArray[np.float64]) -> bool:
        """Check bounds on estimated parameters and block orderings."""
        out_of_bounds = (candidate < self.lbound) | (candidate > self.ubound)
        if np.any(out_of_bounds & self.estimated):
            return False
        if self.skeleton is not None:
            natural = _from_logit(candidate, self.logit_mask)
            groups = reload_parameters(natural, self.skeleton)
            return all(
                block.is_valid_ordering()
                for group in groups
                for block in group.blocks
            )
        return True


def _to_logit(
    values: NDArray[np.float64], mask: NDArray[np.bool_]
) -> NDArray[np.float64]:
    out = np.array(values, dtype=np.float64)
    out[mask] = logit(out[mask])
    return out


def _from_logit(
    values: NDArray[np.float64], mask: NDArray[np.bool_]
) -> NDArray[np.float64]:
    out = np.array(values, dtype=np.float64)
    out[mask] = antilogit(out[mask])
    return out


def _parametric_draw(
    task: tuple[int, np.random.SeedSequence], context: ParametricDrawContext
) -> NDArray[np.float64]:
    index, seed = task
    rng = np.random.default_rng(seed)
    for attempt in range(context.redraws):
        candidate = context.propose(rng)
        if context.is_admissible(candidate):
            return _from_logit(candidate, context.logit_mask)
        logger.debug(f"Draw {index}: attempt {attempt + 1} rejected")
    raise DrawLimitExceededError(index, context.redraws)


def _bootstrap_draw(
    task: tuple[int, np.random.SeedSequence],
    model: MultipleGroupModel,
    refit: RefitFunction,
) -> NDArray[np.float64]:
    index, seed = task
    rng = np.random.default_rng(seed)
    assert model.responses is not None
    resampled = [data.resample(rng) for data in model.responses]
    refitted = refit(model, resampled)
    longpars = refitted.longpars
    if longpars.shape != model.longpars.shape:
        raise ValueError(
            f"Bootstrap refit {index} returned {len(longpars)} parameters, "
            f"expected {len(model.longpars)}"
        )
    return longpars


def draw_parameters(
    model: MultipleGroupModel,
    draws: int,
    method: str = "parametric",
    redraws: int = DEFAULT_REDRAWS,
    rng: Generator | None = None,
    n_workers: int | None = None,
    backend: Backend = "process",
    refit: RefitFunction | None = None,
) -> NDArray[np.float64]:
    """
    Draw plausible parameter vectors for a fitted model.

    Args:
        model: Fitted multiple-group model.
        draws: Number of parameter vectors.
        method: "parametric" or "bootstrap".
        redraws: Maximum attempts per parametric draw.
        rng: Random number generator.
        n_workers: Worker pool size; None runs sequentially.
        backend: "process" or "thread".
        refit: Bootstrap only. Refits the model to resampled responses.

    Returns:
        Array of shape (draws, n_parameters) aligned to model.longpars, on
        the natural parameter scale.

    Raises:
        CovarianceNotAvailableError: Parametric draws without a positive
            definite covariance.
        DrawLimitExceededError: A draw failed the constraints redraws times.
        DRFConfigurationError: Invalid method or bootstrap inputs.
    """
    if draws < 1:
        raise DRFConfigurationError(f"draws must be >= 1, got {draws}")
    if method not in DRAW_METHODS:
        raise DRFConfigurationError(
            f"Unknown draw method {method!r}; expected one of {DRAW_METHODS}"
        )
    if rng is None:
        rng = get_rng()

    fn: Callable[[tuple[int, np.random.SeedSequence]], NDArray[np.float64]]
    if method == "parametric":
        if redraws < 1:
            raise DRFConfigurationError(f"redraws must be >= 1, got {redraws}")
        context = ParametricDrawContext.from_model(model, redraws)
        fn = partial(_parametric_draw, context=context)
    else:
        if refit is None:
            raise DRFConfigurationError(
                "Bootstrap draws need a refit function for the resampled data"
            )
        if model.responses is None:
            raise DRFConfigurationError(
                "Bootstrap draws need the response data of both groups"
            )
        fn = partial(_bootstrap_draw, model=model, refit=refit)

    logger.info(f"Drawing {draws} {method} parameter sets")
    tasks = list(enumerate(spawn_seeds(rng, draws)))
    rows = parallel_map(fn, tasks, n_workers=n_workers, backend=backend)
    return np.vstack(rows)
