"""
Fitted multiple-group IRT model representation.

This module defines:
- GroupStructure: Item and latent-distribution parameters of one group
- MultipleGroupModel: The full fitted model with its flat parameter vector,
  bounds, equality constraints and parameter covariance
- flatten_groups / reload_parameters: Conversion between the flat vector
  and the nested per-group structures
"""

import dataclasses
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from drf_analysis.core.data_models import ResponseMatrix
from drf_analysis.core.utils import logit
from drf_analysis.irt.items import GroupParameters, ItemParameters, OrdinalItem

# Quadrature points per factor count used when no grid size is given
DEFAULT_QUADPTS = {1: 61, 2: 31, 3: 15}
DEFAULT_QUADPTS_HIGH_DIM = 9


def default_quadpts(nfact: int) -> int:
    return DEFAULT_QUADPTS.get(nfact, DEFAULT_QUADPTS_HIGH_DIM)


Block = ItemParameters | GroupParameters


@dataclass(frozen=True)
class GroupStructure:
    """
    Parameters of one group.

    Attributes:
        items: Item parameters, one per item.
        group_parameters: Latent mean and covariance of the group.
    """

    items: tuple[ItemParameters, ...]
    group_parameters: GroupParameters

    @property
    def n_items(self) -> int:
        return len(self.items)

    @property
    def nfact(self) -> int:
        return self.group_parameters.nfact

    @property
    def blocks(self) -> tuple[Block, ...]:
        """Parameter blocks in flat-vector order."""
        return (*self.items, self.group_parameters)


def flatten_groups(groups: Sequence[GroupStructure]) -> NDArray[np.float64]:
    """Concatenate every group's parameter blocks into one flat vector."""
    return np.concatenate(
        [block.to_array() for group in groups for block in group.blocks]
    )


def reload_parameters(
    longpars: NDArray[np.float64], skeleton: Sequence[GroupStructure]
) -> tuple[GroupStructure, ...]:
    """
    Rebuild per-group structures from a flat parameter vector.

    Args:
        longpars: Flat vector laid out like flatten_groups(skeleton).
        skeleton: Structures supplying item types and block sizes.

    Returns:
        New group structures holding the values of longpars.
    """
    expected = sum(
        block.n_parameters for group in skeleton for block in group.blocks
    )
    if len(longpars) != expected:
        raise ValueError(
            f"Parameter vector has length {len(longpars)}, expected {expected}"
        )

    offset = 0
    groups = []
    for group in skeleton:
        items = []
        for item in group.items:
            end = offset + item.n_parameters
            items.append(item.from_array(longpars[offset:end]))
            offset = end
        end = offset + group.group_parameters.n_parameters
        group_parameters = group.group_parameters.from_array(
            longpars[offset:end]
        )
        offset = end
        groups.append(
            GroupStructure(items=tuple(items), group_parameters=group_parameters)
        )
    return tuple(groups)


def _concat_blocks(
    groups: Sequence[GroupStructure], attr: str
) -> NDArray[np.generic]:
    return np.concatenate(
        [getattr(block, attr)() for group in groups for block in group.blocks]
    )


@dataclass(frozen=True)
class MultipleGroupModel:
    """
    A fitted multiple-group IRT model.

    All per-parameter arrays are aligned to `longpars`. Bounds are on the
    natural scale; `vcov` is on the estimation scale, where parameters in
    `logit_mask` are expressed as log-odds.

    Attributes:
        groups: Per-group parameter structures.
        group_names: Name of each group.
        item_names: Name of each item.
        estimated: Whether each parameter was freely estimated.
        lbound: Lower bound of each parameter.
        ubound: Upper bound of each parameter.
        constraints: Equality-constraint groups of parameter indices. The
            first index of each group is its anchor.
        vcov: Covariance of the free parameters (see free_indices), or None
            when it was not computed.
        second_order_test: Whether the information matrix was positive
            definite at the solution.
        responses: Observed responses per group, or None.
        item_mins: Minimum observed score per item. Expected scores always
            use categories 0..K-1, so this is carried for model exchange only.
        quadpts: Default grid resolution per factor.
    """

    groups: tuple[GroupStructure, ...]
    group_names: tuple[str, ...]
    item_names: tuple[str, ...]
    estimated: NDArray[np.bool_]
    lbound: NDArray[np.float64]
    ubound: NDArray[np.float64]
    constraints: tuple[tuple[int, ...], ...]
    vcov: NDArray[np.float64] | None
    second_order_test: bool
    responses: tuple[ResponseMatrix, ...] | None
    item_mins: NDArray[np.int_]
    quadpts: int

    def __post_init__(self) -> None:
        """Validate model consistency."""
        if len(self.groups) == 0:
            raise ValueError("Model must contain at least one group")
        if len(self.group_names) != len(self.groups):
            raise ValueError(
                f"group_names has {len(self.group_names)} entries but the "
                f"model has {len(self.groups)} groups"
            )

        reference = self.groups[0]
        for name, group in zip(self.group_names, self.groups, strict=True):
            if group.n_items != reference.n_items:
                raise ValueError(
                    f"Group {name} has {group.n_items} items, "
                    f"expected {reference.n_items}"
                )
            if group.nfact != reference.nfact or any(
                item.nfact != reference.nfact for item in group.items
            ):
                raise ValueError(
                    f"Group {name} does not match the model factor count "
                    f"{reference.nfact}"
                )
            itemtypes = tuple(type(item) for item in group.items)
            if itemtypes != tuple(type(item) for item in reference.items):
                raise ValueError(f"Group {name} has different item types")

        if len(self.item_names) != reference.n_items:
            raise ValueError(
                f"item_names has {len(self.item_names)} entries but the "
                f"model has {reference.n_items} items"
            )

        n_pars = len(self.longpars)
        for label, arr in (
            ("estimated", self.estimated),
            ("lbound", self.lbound),
            ("ubound", self.ubound),
        ):
            if arr.shape != (n_pars,):
                raise ValueError(
                    f"{label} has shape {arr.shape}, expected ({n_pars},)"
                )

        for constraint in self.constraints:
            if len(constraint) < 2:
                raise ValueError(
                    f"Equality constraint {constraint} needs at least two indices"
                )
            if any(ix < 0 or ix >= n_pars for ix in constraint):
                raise ValueError(
                    f"Equality constraint {constraint} references a parameter "
                    f"outside 0..{n_pars - 1}"
                )

        if self.vcov is not None:
            n_free = len(self.free_indices)
            if self.vcov.shape != (n_free, n_free):
                raise ValueError(
                    f"vcov has shape {self.vcov.shape}, expected "
                    f"({n_free}, {n_free}) for the free parameters"
                )

        if self.responses is not None:
            if len(self.responses) != len(self.groups):
                raise ValueError(
                    f"responses given for {len(self.responses)} groups, "
                    f"expected {len(self.groups)}"
                )
            for name, data in zip(self.group_names, self.responses, strict=True):
                if data.n_categories != self.n_categories:
                    raise ValueError(
                        f"Responses of group {name} do not match the item "
                        f"category counts {self.n_categories}"
                    )

        if self.item_mins.shape != (reference.n_items,):
            raise ValueError(
                f"item_mins has shape {self.item_mins.shape}, "
                f"expected ({reference.n_items},)"
            )
        if self.quadpts < 2:
            raise ValueError(f"quadpts must be >= 2, got {self.quadpts}")

    @classmethod
    def create(
        cls,
        groups: Sequence[GroupStructure],
        *,
        group_names: Sequence[str] | None = None,
        item_names: Sequence[str] | None = None,
        estimated: NDArray[np.bool_] | None = None,
        lbound: NDArray[np.float64] | None = None,
        ubound: NDArray[np.float64] | None = None,
        constraints: Sequence[Sequence[int]] = (),
        vcov: NDArray[np.float64] | None = None,
        second_order_test: bool = True,
        responses: Sequence[ResponseMatrix] | None = None,
        item_mins: NDArray[np.int_] | None = None,
        quadpts: int | None = None,
    ) -> "MultipleGroupModel":
        """
        Build a model, filling unspecified fields with defaults.

        Defaults: slopes and intercepts estimated while asymptotes and group
        hyper-parameters stay fixed, bounds from each parameter block, item
        minimums of zero and the factor-count dependent quadrature size.
        """
        groups = tuple(groups)
        n_items = groups[0].n_items if groups else 0

        if group_names is None:
            group_names = [f"G{g + 1}" for g in range(len(groups))]
        if item_names is None:
            item_names = [f"Item_{j + 1}" for j in range(n_items)]
        if estimated is None:
            # Asymptotes stay fixed unless requested
            estimated = np.concatenate(
                [
                    isinstance(block, ItemParameters) & ~block.logit_mask()
                    for group in groups
                    for block in group.blocks
                ]
            )
        if lbound is None:
            lbound = np.concatenate(
                [block.bounds()[0] for group in groups for block in group.blocks]
            )
        if ubound is None:
            ubound = np.concatenate(
                [block.bounds()[1] for group in groups for block in group.blocks]
            )
        if item_mins is None:
            item_mins = np.zeros(n_items, dtype=np.int_)
        if quadpts is None:
            quadpts = default_quadpts(groups[0].nfact if groups else 1)

        return cls(
            groups=groups,
            group_names=tuple(group_names),
            item_names=tuple(item_names),
            estimated=np.asarray(estimated, dtype=np.bool_),
            lbound=np.asarray(lbound, dtype=np.float64),
            ubound=np.asarray(ubound, dtype=np.float64),
            constraints=tuple(tuple(int(ix) for ix in c) for c in constraints),
            vcov=None if vcov is None else np.asarray(vcov, dtype=np.float64),
            second_order_test=second_order_test,
            responses=None if responses is None else tuple(responses),
            item_mins=np.asarray(item_mins, dtype=np.int_),
            quadpts=quadpts,
        )

    @property
    def longpars(self) -> NDArray[np.float64]:
        """Flat vector of all parameters on the natural scale."""
        return flatten_groups(self.groups)

    @property
    def parameter_names(self) -> tuple[str, ...]:
        names = []
        for group_name, group in zip(self.group_names, self.groups, strict=True):
            for item_name, item in zip(self.item_names, group.items, strict=True):
                names.extend(
                    f"{group_name}.{item_name}.{par}"
                    for par in item.parameter_names
                )
            names.extend(
                f"{group_name}.GroupPars.{par}"
                for par in group.group_parameters.parameter_names
            )
        return tuple(names)

    @property
    def logit_mask(self) -> NDArray[np.bool_]:
        """Parameters sampled on the log-odds scale."""
        return _concat_blocks(self.groups, "logit_mask").astype(np.bool_)

    @property
    def hyperparameter_mask(self) -> NDArray[np.bool_]:
        """Positions of latent means and covariances in longpars."""
        return np.concatenate(
            [
                np.full(
                    block.n_parameters,
                    isinstance(block, GroupParameters),
                    dtype=np.bool_,
                )
                for group in self.groups
                for block in group.blocks
            ]
        )

    @property
    def free_indices(self) -> NDArray[np.intp]:
        """
        Indices of the free parameters, in longpars order.

        Estimated parameters, excluding members of an equality constraint
        other than its anchor. These index the rows/columns of vcov.
        """
        free = self.estimated.copy()
        for constraint in self.constraints:
            free[list(constraint[1:])] = False
        return np.flatnonzero(free)

    @property
    def shortpars(self) -> NDArray[np.float64]:
        """Free parameter values on the estimation scale."""
        values = self.longpars
        mask = self.logit_mask
        values[mask] = logit(values[mask])
        return values[self.free_indices]

    @property
    def nfact(self) -> int:
        return self.groups[0].nfact

    @property
    def n_items(self) -> int:
        return self.groups[0].n_items

    @property
    def n_groups(self) -> int:
        return len(self.groups)

    @property
    def itemtypes(self) -> tuple[str, ...]:
        return tuple(item.itemtype for item in self.groups[0].items)  # type: ignore[attr-defined]

    @property
    def n_categories(self) -> tuple[int, ...]:
        return tuple(item.n_categories for item in self.groups[0].items)

    @property
    def has_ordinal_items(self) -> bool:
        return any(isinstance(item, OrdinalItem) for item in self.groups[0].items)

    @property
    def hyperparameters_estimated(self) -> bool:
        """Whether any latent mean or covariance was freely estimated."""
        return bool(np.any(self.estimated & self.hyperparameter_mask))

    def with_parameters(self, longpars: NDArray[np.float64]) -> "MultipleGroupModel":
        """Return a copy of the model holding the given parameter values."""
        return dataclasses.replace(
            self, groups=reload_parameters(longpars, self.groups)
        )

    def with_responses(
        self, responses: Sequence[ResponseMatrix]
    ) -> "MultipleGroupModel":
        return dataclasses.replace(self, responses=tuple(responses))
