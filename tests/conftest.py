"""
Shared model builders for DRF tests.
"""

import dataclasses

import numpy as np
import pytest

from drf_analysis.irt.items import (
    DichotomousItem,
    GradedItem,
    GroupParameters,
    ItemParameters,
)
from drf_analysis.irt.model import GroupStructure, MultipleGroupModel
from drf_analysis.irt.sampling import simulate_group_responses

SLOPES = (1.2, 0.8, 1.5, 1.0, 0.9, 1.3)
INTERCEPTS = (0.5, -0.3, 0.0, 1.0, -1.0, 0.2)


def make_dich_items(
    intercept_shift: float = 0.0,
    slopes: tuple[float, ...] = SLOPES,
    intercepts: tuple[float, ...] = INTERCEPTS,
) -> tuple[ItemParameters, ...]:
    return tuple(
        DichotomousItem(a=(a,), d=d + intercept_shift)
        for a, d in zip(slopes, intercepts, strict=True)
    )


def make_two_group_model(
    intercept_shift: float = 0.0,
    n_persons: int = 300,
    seed: int = 0,
    with_responses: bool = True,
    vcov_scale: float | None = 0.01,
    free_hyperparameters: bool = True,
    items: tuple[ItemParameters, ...] | None = None,
    focal_items: tuple[ItemParameters, ...] | None = None,
) -> MultipleGroupModel:
    """
    Two-group unidimensional model.

    The focal (second) group's intercepts are shifted by intercept_shift.
    vcov is a scaled identity over the free parameters.
    """
    if items is None:
        items = make_dich_items()
    if focal_items is None:
        focal_items = make_dich_items(intercept_shift)
    groups = (
        GroupStructure(items=items, group_parameters=GroupParameters.standard(1)),
        GroupStructure(
            items=focal_items, group_parameters=GroupParameters.standard(1)
        ),
    )

    responses = None
    if with_responses:
        rng = np.random.default_rng(seed)
        responses = [
            simulate_group_responses(group, n_persons, rng) for group in groups
        ]

    model = MultipleGroupModel.create(
        groups, group_names=["reference", "focal"], responses=responses
    )
    if free_hyperparameters:
        estimated = model.estimated.copy()
        focal_start = len(model.longpars) // 2
        estimated[focal_start:] |= model.hyperparameter_mask[focal_start:]
        model = dataclasses.replace(model, estimated=estimated)
    if vcov_scale is not None:
        n_free = len(model.free_indices)
        model = dataclasses.replace(model, vcov=np.eye(n_free) * vcov_scale)
    return model


def make_graded_items() -> tuple[ItemParameters, ...]:
    return (
        GradedItem(a=(1.0,), d=(1.5, 0.0, -1.5)),
        GradedItem(a=(1.4,), d=(0.8, -0.6)),
        DichotomousItem(a=(0.9,), d=0.3),
    )


@pytest.fixture
def equal_model() -> MultipleGroupModel:
    return make_two_group_model()


@pytest.fixture
def shifted_model() -> MultipleGroupModel:
    return make_two_group_model(intercept_shift=-0.5)


@pytest.fixture
def graded_model() -> MultipleGroupModel:
    items = make_graded_items()
    return make_two_group_model(items=items, focal_items=items)


@pytest.fixture
def model_factory():
    """Builder for two-group models with custom settings."""
    return make_two_group_model
