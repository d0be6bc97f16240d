"""
Tests for the population-weighted DRF statistics.
"""

import dataclasses

import numpy as np
import pytest

from drf_analysis.drf.exceptions import FrequencyTableError
from drf_analysis.drf.functional import (
    compute_drf,
    compute_pointwise,
    curve_difference,
    population_weights,
)
from drf_analysis.irt.grid import theta_grid
from drf_analysis.irt.items import DichotomousItem

THETA = theta_grid((-6, 6), 61, 1)
ALL_ITEMS = tuple(range(6))


@pytest.fixture
def crossing_model(model_factory):
    """Focal group with flatter slopes, so the curves cross near θ = 0."""
    reference = tuple(DichotomousItem(a=(1.5,), d=0.0) for _ in range(6))
    focal = tuple(DichotomousItem(a=(0.7,), d=0.0) for _ in range(6))
    return model_factory(items=reference, focal_items=focal)


class TestPopulationWeights:
    def test_normalized(self) -> None:
        rs = np.array([[1.0, 3.0], [2.0, 2.0], [0.0, 2.0]])
        np.testing.assert_allclose(population_weights(rs), [0.4, 0.4, 0.2])

    def test_empty_table(self) -> None:
        with pytest.raises(FrequencyTableError, match="no mass"):
            population_weights(np.zeros((5, 2)))


class TestComputeDRF:
    def test_identical_groups(self, equal_model) -> None:
        stats = compute_drf(equal_model, THETA, ALL_ITEMS, dif=False)

        np.testing.assert_allclose(stats.signed, [0.0], atol=1e-12)
        np.testing.assert_allclose(stats.unsigned, [0.0], atol=1e-12)

    def test_shift_favours_reference(self, shifted_model) -> None:
        stats = compute_drf(shifted_model, THETA, ALL_ITEMS, dif=False)

        assert stats.signed[0] > 0
        assert stats.signed[0] == pytest.approx(stats.unsigned[0])
        assert stats.lower[0] == 0.0
        assert stats.upper[0] == pytest.approx(stats.unsigned[0])
        assert not stats.signs.any()

    def test_components_sum_to_unsigned(self, crossing_model) -> None:
        stats = compute_drf(crossing_model, THETA, ALL_ITEMS, dif=False)

        assert stats.signs.any() and not stats.signs.all()
        assert stats.lower[0] > 0
        assert stats.upper[0] > 0
        assert stats.lower[0] + stats.upper[0] == pytest.approx(stats.unsigned[0])
        assert stats.upper[0] - stats.lower[0] == pytest.approx(stats.signed[0])
        assert stats.unsigned[0] > abs(stats.signed[0])

    def test_supplied_signs_are_used(self, crossing_model) -> None:
        all_masked = np.ones(THETA.shape[0], dtype=np.bool_)
        stats = compute_drf(
            crossing_model, THETA, ALL_ITEMS, dif=False, signs=all_masked
        )

        assert stats.upper[0] == 0.0
        assert stats.lower[0] == pytest.approx(-stats.signed[0])

    def test_signs_shape_checked(self, equal_model) -> None:
        with pytest.raises(ValueError, match="Sign mask has shape"):
            compute_drf(
                equal_model,
                THETA,
                ALL_ITEMS,
                dif=True,
                signs=np.zeros(THETA.shape[0], dtype=np.bool_),
            )

    def test_item_level_sums_to_test_level(self, shifted_model) -> None:
        test_level = compute_drf(shifted_model, THETA, ALL_ITEMS, dif=False)
        item_level = compute_drf(shifted_model, THETA, ALL_ITEMS, dif=True)

        assert item_level.n_statistics == 6
        assert item_level.signs.shape == (61, 6)
        assert item_level.vector.shape == (24,)
        assert item_level.signed.sum() == pytest.approx(test_level.signed[0])

    def test_bundle_subset(self, shifted_model) -> None:
        full = compute_drf(shifted_model, THETA, ALL_ITEMS, dif=False)
        bundle = compute_drf(shifted_model, THETA, (0, 2), dif=False)
        assert 0 < bundle.signed[0] < full.signed[0]

    def test_requires_responses_or_table(self, equal_model) -> None:
        model = dataclasses.replace(equal_model, responses=None)
        with pytest.raises(FrequencyTableError, match="pre-computed"):
            compute_drf(model, THETA, ALL_ITEMS, dif=False)

    def test_precomputed_table(self, shifted_model) -> None:
        """A uniform table weights every node equally."""
        model = dataclasses.replace(shifted_model, responses=None)
        rs = np.ones((THETA.shape[0], 2))

        stats = compute_drf(model, THETA, ALL_ITEMS, dif=False, rs=rs)

        diff = curve_difference(model, THETA, ALL_ITEMS, dif=False)
        assert stats.signed[0] == pytest.approx(diff.mean())


class TestPointwise:
    def test_zero_difference_for_identical_groups(self, equal_model) -> None:
        nodes = np.array([[-1.0], [0.0], [2.0]])
        np.testing.assert_allclose(
            compute_pointwise(equal_model, nodes, ALL_ITEMS), 0.0, atol=1e-12
        )

    def test_item_level_shape(self, shifted_model) -> None:
        nodes = np.array([[-1.0], [0.0], [2.0]])
        curves = compute_pointwise(shifted_model, nodes, (1, 3), dif=True)

        assert curves.shape == (3, 2)
        assert np.all(curves > 0)
