"""
Tests for expected scores, posteriors and expected frequency tables.
"""

import dataclasses

import numpy as np
import pytest

from drf_analysis.core.constants import MISSING_VALUE
from drf_analysis.core.data_models import ResponseMatrix
from drf_analysis.irt.grid import theta_grid
from drf_analysis.irt.items import GroupParameters
from drf_analysis.irt.scoring import (
    expected_frequencies,
    expected_test,
    posterior_weights,
    prior_density,
)

THETA = theta_grid((-4, 4), 41, 1)


class TestExpectedTest:
    def test_individual_sums_to_total(self, graded_model) -> None:
        total = expected_test(graded_model, THETA, group=0)
        individual = expected_test(graded_model, THETA, group=0, individual=True)

        assert individual.shape == (41, 3)
        np.testing.assert_allclose(individual.sum(axis=1), total)

    def test_item_subset(self, equal_model) -> None:
        subset = expected_test(equal_model, THETA, group=1, items=[0, 2])
        individual = expected_test(equal_model, THETA, group=1, individual=True)

        np.testing.assert_allclose(subset, individual[:, [0, 2]].sum(axis=1))

    def test_range(self, graded_model) -> None:
        """Scores lie between 0 and the maximum possible score."""
        total = expected_test(graded_model, THETA, group=0)
        max_score = sum(k - 1 for k in graded_model.n_categories)

        assert np.all(total > 0)
        assert np.all(total < max_score)
        assert np.all(np.diff(total) > 0)

    def test_shift_lowers_focal_curve(self, shifted_model) -> None:
        reference = expected_test(shifted_model, THETA, group=0)
        focal = expected_test(shifted_model, THETA, group=1)
        assert np.all(reference > focal)


class TestPosterior:
    def test_prior_normalized(self) -> None:
        density = prior_density(GroupParameters.standard(1), THETA)
        assert density.sum() == pytest.approx(1.0)
        assert np.argmax(density) == 20

    def test_rows_sum_to_one(self, equal_model) -> None:
        posteriors = posterior_weights(
            equal_model.groups[0], equal_model.responses[0], THETA
        )

        assert posteriors.shape == (300, 41)
        np.testing.assert_allclose(posteriors.sum(axis=1), 1.0)

    def test_high_scorers_sit_higher(self, equal_model) -> None:
        structure = equal_model.groups[0]
        data = ResponseMatrix(
            responses=np.array([[0] * 6, [1] * 6], dtype=np.int8),
            n_categories=(2,) * 6,
        )
        posteriors = posterior_weights(structure, data, THETA)
        means = posteriors @ THETA[:, 0]
        assert means[0] < 0 < means[1]


class TestExpectedFrequencies:
    def test_columns_sum_to_observed_responses(self, equal_model) -> None:
        rs = expected_frequencies(equal_model, THETA)

        assert rs.shape == (41, 2)
        np.testing.assert_allclose(rs.sum(axis=0), [300 * 6, 300 * 6])

    def test_missing_responses_reduce_mass(self, equal_model) -> None:
        responses = [data.responses.copy() for data in equal_model.responses]
        responses[1][:10, 0] = MISSING_VALUE
        model = equal_model.with_responses(
            [
                ResponseMatrix(responses=r, n_categories=(2,) * 6)
                for r in responses
            ]
        )

        rs = expected_frequencies(model, THETA)

        np.testing.assert_allclose(rs.sum(axis=0), [1800, 1790])

    def test_requires_responses(self, equal_model) -> None:
        model = dataclasses.replace(equal_model, responses=None)
        with pytest.raises(ValueError, match="require per-group response data"):
            expected_frequencies(model, THETA)
