import numpy as np
import pytest

from drf_analysis.core.utils import get_rng
from drf_analysis.drf.aggregation import impute_statistics
from drf_analysis.drf.draws import draw_parameters
from drf_analysis.drf.exceptions import DRFConfigurationError
from drf_analysis.drf.functional import compute_drf, compute_pointwise
from drf_analysis.irt.grid import theta_grid

THETA = theta_grid((-6, 6), 31, 1)
ALL_ITEMS = tuple(range(6))


class TestImputeStatistics:
    def test_fitted_parameters_reproduce_observed(self, shifted_model) -> None:
        observed = compute_drf(shifted_model, THETA, ALL_ITEMS, dif=False)
        param_set = np.tile(shifted_model.longpars, (3, 1))

        scores = impute_statistics(
            shifted_model, param_set, THETA, ALL_ITEMS, False, observed.signs
        )

        assert scores.shape == (3, 4)
        np.testing.assert_allclose(scores, np.tile(observed.vector, (3, 1)))

    def test_item_level_columns(self, shifted_model) -> None:
        observed = compute_drf(shifted_model, THETA, (0, 1, 2), dif=True)
        param_set = draw_parameters(shifted_model, 5, rng=get_rng(0))

        scores = impute_statistics(
            shifted_model, param_set, THETA, (0, 1, 2), True, observed.signs
        )

        assert scores.shape == (5, 12)

    def test_pointwise_curves_stacked_by_item(self, shifted_model) -> None:
        nodes = np.array([[-1.0], [0.0], [1.0], [2.0]])
        param_set = np.tile(shifted_model.longpars, (2, 1))

        scores = impute_statistics(
            shifted_model,
            param_set,
            THETA,
            (0, 4),
            True,
            None,
            theta_nodes=nodes,
        )

        curves = compute_pointwise(shifted_model, nodes, (0, 4), dif=True)
        assert scores.shape == (2, 8)
        np.testing.assert_allclose(scores[0, :4], curves[:, 0])
        np.testing.assert_allclose(scores[0, 4:], curves[:, 1])

    def test_per_draw_frequency_tables(self, shifted_model) -> None:
        """Supplied tables replace the per-draw posterior computation."""
        param_set = np.tile(shifted_model.longpars, (2, 1))
        uniform = np.ones((THETA.shape[0], 2))
        peaked = np.zeros((THETA.shape[0], 2))
        peaked[15] = 1.0

        scores = impute_statistics(
            shifted_model,
            param_set,
            THETA,
            ALL_ITEMS,
            False,
            None,
            rs_list=[uniform, peaked],
        )

        curve = compute_pointwise(shifted_model, THETA, ALL_ITEMS)
        assert scores[0, 0] == pytest.approx(curve.mean())
        assert scores[1, 0] == pytest.approx(curve[15])

    def test_model_not_modified(self, shifted_model) -> None:
        before = shifted_model.longpars
        param_set = draw_parameters(shifted_model, 3, rng=get_rng(1))

        impute_statistics(shifted_model, param_set, THETA, ALL_ITEMS, False, None)

        np.testing.assert_array_equal(shifted_model.longpars, before)

    def test_thread_backend_matches_sequential(self, shifted_model) -> None:
        param_set = draw_parameters(shifted_model, 6, rng=get_rng(2))
        args = (shifted_model, param_set, THETA, ALL_ITEMS, False, None)

        sequential = impute_statistics(*args)
        threaded = impute_statistics(*args, n_workers=3, backend="thread")

        np.testing.assert_array_equal(sequential, threaded)

    def test_rejects_wrong_width(self, shifted_model) -> None:
        with pytest.raises(DRFConfigurationError, match="param_set must have shape"):
            impute_statistics(
                shifted_model, np.zeros((2, 3)), THETA, ALL_ITEMS, False, None
            )

    def test_rejects_mismatched_tables(self, shifted_model) -> None:
        param_set = np.tile(shifted_model.longpars, (2, 1))
        with pytest.raises(DRFConfigurationError, match="rs_list has 1 tables"):
            impute_statistics(
                shifted_model,
                param_set,
                THETA,
                ALL_ITEMS,
                False,
                None,
                rs_list=[np.ones((31, 2))],
            )
