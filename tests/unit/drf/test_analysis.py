"""
Tests for the DRF entry point: input validation and result tables.
"""

import dataclasses
import logging

import numpy as np
import pytest
from matplotlib.figure import Figure

from drf_analysis.core.utils import get_rng
from drf_analysis.drf.analysis import drf, resolve_focal_items
from drf_analysis.drf.config import DRFConfig
from drf_analysis.drf.data_models import DIFResult, DRFTestResult, PointwiseResult
from drf_analysis.drf.draws import draw_parameters
from drf_analysis.drf.exceptions import CovarianceNotAvailableError, DRFConfigurationError
from drf_analysis.irt.items import DichotomousItem, GroupParameters
from drf_analysis.irt.model import GroupStructure, MultipleGroupModel

FAST = DRFConfig(draws=40, quadpts=31, npts=50, seed=0)


@pytest.fixture
def close_figures():
    import matplotlib.pyplot as plt

    yield
    plt.close("all")


class TestResolveFocalItems:
    def test_default_is_all_items(self) -> None:
        assert resolve_focal_items(None, 4) == (0, 1, 2, 3)

    def test_rejects_empty(self) -> None:
        with pytest.raises(DRFConfigurationError, match="at least one item"):
            resolve_focal_items([], 4)

    def test_rejects_duplicates(self) -> None:
        with pytest.raises(DRFConfigurationError, match="duplicates"):
            resolve_focal_items([1, 1], 4)

    def test_rejects_out_of_range(self) -> None:
        with pytest.raises(DRFConfigurationError, match=r"\[4\] outside 0..3"):
            resolve_focal_items([0, 4], 4)


class TestConfigurationErrors:
    def test_three_groups(self, equal_model) -> None:
        groups = equal_model.groups + (equal_model.groups[0],)
        model = MultipleGroupModel.create(groups)

        with pytest.raises(DRFConfigurationError, match="two-group"):
            drf(model)

    def test_dif_with_nodes(self, equal_model) -> None:
        with pytest.raises(DRFConfigurationError, match="dif must be False"):
            drf(equal_model, dif=True, theta_nodes=np.zeros((3, 1)))

    def test_plot_with_nodes(self, equal_model) -> None:
        with pytest.raises(DRFConfigurationError, match="plot cannot be combined"):
            drf(equal_model, plot=True, theta_nodes=np.zeros((3, 1)))

    def test_plot_multidimensional(self) -> None:
        items = (DichotomousItem(a=(1.0, 0.5), d=0.0),) * 3
        groups = [
            GroupStructure(items=items, group_parameters=GroupParameters.standard(2))
        ] * 2
        model = MultipleGroupModel.create(groups)

        with pytest.raises(DRFConfigurationError, match="unidimensional"):
            drf(model, plot=True)

    def test_nodes_wrong_width(self, equal_model) -> None:
        with pytest.raises(DRFConfigurationError, match="one per factor"):
            drf(equal_model, theta_nodes=np.zeros((3, 2)))

    def test_bad_param_set(self, equal_model) -> None:
        with pytest.raises(DRFConfigurationError, match="param_set must have shape"):
            drf(equal_model, param_set=np.zeros((4, 3)))

    def test_missing_covariance(self, model_factory) -> None:
        model = model_factory(vcov_scale=None)
        with pytest.raises(CovarianceNotAvailableError):
            drf(model, FAST)


class TestUnimputed:
    def test_test_level_table(self, shifted_model) -> None:
        result = drf(shifted_model)

        assert isinstance(result, DRFTestResult)
        assert not result.imputed
        assert list(result.table.columns) == ["n_focal_items", "sDRF", "uDRF"]
        assert result.table["n_focal_items"].iloc[0] == 6
        assert result.table["sDRF"].iloc[0] > 0

    def test_item_level_table(self, shifted_model) -> None:
        result = drf(shifted_model, dif=True, focal_items=[0, 3])

        assert isinstance(result, DIFResult)
        assert list(result.signed.index) == ["Item_1", "Item_4"]
        assert list(result.signed.columns) == ["sDIF", "uDIF"]
        assert result.unsigned is None

    def test_pointwise(self, shifted_model) -> None:
        nodes = np.array([[-1.0], [0.0], [1.0]])
        result = drf(shifted_model, theta_nodes=nodes)

        assert isinstance(result, PointwiseResult)
        assert list(result.table.columns) == ["Theta", "sDRF"]
        assert np.all(result.table["sDRF"] > 0)

    def test_warns_without_hyperparameters(self, model_factory, caplog) -> None:
        model = model_factory(free_hyperparameters=False)
        with caplog.at_level(logging.WARNING, logger="drf_analysis.drf.analysis"):
            drf(model)

        assert "No hyper-parameters were estimated" in caplog.text

    def test_precomputed_frequency_table(self, shifted_model) -> None:
        model = dataclasses.replace(shifted_model, responses=None)
        rs = np.ones((31, 2))

        result = drf(model, DRFConfig(quadpts=31), rs=rs)

        assert result.table["sDRF"].iloc[0] > 0


class TestImputed:
    def test_test_level_table(self, shifted_model) -> None:
        result = drf(shifted_model, FAST)

        assert isinstance(result, DRFTestResult)
        assert result.imputed
        assert list(result.table.index) == ["sDRF", "uDRF"]
        assert list(result.table.columns) == [
            "n_focal_items",
            "stat",
            "CI_2.5",
            "CI_97.5",
            "X2",
            "df",
            "p",
        ]
        assert result.scores.shape == (40, 4)
        assert result.param_set.shape == (40, len(shifted_model.longpars))
        assert result.table.loc["sDRF", "df"] == 1

    def test_interval_contains_statistic(self, shifted_model) -> None:
        table = drf(shifted_model, FAST).table
        assert table.loc["sDRF", "CI_2.5"] < table.loc["sDRF", "stat"]
        assert table.loc["sDRF", "stat"] < table.loc["sDRF", "CI_97.5"]

    def test_seed_reproducible(self, shifted_model) -> None:
        first = drf(shifted_model, FAST)
        second = drf(shifted_model, FAST)
        np.testing.assert_array_equal(first.scores, second.scores)

    def test_param_set_overrides_draws(self, shifted_model) -> None:
        param_set = draw_parameters(shifted_model, 7, rng=get_rng(3))
        result = drf(shifted_model, FAST, param_set=param_set)

        assert result.scores.shape == (7, 4)
        np.testing.assert_array_equal(result.param_set, param_set)

    def test_item_level_tables(self, shifted_model) -> None:
        config = dataclasses.replace(FAST, p_adjust="holm")
        result = drf(shifted_model, config, dif=True, focal_items=[0, 1, 2])

        assert isinstance(result, DIFResult)
        assert result.signed.index.name == "item"
        assert list(result.signed.columns) == [
            "sDIF",
            "CI_2.5",
            "CI_97.5",
            "X2",
            "df",
            "p",
            "adj_pvals",
        ]
        assert list(result.unsigned.columns)[0] == "uDIF"
        assert np.all(result.signed["adj_pvals"] >= result.signed["p"])
        assert result.scores.shape == (40, 12)

    def test_no_adjustment_column_by_default(self, shifted_model) -> None:
        result = drf(shifted_model, FAST, dif=True, focal_items=[0, 1])
        assert "adj_pvals" not in result.signed.columns

    def test_pointwise_intervals(self, shifted_model) -> None:
        nodes = np.array([[-2.0], [0.0], [2.0]])
        config = dataclasses.replace(FAST, ci=0.9)
        result = drf(shifted_model, config, theta_nodes=nodes)

        table = result.table
        assert list(table.columns) == ["Theta", "sDRF", "CI_5", "CI_95"]
        assert np.all(table["CI_5"] <= table["CI_95"])
        assert result.scores.shape == (40, 3)


@pytest.mark.usefixtures("close_figures")
class TestPlot:
    def test_curve_without_draws(self, shifted_model) -> None:
        fig = drf(shifted_model, DRFConfig(npts=50), plot=True)
        assert isinstance(fig, Figure)

    def test_bands_with_draws(self, shifted_model) -> None:
        fig = drf(shifted_model, FAST, plot=True)

        assert isinstance(fig, Figure)
        assert len(fig.axes[0].collections) == 1

    def test_item_facets(self, shifted_model) -> None:
        fig = drf(shifted_model, FAST, plot=True, dif=True, focal_items=[0, 1, 2])

        visible = [ax for ax in fig.axes if ax.get_visible()]
        assert [ax.get_title() for ax in visible] == ["Item_1", "Item_2", "Item_3"]
