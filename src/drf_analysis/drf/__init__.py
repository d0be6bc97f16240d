from drf_analysis.drf.aggregation import impute_statistics
from drf_analysis.drf.analysis import drf, resolve_focal_items
from drf_analysis.drf.config import DRFConfig, DRFSettings, load_config
from drf_analysis.drf.data_models import DIFResult, DRFTestResult, PointwiseResult
from drf_analysis.drf.draws import draw_parameters
from drf_analysis.drf.exceptions import (
    CovarianceNotAvailableError,
    DRFConfigurationError,
    DrawLimitExceededError,
    FrequencyTableError,
)
from drf_analysis.drf.functional import (
    DRFStatistics,
    compute_drf,
    compute_pointwise,
    population_weights,
)
from drf_analysis.drf.inference import (
    adjust_p_values,
    chi_square_test,
    ci_labels,
    percentile_ci,
    pointwise_ci,
    z_test,
)
from drf_analysis.drf.plotting import plot_drf

__all__ = [
    "adjust_p_values",
    "chi_square_test",
    "ci_labels",
    "compute_drf",
    "compute_pointwise",
    "CovarianceNotAvailableError",
    "DIFResult",
    "draw_parameters",
    "DrawLimitExceededError",
    "drf",
    "DRFConfig",
    "DRFConfigurationError",
    "DRFSettings",
    "DRFStatistics",
    "DRFTestResult",
    "FrequencyTableError",
    "impute_statistics",
    "load_config",
    "percentile_ci",
    "plot_drf",
    "pointwise_ci",
    "PointwiseResult",
    "population_weights",
    "resolve_focal_items",
    "z_test",
]
