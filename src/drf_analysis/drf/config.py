"""
Configuration for DRF analysis.

This module defines:
- DRFConfig: Settings of one DRF computation (draws, CI level, grid)
- DRFSettings: Environment-driven runtime settings for the command line
- load_config: YAML loading on top of the structured defaults and the
  environment settings
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from omegaconf import OmegaConf
from pydantic_settings import BaseSettings

from drf_analysis.drf.exceptions import DRFConfigurationError

DRF_ENV_PREFIX = "DRF_"

# Default inference settings
DEFAULT_CI = 0.95
DEFAULT_REDRAWS = 20

# Default grid settings
DEFAULT_NPTS = 1000
DEFAULT_THETA_LIM = (-6.0, 6.0)

DRAW_METHODS = ("parametric", "bootstrap")
P_ADJUST_METHODS = (
    "none",
    "bonferroni",
    "holm",
    "hochberg",
    "hommel",
    "BH",
    "fdr",
    "BY",
)
BACKENDS = ("process", "thread")


def _default_theta_lim() -> list[float]:
    return list(DEFAULT_THETA_LIM)


@dataclass
class DRFConfig:
    """
    Settings of one DRF computation.

    Attributes:
        draws: Number of imputations. None computes the statistics of the
            fitted parameters only.
        ci: Confidence level of the percentile intervals.
        npts: Number of θ points used when plotting curves.
        quadpts: Grid points per factor for the population-weighted
            statistics. None uses the model's default.
        theta_lim: Lower and upper θ limits of the grids.
        redraws: Maximum attempts per draw before giving up.
        method: "parametric" (covariance-based) or "bootstrap".
        p_adjust: Multiplicity adjustment applied to per-item p-values.
        n_workers: Worker pool size. None runs sequentially; 0 uses every
            available core.
        backend: Worker pool type, "process" or "thread".
        seed: Random seed for reproducible draws.
    """

    draws: int | None = None
    ci: float = DEFAULT_CI
    npts: int = DEFAULT_NPTS
    quadpts: int | None = None
    theta_lim: list[float] = field(default_factory=_default_theta_lim)
    redraws: int = DEFAULT_REDRAWS
    method: str = "parametric"
    p_adjust: str = "none"
    n_workers: int | None = None
    backend: str = "process"
    seed: int | None = None

    def __post_init__(self) -> None:
        if self.draws is not None and self.draws < 1:
            raise DRFConfigurationError(f"draws must be >= 1, got {self.draws}")
        if not (0 < self.ci < 1):
            raise DRFConfigurationError(f"ci must be in (0, 1), got {self.ci}")
        if self.npts < 2:
            raise DRFConfigurationError(f"npts must be >= 2, got {self.npts}")
        if self.quadpts is not None and self.quadpts < 2:
            raise DRFConfigurationError(
                f"quadpts must be >= 2, got {self.quadpts}"
            )
        if len(self.theta_lim) != 2 or not self.theta_lim[0] < self.theta_lim[1]:
            raise DRFConfigurationError(
                f"theta_lim must be [lower, upper] with lower < upper, "
                f"got {self.theta_lim}"
            )
        if self.redraws < 1:
            raise DRFConfigurationError(
                f"redraws must be >= 1, got {self.redraws}"
            )
        if self.method not in DRAW_METHODS:
            raise DRFConfigurationError(
                f"Unknown draw method {self.method!r}; expected one of {DRAW_METHODS}"
            )
        if self.p_adjust not in P_ADJUST_METHODS:
            raise DRFConfigurationError(
                f"Unknown p-value adjustment {self.p_adjust!r}; "
                f"expected one of {P_ADJUST_METHODS}"
            )
        if self.backend not in BACKENDS:
            raise DRFConfigurationError(
                f"Unknown backend {self.backend!r}; expected one of {BACKENDS}"
            )


class DRFSettings(BaseSettings):
    model_config = {"env_prefix": DRF_ENV_PREFIX}

    n_workers: int | None = None
    backend: Literal["process", "thread"] = "process"
    log_level: str = "INFO"


def load_config(
    yaml_path: Path | None = None, settings: DRFSettings | None = None
) -> DRFConfig:
    """Load DRF settings from YAML.

    Precedence, lowest first: structured defaults, the runtime settings
    (n_workers, backend) from the environment, then the YAML file.

    Args:
        yaml_path: Path to YAML config file. None returns the defaults.
        settings: Environment settings filling runtime keys the YAML
            file leaves unset.

    Returns:
        Validated DRFConfig

    Raises:
        DRFConfigurationError: If a setting is invalid
        FileNotFoundError: If yaml_path doesn't exist
    """
    layers = [OmegaConf.structured(DRFConfig)]

    if settings is not None:
        layers.append(
            OmegaConf.create(
                {"n_workers": settings.n_workers, "backend": settings.backend}
            )
        )

    if yaml_path is not None:
        if not yaml_path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        layers.append(OmegaConf.load(yaml_path))

    config = OmegaConf.merge(*layers)

    result = OmegaConf.to_object(config)
    assert isinstance(result, DRFConfig)

    return result
