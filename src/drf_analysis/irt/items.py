"""
Item and group parameter representations for multiple-group IRT models.

Supported item types:
    dich    P(1|θ) = g + (u - g) / (1 + exp(-(a·θ + d)))
    graded  P*(k|θ) = 1 / (1 + exp(-(a·θ + d_k))),  P(k) = P*(k) - P*(k+1)
    grsm    graded with d_k = b_k + c (rating scale)

Each parameter block flattens to a fixed-order array (`to_array`) and is
rebuilt from one (`from_array`). Concatenating the blocks of both groups
gives the model's flat parameter vector.
"""

from abc import ABC, abstractmethod
from typing import Annotated, Literal, Self

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, ConfigDict, Field, model_validator

from drf_analysis.core.utils import logistic

# Lower bound on latent variances
MIN_VARIANCE = 1e-4


def _as_theta_matrix(theta: NDArray[np.float64], nfact: int) -> NDArray[np.float64]:
    theta = np.asarray(theta, dtype=np.float64)
    if theta.ndim == 1:
        theta = theta.reshape(-1, nfact)
    if theta.shape[1] != nfact:
        raise ValueError(
            f"theta has {theta.shape[1]} columns but the item has {nfact} factors"
        )
    return theta


class ItemParameters(BaseModel, ABC):
    """
    Abstract base for one item's parameters.

    Attributes:
        a: Slope parameters, one per latent factor.
    """

    model_config = ConfigDict(frozen=True)

    a: tuple[float, ...] = Field(min_length=1)

    @property
    def nfact(self) -> int:
        """Number of latent factors."""
        return len(self.a)

    @property
    def n_parameters(self) -> int:
        """Number of entries this item contributes to the flat vector."""
        return len(self.parameter_names)

    @property
    @abstractmethod
    def n_categories(self) -> int:
        """Number of score categories (K)."""
        ...

    @property
    @abstractmethod
    def parameter_names(self) -> tuple[str, ...]:
        """Names in flat-array order."""
        ...

    @abstractmethod
    def to_array(self) -> NDArray[np.float64]:
        """Flatten to a 1D array in parameter_names order."""
        ...

    @abstractmethod
    def from_array(self, values: NDArray[np.float64]) -> Self:
        """Rebuild an item of the same layout from a flat array."""
        ...

    @abstractmethod
    def category_probabilities(
        self, theta: NDArray[np.float64]
    ) -> NDArray[np.float64]:
        """
        Compute category probabilities.

        Args:
            theta: Ability values, shape (n_theta, nfact).

        Returns:
            Probabilities, shape (n_theta, n_categories).
        """
        ...

    def bounds(self) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        """Default (lower, upper) bounds on the natural scale."""
        n = self.n_parameters
        return np.full(n, -np.inf), np.full(n, np.inf)

    def logit_mask(self) -> NDArray[np.bool_]:
        """Parameters that live on the probability scale."""
        return np.zeros(self.n_parameters, dtype=np.bool_)

    def is_valid_ordering(self) -> bool:
        """Whether category intercepts satisfy the item's ordering rule."""
        return True

    def expected_score(self, theta: NDArray[np.float64]) -> NDArray[np.float64]:
        """
        Expected item score Σ_k k·P(k|θ) with categories scored 0..K-1.

        Args:
            theta: Ability values, shape (n_theta, nfact).

        Returns:
            Expected scores, shape (n_theta,).
        """
        probs = self.category_probabilities(theta)
        scores = np.arange(self.n_categories, dtype=np.float64)
        result: NDArray[np.float64] = probs @ scores
        return result

    def _linear(self, theta: NDArray[np.float64]) -> NDArray[np.float64]:
        theta = _as_theta_matrix(theta, self.nfact)
        result: NDArray[np.float64] = theta @ np.asarray(self.a, dtype=np.float64)
        return result

    def _slope_names(self) -> tuple[str, ...]:
        return tuple(f"a{i + 1}" for i in range(self.nfact))


class DichotomousItem(ItemParameters):
    """
    Dichotomous 2PL/3PL/4PL item.

    Attributes:
        d: Intercept.
        g: Lower asymptote (guessing), in [0, 1].
        u: Upper asymptote, in [0, 1].
    """

    itemtype: Literal["dich"] = "dich"
    d: float
    g: float = 0.0
    u: float = 1.0

    @model_validator(mode="after")
    def _validate_asymptotes(self) -> "DichotomousItem":
        if not (0.0 <= self.g <= 1.0 and 0.0 <= self.u <= 1.0):
            raise ValueError(
                f"g and u must lie in [0, 1], got g={self.g}, u={self.u}"
            )
        return self

    @property
    def n_categories(self) -> int:
        return 2

    @property
    def parameter_names(self) -> tuple[str, ...]:
        return self._slope_names() + ("d", "g", "u")

    def to_array(self) -> NDArray[np.float64]:
        return np.array(self.a + (self.d, self.g, self.u), dtype=np.float64)

    def from_array(self, values: NDArray[np.float64]) -> Self:
        k = self.nfact
        return self.model_copy(
            update={
                "a": tuple(float(v) for v in values[:k]),
                "d": float(values[k]),
                "g": float(values[k + 1]),
                "u": float(values[k + 2]),
            }
        )

    def bounds(self) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        lower, upper = super().bounds()
        lower[-2:] = 0.0
        upper[-2:] = 1.0
        return lower, upper

    def logit_mask(self) -> NDArray[np.bool_]:
        mask = super().logit_mask()
        mask[-2:] = True
        return mask

    def category_probabilities(
        self, theta: NDArray[np.float64]
    ) -> NDArray[np.float64]:
        p1 = self.g + (self.u - self.g) * logistic(self._linear(theta) + self.d)
        return np.column_stack([1.0 - p1, p1])


class OrdinalItem(ItemParameters):
    """Cumulative-logit item with ordered category intercepts."""

    @abstractmethod
    def _intercepts(self) -> NDArray[np.float64]:
        """Category intercepts d_1..d_{K-1} on the linear-predictor scale."""
        ...

    def _cumulative(self, theta: NDArray[np.float64]) -> NDArray[np.float64]:
        # P(X >= k) for k = 1..K-1
        z = self._linear(theta)
        return logistic(z[:, np.newaxis] + self._intercepts()[np.newaxis, :])

    def category_probabilities(
        self, theta: NDArray[np.float64]
    ) -> NDArray[np.float64]:
        cumulative = self._cumulative(theta)
        n = cumulative.shape[0]
        bracketed = np.hstack([np.ones((n, 1)), cumulative, np.zeros((n, 1))])
        result: NDArray[np.float64] = bracketed[:, :-1] - bracketed[:, 1:]
        return result

    def expected_score(self, theta: NDArray[np.float64]) -> NDArray[np.float64]:
        # Σ_k k·P(k) telescopes to Σ_k P(X >= k)
        result: NDArray[np.float64] = self._cumulative(theta).sum(axis=1)
        return result


class GradedItem(OrdinalItem):
    """
    Graded response item (Samejima).

    Attributes:
        d: Category intercepts d_1..d_{K-1}; must be non-increasing.
    """

    itemtype: Literal["graded"] = "graded"
    d: tuple[float, ...] = Field(min_length=1)

    @property
    def n_categories(self) -> int:
        return len(self.d) + 1

    @property
    def parameter_names(self) -> tuple[str, ...]:
        return self._slope_names() + tuple(
            f"d{k + 1}" for k in range(len(self.d))
        )

    def to_array(self) -> NDArray[np.float64]:
        return np.array(self.a + self.d, dtype=np.float64)

    def from_array(self, values: NDArray[np.float64]) -> Self:
        k = self.nfact
        return self.model_copy(
            update={
                "a": tuple(float(v) for v in values[:k]),
                "d": tuple(float(v) for v in values[k:]),
            }
        )

    def is_valid_ordering(self) -> bool:
        return bool(np.all(np.diff(self.d) <= 0.0))

    def _intercepts(self) -> NDArray[np.float64]:
        return np.asarray(self.d, dtype=np.float64)


class RatingScaleItem(OrdinalItem):
    """
    Graded rating scale item: thresholds shifted by an item location.

    Attributes:
        b: Category thresholds b_1..b_{K-1}; must be non-increasing.
        c: Item location shift.
    """

    itemtype: Literal["grsm"] = "grsm"
    b: tuple[float, ...] = Field(min_length=1)
    c: float = 0.0

    @property
    def n_categories(self) -> int:
        return len(self.b) + 1

    @property
    def parameter_names(self) -> tuple[str, ...]:
        return (
            self._slope_names()
            + tuple(f"b{k + 1}" for k in range(len(self.b)))
            + ("c",)
        )

    def to_array(self) -> NDArray[np.float64]:
        return np.array(self.a + self.b + (self.c,), dtype=np.float64)

    def from_array(self, values: NDArray[np.float64]) -> Self:
        k = self.nfact
        return self.model_copy(
            update={
                "a": tuple(float(v) for v in values[:k]),
                "b": tuple(float(v) for v in values[k:-1]),
                "c": float(values[-1]),
            }
        )

    def is_valid_ordering(self) -> bool:
        return bool(np.all(np.diff(self.b) <= 0.0))

    def _intercepts(self) -> NDArray[np.float64]:
        return np.asarray(self.b, dtype=np.float64) + self.c


AnyItem = Annotated[
    DichotomousItem | GradedItem | RatingScaleItem,
    Field(discriminator="itemtype"),
]


class GroupParameters(BaseModel):
    """
    Latent distribution hyper-parameters of one group.

    Attributes:
        means: Latent means, one per factor.
        covariance: Lower triangle of the latent covariance matrix in
            column-major order (COV_11, COV_21, ..., COV_22, ...).
    """

    model_config = ConfigDict(frozen=True)

    means: tuple[float, ...] = Field(min_length=1)
    covariance: tuple[float, ...]

    @model_validator(mode="after")
    def _validate_covariance_length(self) -> "GroupParameters":
        k = len(self.means)
        expected = k * (k + 1) // 2
        if len(self.covariance) != expected:
            raise ValueError(
                f"covariance must hold {expected} lower-triangle entries "
                f"for {k} factors, got {len(self.covariance)}"
            )
        return self

    @classmethod
    def standard(cls, nfact: int) -> Self:
        """Standard normal latent distribution."""
        cov = np.eye(nfact)
        return cls(
            means=tuple(0.0 for _ in range(nfact)),
            covariance=tuple(float(cov[i, j]) for i, j in _lower_indices(nfact)),
        )

    @property
    def nfact(self) -> int:
        return len(self.means)

    @property
    def n_parameters(self) -> int:
        return len(self.means) + len(self.covariance)

    @property
    def parameter_names(self) -> tuple[str, ...]:
        means = tuple(f"MEAN_{i + 1}" for i in range(self.nfact))
        covs = tuple(
            f"COV_{i + 1}{j + 1}" for i, j in _lower_indices(self.nfact)
        )
        return means + covs

    @property
    def covariance_matrix(self) -> NDArray[np.float64]:
        k = self.nfact
        cov = np.zeros((k, k), dtype=np.float64)
        for value, (i, j) in zip(
            self.covariance, _lower_indices(k), strict=True
        ):
            cov[i, j] = cov[j, i] = value
        return cov

    def to_array(self) -> NDArray[np.float64]:
        return np.array(self.means + self.covariance, dtype=np.float64)

    def from_array(self, values: NDArray[np.float64]) -> Self:
        k = self.nfact
        return self.model_copy(
            update={
                "means": tuple(float(v) for v in values[:k]),
                "covariance": tuple(float(v) for v in values[k:]),
            }
        )

    def bounds(self) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        lower = np.full(self.n_parameters, -np.inf)
        upper = np.full(self.n_parameters, np.inf)
        for offset, (i, j) in enumerate(_lower_indices(self.nfact)):
            if i == j:
                lower[self.nfact + offset] = MIN_VARIANCE
        return lower, upper

    def logit_mask(self) -> NDArray[np.bool_]:
        return np.zeros(self.n_parameters, dtype=np.bool_)

    def is_valid_ordering(self) -> bool:
        """Covariance must stay positive definite."""
        try:
            np.linalg.cholesky(self.covariance_matrix)
        except np.linalg.LinAlgError:
            return False
        return True


def _lower_indices(k: int) -> list[tuple[int, int]]:
    return [(i, j) for j in range(k) for i in range(j, k)]
