"""
Core utility functions shared across the DRF analysis modules.

This module provides foundational utilities used by both the IRT model
representation and the DRF imputation engine.
"""

import numpy as np
from numpy.random import Generator
from numpy.typing import NDArray


def get_rng(seed: int | None = None) -> Generator:
    """
    Create a numpy random Generator with optional seed.

    Args:
        seed: Random seed for reproducibility. If None, uses entropy.

    Returns:
        A numpy random Generator instance.
    """
    return np.random.default_rng(seed)


def spawn_seeds(
    rng: Generator, n: int
) -> list[np.random.SeedSequence]:
    """
    Derive n independent child seed sequences from a generator.

    Each parallel task builds its own Generator from one child, so the
    result does not depend on how tasks are scheduled across workers.
    """
    root_seq = np.random.SeedSequence(int(rng.integers(0, 2**63 - 1)))
    return root_seq.spawn(n)


def logit(p: NDArray[np.floating]) -> NDArray[np.float64]:
    """
    Log-odds transform. Maps 0 and 1 to -inf and +inf.
    """
    p = np.asarray(p, dtype=np.float64)
    with np.errstate(divide="ignore"):
        result: NDArray[np.float64] = np.log(p) - np.log1p(-p)
    return result


def antilogit(x: NDArray[np.floating]) -> NDArray[np.float64]:
    """Inverse of :func:`logit`."""
    x = np.asarray(x, dtype=np.float64)
    result: NDArray[np.float64] = 1.0 / (1.0 + np.exp(-x))
    return result


def logistic(z: NDArray[np.floating]) -> NDArray[np.float64]:
    """
    Numerically stable logistic function.

    Exponents are clipped to avoid overflow warnings at extreme theta.
    """
    z = np.clip(z, -30.0, 30.0)
    result: NDArray[np.float64] = 1.0 / (1.0 + np.exp(-z))
    return result
