"""
Latent trait grids for evaluating expected-score curves.

A regular grid is the cartesian product of one evenly spaced sequence per
factor, with the first factor varying fastest.
"""

import itertools
from collections.abc import Sequence

import numpy as np
from numpy.typing import ArrayLike, NDArray


def theta_grid(
    theta_lim: Sequence[float], n_points: int, nfact: int
) -> NDArray[np.float64]:
    """
    Build a regular θ grid.

    Args:
        theta_lim: (lower, upper) limits, shared by every factor.
        n_points: Number of points per factor.
        nfact: Number of latent factors.

    Returns:
        Grid of shape (n_points ** nfact, nfact).
    """
    lower, upper = theta_lim
    if not lower < upper:
        raise ValueError(f"theta_lim must be increasing, got {theta_lim}")
    if n_points < 2:
        raise ValueError(f"n_points must be >= 2, got {n_points}")
    if nfact < 1:
        raise ValueError(f"nfact must be >= 1, got {nfact}")

    seq = np.linspace(lower, upper, n_points)
    # product() varies the last coordinate fastest; reverse the columns
    combos = np.array(list(itertools.product(seq, repeat=nfact)))
    return np.ascontiguousarray(combos[:, ::-1], dtype=np.float64)


def validate_theta_nodes(nodes: ArrayLike, nfact: int) -> NDArray[np.float64]:
    """
    Check an explicit node matrix against the model's factor count.

    Args:
        nodes: Candidate node matrix of shape (n_nodes, nfact).
        nfact: Number of latent factors.

    Returns:
        The nodes as a float array.
    """
    arr = np.asarray(nodes, dtype=np.float64)
    if arr.ndim != 2:
        raise ValueError(f"theta nodes must be a matrix, got shape {arr.shape}")
    if arr.shape[1] != nfact:
        raise ValueError(
            f"theta nodes have {arr.shape[1]} columns, expected {nfact} "
            "(one per factor)"
        )
    if arr.shape[0] == 0:
        raise ValueError("theta nodes must contain at least one row")
    return arr
