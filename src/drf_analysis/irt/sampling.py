"""
Response sampling for multiple-group IRT models.

Abilities are drawn from each group's latent normal distribution and
responses from the item category probabilities. Used to build test fixtures
and example datasets.
"""

import numpy as np
from numpy.random import Generator
from numpy.typing import NDArray

from drf_analysis.core.constants import MISSING_VALUE
from drf_analysis.core.data_models import ResponseMatrix
from drf_analysis.core.utils import get_rng
from drf_analysis.irt.items import ItemParameters
from drf_analysis.irt.model import GroupStructure


def sample_abilities(
    structure: GroupStructure, n: int, rng: Generator | None = None
) -> NDArray[np.float64]:
    """Draw n ability vectors from the group's latent distribution."""
    if rng is None:
        rng = get_rng()
    pars = structure.group_parameters
    return rng.multivariate_normal(
        np.asarray(pars.means), pars.covariance_matrix, size=n
    )


def sample_responses_batch(
    abilities: NDArray[np.float64],
    items: tuple[ItemParameters, ...],
    rng: Generator | None = None,
    missing_rate: float = 0.0,
) -> NDArray[np.int8]:
    """
    Sample responses for all persons and items.

    Args:
        abilities: Array of shape (n_persons, nfact).
        items: Item parameters, one per item.
        rng: Random number generator.
        missing_rate: Probability that any single response is missing.

    Returns:
        Array of shape (n_persons, n_items) with category indices.
        Missing responses are encoded as MISSING_VALUE (-1).
    """
    if rng is None:
        rng = get_rng()

    n_persons = abilities.shape[0]
    responses = np.empty((n_persons, len(items)), dtype=np.int8)

    for j, item in enumerate(items):
        probs = item.category_probabilities(abilities)

        # Vectorized sampling using cumulative probabilities
        cumprobs = np.cumsum(probs, axis=1)
        u = rng.random(n_persons)
        sampled = np.minimum(
            (cumprobs < u[:, np.newaxis]).sum(axis=1), item.n_categories - 1
        )
        responses[:, j] = sampled.astype(np.int8)

    if missing_rate > 0:
        responses[rng.random(responses.shape) < missing_rate] = MISSING_VALUE
    return responses


def simulate_group_responses(
    structure: GroupStructure,
    n: int,
    rng: Generator | None = None,
    missing_rate: float = 0.0,
) -> ResponseMatrix:
    """
    Simulate a response matrix for one group.

    Args:
        structure: Group item and latent-distribution parameters.
        n: Number of persons.
        rng: Random number generator.
        missing_rate: Probability that any single response is missing.

    Returns:
        ResponseMatrix with sampled responses.
    """
    if rng is None:
        rng = get_rng()
    abilities = sample_abilities(structure, n, rng)
    responses = sample_responses_batch(
        abilities, structure.items, rng, missing_rate=missing_rate
    )
    return ResponseMatrix(
        responses=responses,
        n_categories=tuple(item.n_categories for item in structure.items),
    )
