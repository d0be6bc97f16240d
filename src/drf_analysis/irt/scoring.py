"""
Expected scores and expected response frequencies on a θ grid.

The expected-frequency table drives the population weighting of the DRF
statistics: for each group it spreads every examinee's observed responses
over the grid according to their posterior.
"""

from collections.abc import Sequence

import numpy as np
from numpy.typing import NDArray
from scipy.stats import multivariate_normal

from drf_analysis.core.data_models import ResponseMatrix
from drf_analysis.irt.items import GroupParameters, ItemParameters
from drf_analysis.irt.model import GroupStructure, MultipleGroupModel


def expected_test(
    model: MultipleGroupModel,
    theta: NDArray[np.float64],
    group: int,
    items: Sequence[int] | None = None,
    individual: bool = False,
) -> NDArray[np.float64]:
    """
    Expected test score of one group at each θ node.

    Categories are scored 0..K-1 without adding the item minimum.

    Args:
        model: Fitted model.
        theta: Nodes, shape (n_nodes, nfact).
        group: Index of the group.
        items: Item indices to include. None means all items.
        individual: Return per-item expected scores instead of their sum.

    Returns:
        Shape (n_nodes,), or (n_nodes, n_selected) when individual is True.
    """
    structure = model.groups[group]
    if items is None:
        items = range(structure.n_items)
    scores = np.column_stack(
        [structure.items[j].expected_score(theta) for j in items]
    )
    if individual:
        return scores
    result: NDArray[np.float64] = scores.sum(axis=1)
    return result


def prior_density(
    group_parameters: GroupParameters, theta: NDArray[np.float64]
) -> NDArray[np.float64]:
    """Latent normal density of a group at each node, normalized to sum to 1."""
    density = np.atleast_1d(
        multivariate_normal(
            mean=np.asarray(group_parameters.means),
            cov=group_parameters.covariance_matrix,
        ).pdf(theta)
    )
    result: NDArray[np.float64] = density / density.sum()
    return result


def log_likelihood_table(
    items: Sequence[ItemParameters],
    data: ResponseMatrix,
    theta: NDArray[np.float64],
) -> NDArray[np.float64]:
    """
    Response log-likelihood of every person at every node.

    Missing responses contribute 0.

    Returns:
        Log-likelihood matrix, shape (n_persons, n_nodes).
    """
    log_lik = np.zeros((data.n_persons, theta.shape[0]), dtype=np.float64)
    for j, item in enumerate(items):
        log_probs = np.log(item.category_probabilities(theta) + 1e-300)
        observed = data.valid_mask[:, j]
        responses = data.responses[observed, j].astype(np.intp)
        log_lik[observed] += log_probs[:, responses].T
    return log_lik


def posterior_weights(
    structure: GroupStructure,
    data: ResponseMatrix,
    theta: NDArray[np.float64],
) -> NDArray[np.float64]:
    """
    Posterior distribution of each person over the nodes.

    P(θ_q | responses) ∝ P(responses | θ_q) * P(θ_q)

    Returns:
        Posteriors, shape (n_persons, n_nodes); rows sum to 1.
    """
    log_prior = np.log(prior_density(structure.group_parameters, theta) + 1e-300)
    log_post = log_likelihood_table(structure.items, data, theta)
    log_post += log_prior[np.newaxis, :]

    # Log-sum-exp for numerical stability
    log_post -= np.max(log_post, axis=1, keepdims=True)
    posteriors = np.exp(log_post)
    posteriors /= posteriors.sum(axis=1, keepdims=True)
    return posteriors


def expected_frequencies(
    model: MultipleGroupModel, theta: NDArray[np.float64]
) -> NDArray[np.float64]:
    """
    Expected response frequencies of every group at each θ node.

    Column g holds Σ_i posterior_i(θ_q) · (number of observed responses of
    person i) for group g.

    Args:
        model: Fitted model with per-group responses.
        theta: Nodes, shape (n_nodes, nfact).

    Returns:
        Frequency table, shape (n_nodes, n_groups).
    """
    if model.responses is None:
        raise ValueError("Expected frequencies require per-group response data")

    columns = []
    for structure, data in zip(model.groups, model.responses, strict=True):
        posteriors = posterior_weights(structure, data, theta)
        n_observed = data.valid_mask.sum(axis=1).astype(np.float64)
        columns.append(posteriors.T @ n_observed)
    return np.column_stack(columns)
