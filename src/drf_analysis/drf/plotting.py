"""
Plotting utilities for DRF curves.
"""

from collections.abc import Sequence

import numpy as np
from matplotlib.figure import Figure
from numpy.typing import NDArray

FACETS_PER_ROW = 4


def plot_drf(
    theta: NDArray[np.float64],
    curves: NDArray[np.float64],
    item_names: Sequence[str],
    lower: NDArray[np.float64] | None = None,
    upper: NDArray[np.float64] | None = None,
    dif: bool = False,
) -> Figure:
    """
    Plot signed curve differences with optional confidence bands.

    Args:
        theta: θ values, shape (n_nodes,).
        curves: Differences, shape (n_nodes,), or (n_nodes, n_items) when
            dif is True.
        item_names: Names of the focal items, used as facet titles.
        lower: Lower band, same shape as curves.
        upper: Upper band, same shape as curves.
        dif: Draw one facet per item.

    Returns:
        matplotlib Figure.
    """
    import matplotlib.pyplot as plt

    curves = np.asarray(curves, dtype=np.float64)
    if not dif:
        curves = curves.reshape(-1, 1)
        if lower is not None and upper is not None:
            lower = np.asarray(lower).reshape(-1, 1)
            upper = np.asarray(upper).reshape(-1, 1)
        titles = ["Signed DRF"]
    else:
        titles = list(item_names)

    n_facets = curves.shape[1]
    n_cols = min(n_facets, FACETS_PER_ROW)
    n_rows = int(np.ceil(n_facets / n_cols))
    fig, axes = plt.subplots(
        n_rows,
        n_cols,
        figsize=(4 * n_cols, 3 * n_rows),
        sharex=True,
        sharey=True,
        squeeze=False,
    )

    for k, ax in enumerate(axes.flat):
        if k >= n_facets:
            ax.set_visible(False)
            continue
        if lower is not None and upper is not None:
            ax.fill_between(
                theta, lower[:, k], upper[:, k], color="darkgrey", alpha=0.2
            )
        ax.axhline(0.0, color="red", linewidth=1)
        ax.plot(theta, curves[:, k], color="black")
        ax.set_title(titles[k])

    for ax in axes[-1, :]:
        ax.set_xlabel("Theta")
    for ax in axes[:, 0]:
        ax.set_ylabel("sDIF" if dif else "sDRF")

    if dif:
        fig.suptitle("Signed DIF")
    fig.tight_layout()
    return fig
