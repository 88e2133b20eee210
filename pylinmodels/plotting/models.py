"""Deterministic line vs. stochastic draws."""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

import numpy as np

from pylinmodels.core.exceptions import ValidationError
from pylinmodels.core.validation import check_array, check_1d
from pylinmodels.plotting._style import BLUE, GREY, ORANGE, get_ax, styled
from pylinmodels.simulation.models import DeterministicModel, StochasticModel
from pylinmodels.simulation.sampling import repeated_draws

if TYPE_CHECKING:
    from matplotlib.axes import Axes


def plot_models(
    deterministic: DeterministicModel,
    stochastic: StochasticModel,
    x: Any,
    *,
    n_draws: int = 1,
    seed: int | np.random.Generator | None = None,
    ax: 'Axes | None' = None,
) -> 'Axes':
    """
    The exact line of a deterministic model against draws from a stochastic one.

    The stochastic model's mean is drawn with a band of ±2 standard
    deviations, √Var[y | x].

    Args:
        deterministic: The exact model
        stochastic: The model with an error distribution
        x: Predictor values (1-D)
        n_draws: Independent samples drawn at each x
        seed: Seed or Generator for the draws
        ax: Axes to draw on; a new figure is created when None

    Returns:
        The Axes
    """
    x_arr = check_array(x, 'x')
    check_1d(x_arr, 'x')
    if x_arr.size == 0:
        raise ValidationError("x: must not be empty")
    order = np.argsort(x_arr)
    xs = x_arr[order]
    draws = repeated_draws(stochastic, x_arr, n_draws, seed=seed)

    with styled():
        ax = get_ax(ax)
        for k in range(n_draws):
            ax.scatter(
                x_arr, draws[k], s=14, color=ORANGE, alpha=0.6,
                label='stochastic draws' if k == 0 else None,
            )
        mu = stochastic.mean(xs)
        sd = np.sqrt(stochastic.variance(xs))
        ax.fill_between(xs, mu - 2.0 * sd, mu + 2.0 * sd, color=GREY, alpha=0.2,
                        label='mean ± 2 sd')
        ax.plot(xs, mu, color=ORANGE, lw=1.5, ls='--', label='stochastic mean')
        ax.plot(xs, deterministic.predict(xs), color=BLUE, lw=2.5, label='deterministic')
        ax.set_xlabel('x')
        ax.set_ylabel('y')
        ax.set_title('Deterministic vs. stochastic model')
        ax.legend(loc='best', fontsize=8)
    return ax
