"""
Residual diagnostic plots, the four panels of R's plot(lm).

For GLMs the fitted values are on the link scale and the residuals are
deviance residuals, as in R's plot.glm.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray
import matplotlib.pyplot as plt
from scipy import stats

from pylinmodels.diagnostics.solvers import influence
from pylinmodels.plotting._style import BLUE, GREY, RED, get_ax, styled
from pylinmodels.regression.solution import GLMSolution, LinearSolution

if TYPE_CHECKING:
    from matplotlib.axes import Axes
    from matplotlib.figure import Figure


def _check(model: object, func: str) -> None:
    if not isinstance(model, (LinearSolution, GLMSolution)):
        raise TypeError(
            f"{func} needs a LinearSolution or GLMSolution, got {type(model).__name__}"
        )


def _fitted_and_resid(model: LinearSolution | GLMSolution) -> tuple[NDArray, NDArray]:
    if isinstance(model, GLMSolution):
        return model.linear_predictor, model.residuals_deviance
    return model.fitted_values, model.residuals


def _label_extremes(ax: 'Axes', x: NDArray, y: NDArray, score: NDArray, n: int = 3) -> None:
    finite = np.flatnonzero(np.isfinite(score))
    top = finite[np.argsort(score[finite])[::-1][:n]]
    for i in top:
        ax.annotate(str(int(i)), (x[i], y[i]), fontsize=8, xytext=(3, 3),
                    textcoords='offset points')


def plot_residuals(model: LinearSolution | GLMSolution, *, ax: 'Axes | None' = None) -> 'Axes':
    """Residuals against fitted values."""
    _check(model, 'plot_residuals')
    fitted, resid = _fitted_and_resid(model)
    with styled():
        ax = get_ax(ax)
        ax.scatter(fitted, resid, s=14, color=BLUE, alpha=0.7)
        ax.axhline(0.0, color=RED, lw=1, ls='--')
        _label_extremes(ax, fitted, resid, np.abs(resid))
        ax.set_xlabel('Fitted values' if isinstance(model, LinearSolution) else 'Predicted values')
        ax.set_ylabel('Residuals')
        ax.set_title('Residuals vs Fitted')
    return ax


def plot_qq(model: LinearSolution | GLMSolution, *, ax: 'Axes | None' = None) -> 'Axes':
    """Normal Q-Q plot of standardised residuals with a line through the quartiles."""
    _check(model, 'plot_qq')
    std = influence(model).std_residuals
    std = std[np.isfinite(std)]
    n = std.size
    theo = stats.norm.ppf((np.arange(1, n + 1) - 0.5) / n)
    sample = np.sort(std)
    q_sample = np.quantile(sample, [0.25, 0.75])
    q_theo = stats.norm.ppf([0.25, 0.75])
    slope = (q_sample[1] - q_sample[0]) / (q_theo[1] - q_theo[0])
    intercept = q_sample[0] - slope * q_theo[0]

    with styled():
        ax = get_ax(ax)
        ax.scatter(theo, sample, s=14, color=BLUE, alpha=0.7)
        ax.plot(theo, intercept + slope * theo, color=GREY, lw=1, ls='--')
        ax.set_xlabel('Theoretical Quantiles')
        ax.set_ylabel('Standardized residuals')
        ax.set_title('Normal Q-Q')
    return ax


def plot_scale_location(model: LinearSolution | GLMSolution, *, ax: 'Axes | None' = None) -> 'Axes':
    """√|standardised residuals| against fitted values."""
    _check(model, 'plot_scale_location')
    fitted, _ = _fitted_and_resid(model)
    root = np.sqrt(np.abs(influence(model).std_residuals))
    with styled():
        ax = get_ax(ax)
        ax.scatter(fitted, root, s=14, color=BLUE, alpha=0.7)
        _label_extremes(ax, fitted, root, root)
        ax.set_xlabel('Fitted values' if isinstance(model, LinearSolution) else 'Predicted values')
        ax.set_ylabel(r'$\sqrt{|\mathrm{Standardized\ residuals}|}$')
        ax.set_title('Scale-Location')
    return ax


def plot_leverage(
    model: LinearSolution | GLMSolution,
    *,
    ax: 'Axes | None' = None,
    cooks_levels: tuple[float, ...] = (0.5, 1.0),
) -> 'Axes':
    """
    Standardised residuals against leverage, with Cook's distance contours.

    A contour at level D is r = ±√(D·p·(1-h)/h).
    """
    _check(model, 'plot_leverage')
    infl = influence(model)
    h, r = infl.hat, infl.std_residuals
    p = model.rank
    ok = np.isfinite(r) & (h < 1.0)
    with styled():
        ax = get_ax(ax)
        ax.scatter(h[ok], r[ok], s=14, color=BLUE, alpha=0.7)
        ax.axhline(0.0, color=GREY, lw=1, ls=':')
        _label_extremes(ax, h, r, np.where(ok, infl.cooks_distance, np.nan))

        h_max = float(np.max(h[ok])) if np.any(ok) else 1.0
        grid = np.linspace(max(float(np.min(h[ok])) if np.any(ok) else 0.0, 1e-3),
                           min(h_max * 1.05, 0.999), 100)
        for k, level in enumerate(cooks_levels):
            bound = np.sqrt(level * p * (1.0 - grid) / grid)
            label = "Cook's distance" if k == 0 else None
            ax.plot(grid, bound, color=RED, lw=1, ls='--', label=label)
            ax.plot(grid, -bound, color=RED, lw=1, ls='--')
            ax.annotate(f"{level:g}", (grid[-1], bound[-1]), fontsize=8, color=RED)
        ylim = np.nanmax(np.abs(r[ok])) * 1.2 if np.any(ok) else 3.0
        ax.set_ylim(-ylim, ylim)
        ax.set_xlabel('Leverage')
        ax.set_ylabel('Standardized residuals')
        ax.set_title('Residuals vs Leverage')
        ax.legend(loc='best', fontsize=8)
    return ax


def plot_diagnostics(model: LinearSolution | GLMSolution) -> 'Figure':
    """The 2×2 panel of residual, Q-Q, scale-location and leverage plots."""
    _check(model, 'plot_diagnostics')
    with styled():
        fig, axes = plt.subplots(2, 2, figsize=(10, 8))
        plot_residuals(model, ax=axes[0, 0])
        plot_qq(model, ax=axes[0, 1])
        plot_scale_location(model, ax=axes[1, 0])
        plot_leverage(model, ax=axes[1, 1])
        title = model.formula or type(model).__name__
        fig.suptitle(title)
        fig.tight_layout()
    return fig
