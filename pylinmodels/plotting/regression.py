"""Fitted line and coefficient plots."""

from __future__ import annotations

from typing import Literal, TYPE_CHECKING

import numpy as np

from pylinmodels.core.exceptions import ValidationError
from pylinmodels.plotting._style import BLUE, GREY, ORANGE, RED, get_ax, styled
from pylinmodels.regression.solution import GLMSolution, LinearSolution
from pylinmodels.tidy.solvers import tidy

if TYPE_CHECKING:
    from matplotlib.axes import Axes


def _single_predictor(model: LinearSolution | GLMSolution) -> tuple[int, str]:
    """Column index and name of the one numeric predictor."""
    design = model.design
    cols = [j for j, nm in enumerate(design.names) if nm != '(Intercept)']
    if design.has_intercept and len(cols) == design.p:
        const = np.all(design.X == design.X[0], axis=0)
        cols = [j for j in cols if not const[j]]
    if len(cols) != 1:
        raise ValidationError(
            f"plot_fit needs exactly one predictor besides the intercept, got {len(cols)}"
        )
    j = cols[0]
    mm = design.model_matrix
    if mm is not None and design.names[j] not in mm.term_names:
        raise ValidationError(
            f"plot_fit needs a numeric predictor; {design.names[j]!r} is a factor level"
        )
    return j, design.names[j]


def plot_fit(
    model: LinearSolution | GLMSolution,
    *,
    ax: 'Axes | None' = None,
    interval: Literal['none', 'confidence', 'prediction'] = 'confidence',
    level: float = 0.95,
    n_points: int = 200,
) -> 'Axes':
    """
    Scatter of a simple regression with its fitted line.

    Linear models get a confidence or prediction band. GLMs are drawn on
    the response scale without a band.

    Raises:
        ValidationError: If the model has other than one numeric predictor
    """
    if not isinstance(model, (LinearSolution, GLMSolution)):
        raise TypeError(f"plot_fit needs a LinearSolution or GLMSolution, got {type(model).__name__}")
    j, name = _single_predictor(model)
    design = model.design
    x = design.X[:, j]
    grid = np.linspace(float(np.min(x)), float(np.max(x)), n_points)
    X_grid = np.tile(design.X.mean(axis=0), (n_points, 1))
    X_grid[:, j] = grid

    with styled():
        ax = get_ax(ax)
        ax.scatter(x, model.y, s=16, color=GREY, alpha=0.7, label='observed')
        if isinstance(model, LinearSolution):
            if interval == 'none':
                ax.plot(grid, model.predict(X_grid), color=BLUE, lw=2, label='fitted')
            else:
                band = model.predict(X_grid, interval=interval, level=level)
                ax.plot(grid, band['fit'], color=BLUE, lw=2, label='fitted')
                ax.fill_between(
                    grid, band['lwr'], band['upr'], color=BLUE, alpha=0.15,
                    label=f"{int(round(level * 100))}% {interval} band",
                )
        else:
            ax.plot(grid, model.predict(X_grid, type='response'), color=BLUE, lw=2,
                    label='fitted mean')
        mm = design.model_matrix
        ax.set_xlabel(name)
        ax.set_ylabel(mm.response_name if mm is not None and mm.response_name else 'y')
        ax.set_title('Fitted model')
        ax.legend(loc='best', fontsize=8)
    return ax


def plot_coefficients(
    model,
    *,
    level: float = 0.95,
    ax: 'Axes | None' = None,
    include_intercept: bool = False,
) -> 'Axes':
    """
    Coefficient estimates with confidence intervals, one row per term.

    Accepts any model tidy() accepts. Aliased coefficients are skipped.
    """
    frame = tidy(model, conf_int=True, conf_level=level)
    if not include_intercept:
        frame = frame[frame['term'] != '(Intercept)']
    frame = frame[frame['estimate'].notna()].reset_index(drop=True)
    if frame.empty:
        raise ValidationError("No coefficients to plot")

    pos = np.arange(len(frame))[::-1]
    with styled():
        ax = get_ax(ax)
        err = np.vstack([
            frame['estimate'] - frame['conf_low'],
            frame['conf_high'] - frame['estimate'],
        ])
        ax.errorbar(frame['estimate'], pos, xerr=err, fmt='o', color=BLUE,
                    ecolor=ORANGE, capsize=3)
        ax.axvline(0.0, color=RED, lw=1, ls='--')
        ax.set_yticks(pos)
        ax.set_yticklabels(frame['term'])
        ax.set_xlabel(f"Estimate ({int(round(level * 100))}% CI)")
        ax.set_title('Coefficients')
    return ax
