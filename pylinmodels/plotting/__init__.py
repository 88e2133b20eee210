"""
Matplotlib plots for models and fits.

Every function takes an optional ``ax`` and returns the Axes it drew on;
plot_diagnostics returns the Figure.
"""

from pylinmodels.plotting._style import STYLE, styled
from pylinmodels.plotting.models import plot_models
from pylinmodels.plotting.regression import plot_fit, plot_coefficients
from pylinmodels.plotting.diagnostics import (
    plot_residuals,
    plot_qq,
    plot_scale_location,
    plot_leverage,
    plot_diagnostics,
)

__all__ = [
    "STYLE",
    "styled",
    "plot_models",
    "plot_fit",
    "plot_coefficients",
    "plot_residuals",
    "plot_qq",
    "plot_scale_location",
    "plot_leverage",
    "plot_diagnostics",
]
