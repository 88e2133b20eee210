"""Shared Matplotlib style and axes helpers."""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

import matplotlib.pyplot as plt

if TYPE_CHECKING:
    from matplotlib.axes import Axes

STYLE: dict[str, Any] = {
    "figure.facecolor": "#FAFAFA",
    "axes.facecolor": "#FAFAFA",
    "axes.edgecolor": "#333",
    "axes.labelcolor": "#222",
    "xtick.color": "#555",
    "ytick.color": "#555",
    "text.color": "#222",
    "font.size": 10,
    "axes.titlesize": 12,
    "axes.titleweight": "bold",
    "axes.grid": True,
    "grid.alpha": 0.25,
    "grid.color": "#AAA",
}

BLUE = "#2171B5"
ORANGE = "#E6550D"
GREEN = "#31A354"
RED = "#DE2D26"
PURPLE = "#756BB1"
GREY = "#888"


def styled():
    """Context manager applying STYLE to figures created inside it."""
    return plt.rc_context(STYLE)


def get_ax(ax: 'Axes | None') -> 'Axes':
    if ax is not None:
        return ax
    _, ax = plt.subplots()
    return ax
