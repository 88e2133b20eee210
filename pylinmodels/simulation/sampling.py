"""
Synthetic data sets for the models in this package.

Every generator returns a pandas DataFrame ready for the formula front
ends (lm, glm, lmer, anova) and takes a seed that may be an int, a numpy
Generator, or None.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any
import numpy as np
import pandas as pd

from pylinmodels.core.exceptions import ValidationError
from pylinmodels.core.validation import check_positive_int
from pylinmodels.regression.families import Family, Link
from pylinmodels.simulation.models import StochasticModel, make_rng


def _check_range(x_range: tuple[float, float]) -> None:
    lo, hi = x_range
    if not lo < hi:
        raise ValidationError(f"x_range: lower bound must be below upper, got {x_range}")


def simulate_paired_sample(
    n: int = 100,
    intercept: float = 0.0,
    slope: float = 1.0,
    sigma: float = 1.0,
    x_range: tuple[float, float] = (0.0, 10.0),
    seed: int | np.random.Generator | None = None,
) -> pd.DataFrame:
    """
    Paired (x, y) sample from y = intercept + slope·x + ε, ε ~ N(0, σ²).

    x is drawn uniformly on x_range.

    Returns:
        DataFrame with columns x and y
    """
    if sigma <= 0:
        raise ValidationError(f"sigma: must be positive, got {sigma}")
    return simulate_family_sample(
        n, intercept, slope,
        family='gaussian', dispersion=sigma ** 2, x_range=x_range, seed=seed,
    )


def simulate_family_sample(
    n: int = 100,
    intercept: float = 0.0,
    slope: float = 1.0,
    family: str | Family = 'gaussian',
    link: str | Link | None = None,
    dispersion: float = 1.0,
    x_range: tuple[float, float] = (0.0, 1.0),
    seed: int | np.random.Generator | None = None,
) -> pd.DataFrame:
    """
    Paired (x, y) sample from a straight-line GLM.

    Returns:
        DataFrame with columns x and y
    """
    check_positive_int(n, 'n')
    _check_range(x_range)
    rng = make_rng(seed)
    model = StochasticModel(intercept, slope, family=family, link=link, dispersion=dispersion)
    x = rng.uniform(x_range[0], x_range[1], size=n)
    y = model.sample(x, seed=rng)
    return pd.DataFrame({'x': x, 'y': y})


def simulate_grouped_sample(
    n_groups: int = 10,
    n_per_group: int = 10,
    intercept: float = 0.0,
    slope: float = 1.0,
    group_sd: float = 1.0,
    sigma: float = 1.0,
    seed: int | np.random.Generator | None = None,
    x_range: tuple[float, float] = (0.0, 10.0),
) -> pd.DataFrame:
    """
    Random-intercept data: y_ij = intercept + u_j + slope·x_ij + ε_ij.

    u_j ~ N(0, group_sd²) per group and ε_ij ~ N(0, σ²). group_sd = 0
    gives data with no group structure at all.

    Returns:
        DataFrame with columns x, y and group (labels 'g01', 'g02', ...)
    """
    check_positive_int(n_groups, 'n_groups')
    check_positive_int(n_per_group, 'n_per_group')
    _check_range(x_range)
    if group_sd < 0:
        raise ValidationError(f"group_sd: must be non-negative, got {group_sd}")
    if sigma <= 0:
        raise ValidationError(f"sigma: must be positive, got {sigma}")

    rng = make_rng(seed)
    width = len(str(n_groups))
    labels = [f"g{j + 1:0{width}d}" for j in range(n_groups)]
    u = rng.normal(0.0, group_sd, size=n_groups) if group_sd > 0 else np.zeros(n_groups)

    group_idx = np.repeat(np.arange(n_groups), n_per_group)
    n = n_groups * n_per_group
    x = rng.uniform(x_range[0], x_range[1], size=n)
    y = intercept + u[group_idx] + slope * x + rng.normal(0.0, sigma, size=n)
    return pd.DataFrame({
        'x': x,
        'y': y,
        'group': pd.Categorical(np.asarray(labels)[group_idx], categories=labels),
    })


def simulate_ancova_sample(
    group_effects: Mapping[str, float] | Sequence[float],
    n_per_group: int = 20,
    slope: float = 1.0,
    sigma: float = 1.0,
    seed: int | np.random.Generator | None = None,
    intercept: float = 0.0,
    x_range: tuple[float, float] = (0.0, 10.0),
) -> pd.DataFrame:
    """
    ANCOVA data: a shared slope with a fixed intercept shift per group.

        y_ij = intercept + effect_j + slope·x_ij + ε_ij

    Args:
        group_effects: {label: shift} or a sequence of shifts (labelled
            'A', 'B', ...). The first group is the baseline of the
            treatment coding used by lm().

    Returns:
        DataFrame with columns x, y and group
    """
    if isinstance(group_effects, Mapping):
        labels = [str(k) for k in group_effects]
        effects = np.array([float(v) for v in group_effects.values()])
    else:
        effects = np.asarray(group_effects, dtype=np.float64)
        if effects.size > 26:
            raise ValidationError("Pass a mapping to label more than 26 groups")
        labels = [chr(ord('A') + j) for j in range(effects.size)]
    if effects.size == 0:
        raise ValidationError("group_effects: at least one group is required")
    check_positive_int(n_per_group, 'n_per_group')
    _check_range(x_range)
    if sigma <= 0:
        raise ValidationError(f"sigma: must be positive, got {sigma}")

    rng = make_rng(seed)
    k = effects.size
    group_idx = np.repeat(np.arange(k), n_per_group)
    n = k * n_per_group
    x = rng.uniform(x_range[0], x_range[1], size=n)
    y = intercept + effects[group_idx] + slope * x + rng.normal(0.0, sigma, size=n)
    return pd.DataFrame({
        'x': x,
        'y': y,
        'group': pd.Categorical(np.asarray(labels)[group_idx], categories=labels),
    })


def repeated_draws(
    model: StochasticModel,
    x: Any,
    n_draws: int,
    seed: int | np.random.Generator | None = None,
) -> np.ndarray:
    """(n_draws, len(x)) matrix of independent samples at the same x."""
    check_positive_int(n_draws, 'n_draws')
    rng = make_rng(seed)
    return np.vstack([model.sample(x, seed=rng) for _ in range(n_draws)])
