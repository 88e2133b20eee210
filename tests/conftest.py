"""
pytest configuration and shared fixtures.
"""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests."""
    return np.random.default_rng(42)


@pytest.fixture
def simple_regression_data(rng):
    """Design with an intercept column plus two predictors."""
    n = 100
    X = np.column_stack([np.ones(n), rng.standard_normal((n, 2))])
    beta_true = np.array([1.0, -2.0, 0.5])
    y = X @ beta_true + rng.standard_normal(n) * 0.1
    return X, y, beta_true


@pytest.fixture
def collinear_data(rng):
    """Third predictor is the sum of the first two."""
    n = 100
    x1 = rng.standard_normal(n)
    x2 = rng.standard_normal(n)
    X = np.column_stack([np.ones(n), x1, x2, x1 + x2])
    y = 1.0 + x1 - x2 + rng.standard_normal(n)
    return X, y


@pytest.fixture
def line_df(rng):
    """y = 2 + 3x + N(0, 1) on 60 points."""
    n = 60
    x = rng.uniform(0.0, 10.0, n)
    y = 2.0 + 3.0 * x + rng.standard_normal(n)
    return pd.DataFrame({'x': x, 'y': y})


@pytest.fixture
def ancova_df(rng):
    """Three groups sharing a slope of 1.5, intercept shifts 0, 2, -1."""
    k, m = 3, 20
    group = np.repeat(['a', 'b', 'c'], m)
    shift = np.repeat([0.0, 2.0, -1.0], m)
    x = rng.uniform(0.0, 5.0, k * m)
    y = 1.0 + shift + 1.5 * x + rng.normal(0.0, 0.5, k * m)
    return pd.DataFrame({'x': x, 'y': y, 'g': group})


@pytest.fixture
def poisson_df(rng):
    """Counts with log E[y] = 0.5 + 0.8x."""
    n = 200
    x = rng.uniform(0.0, 2.0, n)
    y = rng.poisson(np.exp(0.5 + 0.8 * x)).astype(float)
    return pd.DataFrame({'x': x, 'y': y})


@pytest.fixture
def binary_df(rng):
    """Bernoulli outcomes with logit P(y = 1) = -0.5 + 1.2x."""
    n = 300
    x = rng.standard_normal(n)
    p = 1.0 / (1.0 + np.exp(-(-0.5 + 1.2 * x)))
    y = rng.binomial(1, p).astype(float)
    return pd.DataFrame({'x': x, 'y': y})
