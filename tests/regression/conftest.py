"""
Regression test fixtures.
"""

import numpy as np
import pytest


@pytest.fixture
def simple_line(rng):
    """Single predictor plus intercept, n = 50."""
    n = 50
    x = rng.uniform(-2.0, 2.0, n)
    y = 1.0 + 0.5 * x + rng.standard_normal(n) * 0.3
    X = np.column_stack([np.ones(n), x])
    return X, y


@pytest.fixture
def gamma_df(rng):
    """Positive responses with log E[y] = 1 + 0.5x and shape 5."""
    import pandas as pd
    n = 300
    x = rng.uniform(0.0, 2.0, n)
    mu = np.exp(1.0 + 0.5 * x)
    y = rng.gamma(5.0, mu / 5.0)
    return pd.DataFrame({'x': x, 'y': y})
