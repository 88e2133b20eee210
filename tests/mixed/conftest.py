"""
Shared fixtures for mixed model tests.

Datasets with known group structure, as arrays and as DataFrames.
"""

import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def sleepstudy_like(rng):
    """Reaction time ~ days + (1 + days | subject).

    18 subjects, 10 days each = 180 observations. Random intercept SD 25,
    random slope SD 6, correlation 0.07, residual SD 25.
    """
    n_subjects = 18
    n_days = 10

    cov = np.array([
        [25.0 ** 2, 0.07 * 25.0 * 6.0],
        [0.07 * 25.0 * 6.0, 6.0 ** 2],
    ])
    re = rng.multivariate_normal([0.0, 0.0], cov, size=n_subjects)

    subject = np.repeat(np.arange(n_subjects), n_days)
    days = np.tile(np.arange(n_days, dtype=float), n_subjects)
    y = (250.0 + re[subject, 0]
         + (10.0 + re[subject, 1]) * days
         + rng.normal(0.0, 25.0, subject.size))

    return pd.DataFrame({
        'reaction': y,
        'days': days,
        'subject': [f"s{s:02d}" for s in subject],
    })


@pytest.fixture
def random_intercept_simple(rng):
    """y ~ x + (1 | group) with 20 groups of 10."""
    n_groups = 20
    n_per_group = 10
    n = n_groups * n_per_group

    group_effects = rng.normal(0.0, 3.0, size=n_groups)
    group = np.repeat(np.arange(n_groups), n_per_group)
    x = rng.normal(0.0, 1.0, size=n)
    y = 5.0 + 2.0 * x + group_effects[group] + rng.normal(0.0, 1.0, size=n)

    return {
        'y': y,
        'X': np.column_stack([np.ones(n), x]),
        'group': group,
        'x': x,
        'n_groups': n_groups,
    }


@pytest.fixture
def balanced_oneway(rng):
    """Intercept-only one-way layout: 8 groups of 6, clear group effects."""
    k, m = 8, 6
    effects = np.array([-3.0, -2.0, -1.0, 0.0, 0.5, 1.0, 2.0, 2.5])
    group = np.repeat(np.arange(k), m)
    y = 10.0 + effects[group] + rng.normal(0.0, 1.0, k * m)
    return {'y': y, 'group': group, 'k': k, 'm': m}


@pytest.fixture
def identical_groups():
    """Four groups with exactly the same (x, y) values: no group variance."""
    x = np.array([0.0, 1.0, 2.0, 3.0, 4.0, 5.0])
    y = np.array([1.1, 2.9, 5.2, 6.8, 9.3, 10.9])
    k = 4
    return pd.DataFrame({
        'x': np.tile(x, k),
        'y': np.tile(y, k),
        'g': np.repeat(['a', 'b', 'c', 'd'], x.size),
    })


@pytest.fixture
def crossed_df(rng):
    """y ~ x + (1 | subject) + (1 | item), 30 subjects by 10 items."""
    n_subjects, n_items = 30, 10
    subject = np.repeat(np.arange(n_subjects), n_items)
    item = np.tile(np.arange(n_items), n_subjects)
    x = rng.normal(0.0, 1.0, subject.size)
    y = (3.0 + 1.5 * x
         + rng.normal(0.0, 2.0, n_subjects)[subject]
         + rng.normal(0.0, 1.5, n_items)[item]
         + rng.normal(0.0, 1.0, subject.size))
    return pd.DataFrame({
        'y': y,
        'x': x,
        'subject': [f"s{s}" for s in subject],
        'item': [f"i{i}" for i in item],
    })
