"""
Tests for the synthetic data generators.
"""

import numpy as np
import pandas as pd
import pytest

from pylinmodels.core.exceptions import ValidationError
from pylinmodels.regression import lm
from pylinmodels.simulation import (
    StochasticModel,
    repeated_draws,
    simulate_ancova_sample,
    simulate_family_sample,
    simulate_grouped_sample,
    simulate_paired_sample,
)


class TestPairedSample:

    def test_shape_and_range(self):
        df = simulate_paired_sample(n=50, x_range=(2.0, 3.0), seed=1)
        assert list(df.columns) == ['x', 'y']
        assert len(df) == 50
        assert df['x'].between(2.0, 3.0).all()

    def test_reproducible(self):
        pd.testing.assert_frame_equal(
            simulate_paired_sample(seed=7), simulate_paired_sample(seed=7)
        )

    def test_least_squares_recovers_line(self):
        df = simulate_paired_sample(n=2000, intercept=1.0, slope=-0.5, sigma=0.5, seed=3)
        np.testing.assert_allclose(lm('y ~ x', df).coefficients, [1.0, -0.5], atol=0.05)

    def test_bad_sigma(self):
        with pytest.raises(ValidationError, match="sigma"):
            simulate_paired_sample(sigma=0.0)

    def test_bad_range(self):
        with pytest.raises(ValidationError, match="x_range"):
            simulate_paired_sample(x_range=(1.0, 1.0))

    def test_bad_n(self):
        with pytest.raises(ValidationError, match="n"):
            simulate_paired_sample(n=0)


class TestFamilySample:

    def test_poisson_counts(self):
        df = simulate_family_sample(200, 0.5, 1.0, family='poisson', seed=4)
        assert np.all(df['y'] >= 0)
        np.testing.assert_array_equal(df['y'], np.round(df['y']))

    def test_binomial(self):
        df = simulate_family_sample(100, 0.0, 2.0, family='binomial', seed=4)
        assert set(df['y'].unique()) <= {0.0, 1.0}


class TestGroupedSample:

    def test_layout(self):
        df = simulate_grouped_sample(n_groups=12, n_per_group=5, seed=1)
        assert len(df) == 60
        assert list(df['group'].cat.categories[:2]) == ['g01', 'g02']
        assert (df['group'].value_counts() == 5).all()

    def test_no_group_effect(self):
        df = simulate_grouped_sample(
            n_groups=4, n_per_group=50, intercept=3.0, slope=0.0,
            group_sd=0.0, sigma=0.1, seed=2,
        )
        means = df.groupby('group', observed=True)['y'].mean()
        np.testing.assert_allclose(means, 3.0, atol=0.05)

    def test_positional_arguments(self):
        df = simulate_grouped_sample(3, 2, 1.0, 2.0, 1.0, 1.0, 3)
        pd.testing.assert_frame_equal(
            df,
            simulate_grouped_sample(
                n_groups=3, n_per_group=2, intercept=1.0, slope=2.0,
                group_sd=1.0, sigma=1.0, seed=3,
            ),
        )
        assert len(df) == 6

    def test_negative_group_sd(self):
        with pytest.raises(ValidationError, match="group_sd"):
            simulate_grouped_sample(group_sd=-1.0)


class TestAncovaSample:

    def test_sequence_labels(self):
        df = simulate_ancova_sample([0.0, 1.0, -1.0], n_per_group=10, seed=1)
        assert list(df['group'].cat.categories) == ['A', 'B', 'C']
        assert len(df) == 30

    def test_mapping_effects_recovered(self):
        df = simulate_ancova_sample(
            {'ctl': 0.0, 'trt': 2.0}, n_per_group=500, slope=0.5, sigma=0.2, seed=5,
        )
        model = lm('y ~ x + group', df)
        assert model.names == ['(Intercept)', 'x', 'grouptrt']
        np.testing.assert_allclose(model.coefficients, [0.0, 0.5, 2.0], atol=0.05)

    def test_positional_arguments(self):
        df = simulate_ancova_sample([0.0, 1.0], 4, 0.5, 1.0, 7)
        pd.testing.assert_frame_equal(
            df,
            simulate_ancova_sample([0.0, 1.0], n_per_group=4, slope=0.5, sigma=1.0, seed=7),
        )

    def test_empty_effects(self):
        with pytest.raises(ValidationError, match="at least one group"):
            simulate_ancova_sample([])


class TestRepeatedDraws:

    def test_shape(self):
        model = StochasticModel(0.0, 1.0)
        draws = repeated_draws(model, np.linspace(0, 1, 8), n_draws=3, seed=0)
        assert draws.shape == (3, 8)

    def test_rows_differ(self):
        draws = repeated_draws(StochasticModel(0.0, 1.0), np.zeros(4), n_draws=2, seed=0)
        assert not np.array_equal(draws[0], draws[1])

    def test_bad_count(self):
        with pytest.raises(ValidationError, match="n_draws"):
            repeated_draws(StochasticModel(0.0, 1.0), [0.0], n_draws=0)
