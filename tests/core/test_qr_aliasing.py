"""
Tests for QR least squares with R-style aliasing.

Columns are scanned left to right; a column that is a linear
combination of kept columns is aliased and gets a NaN coefficient.
"""

import numpy as np
import pytest

from pylinmodels.core.compute.linalg.qr import (
    find_active_columns, fitted_from, qr_decompose, qr_solve,
)


class TestFindActiveColumns:

    def test_full_rank(self, rng):
        X = rng.standard_normal((20, 3))
        kept, aliased = find_active_columns(X)
        assert kept == [0, 1, 2]
        assert aliased == []

    def test_later_duplicate_is_aliased(self, rng):
        a = rng.standard_normal(20)
        b = rng.standard_normal(20)
        X = np.column_stack([a, b, a + b])
        kept, aliased = find_active_columns(X)
        assert kept == [0, 1]
        assert aliased == [2]

    def test_zero_column_is_aliased(self, rng):
        X = np.column_stack([rng.standard_normal(10), np.zeros(10)])
        _, aliased = find_active_columns(X)
        assert aliased == [1]


class TestQRSolve:

    def test_matches_lstsq(self, simple_regression_data):
        X, y, _ = simple_regression_data
        coef, qr = qr_solve(X, y)
        expected = np.linalg.lstsq(X, y, rcond=None)[0]
        np.testing.assert_allclose(coef, expected, rtol=1e-10)
        assert qr.rank == 3

    def test_aliased_coefficient_is_nan(self, collinear_data):
        X, y = collinear_data
        coef, qr = qr_solve(X, y)
        assert qr.rank == 3
        assert np.isnan(coef[3])
        assert np.all(np.isfinite(coef[:3]))
        np.testing.assert_array_equal(qr.aliased, [3])

    def test_fitted_ignores_aliased(self, collinear_data):
        X, y = collinear_data
        coef, _ = qr_solve(X, y)
        expected = X[:, :3] @ np.linalg.lstsq(X[:, :3], y, rcond=None)[0]
        np.testing.assert_allclose(fitted_from(X, coef), expected, rtol=1e-10)


class TestUnscaledCovariance:

    def test_equals_inverse_gram(self, simple_regression_data):
        X, _, _ = simple_regression_data
        qr = qr_decompose(X)
        np.testing.assert_allclose(
            qr.unscaled_covariance(), np.linalg.inv(X.T @ X), rtol=1e-10
        )
