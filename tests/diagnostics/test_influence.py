"""
Tests for case-wise influence measures.

Linear-model measures are checked against explicit leave-one-out refits.
"""

import numpy as np
import pytest

from pylinmodels.diagnostics import InfluenceParams, influence
from pylinmodels.regression import fit, glm, lm


def _loo_fit(X, y, i):
    keep = np.arange(len(y)) != i
    beta, *_ = np.linalg.lstsq(X[keep], y[keep], rcond=None)
    resid = y[keep] - X[keep] @ beta
    sigma = np.sqrt(resid @ resid / (keep.sum() - X.shape[1]))
    return beta, sigma


class TestLinearInfluence:

    def test_hat_matrix_diagonal(self, simple_regression_data):
        X, y, _ = simple_regression_data
        infl = influence(fit(X, y))
        H = X @ np.linalg.solve(X.T @ X, X.T)
        np.testing.assert_allclose(infl.hat, np.diag(H), atol=1e-12)
        assert infl.hat.sum() == pytest.approx(3.0)

    def test_leave_one_out_sigma(self, simple_regression_data):
        X, y, _ = simple_regression_data
        infl = influence(fit(X, y))
        for i in (0, 17, 99):
            _, sigma_i = _loo_fit(X, y, i)
            assert infl.sigma[i] == pytest.approx(sigma_i, rel=1e-10)

    def test_dffits_from_refit(self, simple_regression_data):
        X, y, _ = simple_regression_data
        infl = influence(fit(X, y))
        model = fit(X, y)
        for i in (3, 42):
            beta_i, sigma_i = _loo_fit(X, y, i)
            change = model.fitted_values[i] - X[i] @ beta_i
            expected = change / (sigma_i * np.sqrt(infl.hat[i]))
            assert infl.dffits[i] == pytest.approx(expected, rel=1e-8)

    def test_cooks_distance_from_refit(self, simple_regression_data):
        X, y, _ = simple_regression_data
        model = fit(X, y)
        infl = influence(model)
        i = 7
        beta_i, _ = _loo_fit(X, y, i)
        shift = X @ (model.coefficients - beta_i)
        expected = shift @ shift / (3 * model.residual_std_error ** 2)
        assert infl.cooks_distance[i] == pytest.approx(expected, rel=1e-8)

    def test_standardized_residuals(self, line_df):
        model = lm('y ~ x', line_df)
        infl = influence(model)
        expected = model.residuals / (model.residual_std_error * np.sqrt(1.0 - infl.hat))
        np.testing.assert_allclose(infl.std_residuals, expected, rtol=1e-12)
        assert infl.std_pearson_residuals is None

    def test_outlier_has_largest_cooks_distance(self, line_df):
        df = line_df.copy()
        df.loc[12, 'y'] += 25.0
        infl = influence(lm('y ~ x', df))
        assert int(np.argmax(infl.cooks_distance)) == 12

    def test_leverage_one_gives_nan(self, rng):
        n = 20
        x = rng.standard_normal(n)
        spike = np.zeros(n)
        spike[4] = 1.0
        X = np.column_stack([np.ones(n), x, spike])
        y = 1.0 + x + rng.standard_normal(n)
        infl = influence(fit(X, y))
        assert infl.hat[4] == pytest.approx(1.0)
        assert np.isnan(infl.std_residuals[4])
        assert np.isnan(infl.cooks_distance[4])
        assert np.all(np.isfinite(np.delete(infl.cooks_distance, 4)))


class TestGLMInfluence:

    def test_returns_params(self, poisson_df):
        infl = influence(glm('y ~ x', poisson_df, family='poisson'))
        assert isinstance(infl, InfluenceParams)
        assert infl.std_pearson_residuals is not None

    def test_hat_sums_to_rank(self, poisson_df):
        infl = influence(glm('y ~ x', poisson_df, family='poisson'))
        assert infl.hat.sum() == pytest.approx(2.0, rel=1e-8)

    def test_fixed_dispersion_scaling(self, poisson_df):
        model = glm('y ~ x', poisson_df, family='poisson')
        infl = influence(model)
        one_minus_h = 1.0 - infl.hat
        np.testing.assert_allclose(
            infl.std_pearson_residuals,
            model.residuals_pearson / np.sqrt(one_minus_h),
            rtol=1e-12,
        )
        np.testing.assert_allclose(
            infl.std_residuals,
            model.residuals_deviance / np.sqrt(one_minus_h),
            rtol=1e-12,
        )

    def test_cooks_distance(self, binary_df):
        model = glm('y ~ x', binary_df, family='binomial')
        infl = influence(model)
        h = infl.hat
        expected = (model.residuals_pearson / (1.0 - h)) ** 2 * h / 2.0
        np.testing.assert_allclose(infl.cooks_distance, expected, rtol=1e-10)

    def test_gaussian_glm_matches_lm(self, line_df):
        lin = influence(lm('y ~ x', line_df))
        gau = influence(glm('y ~ x', line_df, family='gaussian'))
        np.testing.assert_allclose(gau.hat, lin.hat, rtol=1e-8)
        np.testing.assert_allclose(gau.cooks_distance, lin.cooks_distance, rtol=1e-6)
        np.testing.assert_allclose(gau.std_residuals, lin.std_residuals, rtol=1e-6)


class TestErrors:

    def test_wrong_type(self):
        with pytest.raises(TypeError, match="influence needs"):
            influence([1.0, 2.0])
