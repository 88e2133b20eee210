"""
Tests for ordinary least squares fits.

Covers the array entry point fit(), the formula entry point lm(), the
inference accessors of LinearSolution and R-style handling of aliased
columns.
"""

import numpy as np
import pandas as pd
import pytest
from scipy import stats

from pylinmodels.core.exceptions import DimensionError, ValidationError
from pylinmodels.regression import Design, LinearSolution, fit, lm


class TestFitBasic:

    def test_fit_from_arrays(self, simple_regression_data):
        X, y, _ = simple_regression_data
        result = fit(X, y)
        assert isinstance(result, LinearSolution)
        assert result.coefficients.shape == (3,)
        assert result.backend_name == 'cpu_qr'

    def test_fit_from_design(self, simple_regression_data):
        X, y, _ = simple_regression_data
        result = fit(Design.from_arrays(X, y))
        assert isinstance(result, LinearSolution)

    def test_matches_lstsq(self, simple_regression_data):
        X, y, _ = simple_regression_data
        expected, *_ = np.linalg.lstsq(X, y, rcond=None)
        np.testing.assert_allclose(fit(X, y).coefficients, expected, rtol=1e-10)

    def test_coefficients_close_to_truth(self, simple_regression_data):
        X, y, beta_true = simple_regression_data
        np.testing.assert_allclose(fit(X, y).coefficients, beta_true, atol=0.1)

    def test_residuals_orthogonal_to_columns(self, simple_regression_data):
        X, y, _ = simple_regression_data
        result = fit(X, y)
        np.testing.assert_allclose(X.T @ result.residuals, 0.0, atol=1e-10)
        np.testing.assert_allclose(result.fitted_values + result.residuals, y)

    def test_default_names(self, simple_regression_data):
        X, y, _ = simple_regression_data
        assert fit(X, y).names == ['(Intercept)', 'x1', 'x2']

    def test_custom_names(self, simple_regression_data):
        X, y, _ = simple_regression_data
        result = fit(X, y, names=['const', 'a', 'b'])
        assert result.names == ['const', 'a', 'b']

    def test_timing_recorded(self, simple_regression_data):
        X, y, _ = simple_regression_data
        timing = fit(X, y).timing
        assert timing['total_seconds'] >= 0.0
        assert 'qr' in timing


class TestGoodnessOfFit:

    def test_r_squared_is_squared_correlation(self, simple_line):
        X, y = simple_line
        result = fit(X, y)
        r = np.corrcoef(X[:, 1], y)[0, 1]
        np.testing.assert_allclose(result.r_squared, r ** 2, rtol=1e-10)

    def test_adjusted_r_squared(self, simple_regression_data):
        X, y, _ = simple_regression_data
        result = fit(X, y)
        n, p = X.shape
        expected = 1 - (1 - result.r_squared) * (n - 1) / (n - p)
        np.testing.assert_allclose(result.adjusted_r_squared, expected)

    def test_f_equals_t_squared_for_one_predictor(self, simple_line):
        X, y = simple_line
        result = fit(X, y)
        np.testing.assert_allclose(result.f_statistic, result.t_statistics[1] ** 2)
        np.testing.assert_allclose(result.f_pvalue, result.p_values[1])

    def test_sigma_estimates(self, simple_regression_data):
        X, y, _ = simple_regression_data
        result = fit(X, y)
        n, p = X.shape
        np.testing.assert_allclose(result.sigma ** 2, result.rss / (n - p))
        np.testing.assert_allclose(result.sigma_ml ** 2, result.rss / n)

    def test_log_likelihood_is_gaussian_density(self, simple_regression_data):
        X, y, _ = simple_regression_data
        result = fit(X, y)
        expected = stats.norm.logpdf(result.residuals, scale=result.sigma_ml).sum()
        np.testing.assert_allclose(result.log_likelihood, expected, rtol=1e-10)

    def test_information_criteria(self, simple_regression_data):
        X, y, _ = simple_regression_data
        result = fit(X, y)
        k = X.shape[1] + 1
        np.testing.assert_allclose(result.aic, -2 * result.log_likelihood + 2 * k)
        np.testing.assert_allclose(
            result.bic, -2 * result.log_likelihood + np.log(len(y)) * k
        )

    def test_hat_values_sum_to_rank(self, simple_regression_data):
        X, y, _ = simple_regression_data
        result = fit(X, y)
        np.testing.assert_allclose(result.hat_values.sum(), 3.0)
        H = X @ np.linalg.solve(X.T @ X, X.T)
        np.testing.assert_allclose(result.hat_values, np.diag(H), atol=1e-12)


class TestInference:

    def test_standard_errors_match_formula(self, simple_regression_data):
        X, y, _ = simple_regression_data
        result = fit(X, y)
        expected = np.sqrt(np.diag(result.sigma ** 2 * np.linalg.inv(X.T @ X)))
        np.testing.assert_allclose(result.standard_errors, expected, rtol=1e-8)

    def test_p_values_from_t(self, simple_regression_data):
        X, y, _ = simple_regression_data
        result = fit(X, y)
        expected = 2 * stats.t.sf(np.abs(result.t_statistics), len(y) - 3)
        np.testing.assert_allclose(result.p_values, expected)
        assert np.all((result.p_values >= 0) & (result.p_values <= 1))

    def test_conf_int_width(self, simple_regression_data):
        X, y, _ = simple_regression_data
        result = fit(X, y)
        ci = result.conf_int(0.9)
        q = stats.t.ppf(0.95, result.df_residual)
        np.testing.assert_allclose(ci[:, 1] - ci[:, 0], 2 * q * result.standard_errors)
        assert np.all(ci[:, 0] < result.coefficients)

    def test_conf_int_rejects_bad_level(self, simple_regression_data):
        X, y, _ = simple_regression_data
        with pytest.raises(ValidationError):
            fit(X, y).conf_int(1.5)


class TestAliasing:

    def test_dependent_column_is_nan(self, collinear_data):
        X, y = collinear_data
        result = fit(X, y)
        assert np.isnan(result.coefficients[3])
        assert np.all(np.isfinite(result.coefficients[:3]))
        assert result.aliased == ['x3']
        assert result.rank == 3
        assert result.df_residual == len(y) - 3

    def test_warning_names_column(self, collinear_data):
        X, y = collinear_data
        result = fit(X, y)
        assert result.warnings == (
            "1 coefficient(s) not defined because of singularities: x3",
        )

    def test_fit_matches_reduced_model(self, collinear_data):
        X, y = collinear_data
        full = fit(X, y)
        reduced = fit(X[:, :3], y)
        np.testing.assert_allclose(full.coefficients[:3], reduced.coefficients)
        np.testing.assert_allclose(full.fitted_values, reduced.fitted_values)
        np.testing.assert_allclose(full.sigma, reduced.sigma)

    def test_inference_is_nan_for_aliased(self, collinear_data):
        X, y = collinear_data
        result = fit(X, y)
        assert np.isnan(result.standard_errors[3])
        assert np.isnan(result.p_values[3])
        assert np.all(np.isnan(result.vcov()[3]))

    def test_summary_reports_singularities(self, collinear_data):
        X, y = collinear_data
        text = fit(X, y).summary()
        assert "(1 not defined because of singularities)" in text
        assert "x3" in text


class TestPrediction:

    def test_in_sample(self, simple_regression_data):
        X, y, _ = simple_regression_data
        result = fit(X, y)
        np.testing.assert_allclose(result.predict(), result.fitted_values)

    def test_single_row(self, simple_regression_data):
        X, y, _ = simple_regression_data
        result = fit(X, y)
        row = np.array([1.0, 0.5, -0.5])
        np.testing.assert_allclose(result.predict(row), [row @ result.coefficients])

    def test_confidence_band_at_mean(self, simple_line):
        X, y = simple_line
        result = fit(X, y)
        n = len(y)
        pred = result.predict(np.array([[1.0, X[:, 1].mean()]]), interval='confidence')
        half = (pred['upr'] - pred['lwr']).iloc[0] / 2
        q = stats.t.ppf(0.975, n - 2)
        np.testing.assert_allclose(half, q * result.sigma / np.sqrt(n), rtol=1e-8)

    def test_prediction_wider_than_confidence(self, simple_line):
        X, y = simple_line
        result = fit(X, y)
        conf = result.predict(X[:5], interval='confidence')
        pred = result.predict(X[:5], interval='prediction')
        assert list(pred.columns) == ['fit', 'lwr', 'upr']
        np.testing.assert_allclose(conf['fit'], pred['fit'])
        assert np.all(pred['upr'] - pred['lwr'] > conf['upr'] - conf['lwr'])

    def test_wrong_width(self, simple_regression_data):
        X, y, _ = simple_regression_data
        with pytest.raises(DimensionError):
            fit(X, y).predict(np.ones((2, 5)))

    def test_table_requires_formula(self, simple_regression_data):
        X, y, _ = simple_regression_data
        with pytest.raises(ValidationError, match="formula"):
            fit(X, y).predict(pd.DataFrame({'x1': [0.0]}))

    def test_unknown_interval(self, simple_regression_data):
        X, y, _ = simple_regression_data
        with pytest.raises(ValueError, match="interval"):
            fit(X, y).predict(interval='tolerance')


class TestFormula:

    def test_line(self, line_df):
        model = lm('y ~ x', line_df)
        assert model.names == ['(Intercept)', 'x']
        np.testing.assert_allclose(model.coefficients, [2.0, 3.0], atol=0.5)
        assert model.formula == 'y ~ x'

    def test_matches_array_fit(self, line_df):
        X = np.column_stack([np.ones(len(line_df)), line_df['x']])
        np.testing.assert_allclose(
            lm('y ~ x', line_df).coefficients,
            fit(X, line_df['y'].to_numpy()).coefficients,
        )

    def test_predict_on_new_table(self, line_df):
        model = lm('y ~ x', line_df)
        b0, b1 = model.coefficients
        np.testing.assert_allclose(
            model.predict(pd.DataFrame({'x': [0.0, 1.0]})), [b0, b0 + b1]
        )

    def test_factor_predictor(self, ancova_df):
        model = lm('y ~ x + g', ancova_df)
        assert model.names == ['(Intercept)', 'x', 'gb', 'gc']
        np.testing.assert_allclose(model.coefficients, [1.0, 1.5, 2.0, -1.0], atol=0.4)

    def test_log_response(self, line_df):
        df = line_df.assign(y=np.exp(0.1 * line_df['x']))
        model = lm('log(y) ~ x', df)
        np.testing.assert_allclose(model.coefficients, [0.0, 0.1], atol=1e-10)

    def test_missing_rows_dropped(self, line_df):
        df = line_df.copy()
        df.loc[:4, 'y'] = np.nan
        assert lm('y ~ x', df).nobs == len(df) - 5

    def test_repr_and_summary(self, line_df):
        model = lm('y ~ x', line_df)
        assert repr(model).startswith("LinearSolution(n=60, p=2")
        text = model.summary()
        assert "Formula: y ~ x" in text
        assert "Multiple R-squared" in text
        assert "F-statistic" in text


class TestDesign:

    def test_from_datasource(self, line_df):
        from pylinmodels.core import DataSource
        ds = DataSource.from_dataframe(line_df)
        design = Design.from_datasource(ds, x='x', y='y')
        assert design.names == ['(Intercept)', 'x']
        assert design.has_intercept
        assert design.source is ds

    def test_intercept_detection(self, simple_regression_data):
        X, y, _ = simple_regression_data
        assert Design.from_arrays(X, y).has_intercept
        assert not Design.from_arrays(X[:, 1:], y).has_intercept

    def test_no_intercept_tss_uncentred(self, simple_regression_data):
        X, y, _ = simple_regression_data
        result = fit(X[:, 1:], y)
        np.testing.assert_allclose(result.tss, y @ y)
        assert result.df_model == 2

    def test_subset_columns(self, simple_regression_data):
        X, y, _ = simple_regression_data
        sub = Design.from_arrays(X, y).subset_columns([0, 2])
        assert sub.names == ['(Intercept)', 'x2']
        np.testing.assert_array_equal(sub.X, X[:, [0, 2]])

    def test_cross_products(self, simple_regression_data):
        X, y, _ = simple_regression_data
        design = Design.from_arrays(X, y)
        np.testing.assert_allclose(design.XtX(), X.T @ X)
        np.testing.assert_allclose(design.Xty(), X.T @ y)


class TestErrors:

    def test_y_required(self, simple_regression_data):
        X, _, _ = simple_regression_data
        with pytest.raises(ValidationError, match="y is required"):
            fit(X)

    def test_design_and_y(self, simple_regression_data):
        X, y, _ = simple_regression_data
        with pytest.raises(ValidationError, match="not both"):
            fit(Design.from_arrays(X, y), y)

    def test_link_without_family(self, simple_regression_data):
        X, y, _ = simple_regression_data
        with pytest.raises(ValidationError, match="link requires a family"):
            fit(X, y, link='log')

    def test_unknown_backend(self, simple_regression_data):
        X, y, _ = simple_regression_data
        with pytest.raises(ValueError, match="Unknown backend"):
            fit(X, y, backend='gpu')

    def test_irls_backend_needs_family(self, simple_regression_data):
        X, y, _ = simple_regression_data
        with pytest.raises(ValueError, match="requires a family"):
            fit(X, y, backend='cpu_irls')

    def test_length_mismatch(self, simple_regression_data):
        X, y, _ = simple_regression_data
        with pytest.raises(DimensionError):
            fit(X, y[:-1])

    def test_non_finite(self, simple_regression_data):
        X, y, _ = simple_regression_data
        y = y.copy()
        y[0] = np.nan
        with pytest.raises(ValidationError, match="NaN"):
            fit(X, y)

    def test_fewer_rows_than_columns(self, rng):
        X = rng.standard_normal((2, 3))
        with pytest.raises(ValidationError):
            fit(X, rng.standard_normal(2))

    def test_wrong_name_count(self, simple_regression_data):
        X, y, _ = simple_regression_data
        with pytest.raises(DimensionError, match="names"):
            fit(X, y, names=['a'])

    def test_one_sided_formula(self, line_df):
        with pytest.raises(ValidationError, match="has no response"):
            lm('~ x', line_df)
