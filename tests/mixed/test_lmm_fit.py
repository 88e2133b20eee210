"""
Tests for linear mixed model fitting.

Several checks use layouts with closed-form answers: in a balanced
one-way design REML reproduces the ANOVA variance estimators, and when
every group holds identical data the group variance is zero and the fit
collapses to OLS.
"""

import numpy as np
import pandas as pd
import pytest

from pylinmodels.core.exceptions import DimensionError, FormulaError, ValidationError
from pylinmodels.mixed import LMMSolution, lmer, lmm
from pylinmodels.regression import lm


def _as_frame(d):
    return pd.DataFrame({'y': d['y'], 'x': d['x'], 'group': d['group']})


class TestBalancedOneWay:

    @pytest.fixture
    def anova_estimates(self, balanced_oneway):
        d = balanced_oneway
        y, group, k, m = d['y'], d['group'], d['k'], d['m']
        means = np.array([y[group == j].mean() for j in range(k)])
        msw = sum(((y[group == j] - means[j]) ** 2).sum() for j in range(k)) / (k * (m - 1))
        msb = m * ((means - y.mean()) ** 2).sum() / (k - 1)
        return {'msw': msw, 'msb': msb, 'sigma2_u': (msb - msw) / m}

    @pytest.fixture
    def result(self, balanced_oneway):
        d = balanced_oneway
        n = d['y'].size
        return lmm(d['y'], np.ones((n, 1)), groups={'group': d['group']})

    def test_intercept_is_grand_mean(self, result, balanced_oneway):
        np.testing.assert_allclose(result.coefficients, [balanced_oneway['y'].mean()], rtol=1e-10)

    def test_variances_match_anova(self, result, anova_estimates):
        assert anova_estimates['sigma2_u'] > 0
        np.testing.assert_allclose(
            result.var_components[0].variance, anova_estimates['sigma2_u'], rtol=5e-3
        )
        np.testing.assert_allclose(result.sigma ** 2, anova_estimates['msw'], rtol=5e-3)

    def test_intercept_standard_error(self, result, anova_estimates, balanced_oneway):
        n = balanced_oneway['y'].size
        np.testing.assert_allclose(
            result.standard_errors[0], np.sqrt(anova_estimates['msb'] / n), rtol=1e-2
        )

    def test_blups_sum_to_zero(self, result):
        np.testing.assert_allclose(result.ranef['group'].to_numpy().sum(), 0.0, atol=1e-8)


class TestZeroGroupVariance:

    def test_collapses_to_ols(self, identical_groups):
        mixed = lmer('y ~ x + (1 | g)', identical_groups)
        ols = lm('y ~ x', identical_groups)
        np.testing.assert_allclose(mixed.coefficients, ols.coefficients, rtol=1e-8)
        np.testing.assert_allclose(mixed.sigma ** 2, ols.sigma ** 2, rtol=1e-8)
        assert mixed.icc['g'] < 1e-3
        np.testing.assert_allclose(mixed.ranef['g'].to_numpy(), 0.0, atol=1e-8)

    def test_reml_variance_exceeds_ml(self, identical_groups):
        reml = lmer('y ~ x + (1 | g)', identical_groups, reml=True)
        ml = lmer('y ~ x + (1 | g)', identical_groups, reml=False)
        n, p = len(identical_groups), 2
        assert reml.sigma > ml.sigma
        np.testing.assert_allclose(ml.sigma ** 2 / reml.sigma ** 2, (n - p) / n, rtol=1e-8)


class TestRandomIntercept:

    def test_basic_fit(self, random_intercept_simple):
        d = random_intercept_simple
        result = lmm(d['y'], d['X'], groups={'group': d['group']})
        assert isinstance(result, LMMSolution)
        assert result.converged
        assert result.backend_name == 'cpu_pls'
        np.testing.assert_allclose(result.coefficients[0], 5.0, atol=2.0)
        np.testing.assert_allclose(result.coefficients[1], 2.0, atol=0.3)

    def test_variance_components(self, random_intercept_simple):
        d = random_intercept_simple
        (vc,) = lmm(d['y'], d['X'], groups={'group': d['group']}).var_components
        assert vc.group == 'group'
        assert vc.name == '(Intercept)'
        assert vc.corr is None
        np.testing.assert_allclose(vc.std_dev, 3.0, rtol=0.5)

    def test_formula_matches_arrays(self, random_intercept_simple):
        d = random_intercept_simple
        arrays = lmm(d['y'], d['X'], groups={'group': d['group']})
        formula = lmer('y ~ x + (1 | group)', _as_frame(d))
        np.testing.assert_allclose(formula.coefficients, arrays.coefficients, rtol=1e-10)
        np.testing.assert_allclose(formula.deviance, arrays.deviance, rtol=1e-10)
        assert formula.names == ['(Intercept)', 'x']
        assert arrays.names == ['(Intercept)', 'x1']

    def test_conditional_fitted_values(self, random_intercept_simple):
        d = random_intercept_simple
        result = lmm(d['y'], d['X'], groups={'group': d['group']})
        b = result.ranef['group']['(Intercept)'].to_numpy()
        np.testing.assert_allclose(
            result.fitted_values - result.fixed_fitted_values, b[d['group']], atol=1e-10
        )
        np.testing.assert_allclose(result.fitted_values + result.residuals, d['y'])

    def test_icc(self, random_intercept_simple):
        d = random_intercept_simple
        result = lmm(d['y'], d['X'], groups={'group': d['group']})
        vc = result.var_components[0].variance
        np.testing.assert_allclose(result.icc['group'], vc / (vc + result.sigma ** 2))

    def test_wald_intervals(self, random_intercept_simple):
        d = random_intercept_simple
        result = lmm(d['y'], d['X'], groups={'group': d['group']})
        ci = result.conf_int(0.95)
        np.testing.assert_allclose(
            (ci[:, 1] - ci[:, 0]) / 2, 1.959963984540054 * result.standard_errors
        )
        np.testing.assert_allclose(result.z_values, result.coefficients / result.standard_errors)

    def test_information_criteria(self, random_intercept_simple):
        d = random_intercept_simple
        result = lmm(d['y'], d['X'], groups={'group': d['group']}, reml=False)
        # 2 fixed effects + 1 theta + sigma
        assert result.df_loglik == 4
        np.testing.assert_allclose(result.aic, -2 * result.log_likelihood + 8)
        np.testing.assert_allclose(result.deviance, -2 * result.log_likelihood)
        np.testing.assert_allclose(
            result.bic, result.deviance + np.log(result.nobs) * 4
        )


class TestRandomSlope:

    @pytest.fixture
    def result(self, sleepstudy_like):
        return lmer('reaction ~ days + (1 + days | subject)', sleepstudy_like)

    def test_fixed_effects(self, result):
        assert result.converged
        np.testing.assert_allclose(result.fixef['(Intercept)'], 250.0, atol=25.0)
        np.testing.assert_allclose(result.fixef['days'], 10.0, atol=5.0)

    def test_variance_components(self, result):
        intercept, slope = result.var_components
        assert (intercept.name, slope.name) == ('(Intercept)', 'days')
        assert intercept.corr is None
        assert slope.corr is not None and -1.0 <= slope.corr <= 1.0
        assert slope.variance > 0

    def test_ranef_frame(self, result):
        frame = result.ranef['subject']
        assert frame.shape == (18, 2)
        assert list(frame.columns) == ['(Intercept)', 'days']
        assert frame.index.name == 'subject'
        assert frame.index[0] == 's00'

    def test_fitted_uses_both_effects(self, result, sleepstudy_like):
        frame = result.ranef['subject']
        b = frame.loc[sleepstudy_like['subject']].to_numpy()
        expected = b[:, 0] + b[:, 1] * sleepstudy_like['days'].to_numpy()
        np.testing.assert_allclose(
            result.fitted_values - result.fixed_fitted_values, expected, atol=1e-8
        )

    def test_array_interface_agrees(self, result, sleepstudy_like):
        df = sleepstudy_like
        X = np.column_stack([np.ones(len(df)), df['days']])
        arrays = lmm(
            df['reaction'].to_numpy(), X,
            groups={'subject': df['subject'].to_numpy()},
            random_effects={'subject': ['1', 'days']},
            random_data={'days': df['days'].to_numpy()},
            names=['(Intercept)', 'days'],
        )
        np.testing.assert_allclose(arrays.coefficients, result.coefficients, rtol=1e-8)
        np.testing.assert_allclose(arrays.deviance, result.deviance, rtol=1e-8)

    def test_summary(self, result):
        text = result.summary()
        assert text.startswith("Linear mixed model fit by REML")
        assert "Random effects:" in text
        assert "Fixed effects:" in text
        assert "REML criterion at convergence" in text
        assert repr(result).startswith("LMMSolution(REML, n=180")


class TestCrossedEffects:

    def test_two_grouping_factors(self, crossed_df):
        result = lmer('y ~ x + (1 | subject) + (1 | item)', crossed_df)
        assert result.n_groups == {'subject': 30, 'item': 10}
        assert [vc.group for vc in result.var_components] == ['subject', 'item']
        np.testing.assert_allclose(result.fixef['x'], 1.5, atol=0.2)
        assert set(result.ranef) == {'subject', 'item'}


class TestLikelihoodRatio:

    @pytest.fixture
    def ml_pair(self, random_intercept_simple):
        df = _as_frame(random_intercept_simple)
        full = lmer('y ~ x + (1 | group)', df, reml=False)
        reduced = lmer('y ~ 1 + (1 | group)', df, reml=False)
        return full, reduced

    def test_statistic(self, ml_pair):
        full, reduced = ml_pair
        lrt = full.compare(reduced)
        np.testing.assert_allclose(
            lrt.statistic, 2 * (full.log_likelihood - reduced.log_likelihood)
        )
        assert lrt.df == 1
        assert lrt.p_value < 1e-10
        assert "Likelihood Ratio Test" in str(lrt)

    def test_order_does_not_matter(self, ml_pair):
        full, reduced = ml_pair
        assert reduced.compare(full).statistic == full.compare(reduced).statistic

    def test_reml_fits_warn(self, random_intercept_simple):
        df = _as_frame(random_intercept_simple)
        full = lmer('y ~ x + (1 | group)', df)
        reduced = lmer('y ~ 1 + (1 | group)', df)
        with pytest.warns(UserWarning, match="ML"):
            full.compare(reduced)

    def test_same_size_not_nested(self, ml_pair):
        full, _ = ml_pair
        with pytest.raises(ValidationError, match="not nested"):
            full.compare(full)

    def test_different_data(self, ml_pair, identical_groups):
        full, _ = ml_pair
        other = lmer('y ~ x + (1 | g)', identical_groups, reml=False)
        with pytest.raises(ValidationError, match="different data sizes"):
            full.compare(other)

    def test_non_mixed_model(self, ml_pair, identical_groups):
        full, _ = ml_pair
        with pytest.raises(TypeError):
            full.compare(lm('y ~ x', identical_groups))


class TestErrors:

    def test_no_random_terms(self, identical_groups):
        with pytest.raises(FormulaError, match="no random-effect terms"):
            lmer('y ~ x', identical_groups)

    def test_duplicate_group(self, identical_groups):
        with pytest.raises(FormulaError, match="more than one"):
            lmer('y ~ x + (1 | g) + (0 + x | g)', identical_groups)

    def test_no_response(self, identical_groups):
        with pytest.raises(FormulaError, match="response"):
            lmer('~ x + (1 | g)', identical_groups)

    def test_single_level_group(self, random_intercept_simple):
        d = random_intercept_simple
        with pytest.raises(ValidationError, match="only 1 level"):
            lmm(d['y'], d['X'], groups={'group': np.zeros(len(d['y']))})

    def test_no_groups(self, random_intercept_simple):
        d = random_intercept_simple
        with pytest.raises(ValidationError, match="grouping factor"):
            lmm(d['y'], d['X'], groups={})

    def test_group_length(self, random_intercept_simple):
        d = random_intercept_simple
        with pytest.raises(DimensionError):
            lmm(d['y'], d['X'], groups={'group': d['group'][:-1]})

    def test_unknown_random_group(self, random_intercept_simple):
        d = random_intercept_simple
        with pytest.raises(ValidationError, match="not found in groups"):
            lmm(d['y'], d['X'], groups={'group': d['group']},
                random_effects={'other': ['1']})

    def test_slope_without_data(self, random_intercept_simple):
        d = random_intercept_simple
        with pytest.raises(ValidationError, match="random_data"):
            lmm(d['y'], d['X'], groups={'group': d['group']},
                random_effects={'group': ['1', 'x']})

    def test_too_few_observations(self):
        with pytest.raises(ValidationError):
            lmm([1.0, 2.0], np.ones((2, 1)), groups={'g': [0, 1]})

    def test_name_count(self, random_intercept_simple):
        d = random_intercept_simple
        with pytest.raises(ValidationError, match="names"):
            lmm(d['y'], d['X'], groups={'group': d['group']}, names=['a'])
