"""
ANOVA and ANCOVA tables of a single linear model.
"""

import numpy as np
import pandas as pd
import pytest
from scipy import stats

from pylinmodels.anova import AnovaSolution, anova
from pylinmodels.core.exceptions import ValidationError
from pylinmodels.regression import fit, lm


@pytest.fixture
def unbalanced_df(rng):
    """Two crossed factors with unequal cell counts plus a covariate."""
    a = np.array(['p'] * 14 + ['q'] * 9 + ['r'] * 17)
    b = rng.choice(['lo', 'hi'], size=a.size)
    x = rng.standard_normal(a.size)
    effect = {'p': 0.0, 'q': 1.0, 'r': -0.5}
    y = np.array([effect[v] for v in a]) + 0.8 * (b == 'hi') + 0.3 * x
    y = y + rng.normal(0.0, 0.7, a.size)
    return pd.DataFrame({'y': y, 'a': a, 'b': b, 'x': x})


class TestOneWay:

    def test_matches_f_oneway(self, ancova_df):
        table = anova(lm('y ~ g', ancova_df))
        groups = [ancova_df.loc[ancova_df['g'] == k, 'y'] for k in ('a', 'b', 'c')]
        f_val, p_val = stats.f_oneway(*groups)
        row = table.row('g')
        assert row.df == 2
        assert row.f_value == pytest.approx(f_val, rel=1e-10)
        assert row.p_value == pytest.approx(p_val, rel=1e-8)

    def test_residual_row_matches_fit(self, ancova_df):
        model = lm('y ~ g', ancova_df)
        table = anova(model)
        assert table.residual_df == model.df_residual
        assert table.residual_ss == pytest.approx(model.rss)
        assert table.residual_ms == pytest.approx(model.rss / model.df_residual)
        resid = table.table[-1]
        assert resid.term == 'Residuals'
        assert resid.f_value is None


class TestTypeI:

    def test_sum_of_squares_partition_total(self, ancova_df):
        table = anova(lm('y ~ x + g', ancova_df))
        y = ancova_df['y'].to_numpy()
        tss = np.sum((y - y.mean()) ** 2)
        assert sum(r.sum_sq for r in table.table) == pytest.approx(tss, rel=1e-10)

    def test_order_dependent(self, unbalanced_df):
        ab = anova(lm('y ~ a + b', unbalanced_df))
        ba = anova(lm('y ~ b + a', unbalanced_df))
        assert ab.row('a').sum_sq != pytest.approx(ba.row('a').sum_sq, rel=1e-6)
        assert ab.residual_ss == pytest.approx(ba.residual_ss)
        total_ab = sum(r.sum_sq for r in ab.table)
        total_ba = sum(r.sum_sq for r in ba.table)
        assert total_ab == pytest.approx(total_ba)

    def test_sequential_against_refits(self, ancova_df):
        table = anova(lm('y ~ x + g', ancova_df))
        y = ancova_df['y']
        rss0 = float(np.sum((y - y.mean()) ** 2))
        rss_x = lm('y ~ x', ancova_df).rss
        rss_full = lm('y ~ x + g', ancova_df).rss
        assert table.row('x').sum_sq == pytest.approx(rss0 - rss_x)
        assert table.row('g').sum_sq == pytest.approx(rss_x - rss_full)

    def test_ancova_group_effect(self, ancova_df):
        table = anova(lm('y ~ x + g', ancova_df))
        assert [r.term for r in table.table] == ['x', 'g', 'Residuals']
        assert table.row('x').p_value < 1e-10
        assert table.row('g').p_value < 1e-10

    def test_interaction_rows(self, ancova_df):
        table = anova(lm('y ~ x * g', ancova_df))
        assert [r.term for r in table.table] == ['x', 'g', 'x:g', 'Residuals']
        assert table.row('x:g').df == 2
        # common slope in the data
        assert table.row('x:g').p_value > 0.001


class TestTypeII:

    def test_additive_model_against_refits(self, unbalanced_df):
        table = anova(lm('y ~ a + b', unbalanced_df), ss_type=2)
        rss_full = lm('y ~ a + b', unbalanced_df).rss
        assert table.row('a').sum_sq == pytest.approx(lm('y ~ b', unbalanced_df).rss - rss_full)
        assert table.row('b').sum_sq == pytest.approx(lm('y ~ a', unbalanced_df).rss - rss_full)

    def test_order_invariant(self, unbalanced_df):
        ab = anova(lm('y ~ a + b + x', unbalanced_df), ss_type=2)
        ba = anova(lm('y ~ x + b + a', unbalanced_df), ss_type=2)
        for term in ('a', 'b', 'x'):
            assert ab.row(term).sum_sq == pytest.approx(ba.row(term).sum_sq, rel=1e-8)

    def test_interaction_respects_marginality(self, unbalanced_df):
        table = anova(lm('y ~ a * b', unbalanced_df), ss_type=2)
        rss_additive = lm('y ~ a + b', unbalanced_df).rss
        # SS(a) ignores the a:b term that contains it
        expected = lm('y ~ b', unbalanced_df).rss - rss_additive
        assert table.row('a').sum_sq == pytest.approx(expected, rel=1e-8)
        assert table.ss_type == 2

    def test_last_term_matches_type_one(self, ancova_df):
        one = anova(lm('y ~ x + g', ancova_df))
        two = anova(lm('y ~ x + g', ancova_df), ss_type=2)
        assert two.row('g').sum_sq == pytest.approx(one.row('g').sum_sq)
        assert two.row('g').f_value == pytest.approx(one.row('g').f_value)


class TestEffectSizes:

    def test_eta_squared(self, ancova_df):
        table = anova(lm('y ~ x + g', ancova_df))
        total = sum(r.sum_sq for r in table.table)
        ss_g = table.row('g').sum_sq
        assert table.eta_squared['g'] == pytest.approx(ss_g / total)
        assert table.partial_eta_squared['g'] == pytest.approx(
            ss_g / (ss_g + table.residual_ss)
        )
        assert set(table.eta_squared) == {'x', 'g'}


class TestArrayDesigns:

    def test_columns_are_terms(self, simple_regression_data):
        X, y, _ = simple_regression_data
        table = anova(fit(X, y))
        assert [r.term for r in table.table] == ['x1', 'x2', 'Residuals']
        assert table.info['terms'] == ['x1', 'x2']

    def test_aliased_columns_dropped(self, collinear_data):
        X, y = collinear_data
        table = anova(fit(X, y))
        assert [r.term for r in table.table] == ['x1', 'x2', 'Residuals']
        assert table.residual_df == 97
        assert any('x3' in w for w in table.warnings)

    def test_intercept_only_warns(self, line_df):
        table = anova(lm('y ~ 1', line_df))
        assert [r.term for r in table.table] == ['Residuals']
        assert any('no terms' in w for w in table.warnings)


class TestOutput:

    def test_to_dataframe(self, ancova_df):
        frame = anova(lm('y ~ x + g', ancova_df)).to_dataframe()
        assert list(frame.columns) == ['df', 'sum_sq', 'mean_sq', 'f_value', 'p_value']
        assert list(frame.index) == ['x', 'g', 'Residuals']
        assert frame.index.name == 'term'
        assert np.isnan(frame.loc['Residuals', 'f_value'])

    def test_summary(self, ancova_df):
        text = anova(lm('y ~ x + g', ancova_df)).summary()
        assert text.startswith('Analysis of Variance Table (Type 1 SS)')
        assert 'Response: y' in text
        assert 'Pr(>F)' in text
        assert 'Effect sizes:' in text

    def test_repr(self, ancova_df):
        table = anova(lm('y ~ x + g', ancova_df))
        assert isinstance(table, AnovaSolution)
        assert repr(table) == "AnovaSolution(type=1, n=60, terms=['x', 'g'])"

    def test_missing_row(self, ancova_df):
        with pytest.raises(KeyError, match="No term"):
            anova(lm('y ~ x', ancova_df)).row('g')


class TestErrors:

    def test_type_three_rejected(self, ancova_df):
        with pytest.raises(ValidationError, match="Type III"):
            anova(lm('y ~ x + g', ancova_df), ss_type=3)

    def test_not_a_model(self):
        with pytest.raises(TypeError, match="anova"):
            anova(np.ones(3))
