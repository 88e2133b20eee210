"""
Tests for R-style formula parsing.

Term expansion follows R's terms.formula: '*' expands to main effects
plus the interaction, '/' to nesting, '^' to interactions up to a
degree, and terms are ordered by interaction order.
"""

import pytest

from pylinmodels.core.exceptions import FormulaError
from pylinmodels.formula import parse_formula, term_label, INTERCEPT


class TestBasicTerms:

    def test_simple(self):
        spec = parse_formula('y ~ x')
        assert spec.response == 'y'
        assert spec.term_labels == ['x']
        assert spec.intercept

    def test_sum(self):
        assert parse_formula('y ~ a + b + c').term_labels == ['a', 'b', 'c']

    def test_duplicates_removed(self):
        assert parse_formula('y ~ a + a').term_labels == ['a']

    def test_one_sided(self):
        spec = parse_formula('~ x + z')
        assert spec.response is None
        assert spec.term_labels == ['x', 'z']

    def test_intercept_only(self):
        spec = parse_formula('y ~ 1')
        assert spec.terms == ()
        assert spec.intercept


class TestIntercept:

    @pytest.mark.parametrize("text", ['y ~ x - 1', 'y ~ 0 + x', 'y ~ -1 + x'])
    def test_removed(self, text):
        spec = parse_formula(text)
        assert not spec.intercept
        assert spec.term_labels == ['x']

    def test_explicit(self):
        assert parse_formula('y ~ 1 + x').intercept


class TestOperators:

    def test_crossing(self):
        assert parse_formula('y ~ a * b').term_labels == ['a', 'b', 'a:b']

    def test_three_way_crossing_ordered_by_degree(self):
        labels = parse_formula('y ~ a * b * c').term_labels
        assert labels == ['a', 'b', 'c', 'a:b', 'a:c', 'b:c', 'a:b:c']

    def test_interaction_only(self):
        assert parse_formula('y ~ a:b').term_labels == ['a:b']

    def test_nesting(self):
        assert parse_formula('y ~ a / b').term_labels == ['a', 'a:b']

    def test_power(self):
        labels = parse_formula('y ~ (a + b + c)^2').term_labels
        assert labels == ['a', 'b', 'c', 'a:b', 'a:c', 'b:c']

    def test_term_removal(self):
        assert parse_formula('y ~ a * b - a:b').term_labels == ['a', 'b']

    def test_interaction_order_insensitive(self):
        assert parse_formula('y ~ a:b + b:a').term_labels == ['a:b']


class TestFunctionCalls:

    def test_kept_verbatim(self):
        spec = parse_formula('log(y) ~ log(x) + I(x^2)')
        assert spec.response == 'log(y)'
        assert spec.term_labels == ['log(x)', 'I(x^2)']

    def test_call_with_operators_inside(self):
        assert parse_formula('y ~ I(a + b)').term_labels == ['I(a + b)']

    def test_variables(self):
        spec = parse_formula('y ~ x * g + (1 | s)')
        assert spec.variables == ['y', 'x', 'g', 's']


class TestRandomTerms:

    def test_random_intercept(self):
        spec = parse_formula('y ~ x + (1 | g)')
        assert spec.term_labels == ['x']
        assert len(spec.random_terms) == 1
        r = spec.random_terms[0]
        assert r.group == 'g'
        assert r.intercept
        assert r.labels == ['(Intercept)']

    def test_random_slope(self):
        r = parse_formula('y ~ x + (1 + x | g)').random_terms[0]
        assert r.labels == ['(Intercept)', 'x']

    def test_slope_without_intercept(self):
        r = parse_formula('y ~ x + (0 + x | g)').random_terms[0]
        assert not r.intercept
        assert r.labels == ['x']

    def test_implicit_intercept(self):
        r = parse_formula('y ~ (x | g)').random_terms[0]
        assert r.labels == ['(Intercept)', 'x']

    def test_fixed_only(self):
        spec = parse_formula('y ~ x + (1 | g)').fixed_only()
        assert not spec.has_random
        assert spec.term_labels == ['x']

    def test_str_round_trip(self):
        spec = parse_formula('y ~ x + (1 + x | g)')
        assert str(spec) == 'y ~ x + (1 + x | g)'


class TestErrors:

    def test_missing_tilde(self):
        with pytest.raises(FormulaError, match="'~'"):
            parse_formula('y + x')

    def test_empty_rhs(self):
        with pytest.raises(FormulaError, match="Empty right-hand side"):
            parse_formula('y ~ ')

    def test_unbalanced_parentheses(self):
        with pytest.raises(FormulaError):
            parse_formula('y ~ (a + b')

    def test_bad_character_position(self):
        with pytest.raises(FormulaError) as exc_info:
            parse_formula('y ~ x $ z')
        assert exc_info.value.position == 6

    def test_bad_power(self):
        with pytest.raises(FormulaError, match="positive integer"):
            parse_formula('y ~ (a + b)^0')

    def test_numeric_literal(self):
        with pytest.raises(FormulaError, match="not a term"):
            parse_formula('y ~ 2')

    def test_random_term_without_effects(self):
        with pytest.raises(FormulaError, match="no effects"):
            parse_formula('y ~ (0 | g)')

    def test_not_a_string(self):
        with pytest.raises(TypeError):
            parse_formula(42)


class TestTermLabel:

    def test_intercept(self):
        assert term_label(INTERCEPT) == '(Intercept)'

    def test_interaction(self):
        assert term_label(('a', 'b')) == 'a:b'
