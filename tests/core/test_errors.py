"""
Tests for the pylinmodels exception hierarchy.
"""

import pytest

from pylinmodels.core.exceptions import (
    ConvergenceError,
    DimensionError,
    FormulaError,
    NumericalError,
    PyLinModelsError,
    SingularMatrixError,
    ValidationError,
)
from pylinmodels.estimation import ml_fit
from pylinmodels.formula import parse_formula


class TestInheritance:
    """Every exception is catchable via PyLinModelsError."""

    @pytest.mark.parametrize("exc", [
        ValidationError("bad"),
        DimensionError("shape"),
        FormulaError("formula"),
        NumericalError("num"),
        SingularMatrixError("singular"),
        ConvergenceError("stuck", iterations=3),
    ])
    def test_catchable_as_base(self, exc):
        with pytest.raises(PyLinModelsError):
            raise exc

    def test_validation_branch(self):
        assert issubclass(DimensionError, ValidationError)
        assert issubclass(FormulaError, ValidationError)

    def test_numerical_branch(self):
        assert issubclass(SingularMatrixError, NumericalError)
        assert not issubclass(ConvergenceError, NumericalError)


class TestFormulaError:

    def test_caret_under_position(self):
        err = FormulaError("Unexpected '$'", formula="y ~ x $ z", position=6)
        lines = str(err).splitlines()
        assert lines[0] == "Unexpected '$'"
        assert lines[1].strip() == "y ~ x $ z"
        assert lines[2].index('^') == lines[1].index('$')

    def test_message_only(self):
        err = FormulaError("Formula must contain '~'")
        assert str(err) == "Formula must contain '~'"
        assert err.formula is None
        assert err.position is None

    def test_raised_by_parser(self):
        with pytest.raises(FormulaError) as exc_info:
            parse_formula('y ~ x +')
        assert exc_info.value.formula == 'y ~ x +'


class TestSingularMatrixError:

    def test_attributes(self):
        err = SingularMatrixError("X is rank deficient", matrix_name="X", rank=3, expected_rank=5)
        assert str(err) == "X is rank deficient"
        assert (err.matrix_name, err.rank, err.expected_rank) == ("X", 3, 5)

    def test_defaults_are_none(self):
        err = SingularMatrixError("singular")
        assert err.matrix_name is None
        assert err.rank is None
        assert err.expected_rank is None

    def test_raised_by_ml_fit(self, collinear_data):
        X, y = collinear_data
        with pytest.raises(SingularMatrixError) as exc_info:
            ml_fit(X, y)
        assert exc_info.value.matrix_name == 'X'
        assert exc_info.value.rank == 3


class TestConvergenceError:

    def test_attributes(self):
        err = ConvergenceError("IRLS failed", iterations=25, reason="non_finite")
        assert str(err) == "IRLS failed"
        assert err.iterations == 25
        assert err.reason == "non_finite"

    def test_reason_defaults_to_none(self):
        assert ConvergenceError("failed", 10).reason is None
