"""
Errors raised by pylinmodels.

    PyLinModelsError
    ├── ValidationError           bad arguments or data
    │   ├── DimensionError        shapes or lengths disagree
    │   └── FormulaError          formula text does not parse or evaluate
    ├── NumericalError
    │   └── SingularMatrixError   a model cannot be identified from X
    └── ConvergenceError          IRLS or an optimizer produced no usable fit

Conditions a fit can recover from (aliased columns, IRLS hitting
max_iter, a boundary variance estimate) are warnings, not exceptions.
"""


class PyLinModelsError(Exception):
    """Base class; catch this to handle any error from the package."""


class ValidationError(PyLinModelsError):
    """An argument or the data failed a check at a public entry point."""


class DimensionError(ValidationError):
    """Array shapes or observation counts do not match."""


class FormulaError(ValidationError):
    """
    A model formula is malformed or refers to something it cannot use.

    When the failing character is known the message gets the formula
    with a caret under that position:

        Unexpected character '$'
            y ~ x $ z
                  ^

    Attributes:
        formula: The formula text
        position: 0-based offset of the failing character, or None
    """

    def __init__(
        self,
        message: str,
        formula: str | None = None,
        position: int | None = None,
    ):
        if formula is not None and position is not None:
            message = f"{message}\n    {formula}\n    {' ' * position}^"
        super().__init__(message)
        self.formula = formula
        self.position = position


class NumericalError(PyLinModelsError):
    """The data are valid but the computation cannot proceed."""


class SingularMatrixError(NumericalError):
    """
    A model matrix is rank deficient where full rank is required.

    Least-squares fits handle rank deficiency by aliasing columns; this is
    raised by estimators that cannot (numerical ML, the fixed-effect part
    of a mixed model).

    Attributes:
        matrix_name: Which matrix, e.g. 'X'
        rank: Numerical rank found, if computed
        expected_rank: Rank needed for identification
    """

    def __init__(
        self,
        message: str,
        matrix_name: str | None = None,
        rank: int | None = None,
        expected_rank: int | None = None,
    ):
        super().__init__(message)
        self.matrix_name = matrix_name
        self.rank = rank
        self.expected_rank = expected_rank


class ConvergenceError(PyLinModelsError):
    """
    An iterative fit failed without producing estimates.

    Hitting the iteration limit with a finite fit only warns; this is for
    fits with nothing to return: no valid starting point, non-finite
    coefficients, step-halving that cannot restore a valid deviance, or
    a failed optimizer.

    Attributes:
        iterations: Iterations completed before failing
        reason: Short tag: 'invalid_start', 'non_finite', 'invalid_step',
            'step_halving' or 'optimizer'
    """

    def __init__(
        self,
        message: str,
        iterations: int,
        reason: str | None = None,
    ):
        super().__init__(message)
        self.iterations = iterations
        self.reason = reason
