"""
Core infrastructure for pylinmodels.

This module provides shared abstractions and utilities used by all
domain-specific submodules (regression, mixed, anova, ...).

Key components:
    datasource: DataSource column container
    result: Generic Result[P] envelope
    exceptions: Exception hierarchy
    validation: Input validators
    compute: Timing, tolerances, linear algebra kernels
"""

from pylinmodels.core.datasource import DataSource
from pylinmodels.core.result import Result
from pylinmodels.core.exceptions import (
    PyLinModelsError,
    ValidationError,
    DimensionError,
    FormulaError,
    NumericalError,
    SingularMatrixError,
    ConvergenceError,
)

__all__ = [
    "DataSource",
    "Result",
    # Exceptions
    "PyLinModelsError",
    "ValidationError",
    "DimensionError",
    "FormulaError",
    "NumericalError",
    "SingularMatrixError",
    "ConvergenceError",
]
