"""
R-style model formulas.

Public API:
    parse_formula(text) -> FormulaSpec
    build_model_matrix(formula, data) -> ModelMatrix

Example:
    >>> from pylinmodels.formula import build_model_matrix
    >>> mm = build_model_matrix('y ~ x * g', df)
    >>> mm.column_names
    ['(Intercept)', 'x', 'gB', 'x:gB']
"""

from pylinmodels.formula.parser import (
    FormulaSpec, RandomTerm, Term, INTERCEPT, parse_formula, term_label,
)
from pylinmodels.formula.model_matrix import (
    ModelMatrix, RandomBlock, build_model_matrix, evaluate_factor,
)

__all__ = [
    "parse_formula",
    "build_model_matrix",
    "evaluate_factor",
    "FormulaSpec",
    "RandomTerm",
    "ModelMatrix",
    "RandomBlock",
    "Term",
    "INTERCEPT",
    "term_label",
]
