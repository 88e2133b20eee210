"""
ANOVA, ANCOVA and nested model comparison.

Public API:
    anova(model, ss_type=1) -> AnovaSolution | ComparisonSolution
    anova(model1, model2, ...) -> ComparisonSolution

Examples:
    >>> from pylinmodels import lm, anova
    >>> anova(lm('y ~ x + g', df))              # ANCOVA, sequential SS
    >>> anova(lm('y ~ x', df), lm('y ~ x * g', df))
"""

from pylinmodels.anova._common import (
    AnovaParams, AnovaTableRow, ComparisonParams, ComparisonRow,
)
from pylinmodels.anova.solution import AnovaSolution, ComparisonSolution
from pylinmodels.anova.solvers import anova

__all__ = [
    "anova",
    "AnovaSolution",
    "ComparisonSolution",
    "AnovaParams",
    "AnovaTableRow",
    "ComparisonParams",
    "ComparisonRow",
]
