"""
Linear mixed models fit by profiled REML or ML.

Public API:
    lmm(y, X, groups, ...) -> LMMSolution
    lmer(formula, data, reml=True) -> LMMSolution

Example:
    >>> from pylinmodels.mixed import lmer
    >>> fit = lmer('y ~ x + (1 | g)', df)
    >>> print(fit.summary())
"""

from pylinmodels.mixed._common import LMMParams, VarCompSummary
from pylinmodels.mixed.design import MixedDesign
from pylinmodels.mixed.solution import LMMSolution, LikelihoodRatioTest
from pylinmodels.mixed.solvers import lmm, lmer

__all__ = [
    "lmm",
    "lmer",
    "LMMSolution",
    "LMMParams",
    "VarCompSummary",
    "LikelihoodRatioTest",
    "MixedDesign",
]
