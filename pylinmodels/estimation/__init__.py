"""
OLS, maximum likelihood and REML for the normal linear model.

Public API:
    ml_fit(X, y) -> MLSolution
    reml_variance(X, y) -> float
    reml_criterion(sigma2, X, y) -> float
    normal_log_likelihood(y, mu, sigma2) -> float
    compare_ols_ml(X, y) -> EstimatorComparison
"""

from pylinmodels.estimation._common import MLParams, normal_log_likelihood
from pylinmodels.estimation.solution import MLSolution, EstimatorComparison
from pylinmodels.estimation.solvers import (
    ml_fit, reml_variance, reml_criterion, compare_ols_ml,
)

__all__ = [
    "ml_fit",
    "reml_variance",
    "reml_criterion",
    "normal_log_likelihood",
    "compare_ols_ml",
    "MLSolution",
    "MLParams",
    "EstimatorComparison",
]
