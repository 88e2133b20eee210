"""
Regression diagnostics: influence, heteroskedasticity, normality, autocorrelation.

Public API:
    influence(model) -> InfluenceParams
    breusch_pagan(model, studentize=True) -> TestResult
    shapiro_wilk(model) -> TestResult
    durbin_watson(model) -> TestResult
    diagnose(model) -> DiagnosticsSolution
"""

from pylinmodels.diagnostics._common import InfluenceParams, TestResult
from pylinmodels.diagnostics.solution import DiagnosticsSolution
from pylinmodels.diagnostics.solvers import (
    influence, breusch_pagan, shapiro_wilk, durbin_watson, diagnose,
)

__all__ = [
    "influence",
    "breusch_pagan",
    "shapiro_wilk",
    "durbin_watson",
    "diagnose",
    "DiagnosticsSolution",
    "InfluenceParams",
    "TestResult",
]
