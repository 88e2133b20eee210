"""
Common types for regression diagnostics.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray

from pylinmodels.regression.solution import format_pvalue


@dataclass(frozen=True)
class TestResult:
    """
    Outcome of a single diagnostic test.

    Attributes:
        statistic: Test statistic value
        p_value: p-value, or None when the test reports no p-value
        df: Degrees of freedom of the reference distribution, if any
        method: Human-readable name, e.g. 'studentized Breusch-Pagan test'
        statistic_name: Symbol of the statistic ('BP', 'W', 'DW')
    """
    statistic: float
    p_value: float | None
    df: float | None
    method: str
    statistic_name: str = 'statistic'

    __test__ = False  # not a pytest class

    def summary(self) -> str:
        parts = [f"{self.statistic_name} = {self.statistic:.5g}"]
        if self.df is not None:
            parts.append(f"df = {self.df:g}")
        if self.p_value is not None:
            parts.append(f"p-value = {format_pvalue(self.p_value)}")
        return f"\t{self.method}\n\n" + ", ".join(parts)

    def __str__(self) -> str:
        return self.summary()


@dataclass(frozen=True)
class InfluenceParams:
    """
    Case-wise influence measures of a fitted model.

    All arrays have one entry per observation. Observations with leverage
    1 have NaN standardised residuals and influence.
    """
    hat: NDArray[np.floating[Any]]
    std_residuals: NDArray[np.floating[Any]]
    student_residuals: NDArray[np.floating[Any]]
    sigma: NDArray[np.floating[Any]]
    cooks_distance: NDArray[np.floating[Any]]
    dffits: NDArray[np.floating[Any]]
    std_pearson_residuals: NDArray[np.floating[Any]] | None = None
