"""
Payload types for ANOVA tables and model comparisons.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class AnovaTableRow:
    """A term of the table, or the 'Residuals' row with no test."""
    term: str
    df: int
    sum_sq: float
    mean_sq: float
    f_value: float | None
    p_value: float | None


@dataclass(frozen=True)
class AnovaParams:
    """
    Sums-of-squares table for one linear model.

    ss_type is 1 (sequential) or 2 (each term after the others that do
    not contain it). The effect sizes are keyed by term.
    """
    table: tuple[AnovaTableRow, ...]
    ss_type: int
    n_obs: int
    residual_df: int
    residual_ss: float
    residual_ms: float
    eta_squared: dict[str, float]
    partial_eta_squared: dict[str, float]
    formula: str | None


@dataclass(frozen=True)
class ComparisonRow:
    """
    A model, or a term added to the previous row's model.

    df, deviance, statistic and p_value describe the change from the
    previous row and are None on the first. For a linear model the
    deviance columns hold residual sums of squares.
    """
    label: str
    resid_df: int
    resid_dev: float
    df: int | None
    deviance: float | None
    statistic: float | None
    p_value: float | None


@dataclass(frozen=True)
class ComparisonParams:
    """
    A model comparison (sequential=False) or an analysis-of-deviance
    table for one GLM (sequential=True).

    kind is 'lm' or 'glm'; test is 'F' or 'Chisq'.
    """
    rows: tuple[ComparisonRow, ...]
    kind: str
    test: str
    sequential: bool
    n_obs: int
    family_name: str | None = None
    link_name: str | None = None
    dispersion: float | None = None
