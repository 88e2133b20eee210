"""
Payload types stored in the Result of a mixed-model fit.
"""

from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray


@dataclass(frozen=True)
class VarCompSummary:
    """
    One row of the VarCorr table: a term varying over a grouping factor.

    corr is the correlation with the first term of the same factor
    (the random intercept when there is one); None on that first row.
    """
    group: str
    name: str
    variance: float
    std_dev: float
    corr: float | None = None


@dataclass(frozen=True)
class LMMParams:
    """
    Estimates from lmm() or lmer().

    Fixed-effect tests are Wald z against N(0, 1); deviance holds the
    REML criterion for a REML fit and -2 logLik for an ML one.
    """
    coefficients: NDArray
    coefficient_names: tuple[str, ...]
    vcov: NDArray
    se: NDArray
    z_values: NDArray
    p_values: NDArray

    var_components: tuple[VarCompSummary, ...]
    residual_variance: float
    residual_std: float

    log_likelihood: float
    deviance: float
    reml: bool
    aic: float
    bic: float
    n_obs: int
    n_groups: dict[str, int]

    converged: bool
    n_iter: int

    # factor -> (levels, terms) array of conditional modes
    random_effects: dict[str, NDArray]
    random_effect_terms: dict[str, tuple[str, ...]]
    random_effect_levels: dict[str, tuple[Any, ...]]

    fitted_values: NDArray
    fixed_fitted: NDArray
    residuals: NDArray

    theta: NDArray
