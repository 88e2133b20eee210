"""
Profiled deviance for linear mixed models.

β and σ² are profiled out analytically, leaving a function of θ only
that the outer optimizer minimizes.

References:
    Bates, D., Maechler, M., Bolker, B., & Walker, S. (2015).
    Fitting Linear Mixed-Effects Models Using lme4.
    Journal of Statistical Software, 67(1), Section 2.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from pylinmodels.mixed._random_effects import RandomEffectSpec, build_lambda
from pylinmodels.mixed._pls import PLSResult, solve_pls


def deviance_from_pls(pls: PLSResult, n: int, p: int, reml: bool) -> float:
    """
    Profiled deviance (-2 log-likelihood) at a PLS solution.

    ML:   d(θ) = log|L_θ|² + n × [1 + log(2π × pwrss/n)]

    REML: d(θ) = log|L_θ|² + log|RX|² + (n-p) × [1 + log(2π × pwrss/(n-p))]
    """
    if reml:
        df = n - p
        return float(
            pls.log_det_L + pls.log_det_RX
            + df * (1.0 + np.log(2.0 * np.pi * pls.pwrss / df))
        )
    return float(pls.log_det_L + n * (1.0 + np.log(2.0 * np.pi * pls.pwrss / n)))


def profiled_deviance_lmm(
    theta: NDArray,
    X: NDArray,
    Z: NDArray,
    y: NDArray,
    specs: list[RandomEffectSpec],
    reml: bool = True,
) -> float:
    """Compute the profiled REML (or ML) deviance for given θ."""
    n, p = X.shape
    pls = solve_pls(X, Z, y, build_lambda(theta, specs), reml=reml)
    return deviance_from_pls(pls, n, p, reml)
