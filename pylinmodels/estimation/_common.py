"""
Shared types and likelihood kernels for the estimation module.

The normal linear model y = Xβ + ε, ε ~ N(0, σ²I) has log-likelihood

    ℓ(β, σ²) = -n/2·log(2πσ²) - ||y - Xβ||² / (2σ²)

and restricted (REML) log-likelihood, which integrates β out,

    ℓ_R(σ²) = -(n-p)/2·log(2πσ²) - ½·log|X'X| - RSS / (2σ²)

Their maximisers are σ²_ML = RSS/n and σ²_REML = RSS/(n-p).
"""

from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray


@dataclass(frozen=True)
class MLParams:
    """Parameter payload for a maximum likelihood normal linear model."""
    coefficients: NDArray[np.floating[Any]]
    sigma: float
    log_likelihood: float
    covariance: NDArray[np.floating[Any]]
    fitted_values: NDArray[np.floating[Any]]
    residuals: NDArray[np.floating[Any]]
    n_iter: int
    n_fev: int
    converged: bool
    gradient_norm: float


def normal_log_likelihood(
    y: NDArray[np.floating[Any]],
    mu: NDArray[np.floating[Any]],
    sigma2: float,
) -> float:
    """
    Gaussian log-likelihood Σ log φ(y_i; μ_i, σ²).

    Args:
        y: Observations (n,)
        mu: Means (n,) or a scalar
        sigma2: Variance σ² > 0
    """
    y = np.asarray(y, dtype=np.float64)
    resid = y - mu
    n = y.shape[0]
    return float(-0.5 * n * np.log(2.0 * np.pi * sigma2) - 0.5 * (resid @ resid) / sigma2)


def negative_log_likelihood(
    theta: NDArray[np.floating[Any]],
    X: NDArray[np.floating[Any]],
    y: NDArray[np.floating[Any]],
) -> tuple[float, NDArray[np.floating[Any]]]:
    """
    Per-observation negative log-likelihood over θ = (β, log σ) and its gradient.

    Dividing by n keeps the gradient scale independent of sample size,
    so one gradient tolerance works across data sets.
    """
    n = X.shape[0]
    beta = theta[:-1]
    log_sigma = theta[-1]
    sigma2 = np.exp(2.0 * log_sigma)

    resid = y - X @ beta
    rss = resid @ resid
    nll = 0.5 * np.log(2.0 * np.pi) + log_sigma + 0.5 * rss / (n * sigma2)

    grad = np.empty_like(theta)
    grad[:-1] = -(X.T @ resid) / (n * sigma2)
    grad[-1] = 1.0 - rss / (n * sigma2)
    return float(nll), grad


def observed_information(
    X: NDArray[np.floating[Any]],
    resid: NDArray[np.floating[Any]],
    sigma: float,
) -> NDArray[np.floating[Any]]:
    """
    Observed information -∂²ℓ at (β, σ), ordered (β..., σ).

        -∂²ℓ/∂β∂β' = X'X / σ²
        -∂²ℓ/∂β∂σ  = 2X'e / σ³
        -∂²ℓ/∂σ²   = -n/σ² + 3e'e/σ⁴
    """
    n, p = X.shape
    info = np.empty((p + 1, p + 1), dtype=np.float64)
    info[:p, :p] = X.T @ X / sigma ** 2
    cross = 2.0 * (X.T @ resid) / sigma ** 3
    info[:p, p] = cross
    info[p, :p] = cross
    info[p, p] = -n / sigma ** 2 + 3.0 * (resid @ resid) / sigma ** 4
    return info


def reml_log_likelihood(
    sigma2: float,
    rss: float,
    n: int,
    p: int,
    logdet_xtx: float,
) -> float:
    """Restricted log-likelihood of σ² for a normal linear model."""
    return float(
        -0.5 * (n - p) * np.log(2.0 * np.pi * sigma2)
        - 0.5 * logdet_xtx
        - 0.5 * rss / sigma2
    )
