"""
Public API for likelihood-based estimation.

    ml_fit(X, y)          -> MLSolution        numerical ML (BFGS)
    reml_variance(X, y)   -> float             numerical REML σ²
    compare_ols_ml(X, y)  -> EstimatorComparison
"""

from __future__ import annotations

import warnings
from typing import Any

import numpy as np
from scipy.optimize import minimize, minimize_scalar

from pylinmodels.core.compute.linalg.qr import find_active_columns
from pylinmodels.core.compute.timing import Timer
from pylinmodels.core.compute.tolerances import OPTIMIZER_MAX_ITER
from pylinmodels.core.exceptions import (
    ConvergenceError, SingularMatrixError, ValidationError,
)
from pylinmodels.core.result import Result
from pylinmodels.estimation._common import (
    MLParams, negative_log_likelihood, normal_log_likelihood,
    observed_information, reml_log_likelihood,
)
from pylinmodels.estimation.solution import MLSolution, EstimatorComparison
from pylinmodels.regression.design import Design
from pylinmodels.regression.solvers import fit

# Gradient tolerance on the per-observation objective.
ML_GTOL = 1e-7


def _as_design(X: Any, y: Any, names: list[str] | None) -> Design:
    if isinstance(X, Design):
        if y is not None:
            raise ValidationError("Pass either a Design or (X, y), not both")
        return X
    if y is None:
        raise ValidationError("y is required when X is an array")
    return Design.from_arrays(X, y, names=names)


def _require_full_rank(design: Design) -> None:
    kept, aliased = find_active_columns(design.X)
    if aliased:
        names = [design.names[j] for j in aliased]
        raise SingularMatrixError(
            f"X is rank deficient; aliased column(s): {', '.join(names)}. "
            "Maximum likelihood estimates are not identifiable.",
            matrix_name='X',
            rank=len(kept),
            expected_rank=design.p,
        )


def ml_fit(
    X: Any,
    y: Any = None,
    *,
    names: list[str] | None = None,
    gtol: float = ML_GTOL,
    max_iter: int = OPTIMIZER_MAX_ITER,
) -> MLSolution:
    """
    Fit the normal linear model by numerical maximum likelihood.

    Minimises the negative log-likelihood over θ = (β, log σ) with BFGS
    and an analytic gradient, starting from β = 0 and σ = sd(y). The
    result should reproduce the OLS coefficients and σ²_ML = RSS/n.

    Args:
        X: Design matrix (n x p) or a Design
        y: Response (n,)
        names: Coefficient names
        gtol: Gradient norm tolerance for BFGS
        max_iter: Maximum BFGS iterations

    Returns:
        MLSolution

    Raises:
        SingularMatrixError: If X is rank deficient

    Example:
        >>> ml = ml_fit(X, y)
        >>> ml.coefficients, ml.sigma
    """
    design = _as_design(X, y, names)
    _require_full_rank(design)

    timer = Timer()
    timer.start()
    warnings_list: list[str] = []

    X_arr, y_arr = design.X, design.y
    n, p = design.n, design.p

    sd = float(np.std(y_arr))
    theta0 = np.zeros(p + 1)
    theta0[-1] = np.log(sd) if sd > 0 else 0.0

    with timer.section('optimization'):
        opt = minimize(
            negative_log_likelihood,
            theta0,
            args=(X_arr, y_arr),
            jac=True,
            method='BFGS',
            options={'gtol': gtol, 'maxiter': max_iter},
        )

    beta = opt.x[:-1]
    sigma = float(np.exp(opt.x[-1]))
    grad_norm = float(np.linalg.norm(opt.jac, ord=np.inf))
    # BFGS can report precision loss right at the optimum; accept the
    # point when the gradient is within a small multiple of gtol
    converged = bool(opt.success or grad_norm < 100.0 * gtol)

    if not converged:
        msg = (
            f"ML optimizer did not converge after {opt.nit} iterations "
            f"(|grad|={grad_norm:.2e}): {opt.message}"
        )
        warnings.warn(msg, RuntimeWarning, stacklevel=2)
        warnings_list.append(msg)

    with timer.section('information'):
        fitted = X_arr @ beta
        resid = y_arr - fitted
        info = observed_information(X_arr, resid, sigma)
        try:
            covariance = np.linalg.inv(info)
        except np.linalg.LinAlgError:
            covariance = np.full((p + 1, p + 1), np.nan)
            warnings_list.append("Observed information is singular")

    loglik = normal_log_likelihood(y_arr, fitted, sigma ** 2)
    timer.stop()

    params = MLParams(
        coefficients=beta,
        sigma=sigma,
        log_likelihood=loglik,
        covariance=covariance,
        fitted_values=fitted,
        residuals=resid,
        n_iter=int(opt.nit),
        n_fev=int(opt.nfev),
        converged=converged,
        gradient_norm=grad_norm,
    )
    result = Result(
        params=params,
        info={'method': 'BFGS', 'message': str(opt.message), 'gtol': gtol},
        timing=timer.result(),
        backend_name='cpu_bfgs',
        warnings=tuple(warnings_list),
    )
    return MLSolution(_result=result, _design=design)


def reml_criterion(sigma2: float, X: Any, y: Any) -> float:
    """
    Restricted log-likelihood of σ² for y = Xβ + ε.

        -(n-p)/2·log(2πσ²) - ½·log|X'X| - RSS/(2σ²)
    """
    design = _as_design(X, y, None)
    rss, logdet = _rss_and_logdet(design)
    return reml_log_likelihood(sigma2, rss, design.n, design.p, logdet)


def _rss_and_logdet(design: Design) -> tuple[float, float]:
    _require_full_rank(design)
    ols = fit(design)
    sign, logdet = np.linalg.slogdet(design.XtX())
    return ols.rss, float(logdet)


def reml_variance(X: Any, y: Any = None, *, xtol: float = 1e-12) -> float:
    """
    Numerically maximise the REML criterion over log σ².

    The optimum is σ²_REML = RSS/(n - p), the unbiased OLS variance;
    this function finds it by optimisation rather than by formula.

    Raises:
        ValidationError: If n <= p (no residual degrees of freedom)
        ConvergenceError: If the scalar optimizer fails
    """
    design = _as_design(X, y, None)
    n, p = design.n, design.p
    if n <= p:
        raise ValidationError(f"REML needs n > p, got n={n}, p={p}")
    rss, logdet = _rss_and_logdet(design)
    if rss <= 0:
        return 0.0

    def objective(log_s2: float) -> float:
        return -reml_log_likelihood(np.exp(log_s2), rss, n, p, logdet)

    start = np.log(rss / n)
    res = minimize_scalar(
        objective, bracket=(start - 1.0, start + 1.0), method='brent',
        options={'xtol': xtol},
    )
    if not res.success:
        raise ConvergenceError(
            f"REML variance optimisation failed: {res.message}",
            iterations=int(getattr(res, 'nit', 0)),
            reason='optimizer',
        )
    return float(np.exp(res.x))


def compare_ols_ml(
    X: Any,
    y: Any = None,
    *,
    names: list[str] | None = None,
) -> EstimatorComparison:
    """
    Fit the same normal linear model by OLS, ML and REML.

    Under normal errors the OLS and ML coefficients coincide; the
    variance estimates differ by the factor (n - p)/n.

    Example:
        >>> cmp = compare_ols_ml(X, y)
        >>> cmp.coincide()
        True
        >>> print(cmp.summary())
    """
    design = _as_design(X, y, names)
    ml = ml_fit(design)
    ols = fit(design)
    return EstimatorComparison(
        names=design.names,
        ols_coefficients=ols.coefficients,
        ml_coefficients=ml.coefficients,
        sigma2_ols=ols.residual_std_error ** 2,
        sigma2_ml=ml.sigma2,
        sigma2_reml=reml_variance(design),
        rss=ols.rss,
        n=design.n,
        p=design.p,
        ml_converged=ml.converged,
    )
