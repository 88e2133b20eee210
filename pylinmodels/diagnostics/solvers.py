"""
Regression diagnostics.

Public API:
    influence(model)                       -> InfluenceParams
    breusch_pagan(model, studentize=True)  -> TestResult
    shapiro_wilk(model)                    -> TestResult
    durbin_watson(model)                   -> TestResult
    diagnose(model)                        -> DiagnosticsSolution
"""

from __future__ import annotations

import warnings
from typing import Any

import numpy as np
from numpy.typing import NDArray
from scipy import stats

from pylinmodels.core.compute.linalg.qr import qr_solve, fitted_from
from pylinmodels.core.compute.timing import Timer
from pylinmodels.core.exceptions import ValidationError
from pylinmodels.core.result import Result
from pylinmodels.diagnostics._common import InfluenceParams, TestResult
from pylinmodels.diagnostics.solution import DiagnosticsSolution
from pylinmodels.regression.solution import GLMSolution, LinearSolution


def _require_model(model: Any, allowed: tuple[type, ...], what: str) -> None:
    if not isinstance(model, allowed):
        names = ' or '.join(t.__name__ for t in allowed)
        raise TypeError(f"{what} needs a {names}, got {type(model).__name__}")


def _safe_one_minus(h: NDArray) -> NDArray:
    """1 - h with exact leverage-one points mapped to NaN."""
    return np.where(h < 1.0 - 1e-10, 1.0 - h, np.nan)


def influence(model: LinearSolution | GLMSolution) -> InfluenceParams:
    """
    Leave-one-out influence measures, as R's influence.measures.

    Linear model, with e residuals, h leverage, s the residual standard
    error and p the rank:

        std residual   r_i  = e_i / (s √(1-h_i))
        LOO sigma      s_(i) = √((RSS - e_i²/(1-h_i)) / (n-p-1))
        studentised    t_i  = e_i / (s_(i) √(1-h_i))
        Cook's D       D_i  = r_i² h_i / (p (1-h_i))
        DFFITS              = t_i √(h_i/(1-h_i))

    For a GLM the leverage comes from the final IRLS weights, the
    standardised residuals are deviance residuals scaled by √(φ(1-h)),
    and Cook's distance uses Pearson residuals.

    Raises:
        TypeError: If model is not a LinearSolution or GLMSolution
    """
    _require_model(model, (LinearSolution, GLMSolution), 'influence')
    h = np.asarray(model.hat_values, dtype=np.float64)
    one_minus_h = _safe_one_minus(h)
    p = model.rank
    df = model.df_residual

    if isinstance(model, LinearSolution):
        e = model.residuals
        s = model.residual_std_error
        with np.errstate(divide='ignore', invalid='ignore'):
            std_resid = e / (s * np.sqrt(one_minus_h))
            sigma_i = _loo_sigma(e, one_minus_h, df)
            student = e / (sigma_i * np.sqrt(one_minus_h))
            cooks = std_resid ** 2 * h / (p * one_minus_h)
            dffits = student * np.sqrt(h / one_minus_h)
        return InfluenceParams(
            hat=h,
            std_residuals=std_resid,
            student_residuals=student,
            sigma=sigma_i,
            cooks_distance=cooks,
            dffits=dffits,
        )

    phi = model.dispersion
    r_dev = model.residuals_deviance
    r_pear = model.residuals_pearson
    with np.errstate(divide='ignore', invalid='ignore'):
        std_dev = r_dev / np.sqrt(phi * one_minus_h)
        std_pear = r_pear / np.sqrt(phi * one_minus_h)
        sigma_i = _loo_sigma(r_dev, one_minus_h, df)
        # likelihood residuals, as R's rstudent.glm
        r = np.sign(r_dev) * np.sqrt(r_dev ** 2 + h * r_pear ** 2 / one_minus_h)
        if model.family.dispersion_is_fixed:
            student = r / np.sqrt(one_minus_h)
        else:
            student = r / (sigma_i * np.sqrt(one_minus_h))
        cooks = (r_pear / one_minus_h) ** 2 * h / (phi * p)
        dffits = student * np.sqrt(h / one_minus_h)
    return InfluenceParams(
        hat=h,
        std_residuals=std_dev,
        student_residuals=student,
        sigma=sigma_i,
        cooks_distance=cooks,
        dffits=dffits,
        std_pearson_residuals=std_pear,
    )


def _loo_sigma(e: NDArray, one_minus_h: NDArray, df: int) -> NDArray:
    if df <= 1:
        return np.full(e.shape, np.nan)
    ss = float(e @ e) - e ** 2 / one_minus_h
    return np.sqrt(np.maximum(ss, 0.0) / (df - 1))


def breusch_pagan(model: LinearSolution, studentize: bool = True) -> TestResult:
    """
    Breusch-Pagan test for heteroskedasticity.

    Regresses the squared residuals on the model's design matrix.
    The default is Koenker's studentised version, robust to non-normal
    errors, which uses n·R² of that auxiliary regression. The original
    test uses half the explained sum of squares of e²/σ̂² - 1. Both are
    χ² with df = rank(X) - 1 under homoskedasticity.

    Raises:
        TypeError: If model is not a LinearSolution
        ValidationError: If the design has no regressors besides the intercept
    """
    _require_model(model, (LinearSolution,), 'breusch_pagan')
    X = model.design.X
    e = model.residuals
    n = len(e)
    sigma2 = float(e @ e) / n

    if studentize:
        w = e ** 2 - sigma2
        coef, qr = qr_solve(X, w)
        fitted = fitted_from(X, coef)
        bp = n * float(fitted @ fitted) / float(w @ w)
        method = 'studentized Breusch-Pagan test'
    else:
        f = e ** 2 / sigma2 - 1.0
        coef, qr = qr_solve(X, f)
        fitted = fitted_from(X, coef)
        bp = 0.5 * float(fitted @ fitted)
        method = 'Breusch-Pagan test'

    df = qr.rank - 1
    if df < 1:
        raise ValidationError(
            "breusch_pagan: the model has no regressors besides the intercept"
        )
    return TestResult(
        statistic=bp,
        p_value=float(stats.chi2.sf(bp, df)),
        df=float(df),
        method=method,
        statistic_name='BP',
    )


def _working_residuals(model: LinearSolution | GLMSolution) -> NDArray:
    if isinstance(model, GLMSolution):
        return model.residuals_deviance
    return model.residuals


def shapiro_wilk(model: LinearSolution | GLMSolution) -> TestResult:
    """
    Shapiro-Wilk normality test of the residuals (deviance residuals for a GLM).

    Raises:
        TypeError: If model is not a LinearSolution or GLMSolution
        ValidationError: If there are fewer than 3 residuals
    """
    _require_model(model, (LinearSolution, GLMSolution), 'shapiro_wilk')
    e = _working_residuals(model)
    if len(e) < 3:
        raise ValidationError(f"shapiro_wilk: needs at least 3 residuals, got {len(e)}")
    w, p = stats.shapiro(e)
    return TestResult(
        statistic=float(w),
        p_value=float(p),
        df=None,
        method='Shapiro-Wilk normality test',
        statistic_name='W',
    )


def durbin_watson(model: LinearSolution | GLMSolution) -> TestResult:
    """
    Durbin-Watson statistic Σ(e_t - e_{t-1})² / Σe_t².

    Values near 2 indicate no first-order autocorrelation in the
    residuals taken in observation order. No p-value is reported.
    """
    _require_model(model, (LinearSolution, GLMSolution), 'durbin_watson')
    e = _working_residuals(model)
    denom = float(e @ e)
    if denom == 0.0:
        raise ValidationError("durbin_watson: residuals are all zero")
    dw = float(np.sum(np.diff(e) ** 2)) / denom
    return TestResult(
        statistic=dw,
        p_value=None,
        df=None,
        method='Durbin-Watson test',
        statistic_name='DW',
    )


def diagnose(model: LinearSolution | GLMSolution) -> DiagnosticsSolution:
    """
    Influence measures and residual tests in one report.

    High-leverage points have h > 2p/n; influential points have
    Cook's distance > 4/n. The Breusch-Pagan test is run for linear
    models with at least one regressor besides the intercept.

    Example:
        >>> report = diagnose(lm('y ~ x', df))
        >>> print(report.summary())
    """
    _require_model(model, (LinearSolution, GLMSolution), 'diagnose')
    timer = Timer()
    timer.start()
    warn_list: list[str] = []

    with timer.section('influence'):
        infl = influence(model)

    tests: dict[str, TestResult] = {}
    with timer.section('tests'):
        if isinstance(model, LinearSolution) and model.rank > int(model.design.has_intercept):
            tests['breusch_pagan'] = breusch_pagan(model)
        if model.nobs >= 3:
            tests['shapiro_wilk'] = shapiro_wilk(model)
        else:
            warn_list.append("Too few observations for the Shapiro-Wilk test")
        tests['durbin_watson'] = durbin_watson(model)

    n, p = model.nobs, model.rank
    with np.errstate(invalid='ignore'):
        high_leverage = np.flatnonzero(infl.hat > 2.0 * p / n)
        influential = np.flatnonzero(infl.cooks_distance > 4.0 / n)
    if np.any(infl.hat >= 1.0 - 1e-10):
        msg = "Some observations have leverage one; their residual diagnostics are NaN"
        warnings.warn(msg, RuntimeWarning, stacklevel=2)
        warn_list.append(msg)
    timer.stop()

    result = Result(
        params=infl,
        info={
            'tests': tests,
            'high_leverage': high_leverage,
            'influential': influential,
            'leverage_cutoff': 2.0 * p / n,
            'cooks_cutoff': 4.0 / n,
            'model_type': type(model).__name__,
        },
        timing=timer.result(),
        backend_name='cpu_diagnostics',
        warnings=tuple(warn_list),
    )
    return DiagnosticsSolution(_result=result)
