"""
lmm() and lmer(): linear mixed models by profiled REML or ML.

For a given θ the fixed effects, conditional modes and σ² follow in
closed form from a penalized least-squares solve, so only θ is
optimised numerically (L-BFGS-B with the diagonal of each relative
covariance factor bounded at zero). Bates et al. (2015), JSS 67(1).
"""

from __future__ import annotations

import warnings
from typing import Any

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy.linalg import cho_solve
from scipy.optimize import OptimizeResult, minimize
from scipy import stats

from pylinmodels.core.compute.timing import Timer
from pylinmodels.core.datasource import DataSource
from pylinmodels.core.exceptions import FormulaError, ValidationError
from pylinmodels.core.result import Result
from pylinmodels.formula.model_matrix import ModelMatrix, build_model_matrix
from pylinmodels.mixed._common import LMMParams, VarCompSummary
from pylinmodels.mixed._deviance import deviance_from_pls, profiled_deviance_lmm
from pylinmodels.mixed._pls import solve_pls
from pylinmodels.mixed._random_effects import (
    RandomEffectSpec, make_spec, parse_random_effects, build_z_matrix,
    build_lambda, relative_factors, theta_lower_bounds, theta_start,
)
from pylinmodels.mixed.design import MixedDesign
from pylinmodels.mixed.solution import LMMSolution
from pylinmodels.regression.design import _default_names

LMM_TOL = 1e-8
LMM_MAX_ITER = 200


def lmm(
    y: ArrayLike,
    X: ArrayLike,
    groups: dict[str, ArrayLike],
    *,
    random_effects: dict[str, list[str]] | None = None,
    random_data: dict[str, ArrayLike] | None = None,
    reml: bool = True,
    tol: float = LMM_TOL,
    max_iter: int = LMM_MAX_ITER,
    names: list[str] | None = None,
) -> LMMSolution:
    """
    Fit a linear mixed model given as arrays.

    Args:
        y: Response (n,)
        X: Fixed-effect design (n, p), intercept column included if wanted
        groups: Grouping factor name -> label per observation
        random_effects: Factor name -> terms varying over it, '1' for the
            intercept; {'subject': ['1', 'time']} is (1 + time | subject).
            Factors not listed get a random intercept.
        random_data: Covariates named by slope terms
        reml: REML (default) or ML. Compare fixed-effect structures with
            ML fits.
        tol: Optimizer tolerance
        max_iter: Optimizer iteration limit
        names: Fixed-effect names, default '(Intercept)', x1, x2, ...

    Examples:
        >>> fit = lmm(y, X, groups={'subject': subject})
        >>> fit = lmm(y, X, groups={'subject': subject},
        ...           random_effects={'subject': ['1', 'time']},
        ...           random_data={'time': time})
    """
    design = MixedDesign.validate(y, X, groups, random_effects, random_data)
    specs = parse_random_effects(
        design.groups, design.random_effects, design.random_data, design.n
    )
    if names is None:
        names = _default_names(design.X)
    elif len(names) != design.p:
        raise ValidationError(f"names has {len(names)} entries, X has {design.p} columns")
    return _fit(design.X, design.y, specs, list(names), reml, tol, max_iter)


def lmer(
    formula: str,
    data: Any,
    *,
    reml: bool = True,
    tol: float = LMM_TOL,
    max_iter: int = LMM_MAX_ITER,
) -> LMMSolution:
    """
    Fit a linear mixed model from a formula with lme4 bar terms.

    '(1 | g)' is a random intercept over g, '(1 + x | g)' adds a slope
    correlated with it, '(0 + x | g)' is the slope alone. Each grouping
    variable may appear in one bar only.

    Raises:
        FormulaError: No response, no bar term, or a grouping variable
            repeated across bars

    Example:
        >>> fit = lmer('y ~ x + (1 | g)', df)
        >>> fit.var_components
    """
    source = DataSource.build(data)
    mm = build_model_matrix(formula, source)
    if mm.y is None:
        raise FormulaError("lmer needs a response on the left of '~'", formula=formula)
    if not mm.random_blocks:
        raise FormulaError(
            "Formula has no random-effect terms such as (1 | g); use lm()",
            formula=formula,
        )
    factors = [block.group for block in mm.random_blocks]
    repeated = sorted({g for g in factors if factors.count(g) > 1})
    if repeated:
        raise FormulaError(
            f"Grouping variable '{repeated[0]}' appears in more than one "
            "random-effect term; combine them into one bar",
            formula=formula,
        )

    MixedDesign.validate(mm.y, mm.X, {b.group: b.group_values for b in mm.random_blocks})
    specs = [
        make_spec(b.group, b.group_values, b.Z, b.column_names)
        for b in mm.random_blocks
    ]
    return _fit(
        mm.X, mm.y, specs, list(mm.column_names), reml, tol, max_iter,
        model_matrix=mm, source=source,
    )


def _optimize_theta(
    X: NDArray,
    Z: NDArray,
    y: NDArray,
    specs: list[RandomEffectSpec],
    reml: bool,
    tol: float,
    max_iter: int,
) -> OptimizeResult:
    bounds = [(lo if np.isfinite(lo) else None, None) for lo in theta_lower_bounds(specs)]
    # slope models can stall in a local minimum from the identity start
    scales = (1.0, 0.2, 0.5) if any(s.n_terms > 1 for s in specs) else (1.0,)
    best = None
    for scale in scales:
        res = minimize(
            profiled_deviance_lmm,
            theta_start(specs, slope_scale=scale),
            args=(X, Z, y, specs, reml),
            method='L-BFGS-B',
            bounds=bounds,
            options={'maxiter': max_iter, 'ftol': tol, 'gtol': tol * 10},
        )
        if best is None or res.fun < best.fun:
            best = res
    return best


def _fit(
    X: NDArray,
    y: NDArray,
    specs: list[RandomEffectSpec],
    names: list[str],
    reml: bool,
    tol: float,
    max_iter: int,
    model_matrix: ModelMatrix | None = None,
    source: DataSource | None = None,
) -> LMMSolution:
    timer = Timer()
    timer.start()
    n, p = X.shape
    notes: list[str] = []

    with timer.section('setup'):
        Z = build_z_matrix(specs)

    with timer.section('optimization'):
        opt = _optimize_theta(X, Z, y, specs, reml, tol, max_iter)
    theta = opt.x
    converged = bool(opt.success)
    n_iter = int(opt.nit)
    if not converged:
        msg = f"LMM optimizer did not converge after {n_iter} iterations: {opt.message}"
        warnings.warn(msg, RuntimeWarning, stacklevel=3)
        notes.append(msg)

    with timer.section('final_solve'):
        pls = solve_pls(X, Z, y, build_lambda(theta, specs), reml=reml)
        deviance = float(deviance_from_pls(pls, n, p, reml))

    with timer.section('variance_components'):
        var_comps = _var_components(theta, pls.sigma_sq, specs)
    if any(vc.variance == 0.0 for vc in var_comps):
        notes.append("boundary (singular) fit: a random effect variance is zero")

    with timer.section('inference'):
        vcov = pls.sigma_sq * cho_solve((pls.RX, True), np.eye(p))
        se = np.sqrt(np.clip(np.diag(vcov), 0.0, None))
        z = pls.beta / se

    k = p + theta.size + 1
    timer.stop()

    params = LMMParams(
        coefficients=pls.beta,
        coefficient_names=tuple(names),
        vcov=vcov,
        se=se,
        z_values=z,
        p_values=2.0 * stats.norm.sf(np.abs(z)),
        var_components=tuple(var_comps),
        residual_variance=float(pls.sigma_sq),
        residual_std=float(np.sqrt(pls.sigma_sq)),
        log_likelihood=-0.5 * deviance,
        deviance=deviance,
        reml=reml,
        aic=deviance + 2.0 * k,
        bic=deviance + np.log(n) * k,
        n_obs=n,
        n_groups={s.group_name: s.n_groups for s in specs},
        converged=converged,
        n_iter=n_iter,
        random_effects=_conditional_modes(pls.b, specs),
        random_effect_terms={s.group_name: s.terms for s in specs},
        random_effect_levels={s.group_name: s.group_levels for s in specs},
        fitted_values=pls.fitted,
        fixed_fitted=X @ pls.beta,
        residuals=pls.residuals,
        theta=theta,
    )
    result = Result(
        params=params,
        info={
            'method': 'REML' if reml else 'ML',
            'optimizer': 'L-BFGS-B',
            'converged': converged,
            'n_iter': n_iter,
            'deviance': float(opt.fun),
            'theta': theta.copy(),
        },
        timing=timer.result(),
        backend_name='cpu_pls',
        warnings=tuple(notes),
    )
    return LMMSolution(_result=result, _model_matrix=model_matrix, _source=source)


def _var_components(
    theta: NDArray,
    sigma_sq: float,
    specs: list[RandomEffectSpec],
) -> list[VarCompSummary]:
    """One row per term; a factor's effects have covariance σ² T Tᵀ."""
    rows = []
    for T, spec in zip(relative_factors(theta, specs), specs):
        cov = sigma_sq * T @ T.T
        sd = np.sqrt(np.clip(np.diag(cov), 0.0, None))
        for i, term in enumerate(spec.terms):
            corr = None
            if i > 0 and sd[0] > 0 and sd[i] > 0:
                corr = float(np.clip(cov[i, 0] / (sd[0] * sd[i]), -1.0, 1.0))
            rows.append(VarCompSummary(
                group=spec.group_name,
                name=term,
                variance=float(cov[i, i]),
                std_dev=float(sd[i]),
                corr=corr,
            ))
    return rows


def _conditional_modes(b: NDArray, specs: list[RandomEffectSpec]) -> dict[str, NDArray]:
    # b is term-major within each factor; reshape to levels × terms
    sizes = np.cumsum([s.n_groups * s.n_terms for s in specs])[:-1]
    return {
        s.group_name: block.reshape(s.n_terms, s.n_groups).T.copy()
        for s, block in zip(specs, np.split(b, sizes))
    }
