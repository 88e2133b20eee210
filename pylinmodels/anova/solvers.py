"""
ANOVA, ANCOVA and model comparison for fitted regression models.

Public API:
    anova(model, ss_type=1)        ANOVA / ANCOVA table of one linear model,
                                   or sequential analysis of deviance of one GLM
    anova(model1, model2, ...)     nested model comparison (F or χ² tests)
"""

from __future__ import annotations

import warnings
from typing import Any

import numpy as np
from scipy import stats as sp_stats

from pylinmodels.anova._common import AnovaParams, ComparisonParams, ComparisonRow
from pylinmodels.anova._ss import (
    compute_ss_type1, compute_ss_type2, effect_sizes, span_contains,
    term_layout,
)
from pylinmodels.anova.solution import AnovaSolution, ComparisonSolution
from pylinmodels.core.compute.timing import Timer
from pylinmodels.core.exceptions import ValidationError
from pylinmodels.core.result import Result
from pylinmodels.regression.solution import GLMSolution, LinearSolution


def anova(
    model: LinearSolution | GLMSolution,
    *others: LinearSolution | GLMSolution,
    ss_type: int = 1,
) -> AnovaSolution | ComparisonSolution:
    """
    Analysis of variance (or deviance) for fitted models.

    With one linear model, returns the Type I (sequential) or Type II
    (marginal) ANOVA table, with F tests against the residual mean square
    and eta² effect sizes. Continuous and categorical terms may be mixed,
    which gives ANCOVA.

    With one GLM, returns the sequential analysis-of-deviance table.

    With several models of the same kind, fitted to the same response,
    each model is compared with the previous one: F tests on the change
    in RSS for linear models, and χ² (fixed dispersion) or F (estimated
    dispersion) tests on the change in deviance for GLMs.

    Args:
        model: A fitted LinearSolution or GLMSolution
        *others: Further models for a nested comparison
        ss_type: 1 (sequential) or 2 (marginal); single linear model only

    Returns:
        AnovaSolution for one linear model, ComparisonSolution otherwise

    Raises:
        TypeError: If a model is not a LinearSolution or GLMSolution
        ValidationError: If ss_type is invalid, or the models mix kinds,
            differ in observations, are not nested, or differ in family

    Examples:
        >>> anova(lm('y ~ x + g', df))
        >>> anova(lm('y ~ x + g', df), ss_type=2)
        >>> anova(lm('y ~ x', df), lm('y ~ x + g', df))
    """
    models = (model,) + others
    for m in models:
        if not isinstance(m, (LinearSolution, GLMSolution)):
            raise TypeError(
                f"anova() needs LinearSolution or GLMSolution, got {type(m).__name__}"
            )
    if ss_type not in (1, 2):
        raise ValidationError(
            f"ss_type must be 1 or 2, got {ss_type!r}. Type III sums of squares "
            "need sum-to-zero contrasts, which treatment-coded designs do not use."
        )

    if not others:
        if isinstance(model, LinearSolution):
            return _anova_lm(model, ss_type)
        if ss_type != 1:
            raise ValidationError("A GLM deviance table is sequential; use ss_type=1")
        return _anova_glm_sequential(model)

    if ss_type != 1:
        raise ValidationError("ss_type applies to a single linear model only")
    kinds = {type(m) for m in models}
    if len(kinds) > 1:
        raise ValidationError("Cannot compare linear models with GLMs")
    _check_same_data(models)
    _check_nested(models)
    if isinstance(model, LinearSolution):
        return _compare_lm(models)
    return _compare_glm(models)


# =====================================================================
# Single linear model
# =====================================================================

def _anova_lm(model: LinearSolution, ss_type: int) -> AnovaSolution:
    timer = Timer()
    timer.start()
    design = model.design
    layout = term_layout(design)

    with timer.section('sums_of_squares'):
        if ss_type == 1:
            rows = compute_ss_type1(design, layout)
        else:
            rows = compute_ss_type2(design, layout)
    eta, partial = effect_sizes(rows)
    timer.stop()

    warn_list = []
    if not layout.terms:
        warn_list.append("Model has no terms besides the intercept")
    if model.aliased:
        warn_list.append(
            f"Aliased coefficients dropped from the table: {', '.join(model.aliased)}"
        )

    resid = rows[-1]
    params = AnovaParams(
        table=tuple(rows),
        ss_type=ss_type,
        n_obs=design.n,
        residual_df=resid.df,
        residual_ss=resid.sum_sq,
        residual_ms=resid.mean_sq,
        eta_squared=eta,
        partial_eta_squared=partial,
        formula=model.formula,
    )
    result = Result(
        params=params,
        info={'method': f'Type {ss_type} sums of squares', 'terms': layout.terms},
        timing=timer.result(),
        backend_name='cpu_refit',
        warnings=tuple(warn_list),
    )
    return AnovaSolution(_result=result)


# =====================================================================
# Comparisons
# =====================================================================

def _check_same_data(models: tuple[Any, ...]) -> None:
    n0 = models[0].nobs
    y0 = models[0].y
    for i, m in enumerate(models[1:], start=2):
        if m.nobs != n0:
            raise ValidationError(
                f"Model {i} was fit to {m.nobs} observations, model 1 to {n0}; "
                "models must be fit to the same data"
            )
        if not np.allclose(m.y, y0, equal_nan=True):
            raise ValidationError(
                f"Model {i} has a different response than model 1"
            )


def _check_nested(models: tuple[Any, ...]) -> None:
    """Consecutive models must be nested, in either direction."""
    for i in range(len(models) - 1):
        a, b = models[i], models[i + 1]
        Xa, Xb = a.design.X, b.design.X
        if a.rank <= b.rank:
            ok = span_contains(Xb, Xa)
        else:
            ok = span_contains(Xa, Xb)
        if not ok:
            raise ValidationError(
                f"Models {i + 1} and {i + 2} are not nested: the column space "
                "of the smaller model is not contained in the larger one"
            )


def _label(model: Any, i: int) -> str:
    return model.formula or f"Model {i}"


def _compare_lm(models: tuple[LinearSolution, ...]) -> ComparisonSolution:
    timer = Timer()
    timer.start()
    big = min(models, key=lambda m: m.df_residual)
    scale = big.rss / big.df_residual if big.df_residual > 0 else float('nan')
    df_scale = big.df_residual

    rows = [ComparisonRow(
        label=_label(models[0], 1),
        resid_df=models[0].df_residual,
        resid_dev=models[0].rss,
        df=None, deviance=None, statistic=None, p_value=None,
    )]
    for i in range(1, len(models)):
        prev, cur = models[i - 1], models[i]
        df = prev.df_residual - cur.df_residual
        ss = prev.rss - cur.rss
        if df != 0 and np.isfinite(scale) and scale > 0:
            f_val = float((ss / df) / scale)
            p_val = float(sp_stats.f.sf(abs(f_val), abs(df), df_scale))
        else:
            f_val, p_val = None, None
        rows.append(ComparisonRow(
            label=_label(cur, i + 1),
            resid_df=cur.df_residual,
            resid_dev=cur.rss,
            df=df, deviance=ss, statistic=f_val, p_value=p_val,
        ))
    timer.stop()

    params = ComparisonParams(
        rows=tuple(rows), kind='lm', test='F', sequential=False,
        n_obs=models[0].nobs,
    )
    result = Result(
        params=params,
        info={'method': 'nested linear model comparison', 'scale': scale},
        timing=timer.result(),
        backend_name='cpu_refit',
    )
    return ComparisonSolution(_result=result)


def _deviance_test(
    dev_diff: float,
    df: int,
    fixed: bool,
    dispersion: float,
    df_scale: int,
) -> tuple[float | None, float | None]:
    if df == 0:
        return None, None
    if fixed:
        stat = dev_diff / dispersion
        return float(stat), float(sp_stats.chi2.sf(abs(stat), abs(df)))
    stat = (dev_diff / df) / dispersion
    return float(stat), float(sp_stats.f.sf(abs(stat), abs(df), df_scale))


def _compare_glm(models: tuple[GLMSolution, ...]) -> ComparisonSolution:
    timer = Timer()
    timer.start()
    families = {(m.family_name, m.link_name) for m in models}
    if len(families) > 1:
        raise ValidationError(
            "GLMs must share family and link to be compared, got "
            + ", ".join(f"{f}({l})" for f, l in sorted(families))
        )
    fixed = models[0].family.dispersion_is_fixed
    big = min(models, key=lambda m: m.df_residual)
    dispersion = big.dispersion

    rows = [ComparisonRow(
        label=_label(models[0], 1),
        resid_df=models[0].df_residual,
        resid_dev=models[0].deviance,
        df=None, deviance=None, statistic=None, p_value=None,
    )]
    for i in range(1, len(models)):
        prev, cur = models[i - 1], models[i]
        df = prev.df_residual - cur.df_residual
        dev = prev.deviance - cur.deviance
        stat, p_val = _deviance_test(dev, df, fixed, dispersion, big.df_residual)
        rows.append(ComparisonRow(
            label=_label(cur, i + 1),
            resid_df=cur.df_residual,
            resid_dev=cur.deviance,
            df=df, deviance=dev, statistic=stat, p_value=p_val,
        ))
    timer.stop()

    params = ComparisonParams(
        rows=tuple(rows), kind='glm', test='Chisq' if fixed else 'F',
        sequential=False, n_obs=models[0].nobs,
        family_name=models[0].family_name, link_name=models[0].link_name,
        dispersion=dispersion,
    )
    result = Result(
        params=params,
        info={'method': 'analysis of deviance'},
        timing=timer.result(),
        backend_name='cpu_refit',
    )
    return ComparisonSolution(_result=result)


def _anova_glm_sequential(model: GLMSolution) -> ComparisonSolution:
    """Deviance of the terms added one at a time, starting from the null model."""
    from pylinmodels.regression.solvers import fit

    timer = Timer()
    timer.start()
    design = model.design
    layout = term_layout(design)
    family = model.family
    fixed = family.dispersion_is_fixed
    warn_list: list[str] = []

    rows = [ComparisonRow(
        label='NULL',
        resid_df=model.df_null,
        resid_dev=model.null_deviance,
        df=None, deviance=None, statistic=None, p_value=None,
    )]
    prev_df, prev_dev = model.df_null, model.null_deviance
    cols = list(layout.intercept)
    with timer.section('refits'):
        for k, term in enumerate(layout.terms):
            cols = cols + layout.slices[term]
            if k == len(layout.terms) - 1:
                sub = model
            else:
                with warnings.catch_warnings(record=True) as caught:
                    warnings.simplefilter('always')
                    sub = fit(design.X[:, sorted(cols)], design.y, family=family)
                warn_list.extend(f"{term}: {w.message}" for w in caught)
            df = prev_df - sub.df_residual
            dev = prev_dev - sub.deviance
            stat, p_val = _deviance_test(
                dev, df, fixed, model.dispersion, model.df_residual
            )
            rows.append(ComparisonRow(
                label=term, resid_df=sub.df_residual, resid_dev=sub.deviance,
                df=df, deviance=dev, statistic=stat, p_value=p_val,
            ))
            prev_df, prev_dev = sub.df_residual, sub.deviance
    timer.stop()

    params = ComparisonParams(
        rows=tuple(rows), kind='glm', test='Chisq' if fixed else 'F',
        sequential=True, n_obs=model.nobs,
        family_name=model.family_name, link_name=model.link_name,
        dispersion=model.dispersion,
    )
    result = Result(
        params=params,
        info={'method': 'sequential analysis of deviance', 'terms': layout.terms},
        timing=timer.result(),
        backend_name='cpu_refit',
        warnings=tuple(warn_list),
    )
    return ComparisonSolution(_result=result)
