"""
Fitted linear mixed models: accessors, lme4-style printing and
likelihood ratio tests between nested fits.
"""

from __future__ import annotations

from dataclasses import dataclass
import warnings
from typing import Any, TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray
import pandas as pd
from scipy import stats

from pylinmodels.core.exceptions import ValidationError
from pylinmodels.core.result import Result
from pylinmodels.core.validation import check_level
from pylinmodels.mixed._common import LMMParams, VarCompSummary
from pylinmodels.regression.solution import format_coef_table, format_pvalue

if TYPE_CHECKING:
    from pylinmodels.core.datasource import DataSource
    from pylinmodels.formula.model_matrix import ModelMatrix


@dataclass(frozen=True)
class LikelihoodRatioTest:
    """
    -2 (logLik_reduced - logLik_full) against χ² on the difference in
    parameter counts. The df_* fields count fixed effects, θ and σ.
    """
    log_likelihood_reduced: float
    log_likelihood_full: float
    df_reduced: int
    df_full: int
    statistic: float
    df: int
    p_value: float

    def summary(self) -> str:
        rows = [
            ('Reduced', self.df_reduced, self.log_likelihood_reduced),
            ('Full', self.df_full, self.log_likelihood_full),
        ]
        lines = ["Likelihood Ratio Test", f"{'':<8s} {'npar':>5s} {'logLik':>12s}"]
        lines += [f"{label:<8s} {k:5d} {ll:12.4f}" for label, k, ll in rows]
        lines.append(
            f"Chisq = {self.statistic:.4f} on {self.df} df, "
            f"p-value: {format_pvalue(self.p_value)}"
        )
        return '\n'.join(lines)

    def __str__(self) -> str:
        return self.summary()


class LMMSolution:
    """
    A fitted lmm()/lmer() model.

    Fixed effects come with Wald z tests and intervals; ranef gives the
    conditional modes per grouping factor. log_likelihood, deviance and
    the information criteria are REML quantities for a REML fit.
    """

    def __init__(
        self,
        _result: Result[LMMParams],
        _model_matrix: 'ModelMatrix | None' = None,
        _source: 'DataSource | None' = None,
    ):
        self._result = _result
        self._model_matrix = _model_matrix
        self._source = _source

    @property
    def params(self) -> LMMParams:
        return self._result.params

    @property
    def coefficients(self) -> NDArray:
        return self.params.coefficients

    @property
    def names(self) -> list[str]:
        return list(self.params.coefficient_names)

    @property
    def fixef(self) -> dict[str, float]:
        return dict(zip(self.names, self.coefficients.tolist()))

    def vcov(self) -> NDArray:
        return self.params.vcov

    @property
    def standard_errors(self) -> NDArray:
        return self.params.se

    @property
    def z_values(self) -> NDArray:
        return self.params.z_values

    @property
    def p_values(self) -> NDArray:
        return self.params.p_values

    def conf_int(self, level: float = 0.95) -> NDArray:
        """Wald intervals from the normal quantile, one row per coefficient."""
        check_level(level)
        half = stats.norm.ppf((1.0 + level) / 2.0) * self.standard_errors
        return np.column_stack([self.coefficients - half, self.coefficients + half])

    @property
    def ranef(self) -> dict[str, pd.DataFrame]:
        """Conditional modes: a levels × terms frame per grouping factor."""
        p = self.params
        return {
            group: pd.DataFrame(
                modes,
                index=pd.Index(p.random_effect_levels[group], name=group),
                columns=list(p.random_effect_terms[group]),
            )
            for group, modes in p.random_effects.items()
        }

    @property
    def var_components(self) -> tuple[VarCompSummary, ...]:
        return self.params.var_components

    @property
    def sigma(self) -> float:
        return self.params.residual_std

    @property
    def icc(self) -> dict[str, float]:
        """
        σ²_b / (σ²_b + σ²) for each factor with a random intercept.
        Slope variances are left out, so with slopes this is the ICC at
        covariate value zero.
        """
        resid = self.params.residual_variance
        out: dict[str, float] = {}
        for vc in self.var_components:
            if vc.name != '(Intercept)' or vc.group in out:
                continue
            total = vc.variance + resid
            out[vc.group] = vc.variance / total if total > 0 else 0.0
        return out

    @property
    def reml(self) -> bool:
        return self.params.reml

    @property
    def log_likelihood(self) -> float:
        return self.params.log_likelihood

    @property
    def deviance(self) -> float:
        return self.params.deviance

    @property
    def df_loglik(self) -> int:
        # β, θ and σ
        return self.coefficients.size + self.params.theta.size + 1

    @property
    def aic(self) -> float:
        return self.params.aic

    @property
    def bic(self) -> float:
        return self.params.bic

    @property
    def fitted_values(self) -> NDArray:
        """Xβ̂ + Zb̂, i.e. including the predicted group effects."""
        return self.params.fitted_values

    @property
    def fixed_fitted_values(self) -> NDArray:
        """Xβ̂ alone, the population-level prediction."""
        return self.params.fixed_fitted

    @property
    def residuals(self) -> NDArray:
        return self.params.residuals

    @property
    def nobs(self) -> int:
        return self.params.n_obs

    @property
    def n_groups(self) -> dict[str, int]:
        return dict(self.params.n_groups)

    @property
    def converged(self) -> bool:
        return self.params.converged

    @property
    def formula(self) -> str | None:
        return None if self._model_matrix is None else self._model_matrix.spec.text

    @property
    def model_matrix(self) -> 'ModelMatrix | None':
        return self._model_matrix

    @property
    def source(self) -> 'DataSource | None':
        """Data the formula was evaluated against; None for array fits."""
        return self._source

    @property
    def info(self) -> dict[str, Any]:
        return self._result.info

    @property
    def timing(self) -> dict[str, float] | None:
        return self._result.timing

    @property
    def backend_name(self) -> str:
        return self._result.backend_name

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    def compare(self, other: 'LMMSolution') -> LikelihoodRatioTest:
        """
        Likelihood ratio test against another fit to the same data.

        The fit with more parameters is taken as the full model, so the
        argument order does not matter. REML likelihoods are only
        comparable between models with identical fixed effects, so REML
        fits draw a UserWarning.

        Raises:
            TypeError: If other is not a mixed model.
            ValidationError: If the observation counts differ or both
                fits have the same number of parameters.
        """
        if not isinstance(other, LMMSolution):
            raise TypeError(f"Cannot compare LMMSolution with {type(other).__name__}")
        if self.nobs != other.nobs:
            raise ValidationError(
                f"Models were fit to different data sizes ({self.nobs} vs {other.nobs})"
            )
        if self.reml or other.reml:
            warnings.warn(
                "Likelihood ratio tests need ML fits; refit with reml=False",
                UserWarning,
                stacklevel=2,
            )

        reduced, full = sorted((self, other), key=lambda m: m.df_loglik)
        df = full.df_loglik - reduced.df_loglik
        if df == 0:
            raise ValidationError(
                f"Both models have {full.df_loglik} parameters; they are not nested"
            )
        stat = max(2.0 * (full.log_likelihood - reduced.log_likelihood), 0.0)
        return LikelihoodRatioTest(
            log_likelihood_reduced=reduced.log_likelihood,
            log_likelihood_full=full.log_likelihood,
            df_reduced=reduced.df_loglik,
            df_full=full.df_loglik,
            statistic=float(stat),
            df=df,
            p_value=float(stats.chi2.sf(stat, df)),
        )

    def _random_effects_lines(self) -> list[str]:
        p = self.params
        lines = [f" {'Groups':<12s} {'Name':<15s} {'Variance':>10s} {'Std.Dev.':>10s} {'Corr':>6s}"]
        shown = set()
        for vc in p.var_components:
            group = '' if vc.group in shown else vc.group
            shown.add(vc.group)
            corr = '' if vc.corr is None else f'{vc.corr:6.2f}'
            lines.append(
                f" {group:<12s} {vc.name:<15s} {vc.variance:10.4f} {vc.std_dev:10.4f} {corr}"
            )
        lines.append(
            f" {'Residual':<12s} {'':<15s} {p.residual_variance:10.4f} {p.residual_std:10.4f}"
        )
        counts = ', '.join(f'{g}, {k}' for g, k in p.n_groups.items())
        lines.append(f"Number of obs: {p.n_obs}, groups:  {counts}")
        return lines

    def summary(self) -> str:
        p = self.params
        lines = [f"Linear mixed model fit by {'REML' if p.reml else 'maximum likelihood'}"]
        if self.formula:
            lines.append(f"Formula: {self.formula}")

        lines += ["", "Random effects:", *self._random_effects_lines(), "", "Fixed effects:"]
        lines += format_coef_table(
            self.names, p.coefficients, p.se, p.z_values, p.p_values,
            stat_label='z value', p_label='Pr(>|z|)',
        )

        criterion = 'REML criterion' if p.reml else 'Deviance'
        lines += [
            "",
            f"{criterion} at convergence: {p.deviance:.1f}",
            f"logLik: {p.log_likelihood:.3f}, AIC: {p.aic:.1f}, BIC: {p.bic:.1f}",
        ]
        if not p.converged:
            lines += ["", "WARNING: Model did not converge"]
        return '\n'.join(lines)

    def __repr__(self) -> str:
        p = self.params
        return (
            f"LMMSolution({'REML' if p.reml else 'ML'}, n={p.n_obs}, "
            f"fixed={p.coefficients.size}, "
            f"random={len(p.var_components)} var components)"
        )
