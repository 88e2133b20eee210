"""
Regression solution types.

Contains the parameter payloads computed by the backends and the
user-facing solution wrappers for linear models (LinearSolution) and
generalized linear models (GLMSolution).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal, TYPE_CHECKING
import numpy as np
from numpy.typing import NDArray
import pandas as pd
from scipy import stats

from pylinmodels.core.datasource import DataSource
from pylinmodels.core.exceptions import DimensionError, ValidationError
from pylinmodels.core.result import Result
from pylinmodels.core.validation import check_array, check_level

if TYPE_CHECKING:
    from pylinmodels.regression.design import Design
    from pylinmodels.regression.families import Family


@dataclass(frozen=True)
class LinearParams:
    """
    Parameter payload for linear regression.

    This is the immutable data computed by backends. Aliased coefficients
    are NaN, and so are their rows and columns of cov_unscaled.
    """
    coefficients: NDArray[np.floating[Any]]
    residuals: NDArray[np.floating[Any]]
    fitted_values: NDArray[np.floating[Any]]
    rss: float
    tss: float
    rank: int
    df_residual: int
    cov_unscaled: NDArray[np.floating[Any]]
    leverage: NDArray[np.floating[Any]]


@dataclass(frozen=True)
class GLMParams:
    """Parameter payload for a generalized linear model fit by IRLS."""
    coefficients: NDArray[np.floating[Any]]
    fitted_values: NDArray[np.floating[Any]]
    linear_predictor: NDArray[np.floating[Any]]
    residuals_working: NDArray[np.floating[Any]]
    residuals_deviance: NDArray[np.floating[Any]]
    residuals_pearson: NDArray[np.floating[Any]]
    residuals_response: NDArray[np.floating[Any]]
    weights: NDArray[np.floating[Any]]
    prior_weights: NDArray[np.floating[Any]]
    deviance: float
    null_deviance: float
    aic: float
    dispersion: float
    rank: int
    df_residual: int
    df_null: int
    n_iter: int
    converged: bool
    boundary: bool
    family_name: str
    link_name: str
    cov_unscaled: NDArray[np.floating[Any]]
    leverage: NDArray[np.floating[Any]]


# =====================================================================
# Shared helpers
# =====================================================================

SIGNIF_LEGEND = "Signif. codes:  0 '***' 0.001 '**' 0.01 '*' 0.05 '.' 0.1 ' ' 1"


def significance_stars(p: float) -> str:
    """R's significance codes."""
    if np.isnan(p):
        return ''
    if p < 0.001:
        return '***'
    if p < 0.01:
        return '**'
    if p < 0.05:
        return '*'
    if p < 0.1:
        return '.'
    return ''


def format_pvalue(p: float) -> str:
    if np.isnan(p):
        return 'NA'
    if p < 2.2e-16:
        return '< 2e-16'
    if p < 1e-4:
        return f"{p:.2e}"
    return f"{p:.4f}"


def format_coef_table(
    names: list[str],
    estimates: NDArray,
    std_errors: NDArray,
    statistics: NDArray,
    p_values: NDArray,
    *,
    stat_label: str = 't value',
    p_label: str = 'Pr(>|t|)',
) -> list[str]:
    """Lines of an R-style coefficient table with significance stars."""
    width = max([len(nm) for nm in names] + [11])
    lines = [
        f"{'':<{width}} {'Estimate':>12} {'Std. Error':>12} "
        f"{stat_label:>9} {p_label:>10}"
    ]
    for nm, est, se, st, p in zip(names, estimates, std_errors, statistics, p_values):
        if np.isnan(est):
            lines.append(f"{nm:<{width}} {'NA':>12} {'NA':>12} {'NA':>9} {'NA':>10}")
            continue
        se_str = f"{se:12.6g}" if not np.isnan(se) else f"{'NA':>12}"
        st_str = f"{st:9.3f}" if not np.isnan(st) else f"{'NA':>9}"
        lines.append(
            f"{nm:<{width}} {est:12.6g} {se_str} {st_str} "
            f"{format_pvalue(p):>10} {significance_stars(p)}"
        )
    lines.append("---")
    lines.append(SIGNIF_LEGEND)
    return lines


def quantile_line(values: NDArray) -> list[str]:
    """Min / 1Q / Median / 3Q / Max of a residual vector."""
    q = np.quantile(values, [0.0, 0.25, 0.5, 0.75, 1.0])
    header = f"{'Min':>10} {'1Q':>10} {'Median':>10} {'3Q':>10} {'Max':>10}"
    row = " ".join(f"{v:10.4g}" for v in q)
    return [header, row]


def prediction_matrix(design: 'Design', newdata: Any) -> NDArray[np.floating[Any]]:
    """
    Design matrix for prediction.

    newdata may be None (the fitted data), a data table (formula fits
    only) or a numeric matrix with the same columns as X.
    """
    if newdata is None:
        return design.X

    if isinstance(newdata, (DataSource, pd.DataFrame, Mapping)):
        mm = design.model_matrix
        if mm is None:
            raise ValidationError(
                "newdata as a table requires a model fitted from a formula; "
                "pass a design matrix instead"
            )
        return mm.transform(newdata)

    X_new = check_array(newdata, 'newdata')
    if X_new.ndim == 1:
        if design.p == 1:
            X_new = X_new.reshape(-1, 1)
        elif X_new.shape[0] == design.p:
            X_new = X_new.reshape(1, -1)
    if X_new.ndim != 2 or X_new.shape[1] != design.p:
        raise DimensionError(
            f"newdata: expected {design.p} columns, got shape {X_new.shape}"
        )
    return X_new


# =====================================================================
# Linear model
# =====================================================================

@dataclass
class LinearSolution:
    """
    User-facing linear regression results.

    Wraps the backend Result and provides convenient accessors for all
    regression outputs: standard errors, t statistics, p values,
    confidence intervals, the overall F test and likelihood criteria.
    """
    _result: Result[LinearParams]
    _design: 'Design'

    # === Coefficients ===

    @property
    def coefficients(self) -> NDArray[np.floating[Any]]:
        return self._result.params.coefficients

    @property
    def names(self) -> list[str]:
        return self._design.names

    @property
    def aliased(self) -> list[str]:
        """Names of coefficients dropped because of linear dependence."""
        return [nm for nm, c in zip(self.names, self.coefficients) if np.isnan(c)]

    # === Fit ===

    @property
    def residuals(self) -> NDArray[np.floating[Any]]:
        return self._result.params.residuals

    @property
    def fitted_values(self) -> NDArray[np.floating[Any]]:
        return self._result.params.fitted_values

    @property
    def y(self) -> NDArray[np.floating[Any]]:
        return self._design.y

    @property
    def hat_values(self) -> NDArray[np.floating[Any]]:
        """Diagonal of the hat matrix H = X(X'X)⁻¹X'."""
        return self._result.params.leverage

    @property
    def rss(self) -> float:
        return self._result.params.rss

    @property
    def tss(self) -> float:
        """Total sum of squares, centred only when the model has an intercept."""
        return self._result.params.tss

    @property
    def r_squared(self) -> float:
        if self.tss == 0:
            return 1.0 if self.rss == 0 else 0.0
        return 1.0 - (self.rss / self.tss)

    @property
    def adjusted_r_squared(self) -> float:
        df_int = 1 if self._design.has_intercept else 0
        rdf = self.df_residual
        if rdf <= 0 or self.tss == 0:
            return self.r_squared
        return 1.0 - (1.0 - self.r_squared) * (self.nobs - df_int) / rdf

    @property
    def residual_std_error(self) -> float:
        """σ̂ = sqrt(RSS / (n - rank)), the unbiased residual scale."""
        df = self.df_residual
        if df <= 0:
            return float('nan')
        return float(np.sqrt(self.rss / df))

    @property
    def sigma(self) -> float:
        return self.residual_std_error

    @property
    def sigma_ml(self) -> float:
        """Maximum likelihood σ̂ = sqrt(RSS / n)."""
        return float(np.sqrt(self.rss / self.nobs))

    # === Inference ===

    def vcov(self) -> NDArray[np.floating[Any]]:
        """
        Covariance matrix of the coefficients, σ̂²(X'X)⁻¹.

        Rows and columns of aliased coefficients are NaN.
        """
        return self.residual_std_error ** 2 * self._result.params.cov_unscaled

    @property
    def standard_errors(self) -> NDArray[np.floating[Any]]:
        """
        Standard errors of coefficients.

        Computed as SE(β) = sqrt(diag(σ² (X'X)⁻¹)). Aliased coefficients
        get NaN standard errors.
        """
        return np.sqrt(np.diag(self.vcov()))

    @property
    def t_statistics(self) -> NDArray[np.floating[Any]]:
        with np.errstate(divide='ignore', invalid='ignore'):
            t = self.coefficients / self.standard_errors
        return np.where(np.isfinite(t), t, np.nan)

    @property
    def p_values(self) -> NDArray[np.floating[Any]]:
        """Two-sided p values of the t statistics on df_residual."""
        return 2.0 * stats.t.sf(np.abs(self.t_statistics), self.df_residual)

    def conf_int(self, level: float = 0.95) -> NDArray[np.floating[Any]]:
        """
        Confidence intervals for the coefficients.

        Returns:
            (p, 2) array of lower and upper bounds
        """
        check_level(level)
        q = stats.t.ppf(0.5 + level / 2.0, self.df_residual)
        se = self.standard_errors
        return np.column_stack([self.coefficients - q * se, self.coefficients + q * se])

    @property
    def df_model(self) -> int:
        """Numerator df of the overall F test: rank minus the intercept."""
        return self.rank - (1 if self._design.has_intercept else 0)

    @property
    def f_statistic(self) -> float:
        """Overall F statistic against the intercept-only (or empty) model."""
        if self.df_model <= 0 or self.df_residual <= 0:
            return float('nan')
        mss = self.tss - self.rss
        return float((mss / self.df_model) / (self.rss / self.df_residual))

    @property
    def f_pvalue(self) -> float:
        f = self.f_statistic
        if np.isnan(f):
            return float('nan')
        return float(stats.f.sf(f, self.df_model, self.df_residual))

    # === Likelihood ===

    @property
    def log_likelihood(self) -> float:
        """Gaussian log-likelihood at the ML estimates (σ² = RSS/n)."""
        n = self.nobs
        return float(0.5 * (-n * (np.log(2.0 * np.pi) + 1.0 - np.log(n) + np.log(self.rss))))

    @property
    def df_loglik(self) -> int:
        """Parameters counted by AIC/BIC: the coefficients plus σ."""
        return self.rank + 1

    @property
    def aic(self) -> float:
        return -2.0 * self.log_likelihood + 2.0 * self.df_loglik

    @property
    def bic(self) -> float:
        return -2.0 * self.log_likelihood + np.log(self.nobs) * self.df_loglik

    # === Prediction ===

    def predict(
        self,
        newdata: Any = None,
        *,
        interval: Literal['none', 'confidence', 'prediction'] = 'none',
        level: float = 0.95,
    ) -> NDArray[np.floating[Any]] | pd.DataFrame:
        """
        Predict the response.

        Args:
            newdata: None for the fitted data, a data table for formula
                fits, or a matrix with the columns of X
            interval: 'none', 'confidence' (for the mean) or 'prediction'
                (for a new observation)
            level: Interval coverage

        Returns:
            Array of predictions for interval='none', otherwise a DataFrame
            with columns fit, lwr, upr
        """
        if interval not in ('none', 'confidence', 'prediction'):
            raise ValueError(f"Unknown interval: {interval!r}")

        X_new = prediction_matrix(self._design, newdata)
        coef = self.coefficients
        active = ~np.isnan(coef)
        Xa = X_new[:, active]
        fit = Xa @ coef[active]
        if interval == 'none':
            return fit

        check_level(level)
        cov = self._result.params.cov_unscaled[np.ix_(active, active)]
        sigma2 = self.residual_std_error ** 2
        se_fit = np.sqrt(sigma2 * np.einsum('ij,jk,ik->i', Xa, cov, Xa))
        if interval == 'prediction':
            spread = np.sqrt(se_fit ** 2 + sigma2)
        else:
            spread = se_fit
        q = stats.t.ppf(0.5 + level / 2.0, self.df_residual)
        return pd.DataFrame({'fit': fit, 'lwr': fit - q * spread, 'upr': fit + q * spread})

    # === Bookkeeping ===

    @property
    def nobs(self) -> int:
        return self._design.n

    @property
    def rank(self) -> int:
        return self._result.params.rank

    @property
    def df_residual(self) -> int:
        return self._result.params.df_residual

    @property
    def design(self) -> 'Design':
        return self._design

    @property
    def formula(self) -> str | None:
        mm = self._design.model_matrix
        return mm.spec.text if mm is not None else None

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

    def summary(self) -> str:
        """Generate R-style summary output."""
        lines = [
            "Linear Regression Results",
            "=" * 60,
        ]
        if self.formula:
            lines.append(f"Formula: {self.formula}")
        lines.append(f"Observations: {self.nobs}")
        lines.append("")
        lines.append("Residuals:")
        lines.extend(quantile_line(self.residuals))
        lines.append("")

        n_aliased = len(self.aliased)
        if n_aliased:
            lines.append(
                f"Coefficients: ({n_aliased} not defined because of singularities)"
            )
        else:
            lines.append("Coefficients:")
        lines.extend(format_coef_table(
            self.names, self.coefficients, self.standard_errors,
            self.t_statistics, self.p_values,
        ))
        lines.append("")
        lines.append(
            f"Residual standard error: {self.residual_std_error:.4g} "
            f"on {self.df_residual} degrees of freedom"
        )
        lines.append(
            f"Multiple R-squared: {self.r_squared:.4g},  "
            f"Adjusted R-squared: {self.adjusted_r_squared:.4g}"
        )
        if not np.isnan(self.f_statistic):
            lines.append(
                f"F-statistic: {self.f_statistic:.4g} on {self.df_model} and "
                f"{self.df_residual} DF,  p-value: {format_pvalue(self.f_pvalue)}"
            )
        lines.append(
            f"Log-likelihood: {self.log_likelihood:.4f},  "
            f"AIC: {self.aic:.4f},  BIC: {self.bic:.4f}"
        )
        lines.append("-" * 60)
        lines.append(f"Backend: {self.backend_name}")
        if self.timing:
            lines.append(f"Time: {self.timing.get('total_seconds', 0):.4f}s")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"LinearSolution(n={self.nobs}, p={self._design.p}, "
            f"rank={self.rank}, r_squared={self.r_squared:.4f})"
        )


# =====================================================================
# Generalized linear model
# =====================================================================

@dataclass
class GLMSolution:
    """
    User-facing GLM results.

    Standard errors scale the unscaled covariance from the final IRLS
    iteration by the dispersion. Tests use z statistics for families with
    known dispersion (binomial, Poisson) and t statistics otherwise,
    matching R's summary.glm.
    """
    _result: Result[GLMParams]
    _design: 'Design'
    _family: 'Family'

    # === Coefficients ===

    @property
    def coefficients(self) -> NDArray[np.floating[Any]]:
        return self._result.params.coefficients

    @property
    def names(self) -> list[str]:
        return self._design.names

    @property
    def aliased(self) -> list[str]:
        return [nm for nm, c in zip(self.names, self.coefficients) if np.isnan(c)]

    # === Fit ===

    @property
    def fitted_values(self) -> NDArray[np.floating[Any]]:
        """Fitted means μ̂."""
        return self._result.params.fitted_values

    @property
    def linear_predictor(self) -> NDArray[np.floating[Any]]:
        """η̂ = Xβ̂."""
        return self._result.params.linear_predictor

    @property
    def y(self) -> NDArray[np.floating[Any]]:
        return self._design.y

    @property
    def residuals(self) -> NDArray[np.floating[Any]]:
        """Deviance residuals (R's default residual type for glm)."""
        return self._result.params.residuals_deviance

    @property
    def residuals_deviance(self) -> NDArray[np.floating[Any]]:
        return self._result.params.residuals_deviance

    @property
    def residuals_pearson(self) -> NDArray[np.floating[Any]]:
        return self._result.params.residuals_pearson

    @property
    def residuals_response(self) -> NDArray[np.floating[Any]]:
        return self._result.params.residuals_response

    @property
    def residuals_working(self) -> NDArray[np.floating[Any]]:
        return self._result.params.residuals_working

    def resid(
        self,
        type: Literal['deviance', 'pearson', 'response', 'working'] = 'deviance',
    ) -> NDArray[np.floating[Any]]:
        """Residuals of the requested type."""
        lookup = {
            'deviance': self.residuals_deviance,
            'pearson': self.residuals_pearson,
            'response': self.residuals_response,
            'working': self.residuals_working,
        }
        if type not in lookup:
            raise ValueError(f"Unknown residual type: {type!r}")
        return lookup[type]

    @property
    def weights(self) -> NDArray[np.floating[Any]]:
        """Working weights from the final IRLS iteration."""
        return self._result.params.weights

    @property
    def hat_values(self) -> NDArray[np.floating[Any]]:
        """Diagonal of the weighted hat matrix W^½X(X'WX)⁻¹X'W^½."""
        return self._result.params.leverage

    # === Deviance and likelihood ===

    @property
    def deviance(self) -> float:
        return self._result.params.deviance

    @property
    def null_deviance(self) -> float:
        return self._result.params.null_deviance

    @property
    def df_residual(self) -> int:
        return self._result.params.df_residual

    @property
    def df_null(self) -> int:
        return self._result.params.df_null

    @property
    def dispersion(self) -> float:
        """φ̂: 1 for binomial/Poisson, Pearson χ²/df_residual otherwise."""
        return self._result.params.dispersion

    @property
    def aic(self) -> float:
        return self._result.params.aic

    @property
    def df_loglik(self) -> int:
        """Parameters counted by logLik: the coefficients, plus φ if estimated."""
        return self.rank + (0 if self._family.dispersion_is_fixed else 1)

    @property
    def log_likelihood(self) -> float:
        # R's logLik.glm: p - aic/2
        return float(self.df_loglik - self.aic / 2.0)

    @property
    def bic(self) -> float:
        return -2.0 * self.log_likelihood + np.log(self.nobs) * self.df_loglik

    # === Inference ===

    def vcov(self) -> NDArray[np.floating[Any]]:
        return self.dispersion * self._result.params.cov_unscaled

    @property
    def standard_errors(self) -> NDArray[np.floating[Any]]:
        return np.sqrt(np.diag(self.vcov()))

    @property
    def uses_z(self) -> bool:
        """z tests when dispersion is known, t tests when estimated."""
        return self._family.dispersion_is_fixed

    @property
    def test_statistics(self) -> NDArray[np.floating[Any]]:
        with np.errstate(divide='ignore', invalid='ignore'):
            t = self.coefficients / self.standard_errors
        return np.where(np.isfinite(t), t, np.nan)

    @property
    def p_values(self) -> NDArray[np.floating[Any]]:
        stat = np.abs(self.test_statistics)
        if self.uses_z:
            return 2.0 * stats.norm.sf(stat)
        return 2.0 * stats.t.sf(stat, self.df_residual)

    def conf_int(self, level: float = 0.95) -> NDArray[np.floating[Any]]:
        """Wald confidence intervals β̂ ± z·SE (R's confint.default)."""
        check_level(level)
        q = stats.norm.ppf(0.5 + level / 2.0)
        se = self.standard_errors
        return np.column_stack([self.coefficients - q * se, self.coefficients + q * se])

    # === Prediction ===

    def predict(
        self,
        newdata: Any = None,
        *,
        type: Literal['link', 'response'] = 'link',
    ) -> NDArray[np.floating[Any]]:
        """
        Predict on the link scale (η) or the response scale (μ).

        Args:
            newdata: None for the fitted data, a data table for formula
                fits, or a matrix with the columns of X
            type: 'link' or 'response'
        """
        if type not in ('link', 'response'):
            raise ValueError(f"Unknown prediction type: {type!r}")
        X_new = prediction_matrix(self._design, newdata)
        coef = self.coefficients
        active = ~np.isnan(coef)
        eta = X_new[:, active] @ coef[active]
        if type == 'link':
            return eta
        return self._family.link.linkinv(eta)

    # === Bookkeeping ===

    @property
    def family(self) -> 'Family':
        return self._family

    @property
    def family_name(self) -> str:
        return self._result.params.family_name

    @property
    def link_name(self) -> str:
        return self._result.params.link_name

    @property
    def iterations(self) -> int:
        return self._result.params.n_iter

    @property
    def converged(self) -> bool:
        return self._result.params.converged

    @property
    def nobs(self) -> int:
        return self._design.n

    @property
    def rank(self) -> int:
        return self._result.params.rank

    @property
    def design(self) -> 'Design':
        return self._design

    @property
    def formula(self) -> str | None:
        mm = self._design.model_matrix
        return mm.spec.text if mm is not None else None

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

    def summary(self) -> str:
        """Generate R-style summary output."""
        lines = [
            f"Generalized Linear Model ({self.family_name}, link={self.link_name})",
            "=" * 60,
        ]
        if self.formula:
            lines.append(f"Formula: {self.formula}")
        lines.append(f"Observations: {self.nobs}")
        lines.append("")
        lines.append("Deviance Residuals:")
        lines.extend(quantile_line(self.residuals_deviance))
        lines.append("")

        n_aliased = len(self.aliased)
        if n_aliased:
            lines.append(
                f"Coefficients: ({n_aliased} not defined because of singularities)"
            )
        else:
            lines.append("Coefficients:")
        if self.uses_z:
            labels = {'stat_label': 'z value', 'p_label': 'Pr(>|z|)'}
        else:
            labels = {'stat_label': 't value', 'p_label': 'Pr(>|t|)'}
        lines.extend(format_coef_table(
            self.names, self.coefficients, self.standard_errors,
            self.test_statistics, self.p_values, **labels,
        ))
        lines.append("")
        lines.append(
            f"(Dispersion parameter for {self.family_name} family taken to be "
            f"{self.dispersion:.6g})"
        )
        lines.append("")
        lines.append(
            f"    Null deviance: {self.null_deviance:.4f}  on {self.df_null} degrees of freedom"
        )
        lines.append(
            f"Residual deviance: {self.deviance:.4f}  on {self.df_residual} degrees of freedom"
        )
        lines.append(f"AIC: {self.aic:.4f}")
        lines.append("")
        lines.append(f"Number of Fisher Scoring iterations: {self.iterations}")
        if not self.converged:
            lines.append("WARNING: IRLS did not converge")
        lines.append("-" * 60)
        lines.append(f"Backend: {self.backend_name}")
        if self.timing:
            lines.append(f"Time: {self.timing.get('total_seconds', 0):.4f}s")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"GLMSolution(family={self.family_name!r}, link={self.link_name!r}, "
            f"n={self.nobs}, p={self._design.p}, deviance={self.deviance:.4f})"
        )
