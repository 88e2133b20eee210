"""
Solution types for likelihood-based estimation of the normal linear model.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TYPE_CHECKING
import numpy as np
from numpy.typing import NDArray
from scipy import stats

from pylinmodels.core.compute.tolerances import OPTIMIZER
from pylinmodels.core.result import Result
from pylinmodels.core.validation import check_level
from pylinmodels.estimation._common import MLParams
from pylinmodels.regression.solution import format_coef_table

if TYPE_CHECKING:
    from pylinmodels.regression.design import Design


@dataclass
class MLSolution:
    """
    Maximum likelihood fit of y = Xβ + ε, ε ~ N(0, σ²).

    Standard errors come from the inverse observed information, so
    SE(β) uses σ²_ML rather than the unbiased σ̂², and inference is
    asymptotic (z statistics).
    """
    _result: Result[MLParams]
    _design: 'Design'

    @property
    def coefficients(self) -> NDArray[np.floating[Any]]:
        return self._result.params.coefficients

    @property
    def names(self) -> list[str]:
        return self._design.names

    @property
    def sigma(self) -> float:
        """σ̂_ML."""
        return self._result.params.sigma

    @property
    def sigma2(self) -> float:
        """σ̂²_ML = RSS/n at convergence."""
        return self.sigma ** 2

    @property
    def log_likelihood(self) -> float:
        return self._result.params.log_likelihood

    def vcov(self) -> NDArray[np.floating[Any]]:
        """Inverse observed information for (β..., σ)."""
        return self._result.params.covariance

    @property
    def standard_errors(self) -> NDArray[np.floating[Any]]:
        p = len(self.coefficients)
        return np.sqrt(np.diag(self.vcov())[:p])

    @property
    def sigma_se(self) -> float:
        return float(np.sqrt(self.vcov()[-1, -1]))

    @property
    def z_statistics(self) -> NDArray[np.floating[Any]]:
        return self.coefficients / self.standard_errors

    @property
    def p_values(self) -> NDArray[np.floating[Any]]:
        return 2.0 * stats.norm.sf(np.abs(self.z_statistics))

    def conf_int(self, level: float = 0.95) -> NDArray[np.floating[Any]]:
        """Wald intervals β̂ ± z·SE."""
        check_level(level)
        q = stats.norm.ppf(0.5 + level / 2.0)
        se = self.standard_errors
        return np.column_stack([self.coefficients - q * se, self.coefficients + q * se])

    @property
    def fitted_values(self) -> NDArray[np.floating[Any]]:
        return self._result.params.fitted_values

    @property
    def residuals(self) -> NDArray[np.floating[Any]]:
        return self._result.params.residuals

    @property
    def df_loglik(self) -> int:
        return len(self.coefficients) + 1

    @property
    def aic(self) -> float:
        return -2.0 * self.log_likelihood + 2.0 * self.df_loglik

    @property
    def bic(self) -> float:
        return -2.0 * self.log_likelihood + np.log(self.nobs) * self.df_loglik

    @property
    def nobs(self) -> int:
        return self._design.n

    @property
    def design(self) -> 'Design':
        return self._design

    @property
    def iterations(self) -> int:
        return self._result.params.n_iter

    @property
    def converged(self) -> bool:
        return self._result.params.converged

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
        lines = [
            "Maximum Likelihood Normal Linear Model",
            "=" * 60,
            f"Observations: {self.nobs}",
            "",
            "Coefficients:",
        ]
        lines.extend(format_coef_table(
            self.names, self.coefficients, self.standard_errors,
            self.z_statistics, self.p_values,
            stat_label='z value', p_label='Pr(>|z|)',
        ))
        lines.append("")
        lines.append(f"sigma (ML): {self.sigma:.6g}  (SE {self.sigma_se:.4g})")
        lines.append(
            f"Log-likelihood: {self.log_likelihood:.4f},  "
            f"AIC: {self.aic:.4f},  BIC: {self.bic:.4f}"
        )
        status = 'converged' if self.converged else 'NOT converged'
        lines.append(f"Optimizer: {self.info.get('method')} {status} in {self.iterations} iterations")
        lines.append("-" * 60)
        lines.append(f"Backend: {self.backend_name}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"MLSolution(n={self.nobs}, p={len(self.coefficients)}, "
            f"sigma={self.sigma:.4f}, converged={self.converged})"
        )


@dataclass(frozen=True)
class EstimatorComparison:
    """
    OLS, ML and REML estimates of the same normal linear model.

    Under normal errors OLS and ML give the same β̂. They differ only in
    the error variance: ML divides the RSS by n, OLS and REML by n - p.
    """
    names: list[str]
    ols_coefficients: NDArray[np.floating[Any]]
    ml_coefficients: NDArray[np.floating[Any]]
    sigma2_ols: float
    sigma2_ml: float
    sigma2_reml: float
    rss: float
    n: int
    p: int
    ml_converged: bool

    @property
    def max_abs_difference(self) -> float:
        """Largest |β̂_OLS - β̂_ML| across coefficients."""
        return float(np.max(np.abs(self.ols_coefficients - self.ml_coefficients)))

    def coincide(self, rtol: float = OPTIMIZER.rtol, atol: float = OPTIMIZER.atol) -> bool:
        """Whether OLS and ML coefficients agree within tolerance."""
        return bool(np.allclose(self.ols_coefficients, self.ml_coefficients, rtol=rtol, atol=atol))

    @property
    def variance_ratio(self) -> float:
        """σ²_ML / σ²_OLS = (n - p) / n in exact arithmetic."""
        return self.sigma2_ml / self.sigma2_ols

    def summary(self) -> str:
        width = max([len(nm) for nm in self.names] + [11])
        lines = [
            "OLS vs Maximum Likelihood vs REML",
            "=" * 60,
            f"Observations: {self.n}    Coefficients: {self.p}",
            "",
            f"{'':<{width}} {'OLS':>14} {'ML':>14} {'|diff|':>10}",
        ]
        for nm, b_ols, b_ml in zip(self.names, self.ols_coefficients, self.ml_coefficients):
            lines.append(f"{nm:<{width}} {b_ols:14.6g} {b_ml:14.6g} {abs(b_ols - b_ml):10.2e}")
        lines.append("")
        lines.append(f"sigma^2 OLS  (RSS/(n-p)): {self.sigma2_ols:.6g}")
        lines.append(f"sigma^2 ML   (RSS/n):     {self.sigma2_ml:.6g}")
        lines.append(f"sigma^2 REML (numerical): {self.sigma2_reml:.6g}")
        verdict = 'coincide' if self.coincide() else 'DIFFER'
        lines.append(f"Coefficients {verdict} (max |diff| = {self.max_abs_difference:.2e})")
        if not self.ml_converged:
            lines.append("WARNING: ML optimizer did not converge")
        return "\n".join(lines)
