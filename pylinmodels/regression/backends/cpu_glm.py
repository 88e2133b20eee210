"""
Iteratively reweighted least squares for glm().

Each iteration regresses the working response

    z = η + (y - μ) / μ'(η)

on X with working weights w = μ'(η)² / V(μ), using the same pivoted QR
as lm() so aliased columns are handled identically. Iteration stops
when the relative change in deviance |D - D_old| / (|D| + 0.1) falls
below tol. A step whose deviance is not finite, or whose η or μ leaves
the family's domain, is halved back towards the previous coefficients.
Defaults and edge cases follow R's glm.fit.
"""

from typing import Any
import numpy as np
from numpy.typing import NDArray

from pylinmodels.core.exceptions import ConvergenceError
from pylinmodels.core.result import Result
from pylinmodels.core.compute.timing import Timer
from pylinmodels.core.compute.tolerances import (
    IRLS_TOL, IRLS_MAX_ITER, IRLS_MAX_HALVING, QR_RANK_TOL,
)
from pylinmodels.core.compute.linalg.qr import QRResult, qr_solve, fitted_from
from pylinmodels.regression.design import Design
from pylinmodels.regression.families import Family
from pylinmodels.regression.solution import GLMParams

# glm.fit's threshold for "fitted probabilities numerically 0 or 1"
_EPS = 10.0 * np.finfo(np.float64).eps


def _in_domain(family: Family, dev: float, eta: NDArray, mu: NDArray) -> bool:
    return bool(np.isfinite(dev) and family.link.valid_eta(eta) and family.valid_mu(mu))


def _null_deviance(y: NDArray, wt: NDArray, family: Family, has_intercept: bool) -> float:
    # intercept-only model: weighted mean; no intercept: η = 0 everywhere
    if has_intercept:
        mu0 = np.full(y.shape, np.average(y, weights=wt))
    else:
        mu0 = family.link.linkinv(np.zeros(y.shape))
    return family.deviance(y, mu0, wt)


def _glm_residuals(
    family: Family, y: NDArray, mu: NDArray, eta: NDArray, wt: NDArray,
) -> dict[str, NDArray]:
    response = y - mu
    return {
        'residuals_response': response,
        'residuals_working': response / family.link.mu_eta(eta),
        'residuals_pearson': response * np.sqrt(wt / family.variance(mu)),
        'residuals_deviance': np.sign(response) * np.sqrt(
            np.maximum(wt * family.unit_deviance(y, mu), 0.0)
        ),
    }


class CPUIRLSBackend:
    """IRLS with a pivoted-QR weighted least-squares step."""

    def __init__(
        self,
        tol: float = IRLS_TOL,
        max_iter: int = IRLS_MAX_ITER,
        rank_tol: float = QR_RANK_TOL,
    ):
        self.tol = tol
        self.max_iter = max_iter
        self.rank_tol = rank_tol

    @property
    def name(self) -> str:
        return 'cpu_irls'

    def _halve(
        self, family: Family, X: NDArray, y: NDArray, wt: NDArray,
        coef: NDArray, coef_old: NDArray, iteration: int,
    ) -> tuple[NDArray, NDArray, NDArray, float]:
        for _ in range(IRLS_MAX_HALVING):
            # aliased coefficients are NaN; keep them at the old value
            coef = np.where(np.isnan(coef), coef_old, 0.5 * (coef + coef_old))
            eta = fitted_from(X, coef)
            mu = family.link.linkinv(eta)
            dev = family.deviance(y, mu, wt)
            if _in_domain(family, dev, eta, mu):
                return coef, eta, mu, dev
        raise ConvergenceError(
            "Step-halving could not bring the IRLS update back into the "
            f"{family.name} domain",
            iterations=iteration,
            reason='step_halving',
        )

    def solve(self, design: Design, family: Family) -> Result[GLMParams]:
        """
        Raises:
            ConvergenceError: If the starting μ is outside the family's
                mean space, a step produces infinite coefficients, or
                step-halving cannot recover a valid fit.
        """
        timer = Timer()
        timer.start()

        X, y = design.X, design.y
        n, p = design.n, design.p
        link = family.link
        wt = np.ones(n)

        with timer.section('initialize'):
            mu = family.initialize(y)
            eta = link.link(mu)
            if not (link.valid_eta(eta) and family.valid_mu(mu)):
                raise ConvergenceError(
                    "Cannot find valid starting values for "
                    f"{family.name} family with {link.name} link",
                    iterations=0,
                    reason='invalid_start',
                )

        dev = dev_old = family.deviance(y, mu, wt)
        coef = np.full(p, np.nan)
        coef_old: NDArray | None = None
        w = wt
        qr: QRResult | None = None
        converged = boundary = False
        iteration = 0

        with timer.section('irls'):
            while iteration < self.max_iter:
                iteration += 1
                d_mu = link.mu_eta(eta)
                good = (wt > 0) & (d_mu != 0)
                z = eta + (y - mu) / d_mu
                w = np.where(good, wt * d_mu ** 2 / family.variance(mu), 0.0)

                root_w = np.sqrt(w[good])
                coef, qr = qr_solve(X[good] * root_w[:, None], z[good] * root_w, self.rank_tol)
                if np.isinf(coef).any():
                    raise ConvergenceError(
                        f"Non-finite coefficients at iteration {iteration}",
                        iterations=iteration,
                        reason='non_finite',
                    )

                eta = fitted_from(X, coef)
                mu = link.linkinv(eta)
                dev = family.deviance(y, mu, wt)
                if not _in_domain(family, dev, eta, mu):
                    if coef_old is None:
                        raise ConvergenceError(
                            "No valid set of coefficients has been found: "
                            "the first IRLS step left the valid region",
                            iterations=iteration,
                            reason='invalid_step',
                        )
                    coef, eta, mu, dev = self._halve(family, X, y, wt, coef, coef_old, iteration)
                    boundary = True

                if abs(dev - dev_old) / (abs(dev) + 0.1) < self.tol:
                    converged = True
                    break
                dev_old, coef_old = dev, coef

        notes: list[str] = []
        if not converged:
            notes.append(f"IRLS did not converge in {self.max_iter} iterations (deviance={dev:.6f})")
        if boundary:
            notes.append("IRLS stopped at a boundary value (step-halving used)")
        if family.name == 'binomial' and ((mu > 1.0 - _EPS) | (mu < _EPS)).any():
            notes.append("fitted probabilities numerically 0 or 1 occurred")
        if family.name == 'poisson' and (mu < _EPS).any():
            notes.append("fitted rates numerically 0 occurred")

        with timer.section('null_deviance'):
            null_deviance = _null_deviance(y, wt, family, design.has_intercept)

        with timer.section('residuals'):
            residuals = _glm_residuals(family, y, mu, eta, wt)

        rank = qr.rank
        df_residual = n - rank
        if family.dispersion_is_fixed:
            dispersion = 1.0
        elif df_residual > 0:
            dispersion = float(residuals['residuals_pearson'] @ residuals['residuals_pearson']) / df_residual
        else:
            dispersion = float('nan')

        with timer.section('aic'):
            aic = family.aic(y, mu, wt, rank, dispersion)

        with timer.section('covariance'):
            # rows of the final weighted QR map back to the observations in good
            cov_unscaled = np.full((p, p), np.nan)
            if rank > 0:
                cov_unscaled[np.ix_(qr.active, qr.active)] = qr.unscaled_covariance()
            leverage = np.zeros(n)
            leverage[good] = (qr.Q ** 2).sum(axis=1)

        timer.stop()

        params = GLMParams(
            coefficients=coef,
            fitted_values=mu,
            linear_predictor=eta,
            **residuals,
            weights=w,
            prior_weights=wt,
            deviance=dev,
            null_deviance=null_deviance,
            aic=aic,
            dispersion=dispersion,
            rank=rank,
            df_residual=df_residual,
            df_null=n - int(design.has_intercept),
            n_iter=iteration,
            converged=converged,
            boundary=boundary,
            family_name=family.name,
            link_name=link.name,
            cov_unscaled=cov_unscaled,
            leverage=leverage,
        )
        info: dict[str, Any] = {
            'method': 'irls_qr',
            'rank': rank,
            'pivot': qr.pivot.tolist(),
            'aliased': [design.names[j] for j in qr.aliased],
            'tol': self.tol,
            'max_iter': self.max_iter,
        }
        return Result(
            params=params,
            info=info,
            timing=timer.result(),
            backend_name=self.name,
            warnings=tuple(notes),
        )
