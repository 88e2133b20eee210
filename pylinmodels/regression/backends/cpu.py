"""
Ordinary least squares by pivoted QR.

Columns are scanned left to right and any column in the span of those
already kept is aliased: its coefficient is NaN and it is excluded from
the QR, as in R's lm(). Fitted values, leverage and (XᵀX)⁻¹ all come
from the QR of the kept columns.
"""

from typing import Any
import numpy as np

from pylinmodels.core.result import Result
from pylinmodels.core.compute.timing import Timer
from pylinmodels.core.compute.tolerances import QR_RANK_TOL
from pylinmodels.core.compute.linalg.qr import qr_solve, fitted_from
from pylinmodels.regression.design import Design
from pylinmodels.regression.solution import LinearParams


class CPUQRBackend:
    """Default lm() backend; tol is the relative aliasing tolerance."""

    def __init__(self, tol: float = QR_RANK_TOL):
        self.tol = tol

    @property
    def name(self) -> str:
        return 'cpu_qr'

    def solve(self, design: Design) -> Result[LinearParams]:
        timer = Timer()
        timer.start()
        X, y, p = design.X, design.y, design.p

        with timer.section('qr'):
            coef, qr = qr_solve(X, y, self.tol)

        with timer.section('residuals'):
            fitted = fitted_from(X, coef)
            resid = y - fitted

        with timer.section('statistics'):
            centred = y - y.mean() if design.has_intercept else y
            cov_unscaled = np.full((p, p), np.nan)
            if qr.rank > 0:
                cov_unscaled[np.ix_(qr.active, qr.active)] = qr.unscaled_covariance()
            # diag of H = Q Qᵀ
            leverage = (qr.Q ** 2).sum(axis=1)

        aliased = [design.names[j] for j in qr.aliased]
        notes = []
        if aliased:
            notes.append(
                f"{len(aliased)} coefficient(s) not defined because of "
                f"singularities: {', '.join(aliased)}"
            )
        timer.stop()

        params = LinearParams(
            coefficients=coef,
            residuals=resid,
            fitted_values=fitted,
            rss=float(resid @ resid),
            tss=float(centred @ centred),
            rank=qr.rank,
            df_residual=design.n - qr.rank,
            cov_unscaled=cov_unscaled,
            leverage=leverage,
        )
        info: dict[str, Any] = {
            'method': 'qr',
            'rank': qr.rank,
            'pivot': qr.pivot.tolist(),
            'aliased': aliased,
        }
        return Result(
            params=params,
            info=info,
            timing=timer.result(),
            backend_name=self.name,
            warnings=tuple(notes),
        )
