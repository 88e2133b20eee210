"""
Penalized least squares for a fixed relative covariance factor Λ_θ.

With b = Λ_θ u and u spherical, the conditional modes and the fixed
effects jointly minimise

    ‖y - Xβ - ZΛ_θ u‖² + ‖u‖²

which is an ordinary least-squares problem on the augmented system

    [ ZΛ  X ] [u]  ≈  [y]
    [ I   0 ] [β]     [0]

solved here by a blocked Cholesky factorisation of its normal equations:

    [ L    0  ] [ Lᵀ  C  ]     L Lᵀ = ΛᵀZᵀZΛ + I
    [ Cᵀ   RX ] [ 0   RXᵀ]     L C  = ΛᵀZᵀX,   RX RXᵀ = XᵀX - CᵀC

Bates, Maechler, Bolker & Walker (2015), JSS 67(1), section 3.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray
from scipy.linalg import solve_triangular

from pylinmodels.core.exceptions import SingularMatrixError


@dataclass(frozen=True)
class PLSResult:
    """
    Solution at one θ.

    pwrss is the penalized residual sum of squares ‖y - Xβ - Zb‖² + ‖u‖²;
    sigma_sq is pwrss/(n - p) for REML and pwrss/n for ML. L and RX are
    the lower-triangular factors above.
    """
    beta: NDArray
    u: NDArray
    b: NDArray
    sigma_sq: float
    pwrss: float
    L: NDArray
    RX: NDArray
    fitted: NDArray
    residuals: NDArray

    @property
    def log_det_L(self) -> float:
        """log det(ΛᵀZᵀZΛ + I)."""
        return 2.0 * float(np.log(np.diag(self.L)).sum())

    @property
    def log_det_RX(self) -> float:
        """log det(RX RXᵀ), the REML correction term."""
        return 2.0 * float(np.log(np.abs(np.diag(self.RX))).sum())


def solve_pls(
    X: NDArray,
    Z: NDArray,
    y: NDArray,
    Lambda: NDArray,
    reml: bool = True,
) -> PLSResult:
    """
    Raises:
        SingularMatrixError: If XᵀX - CᵀC is not positive definite, i.e.
            the fixed effects cannot be separated from the random ones.
    """
    n, p = X.shape
    A = Z @ Lambda
    L = np.linalg.cholesky(A.T @ A + np.eye(A.shape[1]))

    AtX = A.T @ X
    Aty = A.T @ y
    C = solve_triangular(L, AtX, lower=True)
    cu = solve_triangular(L, Aty, lower=True)

    try:
        RX = np.linalg.cholesky(X.T @ X - C.T @ C)
    except np.linalg.LinAlgError as e:
        raise SingularMatrixError(
            "Fixed effects design is rank deficient given the random effects",
            matrix_name='X', expected_rank=p,
        ) from e

    # forward then backward through RX RXᵀ
    beta = solve_triangular(
        RX.T, solve_triangular(RX, X.T @ y - C.T @ cu, lower=True), lower=False,
    )
    u = solve_triangular(
        L.T, solve_triangular(L, Aty - AtX @ beta, lower=True), lower=False,
    )
    b = Lambda @ u

    fitted = X @ beta + Z @ b
    residuals = y - fitted
    pwrss = float(residuals @ residuals + u @ u)
    return PLSResult(
        beta=beta, u=u, b=b,
        sigma_sq=pwrss / (n - p if reml else n),
        pwrss=pwrss, L=L, RX=RX,
        fitted=fitted, residuals=residuals,
    )
