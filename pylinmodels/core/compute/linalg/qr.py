"""
QR least squares with R-style aliasing.

R's lm() never refuses a rank-deficient design: it keeps columns in order
and marks a column as aliased when it is (numerically) a linear
combination of the columns already kept. Aliased coefficients are
reported as NA. This module reproduces that behaviour so that models with
redundant dummies or collinear predictors fit instead of failing.
"""

from dataclasses import dataclass
from typing import Any
import numpy as np
from numpy.typing import NDArray
from scipy.linalg import solve_triangular

from pylinmodels.core.compute.tolerances import QR_RANK_TOL


@dataclass(frozen=True)
class QRResult:
    """
    Result of a QR decomposition of the non-aliased columns.

    Attributes:
        Q: Orthonormal basis of the kept columns (n x rank)
        R: Upper triangular factor (rank x rank)
        rank: Number of kept (non-aliased) columns
        pivot: Column order, kept columns first then aliased ones (p,)
    """
    Q: NDArray[np.floating[Any]]
    R: NDArray[np.floating[Any]]
    rank: int
    pivot: NDArray[np.intp]

    @property
    def active(self) -> NDArray[np.intp]:
        """Indices of the kept columns, in original order."""
        return self.pivot[:self.rank]

    @property
    def aliased(self) -> NDArray[np.intp]:
        """Indices of the aliased columns."""
        return self.pivot[self.rank:]

    def unscaled_covariance(self) -> NDArray[np.floating[Any]]:
        """(X_a'X_a)^-1 for the kept columns, via R^-1 R^-T."""
        R_inv = solve_triangular(self.R, np.eye(self.rank), lower=False)
        return R_inv @ R_inv.T


def find_active_columns(
    X: NDArray[np.floating[Any]],
    tol: float = QR_RANK_TOL,
) -> tuple[list[int], list[int]]:
    """
    Split columns into kept and aliased, scanning left to right.

    A column is aliased when the norm of its residual after projecting
    out the kept columns falls below tol times its own norm. Projection
    uses Gram-Schmidt with one re-orthogonalisation pass.

    Returns:
        (kept, aliased) column index lists
    """
    n, p = X.shape
    basis: list[NDArray] = []
    kept: list[int] = []
    aliased: list[int] = []

    for j in range(p):
        v = X[:, j].astype(np.float64, copy=True)
        norm0 = float(np.linalg.norm(v))
        if norm0 == 0.0:
            aliased.append(j)
            continue
        for _ in range(2):
            for q in basis:
                v -= (q @ v) * q
        norm_resid = float(np.linalg.norm(v))
        if norm_resid <= tol * norm0:
            aliased.append(j)
        else:
            kept.append(j)
            basis.append(v / norm_resid)

    return kept, aliased


def qr_decompose(
    X: NDArray[np.floating[Any]],
    tol: float = QR_RANK_TOL,
) -> QRResult:
    """
    QR decomposition of the non-aliased columns of X.

    Args:
        X: Matrix to decompose (n x p)
        tol: Relative tolerance for declaring a column aliased

    Returns:
        QRResult with Q (n x rank), R (rank x rank), rank and pivot
    """
    kept, aliased = find_active_columns(X, tol)
    pivot = np.array(kept + aliased, dtype=np.intp)
    if kept:
        Q, R = np.linalg.qr(X[:, kept], mode='reduced')
    else:
        Q = np.empty((X.shape[0], 0), dtype=np.float64)
        R = np.empty((0, 0), dtype=np.float64)
    return QRResult(Q=Q, R=R, rank=len(kept), pivot=pivot)


def qr_solve(
    X: NDArray[np.floating[Any]],
    y: NDArray[np.floating[Any]],
    tol: float = QR_RANK_TOL,
) -> tuple[NDArray[np.floating[Any]], QRResult]:
    """
    Solve least squares min_β ||y - Xβ||² via QR.

    The solution for the kept columns is β_a = R⁻¹ Q'y; aliased
    coefficients are NaN.

    Args:
        X: Design matrix (n x p)
        y: Response vector (n,)
        tol: Relative tolerance for aliasing

    Returns:
        (coefficients, QRResult)
    """
    p = X.shape[1]
    qr = qr_decompose(X, tol)

    coef = np.full(p, np.nan, dtype=np.float64)
    if qr.rank > 0:
        Qty = qr.Q.T @ y
        coef[qr.active] = solve_triangular(qr.R, Qty, lower=False)

    return coef, qr


def fitted_from(
    X: NDArray[np.floating[Any]],
    coef: NDArray[np.floating[Any]],
) -> NDArray[np.floating[Any]]:
    """X @ coef, treating aliased (NaN) coefficients as zero."""
    return X @ np.where(np.isnan(coef), 0.0, coef)
