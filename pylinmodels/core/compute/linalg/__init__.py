"""
Linear algebra kernels for pylinmodels.

All functions follow these conventions:
    - NumPy/SciPy (LAPACK under the hood)
    - Each decomposition returns a structured result dataclass
    - Rank deficiency is reported, never silently ignored

Submodules:
    qr: QR least squares with R-style aliasing
"""

from pylinmodels.core.compute.linalg.qr import (
    QRResult,
    find_active_columns,
    fitted_from,
    qr_decompose,
    qr_solve,
)

__all__ = [
    "QRResult",
    "find_active_columns",
    "fitted_from",
    "qr_decompose",
    "qr_solve",
]
