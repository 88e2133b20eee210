"""
Shared compute infrastructure for pylinmodels.

This module provides timing utilities, tolerance tiers and linear algebra
kernels that are shared across all domain-specific solvers.

Submodules:
    timing: Execution timing utilities
    tolerances: Numerical tolerance tiers and algorithm defaults
    linalg: Linear algebra kernels (QR)
"""

from pylinmodels.core.compute.timing import Timer
from pylinmodels.core.compute.tolerances import ToleranceTier, select_tolerance

__all__ = [
    "Timer",
    "ToleranceTier",
    "select_tolerance",
]
