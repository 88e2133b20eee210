"""
Numerical tolerances and algorithm defaults.

Tolerance tiers describe how closely two routes to the same estimate are
expected to agree:
- CLOSED_FORM: QR / normal-equation results (machine precision)
- ITERATIVE: IRLS and PLS results (converged to ~1e-8 relative deviance)
- OPTIMIZER: quasi-Newton likelihood maximisation (gradient tolerance)

Used by the estimation module, the test suite, and solver defaults.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ToleranceTier:
    """Tolerance specification for numerical comparison."""
    rtol: float
    atol: float
    name: str
    description: str


CLOSED_FORM = ToleranceTier(
    rtol=1e-10,
    atol=1e-12,
    name='closed_form',
    description='Direct QR solve, double precision',
)

ITERATIVE = ToleranceTier(
    rtol=1e-6,
    atol=1e-8,
    name='iterative',
    description='IRLS / PLS fixed-point iteration at default tolerance',
)

OPTIMIZER = ToleranceTier(
    rtol=1e-4,
    atol=1e-5,
    name='optimizer',
    description='Quasi-Newton likelihood maximisation',
)

# Relative tolerance for declaring a column aliased in the QR solve.
# Matches the default tol of R's lm.fit.
QR_RANK_TOL = 1e-7

# IRLS defaults match R's glm.control().
IRLS_TOL = 1e-8
IRLS_MAX_ITER = 25

# Maximum number of step-halvings per IRLS iteration.
IRLS_MAX_HALVING = 30

# Likelihood optimizer defaults.
OPTIMIZER_GTOL = 1e-8
OPTIMIZER_MAX_ITER = 500


def select_tolerance(method: str) -> ToleranceTier:
    """Select the tolerance tier that applies to a fitting method."""
    if method in ('qr', 'ols'):
        return CLOSED_FORM
    if method in ('irls', 'irls_qr', 'pls', 'REML', 'ML'):
        return ITERATIVE
    return OPTIMIZER
