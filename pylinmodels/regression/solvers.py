"""
Solver dispatch for regression.

This module provides the public fitting functions and backend selection:

    fit(X, y)                     -> LinearSolution  (OLS via QR)
    fit(X, y, family='poisson')   -> GLMSolution     (IRLS)
    lm('y ~ x + g', data)         -> LinearSolution
    glm('y ~ x', data, family=)   -> GLMSolution
"""

from __future__ import annotations

import warnings
from typing import Any, Literal

from pylinmodels.core.compute.tolerances import IRLS_TOL, IRLS_MAX_ITER
from pylinmodels.core.exceptions import ValidationError
from pylinmodels.regression.design import Design
from pylinmodels.regression.families import Family, Link, resolve_family
from pylinmodels.regression.solution import LinearSolution, GLMSolution
from pylinmodels.regression.backends.cpu import CPUQRBackend
from pylinmodels.regression.backends.cpu_glm import CPUIRLSBackend


# Type alias for backend selection
BackendChoice = Literal['auto', 'cpu', 'cpu_qr', 'cpu_irls']


def fit(
    X: Any,
    y: Any = None,
    *,
    family: str | Family | None = None,
    link: str | Link | None = None,
    names: list[str] | None = None,
    backend: BackendChoice = 'auto',
    tol: float = IRLS_TOL,
    max_iter: int = IRLS_MAX_ITER,
) -> LinearSolution | GLMSolution:
    """
    Fit a linear or generalized linear model.

    Without a family, solves the ordinary least squares problem
        min_β ||y - Xβ||²
    by QR and returns a LinearSolution. With a family, fits the GLM by
    IRLS and returns a GLMSolution.

    This is the primary public API for regression on arrays. All input
    validation, backend selection, and result wrapping happens here.

    Args:
        X: Design matrix (n x p), or a prebuilt Design (then y is omitted).
            Include a column of ones for an intercept.
        y: Response vector (n,).
        family: None for OLS, or a GLM family ('gaussian', 'binomial',
            'poisson', 'gamma', 'inverse.gaussian') or Family instance.
        link: Link override for a string family.
        names: Coefficient names (defaults: '(Intercept)', 'x1', ...).
        backend: 'auto', 'cpu', 'cpu_qr' (OLS) or 'cpu_irls' (GLM).
        tol: IRLS convergence tolerance on the relative deviance change.
        max_iter: Maximum IRLS iterations.

    Returns:
        LinearSolution or GLMSolution

    Raises:
        ValidationError: If inputs are invalid or y is outside the
            family's support
        DimensionError: If X and y have inconsistent dimensions
        ConvergenceError: If IRLS cannot find a valid step

    Example:
        >>> import numpy as np
        >>> from pylinmodels.regression import fit
        >>>
        >>> X = np.column_stack([np.ones(100), np.random.randn(100, 2)])
        >>> y = X @ [1, 2, 3] + np.random.randn(100) * 0.1
        >>>
        >>> result = fit(X, y)
        >>> print(result.coefficients)
        >>> print(result.summary())
    """
    # === Construct Design ===
    # This is the boundary - validate here, trust everywhere else
    if isinstance(X, Design):
        if y is not None:
            raise ValidationError("Pass either a Design or (X, y), not both")
        design = X
    else:
        if y is None:
            raise ValidationError("y is required when X is an array")
        design = Design.from_arrays(X, y, names=names)

    if family is None:
        if link is not None:
            raise ValidationError("link requires a family")
        backend_impl = _get_backend(backend, glm=False)
        result = backend_impl.solve(design)
        return LinearSolution(_result=result, _design=design)

    fam = resolve_family(family, link)
    fam.validate_response(design.y)

    backend_impl = _get_backend(backend, glm=True, tol=tol, max_iter=max_iter)
    result = backend_impl.solve(design, fam)

    for msg in result.warnings:
        warnings.warn(msg, RuntimeWarning, stacklevel=2)

    return GLMSolution(_result=result, _design=design, _family=fam)


def lm(formula: str, data: Any, **kwargs: Any) -> LinearSolution:
    """
    Fit a linear model from an R-style formula.

    Args:
        formula: e.g. 'y ~ x', 'y ~ x * g', 'log(y) ~ x + I(x^2)'
        data: pandas DataFrame, mapping of columns, DataSource or file path
        **kwargs: passed to fit() (backend)

    Returns:
        LinearSolution that remembers its model matrix, so predict()
        accepts new data tables and anova() can decompose terms.

    Example:
        >>> model = lm('y ~ x', df)
        >>> model.coefficients
    """
    design = Design.from_formula(formula, data)
    return fit(design, **kwargs)


def glm(
    formula: str,
    data: Any,
    family: str | Family = 'gaussian',
    link: str | Link | None = None,
    **kwargs: Any,
) -> GLMSolution:
    """
    Fit a generalized linear model from an R-style formula.

    Args:
        formula: e.g. 'counts ~ x + g'
        data: pandas DataFrame, mapping of columns, DataSource or file path
        family: GLM family name or instance (default 'gaussian')
        link: Link override for a string family
        **kwargs: passed to fit() (tol, max_iter, backend)

    Example:
        >>> model = glm('y ~ x', df, family='poisson')
        >>> model.deviance
    """
    design = Design.from_formula(formula, data)
    return fit(design, family=family, link=link, **kwargs)


def _get_backend(
    choice: BackendChoice,
    *,
    glm: bool,
    tol: float = IRLS_TOL,
    max_iter: int = IRLS_MAX_ITER,
):
    """
    Select and instantiate the appropriate backend.

    Raises:
        ValueError: If unknown backend specified or it cannot fit the model
    """
    if choice not in ('auto', 'cpu', 'cpu_qr', 'cpu_irls'):
        raise ValueError(f"Unknown backend: {choice!r}")
    if glm:
        if choice == 'cpu_qr':
            raise ValueError("Backend 'cpu_qr' fits linear models only; use 'cpu_irls'")
        return CPUIRLSBackend(tol=tol, max_iter=max_iter)
    if choice == 'cpu_irls':
        raise ValueError("Backend 'cpu_irls' requires a family")
    return CPUQRBackend()
