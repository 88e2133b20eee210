"""
Linear and generalized linear models.

Public API:
    fit(X, y, ...) -> LinearSolution | GLMSolution
    lm(formula, data) -> LinearSolution
    glm(formula, data, family, link) -> GLMSolution

fit() works on arrays; lm() and glm() are the formula front ends. Each
handles input validation, design construction, backend selection and
result wrapping.

Example:
    >>> from pylinmodels.regression import lm
    >>> model = lm('y ~ x', df)
    >>> print(model.coefficients)
    >>> print(model.summary())
"""

from pylinmodels.regression.design import Design
from pylinmodels.regression.families import (
    Family, Link,
    Gaussian, Binomial, Poisson, Gamma, InverseGaussian,
    IdentityLink, LogitLink, ProbitLink, CloglogLink, LogLink,
    InverseLink, InverseSquaredLink, SqrtLink,
    resolve_family,
)
from pylinmodels.regression.solution import (
    LinearSolution, LinearParams, GLMSolution, GLMParams,
)
from pylinmodels.regression.solvers import fit, lm, glm

__all__ = [
    "fit",
    "lm",
    "glm",
    "Design",
    "LinearSolution",
    "LinearParams",
    "GLMSolution",
    "GLMParams",
    "Family",
    "Link",
    "Gaussian",
    "Binomial",
    "Poisson",
    "Gamma",
    "InverseGaussian",
    "IdentityLink",
    "LogitLink",
    "ProbitLink",
    "CloglogLink",
    "LogLink",
    "InverseLink",
    "InverseSquaredLink",
    "SqrtLink",
    "resolve_family",
]
