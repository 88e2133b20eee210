"""
Deterministic and stochastic straight-line models.

A deterministic model maps each input to exactly one output:

    y = β₀ + β₁x

A stochastic model describes a whole distribution of outputs for each
input. Its mean follows the same line on the link scale,

    E[y | x] = g⁻¹(β₀ + β₁x),   Var[y | x] = φ·V(E[y | x]),

and repeated draws at the same x differ. With the Gaussian family and
identity link this is the classical linear regression model
y = β₀ + β₁x + ε with ε ~ N(0, σ²), and φ = σ².
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
import numpy as np
from numpy.typing import ArrayLike, NDArray

from pylinmodels.core.exceptions import ValidationError
from pylinmodels.core.validation import check_array, check_consistent_length
from pylinmodels.regression.families import Family, Link, resolve_family


def make_rng(seed: int | np.random.Generator | None) -> np.random.Generator:
    """A Generator from an int seed, an existing Generator, or None (fresh entropy)."""
    if isinstance(seed, np.random.Generator):
        return seed
    if seed is None or isinstance(seed, (int, np.integer)):
        return np.random.default_rng(seed)
    raise ValidationError(
        f"seed must be an int, numpy Generator or None, got {type(seed).__name__}"
    )


@dataclass(frozen=True)
class DeterministicModel:
    """
    Exact straight line y = intercept + slope·x.

    predict() has no randomness: the same x always gives the same y.
    """
    intercept: float
    slope: float

    def predict(self, x: ArrayLike) -> NDArray[np.floating[Any]]:
        x_arr = check_array(x, 'x')
        return self.intercept + self.slope * x_arr

    def __call__(self, x: ArrayLike) -> NDArray[np.floating[Any]]:
        return self.predict(x)


@dataclass(frozen=True)
class StochasticModel:
    """
    Straight-line mean plus an exponential-dispersion-family error.

    Args:
        intercept: β₀ on the link scale
        slope: β₁ on the link scale
        family: 'gaussian', 'binomial', 'poisson', 'gamma',
            'inverse.gaussian' or a Family instance
        link: Link override (defaults to the family's canonical link)
        dispersion: φ. For the Gaussian family this is σ². Ignored by
            binomial and Poisson, whose dispersion is fixed at 1.

    Examples:
        >>> model = StochasticModel(intercept=1.0, slope=2.0, dispersion=0.25)
        >>> y = model.sample(np.linspace(0, 1, 50), seed=42)
    """
    intercept: float
    slope: float
    family: str | Family = 'gaussian'
    link: str | Link | None = None
    dispersion: float = 1.0
    _family: Family = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not np.isfinite(self.dispersion) or self.dispersion <= 0:
            raise ValidationError(f"dispersion: must be positive, got {self.dispersion}")
        object.__setattr__(self, '_family', resolve_family(self.family, self.link))

    @property
    def family_spec(self) -> Family:
        """The resolved Family (with its link)."""
        return self._family

    @property
    def phi(self) -> float:
        """Effective dispersion: 1 for binomial/Poisson, otherwise `dispersion`."""
        return 1.0 if self._family.dispersion_is_fixed else float(self.dispersion)

    @property
    def sigma(self) -> float:
        """Error standard deviation √φ (Gaussian family only)."""
        if self._family.name != 'gaussian':
            raise ValidationError("sigma is only defined for the Gaussian family")
        return float(np.sqrt(self.dispersion))

    def linear_predictor(self, x: ArrayLike) -> NDArray[np.floating[Any]]:
        """η = intercept + slope·x."""
        return self.intercept + self.slope * check_array(x, 'x')

    def mean(self, x: ArrayLike) -> NDArray[np.floating[Any]]:
        """E[y | x] = g⁻¹(η)."""
        mu = self._family.link.linkinv(self.linear_predictor(x))
        if not self._family.valid_mu(mu):
            raise ValidationError(
                f"Mean leaves the {self._family.name} mean space for these x values"
            )
        return mu

    def variance(self, x: ArrayLike) -> NDArray[np.floating[Any]]:
        """Var[y | x] = φ·V(μ)."""
        return self.phi * self._family.variance(self.mean(x))

    def sample(
        self,
        x: ArrayLike,
        seed: int | np.random.Generator | None = None,
    ) -> NDArray[np.floating[Any]]:
        """Draw one response per x value."""
        rng = make_rng(seed)
        return self._family.sample(self.mean(x), self.phi, rng)

    def log_likelihood(self, x: ArrayLike, y: ArrayLike) -> float:
        """Log-likelihood of observed y at the model parameters."""
        x_arr = check_array(x, 'x')
        y_arr = check_array(y, 'y')
        check_consistent_length(x_arr, y_arr, names=('x', 'y'))
        mu = self.mean(x_arr)
        wt = np.ones_like(mu)
        return self._family.log_likelihood(y_arr, mu, wt, self.phi)

    def deterministic_part(self) -> DeterministicModel:
        """The line on the link scale, without the noise."""
        return DeterministicModel(intercept=self.intercept, slope=self.slope)
