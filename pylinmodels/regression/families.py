"""
Response distributions and link functions for glm().

A family is an exponential dispersion model, density

    f(y; θ, φ) = exp{ (yθ - b(θ)) / φ + c(y, φ) }

with mean μ = b'(θ) and variance φ·V(μ). IRLS needs only V(μ), the
unit deviance d(y, μ) and a link; the log-likelihood is used for AIC
and the sampler lets simulate() draw responses from the same object.

Links map the mean to the linear predictor, η = g(μ), and provide
g⁻¹ and dμ/dη for the working weights. Names follow R's family objects
so that results print the same way: 'Gamma', 'inverse.gaussian',
'1/mu^2'.

References:
    McCullagh, P., & Nelder, J. A. (1989). Generalized Linear Models (2nd ed.)
    R Core Team. stats::family, stats::make.link
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import numpy as np
from numpy.typing import NDArray
from scipy import special, stats

from pylinmodels.core.validation import check_in_range

_EPS = np.finfo(np.float64).eps

# |η| beyond which expit / Φ saturate to within eps of 0 or 1
_LOGIT_BOUND = -np.log(_EPS)
_PROBIT_BOUND = -stats.norm.ppf(_EPS)


class Link(ABC):
    """η = g(μ). Subclasses set name and implement the three maps."""

    name: str

    # η must be finite; 'positive' also requires η > 0, 'nonzero' η != 0
    eta_domain: str = 'real'

    @abstractmethod
    def link(self, mu: NDArray) -> NDArray:
        ...

    @abstractmethod
    def linkinv(self, eta: NDArray) -> NDArray:
        ...

    @abstractmethod
    def mu_eta(self, eta: NDArray) -> NDArray:
        """Derivative of the inverse link."""
        ...

    def valid_eta(self, eta: NDArray) -> bool:
        ok = np.isfinite(eta)
        if self.eta_domain == 'positive':
            ok &= eta > 0
        elif self.eta_domain == 'nonzero':
            ok &= eta != 0
        return bool(ok.all())

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class IdentityLink(Link):
    name = 'identity'

    def link(self, mu: NDArray) -> NDArray:
        return np.asarray(mu, dtype=np.float64).copy()

    def linkinv(self, eta: NDArray) -> NDArray:
        return np.asarray(eta, dtype=np.float64).copy()

    def mu_eta(self, eta: NDArray) -> NDArray:
        return np.ones(np.shape(eta))


class LogitLink(Link):
    """log-odds; μ stays strictly inside (0, 1) as in make.link('logit')."""
    name = 'logit'

    def link(self, mu: NDArray) -> NDArray:
        return special.logit(mu)

    def linkinv(self, eta: NDArray) -> NDArray:
        return special.expit(np.clip(eta, -_LOGIT_BOUND, _LOGIT_BOUND))

    def mu_eta(self, eta: NDArray) -> NDArray:
        p = special.expit(eta)
        return np.maximum(p * (1.0 - p), _EPS)


class ProbitLink(Link):
    name = 'probit'

    def link(self, mu: NDArray) -> NDArray:
        return stats.norm.ppf(mu)

    def linkinv(self, eta: NDArray) -> NDArray:
        return stats.norm.cdf(np.clip(eta, -_PROBIT_BOUND, _PROBIT_BOUND))

    def mu_eta(self, eta: NDArray) -> NDArray:
        return np.maximum(stats.norm.pdf(eta), _EPS)


class CloglogLink(Link):
    """log(-log(1 - μ)), asymmetric alternative to the logit."""
    name = 'cloglog'

    def link(self, mu: NDArray) -> NDArray:
        return np.log(-np.log1p(-mu))

    def linkinv(self, eta: NDArray) -> NDArray:
        # exp overflows past 709
        mu = -np.expm1(-np.exp(np.minimum(eta, 700.0)))
        return np.clip(mu, _EPS, 1.0 - _EPS)

    def mu_eta(self, eta: NDArray) -> NDArray:
        e = np.exp(np.minimum(eta, 700.0))
        return np.maximum(e * np.exp(-e), _EPS)


class LogLink(Link):
    name = 'log'

    def link(self, mu: NDArray) -> NDArray:
        return np.log(mu)

    def linkinv(self, eta: NDArray) -> NDArray:
        return np.maximum(np.exp(eta), _EPS)

    mu_eta = linkinv


class InverseLink(Link):
    name = 'inverse'
    eta_domain = 'nonzero'

    def link(self, mu: NDArray) -> NDArray:
        return 1.0 / mu

    def linkinv(self, eta: NDArray) -> NDArray:
        return 1.0 / eta

    def mu_eta(self, eta: NDArray) -> NDArray:
        return -1.0 / eta ** 2


class InverseSquaredLink(Link):
    name = '1/mu^2'
    eta_domain = 'positive'

    def link(self, mu: NDArray) -> NDArray:
        return mu ** -2.0

    def linkinv(self, eta: NDArray) -> NDArray:
        return 1.0 / np.sqrt(eta)

    def mu_eta(self, eta: NDArray) -> NDArray:
        return -0.5 * eta ** -1.5


class SqrtLink(Link):
    name = 'sqrt'
    eta_domain = 'positive'

    def link(self, mu: NDArray) -> NDArray:
        return np.sqrt(mu)

    def linkinv(self, eta: NDArray) -> NDArray:
        return eta ** 2

    def mu_eta(self, eta: NDArray) -> NDArray:
        return 2.0 * eta


_LINKS: dict[str, type[Link]] = {
    cls.name: cls for cls in (
        IdentityLink, LogitLink, ProbitLink, CloglogLink,
        LogLink, InverseLink, InverseSquaredLink, SqrtLink,
    )
}


def _make_link(link: str | Link) -> Link:
    if isinstance(link, Link):
        return link
    if not isinstance(link, str):
        raise TypeError(f"link must be str or Link, got {type(link).__name__}")
    try:
        return _LINKS[link.lower()]()
    except KeyError:
        raise ValueError(
            f"Unknown link: {link!r}. Valid links: {', '.join(sorted(_LINKS))}"
        ) from None


class Family(ABC):
    """
    Base class for the GLM families.

    Subclasses set name, default_link and, where they differ from the
    defaults, dispersion_is_fixed (φ known to be 1) and the domains:

        response_low      smallest admissible y, None for unbounded
        response_high     largest admissible y, None for unbounded
        y_low_inclusive   whether y may equal response_low
        mean_space        'real', 'positive' or 'unit' (open interval)
    """

    name: str
    default_link: type[Link]
    dispersion_is_fixed: bool = False

    response_low: float | None = None
    response_high: float | None = None
    y_low_inclusive: bool = True
    mean_space: str = 'real'

    def __init__(self, link: str | Link | None = None):
        self._link = self.default_link() if link is None else _make_link(link)

    @property
    def link(self) -> Link:
        return self._link

    @abstractmethod
    def variance(self, mu: NDArray) -> NDArray:
        """V(μ)."""
        ...

    @abstractmethod
    def unit_deviance(self, y: NDArray, mu: NDArray) -> NDArray:
        """d(y, μ), zero at μ = y."""
        ...

    @abstractmethod
    def log_likelihood(
        self, y: NDArray, mu: NDArray, wt: NDArray, dispersion: float
    ) -> float:
        ...

    @abstractmethod
    def sample(
        self, mu: NDArray, dispersion: float, rng: np.random.Generator
    ) -> NDArray:
        """One draw of y for each μ."""
        ...

    def initialize(self, y: NDArray) -> NDArray:
        """Starting μ for IRLS (R's mustart)."""
        return np.asarray(y, dtype=np.float64).copy()

    def deviance(self, y: NDArray, mu: NDArray, wt: NDArray) -> float:
        return float(np.sum(wt * self.unit_deviance(y, mu)))

    def validate_response(self, y: NDArray) -> None:
        if self.response_low is None and self.response_high is None:
            return
        check_in_range(
            y, f"y ({self.name})",
            low=self.response_low, high=self.response_high,
            low_inclusive=self.y_low_inclusive,
        )

    def valid_mu(self, mu: NDArray) -> bool:
        ok = np.isfinite(mu)
        if self.mean_space in ('positive', 'unit'):
            ok &= mu > 0
        if self.mean_space == 'unit':
            ok &= mu < 1
        return bool(ok.all())

    def aic(
        self, y: NDArray, mu: NDArray, wt: NDArray,
        rank: int, dispersion: float
    ) -> float:
        """
        AIC as R's glm reports it.

        With φ estimated, the likelihood is evaluated at the ML value
        deviance / n (not the moment estimate passed in as dispersion)
        and φ counts as one more parameter.
        """
        if self.dispersion_is_fixed:
            return -2.0 * self.log_likelihood(y, mu, wt, 1.0) + 2.0 * rank
        phi = self.deviance(y, mu, wt) / float(np.sum(wt))
        return -2.0 * self.log_likelihood(y, mu, wt, phi) + 2.0 * (rank + 1)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(link={self._link.name!r})"


class Gaussian(Family):
    """V(μ) = 1; with the identity link the deviance is the RSS."""
    name = 'gaussian'
    default_link = IdentityLink

    def variance(self, mu: NDArray) -> NDArray:
        return np.ones(np.shape(mu))

    def unit_deviance(self, y: NDArray, mu: NDArray) -> NDArray:
        return (y - mu) ** 2

    def log_likelihood(
        self, y: NDArray, mu: NDArray, wt: NDArray, dispersion: float
    ) -> float:
        return float(np.sum(
            -0.5 * wt * (y - mu) ** 2 / dispersion
            - 0.5 * np.log(2.0 * np.pi * dispersion / wt)
        ))

    def sample(
        self, mu: NDArray, dispersion: float, rng: np.random.Generator
    ) -> NDArray:
        return rng.normal(mu, np.sqrt(dispersion))


class Binomial(Family):
    """Bernoulli responses (proportions in [0, 1]), V(μ) = μ(1 - μ)."""
    name = 'binomial'
    default_link = LogitLink
    dispersion_is_fixed = True
    response_low, response_high = 0.0, 1.0
    mean_space = 'unit'

    def variance(self, mu: NDArray) -> NDArray:
        return mu * (1.0 - mu)

    def unit_deviance(self, y: NDArray, mu: NDArray) -> NDArray:
        # xlogy(0, 0) is 0, so y in {0, 1} needs no special case
        ny = 1.0 - y
        return 2.0 * (
            special.xlogy(y, y) - special.xlogy(y, mu)
            + special.xlogy(ny, ny) - special.xlogy(ny, 1.0 - mu)
        )

    def initialize(self, y: NDArray) -> NDArray:
        return (y + 0.5) / 2.0

    def log_likelihood(
        self, y: NDArray, mu: NDArray, wt: NDArray, dispersion: float
    ) -> float:
        return float(np.sum(wt * (special.xlogy(y, mu) + special.xlog1py(1.0 - y, -mu))))

    def sample(
        self, mu: NDArray, dispersion: float, rng: np.random.Generator
    ) -> NDArray:
        return rng.binomial(1, mu).astype(np.float64)


class Poisson(Family):
    """Counts, V(μ) = μ."""
    name = 'poisson'
    default_link = LogLink
    dispersion_is_fixed = True
    response_low = 0.0
    mean_space = 'positive'

    def variance(self, mu: NDArray) -> NDArray:
        return np.asarray(mu, dtype=np.float64).copy()

    def unit_deviance(self, y: NDArray, mu: NDArray) -> NDArray:
        return 2.0 * (special.xlogy(y, y / mu) - (y - mu))

    def initialize(self, y: NDArray) -> NDArray:
        # zero counts would start at log(0)
        return y + 0.1

    def log_likelihood(
        self, y: NDArray, mu: NDArray, wt: NDArray, dispersion: float
    ) -> float:
        # gammaln rather than logpmf: y need not be integral
        return float(np.sum(wt * (special.xlogy(y, mu) - mu - special.gammaln(y + 1.0))))

    def sample(
        self, mu: NDArray, dispersion: float, rng: np.random.Generator
    ) -> NDArray:
        return rng.poisson(mu).astype(np.float64)


class Gamma(Family):
    """
    Positive continuous responses with constant coefficient of
    variation: V(μ) = μ², φ = 1/shape, CV = √φ.
    """
    name = 'Gamma'
    default_link = InverseLink
    response_low = 0.0
    y_low_inclusive = False
    mean_space = 'positive'

    def variance(self, mu: NDArray) -> NDArray:
        return mu ** 2

    def unit_deviance(self, y: NDArray, mu: NDArray) -> NDArray:
        r = y / mu
        return 2.0 * (r - 1.0 - np.log(r))

    def log_likelihood(
        self, y: NDArray, mu: NDArray, wt: NDArray, dispersion: float
    ) -> float:
        return float(np.sum(
            wt * stats.gamma.logpdf(y, a=1.0 / dispersion, scale=mu * dispersion)
        ))

    def sample(
        self, mu: NDArray, dispersion: float, rng: np.random.Generator
    ) -> NDArray:
        return rng.gamma(1.0 / dispersion, np.asarray(mu) * dispersion)


class InverseGaussian(Family):
    """V(μ) = μ³."""
    name = 'inverse.gaussian'
    default_link = InverseSquaredLink
    response_low = 0.0
    y_low_inclusive = False
    mean_space = 'positive'

    def variance(self, mu: NDArray) -> NDArray:
        return mu ** 3

    def unit_deviance(self, y: NDArray, mu: NDArray) -> NDArray:
        return ((y - mu) / mu) ** 2 / y

    def log_likelihood(
        self, y: NDArray, mu: NDArray, wt: NDArray, dispersion: float
    ) -> float:
        # invgauss(m, scale=s) has mean m·s and shape s
        lam = 1.0 / dispersion
        return float(np.sum(wt * stats.invgauss.logpdf(y, mu / lam, scale=lam)))

    def sample(
        self, mu: NDArray, dispersion: float, rng: np.random.Generator
    ) -> NDArray:
        # Wald(mean, scale) has variance mean³ / scale
        return rng.wald(mu, 1.0 / dispersion)


_FAMILIES: dict[str, type[Family]] = {
    cls.name.lower(): cls
    for cls in (Gaussian, Binomial, Poisson, Gamma, InverseGaussian)
}
_ALIASES = {'normal': 'gaussian', 'inverse_gaussian': 'inverse.gaussian'}


def resolve_family(family: str | Family, link: str | Link | None = None) -> Family:
    """
    Family instance from a name ('gaussian', 'binomial', 'poisson',
    'gamma', 'inverse.gaussian', case-insensitive) or an instance.

    link overrides the default link of a named family. An instance
    already carries its link, so passing one alongside is a ValueError.
    """
    if isinstance(family, Family):
        if link is not None:
            raise ValueError("link must be set on the Family instance, not passed separately")
        return family
    if not isinstance(family, str):
        raise TypeError(f"family must be str or Family, got {type(family).__name__}")

    key = family.lower()
    cls = _FAMILIES.get(_ALIASES.get(key, key))
    if cls is None:
        raise ValueError(
            f"Unknown family: {family!r}. Valid families: {', '.join(sorted(_FAMILIES))}"
        )
    return cls(link=link)
