"""
GLM family and link function specifications.

Each Family defines:
- A variance function V(μ) relating variance to the mean
- A default link function g(μ) and the links it accepts
- A unit deviance d(y, μ); the deviance is Σ wt·d
- A log-likelihood for AIC, matching R's family$aic
- Starting values for IRLS and a check on the response

Each Link defines:
- g(μ) → η  (link)
- g⁻¹(η) → μ  (inverse link)
- dμ/dη  (derivative of inverse link, for IRLS weights)

References:
    McCullagh, P., & Nelder, J. A. (1989). Generalized Linear Models (2nd ed.)
    R Core Team. stats::family, stats::make.link
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import numpy as np
from numpy.typing import NDArray
from scipy.special import gammaln
from scipy.stats import norm

from pyregselect.core.exceptions import ValidationError
from pyregselect.core.validation import check_binary

# R's binomial links keep μ strictly inside (0, 1) by this margin
_EPS = np.finfo(np.float64).eps
_THRESH = -np.log(_EPS)


# =====================================================================
# Link functions
# =====================================================================

class Link(ABC):
    """Abstract link function g(μ) mapping mean to linear predictor."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def link(self, mu: NDArray) -> NDArray:
        """g(μ) → η."""
        ...

    @abstractmethod
    def linkinv(self, eta: NDArray) -> NDArray:
        """g⁻¹(η) → μ."""
        ...

    @abstractmethod
    def mu_eta(self, eta: NDArray) -> NDArray:
        """dμ/dη = (g⁻¹)'(η)."""
        ...

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class IdentityLink(Link):
    """Identity link: g(μ) = μ. Default for Gaussian family."""

    @property
    def name(self) -> str:
        return 'identity'

    def link(self, mu: NDArray) -> NDArray:
        return mu.copy()

    def linkinv(self, eta: NDArray) -> NDArray:
        return eta.copy()

    def mu_eta(self, eta: NDArray) -> NDArray:
        return np.ones_like(eta)


class LogitLink(Link):
    """Logit link: g(μ) = log(μ/(1-μ)). Default for Binomial family."""

    @property
    def name(self) -> str:
        return 'logit'

    def link(self, mu: NDArray) -> NDArray:
        return np.log(mu / (1 - mu))

    def linkinv(self, eta: NDArray) -> NDArray:
        # R's C code: clamp at ±30 so μ stays in [eps, 1 - eps]
        eta = np.clip(eta, -_THRESH, _THRESH)
        return 1.0 / (1.0 + np.exp(-eta))

    def mu_eta(self, eta: NDArray) -> NDArray:
        opexp = 1.0 + np.exp(np.minimum(np.abs(eta), 700.0))
        out = np.exp(np.minimum(np.abs(eta), 700.0)) / (opexp * opexp)
        return np.where(np.abs(eta) > 30.0, _EPS, out)


class ProbitLink(Link):
    """Probit link: g(μ) = Φ⁻¹(μ)."""

    @property
    def name(self) -> str:
        return 'probit'

    def link(self, mu: NDArray) -> NDArray:
        return norm.ppf(mu)

    def linkinv(self, eta: NDArray) -> NDArray:
        thresh = -norm.ppf(_EPS)
        return norm.cdf(np.clip(eta, -thresh, thresh))

    def mu_eta(self, eta: NDArray) -> NDArray:
        return np.maximum(norm.pdf(eta), _EPS)


class CloglogLink(Link):
    """Complementary log-log link: g(μ) = log(-log(1-μ))."""

    @property
    def name(self) -> str:
        return 'cloglog'

    def link(self, mu: NDArray) -> NDArray:
        return np.log(-np.log1p(-mu))

    def linkinv(self, eta: NDArray) -> NDArray:
        return np.clip(-np.expm1(-np.exp(np.minimum(eta, 700.0))), _EPS, 1 - _EPS)

    def mu_eta(self, eta: NDArray) -> NDArray:
        eta = np.minimum(eta, 700.0)
        return np.maximum(np.exp(eta) * np.exp(-np.exp(eta)), _EPS)


class LogLink(Link):
    """Log link: g(μ) = log(μ). Default for Poisson family."""

    @property
    def name(self) -> str:
        return 'log'

    def link(self, mu: NDArray) -> NDArray:
        return np.log(mu)

    def linkinv(self, eta: NDArray) -> NDArray:
        return np.maximum(np.exp(np.minimum(eta, 700.0)), _EPS)

    def mu_eta(self, eta: NDArray) -> NDArray:
        return np.maximum(np.exp(np.minimum(eta, 700.0)), _EPS)


_LINK_CLASSES: dict[str, type[Link]] = {
    'identity': IdentityLink,
    'logit': LogitLink,
    'probit': ProbitLink,
    'cloglog': CloglogLink,
    'log': LogLink,
}


def _resolve_link(link: str | Link | None, default: Link) -> Link:
    """Resolve a link argument to a Link instance."""
    if link is None:
        return default
    if isinstance(link, Link):
        return link
    if isinstance(link, str):
        cls = _LINK_CLASSES.get(link.lower())
        if cls is None:
            valid = ', '.join(sorted(_LINK_CLASSES))
            raise ValidationError(f"Unknown link: {link!r}. Valid links: {valid}")
        return cls()
    raise ValidationError(f"link must be str or Link, got {type(link).__name__}")


# =====================================================================
# Family base class
# =====================================================================

class Family(ABC):
    """
    GLM family specification.

    Defines the relationship between the mean and variance of the
    response distribution, along with a link function.
    """

    allowed_links: tuple[str, ...] = ()

    def __init__(self, link: str | Link | None = None):
        self._link = _resolve_link(link, self._default_link())
        if self.allowed_links and self._link.name not in self.allowed_links:
            raise ValidationError(
                f"link {self._link.name!r} not available for the {self.name} family. "
                f"Use one of: {', '.join(self.allowed_links)}"
            )

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def _default_link(self) -> Link:
        ...

    @property
    def link(self) -> Link:
        return self._link

    @abstractmethod
    def variance(self, mu: NDArray) -> NDArray:
        """Variance function V(μ)."""
        ...

    @abstractmethod
    def unit_deviance(self, y: NDArray, mu: NDArray) -> NDArray:
        """Per-observation deviance contributions d(y_i, μ_i)."""
        ...

    def deviance(self, y: NDArray, mu: NDArray, wt: NDArray) -> float:
        """Total deviance Σ wt_i d(y_i, μ_i)."""
        return float(np.sum(wt * self.unit_deviance(y, mu)))

    def deviance_residuals(self, y: NDArray, mu: NDArray, wt: NDArray) -> NDArray:
        """sign(y - μ) · sqrt(wt · d)."""
        d = np.maximum(wt * self.unit_deviance(y, mu), 0.0)
        return np.sign(y - mu) * np.sqrt(d)

    @abstractmethod
    def initialize(self, y: NDArray) -> NDArray:
        """Starting μ for IRLS (R's family$initialize)."""
        ...

    def validate_response(self, y: NDArray, name: str = 'y') -> None:
        """Raise ValidationError if y is outside the family's support."""

    @property
    def dispersion_is_fixed(self) -> bool:
        """Whether the dispersion parameter is known a priori (φ = 1)."""
        return False

    @abstractmethod
    def log_likelihood(
        self, y: NDArray, mu: NDArray, wt: NDArray, dispersion: float
    ) -> float:
        """Log-likelihood at μ; -2 × this is R's family$aic before the rank penalty."""
        ...

    def aic(
        self, y: NDArray, mu: NDArray, wt: NDArray,
        rank: int, dispersion: float
    ) -> float:
        """AIC = -2 loglik + 2 rank."""
        return -2.0 * self.log_likelihood(y, mu, wt, dispersion) + 2.0 * rank

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(link={self._link.name!r})"


# =====================================================================
# Concrete families
# =====================================================================

class Gaussian(Family):
    """Gaussian (Normal) family. Default link: identity.

    V(μ) = 1
    d(y, μ) = (y - μ)²
    """

    allowed_links = ('identity', 'log')

    @property
    def name(self) -> str:
        return 'gaussian'

    def _default_link(self) -> Link:
        return IdentityLink()

    def variance(self, mu: NDArray) -> NDArray:
        return np.ones_like(mu)

    def unit_deviance(self, y: NDArray, mu: NDArray) -> NDArray:
        return (y - mu) ** 2

    def initialize(self, y: NDArray) -> NDArray:
        return y.astype(np.float64).copy()

    def log_likelihood(
        self, y: NDArray, mu: NDArray, wt: NDArray, dispersion: float
    ) -> float:
        # Profile log-likelihood at the MLE variance RSS/n
        n = float(np.sum(wt > 0))
        rss = float(np.sum(wt * (y - mu) ** 2))
        return -0.5 * n * (np.log(2 * np.pi * rss / n) + 1.0)

    def aic(
        self, y: NDArray, mu: NDArray, wt: NDArray,
        rank: int, dispersion: float
    ) -> float:
        """R's gaussian()$aic counts the variance as one more parameter."""
        return -2.0 * self.log_likelihood(y, mu, wt, dispersion) + 2.0 * (rank + 1)


class Binomial(Family):
    """Binomial family for 0/1 responses. Default link: logit.

    V(μ) = μ(1-μ)
    d(y, μ) = 2 [y log(y/μ) + (1-y) log((1-y)/(1-μ))]
    """

    allowed_links = ('logit', 'probit', 'cloglog', 'log')

    @property
    def name(self) -> str:
        return 'binomial'

    def _default_link(self) -> Link:
        return LogitLink()

    def variance(self, mu: NDArray) -> NDArray:
        return mu * (1.0 - mu)

    def unit_deviance(self, y: NDArray, mu: NDArray) -> NDArray:
        # 0 log 0 = 0; np.where evaluates both branches
        with np.errstate(divide='ignore', invalid='ignore'):
            term1 = np.where(y > 0, y * np.log(y / mu), 0.0)
            term2 = np.where(y < 1, (1 - y) * np.log((1 - y) / (1 - mu)), 0.0)
        return 2.0 * (term1 + term2)

    def initialize(self, y: NDArray) -> NDArray:
        # R: mustart = (weights * y + 0.5) / (weights + 1)
        return (y + 0.5) / 2.0

    def validate_response(self, y: NDArray, name: str = 'y') -> None:
        check_binary(y, name)

    @property
    def dispersion_is_fixed(self) -> bool:
        return True

    def log_likelihood(
        self, y: NDArray, mu: NDArray, wt: NDArray, dispersion: float
    ) -> float:
        with np.errstate(divide='ignore', invalid='ignore'):
            ll = np.where(y > 0, y * np.log(mu), 0.0) + \
                np.where(y < 1, (1 - y) * np.log1p(-mu), 0.0)
        return float(np.sum(wt * ll))


class Poisson(Family):
    """Poisson family for counts. Default link: log.

    V(μ) = μ
    d(y, μ) = 2 [y log(y/μ) - (y - μ)]
    """

    allowed_links = ('log', 'identity')

    @property
    def name(self) -> str:
        return 'poisson'

    def _default_link(self) -> Link:
        return LogLink()

    def variance(self, mu: NDArray) -> NDArray:
        return mu.copy()

    def unit_deviance(self, y: NDArray, mu: NDArray) -> NDArray:
        with np.errstate(divide='ignore', invalid='ignore'):
            term = np.where(y > 0, y * np.log(y / mu), 0.0)
        return 2.0 * (term - (y - mu))

    def initialize(self, y: NDArray) -> NDArray:
        # R: mustart = y + 0.1
        return y + 0.1

    def validate_response(self, y: NDArray, name: str = 'y') -> None:
        if np.any(y < 0):
            raise ValidationError(
                f"{name}: negative values not allowed for the poisson family"
            )

    @property
    def dispersion_is_fixed(self) -> bool:
        return True

    def log_likelihood(
        self, y: NDArray, mu: NDArray, wt: NDArray, dispersion: float
    ) -> float:
        with np.errstate(divide='ignore', invalid='ignore'):
            ylogmu = np.where(y > 0, y * np.log(mu), 0.0)
        return float(np.sum(wt * (ylogmu - mu - gammaln(y + 1))))


# =====================================================================
# Family name → class mapping + resolver
# =====================================================================

_FAMILY_CLASSES: dict[str, type[Family]] = {
    'gaussian': Gaussian,
    'normal': Gaussian,
    'binomial': Binomial,
    'poisson': Poisson,
}


def resolve_family(family: str | Family, link: str | Link | None = None) -> Family:
    """Resolve a family argument to a Family instance.

    Args:
        family: Either a string name ('gaussian', 'binomial', 'poisson')
                or a Family instance (passed through; `link` must be None).
        link: Link name or instance for a family given by name.

    Raises:
        ValidationError: If the family or link is not recognized.
    """
    if isinstance(family, Family):
        if link is not None:
            raise ValidationError("link: pass the link to the Family instance instead")
        return family
    if isinstance(family, str):
        cls = _FAMILY_CLASSES.get(family.lower())
        if cls is None:
            valid = ', '.join(sorted(k for k in _FAMILY_CLASSES if k != 'normal'))
            raise ValidationError(
                f"Unknown family: {family!r}. Valid families: {valid}"
            )
        return cls(link)
    raise ValidationError(f"family must be str or Family, got {type(family).__name__}")
