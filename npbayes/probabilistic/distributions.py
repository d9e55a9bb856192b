"""Densities used as cluster likelihoods and predictive distributions.

All densities evaluate batches of observations (one per row) so that the
samplers can score every observation against a cluster in a single call.

References:
    Murphy, K. P. (2007). Conjugate Bayesian analysis of the Gaussian
    distribution. Technical report, UBC.
    Pitman, J. (2006). Combinatorial Stochastic Processes. Springer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np
from scipy.special import gammaln
from scipy.stats import invwishart

from .utils import as_batch, cholesky_factor, ensure_2d, log_normal_pdf, log_student_t_pdf


class Density(ABC):
    """Capability interface for a probability density over observations."""

    @property
    @abstractmethod
    def dimensionality(self) -> int:
        """Dimensionality of a single observation."""

    @abstractmethod
    def _log_pdf_batch(self, x: np.ndarray) -> np.ndarray:
        """Log density of a validated ``(n, d)`` batch."""

    def log_pdf(self, x: np.ndarray) -> np.ndarray | float:
        """Log density of one observation or a batch of observations.

        Args:
            x: A single observation or an array with one observation per row.

        Returns:
            A float for a single observation, otherwise an array of shape (n,).
        """
        batch, single = as_batch(x, self.dimensionality)
        values = self._log_pdf_batch(batch)
        return float(values[0]) if single else values

    def pdf(self, x: np.ndarray) -> np.ndarray | float:
        """Density of one observation or a batch of observations."""
        return np.exp(self.log_pdf(x))


class MultivariateGaussian(Density):
    """Multivariate Gaussian with the covariance Cholesky-factored up front.

    Attributes:
        mean: Mean vector, shape (d,).
        covariance: Covariance matrix, shape (d, d).
    """

    def __init__(self, mean: np.ndarray, covariance: np.ndarray):
        self.mean = np.atleast_1d(np.asarray(mean, dtype=float))
        self.covariance = np.atleast_2d(np.asarray(covariance, dtype=float))
        if self.covariance.shape != (len(self.mean), len(self.mean)):
            raise ValueError(
                f"covariance shape {self.covariance.shape} incompatible with "
                f"mean shape {self.mean.shape}"
            )
        self._chol = cholesky_factor(self.covariance)

    @property
    def dimensionality(self) -> int:
        return len(self.mean)

    def _log_pdf_batch(self, x: np.ndarray) -> np.ndarray:
        return log_normal_pdf(x, self.mean, self._chol)

    def sample(self, rng: np.random.Generator, n_samples: int = 1) -> np.ndarray:
        """Draw samples, shape (n_samples, d)."""
        z = rng.standard_normal((n_samples, self.dimensionality))
        return self.mean + z @ self._chol.T

    def __repr__(self) -> str:
        return f"MultivariateGaussian(mean={self.mean!r}, covariance={self.covariance!r})"


class MultivariateStudentT(Density):
    """Multivariate Student-t distribution.

    Attributes:
        location: Location vector, shape (d,).
        scale: Positive definite scale matrix, shape (d, d).
        dof: Degrees of freedom.
    """

    def __init__(self, location: np.ndarray, scale: np.ndarray, dof: float):
        if dof <= 0:
            raise ValueError(f"dof must be > 0, got {dof}")
        self.location = np.atleast_1d(np.asarray(location, dtype=float))
        self.scale = np.atleast_2d(np.asarray(scale, dtype=float))
        if self.scale.shape != (len(self.location), len(self.location)):
            raise ValueError(
                f"scale shape {self.scale.shape} incompatible with "
                f"location shape {self.location.shape}"
            )
        self.dof = float(dof)
        self._chol = cholesky_factor(self.scale)

    @property
    def dimensionality(self) -> int:
        return len(self.location)

    def _log_pdf_batch(self, x: np.ndarray) -> np.ndarray:
        return log_student_t_pdf(x, self.location, self._chol, self.dof)

    def __repr__(self) -> str:
        return (
            f"MultivariateStudentT(location={self.location!r}, "
            f"scale={self.scale!r}, dof={self.dof})"
        )


@dataclass(frozen=True)
class NormalInverseWishart:
    """Normal-Inverse-Wishart distribution over a Gaussian's mean and covariance.

    ``covariance ~ IW(dof, scale)`` and ``mean | covariance ~ N(mean, covariance / kappa)``.

    Attributes:
        mean: Prior mean vector, shape (d,).
        kappa: Pseudo-count on the mean (covariance divisor), > 0.
        dof: Inverse-Wishart degrees of freedom, > d - 1.
        scale: Inverse-Wishart scale matrix, shape (d, d).
    """

    mean: np.ndarray
    kappa: float
    dof: float
    scale: np.ndarray

    def __post_init__(self) -> None:
        """Validate NormalInverseWishart invariants."""
        mean = np.atleast_1d(np.asarray(self.mean, dtype=float))
        scale = np.atleast_2d(np.asarray(self.scale, dtype=float))
        d = len(mean)
        if scale.shape != (d, d):
            raise ValueError(f"scale shape {scale.shape} incompatible with mean shape {mean.shape}")
        if self.kappa <= 0:
            raise ValueError(f"kappa must be > 0, got {self.kappa}")
        if self.dof <= d - 1:
            raise ValueError(f"dof must be > d - 1 = {d - 1}, got {self.dof}")
        object.__setattr__(self, "mean", mean)
        object.__setattr__(self, "scale", scale)

    @classmethod
    def default(cls, dimensionality: int) -> "NormalInverseWishart":
        """Zero mean, unit pseudo-count, ``d + 2`` degrees of freedom, identity scale."""
        if dimensionality < 1:
            raise ValueError(f"dimensionality must be >= 1, got {dimensionality}")
        return cls(
            mean=np.zeros(dimensionality),
            kappa=1.0,
            dof=dimensionality + 2.0,
            scale=np.eye(dimensionality),
        )

    @property
    def dimensionality(self) -> int:
        return len(self.mean)

    def update(self, values: np.ndarray) -> "NormalInverseWishart":
        """Conjugate posterior after observing ``values`` (one per row)."""
        x = ensure_2d(values)
        n = len(x)
        if n == 0:
            return self
        if x.shape[1] != self.dimensionality:
            raise ValueError(
                f"Expected observations of dimensionality {self.dimensionality}, "
                f"got {x.shape[1]}"
            )
        x_bar = np.mean(x, axis=0)
        centered = x - x_bar
        scatter = centered.T @ centered
        kappa_n = self.kappa + n
        shift = (x_bar - self.mean)[:, np.newaxis]
        return NormalInverseWishart(
            mean=(self.kappa * self.mean + n * x_bar) / kappa_n,
            kappa=kappa_n,
            dof=self.dof + n,
            scale=self.scale + scatter + (self.kappa * n / kappa_n) * (shift @ shift.T),
        )

    def sample(self, rng: np.random.Generator) -> Tuple[np.ndarray, np.ndarray]:
        """Draw ``(mean, covariance)``."""
        covariance = np.atleast_2d(invwishart.rvs(df=self.dof, scale=self.scale, random_state=rng))
        mean = MultivariateGaussian(self.mean, covariance / self.kappa).sample(rng)[0]
        return mean, covariance

    def predictive(self) -> MultivariateStudentT:
        """Student-t posterior predictive of a new observation."""
        d = self.dimensionality
        dof = self.dof - d + 1.0
        scale = self.scale * (self.kappa + 1.0) / (self.kappa * dof)
        return MultivariateStudentT(self.mean, scale, dof)


def crp_log_pmf(counts: Sequence[float], alpha: float, num_customers: int) -> float:
    """Log probability of a table-count configuration under a Chinese Restaurant Process.

    log p = K log(alpha) + sum_k log((n_k - 1)!) + log Gamma(alpha) - log Gamma(alpha + sum_k n_k)

    Args:
        counts: Number of customers at each of the K tables.
        alpha: Concentration parameter, > 0.
        num_customers: Total number of customers; no table may hold more.

    Returns:
        Log probability, ``-inf`` when any table is empty or over-full.

    Raises:
        ValueError: If alpha <= 0 or a count is not an integer.
    """
    if alpha <= 0:
        raise ValueError(f"alpha must be > 0, got {alpha}")
    counts = np.asarray(counts, dtype=float)
    if np.any(counts < 1) or np.any(counts > num_customers):
        return -np.inf
    if np.any(np.floor(counts) != counts):
        raise ValueError(f"Customers at each table must be an integer: {counts}")

    total = np.sum(counts)
    log_sum = len(counts) * np.log(alpha)
    log_sum += np.sum(gammaln(counts))
    log_sum += gammaln(alpha) - gammaln(alpha + total)
    return float(log_sum)


def gaussian_mean_posterior(
    values: np.ndarray,
    known_covariance_inverse: np.ndarray,
    prior_mean: np.ndarray,
    prior_covariance_inverse: np.ndarray,
) -> MultivariateGaussian:
    """Posterior over a Gaussian mean with known covariance.

    Args:
        values: Observations, one per row. May be empty.
        known_covariance_inverse: Precision of the observation noise, shape (d, d).
        prior_mean: Prior mean of the mean, shape (d,).
        prior_covariance_inverse: Prior precision of the mean, shape (d, d).

    Returns:
        Gaussian posterior over the mean.
    """
    x = ensure_2d(values)
    n = len(x)
    if n == 0:
        return MultivariateGaussian(prior_mean, np.linalg.inv(prior_covariance_inverse))

    data_precision = n * known_covariance_inverse
    information = prior_covariance_inverse @ prior_mean + data_precision @ np.mean(x, axis=0)
    posterior_covariance = np.linalg.inv(prior_covariance_inverse + data_precision)
    # Symmetrize away round-off before factoring
    posterior_covariance = 0.5 * (posterior_covariance + posterior_covariance.T)
    return MultivariateGaussian(posterior_covariance @ information, posterior_covariance)
