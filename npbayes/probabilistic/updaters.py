"""Cluster updaters for Dirichlet process mixture models.

An updater turns a group of observations into the densities the DPMM needs:
a prior predictive used to score the "new cluster" option, and a posterior
density for a cluster built from its assigned observations. Updaters hold
only their prior hyperparameters, so a :meth:`Updater.duplicate` copy can be
handed to each worker thread.

References:
    Bolstad, W. M. (2007). Introduction to Bayesian Statistics, 2nd ed., p. 208.
    Murphy, K. P. (2007). Conjugate Bayesian analysis of the Gaussian distribution.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from .distributions import (
    Density,
    MultivariateGaussian,
    NormalInverseWishart,
    gaussian_mean_posterior,
)


class Updater(ABC):
    """Strategy producing prior-predictive and cluster-posterior densities."""

    @abstractmethod
    def create_prior_predictive(self, data: np.ndarray) -> Density:
        """Density used to weight assigning an observation to a new cluster.

        Must be deterministic given ``data`` and the updater configuration.

        Args:
            data: All observations (or a representative subsample), one per row.
        """

    @abstractmethod
    def create_cluster_posterior(self, values: np.ndarray, rng: np.random.Generator) -> Density:
        """Draw the density of a cluster given its assigned observations.

        Callers never pass fewer than two observations; such groups are
        treated as "no cluster" before the updater is consulted.

        Args:
            values: Observations assigned to the cluster, one per row.
            rng: Random number generator owned by the caller.
        """

    def duplicate(self) -> "Updater":
        """Independent copy sharing no mutable state with this updater."""
        return copy.deepcopy(self)


def _check_matrix(matrix: np.ndarray, d: int, name: str) -> np.ndarray:
    matrix = np.atleast_2d(np.asarray(matrix, dtype=float))
    if matrix.shape != (d, d):
        raise ValueError(f"{name} must have shape ({d}, {d}), got {matrix.shape}")
    if not np.allclose(matrix, matrix.T):
        raise ValueError(f"{name} must be symmetric")
    return matrix


class MultivariateMeanCovarianceUpdater(Updater):
    """Gaussian clusters with unknown mean and covariance (Normal-Inverse-Wishart prior).

    The prior predictive is the Student-t predictive of the posterior learned
    from all data. Each cluster density is a Gaussian whose mean and
    covariance are drawn from the cluster's Normal-Inverse-Wishart posterior.

    Attributes:
        prior: Normal-Inverse-Wishart prior over (mean, covariance).
    """

    def __init__(self, dimensionality: int = 2, prior: Optional[NormalInverseWishart] = None):
        if prior is None:
            prior = NormalInverseWishart.default(dimensionality)
        elif prior.dimensionality != dimensionality:
            raise ValueError(
                f"prior dimensionality {prior.dimensionality} does not match {dimensionality}"
            )
        self.prior = prior

    @property
    def dimensionality(self) -> int:
        return self.prior.dimensionality

    def create_prior_predictive(self, data: np.ndarray) -> Density:
        return self.prior.update(data).predictive()

    def create_cluster_posterior(self, values: np.ndarray, rng: np.random.Generator) -> Density:
        mean, covariance = self.prior.update(values).sample(rng)
        return MultivariateGaussian(mean, covariance)


class MultivariateMeanUpdater(Updater):
    """Gaussian clusters with unknown mean and known, shared covariance.

    Args:
        known_covariance: Observation covariance shared by all clusters, shape (d, d).
        prior_mean: Prior mean of cluster means (default zeros).
        prior_covariance: Prior covariance of cluster means (default identity).
    """

    def __init__(
        self,
        known_covariance: np.ndarray,
        prior_mean: Optional[np.ndarray] = None,
        prior_covariance: Optional[np.ndarray] = None,
    ):
        known_covariance = np.atleast_2d(np.asarray(known_covariance, dtype=float))
        d = known_covariance.shape[0]
        self.known_covariance = _check_matrix(known_covariance, d, "known_covariance")
        self.prior_mean = (
            np.zeros(d) if prior_mean is None else np.atleast_1d(np.asarray(prior_mean, dtype=float))
        )
        if self.prior_mean.shape != (d,):
            raise ValueError(f"prior_mean must have shape ({d},), got {self.prior_mean.shape}")
        self.prior_covariance = (
            np.eye(d) if prior_covariance is None
            else _check_matrix(prior_covariance, d, "prior_covariance")
        )
        try:
            self._known_precision = np.linalg.inv(self.known_covariance)
            self._prior_precision = np.linalg.inv(self.prior_covariance)
        except np.linalg.LinAlgError:
            raise ValueError("Covariance matrices must be invertible")

    @property
    def dimensionality(self) -> int:
        return len(self.prior_mean)

    def _posterior(self, values: np.ndarray) -> MultivariateGaussian:
        return gaussian_mean_posterior(
            values, self._known_precision, self.prior_mean, self._prior_precision
        )

    def create_prior_predictive(self, data: np.ndarray) -> Density:
        posterior = self._posterior(data)
        return MultivariateGaussian(posterior.mean, posterior.covariance + self.known_covariance)

    def create_cluster_posterior(self, values: np.ndarray, rng: np.random.Generator) -> Density:
        mean = self._posterior(values).sample(rng)[0]
        return MultivariateGaussian(mean, self.known_covariance)
