"""Dirichlet process mixture model (DPMM) fit by collapsed Gibbs sampling.

Each sweep assigns every observation to one of the current clusters or to a
new, not yet materialized cluster, rebuilds the clusters from the
assignments through an :class:`~npbayes.probabilistic.updaters.Updater`, and
optionally resamples the concentration parameter alpha.

Assignment weights are ``(n_k - 1) * p_k(x)`` for cluster ``k`` and
``alpha * p_0(x)`` for the new cluster, where ``p_0`` is the prior
predictive. Subtracting one from every count keeps a lone observation from
forming a cluster with unbounded likelihood. Groups with fewer than two
members do not become clusters.

References:
    Neal, R. M. (2000). Markov chain sampling methods for Dirichlet process
    mixture models. Journal of Computational and Graphical Statistics, 9(2).
    Escobar, M. D., & West, M. (1995). Bayesian density estimation and
    inference using mixtures. JASA, 90(430), 577-588.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..diagnostics import assert_valid_sample, is_debug_enabled
from ..logging import get_logger
from .distributions import Density, crp_log_pmf
from .mcmc import MarkovChainMonteCarlo, MCMCConfig
from .updaters import Updater
from .utils import ensure_2d, sample_categorical

logger = get_logger(__name__)

# Floor of the per-observation mixture density inside the log-likelihood
CONDITIONAL_FLOOR = 1e-100


@dataclass(frozen=True)
class DPMMConfig:
    """DPMM hyperparameters.

    Attributes:
        initial_alpha: Concentration parameter of the starting sample.
        num_initial_clusters: Clusters in the starting sample; each covers all data.
        reestimate_alpha: Resample alpha after every sweep.
        alpha_shape: Shape ``a`` of the Gamma prior on alpha.
        alpha_rate: Rate ``b`` of the Gamma prior on alpha.
    """

    initial_alpha: float = 1.0
    num_initial_clusters: int = 2
    reestimate_alpha: bool = True
    alpha_shape: float = 1.0
    alpha_rate: float = 1.0

    def __post_init__(self) -> None:
        """Validate DPMMConfig invariants."""
        if self.initial_alpha <= 0:
            raise ValueError(f"initial_alpha must be > 0, got {self.initial_alpha}")
        if self.num_initial_clusters < 1:
            raise ValueError(
                f"num_initial_clusters must be >= 1, got {self.num_initial_clusters}"
            )
        if self.alpha_shape <= 0:
            raise ValueError(f"alpha_shape must be > 0, got {self.alpha_shape}")
        if self.alpha_rate <= 0:
            raise ValueError(f"alpha_rate must be > 0, got {self.alpha_rate}")


class Cluster:
    """Observations assigned to one mixture component plus its density.

    Attributes:
        members: Assigned observations, shape (size, d).
        density: Posterior density of the component.
        indices: Positions of the members in the observation sequence.
    """

    def __init__(
        self,
        members: np.ndarray,
        density: Density,
        indices: Optional[np.ndarray] = None,
    ):
        self.members = ensure_2d(members)
        self.density = density
        if indices is None:
            indices = np.arange(len(self.members))
        self.indices = np.asarray(indices, dtype=int)
        if len(self.indices) != len(self.members):
            raise ValueError(
                f"Got {len(self.indices)} indices for {len(self.members)} members"
            )

    @property
    def size(self) -> int:
        return len(self.members)

    def centroid(self) -> np.ndarray:
        """Mean of the members, shape (d,)."""
        return np.mean(self.members, axis=0)

    def __repr__(self) -> str:
        return f"Cluster(size={self.size}, density={self.density!r})"


class Sample:
    """One state of the DPMM chain: concentration parameter and clusters.

    Attributes:
        alpha: Concentration parameter, > 0.
        clusters: Mixture components, in creation order.
        posterior_log_likelihood: Filled in by the sweep after this sample
            was recorded, or None.
    """

    def __init__(self, alpha: float, clusters: Optional[Sequence[Cluster]] = None):
        if alpha <= 0:
            raise ValueError(f"alpha must be > 0, got {alpha}")
        self.alpha = float(alpha)
        self.clusters: List[Cluster] = list(clusters) if clusters is not None else []
        self.posterior_log_likelihood: Optional[float] = None

    @property
    def num_clusters(self) -> int:
        return len(self.clusters)

    def cluster_sizes(self) -> np.ndarray:
        return np.array([c.size for c in self.clusters], dtype=int)

    def remove_unused_clusters(self) -> None:
        """Drop clusters without members."""
        self.clusters = [c for c in self.clusters if c.size > 0]

    def copy(self) -> "Sample":
        """Copy with its own cluster list and no cached log-likelihood.

        Clusters are shared; sweeps replace them rather than mutate them.
        """
        return Sample(self.alpha, self.clusters)

    def log_prior(self, num_observations: int) -> float:
        """Chinese Restaurant Process log probability of the cluster sizes."""
        return crp_log_pmf(self.cluster_sizes(), self.alpha, num_observations)

    def compute_posterior_log_likelihood(self, data: np.ndarray) -> float:
        """Posterior log-likelihood of this sample, recomputed from the data.

        ``log CRP(sizes; alpha) + sum_i log(1e-100 + sum_k n_k p_k(x_i))``
        """
        data = ensure_2d(data)
        log_densities = cluster_log_densities(self.clusters, data)
        conditional = log_conditional_likelihood(self.cluster_sizes(), log_densities)
        return self.log_prior(len(data)) + conditional

    def __repr__(self) -> str:
        return (
            f"Sample(alpha={self.alpha:.4g}, num_clusters={self.num_clusters}, "
            f"sizes={self.cluster_sizes().tolist()})"
        )


def cluster_log_densities(clusters: Sequence[Cluster], data: np.ndarray) -> np.ndarray:
    """Log density of every observation under every cluster, shape (K, n)."""
    if not clusters:
        return np.empty((0, len(data)))
    return np.vstack([np.atleast_1d(c.density.log_pdf(data)) for c in clusters])


def log_conditional_likelihood(sizes: np.ndarray, log_densities: np.ndarray) -> float:
    """``sum_i log(1e-100 + sum_k n_k p_k(x_i))`` from (K, n) log densities."""
    mixture = np.asarray(sizes, dtype=float) @ np.exp(log_densities)
    return float(np.sum(np.log(CONDITIONAL_FLOOR + mixture)))


def assign_observations(
    log_densities: np.ndarray,
    prior_log_densities: np.ndarray,
    sizes: np.ndarray,
    alpha: float,
    u: np.ndarray,
) -> Tuple[np.ndarray, float]:
    """Draw cluster assignments for a block of observations.

    Args:
        log_densities: Log density of each observation under each cluster, shape (K, m).
        prior_log_densities: Log prior predictive of each observation, shape (m,).
        sizes: Cluster sizes, shape (K,).
        alpha: Concentration parameter.
        u: One Uniform(0, 1) draw per observation, shape (m,).

    Returns:
        Tuple of (assignments in [0, K], shape (m,), where K means "new
        cluster"; log-conditional contribution of the block).
    """
    with np.errstate(divide="ignore"):
        log_counts = np.log(np.asarray(sizes, dtype=float) - 1.0)
    log_weights = np.vstack(
        [
            log_counts[:, np.newaxis] + log_densities,
            (np.log(alpha) + prior_log_densities)[np.newaxis, :],
        ]
    )
    log_weights -= np.max(log_weights, axis=0, keepdims=True)
    assignments = sample_categorical(np.exp(log_weights), u)
    return assignments, log_conditional_likelihood(sizes, log_densities)


def group_assignments(assignments: np.ndarray, num_groups: int) -> List[np.ndarray]:
    """Observation indices assigned to each of ``num_groups`` slots."""
    order = np.argsort(assignments, kind="stable")
    bounds = np.searchsorted(assignments[order], np.arange(num_groups + 1))
    return [order[bounds[k]:bounds[k + 1]] for k in range(num_groups)]


def build_cluster(
    data: np.ndarray,
    indices: np.ndarray,
    updater: Updater,
    rng: np.random.Generator,
) -> Optional[Cluster]:
    """Cluster for one assignment group, or None when it has fewer than two members."""
    if len(indices) < 2:
        return None
    members = data[indices]
    return Cluster(members, updater.create_cluster_posterior(members, rng), indices)


def resample_concentration(
    alpha: float,
    num_clusters: int,
    num_observations: int,
    rng: np.random.Generator,
    shape: float = 1.0,
    rate: float = 1.0,
) -> float:
    """Auxiliary-variable Gibbs update of alpha under a Gamma(shape, rate) prior.

    Draws ``eta ~ Beta(alpha + 1, n)`` and then alpha from the two-component
    Gamma mixture of Escobar & West (1995), eq. 13.

    Args:
        alpha: Current concentration parameter.
        num_clusters: Number of clusters K after the sweep.
        num_observations: Number of observations n.
        rng: Random number generator.
        shape: Gamma prior shape ``a``.
        rate: Gamma prior rate ``b``.

    Returns:
        New concentration parameter.
    """
    # Every observation belongs to some cluster, even when all were dropped
    k = max(num_clusters, 1)
    eta = rng.beta(alpha + 1.0, num_observations)
    rate_post = rate - np.log(eta)
    odds = (shape + k - 1.0) / (num_observations * rate_post)
    if rng.random() < odds / (1.0 + odds):
        gamma_shape = shape + k
    else:
        gamma_shape = shape + k - 1.0
    return float(rng.gamma(gamma_shape, 1.0 / rate_post))


class DirichletProcessMixtureModel(MarkovChainMonteCarlo[Sample]):
    """Collapsed Gibbs sampler for a Dirichlet process mixture model.

    Example:
        >>> updater = MultivariateMeanCovarianceUpdater(dimensionality=2)
        >>> dpmm = DirichletProcessMixtureModel(updater, mcmc_config=MCMCConfig(100, 1, 200))
        >>> result = dpmm.learn(data)
        >>> best = result.best_sample()

    Args:
        updater: Creates prior-predictive and cluster densities.
        config: DPMM hyperparameters (default: DPMMConfig()).
        mcmc_config: Burn-in and sampling schedule (default: MCMCConfig()).
        rng: Random number generator. If None, uses default_rng(0).
    """

    def __init__(
        self,
        updater: Updater,
        config: Optional[DPMMConfig] = None,
        mcmc_config: Optional[MCMCConfig] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        super().__init__(mcmc_config, rng)
        self.updater = updater
        self.config = config if config is not None else DPMMConfig()
        self._prior_predictive: Optional[Density] = None
        self._prior_log_densities: Optional[np.ndarray] = None
        self._prior_dirty = True

    def initialize(self, data: np.ndarray) -> None:
        self._prior_dirty = True
        super().initialize(data)

    @property
    def prior_predictive(self) -> Density:
        """Density scoring the new-cluster option, built once per data set."""
        self._refresh_prior()
        return self._prior_predictive

    def _refresh_prior(self) -> None:
        if not self._prior_dirty:
            return
        if self.data is None:
            raise RuntimeError("Sampler not initialized. Call initialize() first.")
        prior_predictive = self.updater.create_prior_predictive(self.data)
        prior_log_densities = np.atleast_1d(prior_predictive.log_pdf(self.data))
        self._prior_predictive = prior_predictive
        self._prior_log_densities = prior_log_densities
        self._prior_dirty = False

    def create_initial_learned_object(self) -> Sample:
        data = self.data
        clusters = []
        if len(data) >= 2:
            density = self.updater.create_cluster_posterior(data, self.rng)
            indices = np.arange(len(data))
            clusters = [
                Cluster(data, density, indices) for _ in range(self.config.num_initial_clusters)
            ]
        return Sample(self.config.initial_alpha, clusters)

    def mcmc_update(self) -> None:
        """One Gibbs sweep: assign, record the previous sample's likelihood, rebuild, resample alpha."""
        self._refresh_prior()
        sample = self.current_parameter
        n = len(self.data)
        K = sample.num_clusters

        assignments, log_conditional = self.assign_observations_to_clusters(sample)
        self._record_log_likelihood(log_conditional)
        sample.clusters = self.update_clusters(assignments, K)
        self._finish_sweep(sample, n)

    def assign_observations_to_clusters(self, sample: Sample) -> Tuple[np.ndarray, float]:
        """Assignments in [0, K] for every observation plus the log-conditional."""
        log_densities = cluster_log_densities(sample.clusters, self.data)
        u = self.rng.random(len(self.data))
        return assign_observations(
            log_densities, self._prior_log_densities, sample.cluster_sizes(), sample.alpha, u
        )

    def update_clusters(self, assignments: np.ndarray, num_clusters: int) -> List[Cluster]:
        """Rebuild clusters from the K + 1 assignment groups."""
        groups = group_assignments(assignments, num_clusters + 1)
        clusters = []
        for indices in groups:
            cluster = build_cluster(self.data, indices, self.updater, self.rng)
            if cluster is not None:
                clusters.append(cluster)
        return clusters

    def _record_log_likelihood(self, log_conditional: float) -> None:
        # The clusters scored in this sweep are those of the last recorded sample
        previous = self.previous_parameter
        if previous is not None and previous.posterior_log_likelihood is None:
            previous.posterior_log_likelihood = (
                previous.log_prior(len(self.data)) + log_conditional
            )

    def _finish_sweep(self, sample: Sample, num_observations: int) -> None:
        if self.config.reestimate_alpha:
            sample.alpha = resample_concentration(
                sample.alpha,
                sample.num_clusters,
                num_observations,
                self.rng,
                shape=self.config.alpha_shape,
                rate=self.config.alpha_rate,
            )
        logger.debug("Sweep: K=%d, alpha=%.4g", sample.num_clusters, sample.alpha)
        if is_debug_enabled():
            assert_valid_sample(sample)

    def assign(self, data: np.ndarray, sample: Optional[Sample] = None) -> np.ndarray:
        """Most probable cluster of each observation under a sample.

        Cluster ``k`` scores ``n_k p_k(x)``; the new-cluster option scores
        ``alpha p_0(x)`` and is reported as ``-1``.

        Args:
            data: Observations, one per row.
            sample: Sample to assign against (default: the current sample).

        Returns:
            Cluster indices, shape (n,).
        """
        if sample is None:
            sample = self.current_parameter
        if sample is None:
            raise RuntimeError("Sampler not initialized. Call initialize() first.")
        data = ensure_2d(data)
        log_densities = cluster_log_densities(sample.clusters, data)
        with np.errstate(divide="ignore"):
            log_sizes = np.log(sample.cluster_sizes().astype(float))
        prior = np.atleast_1d(self.prior_predictive.log_pdf(data))
        scores = np.vstack(
            [log_sizes[:, np.newaxis] + log_densities, (np.log(sample.alpha) + prior)[np.newaxis, :]]
        )
        best = np.argmax(scores, axis=0)
        return np.where(best == sample.num_clusters, -1, best)
