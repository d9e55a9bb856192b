"""Parallel Dirichlet process mixture model sampler.

Same sweep as :class:`~npbayes.probabilistic.dpmm.DirichletProcessMixtureModel`,
with its two expensive steps fanned out over a thread pool:

- assignment: the observations are cut into contiguous slices, one task per
  slice, and the per-slice assignments and log-conditionals are merged in
  slice order;
- cluster rebuild: one task per assignment group (K + 1 tasks), each with
  its own duplicate of the updater.

Every task draws from its own child generator spawned from the sampler's
generator in submission order, so a run is reproducible from one seed and no
generator is shared between threads. The draw order differs from the
sequential sampler, so the two give different (but identically distributed)
chains.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .dpmm import (
    Cluster,
    DirichletProcessMixtureModel,
    DPMMConfig,
    Sample,
    assign_observations,
    build_cluster,
    cluster_log_densities,
    group_assignments,
)
from .mcmc import MCMCConfig
from .threads import create_thread_pool, default_num_threads, execute_in_parallel, partition
from .updaters import Updater


class ParallelDirichletProcessMixtureModel(DirichletProcessMixtureModel):
    """DPMM Gibbs sampler that runs each sweep on a worker pool.

    A pool created by the sampler is shut down by :meth:`close` (or on leaving
    a ``with`` block); a pool passed in is left to its owner.

    Example:
        >>> with ParallelDirichletProcessMixtureModel(updater, num_threads=4) as dpmm:
        ...     result = dpmm.learn(data)

    Args:
        updater: Creates prior-predictive and cluster densities; duplicated per task.
        config: DPMM hyperparameters (default: DPMMConfig()).
        mcmc_config: Burn-in and sampling schedule (default: MCMCConfig()).
        rng: Random number generator. If None, uses default_rng(0).
        num_threads: Number of assignment slices and, when no pool is given,
            pool size (default: :func:`default_num_threads`).
        thread_pool: Externally owned executor to run tasks on.
    """

    def __init__(
        self,
        updater: Updater,
        config: Optional[DPMMConfig] = None,
        mcmc_config: Optional[MCMCConfig] = None,
        rng: Optional[np.random.Generator] = None,
        num_threads: Optional[int] = None,
        thread_pool: Optional[ThreadPoolExecutor] = None,
    ):
        super().__init__(updater, config, mcmc_config, rng)
        if num_threads is None:
            num_threads = default_num_threads()
        elif num_threads < 1:
            raise ValueError(f"num_threads must be >= 1, got {num_threads}")
        self.num_threads = num_threads
        self._thread_pool = thread_pool
        self._owns_pool = thread_pool is None

    @property
    def thread_pool(self) -> ThreadPoolExecutor:
        if self._thread_pool is None:
            self._thread_pool = create_thread_pool(self.num_threads)
        return self._thread_pool

    def close(self) -> None:
        """Shut down the pool if this sampler created it."""
        if self._owns_pool and self._thread_pool is not None:
            self._thread_pool.shutdown(wait=True)
            self._thread_pool = None

    def __enter__(self) -> "ParallelDirichletProcessMixtureModel":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def assign_observations_to_clusters(self, sample: Sample) -> Tuple[np.ndarray, float]:
        slices = partition(len(self.data), self.num_threads)
        rngs = self.rng.spawn(len(slices))
        sizes = sample.cluster_sizes()
        tasks = [
            partial(self._assign_slice, sample.clusters, sizes, sample.alpha, start, stop, child)
            for (start, stop), child in zip(slices, rngs)
        ]
        results = execute_in_parallel(tasks, self.thread_pool)
        assignments = np.concatenate([r[0] for r in results])
        log_conditional = float(sum(r[1] for r in results))
        return assignments, log_conditional

    def _assign_slice(
        self,
        clusters: Sequence[Cluster],
        sizes: np.ndarray,
        alpha: float,
        start: int,
        stop: int,
        rng: np.random.Generator,
    ) -> Tuple[np.ndarray, float]:
        log_densities = cluster_log_densities(clusters, self.data[start:stop])
        u = rng.random(stop - start)
        return assign_observations(
            log_densities, self._prior_log_densities[start:stop], sizes, alpha, u
        )

    def update_clusters(self, assignments: np.ndarray, num_clusters: int) -> List[Cluster]:
        groups = group_assignments(assignments, num_clusters + 1)
        rngs = self.rng.spawn(len(groups))
        tasks = [
            partial(build_cluster, self.data, indices, self.updater.duplicate(), child)
            for indices, child in zip(groups, rngs)
        ]
        results = execute_in_parallel(tasks, self.thread_pool)
        return [cluster for cluster in results if cluster is not None]
