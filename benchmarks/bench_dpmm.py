"""Benchmark DPMM Gibbs sweeps, sequential versus thread-parallel."""

import time
from typing import Dict

import numpy as np

from npbayes import (
    DirichletProcessMixtureModel,
    MCMCConfig,
    MultivariateMeanCovarianceUpdater,
    ParallelDirichletProcessMixtureModel,
)


def make_mixture(n_per_component: int, n_components: int, dim: int, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    means = rng.uniform(-20.0, 20.0, size=(n_components, dim))
    return np.vstack(
        [rng.multivariate_normal(mean, np.eye(dim), size=n_per_component) for mean in means]
    )


def benchmark_sweeps(
    n_per_component: int = 500,
    n_components: int = 5,
    dim: int = 3,
    n_sweeps: int = 50,
    num_threads: int = 0,
) -> Dict[str, float]:
    """Benchmark Gibbs sweeps on a synthetic Gaussian mixture.

    Args:
        n_per_component: Observations per mixture component.
        n_components: Number of mixture components.
        dim: Observation dimension.
        n_sweeps: Timed sweeps after warmup.
        num_threads: Worker threads; 0 runs the sequential sampler.

    Returns:
        Dictionary with timing results.
    """
    data = make_mixture(n_per_component, n_components, dim)
    mcmc_config = MCMCConfig(burn_in_iterations=20, iterations_per_sample=1, max_iterations=1)
    updater = MultivariateMeanCovarianceUpdater(dim)
    if num_threads:
        dpmm = ParallelDirichletProcessMixtureModel(
            updater, mcmc_config=mcmc_config, rng=np.random.default_rng(1), num_threads=num_threads
        )
    else:
        dpmm = DirichletProcessMixtureModel(
            updater, mcmc_config=mcmc_config, rng=np.random.default_rng(1)
        )

    # Warmup (burn-in)
    dpmm.initialize(data)

    # Benchmark
    start = time.perf_counter()
    for _ in range(n_sweeps):
        dpmm.mcmc_update()
    end = time.perf_counter()

    if num_threads:
        dpmm.close()

    total_time = end - start
    return {
        "n_observations": len(data),
        "num_threads": num_threads,
        "final_num_clusters": dpmm.current_parameter.num_clusters,
        "total_time_sec": total_time,
        "time_per_sweep_sec": total_time / n_sweeps,
        "sweeps_per_sec": n_sweeps / total_time,
    }


if __name__ == "__main__":
    print("Benchmarking DPMM sweeps...")

    for threads in (0, 2, 4):
        results = benchmark_sweeps(num_threads=threads)
        label = "sequential" if threads == 0 else f"{threads} threads"
        print(f"DPMM ({results['n_observations']} observations, {label}):")
        print(f"  Time per sweep: {results['time_per_sweep_sec']*1e3:.2f} ms")
        print(f"  Sweeps per second: {results['sweeps_per_sec']:.1f}")
        print(f"  Clusters after run: {results['final_num_clusters']}")
