"""Example: Nonparametric Bayesian Clustering with npbayes

Demonstrates the Dirichlet process mixture model (sequential and parallel)
and the adaptive rejection sampler.
"""

import numpy as np
import npbayes as nb
from npbayes import (
    AdaptiveRejectionSampler,
    DirichletProcessMixtureModel,
    DPMMConfig,
    MCMCConfig,
    MultivariateMeanCovarianceUpdater,
    ParallelDirichletProcessMixtureModel,
)

TRUE_MEANS = np.array([[0.0, 0.0], [10.0, 10.0], [-10.0, 10.0]])


def make_data(rng):
    """100 unit-covariance points around each of three means."""
    return np.vstack([rng.multivariate_normal(mean, np.eye(2), size=100) for mean in TRUE_MEANS])


def summarize(result, data):
    histogram = nb.cluster_count_histogram(result.samples)
    print("Posterior over number of clusters:")
    for k, count in histogram.items():
        print(f"  K={k}: {count / result.num_samples:.3f}")

    alphas = result.values("alpha")
    print(f"Mean alpha: {alphas.mean():.4f}")

    best = result.best_sample()
    print(f"Best sample: K={best.num_clusters}, log-likelihood={best.posterior_log_likelihood:.2f}")
    for cluster in sorted(best.clusters, key=lambda c: -c.size):
        print(f"  size={cluster.size:4d}  centroid={np.round(cluster.centroid(), 2)}")


def example_sequential_dpmm():
    """Example: Collapsed Gibbs sampling on a three-component mixture."""
    print("=" * 60)
    print("Example 1: Sequential DPMM")
    print("=" * 60)

    rng = np.random.default_rng(2024)
    data = make_data(rng)

    dpmm = DirichletProcessMixtureModel(
        MultivariateMeanCovarianceUpdater(2),
        config=DPMMConfig(initial_alpha=1.0, num_initial_clusters=2),
        mcmc_config=MCMCConfig(burn_in_iterations=500, iterations_per_sample=1, max_iterations=500),
        rng=np.random.default_rng(42),
    )
    result = dpmm.learn(data)
    summarize(result, data)

    # Label new points against the last sample; -1 means "new cluster"
    queries = np.array([[0.2, -0.1], [9.5, 10.3], [30.0, -30.0]])
    print(f"\nAssignments for {queries.tolist()}: {dpmm.assign(queries)}")

    print()


def example_parallel_dpmm():
    """Example: The same sampler with sweeps spread over a thread pool."""
    print("=" * 60)
    print("Example 2: Parallel DPMM")
    print("=" * 60)

    rng = np.random.default_rng(2024)
    data = make_data(rng)

    with ParallelDirichletProcessMixtureModel(
        MultivariateMeanCovarianceUpdater(2),
        mcmc_config=MCMCConfig(burn_in_iterations=500, iterations_per_sample=1, max_iterations=500),
        rng=np.random.default_rng(42),
        num_threads=4,
    ) as dpmm:
        result = dpmm.learn(data)
    summarize(result, data)

    print()


def example_adaptive_rejection_sampling():
    """Example: Drawing from a truncated Gaussian with ARS."""
    print("=" * 60)
    print("Example 3: Adaptive Rejection Sampling")
    print("=" * 60)

    # Standard normal truncated to [-1, 3]
    def log_density(x):
        return -0.5 * x * x

    ars = AdaptiveRejectionSampler(max_num_points=30)
    ars.initialize(log_density, -1.0, 3.0, -0.5, 0.5, 2.0)

    rng = np.random.default_rng(0)
    draws = ars.sample_n(rng, 5000)
    print(f"Sample mean: {draws.mean():.4f}, std: {draws.std():.4f}")
    print(f"Range: [{draws.min():.3f}, {draws.max():.3f}]")
    print(f"Support points after sampling: {ars.num_points}")

    print()


if __name__ == "__main__":
    print("\n" + "=" * 60)
    print("Dirichlet Process Mixtures - npbayes Examples")
    print("=" * 60 + "\n")

    nb.configure_logging(level="INFO")

    example_sequential_dpmm()
    example_parallel_dpmm()
    example_adaptive_rejection_sampling()

    print("=" * 60)
    print("All examples completed successfully!")
    print("=" * 60)
