"""Benchmark adaptive rejection sampling."""

import time
from typing import Dict

import numpy as np

from npbayes import AdaptiveRejectionSampler


def benchmark_ars(n_samples: int = 10000, max_num_points: int = 50) -> Dict[str, float]:
    """Benchmark draws from a Gamma(3, 1) log-density.

    Args:
        n_samples: Number of draws.
        max_num_points: Support point budget.

    Returns:
        Dictionary with timing results.
    """
    calls = {"n": 0}

    def log_density(x):
        calls["n"] += 1
        return 2.0 * np.log(x) - x

    ars = AdaptiveRejectionSampler(max_num_points=max_num_points)
    ars.initialize(log_density, 0.0, np.inf, 0.5, 2.0, 6.0)
    rng = np.random.default_rng(0)

    # Warmup
    ars.sample_n(rng, 100)
    calls["n"] = 0

    # Benchmark
    start = time.perf_counter()
    ars.sample_n(rng, n_samples)
    end = time.perf_counter()

    total_time = end - start
    return {
        "n_samples": n_samples,
        "total_time_sec": total_time,
        "time_per_sample_sec": total_time / n_samples,
        "density_evals_per_sample": calls["n"] / n_samples,
        "num_points": ars.num_points,
    }


if __name__ == "__main__":
    print("Benchmarking adaptive rejection sampling...")

    results = benchmark_ars()
    print(f"ARS (Gamma(3, 1), {results['n_samples']} samples):")
    print(f"  Time per sample: {results['time_per_sample_sec']*1e6:.2f} us")
    print(f"  Density evaluations per sample: {results['density_evals_per_sample']:.3f}")
    print(f"  Support points: {results['num_points']}")
