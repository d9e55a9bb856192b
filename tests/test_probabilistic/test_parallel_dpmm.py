"""Tests for the thread-parallel DPMM sampler."""

import numpy as np
import pytest

from npbayes.probabilistic.mcmc import MCMCConfig
from npbayes.probabilistic.parallel_dpmm import ParallelDirichletProcessMixtureModel
from npbayes.probabilistic.threads import ParallelExecutionError, create_thread_pool
from npbayes.probabilistic.updaters import MultivariateMeanCovarianceUpdater


class FailingUpdater(MultivariateMeanCovarianceUpdater):
    """Raises whenever a cluster posterior is requested inside a worker."""

    def __init__(self):
        super().__init__(2)
        self.armed = False

    def create_cluster_posterior(self, values, rng):
        if self.armed:
            raise FloatingPointError("posterior blew up")
        return super().create_cluster_posterior(values, rng)


class TrackingUpdater(MultivariateMeanCovarianceUpdater):
    """Records which updater instances built clusters."""

    used = []

    def create_cluster_posterior(self, values, rng):
        TrackingUpdater.used.append(id(self))
        return super().create_cluster_posterior(values, rng)


def make_parallel(num_threads=3, seed=0, burn_in=10, iterations=10, updater=None, **kwargs):
    return ParallelDirichletProcessMixtureModel(
        updater if updater is not None else MultivariateMeanCovarianceUpdater(2),
        mcmc_config=MCMCConfig(burn_in, 1, iterations),
        rng=np.random.default_rng(seed),
        num_threads=num_threads,
        **kwargs,
    )


def test_num_threads_validation():
    """An explicit thread count must be positive."""
    with pytest.raises(ValueError, match="num_threads"):
        make_parallel(num_threads=0)


def test_sweep_invariants(three_blobs):
    """Parallel sweeps keep clusters disjoint with at least two members."""
    with make_parallel(num_threads=4, burn_in=0) as dpmm:
        dpmm.initialize(three_blobs)
        for _ in range(20):
            dpmm.mcmc_update()
            sample = dpmm.current_parameter
            assert sample.alpha > 0.0
            assert all(size >= 2 for size in sample.cluster_sizes())
            indices = np.concatenate([c.indices for c in sample.clusters])
            assert len(np.unique(indices)) == len(indices)
            for cluster in sample.clusters:
                assert np.array_equal(cluster.members, three_blobs[cluster.indices])


def test_log_likelihood_merged_across_slices(three_blobs):
    """Per-slice log-conditionals add up to the full recomputation."""
    with make_parallel(num_threads=3, iterations=8) as dpmm:
        result = dpmm.learn(three_blobs)

    for sample in result.samples[:-1]:
        expected = sample.compute_posterior_log_likelihood(three_blobs)
        assert sample.posterior_log_likelihood == pytest.approx(expected, rel=1e-9)


def test_reproducible_from_seed(three_blobs):
    """Child generators are spawned in submission order, so runs repeat exactly."""
    with make_parallel(seed=5) as a, make_parallel(seed=5) as b:
        ra = a.learn(three_blobs)
        rb = b.learn(three_blobs)
    assert np.array_equal(ra.values("alpha"), rb.values("alpha"))
    assert np.array_equal(ra.values("num_clusters"), rb.values("num_clusters"))


def test_more_threads_than_observations():
    """Tiny data sets still run; slices never outnumber observations."""
    data = np.array([[0.0, 0.0], [0.1, 0.0], [5.0, 5.0]])
    with make_parallel(num_threads=8, burn_in=2, iterations=2) as dpmm:
        result = dpmm.learn(data)
    assert result.num_samples == 2


def test_each_task_gets_its_own_updater(three_blobs):
    """The rebuild step never calls the sampler's own updater."""
    TrackingUpdater.used = []
    updater = TrackingUpdater(2)
    with make_parallel(burn_in=0, updater=updater) as dpmm:
        dpmm.initialize(three_blobs)
        TrackingUpdater.used.clear()
        dpmm.mcmc_update()
    assert TrackingUpdater.used
    assert id(updater) not in TrackingUpdater.used
    assert len(set(TrackingUpdater.used)) == len(TrackingUpdater.used)


def test_worker_failure_aborts_sweep(three_blobs):
    """An exception in a worker surfaces as ParallelExecutionError."""
    updater = FailingUpdater()
    with make_parallel(burn_in=0, updater=updater) as dpmm:
        dpmm.initialize(three_blobs)
        updater.armed = True
        with pytest.raises(ParallelExecutionError) as excinfo:
            dpmm.mcmc_update()
    assert isinstance(excinfo.value.__cause__, FloatingPointError)


def test_owned_pool_closed_external_pool_kept(three_blobs):
    """close() shuts down a pool the sampler created but not a borrowed one."""
    dpmm = make_parallel(burn_in=1, iterations=1)
    dpmm.learn(three_blobs)
    owned = dpmm.thread_pool
    dpmm.close()
    with pytest.raises(RuntimeError):
        owned.submit(lambda: None)

    external = create_thread_pool(2)
    try:
        borrowed = make_parallel(burn_in=1, iterations=1, thread_pool=external)
        borrowed.learn(three_blobs)
        borrowed.close()
        assert external.submit(lambda: 42).result() == 42
    finally:
        external.shutdown()


def test_pool_recreated_after_close(three_blobs):
    """A closed sampler can keep sampling on a fresh pool."""
    dpmm = make_parallel(burn_in=1, iterations=1)
    dpmm.learn(three_blobs)
    dpmm.close()
    dpmm.step()
    assert dpmm.result.num_samples == 2
    dpmm.close()
