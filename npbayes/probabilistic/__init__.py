"""Nonparametric Bayesian inference: Dirichlet process mixtures and adaptive rejection sampling.

This module provides:
- Dirichlet process mixture models fit by collapsed Gibbs sampling, with a
  sequential and a thread-parallel sampler
- Conjugate cluster updaters for Gaussian clusters
- Adaptive rejection sampling for log-concave univariate densities
- A generic MCMC driver (burn-in, thinning, sample collection)

All samplers are deterministic given the RNG seed.
"""

from .ars import (
    AdaptiveRejectionSampler,
    ARSState,
    LineSegment,
    LowerEnvelope,
    OperationNotConvergedError,
    Point,
    UpperEnvelope,
    log_of,
)
from .distributions import (
    Density,
    MultivariateGaussian,
    MultivariateStudentT,
    NormalInverseWishart,
    crp_log_pmf,
)
from .dpmm import (
    Cluster,
    DirichletProcessMixtureModel,
    DPMMConfig,
    Sample,
    resample_concentration,
)
from .mcmc import MarkovChainMonteCarlo, MCMCConfig, MCMCResult
from .parallel_dpmm import ParallelDirichletProcessMixtureModel
from .threads import (
    ParallelExecutionError,
    create_thread_pool,
    default_num_threads,
    execute_in_parallel,
    partition,
)
from .updaters import MultivariateMeanCovarianceUpdater, MultivariateMeanUpdater, Updater
from .utils import log_normal_pdf, log_student_t_pdf, logsumexp, sample_categorical

__all__ = [
    "DirichletProcessMixtureModel",
    "ParallelDirichletProcessMixtureModel",
    "DPMMConfig",
    "Sample",
    "Cluster",
    "resample_concentration",
    "MarkovChainMonteCarlo",
    "MCMCConfig",
    "MCMCResult",
    "Updater",
    "MultivariateMeanCovarianceUpdater",
    "MultivariateMeanUpdater",
    "Density",
    "MultivariateGaussian",
    "MultivariateStudentT",
    "NormalInverseWishart",
    "crp_log_pmf",
    "AdaptiveRejectionSampler",
    "ARSState",
    "Point",
    "LineSegment",
    "UpperEnvelope",
    "LowerEnvelope",
    "OperationNotConvergedError",
    "log_of",
    "ParallelExecutionError",
    "create_thread_pool",
    "default_num_threads",
    "execute_in_parallel",
    "partition",
    "logsumexp",
    "log_normal_pdf",
    "log_student_t_pdf",
    "sample_categorical",
]
