"""npbayes - Dirichlet process mixture models and adaptive rejection sampling on NumPy."""

__version__ = "0.1.0"

# Diagnostics
from .diagnostics import (
    assert_valid_sample,
    cluster_count_histogram,
    debug_context,
    is_debug_enabled,
    mode_cluster_count,
    set_debug_enabled,
)

# Logging
from .logging import configure_logging, get_logger, set_log_level

# Probabilistic inference
from .probabilistic import (
    AdaptiveRejectionSampler,
    Cluster,
    DirichletProcessMixtureModel,
    DPMMConfig,
    MCMCConfig,
    MCMCResult,
    MultivariateGaussian,
    MultivariateMeanCovarianceUpdater,
    MultivariateMeanUpdater,
    NormalInverseWishart,
    OperationNotConvergedError,
    ParallelDirichletProcessMixtureModel,
    ParallelExecutionError,
    Sample,
    Updater,
)

__all__ = [
    "__version__",
    # Diagnostics
    "assert_valid_sample",
    "cluster_count_histogram",
    "mode_cluster_count",
    "is_debug_enabled",
    "set_debug_enabled",
    "debug_context",
    # Logging
    "get_logger",
    "set_log_level",
    "configure_logging",
    # Probabilistic inference
    "DirichletProcessMixtureModel",
    "ParallelDirichletProcessMixtureModel",
    "DPMMConfig",
    "MCMCConfig",
    "MCMCResult",
    "Sample",
    "Cluster",
    "Updater",
    "MultivariateMeanCovarianceUpdater",
    "MultivariateMeanUpdater",
    "MultivariateGaussian",
    "NormalInverseWishart",
    "AdaptiveRejectionSampler",
    "OperationNotConvergedError",
    "ParallelExecutionError",
]
