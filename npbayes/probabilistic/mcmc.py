"""Markov chain Monte Carlo driver: burn-in, thinning and sample collection.

Concrete samplers implement :meth:`MarkovChainMonteCarlo.create_initial_learned_object`
and :meth:`MarkovChainMonteCarlo.mcmc_update`; the driver calls ``initialize``
once and then ``step`` repeatedly, recording an independent copy of the
current parameter after every step.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Generic, List, Optional, TypeVar

import numpy as np

from ..logging import get_logger
from .utils import ensure_2d

logger = get_logger(__name__)

P = TypeVar("P")


@dataclass(frozen=True)
class MCMCConfig:
    """Schedule of an MCMC run.

    Attributes:
        burn_in_iterations: Updates discarded before the first recorded sample.
        iterations_per_sample: Updates between recorded samples (thinning).
        max_iterations: Number of samples recorded by :meth:`MarkovChainMonteCarlo.learn`.
    """

    burn_in_iterations: int = 100
    iterations_per_sample: int = 1
    max_iterations: int = 1000

    def __post_init__(self) -> None:
        """Validate MCMCConfig invariants."""
        if self.burn_in_iterations < 0:
            raise ValueError(f"burn_in_iterations must be >= 0, got {self.burn_in_iterations}")
        if self.iterations_per_sample < 1:
            raise ValueError(
                f"iterations_per_sample must be >= 1, got {self.iterations_per_sample}"
            )
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {self.max_iterations}")


@dataclass
class MCMCResult(Generic[P]):
    """Samples collected by an MCMC run, in the order they were drawn."""

    samples: List[P] = field(default_factory=list)

    @property
    def num_samples(self) -> int:
        return len(self.samples)

    def best_sample(self) -> P:
        """Sample with the highest posterior log-likelihood.

        Samples whose log-likelihood has not been computed yet are skipped.

        Raises:
            ValueError: If no sample carries a log-likelihood.
        """
        scored = [s for s in self.samples if s.posterior_log_likelihood is not None]
        if not scored:
            raise ValueError("No sample has a posterior log-likelihood")
        return max(scored, key=lambda s: s.posterior_log_likelihood)

    def values(self, attr: str) -> np.ndarray:
        """Array of one attribute across all samples, e.g. ``values("alpha")``."""
        return np.array([getattr(s, attr) for s in self.samples])


class MarkovChainMonteCarlo(ABC, Generic[P]):
    """Base class for MCMC samplers over a parameter type ``P``.

    ``P`` must provide ``copy()`` and a ``posterior_log_likelihood`` attribute.

    Args:
        mcmc_config: Burn-in and sampling schedule (default: MCMCConfig()).
        rng: Random number generator. If None, uses default_rng(0).
    """

    def __init__(
        self,
        mcmc_config: Optional[MCMCConfig] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        if rng is None:
            rng = np.random.default_rng(0)
        self.mcmc_config = mcmc_config if mcmc_config is not None else MCMCConfig()
        self.rng = rng
        self.data: Optional[np.ndarray] = None
        self.current_parameter: Optional[P] = None
        self.previous_parameter: Optional[P] = None
        self.result: MCMCResult[P] = MCMCResult()
        self.iteration = 0

    @abstractmethod
    def create_initial_learned_object(self) -> P:
        """Starting parameter for the chain, built from ``self.data``."""

    @abstractmethod
    def mcmc_update(self) -> None:
        """Advance ``self.current_parameter`` by one update (one sweep)."""

    @property
    def is_initialized(self) -> bool:
        return self.current_parameter is not None

    def initialize(self, data: np.ndarray) -> None:
        """Store the data, create the starting parameter and run burn-in.

        Args:
            data: Observations, one per row (1D input is one scalar per row).

        Raises:
            ValueError: If data is empty.
        """
        data = ensure_2d(data)
        if len(data) == 0:
            raise ValueError("MCMC requires at least one observation")
        self.data = data
        self.current_parameter = self.create_initial_learned_object()
        self.previous_parameter = None
        self.result = MCMCResult()
        self.iteration = 0

        for _ in range(self.mcmc_config.burn_in_iterations):
            self.mcmc_update()
        logger.info(
            "Burn-in finished after %d iterations on %d observations",
            self.mcmc_config.burn_in_iterations,
            len(data),
        )

    def step(self) -> P:
        """Run ``iterations_per_sample`` updates and record the resulting sample.

        Returns:
            The recorded sample (an independent copy of the current parameter).

        Raises:
            RuntimeError: If initialize() has not been called.
        """
        if not self.is_initialized:
            raise RuntimeError("Sampler not initialized. Call initialize() first.")
        for _ in range(self.mcmc_config.iterations_per_sample):
            self.mcmc_update()
        self.previous_parameter = self.current_parameter.copy()
        self.result.samples.append(self.previous_parameter)
        self.iteration += 1
        return self.previous_parameter

    def learn(self, data: np.ndarray) -> MCMCResult[P]:
        """Initialize on ``data`` and record ``max_iterations`` samples."""
        self.initialize(data)
        for _ in range(self.mcmc_config.max_iterations):
            self.step()
        logger.info("Collected %d samples", self.result.num_samples)
        return self.result
