"""Adaptive rejection sampling (ARS) for univariate log-concave densities.

The sampler keeps a sorted set of points ``(x, log f(x))`` and derives two
piecewise-linear envelopes of ``log f`` from them:

- the upper envelope, built from secants extended past their end points,
  bounds ``log f`` from above and is sampled exactly as a mixture of
  truncated exponentials;
- the lower envelope, made of the secants between neighbouring points,
  bounds ``log f`` from below and lets most candidates be accepted without
  evaluating ``f`` at all (the squeeze test).

Every rejected candidate that needed a density evaluation becomes a new
point, so the envelopes tighten as sampling proceeds.

References:
    Gilks, W. R., & Wild, P. (1992). Adaptive rejection sampling for Gibbs
    sampling. Applied Statistics, 41(2), 337-348.
    Robert, C. P., & Casella, G. (2004). Monte Carlo Statistical Methods,
    2nd ed., Algorithms A.7 and A.17.
"""

from __future__ import annotations

import bisect
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from ..logging import get_logger
from .utils import logsumexp

logger = get_logger(__name__)

COLLINEAR_TOLERANCE = 1e-10
DEFAULT_MAX_NUM_POINTS = 50
DEFAULT_MAX_REJECTIONS = 100

LogDensity = Callable[[float], float]


class OperationNotConvergedError(RuntimeError):
    """Raised when a sampler cannot produce a draw within its budget."""


class ARSState(Enum):
    """Lifecycle of an :class:`AdaptiveRejectionSampler`."""

    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    SAMPLING = "sampling"


@dataclass(frozen=True)
class Point:
    """An evaluated support point ``(x, log f(x))``."""

    x: float
    y: float


@dataclass(frozen=True)
class LineSegment:
    """The line ``intercept + slope * x`` restricted to ``[left, right]``."""

    intercept: float
    slope: float
    left: float
    right: float

    @classmethod
    def secant(cls, p: Point, q: Point, left: float, right: float) -> "LineSegment":
        """Segment of the line through ``p`` and ``q``."""
        slope = (q.y - p.y) / (q.x - p.x)
        return cls(p.y - slope * p.x, slope, left, right)

    def evaluate(self, x: float) -> float:
        return self.intercept + self.slope * x

    def log_integrate_exp(self) -> float:
        """Log of the integral of ``exp(line)`` over the segment.

        Returns ``inf`` when the integral diverges and ``-inf`` for an
        empty segment.
        """
        width = self.right - self.left
        if width <= 0.0:
            return -np.inf
        q0, q1 = self.intercept, self.slope
        if abs(q1) < COLLINEAR_TOLERANCE:
            if not np.isfinite(width):
                return np.inf
            midpoint = 0.5 * (self.left + self.right)
            return q0 + q1 * midpoint + np.log(width)
        if q1 > 0.0:
            if not np.isfinite(self.right):
                return np.inf
            return q0 + q1 * self.right + np.log(-np.expm1(-q1 * width)) - np.log(q1)
        if not np.isfinite(self.left):
            return np.inf
        return q0 + q1 * self.left + np.log(-np.expm1(q1 * width)) - np.log(-q1)

    def sample_exp(self, p: float) -> float:
        """Inverse CDF of the density proportional to ``exp(line)`` on the segment.

        Args:
            p: Probability in [0, 1].
        """
        if not 0.0 <= p <= 1.0:
            raise ValueError(f"p must be a probability, got {p}")
        q1 = self.slope
        width = self.right - self.left
        if abs(q1) < COLLINEAR_TOLERANCE:
            return self.left + p * width
        # Anchor at the end carrying most of the mass so an infinite
        # opposite end cancels out
        if q1 > 0.0:
            return self.right + np.log1p(-(1.0 - p) * -np.expm1(-q1 * width)) / q1
        return self.left + np.log1p(p * np.expm1(q1 * width)) / q1


class _Envelope:
    """Piecewise-linear function over contiguous segments."""

    def __init__(self, segments: Sequence[LineSegment]):
        self.segments: Tuple[LineSegment, ...] = tuple(segments)
        self._rights = np.array([s.right for s in self.segments])

    def find_segment(self, x: float) -> LineSegment:
        index = int(np.searchsorted(self._rights, x, side="left"))
        return self.segments[min(index, len(self.segments) - 1)]

    def log_evaluate(self, x: float) -> float:
        return self.find_segment(x).evaluate(x)

    def evaluate(self, x: float) -> float:
        return float(np.exp(self.log_evaluate(x)))


class UpperEnvelope(_Envelope):
    """Upper bound on ``log f`` that doubles as a piecewise-exponential sampling density.

    Attributes:
        segments: The ``2N - 2`` line segments, ordered by x.
        log_masses: Log of each segment's exponential integral.
        segment_cdf: Normalized cumulative mass over the segments.
    """

    def __init__(self, segments: Sequence[LineSegment]):
        super().__init__(segments)
        self.log_masses = np.array([s.log_integrate_exp() for s in self.segments])
        log_total = float(logsumexp(self.log_masses))
        if not np.isfinite(log_total):
            raise OperationNotConvergedError(
                "Upper envelope has non-finite mass; the support must be bounded "
                "on any side where the outermost secant does not decay"
            )
        self.log_total_mass = log_total
        self.segment_cdf = np.cumsum(np.exp(self.log_masses - log_total))
        self.segment_cdf[-1] = 1.0

    @classmethod
    def from_points(
        cls, points: Sequence[Point], min_support: float, max_support: float
    ) -> "UpperEnvelope":
        """Build the envelope from at least three sorted points."""
        n = len(points)
        xs = [p.x for p in points]

        def line(i: int, left: float, right: float) -> LineSegment:
            return LineSegment.secant(points[i], points[i + 1], left, right)

        segments = [line(0, min_support, xs[0]), line(1, xs[0], xs[1])]
        for i in range(1, n - 2):
            z = _intersect(line(i - 1, xs[i], xs[i + 1]), line(i + 1, xs[i], xs[i + 1]))
            segments.append(line(i - 1, xs[i], z))
            segments.append(line(i + 1, z, xs[i + 1]))
        segments.append(line(n - 3, xs[n - 2], xs[n - 1]))
        segments.append(line(n - 2, xs[n - 1], max_support))
        return cls(segments)

    def sample(self, rng: np.random.Generator) -> float:
        """Draw from the normalized ``exp(upper envelope)``."""
        index = int(np.searchsorted(self.segment_cdf, rng.random(), side="left"))
        segment = self.segments[min(index, len(self.segments) - 1)]
        return segment.sample_exp(rng.random())


class LowerEnvelope(_Envelope):
    """Lower bound on ``log f``: secants between points, ``-inf`` outside them."""

    @classmethod
    def from_points(
        cls, points: Sequence[Point], min_support: float, max_support: float
    ) -> "LowerEnvelope":
        segments = [LineSegment(-np.inf, 0.0, min_support, points[0].x)]
        for p, q in zip(points[:-1], points[1:]):
            segments.append(LineSegment.secant(p, q, p.x, q.x))
        segments.append(LineSegment(-np.inf, 0.0, points[-1].x, max_support))
        return cls(segments)


def _intersect(a: LineSegment, b: LineSegment) -> float:
    """x where two lines cross, clamped to the span of ``a``."""
    if abs(a.slope - b.slope) < COLLINEAR_TOLERANCE:
        return 0.5 * (a.left + a.right)
    x = (b.intercept - a.intercept) / (a.slope - b.slope)
    return min(max(x, a.left), a.right)


def log_of(pdf: Callable[[float], float]) -> LogDensity:
    """Adapt a density function into a log-density function."""

    def log_density(x: float) -> float:
        with np.errstate(divide="ignore"):
            return float(np.log(pdf(x)))

    return log_density


class AdaptiveRejectionSampler:
    """Adaptive rejection sampler for a log-concave univariate density.

    Example:
        >>> from scipy.stats import norm
        >>> ars = AdaptiveRejectionSampler()
        >>> ars.initialize(norm.logpdf, -np.inf, np.inf, -1.0, 0.0, 1.0)
        >>> x = ars.sample(np.random.default_rng(0))

    Args:
        max_num_points: Budget of support points; once reached, sampling
            continues with the current envelopes.
        max_rejections: Candidates tried per draw before giving up.
    """

    def __init__(
        self,
        max_num_points: int = DEFAULT_MAX_NUM_POINTS,
        max_rejections: int = DEFAULT_MAX_REJECTIONS,
    ):
        if max_num_points < 3:
            raise ValueError(f"max_num_points must be >= 3, got {max_num_points}")
        if max_rejections < 1:
            raise ValueError(f"max_rejections must be >= 1, got {max_rejections}")
        self.max_num_points = max_num_points
        self.max_rejections = max_rejections
        self.log_density: Optional[LogDensity] = None
        self.min_support = -np.inf
        self.max_support = np.inf
        self.state = ARSState.UNINITIALIZED
        self._points: List[Point] = []
        self._upper: Optional[UpperEnvelope] = None
        self._lower: Optional[LowerEnvelope] = None
        self._dirty = True

    def initialize(
        self,
        log_density: LogDensity,
        min_support: float,
        max_support: float,
        x_left: float,
        x_mid: float,
        x_right: float,
    ) -> None:
        """Seed the sampler with three points of a log-concave log-density.

        Args:
            log_density: Function returning ``log f(x)``; must be pure.
            min_support: Lower bound of the support (may be ``-inf``).
            max_support: Upper bound of the support (may be ``inf``).
            x_left, x_mid, x_right: Seed points, strictly increasing and
                inside the support, with finite log-density.

        Raises:
            ValueError: If the seeds are out of order, outside the support,
                or have non-finite log-density.
        """
        if not min_support <= x_left < x_mid < x_right <= max_support:
            raise ValueError(
                "Seed points must satisfy min_support <= x_left < x_mid < x_right <= "
                f"max_support, got {min_support}, {x_left}, {x_mid}, {x_right}, {max_support}"
            )
        seeds = [Point(float(x), float(log_density(x))) for x in (x_left, x_mid, x_right)]
        if not all(np.isfinite(p.y) for p in seeds):
            raise ValueError(f"log_density must be finite at the seed points, got {seeds}")

        self.log_density = log_density
        self.min_support = float(min_support)
        self.max_support = float(max_support)
        self._points = []
        for p in seeds:
            self.add_point(p.x, p.y)
        self.state = ARSState.INITIALIZED

    @property
    def points(self) -> Tuple[Point, ...]:
        return tuple(self._points)

    @property
    def num_points(self) -> int:
        return len(self._points)

    def add_point(self, x: float, y: Optional[float] = None) -> bool:
        """Record ``(x, log f(x))`` if the point budget allows.

        Args:
            x: Location inside the support.
            y: ``log f(x)``; evaluated from the log-density when omitted.

        Returns:
            True if the point was inserted.
        """
        if self.num_points >= self.max_num_points:
            return False
        if y is None:
            if self.log_density is None:
                raise RuntimeError("No log_density set; call initialize() first")
            y = self.log_density(x)
        point = Point(float(x), float(y))
        index = bisect.bisect_left([p.x for p in self._points], point.x)
        # A repeated x would make the secant through it undefined
        if index < len(self._points) and self._points[index].x == point.x:
            return False
        if not np.isfinite(point.y):
            return False
        self._points.insert(index, point)
        self._dirty = True
        if self.num_points == self.max_num_points:
            logger.debug("ARS point budget of %d exhausted", self.max_num_points)
        return True

    def _refresh(self) -> None:
        if not self._dirty:
            return
        if self.num_points < 3:
            raise RuntimeError("At least three points are needed; call initialize() first")
        upper = UpperEnvelope.from_points(self._points, self.min_support, self.max_support)
        lower = LowerEnvelope.from_points(self._points, self.min_support, self.max_support)
        self._upper, self._lower = upper, lower
        self._dirty = False

    @property
    def upper_envelope(self) -> UpperEnvelope:
        self._refresh()
        return self._upper

    @property
    def lower_envelope(self) -> LowerEnvelope:
        self._refresh()
        return self._lower

    def sample(self, rng: np.random.Generator) -> float:
        """Draw one sample from the target density.

        Raises:
            RuntimeError: If the sampler has not been initialized.
            OperationNotConvergedError: If ``max_rejections`` candidates in a
                row are rejected.
        """
        if self.state is ARSState.UNINITIALIZED:
            raise RuntimeError("Sampler not initialized. Call initialize() first.")
        self.state = ARSState.SAMPLING

        for _ in range(self.max_rejections):
            upper = self.upper_envelope
            lower = self.lower_envelope
            x = upper.sample(rng)
            u = rng.random()
            log_upper = upper.log_evaluate(x)

            # Squeeze: accept without touching the target density
            if u <= np.exp(lower.log_evaluate(x) - log_upper):
                return x

            log_fx = self.log_density(x)
            self.add_point(x, log_fx)
            if u <= np.exp(log_fx - log_upper):
                return x

        raise OperationNotConvergedError(
            f"Maximum number of rejections exceeded for a single sample: {self.max_rejections}"
        )

    def sample_n(self, rng: np.random.Generator, n_samples: int) -> np.ndarray:
        """Draw ``n_samples`` samples, shape (n_samples,)."""
        return np.array([self.sample(rng) for _ in range(n_samples)])

    def copy(self) -> "AdaptiveRejectionSampler":
        """Independent sampler with the same settings and points and fresh envelopes."""
        clone = AdaptiveRejectionSampler(self.max_num_points, self.max_rejections)
        clone.log_density = self.log_density
        clone.min_support = self.min_support
        clone.max_support = self.max_support
        clone.state = self.state
        clone._points = list(self._points)
        return clone
