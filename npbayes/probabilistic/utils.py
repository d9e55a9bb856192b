"""Numerical utilities for probabilistic inference.

Provides stable implementations of log-sum-exp, batched multivariate normal
and Student-t log densities, inverse-CDF categorical draws and array shape
helpers used across the samplers.
"""

from typing import Optional, Tuple

import numpy as np
from scipy.special import gammaln

LOG_2PI = np.log(2.0 * np.pi)


def logsumexp(a: np.ndarray, axis: Optional[int] = None) -> np.ndarray:
    """Compute log-sum-exp in a numerically stable way.

    Computes log(sum(exp(a))) avoiding overflow/underflow by subtracting
    the maximum before exponentiating. Slices that are entirely ``-inf``
    reduce to ``-inf`` instead of NaN.

    Args:
        a: Input array of log-values.
        axis: Axis along which to compute. If None, flattens array.

    Returns:
        Log-sum-exp result, same shape as input (with axis removed if specified).

    Examples:
        >>> logsumexp(np.array([-10, -11, -12]))
        -9.40760596444438...
        >>> logsumexp(np.array([[1, 2], [3, 4]]), axis=0)
        array([3.126928..., 4.126928...])
    """
    a = np.asarray(a, dtype=float)
    if axis is None:
        a = a.ravel()
        if a.size == 0:
            return np.array(-np.inf)
        a_max = np.max(a)
        if not np.isfinite(a_max):
            return np.array(a_max)
        return a_max + np.log(np.sum(np.exp(a - a_max)))

    a_max = np.max(a, axis=axis, keepdims=True)
    # All -inf slices would give (-inf) - (-inf) = nan
    a_max = np.where(np.isfinite(a_max), a_max, 0.0)
    with np.errstate(divide="ignore"):
        result = a_max + np.log(np.sum(np.exp(a - a_max), axis=axis, keepdims=True))
    return np.squeeze(result, axis=axis)


def cholesky_factor(cov: np.ndarray) -> np.ndarray:
    """Lower Cholesky factor of a covariance (or scale) matrix.

    Raises:
        ValueError: If cov is not square or not positive definite.
    """
    cov = np.atleast_2d(np.asarray(cov, dtype=float))
    if cov.ndim != 2 or cov.shape[0] != cov.shape[1]:
        raise ValueError(f"Expected a square matrix, got shape {cov.shape}")
    try:
        return np.linalg.cholesky(cov)
    except np.linalg.LinAlgError:
        raise ValueError("Covariance matrix is not positive definite")


def as_batch(x: np.ndarray, dimensionality: int) -> Tuple[np.ndarray, bool]:
    """Coerce observations to a ``(n, d)`` batch.

    For ``d > 1`` a 1D input is one observation and a 2D input is a batch.
    For ``d == 1`` a scalar is one observation and a 1D input is a batch of
    scalars.

    Args:
        x: One observation or a batch of observations.
        dimensionality: Expected observation dimensionality ``d``.

    Returns:
        Tuple of (batch array of shape (n, d), whether x was a single observation).

    Raises:
        ValueError: If the trailing dimension does not match.
    """
    x = np.asarray(x, dtype=float)
    single = x.ndim == 0 or (x.ndim == 1 and dimensionality > 1)
    if dimensionality == 1 and x.ndim <= 1:
        batch = x.reshape(-1, 1)
    else:
        batch = np.atleast_2d(x)
    if batch.ndim != 2 or batch.shape[1] != dimensionality:
        raise ValueError(
            f"Expected observations of dimensionality {dimensionality}, got shape {x.shape}"
        )
    return batch, single


def log_normal_pdf(x: np.ndarray, mean: np.ndarray, chol: np.ndarray) -> np.ndarray:
    """Compute log multivariate normal PDF for a batch of rows.

    Uses a precomputed Cholesky factor so repeated evaluation only costs
    a triangular solve.

    Args:
        x: Observations, shape (n, d).
        mean: Mean vector, shape (d,).
        chol: Lower Cholesky factor of the covariance, shape (d, d).

    Returns:
        Log PDF values, shape (n,).

    Examples:
        >>> log_normal_pdf(np.zeros((1, 1)), np.zeros(1), np.eye(1))
        array([-0.91893853])
    """
    d = len(mean)
    diff = (x - mean).T
    y = np.linalg.solve(chol, diff)
    log_det = np.sum(np.log(np.diag(chol)))
    return -0.5 * d * LOG_2PI - log_det - 0.5 * np.sum(y * y, axis=0)


def log_student_t_pdf(
    x: np.ndarray, location: np.ndarray, chol: np.ndarray, dof: float
) -> np.ndarray:
    """Compute log multivariate Student-t PDF for a batch of rows.

    Args:
        x: Observations, shape (n, d).
        location: Location vector, shape (d,).
        chol: Lower Cholesky factor of the scale matrix, shape (d, d).
        dof: Degrees of freedom, > 0.

    Returns:
        Log PDF values, shape (n,).
    """
    d = len(location)
    diff = (x - location).T
    y = np.linalg.solve(chol, diff)
    maha = np.sum(y * y, axis=0)
    log_det = np.sum(np.log(np.diag(chol)))
    return (
        gammaln(0.5 * (dof + d))
        - gammaln(0.5 * dof)
        - 0.5 * d * np.log(dof * np.pi)
        - log_det
        - 0.5 * (dof + d) * np.log1p(maha / dof)
    )


def sample_categorical(weights: np.ndarray, u: np.ndarray) -> np.ndarray:
    """Inverse-CDF draws from un-normalized categorical weights.

    Column ``j`` of ``weights`` holds the weights of observation ``j``;
    ``u[j]`` is its uniform draw. The chosen index is the first ``k`` whose
    cumulative weight reaches ``u[j]`` times the column total.

    Args:
        weights: Non-negative weights, shape (n_categories, n).
        u: Uniform(0, 1) draws, shape (n,).

    Returns:
        Category indices, shape (n,).

    Examples:
        >>> sample_categorical(np.array([[1.0], [3.0]]), np.array([0.5]))
        array([1])
    """
    cumulative = np.cumsum(weights, axis=0)
    target = u * cumulative[-1]
    index = np.sum(cumulative < target[np.newaxis, :], axis=0)
    # Floating point round-off can push the target past the last bin
    return np.minimum(index, weights.shape[0] - 1)


def ensure_2d(x: np.ndarray) -> np.ndarray:
    """Ensure observations are a 2D float array, one observation per row.

    Args:
        x: Input array.

    Returns:
        2D array (scalars and 1D inputs become a column).
    """
    x = np.asarray(x, dtype=float)
    if x.ndim == 0:
        return x.reshape(1, 1)
    if x.ndim == 1:
        return x.reshape(-1, 1)
    if x.ndim > 2:
        raise ValueError(f"Expected at most 2D observations, got shape {x.shape}")
    return x
