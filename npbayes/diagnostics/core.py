"""Diagnostic checks and summaries for Dirichlet process mixture samples."""

from __future__ import annotations

from collections import Counter
from typing import Dict, Iterable

import numpy as np


def assert_valid_sample(sample) -> None:
    """
    Assert that a DPMM sample satisfies the post-sweep invariants.

    Parameters
    ----------
    sample:
        Object with an ``alpha`` attribute and a ``clusters`` sequence whose
        items expose ``size``.

    Raises
    ------
    ValueError
        If alpha is not a finite positive number, or a cluster holds fewer
        than two observations.
    """
    alpha = sample.alpha
    if not (np.isfinite(alpha) and alpha > 0):
        raise ValueError(f"Concentration parameter must be finite and > 0, got {alpha}")

    for k, cluster in enumerate(sample.clusters):
        if cluster.size < 2:
            raise ValueError(
                f"Cluster {k} has {cluster.size} member(s); surviving clusters "
                "must hold at least two observations."
            )


def cluster_count_histogram(samples: Iterable) -> Dict[int, int]:
    """
    Count how often each number of clusters occurs.

    Parameters
    ----------
    samples:
        Samples exposing ``num_clusters``.

    Returns
    -------
    dict
        Mapping from cluster count K to the number of samples with K clusters,
        ordered by K.
    """
    counts = Counter(sample.num_clusters for sample in samples)
    return dict(sorted(counts.items()))


def mode_cluster_count(samples: Iterable) -> int:
    """
    Most frequent number of clusters (smallest K on ties).

    Raises
    ------
    ValueError
        If there are no samples.
    """
    histogram = cluster_count_histogram(samples)
    if not histogram:
        raise ValueError("mode_cluster_count requires at least one sample.")
    return max(histogram, key=lambda k: (histogram[k], -k))
