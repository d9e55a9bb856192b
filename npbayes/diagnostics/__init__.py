"""Diagnostics and debugging utilities for npbayes."""

from .core import (
    assert_valid_sample,
    cluster_count_histogram,
    mode_cluster_count,
)
from .debug_mode import (
    debug_context,
    is_debug_enabled,
    set_debug_enabled,
)

__all__ = [
    "assert_valid_sample",
    "cluster_count_histogram",
    "mode_cluster_count",
    "is_debug_enabled",
    "set_debug_enabled",
    "debug_context",
]
