"""Worker-pool helpers for data-parallel fan-out/fan-in.

Tasks are zero-argument callables submitted to a
:class:`concurrent.futures.ThreadPoolExecutor`. :func:`execute_in_parallel`
blocks until every task has finished and only then hands back results, so a
caller never observes a partial step.
"""

from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar

from ..logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class ParallelExecutionError(RuntimeError):
    """A task failed inside the worker pool.

    The original exception is chained as ``__cause__``.

    Attributes:
        task_index: Submission index of the first failing task.
    """

    def __init__(self, message: str, task_index: int):
        super().__init__(message)
        self.task_index = task_index


def default_num_threads() -> int:
    """Default pool size: all cores up to two, otherwise leave one core free."""
    cores = os.cpu_count() or 1
    if cores <= 2:
        return cores
    return max(1, cores - 1)


def create_thread_pool(num_threads: Optional[int] = None) -> ThreadPoolExecutor:
    """Create a worker pool.

    Args:
        num_threads: Number of worker threads (default: :func:`default_num_threads`).

    Raises:
        ValueError: If num_threads < 1.
    """
    if num_threads is None:
        num_threads = default_num_threads()
    elif num_threads < 1:
        raise ValueError(f"num_threads must be >= 1, got {num_threads}")
    logger.debug("Creating thread pool with %d threads", num_threads)
    return ThreadPoolExecutor(max_workers=num_threads, thread_name_prefix="npbayes")


def partition(n: int, num_parts: int) -> List[Tuple[int, int]]:
    """Split ``range(n)`` into contiguous ``(start, stop)`` slices.

    All slices have ``n // num_parts`` items except the last, which absorbs
    the remainder. Never returns more slices than items (but always at
    least one).

    Examples:
        >>> partition(10, 3)
        [(0, 3), (3, 6), (6, 10)]
    """
    if num_parts < 1:
        raise ValueError(f"num_parts must be >= 1, got {num_parts}")
    num_parts = max(1, min(num_parts, n))
    size = n // num_parts
    slices = [(i * size, (i + 1) * size) for i in range(num_parts)]
    slices[-1] = (slices[-1][0], n)
    return slices


def execute_in_parallel(
    tasks: Sequence[Callable[[], T]], pool: ThreadPoolExecutor
) -> List[T]:
    """Run tasks on the pool and return their results in submission order.

    Args:
        tasks: Zero-argument callables.
        pool: Executor to submit to.

    Returns:
        One result per task, in the order the tasks were given.

    Raises:
        ParallelExecutionError: If any task raised. Every task is waited on
            before the error is raised.
    """
    futures = [pool.submit(task) for task in tasks]
    results: List[T] = []
    failure: Optional[Tuple[int, BaseException]] = None
    for index, future in enumerate(futures):
        exc = future.exception()
        if exc is not None:
            if failure is None:
                failure = (index, exc)
            continue
        results.append(future.result())

    if failure is not None:
        index, exc = failure
        logger.error("Parallel task %d of %d failed: %r", index, len(tasks), exc)
        raise ParallelExecutionError(f"Parallel task {index} failed: {exc!r}", index) from exc
    return results
