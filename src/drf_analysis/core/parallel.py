"""
Worker-pool dispatch for independent tasks.

Tasks are mapped over a process or thread pool when more than one worker
is requested, and run sequentially otherwise. Results always come back in
input order.
"""

import logging
import os
from collections.abc import Callable, Iterable
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor
from typing import Literal, TypeVar

T = TypeVar("T")
R = TypeVar("R")

Backend = Literal["process", "thread"]

logger = logging.getLogger(__name__)


def resolve_workers(n_workers: int | None) -> int:
    """
    Resolve a requested worker count.

    None means sequential execution; 0 or a negative value means one worker
    per available core.
    """
    if n_workers is None:
        return 1
    if n_workers <= 0:
        return os.cpu_count() or 1
    return n_workers


def parallel_map(
    fn: Callable[[T], R],
    items: Iterable[T],
    n_workers: int | None = None,
    backend: Backend = "process",
) -> list[R]:
    """
    Apply fn to every item, optionally across a worker pool.

    Args:
        fn: Function applied to each item. Must be picklable for the
            process backend (module-level function or functools.partial).
        items: Task inputs.
        n_workers: Pool size; see resolve_workers.
        backend: "process" or "thread".

    Returns:
        List of results in the same order as items.
    """
    max_workers = resolve_workers(n_workers)
    tasks = list(items)

    if max_workers <= 1 or len(tasks) <= 1:
        return [fn(task) for task in tasks]

    executor_cls: type[Executor]
    if backend == "process":
        executor_cls = ProcessPoolExecutor
    elif backend == "thread":
        executor_cls = ThreadPoolExecutor
    else:
        raise ValueError(f"Unknown parallel backend: {backend}")

    chunksize = 1
    if len(tasks) > max_workers:
        chunksize = max(1, min(64, len(tasks) // (max_workers * 4)))

    logger.debug(
        f"Dispatching {len(tasks)} tasks to {max_workers} {backend} workers"
    )
    # chunksize is ignored by the thread backend
    with executor_cls(max_workers=max_workers) as pool:
        return list(pool.map(fn, tasks, chunksize=chunksize))
