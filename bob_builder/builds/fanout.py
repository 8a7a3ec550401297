"""Concurrent fan-out with wait-for-all semantics.

Used for build targets of a project and for tag pushes of an image. All
units run to completion; none is cancelled when a sibling fails.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed

logger = logging.getLogger(__name__)

Task = tuple[str, Callable[[], object]]
Failure = tuple[str, BaseException]


def run_all(tasks: Sequence[Task], thread_name_prefix: str = "bob") -> list[Failure]:
    """Run every task on its own thread and wait for all of them.

    Args:
        tasks: ``(name, callable)`` pairs.
        thread_name_prefix: Prefix for worker thread names.

    Returns:
        ``(name, exception)`` for each failed task, in completion order.
    """
    if not tasks:
        return []

    failures: list[Failure] = []
    with ThreadPoolExecutor(
        max_workers=len(tasks), thread_name_prefix=thread_name_prefix
    ) as pool:
        futures = {pool.submit(fn): name for name, fn in tasks}
        for future in as_completed(futures):
            error = future.exception()
            if error is not None:
                failures.append((futures[future], error))
    return failures


def raise_first(failures: Sequence[Failure]) -> None:
    """Raise the first observed failure, logging the others.

    Raises:
        BaseException: The exception of ``failures[0]``, if any.
    """
    if not failures:
        return
    for name, error in failures[1:]:
        logger.error("%s also failed: %s", name, error)
    raise failures[0][1]


__all__ = ["Failure", "Task", "raise_first", "run_all"]
