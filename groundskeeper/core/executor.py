"""Bounded concurrency executor for independent comparison tasks.

Tasks run on a thread pool with a fixed ceiling.  A failing task never
cancels its siblings; every error is collected and handed back once the
whole batch has finished.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any

logger = logging.getLogger(__name__)

# Bounds simultaneously open file handles / in-flight reads.
COMPARISON_CONCURRENCY = 8


class BoundedExecutor:
    """Run zero-argument callables with at most *concurrency* in flight.

    Parameters
    ----------
    concurrency:
        Maximum number of tasks executing at once.  Must be positive.
    """

    def __init__(self, concurrency: int = COMPARISON_CONCURRENCY) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be positive, got {concurrency}")
        self._concurrency = concurrency

    @property
    def concurrency(self) -> int:
        return self._concurrency

    def run(self, tasks: Iterable[Callable[[], Any]]) -> list[BaseException]:
        """Execute every task and return the collected errors.

        Errors are returned in task submission order, so the first entry is
        stable regardless of completion order.  An empty list means every
        task succeeded.
        """
        futures: list[Future[Any]] = []
        with ThreadPoolExecutor(
            max_workers=self._concurrency, thread_name_prefix="groundskeeper"
        ) as pool:
            for task in tasks:
                futures.append(pool.submit(task))
            wait(futures)

        errors = [
            error
            for error in (future.exception() for future in futures)
            if error is not None
        ]
        logger.debug(
            "Executor finished %d task(s) with %d error(s)", len(futures), len(errors)
        )
        return errors
