"""Fork-join helpers for fanning agent tasks out over a collection."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Iterable, Optional, Sequence, TypeVar

from uxflow.core.context import ParallelInterface

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

Thunk = Callable[[], Awaitable[Any]]


class ParallelGroup(ParallelInterface):
    """Runs zero-argument coroutine factories concurrently.

    Results come back in the order the thunks were given, regardless of
    completion order.  The first exception cancels the thunks still running
    and propagates; there is no partial-completion handling.
    """

    def __init__(self, max_concurrent: Optional[int] = None) -> None:
        if max_concurrent is not None and max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.max_concurrent = max_concurrent

    async def all(self, thunks: Sequence[Thunk]) -> list[Any]:
        """Await every thunk and return their results in input order.

        Args:
            thunks: Callables that each return an awaitable when invoked.

        Returns:
            List of results, one per thunk, in the same order.
        """
        if not thunks:
            return []

        start = time.time()
        semaphore = (
            asyncio.Semaphore(self.max_concurrent) if self.max_concurrent else None
        )

        async def _run(thunk: Thunk) -> Any:
            if semaphore is None:
                return await thunk()
            async with semaphore:
                return await thunk()

        futures = [asyncio.ensure_future(_run(t)) for t in thunks]
        try:
            results = await asyncio.gather(*futures)
        except BaseException:
            pending = [f for f in futures if not f.done()]
            for future in pending:
                future.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            logger.debug("Parallel group failed; cancelled %d pending task(s)", len(pending))
            raise
        logger.debug(
            "Parallel group of %d finished in %.2fs", len(thunks), time.time() - start
        )
        return list(results)


async def parallel_map(
    items: Iterable[T],
    fn: Callable[[T], Awaitable[R]],
    group: Any = None,
) -> list[R]:
    """Apply *fn* to every item concurrently and join, preserving order.

    *group* is anything exposing ``all(thunks)``, usually ``ctx.parallel``.
    """
    if group is None:
        group = ParallelGroup()
    thunks = [_bind(fn, item) for item in items]
    return await group.all(thunks)


def _bind(fn: Callable[[T], Awaitable[R]], item: T) -> Callable[[], Awaitable[R]]:
    return lambda: fn(item)
