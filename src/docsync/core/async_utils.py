"""Async utilities for running blocking source and store calls off the event loop."""

import asyncio
import logging
from typing import Any, Callable, Coroutine, Sequence, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)

# Process-wide bound on concurrent source requests, set by the lifespan
_semaphore: asyncio.Semaphore | None = None


def init_semaphore(max_parallel: int = 4) -> asyncio.Semaphore:
    """Install the process-wide request semaphore. Call once at startup."""
    global _semaphore
    if max_parallel < 1:
        raise ValueError(
            f"max_parallel must be at least 1, got {max_parallel}"
        )
    _semaphore = asyncio.Semaphore(max_parallel)
    logger.info(
        "Source request semaphore initialized: max_parallel=%d",
        max_parallel,
    )
    return _semaphore


def get_semaphore() -> asyncio.Semaphore | None:
    """Return the process-wide semaphore, or ``None`` before startup."""
    return _semaphore


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Await a blocking call on a worker thread, without any bound.

    Used for store reads and whole-run calls such as
    ``run_sync(reconciler.sync_repository, repo, adapter)``.
    """
    return await asyncio.to_thread(func, *args, **kwargs)


async def run_bounded(
    semaphore: asyncio.Semaphore | None,
    func: Callable[..., T],
    *args: Any,
    **kwargs: Any,
) -> T:
    """Await a blocking call on a worker thread while holding *semaphore*.

    A ``None`` semaphore means unbounded.
    """
    if semaphore is None:
        return await run_sync(func, *args, **kwargs)
    async with semaphore:
        return await run_sync(func, *args, **kwargs)


async def run_sync_limited(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Like ``run_bounded`` with the process-wide semaphore.

    Unbounded until ``init_semaphore`` has run.
    """
    return await run_bounded(_semaphore, func, *args, **kwargs)


async def gather_limited(
    coros: Sequence[Coroutine[Any, Any, T]],
) -> list[T]:
    """Await *coros* together and return their results in input order.

    The bound comes from the coroutines themselves (``run_bounded`` or
    ``run_sync_limited``).  The first exception propagates.
    """
    return list(await asyncio.gather(*coros))
