"""Async utilities for bridging blocking collaborator calls to asyncio."""

import asyncio
import logging
from typing import Any, Callable, Coroutine, Sequence, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)

# Module-level semaphore, initialized at server startup
_semaphore: asyncio.Semaphore | None = None


def init_semaphore(max_parallel: int = 2) -> None:
    """Initialize the concurrency semaphore. Call once at server startup."""
    global _semaphore
    _semaphore = asyncio.Semaphore(max_parallel)
    logger.info(
        "Sync request semaphore initialized: max_parallel=%d",
        max_parallel,
    )


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    Does NOT acquire the module semaphore.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)

    Example:
        # In MCP tool handler:
        result = await run_sync(engine.push, selection, force=False)
    """
    return await asyncio.to_thread(func, *args, **kwargs)


async def run_sync_limited(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool, bounded by the concurrency semaphore.

    Falls back to unbounded if semaphore not initialized.
    """
    if _semaphore is None:
        return await asyncio.to_thread(func, *args, **kwargs)
    async with _semaphore:
        return await asyncio.to_thread(func, *args, **kwargs)


async def run_bounded(
    func: Callable[..., T],
    items: Sequence[Any],
    max_workers: int,
) -> list[T]:
    """Apply *func* to every element of *items* on worker threads.

    At most *max_workers* calls run at once.  Results come back in input
    order.  Exceptions propagate from the first failure, so *func* should
    turn per-item errors into values itself.

    Args:
        func: Synchronous single-argument function.
        items: Arguments, one call each.
        max_workers: Upper bound on concurrent calls (at least 1).

    Returns:
        List of results in the same order as *items*.
    """
    semaphore = asyncio.Semaphore(max(1, max_workers))

    async def _one(item: Any) -> T:
        async with semaphore:
            return await asyncio.to_thread(func, item)

    return await gather_limited([_one(item) for item in items])


async def gather_limited(
    coros: Sequence[Coroutine[Any, Any, T]],
) -> list[T]:
    """Run coroutines concurrently and return results in order.

    Each coroutine should bound itself (``run_sync_limited`` or a
    semaphore of its own).  Exceptions propagate from the first failure.
    """
    return list(await asyncio.gather(*coros))
