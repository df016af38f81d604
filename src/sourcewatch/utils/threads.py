"""Worker-thread helpers for blocking calls made from handlers.

A thread started by ``asyncio.to_thread`` cannot be interrupted. When the
awaiting task is cancelled (kopf handler cancellation, reconcile timeout)
the thread would keep running and could write to the cluster or the
scratch directory after the failure was already reported. These helpers
hold the cancellation back until the thread has returned.
"""

import asyncio
from collections.abc import Callable, Coroutine
from typing import Any, ParamSpec, TypeVar


P = ParamSpec("P")
T = TypeVar("T")


async def settle(coro: Coroutine[Any, Any, T]) -> T:
    """Await ``coro``; on cancellation let it finish first, then re-raise."""
    task = asyncio.ensure_future(coro)
    try:
        return await asyncio.shield(task)
    except asyncio.CancelledError:
        await asyncio.wait({task})
        if not task.cancelled():
            # Discarded; retrieve it so asyncio does not report it as lost
            task.exception()
        raise


async def run_in_thread(func: Callable[P, T], /, *args: P.args, **kwargs: P.kwargs) -> T:
    """Run ``func`` in a worker thread and never return before it has.

    Raises:
        asyncio.CancelledError: After the thread is done, if the caller
            was cancelled meanwhile. The thread's own result or error is
            discarded in that case.
    """
    return await settle(asyncio.to_thread(func, *args, **kwargs))


__all__ = ["run_in_thread", "settle"]
