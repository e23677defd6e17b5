"""Async utilities for bridging blocking git calls to the async reconciler."""

import asyncio
import logging
import subprocess
from typing import Any, Callable, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    Used for short, local backend operations (opening a repository,
    reading refs, editing remotes).  Cancelling the awaiting task stops
    waiting but does not interrupt the worker thread.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)

    Example:
        repo = await run_sync(Repo, path)
    """
    return await asyncio.to_thread(func, *args, **kwargs)


async def run_process(
    process: subprocess.Popen,
    waiter: Callable[..., T],
    *args: Any,
    **kwargs: Any,
) -> T:
    """Wait for a child process in a thread, killing it on cancellation.

    *waiter* is a blocking callable that drains the process output and
    returns once it has exited.  If the awaiting task is cancelled (or
    times out) the process is terminated so the worker thread can finish,
    and the cancellation propagates unchanged.

    Args:
        process: The running child process.
        waiter: Blocking callable run in a worker thread.
        *args: Positional arguments for waiter
        **kwargs: Keyword arguments for waiter

    Returns:
        Result of waiter(*args, **kwargs)
    """
    try:
        return await asyncio.to_thread(waiter, *args, **kwargs)
    except asyncio.CancelledError:
        if process.poll() is None:
            logger.debug("Terminating pid %d after cancellation", process.pid)
            process.terminate()
        raise
