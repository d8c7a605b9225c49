"""Async utilities for running the blocking sync engine from async hosts."""

import asyncio
from typing import Any, Callable, TypeVar

T = TypeVar("T")


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    The sync engine does blocking HTTP and file I/O; the MCP server and
    the scheduler hand it to a worker thread through this wrapper.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)

    Example:
        report = await run_sync(service.sync, manual=True)
    """
    return await asyncio.to_thread(func, *args, **kwargs)
