"""Async helpers for running the blocking sync engine under the MCP server.

The engine, the document store and the GitHub client are all synchronous.
Tool handlers push them onto worker threads with ``run_sync()`` and hold
``profile_lock()`` so two tool calls on the same profile never interleave.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Callable, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)

# One lock per profile name, created lazily on the server's event loop.
_profile_locks: dict[str, asyncio.Lock] = {}


async def run_sync(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Call *func* on a worker thread and await its result.

    Context variables (such as the logging profile tag) are copied into
    the worker thread.
    """
    return await asyncio.to_thread(func, *args, **kwargs)


@asynccontextmanager
async def profile_lock(name: str) -> AsyncIterator[None]:
    """Hold the mutation lock for sync profile *name*.

    Waiting callers queue in arrival order.  Locks for different profiles
    are independent.
    """
    lock = _profile_locks.setdefault(name, asyncio.Lock())
    if lock.locked():
        logger.info("Profile '%s' is busy; waiting for the running call", name)
    async with lock:
        yield


def reset_profile_locks() -> None:
    """Forget all profile locks (used when a new event loop starts)."""
    _profile_locks.clear()
