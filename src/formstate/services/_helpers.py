"""Shared service-layer helper functions."""

from __future__ import annotations

import asyncio
import inspect
from typing import Any


def running_loop() -> asyncio.AbstractEventLoop | None:
    """The running event loop, or None when called from plain sync code."""
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


async def maybe_await(result: Any) -> Any:
    """Await *result* if it is awaitable, otherwise return it unchanged.

    Lets callers hand in either plain or ``async`` callables.
    """
    if inspect.isawaitable(result):
        return await result
    return result
