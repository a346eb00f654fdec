"""Helpers for work that must never fail or block the calling request."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Coroutine
from typing import Any, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")

# Strong references so the event loop does not garbage-collect pending tasks
_pending: set[asyncio.Task[Any]] = set()


async def best_effort(awaitable: Awaitable[T], event: str, **context: Any) -> T | None:
    """Await a call, logging and swallowing any failure.

    Args:
        awaitable: The call to run.
        event: Log event name used if the call fails.
        **context: Extra structured context for the log line.

    Returns:
        The call's result, or None if it raised.
    """
    try:
        return await awaitable
    except Exception as e:
        logger.warning(event, error=str(e), error_type=type(e).__name__, **context)
        return None


def run_detached(
    coro: Coroutine[Any, Any, Any], event: str, **context: Any
) -> asyncio.Task[Any]:
    """Schedule a coroutine in the background.

    Failures are logged under ``event`` and never propagate.

    Args:
        coro: Coroutine to run.
        event: Log event name used if the coroutine fails.
        **context: Extra structured context for the log line.

    Returns:
        The scheduled task.
    """
    task = asyncio.get_running_loop().create_task(best_effort(coro, event, **context))
    _pending.add(task)
    task.add_done_callback(_pending.discard)
    return task


async def drain(timeout: float | None = None) -> None:
    """Wait for every detached task scheduled so far."""
    if not _pending:
        return
    await asyncio.wait(list(_pending), timeout=timeout)
