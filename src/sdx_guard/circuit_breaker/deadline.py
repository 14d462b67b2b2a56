"""Deadline race for protected actions.

The action runs as its own task and races the deadline. When the deadline
wins, the task is abandoned rather than cancelled: it keeps running until it
settles, and its result or exception is discarded. Callers that need the
action stopped must arrange cancellation inside the action themselves.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, TypeVar, cast

from sdx_guard.circuit_breaker.exceptions import DeadlineExceeded

T = TypeVar("T")

_abandoned: set[asyncio.Task[Any]] = set()


async def maybe_await(value: T | Awaitable[T]) -> T:
    """Await ``value`` when it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return cast(T, value)


async def _invoke(
    func: Callable[..., T | Awaitable[T]],
    args: tuple[Any, ...],
    kwargs: Mapping[str, Any],
) -> T:
    return await maybe_await(func(*args, **kwargs))


def _discard_abandoned(task: asyncio.Task[Any]) -> None:
    _abandoned.discard(task)
    if not task.cancelled():
        task.exception()


def abandoned_count() -> int:
    """Return how many timed-out actions are still running."""
    return len(_abandoned)


async def run_with_deadline(
    func: Callable[..., T | Awaitable[T]],
    args: tuple[Any, ...] = (),
    kwargs: Mapping[str, Any] | None = None,
    *,
    timeout: float | None,
) -> T:
    """Run ``func`` and return its result unless ``timeout`` elapses first.

    Args:
        func: Sync or async callable to run.
        args: Positional arguments forwarded to ``func``.
        kwargs: Keyword arguments forwarded to ``func``.
        timeout: Deadline in seconds. ``None`` waits indefinitely.

    Returns:
        The result of ``func``.

    Raises:
        DeadlineExceeded: When the deadline settles first.
        Exception: Whatever ``func`` raises when it settles first.
    """
    task = asyncio.ensure_future(_invoke(func, args, {} if kwargs is None else kwargs))
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout)
    except asyncio.CancelledError:
        _abandon(task)
        raise

    if task in done:
        return task.result()

    _abandon(task)
    raise DeadlineExceeded(cast(float, timeout))


def _abandon(task: asyncio.Task[Any]) -> None:
    _abandoned.add(task)
    task.add_done_callback(_discard_abandoned)
