"""Cancellation tokens for in-flight mount requests."""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

import structlog

from .exceptions import OperationCancelled

logger = structlog.get_logger()

T = TypeVar("T")


class CancellationToken:
    """Signals that the caller no longer wants the result of an operation."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


async def run_cancellable(operation: Awaitable[T], token: CancellationToken | None) -> T:
    """Await ``operation`` unless ``token`` fires first.

    When the token fires the operation task is cancelled and awaited before
    OperationCancelled is raised, so its cleanup has run by then.

    Raises:
        OperationCancelled: If the token was or becomes cancelled
    """
    if token is None:
        return await operation

    task = asyncio.ensure_future(operation)
    if token.cancelled:
        task.cancel()
        await _drain(task)
        raise OperationCancelled("Operation cancelled before it started")

    waiter = asyncio.ensure_future(token.wait())
    try:
        done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        waiter.cancel()
        if not task.done() and not token.cancelled:
            # Outer task was cancelled while waiting
            task.cancel()

    if task in done:
        return task.result()

    task.cancel()
    await _drain(task)
    raise OperationCancelled("Operation cancelled by caller")


async def _drain(task: asyncio.Future) -> None:
    """Wait for a cancelled task to finish its cleanup."""
    try:
        await task
    except asyncio.CancelledError:
        pass
    except Exception as e:
        logger.debug("Cancelled operation raised during cleanup", error=str(e))
