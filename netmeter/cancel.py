"""
Cooperative *and* hard cancellation for one measurement run.

A single ``CancelToken`` is shared by every loop of a run.  Loops poll
``token.cancelled`` between iterations, and every blocking call is awaited
through ``token.run(...)`` so that ``cancel()`` aborts the in-flight request
instead of waiting for it to finish naturally.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from .errors import TestCancelled

T = TypeVar("T")


class CancelToken:
    """Cancellation signal threaded through every call that can block."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise TestCancelled()

    async def wait(self) -> None:
        await self._event.wait()

    async def run(self, aw: Awaitable[T]) -> T:
        """Await *aw*, aborting it as soon as the token is cancelled.

        Raises ``TestCancelled`` when the token fires first.
        """
        task = asyncio.ensure_future(aw)
        if self._event.is_set():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise TestCancelled()

        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            # Also reached when the caller itself is cancelled.
            waiter.cancel()
            if not task.done():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)

        if task.cancelled():
            raise TestCancelled()
        return task.result()

    async def sleep(self, seconds: float) -> None:
        """Sleep for *seconds* unless cancelled earlier (then raise)."""
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        raise TestCancelled()
