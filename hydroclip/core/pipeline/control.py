"""Cancellation token shared by every step of an assembly request."""

from __future__ import annotations

import asyncio
import contextlib
from typing import Awaitable, TypeVar

from ..errors import AssemblyCancelled

T = TypeVar("T")


class AssemblyControl:
    """Runtime cancellation flag for one assembly request."""

    def __init__(self) -> None:
        self._cancelled = asyncio.Event()

    def request_cancel(self) -> None:
        self._cancelled.set()

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    def raise_if_cancelled(self) -> None:
        if self._cancelled.is_set():
            raise AssemblyCancelled()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless cancellation is requested first.

        The pending operation is cancelled and :class:`AssemblyCancelled`
        raised as soon as :meth:`request_cancel` is called.
        """

        self.raise_if_cancelled()
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._cancelled.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()

        if task in done:
            return task.result()

        with contextlib.suppress(asyncio.CancelledError):
            await task
        raise AssemblyCancelled()


__all__ = ["AssemblyControl"]
