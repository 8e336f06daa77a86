from __future__ import annotations

import asyncio
import inspect
from typing import TYPE_CHECKING, TypeVar

from journal.core.errors import EnrichmentCancelled

if TYPE_CHECKING:
    from collections.abc import Awaitable

T = TypeVar("T")


class CancelToken:
    """Cooperative cancellation shared by every blocking step of a run.

    Signal handlers call ``cancel()``; task loops poll ``cancelled`` and wrap
    their waits in ``sleep()`` / ``run()`` so a cancelled run unwinds with
    ``EnrichmentCancelled`` instead of finishing its candidate list.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise EnrichmentCancelled("run cancelled")

    async def sleep(self, seconds: float) -> None:
        """Sleep for ``seconds`` unless cancelled first."""
        self.raise_if_cancelled()
        if seconds <= 0:
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        raise EnrichmentCancelled("run cancelled while waiting")

    async def run(self, aw: Awaitable[T]) -> T:
        """Await ``aw``, abandoning it as soon as the token is cancelled."""
        if self.cancelled:
            if inspect.iscoroutine(aw):
                aw.close()
            self.raise_if_cancelled()
        task = asyncio.ensure_future(aw)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()
        if not task.done():
            task.cancel()
            raise EnrichmentCancelled("run cancelled during call")
        return task.result()
