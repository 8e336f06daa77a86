from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

from journal.utils.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

    from journal.core.cancellation import CancelToken

logger = get_logger(__name__)


class RateLimiter:
    """Token bucket releasing one permit per ``delay`` seconds.

    A single instance is shared by every task family of a pass, so the bound
    applies to the total rate of external calls. The first permit is granted
    immediately; a delay of zero disables limiting.
    """

    def __init__(self, delay: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._delay = max(0.0, delay)
        self._clock = clock
        self._lock = asyncio.Lock()
        self._next_at: float | None = None

    @property
    def unlimited(self) -> bool:
        return self._delay == 0

    async def acquire(self, token: CancelToken | None = None) -> None:
        """Block until a permit is available.

        Raises EnrichmentCancelled if ``token`` is cancelled first; the permit
        is not consumed in that case.
        """
        if token is not None:
            token.raise_if_cancelled()
        if self.unlimited:
            return

        async with self._lock:
            now = self._clock()
            start = now if self._next_at is None else max(now, self._next_at)
            wait = start - now
            if wait > 0:
                logger.debug("Waiting %.2fs for rate limit permit", wait)
                if token is not None:
                    await token.sleep(wait)
                else:
                    await asyncio.sleep(wait)
            self._next_at = start + self._delay
