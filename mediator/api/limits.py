"""Request dependencies: bound on concurrently served clients."""
from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Optional

from mediator.config import settings

logger = logging.getLogger(__name__)


class ConcurrencyLimiter:
    """Lets at most ``limit`` requests run at once; the rest wait their turn.

    A limit of 0 disables the bound.
    """

    def __init__(self, limit: int):
        self.limit = limit
        self.active = 0
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def _get_semaphore(self) -> asyncio.Semaphore:
        # Semaphores belong to one event loop; test clients start their own.
        loop = asyncio.get_running_loop()
        if self._semaphore is None or self._loop is not loop:
            self._semaphore = asyncio.Semaphore(self.limit)
            self._loop = loop
        return self._semaphore

    async def __call__(self) -> AsyncIterator[None]:
        if self.limit <= 0:
            yield
            return

        semaphore = self._get_semaphore()
        if semaphore.locked():
            logger.info(f"All {self.limit} request slots busy, waiting")
        async with semaphore:
            self.active += 1
            try:
                yield
            finally:
                self.active -= 1


limit_concurrency = ConcurrencyLimiter(settings.max_concurrent_requests)
