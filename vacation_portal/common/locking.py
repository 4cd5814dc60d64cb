"""Process-wide transaction lock serialising every request mutation."""

from __future__ import annotations

import asyncio
import logging
import math
from contextlib import asynccontextmanager
from typing import AsyncIterator

from vacation_portal.common.exceptions import BusyException

logger = logging.getLogger(__name__)


class TransactionLock:
    """One lock for both tables.

    Held for the whole transaction (row update, mail, calendar, ledger
    recompute, commit) so overlap and balance checks never race.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    @asynccontextmanager
    async def hold(self, timeout: float) -> AsyncIterator[None]:
        """Acquire within ``timeout`` seconds or raise BusyException."""
        try:
            await asyncio.wait_for(self._lock.acquire(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Transaction lock not acquired within %.1fs", timeout)
            raise BusyException(retry_after=max(1, math.ceil(timeout))) from None
        try:
            yield
        finally:
            self._lock.release()
