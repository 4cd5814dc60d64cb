"""Rate limiting: HTTP-level slowapi limiter plus per-identity action throttling.

``limiter`` is wired into the FastAPI app in main.py and caps raw request
volume per client IP. ``ActionRateLimiter`` throttles how many mutating
calls one identity may make per action within a rolling window; it runs
inside the service layer before the transaction lock is requested.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from limits import parse
from limits.storage import MemoryStorage, Storage
from limits.strategies import MovingWindowRateLimiter
from slowapi import Limiter
from slowapi.util import get_remote_address

from vacation_portal.common.exceptions import RateLimitedException

logger = logging.getLogger(__name__)

# Default: 60 requests/minute per client IP for all endpoints.
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["60/minute"],
)


class ActionRateLimiter:
    """Rolling-window counters keyed by (action, identity)."""

    def __init__(
        self,
        rules: dict[str, str],
        storage: Optional[Storage] = None,
    ) -> None:
        self._storage = storage or MemoryStorage()
        self._strategy = MovingWindowRateLimiter(self._storage)
        self._rules = {action: parse(rule) for action, rule in rules.items()}
        self.enabled = True

    def check(self, identity: str, action: str) -> None:
        """Count one call; raise RateLimitedException once the window is full."""
        item = self._rules.get(action)
        if item is None or not self.enabled:
            return

        key = identity.strip().lower()
        if self._strategy.hit(item, action, key):
            return

        reset_at = self._strategy.get_window_stats(item, action, key)[0]
        retry_after = max(1, int(reset_at - time.time()))
        logger.warning("Rate limit hit: %s by %s (retry in %ss)", action, key, retry_after)
        raise RateLimitedException(retry_after)

    def reset(self) -> None:
        self._storage.reset()
