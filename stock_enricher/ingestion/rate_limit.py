"""Rate limiting for providers with per-minute call quotas."""

from __future__ import annotations

import logging
import time
from typing import Callable, Protocol

logger = logging.getLogger(__name__)


class RateLimiter(Protocol):
    """Anything with a blocking ``wait()`` called once before each request."""

    def wait(self) -> None: ...


class FixedDelayRateLimiter:
    """Sleeps a fixed delay before every request.

    With a 15 s delay and one request per ticker this keeps a client under
    Alpha Vantage's free-tier quota of 5 calls per minute.

    Args:
        delay_seconds: Seconds to block per ``wait()``; ``0`` disables waiting.
        sleep: Sleep function, injectable so tests do not block.
    """

    def __init__(
        self,
        delay_seconds: float,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if delay_seconds < 0:
            raise ValueError(f"delay_seconds must be >= 0, got {delay_seconds}.")
        self.delay_seconds = delay_seconds
        self._sleep = sleep

    def wait(self) -> None:
        if self.delay_seconds <= 0:
            return
        logger.debug("Rate limit: sleeping %.1fs before next request.", self.delay_seconds)
        self._sleep(self.delay_seconds)
