"""Client-side request pacing.

Each provider client owns one Pacer; it spaces that client's requests at
least `1 / rate_per_sec` seconds apart. Server-side throttling is handled
separately by core.rate_limiter.
"""

from __future__ import annotations

import logging
import threading
import time

logger = logging.getLogger(__name__)


class Pacer:
    def __init__(self, *, rate_per_sec: float, name: str = "") -> None:
        rate = float(rate_per_sec)
        self.interval = 0.0 if rate <= 0 else 1.0 / rate
        self.name = name
        self._next_slot = 0.0  # time.monotonic()
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self.interval > 0

    def reserve(self) -> float:
        """Claim the next request slot and return how long to wait for it."""
        if not self.enabled:
            return 0.0

        with self._lock:
            now = time.monotonic()
            slot = max(now, self._next_slot)
            self._next_slot = slot + self.interval
        return slot - now

    def wait(self) -> None:
        delay = self.reserve()
        if delay > 0:
            logger.debug("%s: pacing request by %.3fs", self.name or "client", delay)
            time.sleep(delay)
