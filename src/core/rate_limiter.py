"""Interpret server-side throttling signals and sleep when needed.

Covers the signals the hosting providers send:
- Honor Retry-After on 429 responses (GitHub, GitLab, Bitbucket, Azure).
- On 403 with X-RateLimit-Remaining==0, use X-RateLimit-Reset to delay retries (GitHub).
- Bounds sleep to a configurable maximum to avoid long blocking.
"""

from __future__ import annotations

import logging
import time
from typing import Mapping, Optional

import httpx

logger = logging.getLogger(__name__)


def is_throttled(response: httpx.Response) -> bool:
    if response.status_code == 429:
        return True
    return response.status_code == 403 and response.headers.get("X-RateLimit-Remaining") == "0"


class RateLimiter:
    def __init__(self, *, max_sleep_seconds: int = 60) -> None:
        self._max_sleep_seconds = int(max_sleep_seconds)

    def maybe_sleep_and_retry(self, response: httpx.Response) -> bool:
        # Returns True if caller should retry after sleeping.
        if response.status_code == 429:
            retry_after = self._parse_int_header(response.headers, "Retry-After")
            if retry_after is not None:
                self._sleep_bounded(retry_after, response)
                return True
            return False

        if response.status_code == 403 and response.headers.get("X-RateLimit-Remaining") == "0":
            reset = self._parse_int_header(response.headers, "X-RateLimit-Reset")
            if reset is not None:
                sleep_for = max(0, reset - int(time.time())) + 1
                self._sleep_bounded(sleep_for, response)
                return True

        return False

    def _sleep_bounded(self, seconds: int, response: httpx.Response) -> None:
        delay = min(int(seconds), self._max_sleep_seconds)
        logger.warning("Throttled (HTTP %s), sleeping %ss", response.status_code, delay)
        time.sleep(delay)

    def _parse_int_header(self, headers: Mapping[str, str], name: str) -> Optional[int]:
        value = headers.get(name)
        if not value:
            return None
        value = value.strip()
        if not value.isdigit():
            return None
        return int(value)
