"""Configuration and environment helpers for the project.

Provides small helpers to read typed environment variables and exposes
project-level configuration constants used across the codebase (HTTP
behaviour, discovery policy, session reuse and tool output limits).
"""

from __future__ import annotations

import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


def _env_str(name: str, default: str) -> str:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


# Network / HTTP
HTTP_VERIFY = _env_bool("HTTP_VERIFY", True)
HTTP_TIMEOUT = _env_float("HTTP_TIMEOUT", 20.0)
REQUEST_RATE_PER_SEC = _env_float("REQUEST_RATE_PER_SEC", 0.0)
MAX_RATE_LIMIT_RETRIES = _env_int("MAX_RATE_LIMIT_RETRIES", 2)
MAX_RATE_LIMIT_SLEEP = _env_int("MAX_RATE_LIMIT_SLEEP", 60)

# Discovery walk: "raise" propagates non-not-found errors from ancestor
# probes, "ignore" logs them and keeps walking.
ANCESTOR_ERROR_POLICY = _env_str("ANCESTOR_ERROR_POLICY", "raise").lower()

# Tool layer
SESSION_CACHE_TTL = _env_float("SESSION_CACHE_TTL", 300.0)
SESSION_CACHE_MAXSIZE = _env_int("SESSION_CACHE_MAXSIZE", 64)
MAX_FILE_CHARS = _env_int("MAX_FILE_CHARS", 200_000)

LOG_LEVEL = _env_str("LOG_LEVEL", "INFO").upper()
