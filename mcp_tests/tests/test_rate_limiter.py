import httpx

import core.rate_limiter as rl_mod
from core.rate_limiter import RateLimiter, is_throttled


def _resp(status: int, headers: dict[str, str]):
    req = httpx.Request("GET", "https://example.test/x")
    return httpx.Response(status, headers=headers, request=req)


def _capture_sleep(monkeypatch):
    calls = []
    monkeypatch.setattr(rl_mod.time, "sleep", lambda seconds: calls.append(seconds))
    return calls


def test_rate_limiter_429_honors_retry_after(monkeypatch):
    calls = _capture_sleep(monkeypatch)

    rl = RateLimiter(max_sleep_seconds=60)
    r = _resp(429, {"Retry-After": "10"})

    assert rl.maybe_sleep_and_retry(r) is True
    assert calls == [10]


def test_rate_limiter_429_missing_retry_after_no_retry(monkeypatch):
    calls = _capture_sleep(monkeypatch)

    rl = RateLimiter(max_sleep_seconds=60)

    assert rl.maybe_sleep_and_retry(_resp(429, {})) is False
    assert calls == []


def test_rate_limiter_429_bounded_sleep(monkeypatch):
    calls = _capture_sleep(monkeypatch)

    rl = RateLimiter(max_sleep_seconds=5)

    assert rl.maybe_sleep_and_retry(_resp(429, {"Retry-After": "10"})) is True
    assert calls == [5]


def test_rate_limiter_403_rate_limit_reset(monkeypatch):
    calls = _capture_sleep(monkeypatch)
    monkeypatch.setattr(rl_mod.time, "time", lambda: 100)

    rl = RateLimiter(max_sleep_seconds=60)
    r = _resp(403, {"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "120"})

    assert rl.maybe_sleep_and_retry(r) is True
    assert calls == [21]


def test_plain_403_is_not_throttling(monkeypatch):
    calls = _capture_sleep(monkeypatch)

    r = _resp(403, {})

    assert is_throttled(r) is False
    assert RateLimiter().maybe_sleep_and_retry(r) is False
    assert calls == []
