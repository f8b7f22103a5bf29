"""Shared synchronous HTTP plumbing for the provider adapters.

Every HTTP-backed adapter (GitHub, GitLab, Bitbucket Cloud, Bitbucket
Server, Azure Repos) goes through `ProviderHttpClient._request`, which
applies client-side pacing and bounded retries on explicit throttling
signals, and `_raise_for_status`, which folds HTTP failures into the
shared error taxonomy.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import httpx

from config import (
    HTTP_TIMEOUT,
    HTTP_VERIFY,
    MAX_RATE_LIMIT_RETRIES,
    MAX_RATE_LIMIT_SLEEP,
    REQUEST_RATE_PER_SEC,
)
from core.errors import AuthFailureError, ExternalServiceError, NotFoundError, RateLimitedError
from core.pacing import Pacer
from core.rate_limiter import RateLimiter, is_throttled

logger = logging.getLogger(__name__)

USER_AGENT = "repo-content-mcp"


@dataclass(frozen=True)
class HttpOptions:
    timeout: float = HTTP_TIMEOUT
    verify: bool = HTTP_VERIFY
    rate_per_sec: float = REQUEST_RATE_PER_SEC
    max_rate_limit_retries: int = MAX_RATE_LIMIT_RETRIES
    max_rate_limit_sleep: int = MAX_RATE_LIMIT_SLEEP


class ProviderHttpClient:
    PROVIDER = "provider"
    JSON_ACCEPT = "application/json"

    def __init__(
        self,
        *,
        base_url: str,
        headers: Optional[Mapping[str, str]] = None,
        auth: Optional[httpx.Auth] = None,
        options: Optional[HttpOptions] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ) -> None:
        opts = options or HttpOptions()
        self._base_url = (base_url or "").rstrip("/") + "/"
        self._timeout = float(opts.timeout)
        self._verify = bool(opts.verify)
        self._auth = auth
        self._headers = {"Accept": self.JSON_ACCEPT, "User-Agent": USER_AGENT, **dict(headers or {})}

        self._pacer = Pacer(rate_per_sec=opts.rate_per_sec, name=self.PROVIDER)
        self._rate_limiter = rate_limiter or RateLimiter(max_sleep_seconds=opts.max_rate_limit_sleep)
        self._max_rate_limit_retries = max(0, int(opts.max_rate_limit_retries))

    @property
    def base_url(self) -> str:
        return self._base_url

    # --- HTTP helpers ---

    def _create_client(self, custom_headers: Optional[Mapping[str, str]] = None) -> httpx.Client:
        headers = {**self._headers, **dict(custom_headers or {})}
        return httpx.Client(
            base_url=self._base_url,
            headers=headers,
            auth=self._auth,
            timeout=self._timeout,
            verify=self._verify,
            follow_redirects=True,
        )

    def _external(self, context: str, err: BaseException) -> ExternalServiceError:
        return ExternalServiceError(f"{self.PROVIDER} request failed ({context}): {err}")

    def _raise_for_status(self, resp: httpx.Response, *, context: str) -> None:
        if resp.is_success:
            return
        if resp.status_code in (401, 403) and not is_throttled(resp):
            raise AuthFailureError(f"{self.PROVIDER} denied access ({context}): HTTP {resp.status_code}")
        if is_throttled(resp):
            raise RateLimitedError(f"{self.PROVIDER} rate limit exceeded ({context})")
        if resp.status_code == 404:
            raise NotFoundError(f"{self.PROVIDER}: not found ({context})")
        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise self._external(context, e) from e

    def _request(
        self,
        client: httpx.Client,
        url: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
    ) -> httpx.Response:
        """GET with pacing and bounded retries for explicit throttling signals."""
        attempts = self._max_rate_limit_retries + 1

        for attempt in range(attempts):
            self._pacer.wait()

            try:
                resp = client.get(url, params=params)
            except httpx.HTTPError as e:
                raise self._external(f"GET {url}", e) from e

            logger.debug("%s GET %s -> %s", self.PROVIDER, resp.request.url, resp.status_code)

            if attempt < attempts - 1 and self._rate_limiter.maybe_sleep_and_retry(resp):
                continue

            return resp

        raise RuntimeError("Unreachable: _request did not return a response")

    def _json(self, resp: httpx.Response, *, context: str) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise self._external(context, e) from e

    def _get_json(self, url: str, *, params: Optional[Mapping[str, Any]] = None, context: str) -> Any:
        with self._create_client() as client:
            resp = self._request(client, url, params=params)
            self._raise_for_status(resp, context=context)
            return self._json(resp, context=context)

    def _get_raw(
        self,
        url: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        context: str,
        custom_headers: Optional[Mapping[str, str]] = None,
    ) -> httpx.Response:
        with self._create_client(custom_headers=custom_headers) as client:
            resp = self._request(client, url, params=params)
            self._raise_for_status(resp, context=context)
            return resp
