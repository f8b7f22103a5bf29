"""Factory for resolver sessions.

`resolve` builds a FileFetcher for a Source with the adapter the registry
picks for its provider. `get_session` is the tool layer's entry point: it
parses a repository URL and reuses sessions through a TTL cache so that
discoveries survive between tool calls. Tool calls run on worker threads, so
a cached session is handed out as a SharedSession whose lock serializes
its callers.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from functools import partial
from typing import Callable, Optional, Sequence, TypeVar

from clients.credentials import Credential
from clients.http import HttpOptions
from clients.registry import client_for_provider, client_for_source
from config import ANCESTOR_ERROR_POLICY
from core.cache import TTLCache
from core.errors import ValidationError
from core.source import Source
from sources.file_fetcher import FileFetcher

T = TypeVar("T")


def resolve(
    source: Source,
    credentials: Optional[Sequence[Credential]] = None,
    *,
    options: Optional[HttpOptions] = None,
    ancestor_error_policy: str = ANCESTOR_ERROR_POLICY,
) -> FileFetcher:
    """Open a resolver session for `source`."""
    return FileFetcher(
        source,
        client_for_source(source, credentials, options),
        client_factory=partial(client_for_provider, credentials=credentials, options=options),
        ancestor_error_policy=ancestor_error_policy,
    )


def parse_repo_url(repo_url: Optional[str], *, branch: Optional[str] = None) -> Source:
    if not repo_url or not repo_url.strip():
        raise ValidationError("Missing repo_url")

    source = Source.parse(repo_url.strip())
    if source is None:
        raise ValidationError(f"Unsupported repository URL: {repo_url}")
    if branch and branch.strip():
        source = replace(source, branch=branch.strip())
    return source


@dataclass
class SharedSession:
    session: FileFetcher
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def source(self) -> Source:
        return self.session.source

    def run(self, fn: Callable[[FileFetcher], T]) -> T:
        """Call `fn` with the session while holding its lock."""
        with self.lock:
            return fn(self.session)


def get_session(
    repo_url: Optional[str],
    *,
    branch: Optional[str] = None,
    credentials: Optional[Sequence[Credential]] = None,
    cache: Optional[TTLCache[SharedSession]] = None,
) -> SharedSession:
    source = parse_repo_url(repo_url, branch=branch)
    if cache is None:
        return SharedSession(resolve(source, credentials))

    key = (source.provider.value, source.repo, source.directory, source.branch)
    return cache.get_or_create(key, lambda: SharedSession(resolve(source, credentials)))
