from __future__ import annotations

from typing import Any, Callable, Mapping, Optional

import httpx

from core.errors import NotFoundError

RequestFn = Callable[..., httpx.Response]
CheckFn = Callable[..., None]


def _message(resp: httpx.Response) -> str:
    try:
        data: Any = resp.json()
    except ValueError:
        return resp.text or ""
    if isinstance(data, Mapping):
        return str(data.get("message") or "")
    return ""


def fetch_default_branch(
    request: RequestFn,
    check: CheckFn,
    client: httpx.Client,
    *,
    repo: str,
) -> str:
    resp = request(client, f"repos/{repo}")
    if resp.status_code == 404:
        raise NotFoundError(f"Repository not found: {repo}")
    check(resp, context="repository")

    default_branch = (resp.json() or {}).get("default_branch")
    if not default_branch:
        raise NotFoundError(f"Repository has no default branch: {repo}")
    return str(default_branch).strip()


def fetch_commit_sha(
    request: RequestFn,
    check: CheckFn,
    client: httpx.Client,
    *,
    repo: str,
    branch: str,
) -> Optional[str]:
    """Head commit of `branch`; None when the repository has no commits yet."""
    resp = request(client, f"repos/{repo}/git/refs/heads/{branch}")
    if resp.status_code == 404:
        raise NotFoundError(f"Branch not found: {branch}")
    if resp.status_code == 409 and "Repository is empty" in _message(resp):
        return None
    check(resp, context=f"ref heads/{branch}")

    data = resp.json()
    # An array means only refs *starting with* the name exist.
    if not isinstance(data, Mapping):
        raise NotFoundError(f"Branch not found: {branch}")
    return str(data["object"]["sha"])
