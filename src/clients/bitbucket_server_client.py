"""Bitbucket Server / Data Center adapter (REST API 1.0).

Repository ids are accepted either as "PROJECT/repo" or as the API path
"projects/PROJECT/repos/repo".
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Sequence
from urllib.parse import quote

import httpx

from clients.credentials import Credential, credential_for_host
from clients.http import HttpOptions, ProviderHttpClient
from core.errors import ExternalServiceError, NotFoundError
from core.models import DirectoryEntry, DirectoryListing, EntryKind, RawFile
from core.paths import join_repo
from core.rate_limiter import RateLimiter
from core.source import Source

_ENTRY_KINDS = {
    "FILE": EntryKind.FILE,
    "DIRECTORY": EntryKind.DIR,
    "SUBMODULE": EntryKind.SUBMODULE,
}


def repo_api_path(repo_id: str) -> str:
    rid = (repo_id or "").strip("/")
    if "/repos/" in rid:
        return rid
    project, _, repo = rid.partition("/")
    if not project or not repo:
        raise ExternalServiceError(f"bitbucket_server: cannot read project/repo from {repo_id!r}")
    return f"projects/{project}/repos/{repo}"


class BitbucketServerClient(ProviderHttpClient):
    PROVIDER = "bitbucket_server"
    BASE_URL = "https://bitbucket.com/rest/api/1.0"
    PAGE_LIMIT = 1000

    def __init__(
        self,
        *,
        api_endpoint: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        options: Optional[HttpOptions] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ) -> None:
        headers: dict[str, str] = {}
        auth: Optional[httpx.Auth] = None
        if password and username:
            auth = httpx.BasicAuth(username, password)
        elif password:
            headers["Authorization"] = f"Bearer {password}"
        super().__init__(
            base_url=api_endpoint or self.BASE_URL,
            headers=headers,
            auth=auth,
            options=options,
            rate_limiter=rate_limiter,
        )

    @classmethod
    def for_source(
        cls,
        *,
        source: Source,
        credentials: Optional[Sequence[Credential]] = None,
        options: Optional[HttpOptions] = None,
    ) -> "BitbucketServerClient":
        cred = credential_for_host(credentials, source.hostname) or {}
        return cls(
            api_endpoint=source.api_endpoint,
            username=cred.get("username"),
            password=cred.get("password"),
            options=options,
        )

    def resolve_default_branch(self, repo_id: str) -> str:
        data = self._get_json(f"{repo_api_path(repo_id)}/branches/default", context="default branch")
        branch = (data or {}).get("displayId")
        if not branch:
            raise NotFoundError(f"bitbucket_server: {repo_id} has no default branch")
        return str(branch)

    def resolve_commit(self, repo_id: str, branch: Optional[str] = None) -> Optional[str]:
        branch = branch or self.resolve_default_branch(repo_id)
        data = self._get_json(
            f"{repo_api_path(repo_id)}/commits",
            params={"limit": 1, "start": 0, "until": branch},
            context=f"commits until {branch}",
        )
        values = (data or {}).get("values") or []
        if not values:
            raise NotFoundError(f"bitbucket_server: no commits on {branch}")
        return str(values[0]["id"])

    def list_directory(self, repo_id: str, path: str, commit: Optional[str]) -> DirectoryListing:
        url = f"{repo_api_path(repo_id)}/browse/{quote(path)}"
        base_params: dict[str, Any] = {"limit": self.PAGE_LIMIT}
        if commit:
            base_params["at"] = commit

        items: List[Mapping[str, Any]] = []
        context = f"browse {path or '/'}"
        start = 0
        with self._create_client() as client:
            while True:
                resp = self._request(client, url, params={**base_params, "start": start})
                self._raise_for_status(resp, context=context)
                data = self._json(resp, context=context)
                children = (data or {}).get("children")
                if not isinstance(children, Mapping):
                    # browsing a file returns its lines instead of children
                    raise NotFoundError(f"bitbucket_server: {path} is not a directory")
                items.extend(children.get("values") or [])
                if children.get("isLastPage", True):
                    break
                start = int(children.get("nextPageStart") or 0)

        return DirectoryListing(entries=tuple(self._entry(path, item) for item in items))

    def fetch_file_content(self, repo_id: str, path: str, commit: Optional[str]) -> RawFile:
        params = {"at": commit} if commit else None
        resp = self._get_raw(
            f"{repo_api_path(repo_id)}/raw/{quote(path)}",
            params=params,
            context=f"raw {path}",
            custom_headers={"Accept": "*/*"},
        )
        return RawFile(content=resp.content)

    def _entry(self, parent: str, item: Mapping[str, Any]) -> DirectoryEntry:
        # child paths are relative to the browsed directory
        child = item.get("path") or {}
        rel = str(child.get("toString") or child.get("name") or "")
        return DirectoryEntry(
            name=str(child.get("name") or rel.rsplit("/", 1)[-1]),
            path=join_repo(parent, rel),
            kind=_ENTRY_KINDS.get(str(item.get("type")), EntryKind.FILE),
            size=int(item.get("size") or 0),
            sha=item.get("contentId"),
        )
