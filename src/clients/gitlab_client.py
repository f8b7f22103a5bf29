"""GitLab adapter (REST API v4).

The repository tree API is essentially `git ls-tree`: entry types are
blob/tree/commit, where `commit` marks a submodule whose `id` is the
pinned submodule commit. GitLab reports no sizes in tree listings.
"""

from __future__ import annotations

import base64
from typing import Any, List, Mapping, Optional, Sequence
from urllib.parse import quote

from clients.credentials import Credential, credential_for_host
from clients.http import HttpOptions, ProviderHttpClient
from core.errors import ExternalServiceError, NotFoundError
from core.models import DirectoryEntry, DirectoryListing, EntryKind, RawFile
from core.rate_limiter import RateLimiter
from core.source import Source

_ENTRY_KINDS = {
    "blob": EntryKind.FILE,
    "tree": EntryKind.DIR,
    "commit": EntryKind.SUBMODULE,
}


class GitLabClient(ProviderHttpClient):
    PROVIDER = "gitlab"
    BASE_URL = "https://gitlab.com/api/v4"
    PER_PAGE = 100

    def __init__(
        self,
        *,
        api_endpoint: Optional[str] = None,
        token: Optional[str] = None,
        options: Optional[HttpOptions] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ) -> None:
        headers = {"PRIVATE-TOKEN": token} if token else {}
        super().__init__(
            base_url=api_endpoint or self.BASE_URL,
            headers=headers,
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
    ) -> "GitLabClient":
        cred = credential_for_host(credentials, source.hostname)
        return cls(
            api_endpoint=source.api_endpoint,
            token=cred.get("password") if cred else None,
            options=options,
        )

    def resolve_default_branch(self, repo_id: str) -> str:
        data = self._get_json(self._project_url(repo_id), context="project")
        branch = (data or {}).get("default_branch")
        if not branch:
            raise NotFoundError(f"gitlab: {repo_id} has no default branch")
        return str(branch)

    def resolve_commit(self, repo_id: str, branch: Optional[str] = None) -> Optional[str]:
        branch = branch or self.resolve_default_branch(repo_id)
        data = self._get_json(
            f"{self._project_url(repo_id)}/repository/branches/{quote(branch, safe='')}",
            context=f"branch {branch}",
        )
        return str(data["commit"]["id"])

    def list_directory(self, repo_id: str, path: str, commit: Optional[str]) -> DirectoryListing:
        params: dict[str, Any] = {"per_page": self.PER_PAGE}
        if path:
            params["path"] = path
        if commit:
            params["ref"] = commit

        items: List[Mapping[str, Any]] = []
        url = f"{self._project_url(repo_id)}/repository/tree"
        context = f"tree {path or '/'}"
        with self._create_client() as client:
            page: Optional[str] = "1"
            while page:
                resp = self._request(client, url, params={**params, "page": page})
                self._raise_for_status(resp, context=context)
                data = self._json(resp, context=context)
                if not isinstance(data, list):
                    raise ExternalServiceError(f"gitlab: unexpected tree payload for {path or '/'}")
                items.extend(data)
                page = (resp.headers.get("X-Next-Page") or "").strip() or None

        return DirectoryListing(entries=tuple(self._entry(item) for item in items))

    def fetch_file_content(self, repo_id: str, path: str, commit: Optional[str]) -> RawFile:
        params = {"ref": commit or "HEAD"}
        data = self._get_json(
            f"{self._project_url(repo_id)}/repository/files/{quote(path, safe='')}",
            params=params,
            context=f"file {path}",
        )
        return RawFile(content=base64.b64decode((data or {}).get("content") or ""))

    def _project_url(self, repo_id: str) -> str:
        return f"projects/{quote(repo_id, safe='')}"

    def _entry(self, item: Mapping[str, Any]) -> DirectoryEntry:
        return DirectoryEntry(
            name=str(item.get("name", "")),
            path=str(item.get("path", "")),
            kind=_ENTRY_KINDS.get(str(item.get("type")), EntryKind.FILE),
            size=0,
            sha=item.get("id"),
        )
