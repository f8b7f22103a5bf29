"""Azure Repos adapter (Azure DevOps Git REST API).

Repository ids look like "org/project/_git/repo" or "org/_git/repo" (the
project then shares the repository's name). Listing a directory takes two
calls: resolve the path to its tree object, then read that tree.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence, Tuple

import httpx

from clients.credentials import Credential, credential_for_host
from clients.http import HttpOptions, ProviderHttpClient
from core.errors import ExternalServiceError, NotAFileError, NotFoundError
from core.models import DirectoryEntry, DirectoryListing, EntryKind, RawFile
from core.paths import basename, join_repo
from core.rate_limiter import RateLimiter
from core.source import Source

_ENTRY_KINDS = {
    "blob": EntryKind.FILE,
    "tree": EntryKind.DIR,
    "commit": EntryKind.SUBMODULE,
}


def split_azure_repo(repo_id: str) -> Tuple[str, str, str]:
    """(organization, project, repository) for an Azure repo id."""
    head, sep, repo = (repo_id or "").strip("/").partition("/_git/")
    parts = [p for p in head.split("/") if p]
    if not sep or not repo or not parts or len(parts) > 2:
        raise ExternalServiceError(f"azure: cannot read org/project/repo from {repo_id!r}")
    org = parts[0]
    project = parts[1] if len(parts) == 2 else repo
    return org, project, repo


class AzureClient(ProviderHttpClient):
    PROVIDER = "azure"
    BASE_URL = "https://dev.azure.com"

    def __init__(
        self,
        *,
        api_endpoint: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        options: Optional[HttpOptions] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ) -> None:
        auth = httpx.BasicAuth(username or "", password) if password else None
        super().__init__(
            base_url=api_endpoint or self.BASE_URL,
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
    ) -> "AzureClient":
        cred = credential_for_host(credentials, source.hostname) or {}
        return cls(
            api_endpoint=source.api_endpoint,
            username=cred.get("username"),
            password=cred.get("password"),
            options=options,
        )

    def resolve_default_branch(self, repo_id: str) -> str:
        data = self._get_json(self._repo_url(repo_id), context="repository")
        ref = str((data or {}).get("defaultBranch") or "")
        if not ref:
            raise NotFoundError(f"azure: {repo_id} has no default branch")
        return ref[len("refs/heads/"):] if ref.startswith("refs/heads/") else ref

    def resolve_commit(self, repo_id: str, branch: Optional[str] = None) -> Optional[str]:
        branch = branch or self.resolve_default_branch(repo_id)
        data = self._get_json(
            f"{self._repo_url(repo_id)}/stats/branches",
            params={"name": branch},
            context=f"branch {branch}",
        )
        return str(data["commit"]["commitId"])

    def list_directory(self, repo_id: str, path: str, commit: Optional[str]) -> DirectoryListing:
        item = self._get_json(
            f"{self._repo_url(repo_id)}/items",
            params={"path": path or "/", **self._version_params(commit)},
            context=f"item {path or '/'}",
        )
        if (item or {}).get("gitObjectType") not in (None, "tree"):
            raise NotFoundError(f"azure: {path} is not a directory")
        tree_id = (item or {}).get("objectId")
        if not tree_id:
            raise ExternalServiceError(f"azure: no tree id for {path or '/'}")

        tree = self._get_json(
            f"{self._repo_url(repo_id)}/trees/{tree_id}",
            params={"recursive": "false"},
            context=f"tree {tree_id}",
        )
        entries = tuple(self._entry(path, entry) for entry in (tree or {}).get("treeEntries") or [])
        return DirectoryListing(entries=entries)

    def fetch_file_content(self, repo_id: str, path: str, commit: Optional[str]) -> RawFile:
        resp = self._get_raw(
            f"{self._repo_url(repo_id)}/items",
            params={"path": path, **self._version_params(commit)},
            context=f"item {path}",
            custom_headers={"Accept": "text/plain"},
        )
        if self._is_folder_item(resp):
            raise NotAFileError(path)
        return RawFile(content=resp.content)

    def _is_folder_item(self, resp: httpx.Response) -> bool:
        # folders answer with their item metadata even when text is asked for
        if "json" not in resp.headers.get("content-type", ""):
            return False
        try:
            data = resp.json()
        except ValueError:
            return False
        return isinstance(data, Mapping) and (data.get("isFolder") is True or data.get("gitObjectType") == "tree")

    def _repo_url(self, repo_id: str) -> str:
        org, project, repo = split_azure_repo(repo_id)
        return f"{org}/{project}/_apis/git/repositories/{repo}"

    def _version_params(self, commit: Optional[str]) -> dict[str, str]:
        if not commit:
            return {}
        return {"versionDescriptor.version": commit, "versionDescriptor.versionType": "commit"}

    def _entry(self, parent: str, entry: Mapping[str, Any]) -> DirectoryEntry:
        rel = str(entry.get("relativePath", ""))
        return DirectoryEntry(
            name=basename(rel),
            path=join_repo(parent, rel),
            kind=_ENTRY_KINDS.get(str(entry.get("gitObjectType")), EntryKind.FILE),
            size=int(entry.get("size") or 0),
            sha=entry.get("objectId"),
        )
