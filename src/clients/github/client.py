"""GitHub adapter: commits, directory listings and file contents.

Listings and files come from the Contents API. When the requested path is
itself a symlink or a submodule the Contents API answers with a single
object instead of an array; that object is turned into a LinkTarget so the
resolver can redirect. Blobs too large for the Contents API are fetched by
sha through the Git Data API instead.
"""

from __future__ import annotations

import base64
import logging
from typing import Any, Mapping, Optional, Sequence
from urllib.parse import quote

import httpx

from clients.credentials import Credential, credential_for_host
from clients.http import HttpOptions, ProviderHttpClient
from core.errors import ExternalServiceError, NotAFileError, NotFoundError
from core.models import DirectoryEntry, DirectoryListing, EntryKind, LinkTarget, Provider, RawFile
from core.paths import basename, join_repo, parent_dir
from core.rate_limiter import RateLimiter
from core.source import Source

from .refs import fetch_commit_sha, fetch_default_branch

logger = logging.getLogger(__name__)

_ENTRY_KINDS = {
    "file": EntryKind.FILE,
    "dir": EntryKind.DIR,
    "submodule": EntryKind.SUBMODULE,
    "symlink": EntryKind.SYMLINK,
}


class GitHubClient(ProviderHttpClient):
    """Sync GitHub client implementing ProviderContentClient.

    Key behavior:
      - resolve_commit reads refs/heads/<branch>; an empty repository yields None.
      - list_directory reports a symlink/submodule path as a link, not entries.
      - fetch_file_content follows a symlink once and reports it back.
    """

    PROVIDER = "github"
    BASE_URL = "https://api.github.com"
    JSON_ACCEPT = "application/vnd.github+json"

    def __init__(
        self,
        *,
        api_endpoint: Optional[str] = None,
        token: Optional[str] = None,
        options: Optional[HttpOptions] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ) -> None:
        headers = {"Authorization": f"token {token}"} if token else {}
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
    ) -> "GitHubClient":
        cred = credential_for_host(credentials, source.hostname)
        return cls(
            api_endpoint=source.api_endpoint,
            token=cred.get("password") if cred else None,
            options=options,
        )

    # --- refs ---

    def resolve_default_branch(self, repo_id: str) -> str:
        with self._create_client() as client:
            return fetch_default_branch(self._request, self._raise_for_status, client, repo=repo_id)

    def resolve_commit(self, repo_id: str, branch: Optional[str] = None) -> Optional[str]:
        branch = branch or self.resolve_default_branch(repo_id)
        with self._create_client() as client:
            return fetch_commit_sha(self._request, self._raise_for_status, client, repo=repo_id, branch=branch)

    # --- contents ---

    def list_directory(self, repo_id: str, path: str, commit: Optional[str]) -> DirectoryListing:
        data = self._get_json(
            self._contents_url(repo_id, path),
            params=self._ref_params(commit),
            context=f"contents {path or '/'}",
        )

        if isinstance(data, list):
            return DirectoryListing(entries=tuple(self._entry(item) for item in data))

        link = self._link_for(repo_id, path, commit, data)
        if link is None:
            raise NotFoundError(f"github: {path} is not a directory")
        return DirectoryListing(link=link)

    def fetch_file_content(self, repo_id: str, path: str, commit: Optional[str]) -> RawFile:
        data = self._file_contents(repo_id, path, commit)

        if isinstance(data, Mapping) and data.get("type") == "symlink":
            link = self._link_for(repo_id, path, commit, data)
            if link is None:
                raise NotFoundError(f"github: broken symlink at {path}")
            logger.debug("github: %s is a symlink to %s", path, link.path)
            target = self._file_contents(repo_id, link.path, commit)
            return RawFile(content=self._decode_file(repo_id, link.path, commit, target), link=link)

        link = None
        if isinstance(data, Mapping) and data.get("type") == "file" and data.get("path") not in (None, path):
            # GitHub already followed a file symlink and answered with the target
            link = LinkTarget(provider=Provider.GITHUB, repo_id=repo_id, commit=commit, path=str(data["path"]))
        return RawFile(content=self._decode_file(repo_id, path, commit, data), link=link)

    # --- internals ---

    def _contents_url(self, repo_id: str, path: str) -> str:
        return f"repos/{repo_id}/contents/{quote(path)}"

    def _ref_params(self, commit: Optional[str]) -> Optional[dict[str, str]]:
        return {"ref": commit} if commit else None

    def _entry(self, item: Mapping[str, Any]) -> DirectoryEntry:
        return DirectoryEntry(
            name=str(item.get("name", "")),
            path=str(item.get("path", "")),
            kind=_ENTRY_KINDS.get(str(item.get("type")), EntryKind.FILE),
            size=int(item.get("size") or 0),
            sha=item.get("sha"),
        )

    def _link_for(
        self,
        repo_id: str,
        path: str,
        commit: Optional[str],
        obj: Mapping[str, Any],
    ) -> Optional[LinkTarget]:
        kind = obj.get("type")
        if kind == "submodule":
            sub = Source.parse(obj.get("submodule_git_url") or "")
            if sub is None:
                return None
            return LinkTarget(provider=sub.provider, repo_id=sub.repo, commit=obj.get("sha"), path="")
        if kind == "symlink" and obj.get("target"):
            return LinkTarget(
                provider=Provider.GITHUB,
                repo_id=repo_id,
                commit=commit,
                path=join_repo(parent_dir(path), str(obj["target"])),
            )
        return None

    def _file_contents(self, repo_id: str, path: str, commit: Optional[str]) -> Any:
        """Contents API JSON for `path`; None when GitHub refuses to inline the blob."""
        context = f"contents {path}"
        with self._create_client() as client:
            resp = self._request(client, self._contents_url(repo_id, path), params=self._ref_params(commit))
            if self._is_too_large(resp):
                return None
            self._raise_for_status(resp, context=context)
            return self._json(resp, context=context)

    def _is_too_large(self, resp: httpx.Response) -> bool:
        return resp.status_code == 403 and "too_large" in (resp.text or "")

    def _decode_file(self, repo_id: str, path: str, commit: Optional[str], data: Any) -> bytes:
        if data is None:
            return self._fetch_via_blob(repo_id, path, commit)
        if isinstance(data, list):
            raise NotAFileError(path)

        kind = data.get("type")
        if kind in ("dir", "submodule"):
            raise NotAFileError(path)
        if kind == "symlink":
            raise NotFoundError(f"github: nested symlink at {path}")

        # Files between 1 MB and 100 MB come back without inline content.
        if data.get("encoding") == "none":
            return self._fetch_via_blob(repo_id, path, commit, sha=data.get("sha"))
        return base64.b64decode(data.get("content") or "")

    def _fetch_via_blob(
        self,
        repo_id: str,
        path: str,
        commit: Optional[str],
        *,
        sha: Optional[str] = None,
    ) -> bytes:
        if not sha:
            listing = self.list_directory(repo_id, parent_dir(path), commit)
            name = basename(path)
            details = next((e for e in listing.entries if e.name == name and e.sha), None)
            if details is None:
                raise NotFoundError(f"github: {path} not found in parent listing")
            sha = details.sha

        logger.debug("github: fetching %s through the git data API (blob %s)", path, sha)
        data = self._get_json(f"repos/{repo_id}/git/blobs/{sha}", context=f"blob {sha}")
        if not isinstance(data, Mapping):
            raise ExternalServiceError(f"github: unexpected blob payload for {path}")
        if data.get("encoding") == "utf-8":
            return str(data.get("content") or "").encode("utf-8")
        return base64.b64decode(data.get("content") or "")
