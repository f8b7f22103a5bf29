"""Bitbucket Cloud adapter (API 2.0).

Directory listings and raw files share one endpoint,
`repositories/<repo>/src/<commit>/<path>`; a directory answers with a
paginated JSON page whose entries are commit_file/commit_directory.
"""

from __future__ import annotations

import posixpath
from typing import Any, List, Mapping, Optional, Sequence
from urllib.parse import quote

import httpx

from clients.credentials import Credential, credential_for_host
from clients.http import HttpOptions, ProviderHttpClient
from core.errors import NotAFileError, NotFoundError
from core.models import DirectoryEntry, DirectoryListing, EntryKind, RawFile
from core.rate_limiter import RateLimiter
from core.source import Source

_ENTRY_KINDS = {
    "commit_file": EntryKind.FILE,
    "commit_directory": EntryKind.DIR,
}


class BitbucketClient(ProviderHttpClient):
    PROVIDER = "bitbucket"
    BASE_URL = "https://api.bitbucket.org/2.0"
    PAGE_LEN = 100

    def __init__(
        self,
        *,
        api_endpoint: Optional[str] = None,
        token: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        options: Optional[HttpOptions] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        auth = httpx.BasicAuth(username, password) if (username and password and not token) else None
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
    ) -> "BitbucketClient":
        cred = credential_for_host(credentials, source.hostname) or {}
        # "x-token-auth" marks an access token rather than an app password
        token = cred.get("token") or (cred.get("password") if cred.get("username") == "x-token-auth" else None)
        return cls(
            api_endpoint=source.api_endpoint,
            token=token,
            username=cred.get("username"),
            password=cred.get("password"),
            options=options,
        )

    def resolve_default_branch(self, repo_id: str) -> str:
        data = self._get_json(f"repositories/{repo_id}", context="repository")
        branch = ((data or {}).get("mainbranch") or {}).get("name")
        if not branch:
            raise NotFoundError(f"bitbucket: {repo_id} has no main branch")
        return str(branch)

    def resolve_commit(self, repo_id: str, branch: Optional[str] = None) -> Optional[str]:
        branch = branch or self.resolve_default_branch(repo_id)
        data = self._get_json(
            f"repositories/{repo_id}/refs/branches/{quote(branch, safe='')}",
            context=f"branch {branch}",
        )
        return str(data["target"]["hash"])

    def list_directory(self, repo_id: str, path: str, commit: Optional[str]) -> DirectoryListing:
        url: Optional[str] = self._src_url(repo_id, commit, path)
        params: Optional[dict[str, Any]] = {"pagelen": self.PAGE_LEN}
        items: List[Mapping[str, Any]] = []
        context = f"src {path or '/'}"

        with self._create_client() as client:
            while url:
                resp = self._request(client, url, params=params)
                self._raise_for_status(resp, context=context)
                data = self._directory_page(resp)
                if data is None:
                    # a raw file came back: the path is not a directory
                    raise NotFoundError(f"bitbucket: {path} is not a directory")
                items.extend(data["values"])
                # `next` is an absolute URL that already carries the query
                url = data.get("next")
                params = None

        return DirectoryListing(entries=tuple(self._entry(item) for item in items))

    def fetch_file_content(self, repo_id: str, path: str, commit: Optional[str]) -> RawFile:
        resp = self._get_raw(self._src_url(repo_id, commit, path), context=f"src {path}")
        if self._directory_page(resp) is not None:
            raise NotAFileError(path)
        return RawFile(content=resp.content)

    def _src_url(self, repo_id: str, commit: Optional[str], path: str) -> str:
        return f"repositories/{repo_id}/src/{commit or 'HEAD'}/{quote(path)}"

    def _directory_page(self, resp: httpx.Response) -> Optional[Mapping[str, Any]]:
        """The paginated listing in `resp`, or None when it carries a raw file."""
        if "json" not in resp.headers.get("content-type", ""):
            return None
        try:
            data = resp.json()
        except ValueError:
            return None
        if isinstance(data, Mapping) and "pagelen" in data and isinstance(data.get("values"), list):
            return data
        return None

    def _entry(self, item: Mapping[str, Any]) -> DirectoryEntry:
        path = str(item.get("path", ""))
        return DirectoryEntry(
            name=posixpath.basename(path),
            path=path,
            kind=_ENTRY_KINDS.get(str(item.get("type")), EntryKind.FILE),
            size=int(item.get("size") or 0),
        )
