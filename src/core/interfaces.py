"""Core protocol definitions.

Defines the ProviderContentClient protocol that each hosting provider
adapter implements so the resolver can treat all of them alike.
"""

from __future__ import annotations

from typing import Optional, Protocol

from core.models import DirectoryListing, RawFile


class ProviderContentClient(Protocol):
    """Contract for any provider adapter (GitHub, GitLab, Azure, etc.).

    Paths are repo paths without a leading slash ('' is the root). Missing
    repositories, refs and paths raise core.errors.NotFoundError; nothing
    provider-specific escapes an adapter.
    """

    def resolve_default_branch(self, repo_id: str) -> str:
        ...

    def resolve_commit(self, repo_id: str, branch: Optional[str] = None) -> Optional[str]:
        ...

    def list_directory(self, repo_id: str, path: str, commit: Optional[str]) -> DirectoryListing:
        ...

    def fetch_file_content(self, repo_id: str, path: str, commit: Optional[str]) -> RawFile:
        ...
