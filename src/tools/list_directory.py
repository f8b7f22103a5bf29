"""MCP tool that lists a directory of a remote repository.

Registers the 'list_directory' tool which resolves the repository URL to a
resolver session and returns the entries of one directory at the pinned
commit.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Sequence

from mcp.server.fastmcp import FastMCP

from clients.credentials import Credential
from config import SESSION_CACHE_MAXSIZE, SESSION_CACHE_TTL
from core.cache import TTLCache
from sources.file_fetcher import FileFetcher
from sources.session_factory import SharedSession, get_session


def register(
    mcp: FastMCP,
    *,
    credentials: Optional[Sequence[Credential]] = None,
    sessions: Optional[TTLCache[SharedSession]] = None,
) -> None:
    cache = sessions if sessions is not None else TTLCache(ttl_seconds=SESSION_CACHE_TTL, maxsize=SESSION_CACHE_MAXSIZE)

    @mcp.tool(name="list_directory")
    async def list_directory(
        repo_url: str,
        path: str = ".",
        branch: Optional[str] = None,
        follow_indirections: bool = False,
    ) -> List[Dict[str, Any]]:
        """List one directory of a repository.

        Params:
          - repo_url: repository URL (GitHub, GitLab, Bitbucket or Azure DevOps);
            a /tree/<branch>/<dir> style suffix selects branch and base directory.
          - path: directory relative to the base directory (default: ".").
          - branch: overrides the URL's branch; default branch when neither is set.
          - follow_indirections: follow symlinks and submodules (default: False).

        Returns:
          One dict per entry: name, path, kind (file|dir|submodule|symlink), size, sha.

        Raises:
          ValidationError for invalid inputs; RepoNotFoundError, BranchNotFoundError
          or DependencyFileNotFoundError when the repository, branch or directory
          cannot be resolved.
        """
        shared = get_session(repo_url, branch=branch, credentials=credentials, cache=cache)

        def _do(session: FileFetcher) -> List[Dict[str, Any]]:
            entries = session.list_directory(path or ".", follow_indirections=follow_indirections)
            return [e.to_dict() for e in entries]

        return await asyncio.to_thread(shared.run, _do)
