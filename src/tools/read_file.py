"""MCP tool that reads a text file from a remote repository.

Registers the 'read_file' tool which returns file contents with a max
size and validates inputs before delegating to a resolver session.
"""

from __future__ import annotations

import asyncio
from typing import Optional, Sequence

from mcp.server.fastmcp import FastMCP

from clients.credentials import Credential
from config import MAX_FILE_CHARS, SESSION_CACHE_MAXSIZE, SESSION_CACHE_TTL
from core.cache import TTLCache
from core.errors import ValidationError
from sources.file_fetcher import FileFetcher
from sources.session_factory import SharedSession, get_session

TRUNCATION_MARKER = "\n\n...[TRUNCATED]..."


def register(
    mcp: FastMCP,
    *,
    credentials: Optional[Sequence[Credential]] = None,
    sessions: Optional[TTLCache[SharedSession]] = None,
) -> None:
    cache = sessions if sessions is not None else TTLCache(ttl_seconds=SESSION_CACHE_TTL, maxsize=SESSION_CACHE_MAXSIZE)

    @mcp.tool(name="read_file")
    async def read_file(
        repo_url: str,
        path: str = "",
        branch: Optional[str] = None,
        follow_indirections: bool = False,
        max_chars: int = MAX_FILE_CHARS,
    ) -> str:
        """Read a text file from a repository and return its UTF-8 contents.

        Parameters:
          - repo_url: repository URL (GitHub, GitLab, Bitbucket or Azure DevOps).
          - path: file path relative to the URL's base directory (required).
          - branch: overrides the URL's branch; default branch when neither is set.
          - follow_indirections: follow symlinks and submodules (default: False).
          - max_chars: maximum characters to return (default from config).

        Returns:
          The file contents as a UTF-8 string. If the content exceeds max_chars
          it will be truncated and the suffix "\\n\\n...[TRUNCATED]..." appended.

        Raises:
          ValidationError for missing/invalid inputs, NotAFileError when the
          path is a directory, and DependencyFileNotFoundError, RepoNotFoundError
          or BranchNotFoundError when it cannot be resolved.
        """
        if not path or not path.strip():
            raise ValidationError("Missing file path")
        if max_chars <= 0:
            raise ValidationError("max_chars must be positive")

        shared = get_session(repo_url, branch=branch, credentials=credentials, cache=cache)

        def _do(session: FileFetcher) -> str:
            data = session.fetch_file(path.strip(), follow_indirections=follow_indirections).text
            if len(data) > max_chars:
                return data[:max_chars] + TRUNCATION_MARKER
            return data

        return await asyncio.to_thread(shared.run, _do)
