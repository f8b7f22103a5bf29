"""MCP tool that pins a repository branch to a commit sha."""

from __future__ import annotations

import asyncio
from typing import Optional, Sequence

from mcp.server.fastmcp import FastMCP

from clients.credentials import Credential
from config import SESSION_CACHE_MAXSIZE, SESSION_CACHE_TTL
from core.cache import TTLCache
from sources.session_factory import SharedSession, get_session


def register(
    mcp: FastMCP,
    *,
    credentials: Optional[Sequence[Credential]] = None,
    sessions: Optional[TTLCache[SharedSession]] = None,
) -> None:
    cache = sessions if sessions is not None else TTLCache(ttl_seconds=SESSION_CACHE_TTL, maxsize=SESSION_CACHE_MAXSIZE)

    @mcp.tool(name="resolve_commit")
    async def resolve_commit(repo_url: str, branch: Optional[str] = None) -> Optional[str]:
        """Return the commit sha the repository's branch points at.

        Uses the repository's default branch when neither the URL nor `branch`
        names one. Returns None for a repository without commits.
        """
        shared = get_session(repo_url, branch=branch, credentials=credentials, cache=cache)
        return await asyncio.to_thread(shared.run, lambda session: session.commit())
