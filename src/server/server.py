"""Server bootstrap for the repository content MCP service.

Creates the FastMCP instance, loads credentials from the environment,
wires the shared session cache into the tools and starts the MCP server
(stdio transport).
"""

import logging
import sys

from mcp.server.fastmcp import FastMCP

from clients.credentials import credentials_from_env
from config import LOG_LEVEL, SESSION_CACHE_MAXSIZE, SESSION_CACHE_TTL
from core.cache import TTLCache

from tools.list_directory import register as register_list_directory
from tools.read_file import register as register_read_file
from tools.resolve_commit import register as register_resolve_commit

logger = logging.getLogger(__name__)

mcp = FastMCP("repo-content-mcp")


def register_tools() -> None:
    credentials = credentials_from_env()
    sessions = TTLCache(ttl_seconds=SESSION_CACHE_TTL, maxsize=SESSION_CACHE_MAXSIZE)

    register_resolve_commit(mcp, credentials=credentials, sessions=sessions)
    register_list_directory(mcp, credentials=credentials, sessions=sessions)
    register_read_file(mcp, credentials=credentials, sessions=sessions)


register_tools()


def main() -> None:
    # stdout carries the stdio transport
    logging.basicConfig(
        level=LOG_LEVEL,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Starting repo-content-mcp")
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
