"""
Path utilities used across the project.

Repository paths are POSIX strings. Two spellings are used: an
absolute-style display path ("/app/requirements.txt") that error messages
and FileContent carry, and a slash-free-leading repo path
("app/requirements.txt", "" for the root) that provider clients receive.
"""

from __future__ import annotations

import posixpath
import re
from typing import List, Tuple

_MULTI_SLASH_RE = re.compile(r"/{2,}")


def normalize_posix_relpath(p: str) -> str:
    """Normalize a user path to a clean POSIX relative path.

    Converts backslashes to '/', trims whitespace, removes leading '/'
    and repeated './' markers.
    """
    s = (p or "").strip()
    s = s.replace("\\", "/")        # Unify path separators across OSes.
    s = s.lstrip("/")               # Prevent accidental absolute paths.
    while s.startswith("./"):       # Drop repeated "./" prefixes.
        s = s[2:]
    return s


def split_posix(p: str) -> Tuple[str, ...]:
    """Split a POSIX path into non-empty segments."""
    s = (p or "").strip().replace("\\", "/").strip("/")
    if not s:
        return tuple()
    return tuple(seg for seg in s.split("/") if seg)


def clean_path(p: str) -> str:
    """Collapse duplicate slashes and resolve '.' and '..' segments.

    Absolute paths stay absolute ('..' above the root is dropped); an
    empty relative path becomes '.'.
    """
    s = (p or "").replace("\\", "/")
    # posixpath keeps a leading '//' as-is, so squash runs first
    s = _MULTI_SLASH_RE.sub("/", s)
    if not s:
        return "."
    return posixpath.normpath(s)


def join_under(directory: str, path: str) -> str:
    """Join `path` below `directory` and return the absolute-style display path."""
    base = clean_path("/" + (directory or "/"))
    rel = (path or "").replace("\\", "/").lstrip("/")
    return clean_path(base + "/" + rel)


def repo_path(p: str) -> str:
    """Turn any path spelling into the slash-free-leading form ('' is the root)."""
    cleaned = clean_path(p).lstrip("/")
    return "" if cleaned == "." else cleaned


def parent_dir(p: str) -> str:
    """Parent of a repo path ('' for top-level entries)."""
    parent = posixpath.dirname(repo_path(p))
    return parent


def basename(p: str) -> str:
    return posixpath.basename(repo_path(p))


def join_repo(base: str, *parts: str) -> str:
    """Join repo path segments and clean the result."""
    return repo_path("/".join([base or "", *parts]))


def ancestors(p: str) -> List[str]:
    """Proper ancestors of a repo path, nearest first, excluding the root."""
    out: List[str] = []
    cur = parent_dir(p)
    while cur:
        out.append(cur)
        cur = posixpath.dirname(cur)
    return out


def is_path_prefix(prefix: str, p: str) -> bool:
    """True when `prefix` equals `p` or is one of its directory ancestors."""
    if not prefix:
        return True
    return p == prefix or p.startswith(prefix + "/")
