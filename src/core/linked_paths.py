"""Per-session table of discovered path indirections.

A key is the repo path (slash-free-leading) at which a symlink or
submodule mount begins; the value says where that subtree really lives.
Entries are only ever added during a session.
"""

from __future__ import annotations

from typing import Dict, Iterator, Optional, Tuple

from core.models import LinkTarget
from core.paths import is_path_prefix, join_repo, repo_path


class LinkedPathCache:
    def __init__(self) -> None:
        self._links: Dict[str, LinkTarget] = {}

    def record(self, for_path: str, target: LinkTarget) -> bool:
        """Store an indirection; returns False when it was already known.

        The repository root cannot be redirected and is never stored.
        """
        key = repo_path(for_path)
        if not key or self._links.get(key) == target:
            return False
        self._links[key] = target
        return True

    def get(self, path: str) -> Optional[LinkTarget]:
        return self._links.get(repo_path(path))

    def longest_prefix(self, path: str) -> Optional[str]:
        """Longest recorded key that is `path` itself or one of its ancestors."""
        p = repo_path(path)
        matches = [k for k in list(self._links) if is_path_prefix(k, p)]
        if not matches:
            return None
        return max(matches, key=len)

    def rewrite(self, path: str) -> Optional[Tuple[LinkTarget, str]]:
        """Map `path` through the innermost indirection covering it.

        Returns the indirection's target and the rewritten path inside the
        target repository, or None when no indirection applies.
        """
        key = self.longest_prefix(path)
        if key is None:
            return None

        target = self._links[key]
        remainder = repo_path(path)[len(key):].lstrip("/")
        return target, join_repo(target.path, remainder)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and repo_path(path) in self._links

    def __len__(self) -> int:
        return len(self._links)

    def __iter__(self) -> Iterator[str]:
        return iter(dict(self._links))

    def items(self) -> Iterator[Tuple[str, LinkTarget]]:
        return iter(list(self._links.items()))
