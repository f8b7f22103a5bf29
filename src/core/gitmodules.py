"""Minimal reader for .gitmodules files.

Only the two keys the resolver needs are read: `path` and `url` of each
`[submodule "..."]` section.
"""

from __future__ import annotations

import re
from typing import Dict, Optional

from core.paths import repo_path

_SECTION_RE = re.compile(r'^\s*\[\s*submodule\s+"(?P<name>[^"]+)"\s*\]\s*$')
_KEY_RE = re.compile(r"^\s*(?P<key>[A-Za-z][\w-]*)\s*=\s*(?P<value>.*?)\s*$")


def parse_gitmodules(text: str) -> Dict[str, str]:
    """Map each submodule's repo path to its remote URL."""
    out: Dict[str, str] = {}
    current: Optional[Dict[str, str]] = None

    def _flush() -> None:
        if current and current.get("path") and current.get("url"):
            out[repo_path(current["path"])] = current["url"]

    for line in (text or "").splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith(("#", ";")):
            continue

        section = _SECTION_RE.match(line)
        if section:
            _flush()
            current = {}
            continue
        if stripped.startswith("["):
            # some other section kind
            _flush()
            current = None
            continue

        kv = _KEY_RE.match(line)
        if kv and current is not None:
            current[kv.group("key").lower()] = kv.group("value").strip('"')

    _flush()
    return out
