"""Immutable value types shared by the provider clients and the resolver.

Provider clients map their native tree/blob shapes onto these types at
their boundary, so nothing above them branches on provider-specific
responses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class Provider(str, Enum):
    GITHUB = "github"
    GITLAB = "gitlab"
    BITBUCKET = "bitbucket"
    BITBUCKET_SERVER = "bitbucket_server"
    AZURE = "azure"
    CODECOMMIT = "codecommit"


class EntryKind(str, Enum):
    FILE = "file"
    DIR = "dir"
    SUBMODULE = "submodule"
    SYMLINK = "symlink"


class FileKind(str, Enum):
    FILE = "file"
    SYMLINK = "symlink"


@dataclass(frozen=True)
class DirectoryEntry:
    """One item of a directory listing.

    `sha` is the blob/tree id where the provider reports one; for submodule
    entries it is the pinned commit of the submodule.
    """

    name: str
    path: str
    kind: EntryKind
    size: int = 0
    sha: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "kind": self.kind.value,
            "size": self.size,
            "sha": self.sha,
        }


@dataclass(frozen=True)
class LinkTarget:
    """Where a symlink or submodule mount actually points."""

    provider: Provider
    repo_id: str
    commit: Optional[str]
    path: str = ""


@dataclass(frozen=True)
class DirectoryListing:
    """Result of a provider listing call.

    Exactly one of the two shapes is meaningful: `link` is set when the
    listed path is itself a symlink or submodule mount, otherwise `entries`
    holds the directory contents.
    """

    entries: Tuple[DirectoryEntry, ...] = ()
    link: Optional[LinkTarget] = None


@dataclass(frozen=True)
class RawFile:
    """Decoded blob bytes plus the symlink the provider followed, if any."""

    content: bytes
    link: Optional[LinkTarget] = None


@dataclass(frozen=True)
class FileContent:
    name: str
    path: str
    directory: str
    kind: FileKind
    content: bytes = field(repr=False)
    symlink_target: Optional[str] = None

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")
