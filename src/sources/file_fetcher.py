"""Resolver session: directory listings and file contents for one Source.

A FileFetcher owns everything it discovers while serving requests for its
Source: the pinned commit, memoized provider responses and the table of
linked paths (symlinks and submodule mounts). Provider trees offer no way
to resolve those transparently, so a not-found answer for a path may mean
the path crosses such a boundary. When indirections are followed, the
session then probes the ancestors of the path, records what it finds and
tries the request once more.

Sessions are not thread-safe; callers sharing one go through
sources.session_factory.SharedSession.
"""

from __future__ import annotations

import logging
import posixpath
from typing import Callable, Dict, List, Mapping, Optional, Set, Tuple

from clients.registry import client_for_provider
from config import ANCESTOR_ERROR_POLICY
from core.errors import (
    BranchNotFoundError,
    DependencyFileNotFoundError,
    NotAFileError,
    NotFoundError,
    RepoNotFoundError,
    ResolverError,
    ValidationError,
)
from core.gitmodules import parse_gitmodules
from core.interfaces import ProviderContentClient
from core.linked_paths import LinkedPathCache
from core.models import (
    DirectoryEntry,
    DirectoryListing,
    EntryKind,
    FileContent,
    FileKind,
    LinkTarget,
    Provider,
    RawFile,
)
from core.paths import ancestors, basename, join_repo, join_under, parent_dir, repo_path
from core.source import Source

logger = logging.getLogger(__name__)

# (provider, repo id, commit, repo path) of one provider call
Target = Tuple[Provider, str, Optional[str], str]
ClientFactory = Callable[[Provider], ProviderContentClient]

ANCESTOR_ERROR_POLICIES = ("raise", "ignore")

# Upper bound on chained symlink/submodule redirects for one request.
MAX_REDIRECTS = 8

_UNSET = object()


class FileFetcher:
    def __init__(
        self,
        source: Source,
        client: ProviderContentClient,
        *,
        client_factory: Optional[ClientFactory] = None,
        ancestor_error_policy: str = ANCESTOR_ERROR_POLICY,
    ) -> None:
        if ancestor_error_policy not in ANCESTOR_ERROR_POLICIES:
            raise ValidationError(f"Unknown ancestor error policy: {ancestor_error_policy!r}")

        self.source = source
        self._client = client
        self._client_factory: ClientFactory = client_factory or client_for_provider
        self._other_clients: Dict[Provider, ProviderContentClient] = {}
        self._ancestor_error_policy = ancestor_error_policy

        self._links = LinkedPathCache()
        self._commit: object = _UNSET
        self._listings: Dict[Target, DirectoryListing] = {}
        self._missing: Set[Target] = set()
        self._files: Dict[Target, RawFile] = {}

    # --- public API ---

    @property
    def linked_paths(self) -> Mapping[str, LinkTarget]:
        return dict(self._links.items())

    def commit(self) -> Optional[str]:
        """Commit every request of this session is pinned to.

        An explicit Source.commit wins; otherwise the branch (or the
        repository's default branch) is resolved once. None means the
        repository has no commits yet.
        """
        if self.source.commit:
            return self.source.commit
        if self._commit is not _UNSET:
            return self._commit  # type: ignore[return-value]

        branch = self.source.branch
        if not branch:
            try:
                branch = self._client.resolve_default_branch(self.source.repo)
            except NotFoundError as e:
                raise RepoNotFoundError(self.source) from e

        try:
            sha = self._client.resolve_commit(self.source.repo, branch)
        except NotFoundError as e:
            raise BranchNotFoundError(branch) from e

        logger.debug("Pinned %s@%s to %s", self.source.repo, branch, sha)
        self._commit = sha
        return sha

    def list_directory(self, path: str = ".", follow_indirections: bool = False) -> List[DirectoryEntry]:
        display, rp = self._locate(path)
        return self._list_entries(display, rp, follow_indirections)

    def fetch_file(self, path: str, follow_indirections: bool = False) -> FileContent:
        display, rp = self._locate(path)
        return self._fetch_content(display, rp, follow_indirections)

    def fetch_file_if_present(self, path: str, follow_indirections: bool = False) -> Optional[FileContent]:
        """Like fetch_file, but None when the parent listing has no such file.

        A missing parent directory still raises DependencyFileNotFoundError.
        """
        display, rp = self._locate(path)
        parent = parent_dir(rp)
        try:
            entries = self._list_entries("/" + parent, parent, follow_indirections)
        except DependencyFileNotFoundError as e:
            raise DependencyFileNotFoundError(display) from e

        name = basename(rp)
        if not any(e.name == name and e.kind is not EntryKind.DIR for e in entries):
            return None
        return self._fetch_content(display, rp, follow_indirections)

    # --- request state machines ---

    def _list_entries(self, display: str, rp: str, follow_indirections: bool) -> List[DirectoryEntry]:
        walked = False

        for _ in range(MAX_REDIRECTS + 1):
            target = self._target_for(rp, follow_indirections)
            try:
                listing = self._list(target)
            except NotFoundError as e:
                if follow_indirections and not walked:
                    walked = True
                    if self._discover(rp):
                        logger.info("Retrying listing of %s through a discovered indirection", display)
                        continue
                raise DependencyFileNotFoundError(display) from e

            if listing.link is None:
                return [self._to_session_entry(entry, target, rp) for entry in listing.entries]

            # the directory itself is a symlink or submodule mount
            recorded = self._record(rp, listing.link)
            if not follow_indirections:
                raise DependencyFileNotFoundError(display, f"{display} is a symlink or submodule")
            if not recorded:
                break

        raise DependencyFileNotFoundError(display, f"{display}: too many levels of indirection")

    def _fetch_content(self, display: str, rp: str, follow_indirections: bool) -> FileContent:
        walked = False

        while True:
            target = self._target_for(rp, follow_indirections)
            try:
                raw = self._fetch(target)
            except NotAFileError as e:
                raise NotAFileError(display) from e
            except NotFoundError as e:
                if follow_indirections and not walked:
                    walked = True
                    if self._discover(rp):
                        logger.info("Retrying fetch of %s through a discovered indirection", display)
                        continue
                if self._listed_as_directory(rp, follow_indirections):
                    raise NotAFileError(display) from e
                raise DependencyFileNotFoundError(display) from e

            if raw.link is not None:
                self._record(rp, raw.link)
            return self._file_content(display, rp, raw)

    # --- path handling ---

    def _locate(self, path: str) -> Tuple[str, str]:
        """(display path, repo path) of `path` below the source directory."""
        display = join_under(self.source.directory, path or ".")
        return display, repo_path(display)

    def _target_for(self, rp: str, follow: bool) -> Target:
        if follow:
            hit = self._links.rewrite(rp)
            if hit is not None:
                link, inner = hit
                return link.provider, link.repo_id, link.commit, inner
        return self.source.provider, self.source.repo, self.commit(), rp

    def _to_session_entry(self, entry: DirectoryEntry, target: Target, rp: str) -> DirectoryEntry:
        if target == self._target_for(rp, False):
            return entry
        # redirected listing: report paths as seen from this session
        return DirectoryEntry(
            name=entry.name,
            path=join_repo(rp, entry.name),
            kind=entry.kind,
            size=entry.size,
            sha=entry.sha,
        )

    def _file_content(self, display: str, rp: str, raw: RawFile) -> FileContent:
        link = self._links.get(rp)
        directory = self.source.directory
        if display.startswith(directory.rstrip("/") + "/"):
            name = display[len(directory.rstrip("/")) + 1:]
        else:
            name = basename(rp)
        return FileContent(
            name=name,
            path=display,
            directory=directory,
            kind=FileKind.SYMLINK if link is not None else FileKind.FILE,
            content=raw.content,
            symlink_target=link.path if link is not None else None,
        )

    # --- provider dispatch (memoized) ---

    def _client_for(self, provider: Provider) -> ProviderContentClient:
        if provider == self.source.provider:
            return self._client
        if provider not in self._other_clients:
            self._other_clients[provider] = self._client_factory(provider)
        return self._other_clients[provider]

    def _list(self, target: Target) -> DirectoryListing:
        cached = self._listings.get(target)
        if cached is not None:
            logger.debug("Listing memo hit for %s", target)
            return cached

        provider, repo_id, commit, path = target
        if target in self._missing:
            raise NotFoundError(f"{provider.value}: /{path} is not a directory")

        logger.debug("Listing %s:%s@%s /%s", provider.value, repo_id, commit, path)
        try:
            listing = self._client_for(provider).list_directory(repo_id, path, commit)
        except NotFoundError:
            self._missing.add(target)
            raise
        self._listings[target] = listing
        return listing

    def _fetch(self, target: Target) -> RawFile:
        cached = self._files.get(target)
        if cached is not None:
            logger.debug("File memo hit for %s", target)
            return cached

        provider, repo_id, commit, path = target
        logger.debug("Fetching %s:%s@%s /%s", provider.value, repo_id, commit, path)
        raw = self._client_for(provider).fetch_file_content(repo_id, path, commit)
        self._files[target] = raw
        return raw

    def _listed_as_directory(self, rp: str, follow: bool) -> bool:
        """True when the parent listing of `rp` shows it as a directory.

        Several providers answer a directory requested as a file with a plain
        not-found, so the (memoized) parent listing decides.
        """
        if not rp:
            return False
        parent = parent_dir(rp)
        try:
            listing = self._list(self._target_for(parent, follow))
        except NotFoundError:
            return False
        except ResolverError as e:
            if self._ancestor_error_policy == "raise":
                raise
            logger.warning("Ignoring error while listing /%s: %s", parent, e)
            return False
        name = basename(rp)
        return any(e.name == name and e.kind is EntryKind.DIR for e in listing.entries)

    # --- indirection discovery ---

    def _record(self, rp: str, link: LinkTarget) -> bool:
        recorded = self._links.record(rp, link)
        if recorded:
            logger.info(
                "Linked path /%s -> %s:%s@%s /%s",
                rp, link.provider.value, link.repo_id, link.commit, link.path,
            )
        return recorded

    def _discover(self, rp: str) -> bool:
        """Probe the ancestors of `rp`, nearest first, for a symlink or submodule.

        Returns True when a new indirection was recorded. Ancestors that do
        not exist are skipped; other failures follow the ancestor error policy.
        """
        for ancestor in [*ancestors(rp), ""]:
            target = self._target_for(ancestor, True)
            try:
                listing = self._list(target)
            except NotFoundError:
                continue
            except ResolverError as e:
                if self._ancestor_error_policy == "raise":
                    raise
                logger.warning("Ignoring error while probing /%s: %s", ancestor, e)
                continue

            if listing.link is not None:
                return self._record(ancestor, listing.link)

            # the ancestor is a plain directory; only the child on our path can redirect
            child = rp[len(ancestor):].lstrip("/").split("/", 1)[0]
            entry = next((e for e in listing.entries if e.name == child), None)
            if entry is None:
                return False
            link = self._link_for_entry(target, entry)
            if link is None:
                return False
            return self._record(join_repo(ancestor, child), link)

        return False

    def _link_for_entry(self, parent: Target, entry: DirectoryEntry) -> Optional[LinkTarget]:
        provider, repo_id, commit, parent_path = parent
        entry_path = join_repo(parent_path, entry.name)

        if entry.kind is EntryKind.SUBMODULE:
            return self._submodule_target(provider, repo_id, commit, entry_path, entry.sha)

        if entry.kind is EntryKind.SYMLINK:
            try:
                raw = self._fetch((provider, repo_id, commit, entry_path))
            except NotFoundError:
                return None
            if raw.link is not None:
                return raw.link
            # the blob of a symlink is its target path
            dest = raw.content.decode("utf-8", errors="replace").strip()
            if not dest:
                return None
            return LinkTarget(
                provider=provider,
                repo_id=repo_id,
                commit=commit,
                path=join_repo(parent_dir(entry_path), dest),
            )

        return None

    def _submodule_target(
        self,
        provider: Provider,
        repo_id: str,
        commit: Optional[str],
        mount_path: str,
        sha: Optional[str],
    ) -> Optional[LinkTarget]:
        try:
            raw = self._fetch((provider, repo_id, commit, ".gitmodules"))
        except NotFoundError:
            logger.info("No .gitmodules in %s; cannot follow submodule /%s", repo_id, mount_path)
            return None

        url = parse_gitmodules(raw.content.decode("utf-8", errors="replace")).get(mount_path)
        if not url:
            return None

        if url.startswith(("./", "../")):
            # relative submodule URLs live on the same host as the superproject
            sub_repo = repo_path(posixpath.join(repo_id, url))
            if sub_repo.endswith(".git"):
                sub_repo = sub_repo[: -len(".git")]
            return LinkTarget(provider=provider, repo_id=sub_repo, commit=sha, path="")

        sub = Source.parse(url)
        if sub is None:
            logger.info("Submodule /%s points at an unsupported URL: %s", mount_path, url)
            return None
        return LinkTarget(provider=sub.provider, repo_id=sub.repo, commit=sha, path="")
