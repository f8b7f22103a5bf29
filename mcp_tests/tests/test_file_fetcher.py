import pytest

from core.errors import (
    BranchNotFoundError,
    DependencyFileNotFoundError,
    ExternalServiceError,
    NotAFileError,
    NotFoundError,
    RepoNotFoundError,
    ValidationError,
)
from core.models import (
    DirectoryEntry,
    DirectoryListing,
    EntryKind,
    FileKind,
    LinkTarget,
    Provider,
    RawFile,
)
from core.paths import join_repo, parent_dir
from core.source import Source
from sources.file_fetcher import FileFetcher

# ---------------------------
# In-memory provider
# ---------------------------
#
# Trees map repo paths to nodes:
#   ("file", bytes) | ("dir",) | ("symlink", target) | ("submodule", sha, provider, repo)


class FakeProvider:
    def __init__(
        self,
        trees,
        *,
        provider=Provider.GITHUB,
        branches=None,
        default_branch="main",
        describes_links=True,
        directories_not_found=False,
        errors=None,
    ):
        self.trees = trees
        self.provider = provider
        self.branches = branches or {}
        self.default_branch = default_branch
        # GitHub describes a symlink/submodule path; other providers answer 404
        self.describes_links = describes_links
        self.directories_not_found = directories_not_found
        self.errors = errors or {}
        self.calls = []

    def _tree(self, repo_id, commit):
        try:
            return self.trees[(repo_id, commit)]
        except KeyError as e:
            raise NotFoundError(f"{repo_id}@{commit}") from e

    def _link(self, repo_id, path, commit, node):
        if node[0] == "submodule":
            return LinkTarget(provider=node[2], repo_id=node[3], commit=node[1], path="")
        return LinkTarget(
            provider=self.provider,
            repo_id=repo_id,
            commit=commit,
            path=join_repo(parent_dir(path), node[1]),
        )

    def resolve_default_branch(self, repo_id):
        self.calls.append(("default_branch", repo_id))
        if not any(r == repo_id for r, _ in self.trees):
            raise NotFoundError(repo_id)
        return self.default_branch

    def resolve_commit(self, repo_id, branch=None):
        self.calls.append(("commit", repo_id, branch))
        try:
            return self.branches[(repo_id, branch)]
        except KeyError as e:
            raise NotFoundError(branch) from e

    def list_directory(self, repo_id, path, commit):
        self.calls.append(("list", repo_id, path, commit))
        if path in self.errors:
            raise self.errors[path]

        tree = self._tree(repo_id, commit)
        node = tree.get(path) if path else ("dir",)
        if node is None:
            raise NotFoundError(path)
        if node[0] in ("symlink", "submodule"):
            if not self.describes_links:
                raise NotFoundError(path)
            return DirectoryListing(link=self._link(repo_id, path, commit, node))
        if node[0] != "dir":
            raise NotFoundError(path)

        prefix = path + "/" if path else ""
        entries = []
        for p, n in sorted(tree.items()):
            rest = p[len(prefix):]
            if p.startswith(prefix) and rest and "/" not in rest:
                sha = n[1] if n[0] == "submodule" else None
                entries.append(DirectoryEntry(name=rest, path=p, kind=EntryKind(n[0]), sha=sha))
        return DirectoryListing(entries=tuple(entries))

    def fetch_file_content(self, repo_id, path, commit):
        self.calls.append(("fetch", repo_id, path, commit))
        tree = self._tree(repo_id, commit)
        node = tree.get(path)
        if node is None:
            raise NotFoundError(path)
        if node[0] in ("dir", "submodule"):
            if self.directories_not_found:
                raise NotFoundError(path)
            raise NotAFileError(path)
        if node[0] == "symlink":
            link = self._link(repo_id, path, commit, node)
            target = tree.get(link.path)
            if target is None or target[0] != "file":
                raise NotFoundError(path)
            return RawFile(content=target[1], link=link)
        return RawFile(content=node[1])

    def ops(self, kind):
        return [c for c in self.calls if c[0] == kind]


SUPER = ("o/super", "c1")

SUPER_TREE = {
    "requirements.txt": ("file", b"requests==2.31.0\n"),
    "app": ("dir",),
    "app/setup.py": ("file", b"setup()\n"),
    "app/conf": ("symlink", "../shared"),
    "shared": ("dir",),
    "shared/settings.ini": ("file", b"[main]\n"),
    "real": ("dir",),
    "real/path.txt": ("file", b"real content"),
    "link.txt": ("symlink", "real/path.txt"),
    "lib": ("dir",),
    "lib/vendor": ("submodule", "s2", Provider.GITHUB, "o/vendor"),
}

VENDOR_TREE = {
    "README.md": ("file", b"# vendor\n"),
    "sub": ("dir",),
    "sub/file.txt": ("file", b"nested\n"),
}


def _provider(**kwargs):
    trees = {SUPER: dict(SUPER_TREE), ("o/vendor", "s2"): dict(VENDOR_TREE)}
    return FakeProvider(trees, branches={("o/super", "main"): "c1"}, **kwargs)


def _session(provider, **source_kwargs):
    source_kwargs.setdefault("commit", "c1")
    source = Source(provider="github", repo="o/super", **source_kwargs)
    return FileFetcher(source, provider)


# ---------------------------
# commit pinning
# ---------------------------

def test_commit_resolves_default_branch_once():
    provider = _provider()
    session = _session(provider, commit=None)

    assert session.commit() == "c1"
    assert session.commit() == "c1"
    assert provider.calls == [("default_branch", "o/super"), ("commit", "o/super", "main")]


def test_explicit_commit_short_circuits_resolution():
    provider = _provider()
    session = _session(provider, commit="pinned")

    assert session.commit() == "pinned"
    assert provider.calls == []


def test_commit_uses_source_branch():
    provider = _provider()
    provider.branches[("o/super", "dev")] = "c9"
    session = _session(provider, commit=None, branch="dev")

    assert session.commit() == "c9"
    assert provider.ops("default_branch") == []


def test_missing_repository_and_branch():
    provider = FakeProvider({})
    with pytest.raises(RepoNotFoundError):
        FileFetcher(Source(provider="github", repo="o/gone"), provider).commit()

    with pytest.raises(BranchNotFoundError) as exc:
        _session(_provider(), commit=None, branch="nope").commit()
    assert exc.value.branch_name == "nope"


def test_empty_repository_commit_is_none():
    provider = FakeProvider({("o/empty", None): {}}, branches={("o/empty", "main"): None})
    session = FileFetcher(Source(provider="github", repo="o/empty"), provider)

    assert session.commit() is None
    assert session.commit() is None
    assert len(provider.ops("commit")) == 1


# ---------------------------
# listings and files
# ---------------------------

def test_list_directory_is_memoized():
    provider = _provider()
    session = _session(provider)

    first = session.list_directory()
    second = session.list_directory("./")

    assert first == second
    assert [e.name for e in first] == ["app", "lib", "link.txt", "real", "requirements.txt", "shared"]
    assert len(provider.ops("list")) == 1


def test_fetch_file_is_memoized_and_normalized():
    provider = _provider()
    session = _session(provider)

    first = session.fetch_file("./app/../requirements.txt")
    second = session.fetch_file("requirements.txt")

    assert first == second
    assert first.path == "/requirements.txt"
    assert first.name == "requirements.txt"
    assert first.directory == "/"
    assert first.kind is FileKind.FILE
    assert first.text == "requests==2.31.0\n"
    assert provider.ops("fetch") == [("fetch", "o/super", "requirements.txt", "c1")]


def test_paths_are_relative_to_source_directory():
    provider = _provider()
    session = _session(provider, directory="/app")

    out = session.fetch_file("setup.py")

    assert out.path == "/app/setup.py"
    assert out.name == "setup.py"
    assert out.directory == "/app"
    assert [e.path for e in session.list_directory()] == ["app/conf", "app/setup.py"]


def test_missing_file_carries_normalized_path():
    session = _session(_provider(), directory="/app")

    with pytest.raises(DependencyFileNotFoundError) as exc:
        session.fetch_file("nope/../missing.txt")
    assert exc.value.file_path == "/app/missing.txt"


def test_fetch_file_if_present():
    provider = _provider()
    session = _session(provider)

    assert session.fetch_file_if_present("missing.txt") is None
    assert session.fetch_file_if_present("app") is None
    assert provider.ops("fetch") == []

    assert session.fetch_file_if_present("requirements.txt").content == b"requests==2.31.0\n"


# ---------------------------
# directories requested as files
# ---------------------------

def test_directory_requested_as_file_is_not_a_file():
    session = _session(_provider())

    with pytest.raises(NotAFileError) as exc:
        session.fetch_file("app")
    assert exc.value.file_path == "/app"


def test_directory_answered_as_not_found_is_not_a_file_after_listing():
    session = _session(_provider(directories_not_found=True))
    session.list_directory()

    with pytest.raises(NotAFileError):
        session.fetch_file("shared")


# ---------------------------
# symlinks
# ---------------------------

def test_file_symlink_is_transparent():
    session = _session(_provider())

    via_link = session.fetch_file("link.txt")
    direct = session.fetch_file("real/path.txt")

    assert via_link.content == direct.content == b"real content"
    assert via_link.kind is FileKind.SYMLINK
    assert via_link.symlink_target == "real/path.txt"
    assert via_link.path == "/link.txt"
    assert direct.kind is FileKind.FILE
    assert direct.symlink_target is None
    assert "link.txt" in session.linked_paths


def test_directory_symlink_is_followed_on_request():
    provider = _provider()
    session = _session(provider)

    out = session.fetch_file("app/conf/settings.ini", follow_indirections=True)

    assert out.content == b"[main]\n"
    assert session.linked_paths["app/conf"].path == "shared"


def test_listing_a_symlinked_directory():
    provider = _provider()
    session = _session(provider)

    with pytest.raises(DependencyFileNotFoundError):
        session.list_directory("app/conf")

    entries = session.list_directory("app/conf", follow_indirections=True)

    assert entries == [DirectoryEntry(name="settings.ini", path="app/conf/settings.ini", kind=EntryKind.FILE)]


def test_symlink_loops_are_bounded():
    trees = {SUPER: {"a": ("symlink", "b"), "b": ("symlink", "a")}}
    session = FileFetcher(Source(provider="github", repo="o/super", commit="c1"), FakeProvider(trees))

    with pytest.raises(DependencyFileNotFoundError):
        session.list_directory("a", follow_indirections=True)


# ---------------------------
# submodules
# ---------------------------

def test_submodule_is_transparent_when_following():
    provider = _provider()
    session = _session(provider)

    readme = session.fetch_file("lib/vendor/README.md", follow_indirections=True)

    assert readme.content == b"# vendor\n"
    assert readme.kind is FileKind.FILE
    assert session.linked_paths["lib/vendor"] == LinkTarget(
        provider=Provider.GITHUB, repo_id="o/vendor", commit="s2", path=""
    )

    before = list(provider.calls)
    nested = session.fetch_file("lib/vendor/sub/file.txt", follow_indirections=True)

    assert nested.content == b"nested\n"
    assert nested.path == "/lib/vendor/sub/file.txt"
    # the cached indirection is used directly: no ancestor walk
    assert provider.calls[len(before):] == [("fetch", "o/vendor", "sub/file.txt", "s2")]


def test_submodule_listing_rewrites_entry_paths():
    session = _session(_provider())

    entries = session.list_directory("lib/vendor/sub", follow_indirections=True)

    assert [(e.name, e.path) for e in entries] == [("file.txt", "lib/vendor/sub/file.txt")]


def test_submodule_is_not_entered_without_following():
    session = _session(_provider())

    with pytest.raises(DependencyFileNotFoundError) as exc:
        session.fetch_file("lib/vendor/README.md")
    assert exc.value.file_path == "/lib/vendor/README.md"
    assert session.linked_paths == {}


def test_submodule_found_through_gitmodules_on_another_provider():
    tree = {
        ".gitmodules": ("file", b'[submodule "vendor"]\n\tpath = lib/vendor\n\turl = https://gitlab.com/g/vendor.git\n'),
        "lib": ("dir",),
        "lib/vendor": ("submodule", "s2", Provider.GITLAB, "g/vendor"),
    }
    superproject = FakeProvider({SUPER: tree}, describes_links=False)
    gitlab = FakeProvider({("g/vendor", "s2"): dict(VENDOR_TREE)}, provider=Provider.GITLAB)
    built = []

    def client_factory(provider):
        built.append(provider)
        return gitlab

    session = FileFetcher(
        Source(provider="github", repo="o/super", commit="c1"),
        superproject,
        client_factory=client_factory,
    )

    out = session.fetch_file("lib/vendor/sub/file.txt", follow_indirections=True)

    assert out.content == b"nested\n"
    assert built == [Provider.GITLAB]
    assert session.linked_paths["lib/vendor"] == LinkTarget(
        provider=Provider.GITLAB, repo_id="g/vendor", commit="s2", path=""
    )
    assert [c[2] for c in superproject.ops("list")] == ["lib/vendor/sub", "lib/vendor", "lib"]


def test_relative_submodule_url_stays_on_same_host():
    tree = {
        ".gitmodules": ("file", b'[submodule "vendor"]\n\tpath = vendor\n\turl = ../vendor.git\n'),
        "vendor": ("submodule", "s2", Provider.GITHUB, "o/vendor"),
    }
    provider = FakeProvider({SUPER: tree, ("o/vendor", "s2"): dict(VENDOR_TREE)}, describes_links=False)
    session = FileFetcher(Source(provider="github", repo="o/super", commit="c1"), provider)

    assert session.fetch_file("vendor/README.md", follow_indirections=True).content == b"# vendor\n"
    assert session.linked_paths["vendor"].repo_id == "o/vendor"


# ---------------------------
# retry bound and discovery errors
# ---------------------------

def test_failed_discovery_probes_once_and_surfaces_not_found():
    provider = _provider()
    session = _session(provider)

    with pytest.raises(DependencyFileNotFoundError) as exc:
        session.fetch_file("app/missing/deeper.txt", follow_indirections=True)

    assert exc.value.file_path == "/app/missing/deeper.txt"
    assert provider.ops("fetch") == [("fetch", "o/super", "app/missing/deeper.txt", "c1")]
    assert [c[2] for c in provider.ops("list")] == ["app/missing", "app"]
    assert session.linked_paths == {}


def test_discovery_walks_up_to_the_root():
    provider = _provider()
    session = _session(provider)

    with pytest.raises(DependencyFileNotFoundError):
        session.list_directory("x/y", follow_indirections=True)

    assert [c[2] for c in provider.ops("list")] == ["x/y", "x", ""]


def test_ancestor_errors_raise_by_default():
    provider = _provider(errors={"app/missing": ExternalServiceError("boom")})
    session = _session(provider)

    with pytest.raises(ExternalServiceError):
        session.fetch_file("app/missing/deeper.txt", follow_indirections=True)


def test_ancestor_errors_can_be_ignored():
    provider = _provider(errors={"app/missing": ExternalServiceError("boom")})
    session = FileFetcher(
        Source(provider="github", repo="o/super", commit="c1"),
        provider,
        ancestor_error_policy="ignore",
    )

    with pytest.raises(DependencyFileNotFoundError):
        session.fetch_file("app/missing/deeper.txt", follow_indirections=True)
    # the failing ancestor is listed again as the parent of the file
    assert [c[2] for c in provider.ops("list")] == ["app/missing", "app", "app/missing"]


def test_unknown_ancestor_error_policy():
    with pytest.raises(ValidationError):
        FileFetcher(Source(provider="github", repo="o/r"), _provider(), ancestor_error_policy="retry")


def test_non_not_found_errors_propagate_from_dispatch():
    provider = _provider(errors={"app": ExternalServiceError("down")})
    session = _session(provider)

    with pytest.raises(ExternalServiceError):
        session.list_directory("app", follow_indirections=True)


def test_directory_answered_as_not_found_is_not_a_file_without_listing():
    provider = _provider(directories_not_found=True)
    session = _session(provider)

    with pytest.raises(NotAFileError) as exc:
        session.fetch_file("shared")
    assert exc.value.file_path == "/shared"
    assert [c[2] for c in provider.ops("list")] == [""]


def test_fetch_file_if_present_with_missing_parent_is_not_found():
    provider = _provider()
    session = _session(provider)

    with pytest.raises(DependencyFileNotFoundError) as exc:
        session.fetch_file_if_present("nope/dir/x.txt")
    assert exc.value.file_path == "/nope/dir/x.txt"
    assert provider.ops("fetch") == []


def test_missing_listings_are_memoized():
    provider = _provider()
    session = _session(provider)

    for _ in range(2):
        with pytest.raises(DependencyFileNotFoundError):
            session.list_directory("nowhere")
    assert [c[2] for c in provider.ops("list")] == ["nowhere"]
