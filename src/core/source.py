"""Repository location value type.

`Source` describes one logical repository location (provider, repo id,
directory, branch or pinned commit) and knows how to read it back out of a
browsable URL and render it into one again. No network calls happen here.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Optional, Pattern

from core.errors import UnsupportedOperationError, UnsupportedProviderError, ValidationError
from core.models import Provider
from core.paths import clean_path, join_under

_REPO = r"(?P<repo>[\w.-]+/(?:(?!\.git|\.\s)[\w.-])+)"
_DIR_TAIL = r"(?:/(?P<directory>[^\s#?]*[^\s#?/]))?/?"

GITHUB_SOURCE = re.compile(
    r"(?P<provider>github)(?:\.com)[/:]" + _REPO
    + r"(?:/(?:tree|blob)/(?P<branch>[^/\s#?]+)" + _DIR_TAIL + r")?"
)
GITLAB_SOURCE = re.compile(
    r"(?P<provider>gitlab)(?:\.com)[/:]" + _REPO
    + r"(?:/(?:-/)?(?:tree|blob)/(?P<branch>[^/\s#?]+)" + _DIR_TAIL + r")?"
)
BITBUCKET_SOURCE = re.compile(
    r"(?P<provider>bitbucket)(?:\.org)[/:]" + _REPO
    + r"(?:/src/(?P<branch>[^/\s#?]+)" + _DIR_TAIL + r")?"
)
AZURE_SOURCE = re.compile(
    r"(?P<provider>azure)(?:\.com)[/:]"
    r"(?P<repo>[\w.-]+/(?:[\w.-]+/)?_git/(?:(?!\.git|\.\s)[\w.-])+)"
    r"(?:\?path=(?P<directory>[^\s&#]+))?"
)

DEFAULT_BRANCH_PLACEHOLDER = "HEAD"

SOURCE_PATTERNS: tuple[Pattern[str], ...] = (
    GITHUB_SOURCE,
    GITLAB_SOURCE,
    BITBUCKET_SOURCE,
    AZURE_SOURCE,
)

DEFAULT_HOSTNAMES: Dict[Provider, str] = {
    Provider.GITHUB: "github.com",
    Provider.BITBUCKET: "bitbucket.org",
    Provider.GITLAB: "gitlab.com",
    Provider.AZURE: "dev.azure.com",
    Provider.CODECOMMIT: "us-east-1",
    Provider.BITBUCKET_SERVER: "bitbucket.com",
}

DEFAULT_API_ENDPOINTS: Dict[Provider, Optional[str]] = {
    Provider.GITHUB: "https://api.github.com/",
    Provider.BITBUCKET: "https://api.bitbucket.org/2.0/",
    Provider.BITBUCKET_SERVER: "https://bitbucket.com/rest/api/1.0",
    Provider.GITLAB: "https://gitlab.com/api/v4",
    Provider.AZURE: "https://dev.azure.com/",
    Provider.CODECOMMIT: None,
}


def coerce_provider(provider: object) -> Provider:
    if isinstance(provider, Provider):
        return provider
    try:
        return Provider(str(provider))
    except ValueError as e:
        raise UnsupportedProviderError(provider) from e


def _normalize_directory(directory: Optional[str]) -> str:
    if directory is None or directory.strip() in ("", ".", "/"):
        return "/"
    return join_under("/", directory.strip())


@dataclass(frozen=True)
class Source:
    """Immutable description of a repository location.

    `hostname` and `api_endpoint` are either both given or both taken from
    the provider's defaults (CodeCommit has no API endpoint, so it is
    exempt). `directory` is stored as an absolute-style path, "/" by default.
    """

    provider: Provider
    repo: str
    directory: str = "/"
    branch: Optional[str] = None
    commit: Optional[str] = None
    hostname: Optional[str] = None
    api_endpoint: Optional[str] = None
    organization: Optional[str] = None

    def __post_init__(self) -> None:
        provider = coerce_provider(self.provider)
        if (self.hostname is None) != (self.api_endpoint is None) and provider is not Provider.CODECOMMIT:
            raise ValidationError(
                "Both hostname and api_endpoint must be specified if either are. "
                "Alternatively, both may be left blank to use the provider's defaults."
            )
        if not (self.repo or "").strip():
            raise ValidationError("Missing repo")

        # frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "provider", provider)
        object.__setattr__(self, "directory", _normalize_directory(self.directory))
        object.__setattr__(self, "hostname", self.hostname or DEFAULT_HOSTNAMES[provider])
        if self.api_endpoint is None:
            object.__setattr__(self, "api_endpoint", DEFAULT_API_ENDPOINTS[provider])
        if self.organization is None:
            object.__setattr__(self, "organization", self.repo.strip("/").split("/")[0])

    @classmethod
    def parse(cls, url_string: Optional[str]) -> Optional["Source"]:
        """Read a Source out of a repository URL; None when nothing matches."""
        if not url_string:
            return None

        best = None
        for pattern in SOURCE_PATTERNS:
            m = pattern.search(url_string)
            if m and (best is None or m.start() < best.start()):
                best = m
        if best is None:
            return None

        captures = best.groupdict()
        branch = captures.get("branch")
        return cls(
            provider=Provider(captures["provider"]),
            repo=captures["repo"],
            directory=captures.get("directory"),
            # HEAD stands for the default branch
            branch=None if branch == DEFAULT_BRANCH_PLACEHOLDER else branch,
        )

    from_url = parse

    @property
    def url(self) -> str:
        return f"https://{self.hostname}/{self.repo}"

    def url_with_directory(self) -> str:
        """Browsable URL of the directory; HEAD stands in for an unset branch."""
        if self.directory == "/":
            return self.url

        rel = self.directory.lstrip("/")
        if self.provider in (Provider.GITHUB, Provider.GITLAB):
            return self.url + "/" + clean_path(f"tree/{self.branch or DEFAULT_BRANCH_PLACEHOLDER}/{rel}")
        if self.provider is Provider.BITBUCKET:
            return self.url + "/" + clean_path(f"src/{self.branch or DEFAULT_BRANCH_PLACEHOLDER}/{rel}")
        if self.provider is Provider.AZURE:
            return f"{self.url}?path={self.directory}"
        raise UnsupportedOperationError(f"The {self.provider.value} provider does not utilize URLs")

    @property
    def project(self) -> str:
        """Azure DevOps project name (org/project/_git/repo or org/_git/repo)."""
        if self.provider is not Provider.AZURE:
            raise UnsupportedOperationError("Project is an Azure DevOps concept only")

        head, _, tail = self.repo.partition("/_git/")
        head_parts = head.split("/")
        if len(head_parts) == 2:
            return head_parts[-1]
        return tail

    @property
    def unscoped_repo(self) -> str:
        return self.repo.rstrip("/").split("/")[-1]
