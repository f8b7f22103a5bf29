from __future__ import annotations

from typing import Any, Optional


class ResolverError(Exception):
    """Base error for the content resolver."""


class ValidationError(ResolverError):
    """Raised when user input is invalid."""


class ExternalServiceError(ResolverError):
    """Raised when a provider API fails or answers with something unexpected."""


class AuthFailureError(ExternalServiceError):
    """Raised when a provider rejects the supplied credentials."""


class RateLimitedError(ExternalServiceError):
    """Raised when a provider keeps throttling after the bounded retries."""


class NotFoundError(ResolverError):
    """Raised by provider clients when a repository, ref or path is absent."""


class UnsupportedProviderError(ResolverError):
    """Raised for a provider string outside the known set."""

    def __init__(self, provider: Any) -> None:
        super().__init__(f"Unexpected provider '{provider}'")
        self.provider = provider


class UnsupportedOperationError(ResolverError):
    """Raised when an operation has no meaning for the source's provider."""


class RepoNotFoundError(ResolverError):
    """Raised when the repository itself cannot be found."""

    def __init__(self, source: Any) -> None:
        super().__init__(f"Repository not found: {getattr(source, 'repo', source)}")
        self.source = source


class BranchNotFoundError(ResolverError):
    """Raised when the target branch does not exist."""

    def __init__(self, branch_name: Optional[str]) -> None:
        super().__init__(f"Branch not found: {branch_name}")
        self.branch_name = branch_name


class DependencyFileNotFoundError(ResolverError):
    """Raised when a requested file or directory is absent at the commit."""

    def __init__(self, file_path: str, msg: Optional[str] = None) -> None:
        super().__init__(msg or f"{file_path} not found")
        self.file_path = file_path


class NotAFileError(ResolverError):
    """Raised when a path requested as a file is a directory."""

    def __init__(self, file_path: str) -> None:
        super().__init__(f"{file_path} is a directory, not a file")
        self.file_path = file_path
