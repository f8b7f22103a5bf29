"""AWS CodeCommit adapter.

CodeCommit has no HTTP content API of its own; everything goes through
boto3. The source's hostname carries the AWS region, and the matching
credential's username/password are the access key id and secret.
"""

from __future__ import annotations

import base64
import logging
from typing import Any, Optional, Sequence

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from clients.credentials import Credential, credential_for_host
from core.errors import AuthFailureError, ExternalServiceError, NotFoundError, RateLimitedError
from core.models import DirectoryEntry, DirectoryListing, EntryKind, RawFile
from core.paths import basename
from core.source import Source

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {
    "BranchDoesNotExistException",
    "CommitDoesNotExistException",
    "FileDoesNotExistException",
    "FolderDoesNotExistException",
    "RepositoryDoesNotExistException",
}
_AUTH_CODES = {"AccessDeniedException", "UnrecognizedClientException", "InvalidSignatureException"}
_THROTTLE_CODES = {"ThrottlingException", "TooManyRequestsException"}


class CodeCommitClient:
    PROVIDER = "codecommit"

    def __init__(
        self,
        *,
        region: str,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        boto_client: Any = None,
    ) -> None:
        self._region = region
        if boto_client is None:
            boto_client = boto3.client(
                "codecommit",
                region_name=region,
                aws_access_key_id=access_key_id or None,
                aws_secret_access_key=secret_access_key or None,
            )
        self._client = boto_client

    @classmethod
    def for_source(
        cls,
        *,
        source: Source,
        credentials: Optional[Sequence[Credential]] = None,
        options: Any = None,
    ) -> "CodeCommitClient":
        cred = credential_for_host(credentials, source.hostname) or {}
        return cls(
            region=str(source.hostname),
            access_key_id=cred.get("username"),
            secret_access_key=cred.get("password"),
        )

    def _call(self, operation: str, context: str, **kwargs: Any) -> Any:
        try:
            return getattr(self._client, operation)(**kwargs)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in _NOT_FOUND_CODES:
                raise NotFoundError(f"codecommit: not found ({context})") from e
            if code in _AUTH_CODES:
                raise AuthFailureError(f"codecommit denied access ({context}): {code}") from e
            if code in _THROTTLE_CODES:
                raise RateLimitedError(f"codecommit rate limit exceeded ({context})") from e
            raise ExternalServiceError(f"codecommit request failed ({context}): {e}") from e
        except BotoCoreError as e:
            raise ExternalServiceError(f"codecommit request failed ({context}): {e}") from e

    def resolve_default_branch(self, repo_id: str) -> str:
        data = self._call("get_repository", "repository", repositoryName=repo_id)
        branch = (data.get("repositoryMetadata") or {}).get("defaultBranch")
        if not branch:
            raise NotFoundError(f"codecommit: {repo_id} has no default branch")
        return str(branch)

    def resolve_commit(self, repo_id: str, branch: Optional[str] = None) -> Optional[str]:
        branch = branch or self.resolve_default_branch(repo_id)
        data = self._call("get_branch", f"branch {branch}", repositoryName=repo_id, branchName=branch)
        return str(data["branch"]["commitId"])

    def list_directory(self, repo_id: str, path: str, commit: Optional[str]) -> DirectoryListing:
        kwargs: dict[str, Any] = {"repositoryName": repo_id, "folderPath": "/" + path}
        if commit:
            kwargs["commitSpecifier"] = commit
        data = self._call("get_folder", f"folder /{path}", **kwargs)

        entries = []
        for item in data.get("files") or []:
            entries.append(self._entry(item["absolutePath"], EntryKind.FILE, item.get("blobId")))
        for item in data.get("subFolders") or []:
            entries.append(self._entry(item["absolutePath"], EntryKind.DIR, item.get("treeId")))
        for item in data.get("subModules") or []:
            entries.append(self._entry(item["absolutePath"], EntryKind.SUBMODULE, item.get("commitId")))
        for item in data.get("symbolicLinks") or []:
            entries.append(self._entry(item["absolutePath"], EntryKind.SYMLINK, item.get("blobId")))
        return DirectoryListing(entries=tuple(entries))

    def fetch_file_content(self, repo_id: str, path: str, commit: Optional[str]) -> RawFile:
        kwargs: dict[str, Any] = {"repositoryName": repo_id, "filePath": path}
        if commit:
            kwargs["commitSpecifier"] = commit
        data = self._call("get_file", f"file {path}", **kwargs)
        content = data.get("fileContent") or b""
        if isinstance(content, str):
            content = base64.b64decode(content)
        return RawFile(content=content)

    def _entry(self, absolute_path: str, kind: EntryKind, sha: Optional[str]) -> DirectoryEntry:
        path = absolute_path.lstrip("/")
        return DirectoryEntry(name=basename(path), path=path, kind=kind, size=0, sha=sha)
