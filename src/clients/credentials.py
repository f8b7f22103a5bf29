"""Credential selection for provider clients.

Credentials are an ordered list of plain dictionaries, e.g.
``{"type": "git_source", "host": "github.com", "username": "x-access-token",
"password": "<token>"}``. They are passed through untouched; the only thing
inspected here is which entry belongs to a given host.
"""

from __future__ import annotations

import os
from typing import Dict, List, Mapping, Optional, Sequence

Credential = Mapping[str, str]


def credential_for_host(credentials: Optional[Sequence[Credential]], host: Optional[str]) -> Optional[Credential]:
    """First git_source credential whose host (or region) matches `host`."""
    if not host:
        return None
    for cred in credentials or ():
        if cred.get("type", "git_source") != "git_source":
            continue
        if cred.get("host") == host or cred.get("region") == host:
            return cred
    return None


def credentials_from_env() -> List[Dict[str, str]]:
    """Build the credentials list from the usual token environment variables."""
    out: List[Dict[str, str]] = []

    def _add(host: str, username: str, password: Optional[str], **extra: str) -> None:
        if password and password.strip():
            out.append({"type": "git_source", "host": host, "username": username, "password": password.strip(), **extra})

    _add("github.com", "x-access-token", os.environ.get("GITHUB_TOKEN"))
    _add("gitlab.com", "x-access-token", os.environ.get("GITLAB_TOKEN"))
    _add("bitbucket.org", "x-token-auth", os.environ.get("BITBUCKET_TOKEN"))
    _add(
        os.environ.get("BITBUCKET_SERVER_HOST", "bitbucket.com"),
        os.environ.get("BITBUCKET_SERVER_USERNAME", ""),
        os.environ.get("BITBUCKET_SERVER_PASSWORD"),
    )
    _add("dev.azure.com", "x-access-token", os.environ.get("AZURE_DEVOPS_TOKEN"))

    region = os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION") or "us-east-1"
    _add(region, os.environ.get("AWS_ACCESS_KEY_ID", ""), os.environ.get("AWS_SECRET_ACCESS_KEY"), region=region)
    return out
