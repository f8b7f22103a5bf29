"""Provider -> adapter registry.

The resolver never branches on the provider itself; it asks this module
for a ProviderContentClient built for a Source.
"""

from __future__ import annotations

from typing import Callable, Dict, Optional, Sequence

from clients.azure_client import AzureClient
from clients.bitbucket_client import BitbucketClient
from clients.bitbucket_server_client import BitbucketServerClient
from clients.codecommit_client import CodeCommitClient
from clients.credentials import Credential
from clients.github import GitHubClient
from clients.gitlab_client import GitLabClient
from clients.http import HttpOptions
from core.errors import UnsupportedProviderError
from core.interfaces import ProviderContentClient
from core.models import Provider
from core.source import Source, coerce_provider

ClientFactory = Callable[..., ProviderContentClient]

CLIENT_FACTORIES: Dict[Provider, ClientFactory] = {
    Provider.GITHUB: GitHubClient.for_source,
    Provider.GITLAB: GitLabClient.for_source,
    Provider.BITBUCKET: BitbucketClient.for_source,
    Provider.BITBUCKET_SERVER: BitbucketServerClient.for_source,
    Provider.AZURE: AzureClient.for_source,
    Provider.CODECOMMIT: CodeCommitClient.for_source,
}


def client_for_source(
    source: Source,
    credentials: Optional[Sequence[Credential]] = None,
    options: Optional[HttpOptions] = None,
) -> ProviderContentClient:
    factory = CLIENT_FACTORIES.get(coerce_provider(source.provider))
    if factory is None:
        raise UnsupportedProviderError(source.provider)
    return factory(source=source, credentials=credentials, options=options)


def client_for_provider(
    provider: object,
    credentials: Optional[Sequence[Credential]] = None,
    options: Optional[HttpOptions] = None,
) -> ProviderContentClient:
    """Client for a provider's default host, e.g. the target of a submodule."""
    # the repo id is only a placeholder; clients are per host, not per repo
    return client_for_source(Source(provider=coerce_provider(provider), repo="_/_"), credentials, options)
