"""Remote VCS providers.

Key Components:
    - VcsOperations: The operation contract every backend implements
    - BaseRestProvider: Shared REST plumbing and generic operations
    - GiteaRestProvider: Gitea REST API (``/api/v1``)
    - GitHubRestProvider: GitHub and GitHub Enterprise REST API
    - ProviderRegistry: Creates, caches and serves providers by name
    - normalize_error: Maps any request failure to a StandardError

Example:
    >>> from vcs_gateway.providers import ProviderRegistry
    >>> registry = ProviderRegistry()
    >>> registry.create_provider(
    ...     {"name": "work", "type": "gitea", "apiUrl": "https://git.example.com", "token": "..."}
    ... )
    >>> issues = await registry.get_default_provider().list_issues("team", "service")
"""

from vcs_gateway.providers.base import VcsOperations
from vcs_gateway.providers.errors import is_error_type, is_retryable_error, normalize_error
from vcs_gateway.providers.gitea_rest import GiteaRestProvider
from vcs_gateway.providers.github_rest import GitHubRestProvider
from vcs_gateway.providers.registry import ProviderDescriptor, ProviderRegistry
from vcs_gateway.providers.rest_base import BaseRestProvider

__all__ = [
    "BaseRestProvider",
    "GiteaRestProvider",
    "GitHubRestProvider",
    "ProviderDescriptor",
    "ProviderRegistry",
    "VcsOperations",
    "is_error_type",
    "is_retryable_error",
    "normalize_error",
]
