"""Configuration for the provider registry.

Key Components:
    - GatewaySettings: Environment-backed settings (GITEA_URL, PROVIDERS_JSON, ...)
    - ProviderConfig: One provider definition
    - MultiProviderConfig: A provider set with one default
    - iter_configurations: Ordered configuration strategies

Example:
    >>> from vcs_gateway.config import load_settings
    >>> settings = load_settings()
    >>> settings.has_gitea
    True
"""

from vcs_gateway.config.settings import (
    GatewaySettings,
    MultiProviderConfig,
    ProviderConfig,
    load_settings,
)
from vcs_gateway.config.strategies import detect_provider_kind, iter_configurations

__all__ = [
    "GatewaySettings",
    "MultiProviderConfig",
    "ProviderConfig",
    "detect_provider_kind",
    "iter_configurations",
    "load_settings",
]
