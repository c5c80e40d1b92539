"""Ordered configuration strategies for building the provider set.

Each strategy inspects GatewaySettings and either returns a
MultiProviderConfig or None when its origin is absent or unusable. The
registry walks them in priority order and keeps the first document it can
actually build, so a broken multi-provider document still falls back to a
plain single-provider configuration.

Priority:
    1. providers_json  - PROVIDERS_JSON document
    2. providers_file  - PROVIDERS_FILE (YAML/JSON) document
    3. combined        - legacy Gitea plus GitHub and/or generic, Gitea default
    4. gitea           - GITEA_URL + GITEA_TOKEN
    5. github          - GITHUB_TOKEN
    6. generic         - API_URL + API_TOKEN (+ PROVIDER)
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

import structlog
from pydantic import ValidationError

from vcs_gateway.config.settings import (
    GatewaySettings,
    MultiProviderConfig,
    ProviderConfig,
    read_providers_file,
)
from vcs_gateway.enums import ProviderKind
from vcs_gateway.exceptions import ConfigurationError

log = structlog.get_logger(__name__)

MISSING_CONFIGURATION_KEYS = (
    "GITEA_URL + GITEA_TOKEN",
    "GITHUB_TOKEN",
    "API_URL + API_TOKEN (+ PROVIDER)",
    "PROVIDERS_JSON",
)


@dataclass(frozen=True)
class ConfigStrategy:
    """A named configuration origin."""

    name: str
    resolve: Callable[[GatewaySettings], MultiProviderConfig | None]


def detect_provider_kind(url: str) -> ProviderKind:
    """Guess the backend kind from an API or remote URL.

    Example:
        >>> detect_provider_kind("https://api.github.com")
        <ProviderKind.GITHUB: 'github'>
        >>> detect_provider_kind("git@github.com:user/repo.git")
        <ProviderKind.GITHUB: 'github'>
        >>> detect_provider_kind("https://gitea.example.com/api/v1")
        <ProviderKind.GITEA: 'gitea'>
    """
    url_lower = url.lower()

    if "github" in url_lower:
        return ProviderKind.GITHUB

    # GitHub Enterprise hosts ("ghe.company.com", "company-ghe.com") and /api/v3
    if "ghe." in url_lower or "-ghe" in url_lower or "/api/v3" in url_lower:
        return ProviderKind.GITHUB

    # Self-hosted instances default to Gitea
    return ProviderKind.GITEA


def _document_from_mapping(data: Any, settings: GatewaySettings, origin: str) -> MultiProviderConfig | None:
    """Validate a raw multi-provider document, skipping bad entries."""
    if not isinstance(data, dict):
        log.warning("provider_document_invalid", origin=origin, reason="not a mapping")
        return None

    entries = data.get("providers")
    if not isinstance(entries, list):
        log.warning("provider_document_invalid", origin=origin, reason="'providers' must be a list")
        return None

    providers: list[ProviderConfig] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            log.warning("provider_entry_skipped", origin=origin, index=index, reason="not a mapping")
            continue
        try:
            providers.append(ProviderConfig.model_validate({**settings.provider_defaults(), **entry}))
        except ValidationError as e:
            log.warning(
                "provider_entry_skipped",
                origin=origin,
                index=index,
                name=entry.get("name"),
                reason=str(e),
            )

    if not providers:
        log.warning("provider_document_empty", origin=origin)
        return None

    default = data.get("defaultProvider", data.get("default_provider"))
    return MultiProviderConfig(default_provider=default, providers=providers)


def _gitea_config(settings: GatewaySettings) -> ProviderConfig:
    assert settings.gitea_url is not None and settings.gitea_token is not None
    return ProviderConfig(
        name="gitea",
        type=ProviderKind.GITEA,
        api_url=settings.gitea_url,
        token=settings.gitea_token,
        username=settings.gitea_username,
        **settings.provider_defaults(),
    )


def _github_config(settings: GatewaySettings) -> ProviderConfig:
    assert settings.github_token is not None
    return ProviderConfig(
        name="github",
        type=ProviderKind.GITHUB,
        api_url=settings.github_url,
        token=settings.github_token,
        **settings.provider_defaults(),
    )


def _generic_config(settings: GatewaySettings, taken: set[str] | None = None) -> ProviderConfig:
    assert settings.api_url is not None and settings.api_token is not None
    kind = settings.provider or detect_provider_kind(settings.api_url)
    name = kind.value
    if taken and name in taken:
        name = "generic"
    return ProviderConfig(
        name=name,
        type=kind,
        api_url=settings.api_url,
        token=settings.api_token,
        **settings.provider_defaults(),
    )


def from_providers_json(settings: GatewaySettings) -> MultiProviderConfig | None:
    if not settings.providers_json:
        return None
    try:
        data = json.loads(settings.providers_json)
    except json.JSONDecodeError as e:
        log.warning("providers_json_invalid", error=str(e))
        return None
    return _document_from_mapping(data, settings, origin="PROVIDERS_JSON")


def from_providers_file(settings: GatewaySettings) -> MultiProviderConfig | None:
    if not settings.providers_file:
        return None
    try:
        data = read_providers_file(settings.providers_file)
    except ConfigurationError as e:
        log.warning("providers_file_invalid", path=settings.providers_file, error=e.message)
        return None
    return _document_from_mapping(data, settings, origin=settings.providers_file)


def combined_legacy(settings: GatewaySettings) -> MultiProviderConfig | None:
    """Gitea alongside GitHub and/or a generic backend, Gitea as default."""
    if not settings.has_gitea or not (settings.has_github or settings.has_generic):
        return None

    providers = [_gitea_config(settings)]
    if settings.has_github:
        providers.append(_github_config(settings))
    if settings.has_generic:
        providers.append(_generic_config(settings, taken={p.name for p in providers}))

    log.info("provider_document_synthesized", providers=[p.name for p in providers])
    return MultiProviderConfig(default_provider="gitea", providers=providers)


def legacy_gitea(settings: GatewaySettings) -> MultiProviderConfig | None:
    if not settings.has_gitea:
        return None
    return MultiProviderConfig(default_provider="gitea", providers=[_gitea_config(settings)])


def legacy_github(settings: GatewaySettings) -> MultiProviderConfig | None:
    if not settings.has_github:
        return None
    return MultiProviderConfig(default_provider="github", providers=[_github_config(settings)])


def generic(settings: GatewaySettings) -> MultiProviderConfig | None:
    if not settings.has_generic:
        return None
    config = _generic_config(settings)
    return MultiProviderConfig(default_provider=config.name, providers=[config])


DEFAULT_STRATEGIES: tuple[ConfigStrategy, ...] = (
    ConfigStrategy("providers_json", from_providers_json),
    ConfigStrategy("providers_file", from_providers_file),
    ConfigStrategy("combined", combined_legacy),
    ConfigStrategy("gitea", legacy_gitea),
    ConfigStrategy("github", legacy_github),
    ConfigStrategy("generic", generic),
)


def iter_configurations(
    settings: GatewaySettings,
    strategies: tuple[ConfigStrategy, ...] = DEFAULT_STRATEGIES,
) -> Iterator[tuple[str, MultiProviderConfig]]:
    """Yield ``(strategy_name, document)`` for every origin that resolves.

    DEFAULT_PROVIDER, when it names a provider in the document, replaces
    the document's own default.
    """
    for strategy in strategies:
        document = strategy.resolve(settings)
        if document is None:
            continue
        if settings.default_provider and settings.default_provider in document.names:
            document = document.model_copy(update={"default_provider": settings.default_provider})
        yield strategy.name, document


def missing_configuration_error() -> ConfigurationError:
    keys = ", ".join(MISSING_CONFIGURATION_KEYS)
    return ConfigurationError(f"No VCS providers configured. Set at least one of: {keys}")
