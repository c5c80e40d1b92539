"""Provider registry: creates, caches and hands out provider instances.

The registry is an explicit value passed to whatever needs providers; there
is no module-level instance. Its state (provider map plus default pointer)
is a single immutable snapshot replaced under a lock, so concurrent readers
always see a consistent pair even while another thread reconfigures.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from vcs_gateway.config.settings import GatewaySettings, MultiProviderConfig, ProviderConfig, load_settings
from vcs_gateway.config.strategies import DEFAULT_STRATEGIES, ConfigStrategy, iter_configurations, missing_configuration_error
from vcs_gateway.enums import ProviderKind
from vcs_gateway.exceptions import ConfigurationError, NoProviderConfiguredError, ProviderNotFoundError
from vcs_gateway.providers.base import VcsOperations
from vcs_gateway.providers.gitea_rest import GiteaRestProvider
from vcs_gateway.providers.github_rest import GitHubRestProvider
from vcs_gateway.providers.rest_base import BaseRestProvider

log = structlog.get_logger(__name__)

PROVIDER_CLASSES: dict[ProviderKind, type[BaseRestProvider]] = {
    ProviderKind.GITEA: GiteaRestProvider,
    ProviderKind.GITHUB: GitHubRestProvider,
}


@dataclass(frozen=True)
class ProviderDescriptor:
    """Diagnostic view of one registered provider."""

    name: str
    type: ProviderKind
    is_default: bool

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "type": self.type.value, "isDefault": self.is_default}


@dataclass(frozen=True)
class _Snapshot:
    providers: Mapping[str, VcsOperations] = field(default_factory=dict)
    default: str | None = None


def _first(providers: Mapping[str, VcsOperations]) -> str | None:
    return next(iter(providers), None)


class ProviderRegistry:
    """Named provider instances with one marked default.

    Args:
        transport: Optional httpx transport handed to every provider built
            by this registry (used by tests to stub the network)

    Example:
        >>> registry = ProviderRegistry.from_settings()
        >>> provider = registry.get_default_provider()
        >>> repo = await provider.get_repository("octocat", "hello-world")
    """

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._lock = threading.Lock()
        self._state = _Snapshot()
        self._transport = transport
        # displaced providers awaiting close_retired()
        self._retired: list[VcsOperations] = []

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def from_settings(
        cls,
        settings: GatewaySettings | None = None,
        *,
        strategies: tuple[ConfigStrategy, ...] = DEFAULT_STRATEGIES,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> ProviderRegistry:
        """Build a registry from the first configuration strategy that works.

        Strategies are tried in priority order. A strategy whose document
        cannot produce a single provider is logged and skipped, so a broken
        PROVIDERS_JSON still falls back to plain GITEA_* or GITHUB_* keys.

        Raises:
            ConfigurationError: If no strategy yields a usable document
        """
        settings = settings or load_settings()
        registry = cls(transport=transport)

        for strategy_name, document in iter_configurations(settings, strategies):
            try:
                registry.reconfigure(document)
            except ConfigurationError as e:
                log.warning("provider_strategy_failed", strategy=strategy_name, error=e.message)
                continue

            log.info(
                "providers_configured",
                strategy=strategy_name,
                providers=registry.names,
                default=registry.default_name,
            )
            return registry

        raise missing_configuration_error()

    def _build(self, config: ProviderConfig | Mapping[str, Any]) -> BaseRestProvider:
        if not isinstance(config, ProviderConfig):
            try:
                config = ProviderConfig.model_validate(dict(config))
            except ValidationError as e:
                raise ConfigurationError(f"Invalid provider configuration: {e}") from e

        if not config.api_url.strip():
            raise ConfigurationError(f"Provider '{config.name}' requires an API URL")
        if not config.token.get_secret_value().strip():
            raise ConfigurationError(f"Provider '{config.name}' requires a token")

        provider_class = PROVIDER_CLASSES.get(config.type)
        if provider_class is None:
            raise ConfigurationError(f"Unsupported provider type: {config.type}")

        return provider_class(config, transport=self._transport)

    def create_provider(self, config: ProviderConfig | Mapping[str, Any]) -> VcsOperations:
        """Instantiate a provider and register it under ``config.name``.

        The first provider registered becomes the default. Registering an
        existing name replaces the previous instance, which is closed by
        ``close_retired`` or ``aclose``.

        Args:
            config: ProviderConfig, or a mapping accepted by it
                (``{"name", "type", "apiUrl", "token", "username"}``)

        Returns:
            The registered provider

        Raises:
            ConfigurationError: Empty URL or token, or unknown type
        """
        provider = self._build(config)
        with self._lock:
            state = self._state
            replaced = state.providers.get(provider.name)
            providers = {**state.providers, provider.name: provider}
            default = state.default if state.default in providers else provider.name
            self._state = _Snapshot(providers, default)
            if replaced is not None:
                self._retired.append(replaced)

        log.info("provider_registered", name=provider.name, type=provider.kind.value, api_url=provider.api_url)
        return provider

    def reconfigure(self, document: MultiProviderConfig) -> list[VcsOperations]:
        """Replace every registered provider with the ones in ``document``.

        The new set is built off to the side and swapped in at once. Entries
        that fail to build are skipped with a warning.

        Returns:
            The displaced providers, for the caller to ``aclose``

        Raises:
            ConfigurationError: If no entry of the document could be built
        """
        providers: dict[str, VcsOperations] = {}
        for config in document.providers:
            try:
                providers[config.name] = self._build(config)
            except ConfigurationError as e:
                log.warning("provider_entry_failed", name=config.name, error=e.message)

        if not providers:
            raise ConfigurationError("No provider in the configuration could be created")

        default = document.default_provider if document.default_provider in providers else _first(providers)

        with self._lock:
            previous = self._state
            self._state = _Snapshot(providers, default)

        return [p for name, p in previous.providers.items() if providers.get(name) is not p]

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def get_provider(self, name: str) -> VcsOperations | None:
        return self._state.providers.get(name)

    def get_default_provider(self) -> VcsOperations:
        """Return the default provider.

        A default pointer left stale by removal falls back to the first
        registered provider.

        Raises:
            NoProviderConfiguredError: If nothing is registered
        """
        state = self._state
        if not state.providers:
            raise NoProviderConfiguredError()
        if state.default in state.providers:
            return state.providers[state.default]
        return next(iter(state.providers.values()))

    def require_provider(self, name: str | None = None) -> VcsOperations:
        """Look up ``name``, or the default when no name is given.

        Raises:
            ProviderNotFoundError: If ``name`` is not registered
            NoProviderConfiguredError: If no name is given and nothing is registered
        """
        if name is None:
            return self.get_default_provider()
        provider = self.get_provider(name)
        if provider is None:
            raise ProviderNotFoundError(name)
        return provider

    def set_default_provider(self, name: str) -> None:
        with self._lock:
            state = self._state
            if name not in state.providers:
                raise ProviderNotFoundError(name)
            self._state = _Snapshot(state.providers, name)
        log.info("default_provider_changed", name=name)

    def list_providers(self) -> list[ProviderDescriptor]:
        state = self._state
        default = state.default if state.default in state.providers else _first(state.providers)
        return [
            ProviderDescriptor(name=name, type=provider.get_config().type, is_default=name == default)
            for name, provider in state.providers.items()
        ]

    def has_provider(self, name: str) -> bool:
        return name in self._state.providers

    @property
    def names(self) -> list[str]:
        return list(self._state.providers)

    @property
    def default_name(self) -> str | None:
        state = self._state
        return state.default if state.default in state.providers else _first(state.providers)

    def __len__(self) -> int:
        return len(self._state.providers)

    # -------------------------------------------------------------------------
    # Removal and shutdown
    # -------------------------------------------------------------------------

    def remove_provider(self, name: str) -> bool:
        """Unregister a provider; the default moves to the first remaining one."""
        with self._lock:
            state = self._state
            if name not in state.providers:
                return False
            providers = {key: value for key, value in state.providers.items() if key != name}
            default = state.default if state.default in providers else _first(providers)
            self._state = _Snapshot(providers, default)
            self._retired.append(state.providers[name])

        log.info("provider_removed", name=name)
        return True

    def clear(self) -> None:
        with self._lock:
            self._retired.extend(self._state.providers.values())
            self._state = _Snapshot()

    async def close_retired(self) -> int:
        """Close providers displaced by replacement, removal or clear.

        Returns:
            Number of providers closed
        """
        with self._lock:
            retired, self._retired = self._retired, []

        for provider in retired:
            await provider.aclose()
        return len(retired)

    async def aclose(self) -> None:
        """Close every provider's HTTP client and empty the registry."""
        with self._lock:
            state = self._state
            self._state = _Snapshot()

        for provider in state.providers.values():
            await provider.aclose()
        await self.close_retired()
