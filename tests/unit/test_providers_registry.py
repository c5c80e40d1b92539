"""Tests for vcs_gateway/providers/registry.py - provider registry."""

import json
import threading
from unittest.mock import AsyncMock

import pytest

from vcs_gateway.config.settings import MultiProviderConfig, ProviderConfig, load_settings
from vcs_gateway.enums import ProviderKind
from vcs_gateway.exceptions import ConfigurationError, NoProviderConfiguredError, ProviderNotFoundError
from vcs_gateway.providers.gitea_rest import GiteaRestProvider
from vcs_gateway.providers.github_rest import GitHubRestProvider
from vcs_gateway.providers.registry import ProviderDescriptor, ProviderRegistry


def _gitea(name: str = "gitea", **overrides) -> ProviderConfig:
    values = {"name": name, "type": "gitea", "api_url": "http://gitea:3000", "token": "t", **overrides}
    return ProviderConfig(**values)


def _github(name: str = "github", **overrides) -> ProviderConfig:
    values = {"name": name, "type": "github", "api_url": "https://api.github.com", "token": "g", **overrides}
    return ProviderConfig(**values)


# =============================================================================
# create_provider and lookups
# =============================================================================


class TestProviderRegistry:
    """Tests for registration and lookup."""

    def test_first_provider_becomes_default(self):
        """Test the first registered provider is the default."""
        registry = ProviderRegistry()

        registry.create_provider(_gitea())
        registry.create_provider(_github())

        assert registry.default_name == "gitea"
        assert isinstance(registry.get_default_provider(), GiteaRestProvider)

    def test_lookup_returns_cached_instance(self):
        """Test lookups return the same instance every time."""
        registry = ProviderRegistry()
        created = registry.create_provider(_github())

        assert registry.get_provider("github") is created
        assert registry.get_provider("github") is registry.get_provider("github")
        assert registry.require_provider("github") is created

    def test_create_from_mapping(self):
        """Test provider definitions may be plain camelCase mappings."""
        registry = ProviderRegistry()

        provider = registry.create_provider(
            {"name": "ghe", "type": "github", "apiUrl": "https://ghe.corp/api/v3", "token": "x"}
        )

        assert isinstance(provider, GitHubRestProvider)
        assert provider.api_url == "https://ghe.corp/api/v3"

    def test_reregistering_replaces(self):
        """Test registering an existing name replaces the instance."""
        registry = ProviderRegistry()
        first = registry.create_provider(_gitea())
        second = registry.create_provider(_gitea(api_url="http://other:3000"))

        assert registry.get_provider("gitea") is second
        assert second is not first
        assert len(registry) == 1

    @pytest.mark.parametrize(
        "config,message",
        [
            (_gitea(api_url="  "), "requires an API URL"),
            (_gitea(token=""), "requires a token"),
        ],
    )
    def test_empty_url_or_token_rejected(self, config, message):
        """Test empty URL or token raises ConfigurationError."""
        registry = ProviderRegistry()

        with pytest.raises(ConfigurationError, match=message):
            registry.create_provider(config)

        assert len(registry) == 0

    def test_unknown_type_rejected(self):
        """Test an unknown provider type raises ConfigurationError."""
        with pytest.raises(ConfigurationError, match="Invalid provider configuration"):
            ProviderRegistry().create_provider({"name": "x", "type": "gitlab", "apiUrl": "u", "token": "t"})

    def test_get_missing_provider_is_none(self):
        """Test lookup of an unknown name returns None."""
        assert ProviderRegistry().get_provider("nope") is None

    def test_require_missing_provider_raises(self):
        """Test require_provider raises for unknown names."""
        registry = ProviderRegistry()
        registry.create_provider(_gitea())

        with pytest.raises(ProviderNotFoundError):
            registry.require_provider("nope")

    def test_default_on_empty_registry_raises(self):
        """Test an empty registry has no default."""
        with pytest.raises(NoProviderConfiguredError):
            ProviderRegistry().get_default_provider()

    def test_set_default_provider(self):
        """Test the default can be changed to a registered name only."""
        registry = ProviderRegistry()
        registry.create_provider(_gitea())
        registry.create_provider(_github())

        registry.set_default_provider("github")

        assert registry.default_name == "github"
        with pytest.raises(ProviderNotFoundError):
            registry.set_default_provider("missing")
        assert registry.default_name == "github"

    def test_list_providers_marks_one_default(self):
        """Test descriptors flag exactly one default."""
        registry = ProviderRegistry()
        registry.create_provider(_gitea())
        registry.create_provider(_github())

        descriptors = registry.list_providers()

        assert descriptors == [
            ProviderDescriptor("gitea", ProviderKind.GITEA, True),
            ProviderDescriptor("github", ProviderKind.GITHUB, False),
        ]
        assert descriptors[0].to_dict() == {"name": "gitea", "type": "gitea", "isDefault": True}

    def test_remove_default_moves_default(self):
        """Test removing the default promotes the first remaining provider."""
        registry = ProviderRegistry()
        registry.create_provider(_gitea())
        registry.create_provider(_github())

        assert registry.remove_provider("gitea") is True
        assert registry.remove_provider("gitea") is False
        assert registry.default_name == "github"
        assert registry.has_provider("gitea") is False

    def test_clear(self):
        """Test clear empties the registry."""
        registry = ProviderRegistry()
        registry.create_provider(_gitea())

        registry.clear()

        assert len(registry) == 0
        assert registry.default_name is None

    @pytest.mark.asyncio
    async def test_aclose_empties_registry(self):
        """Test aclose closes providers and empties the registry."""
        registry = ProviderRegistry()
        provider = registry.create_provider(_gitea())
        await provider.client.pool.initialize()

        await registry.aclose()

        assert len(registry) == 0
        assert provider.client.pool.is_initialized is False

    @pytest.mark.asyncio
    async def test_replaced_provider_is_closed(self):
        """Test a provider displaced by re-registration is closed."""
        registry = ProviderRegistry()
        first = registry.create_provider(_gitea())
        await first.client.pool.initialize()
        second = registry.create_provider(_gitea(api_url="http://other:3000"))

        assert await registry.close_retired() == 1
        assert first.client.pool.is_initialized is False
        assert registry.get_provider("gitea") is second
        assert await registry.close_retired() == 0

    @pytest.mark.asyncio
    async def test_aclose_closes_displaced_providers(self):
        """Test aclose also closes removed and replaced providers."""
        registry = ProviderRegistry()
        replaced = registry.create_provider(_gitea())
        registry.create_provider(_gitea())
        removed = registry.create_provider(_github())
        replaced.aclose = AsyncMock()
        removed.aclose = AsyncMock()
        registry.remove_provider("github")

        await registry.aclose()

        replaced.aclose.assert_awaited_once()
        removed.aclose.assert_awaited_once()


# =============================================================================
# reconfigure
# =============================================================================


class TestReconfigure:
    """Tests for atomic reconfiguration."""

    def test_swaps_whole_set(self):
        """Test reconfigure replaces every provider and the default."""
        registry = ProviderRegistry()
        old = registry.create_provider(_gitea())

        displaced = registry.reconfigure(
            MultiProviderConfig(default_provider="backup", providers=[_github(), _gitea("backup")])
        )

        assert registry.names == ["github", "backup"]
        assert registry.default_name == "backup"
        assert displaced == [old]

    def test_missing_default_falls_back_to_first(self):
        """Test an unknown default name selects the first provider."""
        registry = ProviderRegistry()

        registry.reconfigure(MultiProviderConfig(default_provider="nope", providers=[_github(), _gitea()]))

        assert registry.default_name == "github"

    def test_bad_entries_skipped(self):
        """Test entries that cannot be built are skipped."""
        registry = ProviderRegistry()

        registry.reconfigure(MultiProviderConfig(providers=[_gitea(token=""), _github()]))

        assert registry.names == ["github"]

    def test_nothing_buildable_keeps_previous_state(self):
        """Test a document with no usable entry leaves the registry intact."""
        registry = ProviderRegistry()
        registry.create_provider(_gitea())

        with pytest.raises(ConfigurationError):
            registry.reconfigure(MultiProviderConfig(providers=[_github(token="")]))

        assert registry.names == ["gitea"]

    def test_concurrent_readers_see_consistent_state(self):
        """Test readers never observe a default outside the provider map."""
        registry = ProviderRegistry()
        registry.create_provider(_gitea())
        documents = [
            MultiProviderConfig(default_provider="a", providers=[_gitea("a"), _github("b")]),
            MultiProviderConfig(default_provider="c", providers=[_github("c")]),
        ]
        stop = threading.Event()
        failures: list[str] = []

        def reader():
            while not stop.is_set():
                provider = registry.get_default_provider()
                if provider.name not in ("gitea", "a", "c"):
                    failures.append(provider.name)

        threads = [threading.Thread(target=reader) for _ in range(4)]
        for thread in threads:
            thread.start()
        for i in range(200):
            registry.reconfigure(documents[i % 2])
        stop.set()
        for thread in threads:
            thread.join()

        assert failures == []


# =============================================================================
# from_settings
# =============================================================================


class TestFromSettings:
    """Tests for building a registry from the environment."""

    def test_gitea_only(self, monkeypatch):
        """Test GITEA_URL + GITEA_TOKEN builds a single Gitea default."""
        monkeypatch.setenv("GITEA_URL", "http://x:3000")
        monkeypatch.setenv("GITEA_TOKEN", "t")

        registry = ProviderRegistry.from_settings(load_settings())

        assert registry.get_default_provider().get_config().type == ProviderKind.GITEA
        assert registry.get_default_provider().api_url == "http://x:3000/api/v1"

    def test_gitea_and_github(self, monkeypatch):
        """Test both legacy configurations combine with Gitea as default."""
        monkeypatch.setenv("GITEA_URL", "http://x:3000")
        monkeypatch.setenv("GITEA_TOKEN", "t")
        monkeypatch.setenv("GITHUB_TOKEN", "g")

        registry = ProviderRegistry.from_settings(load_settings())
        descriptors = registry.list_providers()

        assert len(descriptors) == 2
        assert [d.name for d in descriptors if d.is_default] == ["gitea"]

    def test_github_only(self, monkeypatch):
        """Test GITHUB_TOKEN alone uses the public API."""
        monkeypatch.setenv("GITHUB_TOKEN", "g")

        registry = ProviderRegistry.from_settings(load_settings())

        assert registry.names == ["github"]
        assert registry.get_default_provider().api_url == "https://api.github.com"

    def test_generic_detects_kind(self, monkeypatch):
        """Test API_URL + API_TOKEN detects the backend from the URL."""
        monkeypatch.setenv("API_URL", "https://ghe.corp.com/api/v3")
        monkeypatch.setenv("API_TOKEN", "x")

        registry = ProviderRegistry.from_settings(load_settings())

        assert registry.names == ["github"]

    def test_generic_explicit_provider(self, monkeypatch):
        """Test PROVIDER overrides detection."""
        monkeypatch.setenv("API_URL", "https://code.example.com")
        monkeypatch.setenv("API_TOKEN", "x")
        monkeypatch.setenv("PROVIDER", "github")

        registry = ProviderRegistry.from_settings(load_settings())

        assert isinstance(registry.get_default_provider(), GitHubRestProvider)

    def test_providers_json(self, monkeypatch):
        """Test PROVIDERS_JSON takes precedence over legacy keys."""
        monkeypatch.setenv("GITEA_URL", "http://legacy:3000")
        monkeypatch.setenv("GITEA_TOKEN", "t")
        monkeypatch.setenv(
            "PROVIDERS_JSON",
            json.dumps(
                {
                    "defaultProvider": "hub",
                    "providers": [
                        {"name": "tea", "type": "gitea", "apiUrl": "http://tea:3000", "token": "a"},
                        {"name": "hub", "type": "github", "apiUrl": "https://api.github.com", "token": "b"},
                    ],
                }
            ),
        )

        registry = ProviderRegistry.from_settings(load_settings())

        assert registry.names == ["tea", "hub"]
        assert registry.default_name == "hub"

    def test_malformed_providers_json_falls_back(self, monkeypatch):
        """Test unparseable PROVIDERS_JSON falls back to legacy keys."""
        monkeypatch.setenv("PROVIDERS_JSON", "{not json")
        monkeypatch.setenv("GITHUB_TOKEN", "g")

        registry = ProviderRegistry.from_settings(load_settings())

        assert registry.names == ["github"]

    def test_unbuildable_providers_json_falls_back(self, monkeypatch):
        """Test a document whose entries all fail still falls back."""
        monkeypatch.setenv(
            "PROVIDERS_JSON",
            json.dumps({"providers": [{"name": "x", "type": "gitea", "apiUrl": "", "token": "t"}]}),
        )
        monkeypatch.setenv("GITEA_URL", "http://x:3000")
        monkeypatch.setenv("GITEA_TOKEN", "t")

        registry = ProviderRegistry.from_settings(load_settings())

        assert registry.names == ["gitea"]

    def test_default_provider_override(self, monkeypatch):
        """Test DEFAULT_PROVIDER picks the default among configured names."""
        monkeypatch.setenv("GITEA_URL", "http://x:3000")
        monkeypatch.setenv("GITEA_TOKEN", "t")
        monkeypatch.setenv("GITHUB_TOKEN", "g")
        monkeypatch.setenv("DEFAULT_PROVIDER", "github")

        registry = ProviderRegistry.from_settings(load_settings())

        assert registry.default_name == "github"

    def test_nothing_configured(self):
        """Test an empty environment raises with the accepted keys."""
        with pytest.raises(ConfigurationError) as exc_info:
            ProviderRegistry.from_settings(load_settings())

        assert "No VCS providers configured" in exc_info.value.message
        assert "GITHUB_TOKEN" in exc_info.value.message

    def test_environment_defaults_flow_into_providers(self, monkeypatch):
        """Test TIMEOUT and MAX_RETRIES apply to synthesized providers."""
        monkeypatch.setenv("GITHUB_TOKEN", "g")
        monkeypatch.setenv("TIMEOUT", "5000")
        monkeypatch.setenv("MAX_RETRIES", "2")

        registry = ProviderRegistry.from_settings(load_settings())
        config = registry.get_default_provider().get_config()

        assert config.timeout_seconds == 5.0
        assert config.max_retries == 2
