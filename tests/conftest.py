"""Pytest configuration and shared fixtures."""

import logging
from collections.abc import Callable, Iterator
from typing import Any

import httpx
import pytest
import structlog

from vcs_gateway.config.settings import ProviderConfig

CONFIG_ENV_VARS = (
    "GITEA_URL",
    "GITEA_TOKEN",
    "GITEA_USERNAME",
    "GITHUB_TOKEN",
    "GITHUB_URL",
    "PROVIDER",
    "API_URL",
    "API_TOKEN",
    "DEFAULT_PROVIDER",
    "PROVIDERS_JSON",
    "PROVIDERS_FILE",
    "DEBUG",
    "TIMEOUT",
    "MAX_RETRIES",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove provider configuration inherited from the host environment."""
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def quiet_logging() -> Iterator[None]:
    """Drop log output so it never mixes with command output."""
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(logging.CRITICAL),
        cache_logger_on_first_use=False,
    )
    yield
    structlog.reset_defaults()


class MockApi:
    """Route table behind an httpx.MockTransport.

    Routes are keyed by (method, path). A route is either a static
    ``(status, json_body, headers)`` response or a callable receiving the
    request. Unrouted requests answer 404.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Any] = {}
        self.requests: list[httpx.Request] = []

    def add(
        self,
        method: str,
        path: str,
        json: Any = None,
        status: int = 200,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.routes[(method.upper(), path)] = (status, json, headers or {})

    def add_handler(self, method: str, path: str, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.routes[(method.upper(), path)] = handler

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"message": "Not Found"})
        if callable(route):
            return route(request)
        status, body, headers = route
        if body is None:
            return httpx.Response(status, headers=headers)
        return httpx.Response(status, json=body, headers=headers)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def last(self, method: str | None = None) -> httpx.Request:
        for request in reversed(self.requests):
            if method is None or request.method == method.upper():
                return request
        raise AssertionError(f"no {method or 'any'} request recorded")


@pytest.fixture
def mock_api() -> MockApi:
    return MockApi()


@pytest.fixture
def gitea_config() -> ProviderConfig:
    return ProviderConfig(
        name="gitea",
        type="gitea",
        api_url="https://gitea.example.com",
        token="gitea-token",
    )


@pytest.fixture
def github_config() -> ProviderConfig:
    return ProviderConfig(
        name="github",
        type="github",
        api_url="https://api.github.com",
        token="github-token",
    )
