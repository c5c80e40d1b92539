"""
Configuration system using Pydantic for type-safe settings management.

GatewaySettings reads the process environment (GITEA_URL, GITHUB_TOKEN,
PROVIDERS_JSON, ...). ProviderConfig and MultiProviderConfig describe the
providers the registry builds; they accept both snake_case and the
camelCase keys used in PROVIDERS_JSON documents.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from vcs_gateway.enums import ProviderKind
from vcs_gateway.exceptions import ConfigurationError

GITHUB_API_URL = "https://api.github.com"
DEFAULT_TIMEOUT_MS = 30000


class ProviderConfig(BaseModel):
    """Configuration of one provider instance.

    Emptiness of ``api_url`` and ``token`` is checked by the registry when
    the provider is created, so that a half-filled entry fails with a
    ConfigurationError rather than a validation error.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str = Field(..., description="Registry key for this provider")
    type: ProviderKind = Field(..., description="Backend kind")
    api_url: str = Field(..., alias="apiUrl", description="REST API base URL")
    token: SecretStr = Field(..., description="API token")
    username: str | None = Field(default=None, description="Default user for user-scoped listings")
    timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, alias="timeoutMs", gt=0, description="Request timeout (ms)")
    debug: bool = Field(default=False, description="Log every request and response")
    max_retries: int = Field(default=0, alias="maxRetries", ge=0, description="Retries for retryable failures")

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0


class MultiProviderConfig(BaseModel):
    """A set of providers with one marked default."""

    model_config = ConfigDict(populate_by_name=True)

    default_provider: str | None = Field(default=None, alias="defaultProvider")
    providers: list[ProviderConfig] = Field(default_factory=list)

    @property
    def names(self) -> list[str]:
        return [provider.name for provider in self.providers]


class GatewaySettings(BaseSettings):
    """Environment-backed settings.

    Every field maps to the upper-case environment variable of the same
    name (``gitea_url`` <- ``GITEA_URL``). Empty variables count as unset.
    """

    model_config = SettingsConfigDict(
        case_sensitive=False,
        extra="ignore",
    )

    gitea_url: str | None = None
    gitea_token: SecretStr | None = None
    gitea_username: str | None = None

    github_token: SecretStr | None = None
    github_url: str = GITHUB_API_URL

    provider: ProviderKind | None = None
    api_url: str | None = None
    api_token: SecretStr | None = None

    default_provider: str | None = None
    providers_json: str | None = None
    providers_file: str | None = None

    debug: bool = False
    timeout: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0, description="Per-request HTTP timeout (ms)")
    max_retries: int = Field(default=0, ge=0)
    log_level: str = "INFO"

    @field_validator(
        "gitea_url",
        "gitea_token",
        "gitea_username",
        "github_token",
        "provider",
        "api_url",
        "api_token",
        "default_provider",
        "providers_json",
        "providers_file",
        mode="before",
    )
    @classmethod
    def _blank_as_unset(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("github_url", mode="before")
    @classmethod
    def _default_github_url(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return GITHUB_API_URL
        return value

    @property
    def has_gitea(self) -> bool:
        return bool(self.gitea_url and self.gitea_token)

    @property
    def has_github(self) -> bool:
        return self.github_token is not None

    @property
    def has_generic(self) -> bool:
        return bool(self.api_url and self.api_token)

    @property
    def has_multi_provider(self) -> bool:
        return bool(self.providers_json or self.providers_file)

    def provider_defaults(self) -> dict[str, Any]:
        """Per-provider settings inherited from the process environment."""
        return {
            "timeout_ms": self.timeout,
            "debug": self.debug,
            "max_retries": self.max_retries,
        }


def load_settings(**overrides: Any) -> GatewaySettings:
    """Load settings from the environment.

    Args:
        **overrides: Field values taking precedence over the environment

    Returns:
        GatewaySettings instance

    Raises:
        ConfigurationError: If an environment value fails validation
    """
    try:
        return GatewaySettings(**overrides)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def read_providers_file(config_path: str) -> dict[str, Any]:
    """Load a multi-provider document from a YAML (or JSON) file.

    Supports ${VAR_NAME} and ${VAR_NAME:-default} substitution so tokens
    can stay in the environment.

    Args:
        config_path: Path to the providers file

    Returns:
        The parsed document

    Raises:
        ConfigurationError: If the file is missing, unreadable or malformed
    """
    config_file = Path(config_path)
    if not config_file.exists():
        raise ConfigurationError(f"Providers file not found: {config_path}")

    try:
        with open(config_file) as f:
            content = f.read()
    except OSError as e:
        raise ConfigurationError(f"Cannot read providers file: {config_path}") from e

    try:
        content = _interpolate_env_vars(content)
    except ValueError as e:
        raise ConfigurationError(f"Invalid environment variable reference in providers file: {e}") from e

    try:
        # JSON is a subset of YAML, so one parser covers both formats
        document = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML syntax in {config_path}: {e}") from e

    if not isinstance(document, dict):
        raise ConfigurationError("Providers file must contain a mapping, not a list or scalar")
    return document


def _interpolate_env_vars(content: str) -> str:
    """Interpolate ${VAR_NAME} placeholders with environment variables.

    Supports two syntaxes:
    - ${VAR_NAME} - Required environment variable (raises if not set)
    - ${VAR_NAME:-default} - Optional with default value

    YAML comment lines are left untouched.

    Raises:
        ValueError: If a required environment variable is not set
    """
    pattern = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")

    def replace_var(match: re.Match[str]) -> str:
        var_name = match.group(1)
        default_value = match.group(2)
        value = os.getenv(var_name)

        if value is not None:
            return value
        elif default_value is not None:
            return default_value
        else:
            raise ValueError(f"Environment variable {var_name} is not set")

    def process_line(line: str) -> str:
        if line.lstrip().startswith("#"):
            return line
        return pattern.sub(replace_var, line)

    return "\n".join(process_line(line) for line in content.split("\n"))
