"""Custom exception hierarchy for vcs-gateway.

Exception Hierarchy:
    VcsGatewayError (base)
    ├── ConfigurationError
    │   └── NoProviderConfiguredError
    ├── ProviderNotFoundError
    ├── ProviderRequestError
    └── GitExecutionError
        ├── GitSpawnError
        ├── WorkingCopyNotFoundError
        └── InvalidIntentError

Remote failures are normalized exactly once, at the provider boundary, and
surface as ProviderRequestError. A git command that runs and exits non-zero
is not an exception at all; only failures to start git are raised as
GitExecutionError subclasses.

Example Usage:
    >>> from vcs_gateway.exceptions import ProviderRequestError
    >>> try:
    ...     await provider.get_repository("octocat", "missing")
    ... except ProviderRequestError as e:
    ...     if e.code == ErrorCode.NOT_FOUND:
    ...         ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from vcs_gateway.enums import ErrorCode
    from vcs_gateway.models.domain import StandardError


class VcsGatewayError(Exception):
    """Base exception for all vcs-gateway errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        """Initialize exception.

        Args:
            message: Error message
        """
        self.message = message
        super().__init__(message)


class ConfigurationError(VcsGatewayError):
    """Configuration-related errors.

    Examples:
        - No provider origin resolved from the environment
        - Empty API URL or token in a provider definition
        - Unknown provider type
        - Malformed PROVIDERS_JSON or providers file
    """

    pass


class NoProviderConfiguredError(ConfigurationError):
    """The registry holds no providers, so there is no default to return."""

    def __init__(self, message: str = "No providers configured") -> None:
        super().__init__(message)


class ProviderNotFoundError(VcsGatewayError):
    """A provider name was referenced that is not registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Provider '{name}' not found")


class ProviderRequestError(VcsGatewayError):
    """A remote operation failed.

    Wraps the normalized StandardError. The message always embeds the
    normalized code, e.g. ``[NOT_FOUND] gitea: Not found - ...``.

    Attributes:
        error: The normalized StandardError record
    """

    def __init__(self, error: StandardError) -> None:
        """Initialize exception.

        Args:
            error: Normalized error record
        """
        self.error = error
        super().__init__(f"[{error.code.value}] {error.message}")

    @property
    def code(self) -> ErrorCode:
        return self.error.code

    @property
    def provider(self) -> str:
        return self.error.provider

    @property
    def status_code(self) -> int | None:
        return self.error.status_code

    @property
    def retryable(self) -> bool:
        return self.error.retryable


class GitExecutionError(VcsGatewayError):
    """Git could not be run at all.

    Distinct from a git command that ran and failed, which is reported as
    a CommandResult with a non-zero exit code.
    """

    pass


class GitSpawnError(GitExecutionError):
    """The git binary is missing or cannot be executed."""

    def __init__(self, message: str, binary: str | None = None) -> None:
        self.binary = binary
        super().__init__(message)


class WorkingCopyNotFoundError(GitExecutionError):
    """The working-copy path passed to the engine does not exist."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Working copy path does not exist: {path}")


class InvalidIntentError(GitExecutionError):
    """A git intent was given options it cannot encode safely."""

    pass
