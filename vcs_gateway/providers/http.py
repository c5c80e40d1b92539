"""Composed HTTP helper shared by all providers.

RestClient owns one connection pool and is the only place provider code
touches httpx. Every failure, HTTP or transport, is normalized exactly
once here and re-raised as ProviderRequestError, so nothing above the
provider layer ever sees an httpx exception.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from vcs_gateway.exceptions import ProviderRequestError
from vcs_gateway.providers.errors import format_for_logging, is_retryable_error, normalize_error
from vcs_gateway.utils.connection_pool import HTTPConnectionPool
from vcs_gateway.utils.retry import async_retry

log = structlog.get_logger(__name__)


def _retry_after(error: Exception) -> float | None:
    """Honor a server-supplied Retry-After when retrying."""
    if isinstance(error, ProviderRequestError) and error.error.rate_limit is not None:
        return error.error.rate_limit.retry_after
    return None


def _clean_params(params: dict[str, Any] | None) -> dict[str, Any] | None:
    if not params:
        return None
    return {key: value for key, value in params.items() if value is not None}


def _decode(response: httpx.Response) -> Any:
    if response.status_code == 204 or not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class RestClient:
    """Request plumbing bound to one backend.

    Args:
        provider_name: Name used in normalized error messages
        base_url: API root every path is resolved against
        headers: Auth and content negotiation headers
        timeout: Per-request timeout in seconds
        debug: Log requests and responses
        max_retries: Extra attempts for retryable failures (0 disables)
        backoff_factor: Exponential backoff base between retries
        transport: Optional httpx transport override
    """

    def __init__(
        self,
        provider_name: str,
        base_url: str,
        headers: dict[str, str],
        timeout: float = 30.0,
        *,
        debug: bool = False,
        max_retries: int = 0,
        backoff_factor: float = 2.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.provider_name = provider_name
        self.base_url = base_url
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor
        self._pool = HTTPConnectionPool(
            base_url=base_url,
            timeout=timeout,
            headers=headers,
            debug=debug,
            transport=transport,
        )

    @property
    def pool(self) -> HTTPConnectionPool:
        return self._pool

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Issue one HTTP call and return the decoded body.

        Args:
            method: HTTP verb
            path: Path relative to the base URL
            params: Query parameters; None values are dropped
            json: JSON request body

        Returns:
            Decoded JSON body, response text for non-JSON bodies, or None
            for empty responses

        Raises:
            ProviderRequestError: On any failure, carrying the normalized error
        """
        if self.max_retries > 0:
            send = async_retry(
                max_attempts=self.max_retries + 1,
                backoff_factor=self.backoff_factor,
                exceptions=(ProviderRequestError,),
                should_retry=is_retryable_error,
                delay_for=_retry_after,
            )(self._send)
            return await send(method, path, params=params, json=json)
        return await self._send(method, path, params=params, json=json)

    async def _send(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        try:
            response = await self._pool.request(method, path, params=_clean_params(params), json=json)
            response.raise_for_status()
        except Exception as e:
            std = normalize_error(e, self.provider_name)
            log.warning("provider_request_failed", method=method, path=path, **format_for_logging(std))
            raise ProviderRequestError(std) from e

        return _decode(response)

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> Any:
        return await self.request("POST", path, json=json)

    async def put(self, path: str, json: Any = None) -> Any:
        return await self.request("PUT", path, json=json)

    async def patch(self, path: str, json: Any = None) -> Any:
        return await self.request("PATCH", path, json=json)

    async def delete(self, path: str, json: Any = None) -> Any:
        return await self.request("DELETE", path, json=json)

    async def aclose(self) -> None:
        await self._pool.close()
