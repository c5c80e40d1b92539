"""
HTTP connection pooling for provider API requests.
Each provider owns one pool: one httpx.AsyncClient bound to the provider's
base URL, auth headers and timeout, created lazily on first use.
"""

import asyncio
from typing import Any

import httpx
import structlog

log = structlog.get_logger(__name__)


class HTTPConnectionPool:
    """HTTP connection pool for API requests.

    Args:
        base_url: Base URL every request path is resolved against
        timeout: Per-request timeout in seconds
        headers: Default headers sent with every request
        max_connections: Upper bound on open connections
        max_keepalive_connections: Idle connections kept for reuse
        http2: Negotiate HTTP/2 when the server supports it
        debug: Log every request and response at debug level
        transport: Optional transport override (used by tests)
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        max_connections: int = 10,
        max_keepalive_connections: int = 5,
        http2: bool = True,
        debug: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self.headers = headers or {}
        self.max_connections = max_connections
        self.max_keepalive_connections = max_keepalive_connections
        self.http2 = http2
        self.debug = debug
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._lock = asyncio.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._client is not None

    async def initialize(self) -> None:
        """Initialize the connection pool."""
        async with self._lock:
            if self._client is None:
                limits = httpx.Limits(
                    max_keepalive_connections=self.max_keepalive_connections,
                    max_connections=self.max_connections,
                    keepalive_expiry=30.0,
                )
                event_hooks: dict[str, list[Any]] = {}
                if self.debug:
                    event_hooks = {"request": [_log_request], "response": [_log_response]}

                self._client = httpx.AsyncClient(
                    base_url=self.base_url,
                    limits=limits,
                    timeout=self.timeout,
                    http2=self.http2,
                    headers=self.headers,
                    event_hooks=event_hooks,
                    transport=self._transport,
                )

                log.info(
                    "connection_pool_initialized",
                    base_url=self.base_url,
                    max_connections=self.max_connections,
                )

    async def close(self) -> None:
        """Close the connection pool."""
        async with self._lock:
            if self._client:
                await self._client.aclose()
                self._client = None
                log.info("connection_pool_closed", base_url=self.base_url)

    async def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send one request and return the (fully read) response."""
        if self._client is None:
            await self.initialize()

        assert self._client is not None
        return await self._client.request(method, path, **kwargs)

    async def __aenter__(self) -> "HTTPConnectionPool":
        """Async context manager entry."""
        await self.initialize()
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit."""
        await self.close()


async def _log_request(request: httpx.Request) -> None:
    log.debug("http_request", method=request.method, url=str(request.url))


async def _log_response(response: httpx.Response) -> None:
    log.debug(
        "http_response",
        method=response.request.method,
        url=str(response.request.url),
        status_code=response.status_code,
    )
