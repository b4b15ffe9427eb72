import asyncio
import time
from typing import Any

import httpx
from loguru import logger

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class RateLimitedClient:
    """
    Throttled JSON client shared by the provider adapters.

    Requests are spaced at least ``60 / rate_limit`` seconds apart. Timeouts,
    connection errors and retryable statuses are retried with exponential
    backoff; any other 4xx gives up immediately. Exhausted or rejected
    requests return None, and ``last_status_code`` tells the adapter why.
    """

    def __init__(
        self,
        rate_limit: int = 60,
        retries: int = 3,
        timeout: float = 30.0,
        backoff_base: float = 1.0,
        user_agent: str = "FluxaIngest/1.0",
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Args:
            rate_limit: Maximum requests per minute (0 for no limit)
            retries: Attempts per request, including the first one
            timeout: Request timeout in seconds
            backoff_base: Seconds slept before the first retry, doubled after each
            user_agent: User-Agent header value
            headers: Headers sent with every request
            transport: Optional httpx transport, used by tests
        """
        self.min_interval = 60 / rate_limit if rate_limit > 0 else 0.0
        self.retries = max(1, retries)
        self.timeout = timeout
        self.backoff_base = backoff_base
        self.transport = transport
        self.last_status_code: int | None = None

        self.headers = {"User-Agent": user_agent, "Accept": "application/json", **(headers or {})}
        self._client: httpx.AsyncClient | None = None
        self._lock = asyncio.Lock()
        self._last_request_at = 0.0

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers=self.headers,
                transport=self.transport,
            )
        return self._client

    async def _throttle(self) -> None:
        async with self._lock:
            wait = self._last_request_at + self.min_interval - time.monotonic()
            if wait > 0:
                await asyncio.sleep(wait)
            self._last_request_at = time.monotonic()

    async def get_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any] | list[Any] | None:
        """
        GET ``url`` and decode the JSON body.

        Returns:
            Decoded JSON, or None when the request failed or the body is not JSON
        """
        self.last_status_code = None

        for attempt in range(1, self.retries + 1):
            await self._throttle()
            try:
                response = await self.client.get(url, params=params, headers=headers)
            except httpx.RequestError as e:
                logger.warning(f"Request error for {url}: {e!r}, attempt {attempt}/{self.retries}")
            else:
                self.last_status_code = response.status_code
                if response.is_success:
                    try:
                        return response.json()
                    except ValueError as e:
                        logger.error(f"Invalid JSON from {url}: {e}")
                        return None

                logger.warning(f"HTTP {response.status_code} for {url}, attempt {attempt}/{self.retries}")
                if response.status_code not in RETRYABLE_STATUS_CODES:
                    return None

            if attempt < self.retries:
                await asyncio.sleep(self.backoff_base * 2 ** (attempt - 1))

        logger.error(f"Giving up on {url} after {self.retries} attempts")
        return None

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "RateLimitedClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
