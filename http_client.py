import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


class OptimizedHTTPClient:
    """Pooled async HTTP client shared by the outbound catalog lookups."""

    def __init__(self, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        limits = httpx.Limits(
            max_keepalive_connections=20,
            max_connections=100,
            keepalive_expiry=30.0
        )

        # A slow catalog must not stall a page render forever
        timeout_config = httpx.Timeout(
            timeout=timeout,
            connect=min(timeout, 5.0),
        )

        self._client = httpx.AsyncClient(
            limits=limits,
            timeout=timeout_config,
            follow_redirects=True,
            transport=transport,
        )

    async def get(self, url: str, **kwargs) -> httpx.Response:
        """Async GET over the pooled connections."""
        return await self._client.get(url, **kwargs)

    async def close(self):
        """Close the underlying client."""
        await self._client.aclose()
        logger.debug("HTTP client closed")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
