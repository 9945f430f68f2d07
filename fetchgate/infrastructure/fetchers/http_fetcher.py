"""Primary fetch strategy: async httpx client.

The cheapest way to reach the upstream. Translates httpx failures into the
domain's UpstreamError family so retry policy never depends on httpx.
"""

import logging
from typing import Dict, Optional

import httpx

from fetchgate.domain.interfaces.fetch_strategy import FetchStrategy
from fetchgate.domain.models.common import FetchTarget
from fetchgate.domain.models.errors import UpstreamStatusError, UpstreamUnavailableError
from fetchgate.domain.models.fetch import FetchResponse

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "fetchgate/1.0 (+contact@yourdomain.com)"


class HttpxFetchStrategy(FetchStrategy):
    """Lightweight transport strategy backed by a shared httpx.AsyncClient."""

    name = "httpx"

    DEFAULT_HEADERS = {
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
        "Accept-Encoding": "gzip, deflate",
    }

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 8.0,
        max_connections: int = 20,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initializes the strategy.

        Args:
            user_agent: Identifying client header sent with every request.
            timeout: Default client timeout in seconds (each call may pass its own).
            max_connections: Connection pool size.
            transport: Optional custom transport (tests use httpx.MockTransport).
        """
        self.user_agent = user_agent
        self.timeout = timeout
        headers = {**self.DEFAULT_HEADERS, "User-Agent": user_agent}
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
            headers=headers,
            limits=httpx.Limits(max_connections=max_connections, max_keepalive_connections=max_connections // 2),
            transport=transport,
        )

    async def fetch(self, target: FetchTarget, timeout: float) -> FetchResponse:
        try:
            response = await self._client.get(target.url, timeout=timeout)
        except httpx.TimeoutException as e:
            raise UpstreamUnavailableError(f"Timeout after {timeout:g}s: {e}") from e
        except httpx.TransportError as e:
            raise UpstreamUnavailableError(f"Connection error: {e}") from e

        if not response.is_success:
            logger.debug(f"Upstream answered {response.status_code} for {target.url}")
            raise UpstreamStatusError(response.status_code)

        return FetchResponse(
            status_code=response.status_code,
            body=response.content,
            headers=self._flatten_headers(response.headers),
        )

    @staticmethod
    def _flatten_headers(headers: httpx.Headers) -> Dict[str, str]:
        return {k.lower(): v for k, v in headers.items()}

    async def close(self) -> None:
        await self._client.aclose()
