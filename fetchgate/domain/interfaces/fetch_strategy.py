"""Interface for upstream fetch strategies.

A strategy knows how to retrieve one target once. Two variants exist: a
lightweight HTTP transport used as the primary path and a rendered-browser
strategy used as the expensive fallback. Retry and escalation live outside
the strategies.
"""

import abc

from ..models.common import FetchTarget
from ..models.fetch import FetchResponse


class FetchStrategy(abc.ABC):
    """Abstract Base Class for a single upstream fetch mechanism."""

    #: Short name used in logs and events (e.g. 'httpx', 'playwright').
    name: str = "strategy"

    @abc.abstractmethod
    async def fetch(self, target: FetchTarget, timeout: float) -> FetchResponse:
        """Fetches the target once.

        Args:
            target: The upstream target to retrieve.
            timeout: Upper bound in seconds for this single call.

        Returns:
            The upstream's successful response.

        Raises:
            UpstreamUnavailableError: If no response was received.
            UpstreamStatusError: If the upstream answered with a non-2xx status.
        """
        pass

    async def close(self) -> None:
        """Releases connections, browsers or other held resources."""
        return None
