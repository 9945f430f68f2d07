"""Core service resolving resource keys to fetched payloads.

Checks the expiring cache first; on a miss it takes an admission slot,
runs the primary strategy with retries (escalating to the fallback when
enabled), caches successful payloads and always gives the slot back.
Failed fetches are never cached.
"""

import logging
from typing import Iterable, Optional

# Domain Layer Imports
from fetchgate.domain.events.fetch_events import CacheHit, EventSink, log_event
from fetchgate.domain.interfaces.cache import CacheService
from fetchgate.domain.interfaces.fetch_strategy import FetchStrategy
from fetchgate.domain.models.common import ResourceKey, UpstreamTemplate, make_cache_key
from fetchgate.domain.models.fetch import FetchedPayload, FetchSuccess, Resolution, ResolveResult

# Infrastructure Layer Imports (implementations injected)
from fetchgate.infrastructure.resilience.admission_gate import AdmissionGate
from fetchgate.infrastructure.resilience.api_retry import RetryPolicy
from fetchgate.infrastructure.resilience.fallback import FallbackEscalator

logger = logging.getLogger(__name__)


class FetchOrchestrator:
    """Façade for the resolve use case."""

    def __init__(
        self,
        cache: CacheService,
        gate: AdmissionGate,
        escalator: FallbackEscalator,
        upstream: UpstreamTemplate,
        retry_policy: RetryPolicy,
        cache_ttl: float,
        fallback_enabled: bool = False,
        event_sink: EventSink = log_event,
        strategies: Iterable[FetchStrategy] = (),
    ):
        """Initializes the orchestrator with its collaborators.

        Args:
            cache: Shared expiring cache.
            gate: Shared admission gate.
            escalator: Primary/fallback fetch pipeline.
            upstream: Template turning a key into the upstream target.
            retry_policy: Retry budget and timeouts for the primary strategy.
            cache_ttl: Lifetime of cached payloads, in seconds.
            fallback_enabled: Whether the secondary strategy may be used.
            event_sink: Receives cache hit events.
            strategies: Strategies to close on shutdown.
        """
        self.cache = cache
        self.gate = gate
        self.escalator = escalator
        self.upstream = upstream
        self.retry_policy = retry_policy
        self.cache_ttl = cache_ttl
        self.fallback_enabled = fallback_enabled
        self.event_sink = event_sink
        self._strategies = list(strategies)

    async def resolve(self, key: ResourceKey) -> ResolveResult:
        """Returns the payload for ``key`` or the reason it could not be fetched."""
        cache_key = make_cache_key(key)
        cached: Optional[FetchedPayload] = self.cache.get(cache_key)
        if cached is not None:
            self.event_sink(CacheHit(key=key))
            return Resolution(payload=cached, from_cache=True)

        target = self.upstream.build(key)
        async with self.gate.slot():
            outcome = await self.escalator.fetch_with_fallback(
                target, self.retry_policy, self.fallback_enabled
            )
            if not isinstance(outcome, FetchSuccess):
                return outcome

            payload = FetchedPayload(
                body=outcome.body,
                headers=outcome.headers,
                served_by_fallback=outcome.served_by_fallback,
            )
            self.cache.set(cache_key, payload, ttl=self.cache_ttl)

        logger.info(
            f"Fetched {key} in {outcome.attempts} attempt(s)"
            + (" via fallback" if outcome.served_by_fallback else "")
        )
        return Resolution(payload=payload, from_cache=False)

    async def close(self) -> None:
        """Closes every strategy handed in at construction."""
        for strategy in self._strategies:
            try:
                await strategy.close()
            except Exception as e:
                logger.error(f"Error closing strategy {strategy.name}: {e}", exc_info=True)
