"""Escalation from the primary fetch strategy to a heavier fallback.

The primary strategy runs under the RetryingFetcher. Only once its retry
budget is spent (or it failed terminally) is the secondary strategy tried,
exactly once and without retries of its own.
"""

import asyncio
import logging
import time
from typing import Optional

from fetchgate.domain.events.fetch_events import (
    EventSink, FallbackTriggered, FetchFailed, FetchSucceeded, log_event
)
from fetchgate.domain.interfaces.fetch_strategy import FetchStrategy
from fetchgate.domain.models.common import FetchTarget
from fetchgate.domain.models.errors import ErrorKind
from fetchgate.domain.models.fetch import FetchFailure, FetchOutcome, FetchSuccess
from fetchgate.infrastructure.resilience.api_retry import RetryingFetcher, RetryPolicy, describe_failure

logger = logging.getLogger(__name__)


class FallbackEscalator:
    """Wraps a retried primary strategy and an optional one-shot secondary."""

    def __init__(
        self,
        primary: RetryingFetcher,
        secondary: Optional[FetchStrategy] = None,
        fallback_timeout: Optional[float] = None,
        event_sink: EventSink = log_event,
    ):
        """Initializes the escalator.

        Args:
            primary: Retrying fetcher bound to the cheap strategy.
            secondary: Expensive strategy (e.g. a headless browser), optional.
            fallback_timeout: Bound for the secondary call; defaults to the
                primary policy's per-attempt timeout.
            event_sink: Receives fallback related domain events.
        """
        self.primary = primary
        self.secondary = secondary
        self.fallback_timeout = fallback_timeout
        self.event_sink = event_sink

    async def fetch_with_fallback(
        self,
        target: FetchTarget,
        primary_config: RetryPolicy,
        fallback_enabled: bool,
    ) -> FetchOutcome:
        outcome = await self.primary.fetch_with_policy(target, primary_config)
        if isinstance(outcome, FetchSuccess):
            return outcome

        logger.warning(f"Direct fetch failed for {target.key}: {outcome.reason}")
        if not fallback_enabled:
            return outcome
        if self.secondary is None:
            logger.warning("Fallback enabled but no secondary strategy configured; returning primary failure.")
            return outcome

        return await self._run_secondary(target, outcome, self.fallback_timeout or primary_config.timeout)

    async def _run_secondary(self, target: FetchTarget, primary_failure: FetchFailure, timeout: float) -> FetchOutcome:
        name = self.secondary.name
        self.event_sink(FallbackTriggered(url=target.url, reason=primary_failure.reason, fallback_strategy=name))
        logger.info(f"Escalating {target.url} to fallback strategy '{name}'")
        attempts = primary_failure.attempts + 1
        try:
            start_time = time.perf_counter()
            response = await asyncio.wait_for(self.secondary.fetch(target, timeout), timeout=timeout)
        except asyncio.TimeoutError:
            reason = f"fallback timeout of {timeout:g}s exceeded"
        except Exception as e:
            reason = describe_failure(e)
        else:
            latency_ms = (time.perf_counter() - start_time) * 1000
            self.event_sink(FetchSucceeded(strategy=name, url=target.url, attempts=1, latency_ms=latency_ms))
            logger.info(f"Fallback '{name}' succeeded for {target.url}")
            return FetchSuccess(
                body=response.body,
                headers=dict(response.headers),
                served_by_fallback=True,
                attempts=attempts,
            )

        logger.error(f"Fallback '{name}' also failed for {target.url}: {reason}")
        self.event_sink(FetchFailed(strategy=name, url=target.url, error_kind=ErrorKind.FALLBACK_FAILURE, error_message=reason))
        return FetchFailure(kind=ErrorKind.FALLBACK_FAILURE, reason=reason, attempts=attempts)
