"""Service for executing upstream fetches with automatic retries.

Implements exponential backoff with jitter for transient failures (no
response, or a 502/503/504 gateway status). Every other failure is terminal
and returned immediately. Failures come back as ``FetchFailure`` values;
only cancellation propagates.
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

# Domain Layer Imports
from fetchgate.domain.events.fetch_events import (
    AttemptFailed, EventSink, FetchFailed, FetchSucceeded, RetryScheduled, log_event
)
from fetchgate.domain.interfaces.fetch_strategy import FetchStrategy
from fetchgate.domain.models.common import FetchTarget
from fetchgate.domain.models.errors import (
    GATEWAY_STATUS_CODES, ErrorKind, UpstreamStatusError, UpstreamUnavailableError
)
from fetchgate.domain.models.fetch import AttemptRecord, FetchFailure, FetchOutcome, FetchSuccess

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 5
DEFAULT_BACKOFF_BASE_S = 0.3
DEFAULT_TIMEOUT_S = 8.0
JITTER_MAX_S = 0.2

@dataclass(frozen=True)
class RetryPolicy:
    """Value Object representing retry and timeout configuration."""
    max_retries: int = DEFAULT_MAX_RETRIES
    backoff_base: float = DEFAULT_BACKOFF_BASE_S
    timeout: float = DEFAULT_TIMEOUT_S
    backoff_max: Optional[float] = None # Ceiling for the exponential part, None = uncapped

def classify_failure(error: BaseException) -> ErrorKind:
    """Maps a failed attempt to a typed error kind."""
    if isinstance(error, UpstreamUnavailableError):
        return ErrorKind.TRANSIENT_UPSTREAM
    if isinstance(error, UpstreamStatusError):
        if error.status_code in GATEWAY_STATUS_CODES:
            return ErrorKind.TRANSIENT_UPSTREAM
        return ErrorKind.TERMINAL_UPSTREAM
    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return ErrorKind.TRANSIENT_UPSTREAM
    return ErrorKind.TERMINAL_UPSTREAM

def compute_backoff(
    attempt_number: int,
    base: float,
    backoff_max: Optional[float] = None,
    jitter_max: float = JITTER_MAX_S,
    rng: Callable[[], float] = random.random,
) -> float:
    """Delay before the retry that follows failed attempt ``attempt_number`` (1-based).

    Lies in ``[base * 2**(n-1), base * 2**(n-1) + jitter_max)`` unless capped.
    """
    backoff = base * (2 ** (attempt_number - 1))
    if backoff_max is not None:
        backoff = min(backoff, backoff_max)
    return backoff + rng() * jitter_max

def describe_failure(error: BaseException) -> str:
    return str(error) or type(error).__name__

# --- Retry Service ---

class RetryingFetcher:
    """Runs one attempt sequence against a fetch strategy."""

    def __init__(
        self,
        strategy: FetchStrategy,
        event_sink: EventSink = log_event,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
    ):
        """Initializes the RetryingFetcher.

        Args:
            strategy: The strategy every attempt is delegated to.
            event_sink: Receives domain events for each attempt.
            sleep: Coroutine used for backoff waits (injectable for tests).
            rng: Source of jitter in [0, 1).
        """
        self.strategy = strategy
        self.event_sink = event_sink
        self._sleep = sleep
        self._rng = rng

    async def fetch(
        self,
        target: FetchTarget,
        max_retries: int,
        base_delay: float,
        timeout_per_attempt: float,
        backoff_max: Optional[float] = None,
    ) -> FetchOutcome:
        """Fetches ``target``, retrying transient failures.

        Args:
            target: The upstream target.
            max_retries: Retry budget; 0 means exactly one attempt.
            base_delay: Base of the exponential backoff, in seconds.
            timeout_per_attempt: Bound for each strategy call, in seconds.
            backoff_max: Optional ceiling for the exponential part.

        Returns:
            FetchSuccess on the first successful attempt, otherwise FetchFailure
            carrying the last error's reason.
        """
        strategy_name = self.strategy.name
        attempt = 0

        while True:
            attempt += 1
            try:
                start_time = time.perf_counter()
                response = await asyncio.wait_for(
                    self.strategy.fetch(target, timeout_per_attempt), timeout=timeout_per_attempt
                )
                latency_ms = (time.perf_counter() - start_time) * 1000
                self.event_sink(FetchSucceeded(strategy=strategy_name, url=target.url, attempts=attempt, latency_ms=latency_ms))
                return FetchSuccess(body=response.body, headers=dict(response.headers), attempts=attempt)
            except asyncio.TimeoutError:
                error: Exception = UpstreamUnavailableError(f"timeout of {timeout_per_attempt:g}s exceeded")
            except Exception as e:
                error = e

            kind = classify_failure(error)
            reason = describe_failure(error)
            self.event_sink(AttemptFailed(
                strategy=strategy_name, url=target.url, attempt_number=attempt,
                error_kind=kind, error_message=reason,
            ))

            if kind is ErrorKind.TERMINAL_UPSTREAM:
                logger.warning(f"Terminal error from {strategy_name} for {target.url} on attempt {attempt}: {reason}")
                self.event_sink(FetchFailed(strategy=strategy_name, url=target.url, error_kind=kind, error_message=reason))
                return FetchFailure(kind=kind, reason=reason, attempts=attempt)

            if attempt > max_retries:
                logger.warning(f"Max retries ({max_retries}) reached for {target.url}. Last error: {reason}")
                self.event_sink(FetchFailed(strategy=strategy_name, url=target.url, error_kind=kind, error_message=reason))
                return FetchFailure(kind=kind, reason=reason, attempts=attempt)

            record = AttemptRecord(
                attempt_number=attempt,
                error_kind=kind,
                wait_before_next=compute_backoff(attempt, base_delay, backoff_max, rng=self._rng),
            )
            logger.warning(
                f"Gateway-ish error (attempt {record.attempt_number}) for {target.url}: {reason}. "
                f"Waiting {record.wait_before_next:.3f}s before retrying..."
            )
            self.event_sink(RetryScheduled(
                strategy=strategy_name, url=target.url,
                attempt_number=record.attempt_number, delay_seconds=record.wait_before_next,
            ))
            await self._sleep(record.wait_before_next)

    async def fetch_with_policy(self, target: FetchTarget, policy: RetryPolicy) -> FetchOutcome:
        return await self.fetch(
            target,
            max_retries=policy.max_retries,
            base_delay=policy.backoff_base,
            timeout_per_attempt=policy.timeout,
            backoff_max=policy.backoff_max,
        )
