"""Domain Events related to upstream fetches and resilience.

Examples include events for when attempts fail, retries are scheduled,
the fallback strategy is engaged, or a request is served from cache.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable

from ..models.errors import ErrorKind

logger = logging.getLogger(__name__)

# Base Event Class
@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass

# --- Specific Fetch Events ---

@dataclass
class CacheHit(DomainEvent):
    """Event triggered when a request is answered from the cache."""
    key: str
    timestamp: float = field(default_factory=time.time)

@dataclass
class AttemptFailed(DomainEvent):
    """Event triggered for every failed strategy attempt."""
    strategy: str
    url: str
    attempt_number: int
    error_kind: ErrorKind
    error_message: str
    timestamp: float = field(default_factory=time.time)

@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a retry is scheduled after a transient failure."""
    strategy: str
    url: str
    attempt_number: int
    delay_seconds: float
    timestamp: float = field(default_factory=time.time)

@dataclass
class FallbackTriggered(DomainEvent):
    """Event triggered when the primary strategy gave up and the fallback runs."""
    url: str
    reason: str
    fallback_strategy: str
    timestamp: float = field(default_factory=time.time)

@dataclass
class FetchSucceeded(DomainEvent):
    strategy: str
    url: str
    attempts: int
    latency_ms: float
    timestamp: float = field(default_factory=time.time)

@dataclass
class FetchFailed(DomainEvent):
    """Event triggered when a fetch sequence fails definitively."""
    strategy: str
    url: str
    error_kind: ErrorKind
    error_message: str
    timestamp: float = field(default_factory=time.time)


EventSink = Callable[[DomainEvent], None]


def log_event(event: DomainEvent) -> None:
    """Default sink: events are only written to the debug log."""
    logger.debug(f"EVENT: {event}")
