"""Domain models related to fetching a resource.

Includes the raw strategy response, the per-call outcome union and the
payload stored in the cache.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Union

from .errors import ErrorKind

# --- Strategy level ---

@dataclass
class FetchResponse:
    """Successful answer produced by a single strategy call."""
    status_code: int
    body: bytes
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class AttemptRecord:
    """Bookkeeping for one failed attempt inside a retry loop (never stored)."""
    attempt_number: int
    error_kind: ErrorKind
    wait_before_next: Optional[float] = None # None when no further attempt follows


# --- Outcome of one fetch sequence ---

@dataclass
class FetchSuccess:
    body: bytes
    headers: Dict[str, str] = field(default_factory=dict)
    served_by_fallback: bool = False
    attempts: int = 1


@dataclass
class FetchFailure:
    kind: ErrorKind
    reason: str
    attempts: int = 0


FetchOutcome = Union[FetchSuccess, FetchFailure]


# --- Orchestrator level ---

@dataclass(frozen=True)
class FetchedPayload:
    """The value cached per resource key."""
    body: bytes
    headers: Dict[str, str]
    served_by_fallback: bool = False

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


@dataclass
class Resolution:
    """Successful result of ``FetchOrchestrator.resolve``."""
    payload: FetchedPayload
    from_cache: bool


ResolveResult = Union[Resolution, FetchFailure]
