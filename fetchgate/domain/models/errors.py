"""Error kinds and exceptions shared by every layer of the gateway.

Transport adapters translate library specific failures into the
``UpstreamError`` family so that retry policy never inspects httpx or
Playwright exception types directly.
"""

import enum
from typing import Optional


class ErrorKind(str, enum.Enum):
    """Typed classification of everything that can go wrong with a request."""
    EMPTY_KEY = "empty_key"
    TRANSIENT_UPSTREAM = "transient_upstream"
    TERMINAL_UPSTREAM = "terminal_upstream"
    FALLBACK_FAILURE = "fallback_failure"
    INTERNAL = "internal"


# Status codes that indicate a struggling gateway rather than a real answer
GATEWAY_STATUS_CODES = frozenset({502, 503, 504})


class EmptyResourceKeyError(ValueError):
    """Raised when the caller supplied no usable identifier."""
    kind = ErrorKind.EMPTY_KEY


class UpstreamError(Exception):
    """Base class for failures reported by a fetch strategy."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class UpstreamUnavailableError(UpstreamError):
    """The upstream could not be reached or never answered (no response)."""


class UpstreamStatusError(UpstreamError):
    """The upstream answered with a non-success HTTP status."""

    def __init__(self, status_code: int, message: Optional[str] = None):
        super().__init__(message or f"Request failed with status code {status_code}", status_code=status_code)


class PermitError(RuntimeError):
    """Admission permit misuse (e.g. releasing the same permit twice)."""
    kind = ErrorKind.INTERNAL


class ConfigurationError(ValueError):
    """Raised when gateway settings are missing or invalid."""
