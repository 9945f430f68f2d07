"""Defines common Value Objects used across the gateway.

These objects represent simple values like resource keys, cache keys and
upstream targets, ensuring consistency and type safety.
"""

from dataclasses import dataclass
from typing import NewType, Optional
from urllib.parse import quote

from .errors import EmptyResourceKeyError

# === Core Value Objects ===

# Using NewType for semantic clarity, although they are strings at runtime.
ResourceKey = NewType("ResourceKey", str)      # Caller supplied identifier (e.g. a roll number)
CacheKey = NewType("CacheKey", str)            # Namespaced key inside the expiring cache
CachePrefix = NewType("CachePrefix", str)      # Namespace prefix for cache keys

DEFAULT_CACHE_PREFIX = CachePrefix("fetchgate:key:")


def parse_resource_key(raw: Optional[str]) -> ResourceKey:
    """Validates a caller supplied identifier.

    Args:
        raw: The raw value taken from the request (may be None).

    Returns:
        The key with surrounding whitespace removed.

    Raises:
        EmptyResourceKeyError: If nothing is left after trimming.
    """
    key = (raw or "").strip()
    if not key:
        raise EmptyResourceKeyError("resource key must not be empty")
    return ResourceKey(key)


def make_cache_key(key: ResourceKey, prefix: CachePrefix = DEFAULT_CACHE_PREFIX) -> CacheKey:
    return CacheKey(f"{prefix}{key}")


@dataclass(frozen=True)
class FetchTarget:
    """The upstream location a resource key resolves to."""
    key: ResourceKey
    url: str

    def __str__(self) -> str:
        return self.url


@dataclass(frozen=True)
class UpstreamTemplate:
    """URL template for the single upstream origin.

    The template must contain a ``{key}`` placeholder; the key is
    percent-encoded before substitution.
    """
    template: str

    def build(self, key: ResourceKey) -> FetchTarget:
        url = self.template.replace("{key}", quote(key, safe=""))
        return FetchTarget(key=key, url=url)
