"""Upstream Resilience Implementations.

Contains the admission gate bounding concurrent fetches, the retrying
fetcher with exponential backoff and the fallback escalator.
Bounded Context: Upstream Resilience
"""
