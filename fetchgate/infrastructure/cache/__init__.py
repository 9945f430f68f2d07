"""Caching Service Implementation.

Provides the in-memory ExpiringCache implementing the CacheService
interface, with per-entry TTL, lazy expiry and optional periodic sweeping.
Bounded Context: Cache Management
"""
