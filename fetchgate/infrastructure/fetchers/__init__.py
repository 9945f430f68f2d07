"""Fetch strategy adapters.

Lightweight HTTP transport (httpx) and rendered browser (Playwright)
implementations of the FetchStrategy interface.
"""
