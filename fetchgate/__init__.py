"""fetchgate: resilient fetch-and-serve gateway.

Answers keyed requests from an in-memory expiring cache, otherwise fetches
the resource from a flaky upstream under admission control, retrying
transient failures and optionally escalating to a rendered-browser fetch.
"""

__version__ = "1.0.0"
