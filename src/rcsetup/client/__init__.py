"""HTTP client layer for the RevenueCat REST API v2.

Two layers:

- :class:`~rcsetup.client.async_client.AsyncClient` -- one authenticated
  HTTP exchange per call, with non-2xx statuses mapped to typed errors.
- :class:`~rcsetup.client.revenuecat.RevenueCatClient` -- one coroutine per
  resource operation, with 409 handled as an idempotent outcome.
"""

from rcsetup.client.async_client import AsyncClient
from rcsetup.client.revenuecat import RevenueCatClient

__all__ = ["AsyncClient", "RevenueCatClient"]
