"""Asynchronous HTTP client for the RevenueCat REST API.

This module provides :class:`AsyncClient`, a thin wrapper around
:class:`httpx.AsyncClient` that injects the bearer credential, sends JSON
bodies, and maps every non-2xx response to a typed exception from
:mod:`rcsetup.exceptions`. It performs exactly one HTTP exchange per call;
retrying is the job of :func:`rcsetup.retry.retry_with_backoff`.

See Also:
    :class:`~rcsetup.client.revenuecat.RevenueCatClient` for the
    per-resource operations built on top of this client.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from rcsetup.exceptions import (
    APIError,
    AuthError,
    ConflictError,
    ConnectionError_,
    NotFoundError,
    ServerError,
)
from rcsetup.models import ApiSettings
from rcsetup.output import debug


class AsyncClient:
    """Asynchronous HTTP client for API calls.

    Must be used as an async context manager; the underlying
    :class:`httpx.AsyncClient` lives for the duration of the ``async with``
    block.

    Args:
        api_key: Secret API key sent as
            ``Authorization: Bearer <api_key>``.
        settings: Base URL and per-call timeout. Defaults to
            :class:`~rcsetup.models.ApiSettings` defaults.
        transport: Optional httpx transport, e.g. :class:`httpx.MockTransport`
            in tests.

    Example::

        async with AsyncClient(api_key) as client:
            body = await client.get("/projects")
    """

    def __init__(
        self,
        api_key: str,
        settings: Optional[ApiSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_key = api_key
        self._settings = settings or ApiSettings()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> AsyncClient:
        self._client = httpx.AsyncClient(
            base_url=self._settings.base_url.rstrip("/"),
            timeout=self._settings.timeout,
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        json_body: Optional[Any] = None,
    ) -> Any:
        """Make one HTTP request and return the decoded JSON body.

        Args:
            method: HTTP method (GET, POST, ...).
            path: URL path appended to the base URL, e.g. ``/projects``.
            params: Query parameters.
            json_body: JSON-serialisable request body.

        Returns:
            The decoded JSON body, or ``None`` for an empty response.

        Raises:
            AuthError: On 401 / 403.
            NotFoundError: On 404.
            ConflictError: On 409.
            ServerError: On 5xx.
            APIError: On any other non-2xx status.
            ConnectionError_: On network / timeout errors.
        """
        assert self._client is not None, "Client not initialised -- use as async context manager"

        debug(f"{method} {path}")
        try:
            response = await self._client.request(
                method, path, params=params, json=json_body
            )
        except (httpx.TimeoutException, httpx.NetworkError) as exc:
            raise ConnectionError_(f"{method} {path} failed: {exc}") from exc

        debug(f"{method} {path} -> HTTP {response.status_code}")
        self._map_response_error(response)
        return _decode_body(response)

    async def get(self, path: str, **kwargs: Any) -> Any:
        """Send an async GET request. See :meth:`request`."""
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> Any:
        """Send an async POST request. See :meth:`request`."""
        return await self.request("POST", path, **kwargs)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _map_response_error(self, response: httpx.Response) -> None:
        """Raise a typed exception for error HTTP status codes."""
        status = response.status_code
        if status < 400:
            return

        body = _decode_body(response)
        if isinstance(body, dict):
            msg = body.get("message") or body.get("error") or body.get("type") or ""
        else:
            msg = str(body)[:200] if body else ""

        prefix = f"HTTP {status}"
        full_msg = f"{prefix}: {msg}" if msg else prefix

        if status in (401, 403):
            raise AuthError(full_msg, status, body)
        if status == 404:
            raise NotFoundError(full_msg, status, body)
        if status == 409:
            raise ConflictError(full_msg, status, body)
        if status >= 500:
            raise ServerError(full_msg, status, body)
        raise APIError(full_msg, status, body)


def _decode_body(response: httpx.Response) -> Any:
    """Decode *response* as JSON, falling back to text; ``None`` when empty."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text
