"""
Shared long-lived httpx.AsyncClient for all Genova API calls.
Initialized once at startup to avoid creating a new client per request.
"""
from __future__ import annotations

import httpx

from genova.config import settings

_http_client: httpx.AsyncClient | None = None


def get_http_client() -> httpx.AsyncClient:
    """Return the shared async HTTP client. Must be initialized via init_http_client() first."""
    if _http_client is None:
        raise RuntimeError("HTTP client not initialized; call init_http_client() at startup.")
    return _http_client


def init_http_client(
    timeout: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create and store the shared client. `transport` lets tests route calls to a fake API."""
    global _http_client
    if _http_client is not None:
        return _http_client
    _http_client = httpx.AsyncClient(
        timeout=timeout if timeout is not None else settings.request_timeout_seconds,
        transport=transport,
    )
    return _http_client


async def close_http_client() -> None:
    """Close the shared client. Call on shutdown."""
    global _http_client
    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None
