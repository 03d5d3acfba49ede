"""
Genova API client: attaches the access token, refreshes it once on 401 and retries.
All requests go through request(); get/post/put/patch/delete are thin wrappers.
"""
from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from genova.config import settings
from genova.core.errors import (
    LoggingOut,
    NetworkError,
    RequestFailed,
    SessionExpired,
    error_code_from_body,
    error_message_from_body,
)
from genova.core.refresh import RefreshCoordinator
from genova.core.session import REASON_EXPIRED, SessionManager
from genova.schemas.auth import RefreshResponse, TokenPair
from genova.services.crypto import InvalidEncryptionKey
from genova.services.http_client import get_http_client
from genova.services.token_store import ACCESS_TOKEN_KEY, TokenStore

logger = logging.getLogger(__name__)

REFRESH_PATH = "/auth/refresh"
INVALID_RESPONSE_MESSAGE = "Invalid response from server"


def _parse_json(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None


def _log_response_error(method: str, url: str, response: httpx.Response) -> None:
    """Log HTTP error without sensitive data."""
    body = (response.text or "")[:500]
    logger.warning(
        "Genova API %s %s -> %s body=%s",
        method,
        url,
        response.status_code,
        body,
    )


class ApiClient:
    def __init__(
        self,
        store: TokenStore,
        sessions: SessionManager | None = None,
        *,
        http: httpx.AsyncClient | None = None,
        base_url: str | None = None,
    ) -> None:
        self.store = store
        self.sessions = sessions or SessionManager(store)
        self._http = http
        self.base_url = base_url.rstrip("/") if base_url else settings.base_url
        self.coordinator = RefreshCoordinator(store, self._exchange_refresh_token, self.sessions)

    @property
    def http(self) -> httpx.AsyncClient:
        return self._http if self._http is not None else get_http_client()

    def url_for(self, path: str) -> str:
        """Absolute URLs pass through; paths are joined to the API base URL."""
        return path if path.startswith("http") else f"{self.base_url}{path}"

    async def get_access_token(self) -> str | None:
        try:
            return await self.store.get(ACCESS_TOKEN_KEY)
        except (OSError, InvalidEncryptionKey) as e:
            # Unreadable store means not authenticated
            logger.error("Failed to read access token: %s", e)
            return None

    async def refresh_access_token(self) -> str:
        return await self.coordinator.refresh()

    async def _token_for_retry(self, sent_token: str | None) -> str:
        """
        Token to retry a 401 with. If a refresh finished after this request was sent,
        the stored token is already newer than the rejected one and is reused as is.
        """
        if not self.coordinator.in_flight:
            current = await self.get_access_token()
            if current and current != sent_token:
                logger.debug("Access token changed while request was in flight; retrying without refresh")
                return current
        return await self.coordinator.refresh()

    async def _exchange_refresh_token(self, refresh_token: str) -> TokenPair:
        # No bearer header and no retry: a 401 here must not start another refresh
        result = await self.request(
            REFRESH_PATH,
            "POST",
            {"refreshToken": refresh_token},
            requires_auth=False,
            skip_token_refresh=True,
        )
        try:
            return RefreshResponse.model_validate(result).data
        except ValidationError as e:
            raise RequestFailed(INVALID_RESPONSE_MESSAGE, 200, body=result) from e

    async def _send(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        json: Any,
        params: dict[str, Any] | None,
    ) -> httpx.Response:
        try:
            return await self.http.request(method, url, headers=headers, json=json, params=params)
        except httpx.TransportError as e:
            logger.warning("Genova API %s %s network error: %s", method, url, e)
            raise NetworkError(f"Network error: {e}", method=method, url=url) from e

    def _handle_response(self, method: str, url: str, response: httpx.Response) -> Any:
        if response.is_success:
            if not response.content:
                return None
            try:
                return response.json()
            except ValueError as e:
                raise RequestFailed(INVALID_RESPONSE_MESSAGE, response.status_code) from e
        _log_response_error(method, url, response)
        body = _parse_json(response)
        raise RequestFailed(
            error_message_from_body(body, response.status_code),
            response.status_code,
            code=error_code_from_body(body),
            body=body,
        )

    async def request(
        self,
        path: str,
        method: str = "GET",
        json: Any = None,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        requires_auth: bool = True,
        skip_token_refresh: bool = False,
    ) -> Any:
        """
        Send a request and return the parsed JSON body (None when empty).

        A 401 on an authenticated call triggers one token refresh and one retry.
        Raises SessionExpired, RequestFailed, NetworkError or LoggingOut.
        """
        if self.sessions.is_logging_out:
            raise LoggingOut()
        method = method.upper()
        request_headers = {"Content-Type": "application/json", **(headers or {})}
        sent_token = None
        if requires_auth:
            sent_token = await self.get_access_token()
            if sent_token:
                request_headers["Authorization"] = f"Bearer {sent_token}"
        url = self.url_for(path)

        response = await self._send(method, url, request_headers, json, params)

        if response.status_code == 401 and requires_auth and not skip_token_refresh:
            new_token = await self._token_for_retry(sent_token)
            request_headers["Authorization"] = f"Bearer {new_token}"
            response = await self._send(method, url, request_headers, json, params)
            if response.status_code == 401:
                logger.warning("Genova API %s %s still unauthorized after token refresh", method, url)
                await self.sessions.teardown(REASON_EXPIRED)
                raise SessionExpired()

        return self._handle_response(method, url, response)

    async def get(self, path: str, **options: Any) -> Any:
        return await self.request(path, "GET", **options)

    async def post(self, path: str, data: Any = None, **options: Any) -> Any:
        return await self.request(path, "POST", data, **options)

    async def put(self, path: str, data: Any = None, **options: Any) -> Any:
        return await self.request(path, "PUT", data, **options)

    async def patch(self, path: str, data: Any = None, **options: Any) -> Any:
        return await self.request(path, "PATCH", data, **options)

    async def delete(self, path: str, **options: Any) -> Any:
        return await self.request(path, "DELETE", **options)
