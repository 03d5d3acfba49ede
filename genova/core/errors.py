"""
Errors raised by the Genova API client.

Four kinds, all subclasses of ApiError:
  SessionExpired  refresh token missing or refresh failed; session already torn down
  RequestFailed   non-2xx response outside the refresh path
  NetworkError    transport failure (host unreachable, timeout)
  LoggingOut      request issued while the session is being torn down
"""

from __future__ import annotations

from typing import Any

SESSION_EXPIRED_MESSAGE = "Session expired. Please login again."


class ApiError(Exception):
    """Base class for every error surfaced by the client."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class SessionExpired(ApiError):
    def __init__(self, message: str = SESSION_EXPIRED_MESSAGE) -> None:
        super().__init__(message)


class RequestFailed(ApiError):
    def __init__(
        self,
        message: str,
        status_code: int,
        *,
        code: str | None = None,
        body: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.body = body

    def __repr__(self) -> str:
        return f"RequestFailed(status_code={self.status_code}, code={self.code!r}, message={self.message!r})"


class NetworkError(ApiError):
    def __init__(self, message: str, *, method: str | None = None, url: str | None = None) -> None:
        super().__init__(message)
        self.method = method
        self.url = url


class LoggingOut(ApiError):
    """Callers should swallow this: the user is already being sent to login."""

    def __init__(self, message: str = "Logout in progress") -> None:
        super().__init__(message)


def error_message_from_body(body: Any, status_code: int) -> str:
    """Pick the server's error message out of a parsed JSON body, else a generic status message."""
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str) and error["message"]:
            return error["message"]
        for key in ("message", "error", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return f"Request failed with status {status_code}"


def error_code_from_body(body: Any) -> str | None:
    """Server error code ({"error": {"code": "..."}}), if any."""
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and isinstance(error.get("code"), str):
            return error["code"]
    return None
