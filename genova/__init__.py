from genova.core.errors import ApiError, LoggingOut, NetworkError, RequestFailed, SessionExpired
from genova.core.session import SessionEnded, SessionManager
from genova.services.api_client import ApiClient
from genova.services.auth import AuthService
from genova.services.token_store import FileTokenStore, MemoryTokenStore

__all__ = [
    "ApiClient",
    "ApiError",
    "AuthService",
    "FileTokenStore",
    "LoggingOut",
    "MemoryTokenStore",
    "NetworkError",
    "RequestFailed",
    "SessionEnded",
    "SessionExpired",
    "SessionManager",
]
