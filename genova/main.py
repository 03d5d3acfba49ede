import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx

from genova.config import settings
from genova.services.api_client import ApiClient
from genova.services.auth import AuthService
from genova.services.http_client import close_http_client, init_http_client
from genova.services.token_store import FileTokenStore, TokenStore

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stdout,
    )
    if settings.debug:
        logging.getLogger("genova").setLevel(logging.DEBUG)


def create_auth_service(store: TokenStore | None = None) -> AuthService:
    """Wire store, session manager, API client and auth service. The shared HTTP client must be initialized."""
    client = ApiClient(store if store is not None else FileTokenStore())
    return AuthService(client)


@asynccontextmanager
async def lifespan(
    store: TokenStore | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncIterator[AuthService]:
    """Startup: validate config, open the shared HTTP client, restore any stored session. Shutdown: close both."""
    settings.validate_storage_config()
    init_http_client(transport=transport)
    auth = create_auth_service(store)
    try:
        user = await auth.restore_session()
        if user is not None:
            logger.info("Restored session for user_id=%s", user.id)
        yield auth
    finally:
        await auth.close()
        await close_http_client()
