"""
Single-flight access token refresh.

However many requests hit 401 at once, only one refresh exchange goes over the
network; every caller awaits the same task and gets the same token or the same error.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from genova.core.errors import ApiError, NetworkError, SessionExpired
from genova.core.session import REASON_EXPIRED, SessionManager
from genova.schemas.auth import TokenPair
from genova.services.token_store import ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, TokenStore

logger = logging.getLogger(__name__)

TokenExchange = Callable[[str], Awaitable[TokenPair]]


class RefreshCoordinator:
    def __init__(self, store: TokenStore, exchange: TokenExchange, sessions: SessionManager) -> None:
        self._store = store
        self._exchange = exchange
        self._sessions = sessions
        self._task: asyncio.Task[str] | None = None

    @property
    def in_flight(self) -> bool:
        return self._task is not None

    async def refresh(self) -> str:
        """
        Return a new access token, joining the refresh already in flight if there is one.
        Raises SessionExpired (session already torn down) or NetworkError (session kept).
        """
        task = self._task
        if task is None:
            task = asyncio.create_task(self._run())
            self._task = task
        # Shielded so a cancelled caller does not cancel the refresh for everyone else
        return await asyncio.shield(task)

    def _session_ended_since(self, generation: int) -> bool:
        return self._sessions.generation != generation

    def _raise_if_ended(self, generation: int) -> None:
        if self._session_ended_since(generation):
            logger.info("Session ended while refreshing; discarding refreshed tokens")
            raise SessionExpired()

    async def _run(self) -> str:
        # A teardown while the exchange is pending must win: nothing gets written back
        generation = self._sessions.generation
        try:
            refresh_token = await self._store.get(REFRESH_TOKEN_KEY)
            if not refresh_token:
                logger.info("No refresh token available; ending session")
                await self._sessions.teardown(REASON_EXPIRED)
                raise SessionExpired()
            try:
                tokens = await self._exchange(refresh_token)
            except NetworkError:
                raise
            except ApiError as e:
                logger.warning("Token refresh failed: %s", e)
                if not self._session_ended_since(generation):
                    await self._sessions.teardown(REASON_EXPIRED)
                raise SessionExpired() from e
            # Each check sits right before its write; a teardown that starts later deletes the write
            self._raise_if_ended(generation)
            await self._store.set(ACCESS_TOKEN_KEY, tokens.access_token)
            if tokens.refresh_token:
                # Server rotated the refresh token
                self._raise_if_ended(generation)
                await self._store.set(REFRESH_TOKEN_KEY, tokens.refresh_token)
            self._raise_if_ended(generation)
            logger.debug("Access token refreshed")
            return tokens.access_token
        finally:
            self._task = None
