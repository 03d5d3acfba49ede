"""
Session teardown: wipe stored credentials and tell the UI the session is over.

The HTTP layer never navigates. Screens subscribe with add_listener() and route
to login when they receive SessionEnded.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from genova.services.token_store import SESSION_KEYS, TokenStore

logger = logging.getLogger(__name__)

REASON_EXPIRED = "expired"
REASON_LOGOUT = "logout"


@dataclass(frozen=True)
class SessionEnded:
    reason: str


SessionListener = Callable[[SessionEnded], Awaitable[None] | None]


class SessionManager:
    def __init__(self, store: TokenStore) -> None:
        self._store = store
        self._listeners: list[SessionListener] = []
        self._teardown_task: asyncio.Task[None] | None = None
        self._generation = 0

    @property
    def generation(self) -> int:
        """Bumped by every teardown. Work started under an older generation must not write credentials."""
        return self._generation

    @property
    def is_logging_out(self) -> bool:
        """True while a teardown is running; new requests are rejected with LoggingOut."""
        return self._teardown_task is not None

    def add_listener(self, listener: SessionListener) -> Callable[[], None]:
        """Subscribe to session end. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def teardown(self, reason: str = REASON_EXPIRED) -> None:
        """
        Delete every stored credential and notify listeners once.
        Concurrent callers join the teardown already running instead of starting another.
        """
        task = self._teardown_task
        if task is None:
            self._generation += 1
            task = asyncio.create_task(self._run_teardown(reason))
            self._teardown_task = task
        else:
            logger.debug("Teardown already in progress; joining it (reason=%s)", reason)
        await asyncio.shield(task)

    async def _run_teardown(self, reason: str) -> None:
        try:
            logger.info("Ending session (reason=%s)", reason)
            for key in SESSION_KEYS:
                try:
                    await self._store.delete(key)
                except OSError as e:
                    logger.error("Failed to delete %s from token store: %s", key, e)
            await self._notify(SessionEnded(reason=reason))
        finally:
            self._teardown_task = None

    async def _notify(self, event: SessionEnded) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Session listener %r failed", listener)
