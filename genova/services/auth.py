"""
Auth flows on top of ApiClient: login, register, password reset, logout,
restoring a stored session, and the proactive refresh schedule.
"""
from __future__ import annotations

import logging
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from pydantic import ValidationError

from genova.config import settings
from genova.core.errors import ApiError, RequestFailed, SessionExpired
from genova.core.session import REASON_LOGOUT, SessionEnded
from genova.schemas.auth import LoginResponse, MeResponse, RegisterData, User
from genova.services.api_client import INVALID_RESPONSE_MESSAGE, ApiClient
from genova.services.token_store import ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, USER_KEY

logger = logging.getLogger(__name__)

LOGIN_PATH = "/auth/login"
REGISTER_PATH = "/auth/register"
LOGOUT_PATH = "/auth/logout"
ME_PATH = "/auth/me"
FORGOT_PASSWORD_PATH = "/auth/forgot-password"

REFRESH_JOB_ID = "genova_token_refresh"

# Unauthenticated calls: no bearer header, a 401 means bad credentials, not an expired token
_PUBLIC = {"requires_auth": False, "skip_token_refresh": True}


class AuthService:
    def __init__(self, client: ApiClient, scheduler: AsyncIOScheduler | None = None) -> None:
        self.client = client
        self.store = client.store
        self.sessions = client.sessions
        self._scheduler = scheduler
        self._user: User | None = None
        self.sessions.add_listener(self._on_session_ended)

    @property
    def current_user(self) -> User | None:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None

    @property
    def scheduler(self) -> AsyncIOScheduler:
        if self._scheduler is None:
            self._scheduler = AsyncIOScheduler()
        return self._scheduler

    def _on_session_ended(self, event: SessionEnded) -> None:
        self._user = None
        self.stop_auto_refresh()

    async def login(self, email: str, password: str) -> User:
        """Exchange credentials for tokens, persist the session and start the refresh schedule."""
        result = await self.client.post(LOGIN_PATH, {"email": email, "password": password}, **_PUBLIC)
        try:
            data = LoginResponse.model_validate(result).data
        except ValidationError as e:
            raise RequestFailed(INVALID_RESPONSE_MESSAGE, 200, body=result) from e
        await self.store.set(ACCESS_TOKEN_KEY, data.access_token)
        await self.store.set(REFRESH_TOKEN_KEY, data.refresh_token)
        await self._cache_user(data.user)
        self.start_auto_refresh()
        logger.info("Logged in user_id=%s role=%s", data.user.id, data.user.role.value)
        return data.user

    async def register(self, data: RegisterData) -> Any:
        """Create an account. Does not log in: the user signs in explicitly afterwards."""
        return await self.client.post(REGISTER_PATH, data.to_payload(), **_PUBLIC)

    async def request_password_reset(self, email: str) -> None:
        await self.client.post(FORGOT_PASSWORD_PATH, {"email": email}, **_PUBLIC)

    async def logout(self) -> None:
        """Revoke the refresh token server-side (best effort) and wipe the local session."""
        self.stop_auto_refresh()
        refresh_token = await self.store.get(REFRESH_TOKEN_KEY)
        if refresh_token and not self.sessions.is_logging_out:
            try:
                await self.client.post(LOGOUT_PATH, {"refreshToken": refresh_token}, **_PUBLIC)
            except ApiError as e:
                logger.warning("Server-side logout failed, clearing local session anyway: %s", e)
        await self.sessions.teardown(REASON_LOGOUT)

    async def restore_session(self) -> User | None:
        """Load the stored session at startup. Returns the cached user, or None when signed out."""
        token = await self.client.get_access_token()
        raw_user = await self.store.get(USER_KEY)
        if not token or not raw_user:
            return None
        try:
            user = User.model_validate_json(raw_user)
        except ValidationError as e:
            logger.warning("Cached user data unreadable, ignoring stored session: %s", e)
            return None
        self._user = user
        self.start_auto_refresh()
        return user

    async def fetch_current_user(self) -> User:
        """GET /auth/me and refresh the cached profile."""
        result = await self.client.get(ME_PATH)
        try:
            user = MeResponse.model_validate(result).data.user
        except ValidationError as e:
            raise RequestFailed(INVALID_RESPONSE_MESSAGE, 200, body=result) from e
        await self._cache_user(user)
        return user

    async def _cache_user(self, user: User) -> None:
        await self.store.set(USER_KEY, user.model_dump_json(by_alias=True))
        self._user = user

    def start_auto_refresh(self) -> None:
        """(Re)schedule the proactive refresh every token_refresh_interval_minutes."""
        self.scheduler.add_job(
            self.scheduled_refresh,
            "interval",
            minutes=settings.token_refresh_interval_minutes,
            id=REFRESH_JOB_ID,
            replace_existing=True,
        )
        if not self.scheduler.running:
            self.scheduler.start()

    def stop_auto_refresh(self) -> None:
        if self._scheduler is not None and self._scheduler.get_job(REFRESH_JOB_ID) is not None:
            self._scheduler.remove_job(REFRESH_JOB_ID)

    async def scheduled_refresh(self) -> None:
        try:
            await self.client.refresh_access_token()
        except SessionExpired:
            # Coordinator already tore the session down
            logger.info("Scheduled token refresh: session expired")
        except ApiError as e:
            logger.warning("Scheduled token refresh failed, will retry next run: %s", e)

    async def close(self) -> None:
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
