"""Pytest configuration and shared fixtures: token stores and a fake Genova auth API."""

import json

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from genova.services.api_client import ApiClient
from genova.services.auth import AuthService
from genova.services.token_store import ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, USER_KEY, MemoryTokenStore

pytest_plugins = ["pytest_asyncio"]

BASE_URL = "http://genova.test/api"

STUDENT = {
    "id": "u-1",
    "email": "student@genova.test",
    "firstName": "Amina",
    "lastName": "Diallo",
    "role": "student",
    "avatarUrl": None,
    "walletBalance": 0,
}
STUDENT_PASSWORD = "password123"


def _error(status: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content={"success": False, "error": {"code": code, "message": message}})


class FakeGenovaApi:
    """In-process stand-in for the Genova auth routes, served through httpx.ASGITransport."""

    def __init__(self) -> None:
        self.app = FastAPI()
        self.access_tokens: dict[str, str] = {}  # token -> email
        self.refresh_tokens: dict[str, str] = {}
        self.refresh_requests: list[dict] = []
        self.revoked: list[str] = []
        self.registered: list[dict] = []
        self.reset_requests: list[str] = []
        self.rotate_refresh_tokens = False
        self._counter = 0
        self._add_routes()

    def _issue(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}{self._counter}"

    def expire_access_tokens(self) -> None:
        self.access_tokens.clear()

    def revoke_refresh_tokens(self) -> None:
        self.refresh_tokens.clear()

    def _bearer_email(self, request: Request) -> str | None:
        header = request.headers.get("Authorization", "")
        if not header.startswith("Bearer "):
            return None
        return self.access_tokens.get(header[7:])

    def _add_routes(self) -> None:
        app = self.app

        @app.post("/api/auth/login")
        async def login(request: Request):
            body = await request.json()
            if body.get("email") != STUDENT["email"] or body.get("password") != STUDENT_PASSWORD:
                return _error(401, "AUTHENTICATION_ERROR", "Invalid email or password")
            access = self._issue("A")
            refresh = self._issue("R")
            self.access_tokens[access] = STUDENT["email"]
            self.refresh_tokens[refresh] = STUDENT["email"]
            return {"success": True, "data": {"accessToken": access, "refreshToken": refresh, "user": STUDENT}}

        @app.post("/api/auth/refresh")
        async def refresh(request: Request):
            body = await request.json()
            self.refresh_requests.append({"body": body, "authorization": request.headers.get("Authorization")})
            email = self.refresh_tokens.get(body.get("refreshToken", ""))
            if email is None:
                return _error(401, "AUTHENTICATION_ERROR", "Invalid refresh token")
            access = self._issue("A")
            self.access_tokens[access] = email
            data = {"accessToken": access}
            if self.rotate_refresh_tokens:
                del self.refresh_tokens[body["refreshToken"]]
                rotated = self._issue("R")
                self.refresh_tokens[rotated] = email
                data["refreshToken"] = rotated
            return {"success": True, "message": "Token refreshed successfully", "data": data}

        @app.post("/api/auth/logout")
        async def logout(request: Request):
            body = await request.json()
            token = body.get("refreshToken")
            if not token:
                return _error(400, "VALIDATION_ERROR", "Refresh token is required")
            self.refresh_tokens.pop(token, None)
            self.revoked.append(token)
            return {"success": True, "message": "Logout successful"}

        @app.post("/api/auth/register")
        async def register(request: Request):
            body = await request.json()
            self.registered.append(body)
            return JSONResponse(status_code=201, content={"success": True, "data": {"user": {"email": body["email"]}}})

        @app.post("/api/auth/forgot-password")
        async def forgot_password(request: Request):
            body = await request.json()
            self.reset_requests.append(body["email"])
            return {"success": True}

        @app.get("/api/auth/me")
        async def me(request: Request):
            if self._bearer_email(request) is None:
                return _error(401, "AUTHENTICATION_ERROR", "Invalid or expired token")
            return {"success": True, "data": {"user": {**STUDENT, "firstName": "Amina-Updated"}}}

        @app.get("/api/tutors")
        async def tutors(request: Request):
            if self._bearer_email(request) is None:
                return _error(401, "AUTHENTICATION_ERROR", "Invalid or expired token")
            return {"success": True, "data": [{"id": "t-1", "hourlyRate": 25}]}


@pytest.fixture
def store():
    """Empty in-memory token store."""
    return MemoryTokenStore()


@pytest.fixture
def signed_in_store():
    """Store holding accessToken=A1, refreshToken=R1 and a cached user."""
    return MemoryTokenStore(
        {
            ACCESS_TOKEN_KEY: "A1",
            REFRESH_TOKEN_KEY: "R1",
            USER_KEY: json.dumps(STUDENT),
        }
    )


@pytest.fixture
def fake_api():
    return FakeGenovaApi()


@pytest_asyncio.fixture
async def api_client(store, fake_api):
    """ApiClient over the fake API through ASGITransport."""
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=fake_api.app)) as http:
        yield ApiClient(store, http=http, base_url=BASE_URL)


@pytest_asyncio.fixture
async def auth(api_client):
    service = AuthService(api_client)
    yield service
    await service.close()
