#!/usr/bin/env python3
"""One-off: log in against the Genova API, print /auth/me, force a token refresh and log out.
Usage: API_BASE_URL=http://192.168.1.151:5001/api EMAIL=you@example.com PASSWORD=secret python scripts/debug_genova_api.py"""
import asyncio
import json
import os

from genova.core.errors import ApiError
from genova.main import configure_logging, lifespan
from genova.services.token_store import MemoryTokenStore

EMAIL = os.environ.get("EMAIL", "")
PASSWORD = os.environ.get("PASSWORD", "")


async def main():
    if not EMAIL or not PASSWORD:
        print("Set EMAIL and PASSWORD in environment")
        return
    configure_logging()
    async with lifespan(store=MemoryTokenStore()) as auth:
        auth.sessions.add_listener(lambda event: print("Session ended:", event.reason))
        try:
            user = await auth.login(EMAIL, PASSWORD)
        except ApiError as e:
            print("Login failed:", e)
            return
        print("=== POST /auth/login ===")
        print(json.dumps(user.model_dump(by_alias=True), indent=2, default=str))
        print()

        print("=== GET /auth/me ===")
        me = await auth.fetch_current_user()
        print(json.dumps(me.model_dump(by_alias=True), indent=2, default=str))
        print()

        print("=== POST /auth/refresh ===")
        token = await auth.client.refresh_access_token()
        print("New access token:", token[:12] + "...")
        print()

        await auth.logout()
        print("Logged out; authenticated:", auth.is_authenticated)


if __name__ == "__main__":
    asyncio.run(main())
