"""Pytest configuration and fixtures."""
from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any

import pytest
from aiohttp import web

from websub_service.main import create_app
from websub_service.settings import Settings

from tests.utils import CALLBACK_BASE_URL


@dataclass
class FakeHub:
    """In-process hub that records form posts and answers with a canned response."""

    url: str = ""
    token_url: str = ""
    status: int = 202
    body: Any = None
    requests: list[dict[str, str]] = field(default_factory=list)
    headers: list[dict[str, str]] = field(default_factory=list)
    token_requests: list[dict[str, str]] = field(default_factory=list)
    gate: asyncio.Event | None = None

    async def handle(self, request: web.Request) -> web.Response:
        form = await request.post()
        self.requests.append({key: str(value) for key, value in form.items()})
        self.headers.append(dict(request.headers))
        if self.gate is not None:
            await self.gate.wait()
        if self.body is None:
            return web.Response(status=self.status)
        text = self.body if isinstance(self.body, str) else json.dumps(self.body)
        return web.Response(status=self.status, text=text, content_type="application/json")

    async def handle_token(self, request: web.Request) -> web.Response:
        form = await request.post()
        self.token_requests.append({key: str(value) for key, value in form.items()})
        return web.json_response({"access_token": "app-token", "expires_in": 3600, "token_type": "bearer"})

    def reject(self, status: int = 400, message: str = "invalid callback") -> None:
        self.status = status
        self.body = {"error": "Bad Request", "status": status, "message": message}

    def last(self, mode: str) -> dict[str, str]:
        return [r for r in self.requests if r.get("hub.mode") == mode][-1]


@pytest.fixture
async def fake_hub(aiohttp_server):
    hub = FakeHub()
    app = web.Application()
    app.router.add_post("/hub", hub.handle)
    app.router.add_post("/token", hub.handle_token)
    server = await aiohttp_server(app)
    hub.url = str(server.make_url("/hub"))
    hub.token_url = str(server.make_url("/token"))
    return hub


@pytest.fixture
def test_settings(fake_hub) -> Settings:
    return Settings(
        hub_url=fake_hub.url,
        callback_base_url=CALLBACK_BASE_URL,
        oauth2_client_id="",
        accept_unsigned_notifications=False,
    )


@pytest.fixture
def notifications() -> list[tuple[str, bytes]]:
    return []


@pytest.fixture
async def service_client(aiohttp_client, test_settings, notifications):
    """Client for calling the service API, with a recording notification sink."""

    async def sink(topic, body) -> None:
        notifications.append((topic, body.read()))

    app = create_app(test_settings, notification_sink=sink)
    return await aiohttp_client(app)

