"""OAuth2 client-credentials bearer tokens for hub calls."""
from __future__ import annotations

import asyncio
import time

import pydantic
from aiohttp import ClientError, ClientSession
from pydantic import BaseModel

from websub_service.core.exceptions import TransportError

# Refresh this many seconds before the token actually expires
EXPIRY_SKEW_SECONDS = 60


class TokenResponse(BaseModel):
    access_token: str
    expires_in: int = 3600
    token_type: str = "bearer"


class ClientCredentialsTokenSource:
    """Fetches and caches an app access token, sending credentials as form params."""

    def __init__(
        self,
        session: ClientSession,
        *,
        token_url: str,
        client_id: str,
        client_secret: str,
    ):
        self._session = session
        self._token_url = token_url
        self._client_id = client_id
        self._client_secret = client_secret
        self._token: str | None = None
        self._expires_at = 0.0
        self._lock = asyncio.Lock()

    async def token(self) -> str:
        async with self._lock:
            if self._token is None or time.monotonic() >= self._expires_at:
                self._token = await self._fetch()
            return self._token

    async def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {await self.token()}",
            "Client-Id": self._client_id,
        }

    async def _fetch(self) -> str:
        form = {
            "grant_type": "client_credentials",
            "client_id": self._client_id,
            "client_secret": self._client_secret,
        }
        try:
            async with self._session.post(self._token_url, data=form) as resp:
                status = resp.status
                raw = await resp.read()
        except (ClientError, asyncio.TimeoutError) as exc:
            raise TransportError(f"token request failed: {exc}") from exc
        if status != 200:
            raise TransportError(f"token endpoint answered HTTP {status}")
        try:
            parsed = TokenResponse.model_validate_json(raw)
        except pydantic.ValidationError as exc:
            raise TransportError("token endpoint returned an unreadable body") from exc
        self._expires_at = time.monotonic() + max(parsed.expires_in - EXPIRY_SKEW_SECONDS, 0)
        return parsed.access_token
