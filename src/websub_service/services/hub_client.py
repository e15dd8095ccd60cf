"""Subscribe/unsubscribe requests against the hub."""
from __future__ import annotations

import asyncio
from typing import NoReturn

import pydantic
import structlog
from aiohttp import ClientError, ClientSession, ClientTimeout

from websub_service.core.exceptions import (
    MalformedResponseError,
    NotFoundError,
    ProviderError,
    TransportError,
    WebSubError,
)
from websub_service.domain.subscriptions import (
    DenialCallback,
    ProviderErrorBody,
    RenewalAction,
    Subscription,
    SubscriptionRequest,
)
from websub_service.repositories.subscriptions import SubscriptionStore
from websub_service.services.credentials import ClientCredentialsTokenSource
from websub_service.services.identifiers import generate_secret, new_subscription_id
from websub_service.settings import Settings

logger = structlog.get_logger(__name__)

HUB_ACCEPTED = 202


def build_callback_url(base_url: str, subscription_id: str) -> str:
    return f"{base_url.rstrip('/')}/{subscription_id}"


def raise_provider_error(status: int, body: bytes) -> NoReturn:
    """Turn a rejected hub response into a ProviderError."""
    try:
        parsed = ProviderErrorBody.model_validate_json(body)
    except pydantic.ValidationError as exc:
        raise MalformedResponseError(
            f"hub answered HTTP {status} with an unreadable error body"
        ) from exc
    raise ProviderError(parsed.error, parsed.status, parsed.message)


class HubClient:
    """Talks to the hub on behalf of the subscription store.

    The HTTP session and the credential source are created on first use, once.
    A session passed in at construction is used as-is, without credentials,
    and is never closed by this client.
    """

    def __init__(
        self,
        settings: Settings,
        store: SubscriptionStore,
        *,
        session: ClientSession | None = None,
    ):
        self._settings = settings
        self._store = store
        self._hub_url = str(settings.hub_url)
        self._session = session
        self._owns_session = False
        self._credentials: ClientCredentialsTokenSource | None = None
        self._setup_lock = asyncio.Lock()
        self._ready = False

    async def _setup(self) -> ClientSession:
        async with self._setup_lock:
            if not self._ready:
                if self._session is None:
                    timeout = ClientTimeout(total=self._settings.hub_request_timeout_seconds)
                    self._session = ClientSession(timeout=timeout)
                    self._owns_session = True
                    if self._settings.oauth2_client_id:
                        self._credentials = ClientCredentialsTokenSource(
                            self._session,
                            token_url=str(self._settings.oauth2_token_url),
                            client_id=self._settings.oauth2_client_id,
                            client_secret=self._settings.oauth2_client_secret,
                        )
                self._ready = True
            if self._session is None:
                raise RuntimeError("hub client has no HTTP session")
            return self._session

    async def subscribe(self, request: SubscriptionRequest, on_denied: DenialCallback) -> None:
        """Ask the hub for a subscription; the hub confirms later via the callback."""
        session = await self._setup()

        subscription_id = new_subscription_id(request.topic)
        subscription = Subscription(
            topic=request.topic,
            callback_url=build_callback_url(str(request.callback_base_url), subscription_id),
            lease=request.lease,
            secret=generate_secret(self._settings.secret_bytes),
            renewal=RenewalAction(request=request, on_denied=on_denied),
        )

        form = {
            "hub.callback": subscription.callback_url,
            "hub.topic": subscription.topic,
            "hub.lease_seconds": str(request.lease_seconds),
            "hub.secret": subscription.secret,
            "hub.mode": "subscribe",
        }
        status, body = await self._post(session, form)
        if status != HUB_ACCEPTED:
            logger.warning("hub rejected subscription", topic=request.topic, status=status)
            raise_provider_error(status, body)

        await self._store.save(request.topic, subscription)
        logger.info(
            "subscription requested",
            topic=request.topic,
            lease_seconds=request.lease_seconds,
        )

    async def unsubscribe(self, topic: str) -> None:
        """Forget ``topic`` locally, then tell the hub.

        Local state is removed before the hub call so that a failed or
        duplicated unsubscribe never leaves a record behind.
        """
        session = await self._setup()

        subscription = await self._store.get(topic)
        if subscription is None:
            raise NotFoundError(f"no subscription for topic {topic!r}")
        await self._store.delete(topic)

        form = {
            "hub.mode": "unsubscribe",
            "hub.topic": topic,
            "hub.callback": subscription.callback_url,
        }
        status, body = await self._post(session, form)
        if status >= 400:
            raise_provider_error(status, body)
        logger.info("unsubscription requested", topic=topic)

    async def renew(self, action: RenewalAction) -> None:
        """Lease-timer handler. Failures are logged and not retried."""
        try:
            await self.subscribe(action.request, action.on_denied)
        except WebSubError as exc:
            logger.error(
                "unable to renew subscription",
                topic=action.request.topic,
                error=str(exc),
                error_type=type(exc).__name__,
            )

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()

    async def _post(self, session: ClientSession, form: dict[str, str]) -> tuple[int, bytes]:
        headers = await self._credentials.headers() if self._credentials is not None else {}
        try:
            async with session.post(self._hub_url, data=form, headers=headers) as resp:
                return resp.status, await resp.read()
        except (ClientError, asyncio.TimeoutError) as exc:
            raise TransportError(f"hub request failed: {exc}") from exc
