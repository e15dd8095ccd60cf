"""Shared dependency providers for aiohttp handlers."""
from __future__ import annotations

import io
from typing import Awaitable, Callable

import structlog
from aiohttp import web

from websub_service.repositories.subscriptions import SubscriptionStore
from websub_service.services.hub_client import HubClient
from websub_service.services.signature import SignatureValidator
from websub_service.settings import Settings

logger = structlog.get_logger(__name__)

NotificationSink = Callable[[str, io.BytesIO], Awaitable[None]]

SETTINGS_KEY = "settings"
STORE_KEY = "subscription_store"
HUB_CLIENT_KEY = "hub_client"
SIGNATURE_VALIDATOR_KEY = "signature_validator"
NOTIFICATION_SINK_KEY = "notification_sink"


async def log_notification(topic: str, body: io.BytesIO) -> None:
    """Default sink: record that a verified notification arrived."""
    logger.info("notification received", topic=topic, size=len(body.getbuffer()))


def install_dependencies(
    app: web.Application,
    *,
    settings: Settings,
    store: SubscriptionStore,
    hub_client: HubClient,
    notification_sink: NotificationSink,
) -> None:
    app[SETTINGS_KEY] = settings
    app[STORE_KEY] = store
    app[HUB_CLIENT_KEY] = hub_client
    app[SIGNATURE_VALIDATOR_KEY] = SignatureValidator(store)
    app[NOTIFICATION_SINK_KEY] = notification_sink


def get_settings(request: web.Request) -> Settings:
    return request.app[SETTINGS_KEY]


def get_store(request: web.Request) -> SubscriptionStore:
    return request.app[STORE_KEY]


def get_hub_client(request: web.Request) -> HubClient:
    return request.app[HUB_CLIENT_KEY]


def get_signature_validator(request: web.Request) -> SignatureValidator:
    return request.app[SIGNATURE_VALIDATOR_KEY]


def get_notification_sink(request: web.Request) -> NotificationSink:
    return request.app[NOTIFICATION_SINK_KEY]
