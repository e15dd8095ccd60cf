"""Subscription management endpoints."""
from __future__ import annotations

from datetime import timedelta
from functools import partial

import pydantic
import structlog
from aiohttp import web
from pydantic import BaseModel, Field

from websub_service.api.utils import read_json, require_query
from websub_service.core.exceptions import (
    NotFoundError,
    ProviderError,
    TransportError,
    ValidationError,
)
from websub_service.domain.subscriptions import SubscriptionRequest
from websub_service.services.dependencies import get_hub_client, get_settings

logger = structlog.get_logger(__name__)

routes = web.RouteTableDef()


MAX_LEASE_SECONDS = timedelta.max.days * 86400


class SubscriptionCreateDTO(BaseModel):
    topic: str = Field(min_length=1)
    lease_seconds: int | None = Field(default=None, gt=0, le=MAX_LEASE_SECONDS)


def _log_denial(topic: str, reason: str) -> None:
    logger.warning("subscription denied", topic=topic, reason=reason)


@routes.post("/api/v1/subscriptions")
async def create_subscription(request: web.Request):
    body = await read_json(request)
    try:
        dto = SubscriptionCreateDTO.model_validate(body)
    except pydantic.ValidationError as exc:
        raise web.HTTPBadRequest(text=exc.json()) from exc

    settings = get_settings(request)
    lease_seconds = dto.lease_seconds or settings.default_lease_seconds
    try:
        subscription_request = SubscriptionRequest.parse(
            topic=dto.topic,
            callback_base_url=str(settings.callback_base_url),
            lease=timedelta(seconds=lease_seconds),
        )
    except ValidationError as exc:
        raise web.HTTPBadRequest(text=str(exc)) from exc

    hub = get_hub_client(request)
    try:
        await hub.subscribe(subscription_request, partial(_log_denial, dto.topic))
    except (ProviderError, TransportError) as exc:
        raise web.HTTPBadGateway(text=str(exc)) from exc

    return web.json_response(
        {"topic": dto.topic, "lease_seconds": lease_seconds, "status": "pending"},
        status=202,
    )


@routes.delete("/api/v1/subscriptions")
async def delete_subscription(request: web.Request):
    topic = require_query(request, "topic")
    hub = get_hub_client(request)
    try:
        await hub.unsubscribe(topic)
    except NotFoundError as exc:
        raise web.HTTPNotFound(text=str(exc)) from exc
    except (ProviderError, TransportError) as exc:
        raise web.HTTPBadGateway(text=str(exc)) from exc
    return web.Response(status=204)
