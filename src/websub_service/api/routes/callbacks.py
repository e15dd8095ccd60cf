"""Hub callback endpoints: handshake confirmations and content notifications."""
from __future__ import annotations

import re
from datetime import timedelta

import structlog
from aiohttp import web

from websub_service.api.utils import require_query
from websub_service.core.exceptions import NotFoundError, ValidationError
from websub_service.repositories.subscriptions import SubscriptionStore
from websub_service.services.dependencies import (
    get_notification_sink,
    get_settings,
    get_signature_validator,
    get_store,
)
from websub_service.services.signature import SIGNATURE_HEADER

logger = structlog.get_logger(__name__)

MODE_SUBSCRIBE = "subscribe"
MODE_UNSUBSCRIBE = "unsubscribe"
MODE_DENIED = "denied"

_LEASE_PATTERN = re.compile(r"\+?[0-9]+")


async def _echo_challenge(request: web.Request, challenge: str) -> web.StreamResponse:
    """Write the challenge back; a failed write is only logged since the hub cannot be answered twice."""
    payload = challenge.encode("utf-8")
    response = web.StreamResponse(status=200, headers={"Content-Type": "text/plain"})
    response.content_length = len(payload)
    try:
        await response.prepare(request)
        await response.write(payload)
        await response.write_eof()
    except ConnectionResetError as exc:
        logger.info("error responding with challenge", error=str(exc))
    return response


def _parse_lease(raw: str) -> timedelta | None:
    """Positive decimal seconds, ASCII digits only; None when unusable."""
    if not _LEASE_PATTERN.fullmatch(raw):
        return None
    try:
        lease = timedelta(seconds=int(raw))
    except (ValueError, OverflowError):
        return None
    return lease if lease > timedelta(0) else None


def _storage_failure(action: str) -> web.HTTPInternalServerError:
    logger.exception(f"error {action} subscription")
    return web.HTTPInternalServerError(text=f"error {action} subscription")


async def _handle_denied(store: SubscriptionStore, topic: str, reason: str) -> web.StreamResponse:
    try:
        subscription = await store.get(topic)
    except Exception:
        raise _storage_failure("retrieving")
    if subscription is None:
        raise web.HTTPNotFound(text="subscription not found")

    logger.warning("subscription denied by hub", topic=topic, reason=reason)
    try:
        subscription.deny(reason)
    except Exception:
        logger.exception("denial callback failed", topic=topic)

    try:
        await store.delete(topic)
    except Exception:
        raise _storage_failure("deleting")
    return web.Response(status=200)


async def _handle_subscribe(
    request: web.Request,
    store: SubscriptionStore,
    topic: str,
) -> web.StreamResponse:
    query = request.rel_url.query
    challenge = require_query(request, "hub.challenge")

    raw_lease = query.get("hub.lease") or query.get("hub.lease_seconds", "")
    lease = _parse_lease(raw_lease)
    if lease is None:
        logger.info("received invalid lease from subscription confirmation", topic=topic)
        raise web.HTTPBadRequest(text="invalid lease")
    seconds = int(lease.total_seconds())

    try:
        exists = await store.set_lease(topic, lease)
    except Exception:
        raise _storage_failure("updating")
    if not exists:
        raise web.HTTPNotFound(text="subscription does not exist")

    logger.info("subscription confirmed", topic=topic, lease_seconds=seconds)
    return await _echo_challenge(request, challenge)


async def _handle_unsubscribe(
    request: web.Request,
    store: SubscriptionStore,
    topic: str,
) -> web.StreamResponse:
    # Deletion stands even when the confirmation turns out to be malformed.
    try:
        await store.delete(topic)
    except Exception:
        raise _storage_failure("deleting")

    challenge = request.rel_url.query.get("hub.challenge", "")
    if not challenge:
        logger.info("unsubscribe confirmation missing hub.challenge", topic=topic)
        raise web.HTTPBadRequest(text="missing required hub.challenge query parameter")

    logger.info("unsubscription confirmed", topic=topic)
    return await _echo_challenge(request, challenge)


async def confirm_subscription(request: web.Request) -> web.StreamResponse:
    """Hub handshake: subscribe and unsubscribe confirmations, and denials."""
    mode = require_query(request, "hub.mode")
    topic = require_query(request, "hub.topic")
    store = get_store(request)

    if mode == MODE_DENIED:
        return await _handle_denied(store, topic, request.rel_url.query.get("hub.reason", ""))
    if mode == MODE_SUBSCRIBE:
        return await _handle_subscribe(request, store, topic)
    if mode == MODE_UNSUBSCRIBE:
        return await _handle_unsubscribe(request, store, topic)
    raise web.HTTPBadRequest(text="hub.mode must be subscribe, unsubscribe or denied")


async def receive_notification(request: web.Request) -> web.Response:
    validator = get_signature_validator(request)
    try:
        result = await validator.check(request)
    except ValidationError as exc:
        raise web.HTTPBadRequest(text=str(exc)) from exc
    except NotFoundError as exc:
        raise web.HTTPNotFound(text="subscription not found") from exc

    signed = SIGNATURE_HEADER in request.headers
    if not result.valid and (signed or not get_settings(request).accept_unsigned_notifications):
        logger.warning("notification rejected", signed=signed)
        raise web.HTTPForbidden(text="invalid signature" if signed else "missing signature")

    await get_notification_sink(request)(result.topic, result.body)
    return web.Response(status=204)


def setup_routes(app: web.Application, callback_path: str) -> None:
    path = f"{callback_path.rstrip('/')}/{{subscription_id}}"
    app.router.add_get(path, confirm_subscription)
    app.router.add_post(path, receive_notification)
