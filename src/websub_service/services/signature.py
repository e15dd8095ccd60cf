"""Authenticity checks for hub content notifications."""
from __future__ import annotations

import hmac
import io
from hashlib import sha256
from typing import NamedTuple

from aiohttp import web

from websub_service.core.exceptions import NotFoundError, ValidationError
from websub_service.repositories.subscriptions import SubscriptionStore
from websub_service.services.identifiers import subscription_id_to_topic

SIGNATURE_HEADER = "X-Hub-Signature"
_SCHEME_PREFIX = "sha256="


def compute_signature(secret: str, body: bytes) -> bytes:
    return hmac.new(secret.encode("utf-8"), body, sha256).digest()


def decode_signature(header_value: str) -> bytes:
    """Hex digest from the signature header; an optional ``sha256=`` prefix is dropped."""
    value = header_value.strip()
    if value.startswith(_SCHEME_PREFIX):
        value = value[len(_SCHEME_PREFIX):]
    try:
        return bytes.fromhex(value)
    except ValueError as exc:
        raise ValidationError(f"{SIGNATURE_HEADER} is not hex encoded") from exc


class SignatureCheck(NamedTuple):
    valid: bool
    body: io.BytesIO
    topic: str


class SignatureValidator:
    """Checks a notification body against the secret of the subscription it targets."""

    def __init__(self, store: SubscriptionStore):
        self._store = store

    async def validate(self, request: web.Request) -> tuple[bool, io.BytesIO]:
        """Return ``(valid, body)``. See :meth:`check`."""
        result = await self.check(request)
        return result.valid, result.body

    async def check(self, request: web.Request) -> SignatureCheck:
        """Validate a notification and report the topic its id decoded to.

        The trailing path segment of the request is the subscription id. A
        missing signature header yields ``valid=False`` without comparing, so
        the caller decides what to do with unsigned deliveries. The body is
        always returned as a fresh stream because the request body has been
        consumed.

        Raises ValidationError for a malformed id or signature and
        NotFoundError when the id points at an unknown topic.
        """
        subscription_id = request.path.rsplit("/", 1)[-1]
        topic = subscription_id_to_topic(subscription_id)

        subscription = await self._store.get(topic)
        if subscription is None:
            raise NotFoundError(f"no subscription for topic {topic!r}")

        raw = await request.read()
        body = io.BytesIO(raw)

        header = request.headers.get(SIGNATURE_HEADER)
        if not header:
            return SignatureCheck(False, body, topic)

        provided = decode_signature(header)
        expected = compute_signature(subscription.secret, raw)
        return SignatureCheck(hmac.compare_digest(expected, provided), body, topic)
