"""Callback identifiers and subscription secrets.

A subscription id is ``base64url(4 random bytes + topic bytes)``. The random
prefix keeps callback paths unguessable; the topic stays recoverable from the
id, so the store never needs a second index keyed by id.
"""
from __future__ import annotations

import base64
import binascii
import re
import secrets

from websub_service.core.exceptions import CryptoSourceError, ValidationError

ID_PREFIX_BYTES = 4
DEFAULT_SECRET_BYTES = 64

_BASE64URL_RE = re.compile(r"^[A-Za-z0-9_-]*={0,2}$")


def _random_bytes(size: int) -> bytes:
    try:
        return secrets.token_bytes(size)
    except (NotImplementedError, OSError) as exc:
        raise CryptoSourceError("random source is unavailable") from exc


def new_subscription_id(topic: str) -> str:
    """Mint a fresh, unlisted callback id for ``topic``."""
    raw = _random_bytes(ID_PREFIX_BYTES) + topic.encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii")


def subscription_id_to_topic(subscription_id: str) -> str:
    """Recover the topic embedded in a callback id."""
    if not _BASE64URL_RE.match(subscription_id):
        raise ValidationError("subscription id is not base64url")
    try:
        raw = base64.urlsafe_b64decode(subscription_id)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError("subscription id is not base64url") from exc
    if len(raw) < ID_PREFIX_BYTES:
        raise ValidationError("subscription id is too short")
    try:
        return raw[ID_PREFIX_BYTES:].decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ValidationError("subscription id does not embed a utf-8 topic") from exc


def generate_secret(size: int = DEFAULT_SECRET_BYTES) -> str:
    """Hex-encoded shared secret used to sign hub notifications."""
    return _random_bytes(size).hex()
