"""Subscription domain primitives."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable

import pydantic
from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field, field_validator

from websub_service.core.exceptions import ValidationError

DenialCallback = Callable[[str], None]


class SubscriptionRequest(BaseModel):
    """Parameters of a subscribe call. Never persisted."""

    model_config = ConfigDict(frozen=True)

    topic: str = Field(min_length=1)
    callback_base_url: AnyHttpUrl
    lease: timedelta

    @field_validator("lease")
    @classmethod
    def _lease_positive(cls, value: timedelta) -> timedelta:
        if value <= timedelta(0):
            raise ValueError("lease must be positive")
        return value

    @classmethod
    def parse(cls, *, topic: str, callback_base_url: str, lease: timedelta | int) -> "SubscriptionRequest":
        """Build a request, raising the service ValidationError on bad input."""
        try:
            return cls(topic=topic, callback_base_url=callback_base_url, lease=lease)
        except pydantic.ValidationError as exc:
            raise ValidationError(str(exc)) from exc

    @property
    def lease_seconds(self) -> int:
        return int(self.lease.total_seconds())


@dataclass(frozen=True)
class RenewalAction:
    """What a lease-timer fire has to redo: the initial request and its denial handler."""

    request: SubscriptionRequest
    on_denied: DenialCallback


@dataclass(frozen=True)
class Subscription:
    topic: str
    callback_url: str
    lease: timedelta
    secret: str = field(repr=False)
    renewal: RenewalAction = field(repr=False, compare=False)

    def deny(self, reason: str) -> None:
        self.renewal.on_denied(reason)


class ProviderErrorBody(BaseModel):
    """Error document returned by the hub on a rejected request."""

    error: str
    status: int
    message: str
