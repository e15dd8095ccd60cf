"""Subscription storage with per-topic lease timers."""
from __future__ import annotations

import asyncio
import dataclasses
from dataclasses import dataclass
from datetime import timedelta
from typing import Awaitable, Callable, Protocol

import structlog

from websub_service.domain.subscriptions import RenewalAction, Subscription

logger = structlog.get_logger(__name__)

RenewHandler = Callable[[RenewalAction], Awaitable[None]]


class SubscriptionStore(Protocol):
    """Storage contract shared by the in-memory cache and durable backends."""

    async def get(self, topic: str) -> Subscription | None: ...

    async def save(self, topic: str, subscription: Subscription) -> None: ...

    async def delete(self, topic: str) -> None: ...

    async def set_lease(self, topic: str, lease: timedelta) -> bool: ...


@dataclass
class _Entry:
    subscription: Subscription
    timer: asyncio.TimerHandle


class InMemorySubscriptionStore:
    """Keeps one subscription per topic and renews it when its lease runs out.

    Every entry owns exactly one armed timer. Replacing or deleting an entry
    cancels that timer first, so a topic never has two renewals competing.
    Timer callbacks run outside the lock and come back in through :meth:`save`
    via the renew handler.

    ``set_lease`` rearms the timer with the lease that was stored *before* the
    call and only then records the confirmed lease. Pass
    ``rearm_on_confirmed_lease=True`` to rearm with the confirmed lease instead.

    Reads and writes share one exclusive ``asyncio.Lock``. Nothing awaits while
    it is held, so a reader never waits behind a slow writer and a separate
    shared-read lock would buy nothing on a single event loop.
    """

    def __init__(
        self,
        renew_handler: RenewHandler | None = None,
        *,
        rearm_on_confirmed_lease: bool = False,
    ):
        self._entries: dict[str, _Entry] = {}
        self._lock = asyncio.Lock()
        self._renew_handler = renew_handler
        self._rearm_on_confirmed_lease = rearm_on_confirmed_lease
        self._renewals: set[asyncio.Task[None]] = set()

    def set_renew_handler(self, handler: RenewHandler) -> None:
        self._renew_handler = handler

    async def get(self, topic: str) -> Subscription | None:
        async with self._lock:
            entry = self._entries.get(topic)
            return entry.subscription if entry is not None else None

    async def save(self, topic: str, subscription: Subscription) -> None:
        async with self._lock:
            previous = self._entries.get(topic)
            if previous is not None:
                previous.timer.cancel()
            timer = self._arm(topic, subscription.lease, subscription)
            self._entries[topic] = _Entry(subscription=subscription, timer=timer)

    async def set_lease(self, topic: str, lease: timedelta) -> bool:
        async with self._lock:
            entry = self._entries.get(topic)
            if entry is None:
                return False
            entry.timer.cancel()
            delay = lease if self._rearm_on_confirmed_lease else entry.subscription.lease
            updated = dataclasses.replace(entry.subscription, lease=lease)
            self._entries[topic] = _Entry(
                subscription=updated,
                timer=self._arm(topic, delay, updated),
            )
            return True

    async def delete(self, topic: str) -> None:
        async with self._lock:
            entry = self._entries.pop(topic, None)
            if entry is not None:
                entry.timer.cancel()

    async def close(self) -> None:
        """Cancel every lease timer and any renewal still in flight."""
        async with self._lock:
            for entry in self._entries.values():
                entry.timer.cancel()
            self._entries.clear()
        renewals = list(self._renewals)
        for task in renewals:
            task.cancel()
        if renewals:
            await asyncio.gather(*renewals, return_exceptions=True)

    def _arm(self, topic: str, delay: timedelta, subscription: Subscription) -> asyncio.TimerHandle:
        loop = asyncio.get_running_loop()
        return loop.call_later(delay.total_seconds(), self._on_lease_expired, topic, subscription)

    def _on_lease_expired(self, topic: str, subscription: Subscription) -> None:
        if self._renew_handler is None:
            logger.warning("subscription lease expired without renew handler", topic=topic)
            return
        logger.info("subscription lease expired, renewing", topic=topic)
        task = asyncio.create_task(self._renew(self._renew_handler, topic, subscription.renewal))
        self._renewals.add(task)
        task.add_done_callback(self._renewals.discard)

    async def _renew(self, handler: RenewHandler, topic: str, action: RenewalAction) -> None:
        try:
            await handler(action)
        except Exception:
            logger.exception("subscription renewal failed", topic=topic)
