from __future__ import annotations

from datetime import timedelta

from websub_service.domain.subscriptions import RenewalAction, Subscription, SubscriptionRequest
from websub_service.services.identifiers import new_subscription_id

CALLBACK_BASE_URL = "http://subscriber.test/webhooks/callbacks"
CALLBACK_PATH = "/webhooks/callbacks"


def make_subscription(
    topic: str = "video.change",
    *,
    lease: timedelta = timedelta(hours=1),
    secret: str = "s",
    callback_url: str | None = None,
    on_denied=None,
) -> Subscription:
    request = SubscriptionRequest(topic=topic, callback_base_url=CALLBACK_BASE_URL, lease=lease)
    return Subscription(
        topic=topic,
        callback_url=callback_url or f"{CALLBACK_BASE_URL}/cb",
        lease=lease,
        secret=secret,
        renewal=RenewalAction(request=request, on_denied=on_denied or (lambda reason: None)),
    )


def callback_path_for(topic: str) -> str:
    return f"{CALLBACK_PATH}/{new_subscription_id(topic)}"
