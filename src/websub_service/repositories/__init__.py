from websub_service.repositories.subscriptions import (
    InMemorySubscriptionStore,
    RenewHandler,
    SubscriptionStore,
)

__all__ = [
    "InMemorySubscriptionStore",
    "RenewHandler",
    "SubscriptionStore",
]
