from websub_service.api.routes import callbacks, subscriptions

__all__ = ["callbacks", "subscriptions"]
