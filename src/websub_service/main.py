"""aiohttp application entrypoint."""
from __future__ import annotations

from aiohttp import web

from websub_service.api.router import setup_routes
from websub_service.logging_config import configure_logging
from websub_service.middleware.trace import create_trace_middleware
from websub_service.repositories.subscriptions import InMemorySubscriptionStore
from websub_service.services.dependencies import (
    HUB_CLIENT_KEY,
    STORE_KEY,
    NotificationSink,
    install_dependencies,
    log_notification,
)
from websub_service.services.hub_client import HubClient
from websub_service.settings import Settings, settings

# Configure structured logging
configure_logging(settings.log_level)


def add_healthcheck(app: web.Application, app_settings: Settings) -> None:
    """Register a standard health check endpoint."""

    async def healthcheck(_request: web.Request) -> web.Response:
        return web.json_response(
            {"status": "ok", "service": app_settings.app_name, "env": app_settings.env}
        )

    app.router.add_get("/health", healthcheck)


async def close_subscriptions(app: web.Application) -> None:
    """Stop lease timers and release the hub session."""
    await app[STORE_KEY].close()
    await app[HUB_CLIENT_KEY].close()


def create_app(
    app_settings: Settings | None = None,
    *,
    notification_sink: NotificationSink | None = None,
) -> web.Application:
    """Create aiohttp application."""
    app_settings = app_settings or settings

    app = web.Application()
    app.middlewares.append(create_trace_middleware(app_settings.app_name))

    store = InMemorySubscriptionStore(
        rearm_on_confirmed_lease=app_settings.rearm_on_confirmed_lease,
    )
    hub_client = HubClient(app_settings, store)
    store.set_renew_handler(hub_client.renew)
    install_dependencies(
        app,
        settings=app_settings,
        store=store,
        hub_client=hub_client,
        notification_sink=notification_sink or log_notification,
    )

    add_healthcheck(app, app_settings)
    setup_routes(app, app_settings.callback_path)

    app.on_cleanup.append(close_subscriptions)
    return app


def main() -> None:
    """Run the application."""
    web.run_app(create_app(), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
