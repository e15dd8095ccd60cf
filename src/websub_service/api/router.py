"""API router composition for aiohttp."""
from __future__ import annotations

from aiohttp import web

from websub_service.api.routes import callbacks, subscriptions


def setup_routes(app: web.Application, callback_path: str) -> None:
    """Attach management and hub callback routes to the aiohttp application."""
    app.add_routes(subscriptions.routes)
    callbacks.setup_routes(app, callback_path)
