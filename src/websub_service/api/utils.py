"""Helper utilities for API handlers."""
from __future__ import annotations

from typing import Any

from aiohttp import web


async def read_json(request: web.Request) -> dict[str, Any]:
    """Parse JSON body from request, raising HTTPBadRequest on invalid input."""
    try:
        data = await request.json()
    except Exception as exc:
        raise web.HTTPBadRequest(text="Invalid JSON payload") from exc
    if not isinstance(data, dict):
        raise web.HTTPBadRequest(text="JSON body must be an object")
    return data


def require_query(request: web.Request, name: str) -> str:
    value = request.rel_url.query.get(name, "")
    if not value:
        raise web.HTTPBadRequest(text=f"missing required {name} query parameter")
    return value
