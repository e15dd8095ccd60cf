"""Middleware binding trace/request ids to structlog and logging each request."""
from __future__ import annotations

import time
from uuid import UUID, uuid4

import structlog
from aiohttp import web

TRACE_ID_HEADER = "X-Trace-Id"
REQUEST_ID_HEADER = "X-Request-Id"

logger = structlog.get_logger(__name__)

SENSITIVE_HEADERS = {
    "authorization",
    "cookie",
    "set-cookie",
    "client-id",
    "x-hub-signature",
}

# Hub handshake values that must not end up in logs
SENSITIVE_QUERY_PARAMS = {
    "hub.secret",
    "hub.challenge",
}


def _id_from_header(request: web.Request, header: str) -> str:
    value = request.headers.get(header)
    if value:
        try:
            UUID(value)
            return value
        except ValueError:
            pass
    return str(uuid4())


def get_safe_headers(headers) -> dict[str, str]:
    return {key: value for key, value in headers.items() if key.lower() not in SENSITIVE_HEADERS}


def get_safe_query(request: web.Request) -> dict[str, str]:
    return {
        key: "***" if key in SENSITIVE_QUERY_PARAMS else value
        for key, value in request.rel_url.query.items()
    }


def create_trace_middleware(service_name: str):
    """Create trace middleware with specified service name."""

    @web.middleware
    async def trace_middleware(request: web.Request, handler):
        start_time = time.monotonic()
        trace_id = _id_from_header(request, TRACE_ID_HEADER)
        request_id = _id_from_header(request, REQUEST_ID_HEADER)
        request["trace_id"] = trace_id
        request["request_id"] = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            trace_id=trace_id,
            request_id=request_id,
            service=service_name,
            method=request.method,
            path=request.path,
        )
        logger.info(
            "Incoming request",
            query=get_safe_query(request),
            headers=get_safe_headers(request.headers),
        )

        try:
            response = await handler(request)
            duration_ms = round((time.monotonic() - start_time) * 1000, 2)
            if response.status >= 400:
                logger.warning(
                    "Request completed with error status",
                    status_code=response.status,
                    duration_ms=duration_ms,
                )
            else:
                logger.info("Request completed", status_code=response.status, duration_ms=duration_ms)
            if not response.prepared:
                response.headers[TRACE_ID_HEADER] = trace_id
                response.headers[REQUEST_ID_HEADER] = request_id
            return response
        except web.HTTPException as e:
            logger.warning(
                "Request failed with HTTP exception",
                status_code=e.status_code,
                duration_ms=round((time.monotonic() - start_time) * 1000, 2),
                error=e.text,
            )
            raise
        except Exception as e:
            logger.error(
                "Request failed with exception",
                duration_ms=round((time.monotonic() - start_time) * 1000, 2),
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            raise
        finally:
            structlog.contextvars.clear_contextvars()

    return trace_middleware
