"""Management API router: read-only health, stats and session endpoints.

All routes are mounted under ``/manage/v1/`` by :func:`create_management_app`.
"""

import logging
from typing import Optional

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route, Router

from mcp_compression_proxy.errors import UnknownBackendError
from mcp_compression_proxy.runtime.service import ProxyService
from mcp_compression_proxy.server.management.schemas import (
    ErrorResponse,
    SessionDetail,
    SessionsResponse,
)

logger = logging.getLogger(__name__)


# ── Helpers ──────────────────────────────────────────────────────────────


def _get_service(request: Request) -> ProxyService:
    """Retrieve the ProxyService instance from app state."""
    service: Optional[ProxyService] = getattr(request.app.state, "proxy_service", None)
    if service is None:
        raise RuntimeError("ProxyService not found on app.state")
    return service


def _error_json(error: str, message: str, status_code: int = 500) -> JSONResponse:
    body = ErrorResponse(error=error, message=message)
    return JSONResponse(body.model_dump(), status_code=status_code)


# ── GET /manage/v1/health ────────────────────────────────────────────────


async def handle_health(request: Request) -> JSONResponse:
    """Liveness probe; returns 200 whenever the process is alive."""
    service = _get_service(request)
    return JSONResponse(service.get_health().model_dump())


# ── GET /manage/v1/stats ─────────────────────────────────────────────────


async def handle_stats(request: Request) -> JSONResponse:
    """Backend, compression and session statistics.

    Query parameters: ``detail`` (``summary`` | ``full``) and ``server``.
    """
    service = _get_service(request)
    detail = request.query_params.get("detail", "summary")
    if detail not in ("summary", "full"):
        return _error_json("bad_request", "detail must be 'summary' or 'full'", 400)
    server = request.query_params.get("server") or None
    try:
        payload = await service.stats.get_stats(detail, server)
    except UnknownBackendError as exc:
        return _error_json("not_found", str(exc), 404)
    return JSONResponse(payload.model_dump())


# ── GET /manage/v1/sessions ─────────────────────────────────────────────


async def handle_sessions(request: Request) -> JSONResponse:
    """List active expansion sessions."""
    sessions = _get_service(request).sessions
    resp = SessionsResponse(
        active_sessions=sessions.active_count,
        sessions=[SessionDetail(**s) for s in sessions.list_sessions()],
    )
    return JSONResponse(resp.model_dump())


# ── Router ───────────────────────────────────────────────────────────────


management_routes = Router(
    routes=[
        Route("/health", endpoint=handle_health, methods=["GET"]),
        Route("/stats", endpoint=handle_stats, methods=["GET"]),
        Route("/sessions", endpoint=handle_sessions, methods=["GET"]),
    ]
)
