"""Management API package.

Exposes ``create_management_app`` to build the management ASGI app and
``create_management_server`` to run it with uvicorn next to the stdio server.
"""

import logging

import uvicorn
from starlette.applications import Starlette
from starlette.routing import Mount

from mcp_compression_proxy.constants import MANAGEMENT_API_PREFIX
from mcp_compression_proxy.runtime.service import ProxyService
from mcp_compression_proxy.server.management.router import management_routes

logger = logging.getLogger(__name__)


def create_management_app(service: ProxyService) -> Starlette:
    """Build the management application bound to *service*."""
    app = Starlette(routes=[Mount(MANAGEMENT_API_PREFIX, routes=management_routes.routes)])
    app.state.proxy_service = service
    return app


def create_management_server(service: ProxyService, host: str, port: int) -> uvicorn.Server:
    """Return a uvicorn server for the management app; call ``serve()`` to run it."""
    config = uvicorn.Config(
        create_management_app(service),
        host=host,
        port=port,
        log_config=None,  # keep the file-based logging already configured
        lifespan="off",
    )
    logger.info("Management API configured on http://%s:%d%s", host, port, MANAGEMENT_API_PREFIX)
    return uvicorn.Server(config)


__all__ = ["create_management_app", "create_management_server", "management_routes"]
