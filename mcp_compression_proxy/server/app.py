"""MCP server instance factory and stdio runner."""

import logging

from mcp.server import Server as McpServer
from mcp.server.stdio import stdio_server

from mcp_compression_proxy.constants import SERVER_NAME, SERVER_VERSION
from mcp_compression_proxy.runtime.service import ProxyService
from mcp_compression_proxy.server.handlers import register_handlers

logger = logging.getLogger(__name__)


def create_mcp_server(service: ProxyService) -> McpServer:
    """Create the MCP server exposing *service*'s aggregated tools."""
    mcp_server = McpServer(SERVER_NAME, version=SERVER_VERSION)
    register_handlers(mcp_server, service.aggregator)
    logger.debug("Underlying MCP server instance '%s' created.", mcp_server.name)
    return mcp_server


async def run_stdio(service: ProxyService) -> None:
    """Serve MCP over stdin/stdout until the client disconnects."""
    mcp_server = create_mcp_server(service)
    async with stdio_server() as (read_stream, write_stream):
        logger.info("Serving MCP over stdio.")
        await mcp_server.run(
            read_stream,
            write_stream,
            mcp_server.create_initialization_options(),
        )
    logger.info("stdio client disconnected.")
