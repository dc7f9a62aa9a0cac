"""MCP handler functions, registered on the MCP server instance."""

import logging
from typing import Any, Dict, List, Optional

from mcp import types as mcp_types
from mcp.server import Server as McpServer

from mcp_compression_proxy.bridge.aggregator import ToolAggregator
from mcp_compression_proxy.errors import ToolCallError

logger = logging.getLogger(__name__)


def _result_text(result: mcp_types.CallToolResult) -> str:
    texts = [c.text for c in result.content if isinstance(c, mcp_types.TextContent)]
    return "\n".join(texts) or "Tool call failed."


def register_handlers(mcp_server: McpServer, aggregator: ToolAggregator) -> None:
    """Register the tool handlers on *mcp_server*, delegating to *aggregator*."""

    @mcp_server.list_tools()
    async def handle_list_tools() -> List[mcp_types.Tool]:
        logger.debug("Handling listTools request...")
        return await aggregator.list_tools()

    @mcp_server.call_tool()
    async def handle_call_tool(
        name: str, arguments: Optional[Dict[str, Any]]
    ) -> List[Any]:
        logger.debug("Handling callTool: name='%s'", name)
        result = await aggregator.call_tool(name, arguments or {})
        if result.isError:
            # The SDK turns a raised exception into an isError result.
            raise ToolCallError(_result_text(result))
        return list(result.content)
