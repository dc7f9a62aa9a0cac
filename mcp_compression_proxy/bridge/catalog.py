"""Concurrent tool-catalog fetch across connected backends."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, NamedTuple, Optional, Sequence

from mcp import types as mcp_types

from mcp_compression_proxy.bridge.client_manager import ConnectedClient
from mcp_compression_proxy.constants import LIST_TOOLS_TIMEOUT

logger = logging.getLogger(__name__)


class ToolListing(NamedTuple):
    tools: List[mcp_types.Tool]
    error: Optional[str] = None


async def _list_one(client: ConnectedClient, timeout: float) -> ToolListing:
    try:
        result = await asyncio.wait_for(client.client.list_tools(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("[%s] Tool listing timed out after %.1fs.", client.name, timeout)
        return ToolListing([], f"Tool listing timed out after {timeout}s")
    except Exception as exc:
        logger.warning("[%s] Tool listing failed: %s", client.name, exc)
        return ToolListing([], str(exc) or type(exc).__name__)
    return ToolListing(list(result.tools))


async def fetch_tool_catalogs(
    clients: Sequence[ConnectedClient],
    timeout: float = LIST_TOOLS_TIMEOUT,
) -> Dict[str, ToolListing]:
    """List tools on every client concurrently.

    A failing backend yields an empty listing with its error; it is not
    marked disconnected.
    """
    listings = await asyncio.gather(*(_list_one(c, timeout) for c in clients))
    return {c.name: listing for c, listing in zip(clients, listings)}
