"""Helpers for the two tool-name forms used across the proxy.

``backend__tool`` is the name shown to the calling agent; ``backend:tool``
is the internal key of cache records and session expansions.
"""

from typing import Optional, Tuple

from mcp_compression_proxy.constants import TOOL_KEY_SEPARATOR, TOOL_NAME_SEPARATOR


def tool_key(server_name: str, tool_name: str) -> str:
    """Return the internal ``backend:tool`` key."""
    return f"{server_name}{TOOL_KEY_SEPARATOR}{tool_name}"


def full_tool_name(server_name: str, tool_name: str) -> str:
    """Return the agent-facing ``backend__tool`` name."""
    return f"{server_name}{TOOL_NAME_SEPARATOR}{tool_name}"


def split_full_name(name: str) -> Optional[Tuple[str, str]]:
    """Split ``backend__tool`` on the first separator.

    Backend names never contain the separator, so everything after the
    first one belongs to the tool.  Returns ``None`` if either side is empty.
    """
    server_name, sep, tool_name = name.partition(TOOL_NAME_SEPARATOR)
    if not sep or not server_name or not tool_name:
        return None
    return server_name, tool_name
