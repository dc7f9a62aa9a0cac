"""Bridge subpackage - manages backend connections and tool routing."""

from mcp_compression_proxy.bridge.client_manager import ClientManager, ConnectedClient
from mcp_compression_proxy.bridge.filter import PatternSet, matches_pattern

__all__ = [
    "ClientManager",
    "ConnectedClient",
    "PatternSet",
    "matches_pattern",
]
