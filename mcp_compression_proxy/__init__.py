"""
MCP Compression Proxy - aggregates backend MCP tool servers behind one
stdio endpoint and serves compressed tool descriptions.

Backends are connected concurrently at startup, their tools are exposed
as ``backend__tool``, and each description is resolved through a cache
of externally produced compressions, per-session expansions and
bypass patterns.
"""

from mcp_compression_proxy.constants import SERVER_NAME, SERVER_VERSION

__version__ = SERVER_VERSION
__app_name__ = SERVER_NAME

__all__ = [
    "SERVER_NAME",
    "SERVER_VERSION",
    "__version__",
    "__app_name__",
]
