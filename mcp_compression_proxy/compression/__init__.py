"""Compressed tool-description cache and its on-disk snapshot."""

from mcp_compression_proxy.compression.cache import CompressionCache
from mcp_compression_proxy.compression.models import (
    CacheMetrics,
    CompressionRecord,
    ServerCacheMetrics,
)
from mcp_compression_proxy.compression.persistence import CompressionPersistence

__all__ = [
    "CacheMetrics",
    "CompressionCache",
    "CompressionPersistence",
    "CompressionRecord",
    "ServerCacheMetrics",
]
