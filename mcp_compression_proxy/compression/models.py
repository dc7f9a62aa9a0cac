"""Data models for compression records and cache metrics."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from mcp_compression_proxy.naming import tool_key


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class CompressionRecord:
    """One cached description pair for ``(server_name, tool_name)``.

    Records are replaced whole on every save, never patched.
    """

    server_name: str
    tool_name: str
    compressed: str
    original: Optional[str] = None
    compressed_at: str = field(default_factory=utc_now_iso)

    @property
    def key(self) -> str:
        return tool_key(self.server_name, self.tool_name)

    def to_dict(self) -> Dict[str, Any]:
        """Serialise using the snapshot file's field names."""
        data: Dict[str, Any] = {
            "serverName": self.server_name,
            "toolName": self.tool_name,
            "compressedDescription": self.compressed,
            "compressedAt": self.compressed_at,
        }
        if self.original is not None:
            data["originalDescription"] = self.original
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CompressionRecord":
        """Build a record from a snapshot entry.

        Raises ``ValueError`` if a required field is missing or mistyped.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Compression entry must be an object, got {type(data).__name__}")
        for name in ("serverName", "toolName", "compressedDescription", "compressedAt"):
            if not isinstance(data.get(name), str):
                raise ValueError(f"Compression entry field '{name}' must be a string")
        original = data.get("originalDescription")
        if original is not None and not isinstance(original, str):
            raise ValueError("Compression entry field 'originalDescription' must be a string")
        return cls(
            server_name=data["serverName"],
            tool_name=data["toolName"],
            compressed=data["compressedDescription"],
            original=original,
            compressed_at=data["compressedAt"],
        )


class ServerCacheMetrics(BaseModel):
    """Per-backend slice of :class:`CacheMetrics`."""

    count: int = 0
    original_chars: int = 0
    compressed_chars: int = 0
    missing_originals: int = 0
    latest_compressed_at: Optional[str] = None


class CacheMetrics(BaseModel):
    """Aggregate figures derived from every cached record."""

    total_cached: int = 0
    total_original_chars: int = 0
    total_compressed_chars: int = 0
    missing_originals: int = 0
    latest_compressed_at: Optional[str] = None
    cache_size_bytes: int = 0
    per_server: Dict[str, ServerCacheMetrics] = Field(default_factory=dict)
