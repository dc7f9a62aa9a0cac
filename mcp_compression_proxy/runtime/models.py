"""Pydantic models for MCP Compression Proxy runtime state.

These models serve dual purpose:
1. Internal state representation for ProxyService and StatsService
2. Payloads of the ``get_stats`` tool and the management API
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from mcp_compression_proxy.compression.models import CacheMetrics


class ServiceState(str, Enum):
    """Lifecycle states for the proxy service.

    Valid transitions:
        PENDING  → STARTING
        STARTING → RUNNING | ERROR
        RUNNING  → STOPPING
        STOPPING → STOPPED | ERROR
        ERROR    → STARTING | STOPPING
    """

    PENDING = "pending"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    ERROR = "error"


# Valid state transitions: current_state → set of allowed next states
_VALID_TRANSITIONS: Dict[ServiceState, frozenset] = {
    ServiceState.PENDING: frozenset({ServiceState.STARTING}),
    ServiceState.STARTING: frozenset({ServiceState.RUNNING, ServiceState.ERROR}),
    ServiceState.RUNNING: frozenset({ServiceState.STOPPING}),
    ServiceState.STOPPING: frozenset({ServiceState.STOPPED, ServiceState.ERROR}),
    ServiceState.STOPPED: frozenset(),
    ServiceState.ERROR: frozenset({ServiceState.STARTING, ServiceState.STOPPING}),
}


def is_valid_transition(current: ServiceState, target: ServiceState) -> bool:
    """Check whether a state transition is allowed."""
    return target in _VALID_TRANSITIONS.get(current, frozenset())


class ServerStatus(BaseModel):
    """Connection status of one configured backend."""

    name: str
    connected: bool = False
    error: Optional[str] = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"name": "filesystem", "connected": True},
                {"name": "slow", "connected": False, "error": "Connection timeout after 1.0s"},
            ]
        }
    }


# ── Statistics ───────────────────────────────────────────────────────────


class ServerToolStats(BaseModel):
    """Per-backend tool and compression counters."""

    name: str
    connected: bool = False
    tools_total: int = 0
    tools_compressed: int = 0
    tools_uncompressed: int = 0
    tools_excluded: int = 0
    coverage_percent: float = 0.0
    original_chars: int = 0
    compressed_chars: int = 0
    estimated_tokens_saved: int = 0
    error: Optional[str] = None


class StatsSummary(BaseModel):
    servers_configured: int = 0
    servers_connected: int = 0
    servers_with_errors: int = 0
    tools_total: int = 0
    tools_compressed: int = 0
    tools_uncompressed: int = 0
    coverage_percent: float = 0.0
    original_chars: int = 0
    compressed_chars: int = 0
    estimated_tokens_saved: int = 0


class CompressionStats(CacheMetrics):
    cache_file: Optional[str] = None


class SessionStats(BaseModel):
    active_sessions: int = 0
    expanded_tools_total: int = 0
    details: Optional[List[Dict[str, Any]]] = Field(
        default=None,
        description="Per-session detail; only present at detail level 'full'.",
    )


class StatsConfig(BaseModel):
    exclude_tools: List[str] = Field(default_factory=list)
    no_compress_tools: List[str] = Field(default_factory=list)


class StatsPayload(BaseModel):
    """Full statistics report."""

    generated_at: str
    detail_level: str = "summary"
    summary: StatsSummary = Field(default_factory=StatsSummary)
    servers: List[ServerToolStats] = Field(default_factory=list)
    compression: CompressionStats = Field(default_factory=CompressionStats)
    sessions: SessionStats = Field(default_factory=SessionStats)
    config: StatsConfig = Field(default_factory=StatsConfig)


# ── Health ───────────────────────────────────────────────────────────────


class HealthBackends(BaseModel):
    total: int = 0
    connected: int = 0


class HealthResponse(BaseModel):
    status: str = Field(description="healthy | degraded | unhealthy")
    state: str = ""
    uptime_seconds: Optional[float] = None
    version: str = ""
    backends: HealthBackends = Field(default_factory=HealthBackends)
    servers: List[ServerStatus] = Field(default_factory=list)
