"""Pydantic response schemas for the Management API.

Where possible they reuse models from ``mcp_compression_proxy.runtime.models``.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from mcp_compression_proxy.runtime.models import HealthBackends, HealthResponse, StatsPayload

# ── /manage/v1/sessions ─────────────────────────────────────────────────


class SessionDetail(BaseModel):
    id: str
    expanded_tools: List[str] = Field(default_factory=list)
    expanded_count: int = 0
    age_seconds: float = 0.0
    idle_seconds: float = 0.0
    ttl: float = 1800.0


class SessionsResponse(BaseModel):
    active_sessions: int = 0
    sessions: List[SessionDetail] = Field(default_factory=list)


# ── Error responses ──────────────────────────────────────────────────────


class ErrorResponse(BaseModel):
    error: str
    message: str
    details: Optional[Dict[str, Any]] = None


__all__ = [
    "ErrorResponse",
    "HealthBackends",
    "HealthResponse",
    "SessionDetail",
    "SessionsResponse",
    "StatsPayload",
]
