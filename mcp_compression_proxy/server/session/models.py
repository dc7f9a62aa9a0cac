"""Session data models for per-caller expansion state."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from time import monotonic
from typing import Any, Dict, Set
from uuid import uuid4

from mcp_compression_proxy.constants import SESSION_TTL


@dataclass
class ExpansionSession:
    """A caller's expansion context.

    Tools listed in :attr:`expanded_tools` show their original description
    instead of the cached compressed one for as long as the session lives.
    """

    id: str = field(default_factory=lambda: uuid4().hex)
    expanded_tools: Set[str] = field(default_factory=set)
    """``backend:tool`` keys currently expanded."""

    created_at: float = field(default_factory=monotonic)
    """Monotonic timestamp of session creation."""

    last_accessed: float = field(default_factory=monotonic)
    """Monotonic timestamp of the last read or mutation."""

    ttl: float = SESSION_TTL
    """Inactivity window in seconds (default: 30 minutes)."""

    @property
    def expired(self) -> bool:
        """``True`` if the session has been idle longer than its TTL."""
        return (monotonic() - self.last_accessed) > self.ttl

    @property
    def age_seconds(self) -> float:
        return monotonic() - self.created_at

    @property
    def idle_seconds(self) -> float:
        return monotonic() - self.last_accessed

    def touch(self) -> None:
        """Update *last_accessed* to the current monotonic time."""
        self.last_accessed = monotonic()

    def snapshot(self) -> "ExpansionSession":
        """Return a detached copy safe to hand outside the store."""
        return replace(self, expanded_tools=set(self.expanded_tools))

    def to_dict(self) -> Dict[str, Any]:
        """Serialise the session for stats and the management API."""
        return {
            "id": self.id,
            "expanded_tools": sorted(self.expanded_tools),
            "expanded_count": len(self.expanded_tools),
            "age_seconds": round(self.age_seconds, 1),
            "idle_seconds": round(self.idle_seconds, 1),
            "ttl": self.ttl,
        }
