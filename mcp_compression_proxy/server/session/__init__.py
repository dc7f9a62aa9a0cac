"""Expansion sessions for per-caller description overrides."""

from mcp_compression_proxy.server.session.manager import SessionManager
from mcp_compression_proxy.server.session.models import ExpansionSession

__all__ = ["ExpansionSession", "SessionManager"]
