"""Expansion-session lifecycle with inactivity-based cleanup."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from mcp_compression_proxy.constants import SESSION_CLEANUP_INTERVAL, SESSION_TTL
from mcp_compression_proxy.naming import tool_key
from mcp_compression_proxy.server.session.models import ExpansionSession

logger = logging.getLogger(__name__)


class SessionManager:
    """Owns every :class:`ExpansionSession`.

    Sessions are created explicitly by the caller and removed either
    explicitly or by a background sweep once idle longer than *ttl*.
    Reads through :meth:`get_session` and every mutation count as activity.

    Parameters
    ----------
    ttl:
        Inactivity window in seconds.
    cleanup_interval:
        How often (in seconds) the cleanup loop runs.
    """

    def __init__(
        self,
        ttl: float = SESSION_TTL,
        cleanup_interval: float = SESSION_CLEANUP_INTERVAL,
    ) -> None:
        self._sessions: Dict[str, ExpansionSession] = {}
        self._ttl = ttl
        self._cleanup_interval = cleanup_interval
        self._cleanup_task: Optional[asyncio.Task[None]] = None
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet; the owning service calls start() once one runs.
            pass
        else:
            self.start()

    # ── Lifecycle ────────────────────────────────────────────────────

    def start(self) -> None:
        """Start the background cleanup loop."""
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.create_task(self._cleanup_loop(), name="session-cleanup")
            logger.info(
                "Session cleanup started (interval=%.0fs, ttl=%.0fs).",
                self._cleanup_interval,
                self._ttl,
            )

    async def stop(self) -> None:
        """Cancel the cleanup task and clear all sessions."""
        task = self._cleanup_task
        self.destroy()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    def destroy(self) -> None:
        """Cancel the sweep without waiting and drop every session."""
        if self._cleanup_task is not None and not self._cleanup_task.done():
            self._cleanup_task.cancel()
        self._cleanup_task = None
        count = len(self._sessions)
        self._sessions.clear()
        logger.info("SessionManager stopped. Cleared %d session(s).", count)

    @property
    def is_running(self) -> bool:
        return self._cleanup_task is not None and not self._cleanup_task.done()

    # ── Session CRUD ─────────────────────────────────────────────────

    def create_session(self) -> str:
        """Create an empty session and return its id."""
        session = ExpansionSession(ttl=self._ttl)
        self._sessions[session.id] = session
        logger.info("Session created: id=%s ttl=%.0f", session.id, session.ttl)
        return session.id

    def get_session(self, session_id: str) -> Optional[ExpansionSession]:
        """Return a copy of the session, refreshing its idle timer.

        An expired session that the sweep has not reached yet is removed
        and reported as absent.
        """
        session = self._live(session_id)
        if session is None:
            return None
        session.touch()
        return session.snapshot()

    def has_session(self, session_id: str) -> bool:
        """Return True if the session exists. Does not count as activity."""
        session = self._sessions.get(session_id)
        return session is not None and not session.expired

    def delete_session(self, session_id: str) -> bool:
        """Remove a session. Returns ``True`` if it existed."""
        return self._remove(session_id)

    # ── Expansion ────────────────────────────────────────────────────

    def expand_tool(self, session_id: str, server_name: str, tool_name: str) -> bool:
        """Mark a tool as expanded in the session.

        Returns ``False`` when the session does not exist.
        """
        session = self._live(session_id)
        if session is None:
            return False
        session.expanded_tools.add(tool_key(server_name, tool_name))
        session.touch()
        logger.debug("[%s] Expanded %s:%s", session_id, server_name, tool_name)
        return True

    def collapse_tool(self, session_id: str, server_name: str, tool_name: str) -> bool:
        """Remove a tool from the session's expanded set.

        Returns ``True`` only if the tool was expanded.
        """
        session = self._live(session_id)
        if session is None:
            return False
        key = tool_key(server_name, tool_name)
        if key not in session.expanded_tools:
            return False
        session.expanded_tools.discard(key)
        session.touch()
        logger.debug("[%s] Collapsed %s:%s", session_id, server_name, tool_name)
        return True

    def is_tool_expanded(
        self, session_id: Optional[str], server_name: str, tool_name: str
    ) -> bool:
        if not session_id:
            return False
        session = self._sessions.get(session_id)
        if session is None or session.expired:
            return False
        return tool_key(server_name, tool_name) in session.expanded_tools

    # ── Queries ──────────────────────────────────────────────────────

    @property
    def active_count(self) -> int:
        """Number of non-expired sessions."""
        return sum(1 for s in self._sessions.values() if not s.expired)

    def list_sessions(self) -> List[Dict[str, Any]]:
        """Return session summaries for stats and the management API."""
        return [s.to_dict() for s in self._sessions.values() if not s.expired]

    def get_session_stats(self) -> Dict[str, int]:
        live = [s for s in self._sessions.values() if not s.expired]
        return {
            "active_sessions": len(live),
            "expanded_tools_total": sum(len(s.expanded_tools) for s in live),
        }

    def clear_all_sessions(self) -> int:
        """Drop every session, keeping the sweep running."""
        count = len(self._sessions)
        self._sessions.clear()
        return count

    def cleanup_expired(self) -> int:
        """Remove every expired session and return how many were removed."""
        expired = [sid for sid, s in self._sessions.items() if s.expired]
        for sid in expired:
            self._remove(sid)
        if expired:
            logger.info(
                "Session cleanup: removed %d expired session(s), %d remaining.",
                len(expired),
                len(self._sessions),
            )
        return len(expired)

    # ── Internal ─────────────────────────────────────────────────────

    def _live(self, session_id: str) -> Optional[ExpansionSession]:
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if session.expired:
            self._remove(session_id)
            return None
        return session

    def _remove(self, session_id: str) -> bool:
        if session_id in self._sessions:
            del self._sessions[session_id]
            logger.debug("Session removed: %s", session_id)
            return True
        return False

    async def _cleanup_loop(self) -> None:
        """Periodically remove expired sessions."""
        try:
            while True:
                await asyncio.sleep(self._cleanup_interval)
                self.cleanup_expired()
        except asyncio.CancelledError:
            logger.debug("Session cleanup loop cancelled.")
            raise
