"""Statistics over backends, the compression cache and sessions."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from mcp_compression_proxy.bridge.catalog import ToolListing, fetch_tool_catalogs
from mcp_compression_proxy.bridge.client_manager import ClientManager
from mcp_compression_proxy.bridge.filter import PatternSet
from mcp_compression_proxy.compression.cache import CompressionCache
from mcp_compression_proxy.compression.models import utc_now_iso
from mcp_compression_proxy.constants import CHARS_PER_TOKEN
from mcp_compression_proxy.errors import UnknownBackendError
from mcp_compression_proxy.naming import full_tool_name
from mcp_compression_proxy.runtime.models import (
    CompressionStats,
    ServerStatus,
    ServerToolStats,
    SessionStats,
    StatsConfig,
    StatsPayload,
    StatsSummary,
)
from mcp_compression_proxy.server.session.manager import SessionManager

logger = logging.getLogger(__name__)


def _coverage(compressed: int, total: int) -> float:
    return round(compressed / total * 100, 1) if total else 0.0


def _tokens_saved(original_chars: int, compressed_chars: int) -> int:
    return max(0, round((original_chars - compressed_chars) / CHARS_PER_TOKEN))


class StatsService:
    """Builds :class:`StatsPayload` reports.

    Tool counts come from live listings of connected backends; excluded
    tools are counted separately and left out of coverage.
    """

    def __init__(
        self,
        manager: ClientManager,
        cache: CompressionCache,
        sessions: SessionManager,
        exclude_patterns: Optional[Iterable[str]] = None,
    ) -> None:
        self._manager = manager
        self._cache = cache
        self._sessions = sessions
        self._exclude = PatternSet(exclude_patterns)

    async def get_stats(
        self, detail_level: str = "summary", server_name: Optional[str] = None
    ) -> StatsPayload:
        """Collect a report, optionally limited to one backend.

        Raises :class:`UnknownBackendError` if *server_name* is not configured.
        """
        statuses = self._manager.get_server_statuses()
        if server_name is not None:
            known = [s.name for s in statuses]
            if server_name not in known:
                raise UnknownBackendError(server_name, known)
            statuses = [s for s in statuses if s.name == server_name]

        wanted = {s.name for s in statuses}
        clients = [c for c in self._manager.get_connected_clients() if c.name in wanted]
        catalogs = await fetch_tool_catalogs(clients)

        servers = [self._server_stats(s, catalogs.get(s.name)) for s in statuses]
        payload = StatsPayload(
            generated_at=utc_now_iso(),
            detail_level=detail_level,
            summary=self._summarise(servers),
            servers=servers,
            compression=CompressionStats(
                **self._cache.get_cache_metrics().model_dump(),
                cache_file=self._cache.persistence.cache_file_path,
            ),
            sessions=SessionStats(
                **self._sessions.get_session_stats(),
                details=self._sessions.list_sessions() if detail_level == "full" else None,
            ),
            config=StatsConfig(
                exclude_tools=self._exclude.patterns,
                no_compress_tools=self._cache.no_compress_patterns,
            ),
        )
        logger.debug(
            "Stats generated: %d server(s), %d tool(s).",
            len(servers),
            payload.summary.tools_total,
        )
        return payload

    def _server_stats(self, status: ServerStatus, listing: Optional[ToolListing]) -> ServerToolStats:
        stats = ServerToolStats(name=status.name, connected=status.connected, error=status.error)
        if listing is None:
            return stats
        if listing.error and stats.error is None:
            stats.error = listing.error

        for tool in listing.tools:
            if self._exclude.matches(full_tool_name(status.name, tool.name)):
                stats.tools_excluded += 1
                continue
            stats.tools_total += 1
            if not self._cache.has_compressed(status.name, tool.name):
                stats.tools_uncompressed += 1
                continue
            stats.tools_compressed += 1
            record = self._cache.get_record(status.name, tool.name)
            original = record.original if record.original is not None else tool.description
            stats.original_chars += len(original or "")
            stats.compressed_chars += len(record.compressed)

        stats.coverage_percent = _coverage(stats.tools_compressed, stats.tools_total)
        stats.estimated_tokens_saved = _tokens_saved(stats.original_chars, stats.compressed_chars)
        return stats

    @staticmethod
    def _summarise(servers: List[ServerToolStats]) -> StatsSummary:
        summary = StatsSummary(
            servers_configured=len(servers),
            servers_connected=sum(1 for s in servers if s.connected),
            servers_with_errors=sum(1 for s in servers if s.error),
            tools_total=sum(s.tools_total for s in servers),
            tools_compressed=sum(s.tools_compressed for s in servers),
            tools_uncompressed=sum(s.tools_uncompressed for s in servers),
            original_chars=sum(s.original_chars for s in servers),
            compressed_chars=sum(s.compressed_chars for s in servers),
        )
        summary.coverage_percent = _coverage(summary.tools_compressed, summary.tools_total)
        summary.estimated_tokens_saved = _tokens_saved(
            summary.original_chars, summary.compressed_chars
        )
        return summary
