"""Tests for the statistics service."""

from __future__ import annotations

import pytest
import pytest_asyncio

from mcp_compression_proxy.bridge.client_manager import ClientManager
from mcp_compression_proxy.compression.cache import CompressionCache
from mcp_compression_proxy.errors import UnknownBackendError
from mcp_compression_proxy.runtime.stats import StatsService
from mcp_compression_proxy.server.session.manager import SessionManager


@pytest_asyncio.fixture
async def parts(connector, persistence, make_backend_config):
    connector.add("fs", {"read": "r" * 400, "write": "w" * 100, "drop": "d"})
    connector.add("db", {"query": "q" * 40})
    connector.add("down", error=RuntimeError("refused"))
    manager = ClientManager(connector)
    await manager.initialize(
        [make_backend_config("fs"), make_backend_config("db"), make_backend_config("down")]
    )
    cache = CompressionCache(persistence)
    sessions = SessionManager()
    stats = StatsService(manager, cache, sessions, exclude_patterns=["fs__drop"])
    yield stats, cache, sessions
    await sessions.stop()
    await manager.disconnect_all()


@pytest.mark.asyncio
class TestStatsService:
    async def test_summary_counts(self, parts) -> None:
        stats, cache, _ = parts
        cache.save_compressed("fs", "read", "r" * 40, "r" * 400)
        payload = await stats.get_stats()

        assert payload.detail_level == "summary"
        summary = payload.summary
        assert summary.servers_configured == 3
        assert summary.servers_connected == 2
        assert summary.servers_with_errors == 1
        assert summary.tools_total == 3
        assert summary.tools_compressed == 1
        assert summary.tools_uncompressed == 2
        assert summary.coverage_percent == 33.3
        assert summary.estimated_tokens_saved == 90

    async def test_per_server(self, parts) -> None:
        stats, cache, _ = parts
        cache.save_compressed("fs", "read", "short")
        servers = {s.name: s for s in (await stats.get_stats()).servers}

        fs = servers["fs"]
        assert fs.tools_total == 2
        assert fs.tools_excluded == 1
        assert fs.coverage_percent == 50.0
        # No cached original: the live description is measured instead.
        assert fs.original_chars == 400
        assert fs.compressed_chars == 5
        assert servers["down"].error == "refused"
        assert servers["down"].tools_total == 0

    async def test_tokens_saved_never_negative(self, parts) -> None:
        stats, cache, _ = parts
        cache.save_compressed("db", "query", "x" * 400, "q" * 40)
        payload = await stats.get_stats(server_name="db")
        assert payload.servers[0].estimated_tokens_saved == 0

    async def test_server_filter(self, parts) -> None:
        stats, _, _ = parts
        payload = await stats.get_stats(server_name="db")
        assert [s.name for s in payload.servers] == ["db"]
        assert payload.summary.tools_total == 1

    async def test_unknown_server(self, parts) -> None:
        stats, _, _ = parts
        with pytest.raises(UnknownBackendError, match="ghost"):
            await stats.get_stats(server_name="ghost")

    async def test_full_detail_includes_sessions(self, parts) -> None:
        stats, _, sessions = parts
        sid = sessions.create_session()
        sessions.expand_tool(sid, "fs", "read")

        summary = await stats.get_stats()
        assert summary.sessions.active_sessions == 1
        assert summary.sessions.details is None

        full = await stats.get_stats("full")
        assert full.sessions.expanded_tools_total == 1
        assert full.sessions.details[0]["id"] == sid

    async def test_config_and_cache_sections(self, parts) -> None:
        stats, cache, _ = parts
        cache.save_compressed("gone", "tool", "x")
        payload = await stats.get_stats()
        assert payload.config.exclude_tools == ["fs__drop"]
        assert payload.compression.total_cached == 1
        assert payload.compression.cache_file == cache.persistence.cache_file_path
