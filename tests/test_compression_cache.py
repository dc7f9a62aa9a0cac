"""Tests for description resolution, metrics and snapshot round-trips."""

from __future__ import annotations

import json

import pytest

from mcp_compression_proxy.compression.cache import CompressionCache
from mcp_compression_proxy.compression.persistence import CompressionPersistence


# ════════════════════════════════════════════════════════════════════════
#  Description precedence
# ════════════════════════════════════════════════════════════════════════


class TestGetDescription:
    def test_uncompressed_shows_live_original(self, persistence) -> None:
        cache = CompressionCache(persistence)
        assert cache.get_description("fs", "read", "Reads a file.") == "Reads a file."

    def test_compressed_wins_over_live(self, persistence) -> None:
        cache = CompressionCache(persistence)
        cache.save_compressed("fs", "read", "Read file", "Reads a file.")
        assert cache.get_description("fs", "read", "Reads a file.") == "Read file"

    def test_expanded_shows_cached_original(self, persistence) -> None:
        cache = CompressionCache(persistence)
        cache.save_compressed("fs", "read", "Read file", "Reads a file (cached).")
        assert (
            cache.get_description("fs", "read", "Reads a file (live).", is_expanded=True)
            == "Reads a file (cached)."
        )

    def test_expanded_without_cached_original_uses_live(self, persistence) -> None:
        cache = CompressionCache(persistence)
        cache.save_compressed("fs", "read", "Read file")
        assert cache.get_description("fs", "read", "live", is_expanded=True) == "live"

    def test_expanded_with_empty_cached_original_uses_live(self, persistence) -> None:
        cache = CompressionCache(persistence)
        cache.save_compressed("fs", "read", "Read file", "")
        assert cache.get_description("fs", "read", "live original", is_expanded=True) == (
            "live original"
        )

    def test_bypass_beats_compression_and_expansion(self, persistence) -> None:
        cache = CompressionCache(persistence, no_compress_patterns=["fs__*"])
        cache.save_compressed("fs", "read", "Read file", "cached original")
        assert cache.is_bypassed("fs", "read")
        assert cache.get_description("fs", "read", "live") == "live"
        assert cache.get_description("fs", "read", "live", is_expanded=True) == "live"

    def test_bypassed_tools_are_still_stored(self, persistence) -> None:
        cache = CompressionCache(persistence, no_compress_patterns=["fs__read"])
        cache.save_compressed("fs", "read", "Read file")
        assert cache.has_compressed("fs", "read")

    def test_empty_compressed_counts_as_uncompressed(self, persistence) -> None:
        cache = CompressionCache(persistence)
        cache.save_compressed("fs", "read", "", "Reads a file.")
        assert not cache.has_compressed("fs", "read")
        assert cache.get_compressed_description("fs", "read") == ""
        assert cache.get_description("fs", "read", "Reads a file.") == "Reads a file."

    def test_blank_uncompressed(self, persistence) -> None:
        cache = CompressionCache(persistence, blank_uncompressed=True)
        assert cache.get_description("fs", "read", "Reads a file.") == ""
        cache.save_compressed("fs", "write", "Write file")
        assert cache.get_description("fs", "write", "Writes a file.") == "Write file"

    def test_replace_no_compress_patterns(self, persistence) -> None:
        cache = CompressionCache(persistence)
        cache.save_compressed("fs", "read", "Read file")
        cache.set_no_compress_patterns(["FS__READ"])
        assert cache.get_description("fs", "read", "live") == "live"
        assert cache.no_compress_patterns == ["FS__READ"]

    def test_save_replaces_record(self, persistence) -> None:
        cache = CompressionCache(persistence)
        cache.save_compressed("fs", "read", "v1", "orig")
        cache.save_compressed("fs", "read", "v2")
        assert cache.get_compressed_description("fs", "read") == "v2"
        assert cache.get_original_description("fs", "read") is None
        assert len(cache) == 1


# ════════════════════════════════════════════════════════════════════════
#  Metrics
# ════════════════════════════════════════════════════════════════════════


class TestCacheMetrics:
    def test_empty(self, persistence) -> None:
        metrics = CompressionCache(persistence).get_cache_metrics()
        assert metrics.total_cached == 0
        assert metrics.latest_compressed_at is None
        assert metrics.per_server == {}

    def test_totals_and_per_server(self, persistence) -> None:
        cache = CompressionCache(persistence)
        cache.save_compressed("fs", "read", "abc", "abcdefghij")
        cache.save_compressed("fs", "write", "ab")
        cache.save_compressed("db", "query", "q", "query it")

        metrics = cache.get_cache_metrics()
        assert metrics.total_cached == 3
        assert metrics.total_original_chars == 18
        assert metrics.total_compressed_chars == 6
        assert metrics.missing_originals == 1
        assert metrics.cache_size_bytes > 0
        assert metrics.latest_compressed_at is not None
        assert metrics.per_server["fs"].count == 2
        assert metrics.per_server["fs"].missing_originals == 1
        assert metrics.per_server["db"].original_chars == 8


# ════════════════════════════════════════════════════════════════════════
#  Disk snapshot
# ════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
class TestCacheDisk:
    async def test_round_trip(self, tmp_path) -> None:
        cache_dir = str(tmp_path / "cache")
        cache = CompressionCache(CompressionPersistence(cache_dir))
        cache.save_compressed("fs", "read", "Read file", "Reads a file.")
        cache.save_compressed("db", "query", "Run SQL")
        await cache.save_to_disk()

        reloaded = CompressionCache(CompressionPersistence(cache_dir))
        assert await reloaded.load_from_disk() == 2
        assert reloaded.get_description("fs", "read", "live") == "Read file"
        assert reloaded.get_original_description("fs", "read") == "Reads a file."
        assert reloaded.get_original_description("db", "query") is None
        assert (
            reloaded.get_record("fs", "read").compressed_at
            == cache.get_record("fs", "read").compressed_at
        )

    async def test_load_merges_into_memory(self, persistence) -> None:
        writer = CompressionCache(persistence)
        writer.save_compressed("fs", "read", "from disk")
        await writer.save_to_disk()

        cache = CompressionCache(persistence)
        cache.save_compressed("fs", "read", "in memory")
        cache.save_compressed("fs", "write", "memory only")
        await cache.load_from_disk()
        assert cache.get_compressed_description("fs", "read") == "from disk"
        assert cache.get_compressed_description("fs", "write") == "memory only"

    async def test_load_missing_file(self, persistence) -> None:
        assert await CompressionCache(persistence).load_from_disk() == 0

    async def test_clear_all_removes_file(self, persistence) -> None:
        cache = CompressionCache(persistence)
        cache.save_compressed("fs", "read", "Read file")
        await cache.save_to_disk()
        await cache.clear_all()
        assert len(cache) == 0
        assert await CompressionCache(persistence).load_from_disk() == 0

    async def test_snapshot_format(self, persistence) -> None:
        cache = CompressionCache(persistence)
        cache.save_compressed("fs", "read", "Read file", "Reads a file.")
        await cache.save_to_disk()
        with open(persistence.cache_file_path, encoding="utf-8") as fh:
            data = json.load(fh)
        assert data["version"] == 1
        assert data["lastUpdated"].endswith("Z")
        (entry,) = data["compressions"]
        assert entry["serverName"] == "fs"
        assert entry["toolName"] == "read"
        assert entry["compressedDescription"] == "Read file"
        assert entry["originalDescription"] == "Reads a file."
