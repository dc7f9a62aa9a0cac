"""In-memory authority for compressed tool descriptions.

The cache decides which description a tool shows in a listing.  For each
``(backend, tool)`` the precedence is:

1. the full ``backend__tool`` name matches a bypass pattern: live original;
2. the calling session expanded the tool: cached original, else live original;
3. a non-empty compressed description is cached: that description;
4. otherwise the live original (or ``""`` when blank fallback is enabled).

Disk is only a snapshot: loads merge into memory, saves export all of it.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Dict, Iterable, List, Optional

from mcp_compression_proxy.bridge.filter import PatternSet
from mcp_compression_proxy.compression.models import (
    CacheMetrics,
    CompressionRecord,
    ServerCacheMetrics,
)
from mcp_compression_proxy.compression.persistence import CompressionPersistence
from mcp_compression_proxy.naming import full_tool_name, tool_key

logger = logging.getLogger(__name__)


class CompressionCache:
    """Owns every :class:`CompressionRecord`.

    Parameters
    ----------
    persistence:
        Snapshot adapter used by the ``*_disk`` and :meth:`clear_all` calls.
    no_compress_patterns:
        Bypass patterns; matching tools always display the live original.
    blank_uncompressed:
        Show ``""`` instead of the original for tools with no compression.
    """

    def __init__(
        self,
        persistence: Optional[CompressionPersistence] = None,
        no_compress_patterns: Optional[Iterable[str]] = None,
        blank_uncompressed: bool = False,
    ) -> None:
        self._records: Dict[str, CompressionRecord] = {}
        self._persistence = persistence or CompressionPersistence()
        self._bypass = PatternSet(no_compress_patterns)
        self._blank_uncompressed = blank_uncompressed

    # ── Configuration ───────────────────────────────────────────────

    def set_no_compress_patterns(self, patterns: Iterable[str]) -> None:
        self._bypass.replace(patterns)

    @property
    def no_compress_patterns(self) -> List[str]:
        return self._bypass.patterns

    @property
    def persistence(self) -> CompressionPersistence:
        return self._persistence

    def is_bypassed(self, server_name: str, tool_name: str) -> bool:
        """True if the tool always displays its original description."""
        return self._bypass.matches(full_tool_name(server_name, tool_name))

    # ── Records ─────────────────────────────────────────────────────

    def save_compressed(
        self,
        server_name: str,
        tool_name: str,
        compressed: str,
        original: Optional[str] = None,
    ) -> None:
        """Store or replace the record for the tool, stamped with the current time."""
        record = CompressionRecord(
            server_name=server_name,
            tool_name=tool_name,
            compressed=compressed,
            original=original,
        )
        self._records[record.key] = record
        logger.debug(
            "[%s] Cached compression for '%s' (%d -> %d chars)",
            server_name,
            tool_name,
            len(original or ""),
            len(compressed),
        )

    def has_compressed(self, server_name: str, tool_name: str) -> bool:
        """True only if a record exists with non-empty compressed text."""
        record = self._records.get(tool_key(server_name, tool_name))
        return bool(record and record.compressed)

    def get_record(self, server_name: str, tool_name: str) -> Optional[CompressionRecord]:
        return self._records.get(tool_key(server_name, tool_name))

    def get_original_description(self, server_name: str, tool_name: str) -> Optional[str]:
        record = self._records.get(tool_key(server_name, tool_name))
        return record.original if record else None

    def get_compressed_description(self, server_name: str, tool_name: str) -> Optional[str]:
        record = self._records.get(tool_key(server_name, tool_name))
        return record.compressed if record else None

    def get_description(
        self,
        server_name: str,
        tool_name: str,
        live_original: Optional[str] = None,
        is_expanded: bool = False,
    ) -> Optional[str]:
        """Resolve the description to display for one tool."""
        if self.is_bypassed(server_name, tool_name):
            return live_original

        record = self._records.get(tool_key(server_name, tool_name))
        if is_expanded:
            if record is not None and record.original:
                return record.original
            return live_original

        if record is not None and record.compressed:
            return record.compressed

        if self._blank_uncompressed:
            return ""
        return live_original

    def get_all_cached(self) -> List[CompressionRecord]:
        return list(self._records.values())

    def __len__(self) -> int:
        return len(self._records)

    # ── Metrics ─────────────────────────────────────────────────────

    def get_cache_metrics(self) -> CacheMetrics:
        """Summarise every record, overall and per backend."""
        metrics = CacheMetrics()
        for record in self._records.values():
            server = metrics.per_server.setdefault(record.server_name, ServerCacheMetrics())
            original_chars = len(record.original) if record.original is not None else 0
            compressed_chars = len(record.compressed)

            metrics.total_cached += 1
            metrics.total_original_chars += original_chars
            metrics.total_compressed_chars += compressed_chars
            server.count += 1
            server.original_chars += original_chars
            server.compressed_chars += compressed_chars
            if record.original is None:
                metrics.missing_originals += 1
                server.missing_originals += 1
            metrics.latest_compressed_at = _latest(metrics.latest_compressed_at, record.compressed_at)
            server.latest_compressed_at = _latest(server.latest_compressed_at, record.compressed_at)

        serialised = json.dumps({k: r.to_dict() for k, r in self._records.items()})
        metrics.cache_size_bytes = len(serialised.encode("utf-8"))
        return metrics

    # ── Clearing and persistence ────────────────────────────────────

    def clear(self) -> None:
        """Drop every in-memory record."""
        count = len(self._records)
        self._records.clear()
        logger.info("Compression cache cleared (%d record(s)).", count)

    async def clear_all(self) -> None:
        """Drop every record and delete the snapshot file.

        Raises :class:`CachePersistenceError` if the file cannot be removed.
        """
        self.clear()
        await asyncio.to_thread(self._persistence.clear)

    async def load_from_disk(self) -> int:
        """Merge the snapshot into memory, overwriting by key.

        Returns the number of records loaded.  Never raises.
        """
        loaded = await asyncio.to_thread(self._persistence.load)
        self._records.update(loaded)
        return len(loaded)

    async def save_to_disk(self) -> None:
        """Write every record to the snapshot file.

        Raises :class:`CachePersistenceError` on failure; memory is untouched.
        """
        snapshot = dict(self._records)
        await asyncio.to_thread(self._persistence.save, snapshot)
        logger.info("Saved %d compressed description(s) to disk.", len(snapshot))


def _latest(current: Optional[str], candidate: str) -> str:
    # ISO-8601 UTC strings of the same shape order lexicographically.
    if current is None or candidate > current:
        return candidate
    return current
