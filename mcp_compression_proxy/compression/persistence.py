"""On-disk snapshot of the compression cache.

The snapshot is a single versioned JSON document::

    {"version": 1, "lastUpdated": "...", "compressions": [{...}, ...]}

A file written by a different format version is ignored as a whole.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from typing import Any, Dict

from mcp_compression_proxy.compression.models import CompressionRecord, utc_now_iso
from mcp_compression_proxy.constants import (
    CACHE_FILE_NAME,
    CACHE_FORMAT_VERSION,
    DEFAULT_DATA_DIR,
)
from mcp_compression_proxy.errors import CachePersistenceError

logger = logging.getLogger(__name__)


class CompressionPersistence:
    """Reads and writes the cache snapshot file.

    Parameters
    ----------
    cache_dir:
        Directory holding ``cache.json``.  Created on first write.
    """

    def __init__(self, cache_dir: str = DEFAULT_DATA_DIR) -> None:
        self._cache_dir = os.path.expanduser(cache_dir)
        self._path = os.path.join(self._cache_dir, CACHE_FILE_NAME)

    @property
    def cache_file_path(self) -> str:
        return self._path

    # ── public interface ────────────────────────────────────────────

    def load(self) -> Dict[str, CompressionRecord]:
        """Return every stored record keyed by ``backend:tool``.

        Never raises: a missing, unreadable, malformed or foreign-version
        file yields an empty mapping.
        """
        payload = self._read()
        if payload is None:
            return {}
        version = payload.get("version")
        if version != CACHE_FORMAT_VERSION:
            logger.warning(
                "Ignoring compression cache %s: version %r, expected %d.",
                self._path,
                version,
                CACHE_FORMAT_VERSION,
            )
            return {}
        entries = payload.get("compressions")
        if not isinstance(entries, list):
            logger.warning("Ignoring compression cache %s: 'compressions' is not a list.", self._path)
            return {}
        records: Dict[str, CompressionRecord] = {}
        try:
            for entry in entries:
                record = CompressionRecord.from_dict(entry)
                records[record.key] = record
        except ValueError as exc:
            logger.warning("Ignoring malformed compression cache %s: %s", self._path, exc)
            return {}
        logger.info("Loaded %d compressed description(s) from %s", len(records), self._path)
        return records

    def save(self, records: Dict[str, CompressionRecord]) -> None:
        """Write *records* atomically.

        Raises :class:`CachePersistenceError` if the file cannot be written.
        """
        payload: Dict[str, Any] = {
            "version": CACHE_FORMAT_VERSION,
            "lastUpdated": utc_now_iso(),
            "compressions": [r.to_dict() for r in records.values()],
        }
        tmp_path = None
        try:
            os.makedirs(self._cache_dir, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=".cache-", suffix=".json.tmp", dir=self._cache_dir
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, indent=2)
            os.replace(tmp_path, self._path)
            tmp_path = None
        except (OSError, TypeError, ValueError) as exc:
            raise CachePersistenceError(
                "Failed to save compression cache", path=self._path, orig_exc=exc
            ) from exc
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
        logger.debug("Compression cache written: %s (%d entries)", self._path, len(records))

    def clear(self) -> None:
        """Delete the snapshot file.  A missing file is not an error."""
        try:
            os.unlink(self._path)
            logger.info("Compression cache file removed: %s", self._path)
        except FileNotFoundError:
            logger.debug("No compression cache file to remove at %s", self._path)
        except OSError as exc:
            raise CachePersistenceError(
                "Failed to clear compression cache", path=self._path, orig_exc=exc
            ) from exc

    # ── internals ───────────────────────────────────────────────────

    def _read(self) -> Dict[str, Any] | None:
        if not os.path.exists(self._path):
            return None
        try:
            with open(self._path, "r", encoding="utf-8") as fh:
                payload = json.load(fh)
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as exc:
            logger.warning("Corrupt compression cache file %s: %s", self._path, exc)
            return None
        if not isinstance(payload, dict):
            logger.warning("Corrupt compression cache file %s: not a JSON object", self._path)
            return None
        return payload
