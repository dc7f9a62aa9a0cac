"""Tool aggregation and routing.

Builds the merged ``backend__tool`` listing with resolved descriptions,
forwards calls to the owning backend and implements the management tools
that drive the compression workflow.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Iterable, List, Optional

from mcp import types as mcp_types
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from mcp_compression_proxy.bridge import meta_tools
from mcp_compression_proxy.bridge.catalog import fetch_tool_catalogs
from mcp_compression_proxy.bridge.client_manager import ClientManager
from mcp_compression_proxy.bridge.filter import PatternSet
from mcp_compression_proxy.compression.cache import CompressionCache
from mcp_compression_proxy.constants import DEFAULT_BATCH_LIMIT, MAX_BATCH_LIMIT
from mcp_compression_proxy.errors import CachePersistenceError, UnknownBackendError
from mcp_compression_proxy.naming import full_tool_name, split_full_name
from mcp_compression_proxy.server.session.manager import SessionManager

if TYPE_CHECKING:
    from mcp_compression_proxy.runtime.stats import StatsService

logger = logging.getLogger(__name__)


class CompressedToolEntry(BaseModel):
    """One item of a ``cache_compressed_tools`` batch."""

    model_config = ConfigDict(populate_by_name=True)

    server_name: str = Field(..., min_length=1, alias="serverName")
    tool_name: str = Field(..., min_length=1, alias="toolName")
    description: str


def _text_result(text: str, is_error: bool = False) -> mcp_types.CallToolResult:
    return mcp_types.CallToolResult(
        content=[mcp_types.TextContent(type="text", text=text)],
        isError=is_error,
    )


def _error_result(text: str) -> mcp_types.CallToolResult:
    return _text_result(text, is_error=True)


def _read_json_file(path: str) -> Any:
    with open(path, "r", encoding="utf-8") as fh:
        return json.load(fh)


def _write_json_file(path: str, payload: Any) -> None:
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2)


class ToolAggregator:
    """Merges backend tool catalogs and routes calls.

    Parameters
    ----------
    manager:
        Source of connected backend handles.
    cache:
        Compression cache used to resolve descriptions.
    sessions:
        Expansion sessions consulted per listing.
    exclude_patterns:
        ``backend__tool`` globs hidden from listings entirely.
    stats:
        Optional statistics service backing the ``get_stats`` tool.
    """

    def __init__(
        self,
        manager: ClientManager,
        cache: CompressionCache,
        sessions: SessionManager,
        exclude_patterns: Optional[Iterable[str]] = None,
        stats: Optional["StatsService"] = None,
    ) -> None:
        self._manager = manager
        self._cache = cache
        self._sessions = sessions
        self._exclude = PatternSet(exclude_patterns)
        self._stats = stats
        self._active_session_id: Optional[str] = None
        self._handlers: Dict[str, Callable[[Dict[str, Any]], Awaitable[mcp_types.CallToolResult]]] = {
            meta_tools.CREATE_SESSION: self._create_session,
            meta_tools.DELETE_SESSION: self._delete_session,
            meta_tools.SET_SESSION: self._set_session,
            meta_tools.CLEAR_CACHE: self._clear_cache,
            meta_tools.GET_UNCOMPRESSED: self._get_uncompressed,
            meta_tools.CACHE_COMPRESSED: self._cache_compressed,
            meta_tools.EXPAND_TOOL: self._expand_tool,
            meta_tools.COLLAPSE_TOOL: self._collapse_tool,
            meta_tools.GET_STATS: self._get_stats,
        }

    @property
    def active_session_id(self) -> Optional[str]:
        return self._active_session_id

    @property
    def exclude_patterns(self) -> List[str]:
        return self._exclude.patterns

    def is_excluded(self, server_name: str, tool_name: str) -> bool:
        return self._exclude.matches(full_tool_name(server_name, tool_name))

    # ── Listing ──────────────────────────────────────────────────────

    async def list_tools(self, session_id: Optional[str] = None) -> List[mcp_types.Tool]:
        """Return management tools plus every backend tool with its resolved description."""
        session_id = session_id or self._active_session_id
        catalogs = await fetch_tool_catalogs(self._manager.get_connected_clients())

        tools: List[mcp_types.Tool] = list(meta_tools.META_TOOLS)
        for server_name, listing in catalogs.items():
            for tool in listing.tools:
                expanded = self._sessions.is_tool_expanded(session_id, server_name, tool.name)
                description = self._cache.get_description(
                    server_name, tool.name, tool.description, expanded
                )
                tools.append(
                    tool.model_copy(
                        update={
                            "name": full_tool_name(server_name, tool.name),
                            "description": description,
                        }
                    )
                )

        visible = [t for t in tools if not self._exclude.matches(t.name)]
        logger.info(
            "Returning %d tool(s) from %d backend(s) (%d excluded).",
            len(visible),
            len(catalogs),
            len(tools) - len(visible),
        )
        return visible

    # ── Calling ──────────────────────────────────────────────────────

    async def call_tool(
        self, name: str, arguments: Optional[Dict[str, Any]] = None
    ) -> mcp_types.CallToolResult:
        """Dispatch a management tool or forward ``backend__tool`` to its backend.

        Failures come back as ``isError`` results, never as exceptions.
        """
        arguments = arguments or {}
        handler = self._handlers.get(name)
        if handler is not None:
            logger.debug("Handling management tool '%s'", name)
            return await handler(arguments)

        parts = split_full_name(name)
        if parts is None:
            return _error_result(
                f"Invalid tool name '{name}'. Expected format: server__tool."
            )
        server_name, tool_name = parts
        client = self._manager.get_client(server_name)
        if client is None:
            return _error_result(f"Server '{server_name}' is not connected.")

        logger.debug("[%s] Forwarding call to '%s'", server_name, tool_name)
        try:
            return await client.call_tool(tool_name, arguments)
        except Exception as exc:
            logger.error("[%s] Call to '%s' failed: %s", server_name, tool_name, exc)
            return _error_result(f"Error calling {name}: {exc}")

    # ── Sessions ─────────────────────────────────────────────────────

    async def _create_session(self, arguments: Dict[str, Any]) -> mcp_types.CallToolResult:
        session_id = self._sessions.create_session()
        self._active_session_id = session_id
        return _text_result(
            f"Created session: {session_id}\n\nThis session is now active. "
            f"Use {meta_tools.SET_SESSION} to switch sessions."
        )

    async def _delete_session(self, arguments: Dict[str, Any]) -> mcp_types.CallToolResult:
        session_id = arguments.get("sessionId")
        if not isinstance(session_id, str) or not session_id:
            return _error_result("Missing required argument: sessionId")
        if not self._sessions.delete_session(session_id):
            return _error_result(f"Session not found: {session_id}")
        if self._active_session_id == session_id:
            self._active_session_id = None
        return _text_result(f"Deleted session: {session_id}")

    async def _set_session(self, arguments: Dict[str, Any]) -> mcp_types.CallToolResult:
        session_id = arguments.get("sessionId")
        if not isinstance(session_id, str) or not session_id:
            return _error_result("Missing required argument: sessionId")
        if self._sessions.get_session(session_id) is None:
            return _error_result(
                f"Session not found: {session_id}. Create one with {meta_tools.CREATE_SESSION}."
            )
        self._active_session_id = session_id
        return _text_result(f"Active session set to: {session_id}")

    def _require_active_session(self) -> Optional[str]:
        session_id = self._active_session_id
        if session_id and self._sessions.has_session(session_id):
            return session_id
        return None

    async def _expand_tool(self, arguments: Dict[str, Any]) -> mcp_types.CallToolResult:
        server_name = arguments.get("serverName")
        tool_name = arguments.get("toolName")
        if not isinstance(server_name, str) or not isinstance(tool_name, str):
            return _error_result("Missing required arguments: serverName, toolName")
        session_id = self._require_active_session()
        if session_id is None:
            return _error_result(
                f"No active session. Create one with {meta_tools.CREATE_SESSION} first."
            )
        if not self._cache.has_compressed(server_name, tool_name):
            return _error_result(
                f"Tool {full_tool_name(server_name, tool_name)} has no compressed "
                "description; it already shows the original."
            )
        if not self._sessions.expand_tool(session_id, server_name, tool_name):
            return _error_result(f"Session not found: {session_id}")

        original = self._cache.get_original_description(server_name, tool_name)
        text = f"Expanded {full_tool_name(server_name, tool_name)} in session {session_id}."
        if original:
            text += f"\n\nOriginal description:\n{original}"
        return _text_result(text)

    async def _collapse_tool(self, arguments: Dict[str, Any]) -> mcp_types.CallToolResult:
        server_name = arguments.get("serverName")
        tool_name = arguments.get("toolName")
        if not isinstance(server_name, str) or not isinstance(tool_name, str):
            return _error_result("Missing required arguments: serverName, toolName")
        session_id = self._require_active_session()
        if session_id is None:
            return _error_result(
                f"No active session. Create one with {meta_tools.CREATE_SESSION} first."
            )
        full_name = full_tool_name(server_name, tool_name)
        if self._sessions.collapse_tool(session_id, server_name, tool_name):
            return _text_result(f"Collapsed {full_name} in session {session_id}.")
        return _text_result(f"{full_name} was not expanded in session {session_id}.")

    # ── Compression workflow ─────────────────────────────────────────

    async def _clear_cache(self, arguments: Dict[str, Any]) -> mcp_types.CallToolResult:
        count = len(self._cache)
        try:
            await self._cache.clear_all()
        except CachePersistenceError as exc:
            logger.error("Failed to clear compression cache file: %s", exc)
            return _error_result(f"Cleared memory cache but failed to remove cache file: {exc}")
        return _text_result(f"Cleared {count} cached compressed description(s).")

    async def _uncompressed_tools(self) -> List[Dict[str, str]]:
        catalogs = await fetch_tool_catalogs(self._manager.get_connected_clients())
        pending: List[Dict[str, str]] = []
        for server_name, listing in catalogs.items():
            for tool in listing.tools:
                if self.is_excluded(server_name, tool.name):
                    continue
                if self._cache.has_compressed(server_name, tool.name):
                    continue
                pending.append(
                    {
                        "serverName": server_name,
                        "toolName": tool.name,
                        "description": tool.description or "",
                    }
                )
        return pending

    async def _get_uncompressed(self, arguments: Dict[str, Any]) -> mcp_types.CallToolResult:
        try:
            limit = int(arguments.get("limit", DEFAULT_BATCH_LIMIT))
        except (TypeError, ValueError):
            return _error_result("Argument 'limit' must be an integer.")
        limit = min(max(limit, 1), MAX_BATCH_LIMIT)

        pending = await self._uncompressed_tools()
        batch = pending[:limit]
        remaining = max(0, len(pending) - limit)
        header = f"Found {len(pending)} tool(s) without compressed descriptions."
        next_step = (
            f"\n\nThen call {meta_tools.GET_UNCOMPRESSED} again for the next batch."
            if remaining
            else ""
        )

        output_file = arguments.get("outputFile")
        if output_file:
            path = os.path.abspath(os.path.expanduser(str(output_file)))
            try:
                await asyncio.to_thread(_write_json_file, path, batch)
            except OSError as exc:
                logger.error("Failed to write uncompressed tools to %s: %s", path, exc)
                return _error_result(f"Error writing tools to file: {exc}")
            logger.info("Wrote %d uncompressed tool(s) to %s", len(batch), path)
            return _text_result(
                f"{header}\n\nWrote {len(batch)} tool(s) to file: {path}\n\n"
                f"Remaining uncached tools: {remaining}\n\n"
                f"After compressing the descriptions in the file, call "
                f"{meta_tools.CACHE_COMPRESSED} with inputFile.{next_step}"
            )

        return _text_result(
            f"{header}\n\nReturning {len(batch)} tool(s) for compression (limit: {limit}).\n\n"
            f"Remaining uncached tools: {remaining}\n\n"
            f"Tools to compress:\n\n{json.dumps(batch, indent=2)}\n\n"
            f"After compressing these descriptions, call {meta_tools.CACHE_COMPRESSED} "
            f"with the results.{next_step}"
        )

    async def _load_entries(self, arguments: Dict[str, Any]) -> List[CompressedToolEntry]:
        """Parse the batch from ``descriptions`` or ``inputFile``.

        Raises ``ValueError`` with a caller-facing message on bad input.
        """
        descriptions = arguments.get("descriptions")
        input_file = arguments.get("inputFile")
        if (descriptions is None) == (not input_file):
            raise ValueError("Provide exactly one of 'descriptions' or 'inputFile'.")

        if input_file:
            path = os.path.abspath(os.path.expanduser(str(input_file)))
            try:
                raw = await asyncio.to_thread(_read_json_file, path)
            except (OSError, json.JSONDecodeError) as exc:
                raise ValueError(f"Error reading file {path}: {exc}") from exc
            if isinstance(raw, dict):
                raw = raw.get("descriptions")
        else:
            raw = descriptions

        if not isinstance(raw, list):
            raise ValueError("Descriptions must be an array of {serverName, toolName, description}.")
        if len(raw) > MAX_BATCH_LIMIT:
            raise ValueError(
                f"Too many descriptions: {len(raw)}. Maximum is {MAX_BATCH_LIMIT} per call."
            )
        try:
            return [CompressedToolEntry.model_validate(item) for item in raw]
        except ValidationError as exc:
            raise ValueError(f"Invalid description entry: {exc.errors()[0]['msg']}") from exc

    async def _originals_for(self, server_names: Iterable[str]) -> Dict[str, Dict[str, Optional[str]]]:
        """Live descriptions of the given backends, keyed by server then tool."""
        wanted = set(server_names)
        clients = [c for c in self._manager.get_connected_clients() if c.name in wanted]
        catalogs = await fetch_tool_catalogs(clients)
        return {
            name: {t.name: t.description for t in listing.tools}
            for name, listing in catalogs.items()
        }

    async def _cache_compressed(self, arguments: Dict[str, Any]) -> mcp_types.CallToolResult:
        try:
            entries = await self._load_entries(arguments)
        except ValueError as exc:
            return _error_result(str(exc))

        originals = await self._originals_for({e.server_name for e in entries})
        for entry in entries:
            original = originals.get(entry.server_name, {}).get(entry.tool_name)
            if original is None:
                logger.warning(
                    "[%s] Original description of '%s' unavailable; caching without it.",
                    entry.server_name,
                    entry.tool_name,
                )
            self._cache.save_compressed(
                entry.server_name, entry.tool_name, entry.description, original
            )

        remaining = len(await self._uncompressed_tools())
        source = f"from file: {arguments['inputFile']}" if arguments.get("inputFile") else (
            "from descriptions parameter"
        )
        text = f"Cached {len(entries)} compressed tool description(s) {source}."
        try:
            await self._cache.save_to_disk()
        except CachePersistenceError as exc:
            logger.error("Failed to persist compression cache: %s", exc)
            text += f"\n\nWarning: failed to persist cache to disk: {exc}"

        if remaining:
            text += (
                f"\n\nRemaining tools to compress: {remaining}\n\n"
                f"Call {meta_tools.GET_UNCOMPRESSED} to continue with the next batch."
            )
        else:
            text += "\n\nAll tools have been compressed."
        return _text_result(text)

    # ── Stats ────────────────────────────────────────────────────────

    async def _get_stats(self, arguments: Dict[str, Any]) -> mcp_types.CallToolResult:
        if self._stats is None:
            return _error_result("Statistics are not available.")
        detail = arguments.get("detail", "summary")
        if detail not in ("summary", "full"):
            return _error_result("Argument 'detail' must be 'summary' or 'full'.")
        try:
            payload = await self._stats.get_stats(detail, arguments.get("serverName"))
        except UnknownBackendError as exc:
            return _error_result(str(exc))
        return _text_result(payload.model_dump_json(indent=2))

    def attach_stats(self, stats: "StatsService") -> None:
        self._stats = stats
