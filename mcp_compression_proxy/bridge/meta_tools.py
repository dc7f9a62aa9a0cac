"""Definitions of the proxy's own management tools.

These are listed next to the aggregated backend tools and handled
locally by :class:`~mcp_compression_proxy.bridge.aggregator.ToolAggregator`.
"""

from __future__ import annotations

from typing import List

from mcp import types as mcp_types

from mcp_compression_proxy.constants import (
    DEFAULT_BATCH_LIMIT,
    MANAGEMENT_TOOL_PREFIX,
    MAX_BATCH_LIMIT,
)

# ── Tool names ───────────────────────────────────────────────────────────

CREATE_SESSION = f"{MANAGEMENT_TOOL_PREFIX}create_session"
DELETE_SESSION = f"{MANAGEMENT_TOOL_PREFIX}delete_session"
SET_SESSION = f"{MANAGEMENT_TOOL_PREFIX}set_session"
CLEAR_CACHE = f"{MANAGEMENT_TOOL_PREFIX}clear_compressed_tools_cache"
GET_UNCOMPRESSED = f"{MANAGEMENT_TOOL_PREFIX}get_uncompressed_tools"
CACHE_COMPRESSED = f"{MANAGEMENT_TOOL_PREFIX}cache_compressed_tools"
EXPAND_TOOL = f"{MANAGEMENT_TOOL_PREFIX}expand_tool"
COLLAPSE_TOOL = f"{MANAGEMENT_TOOL_PREFIX}collapse_tool"
GET_STATS = f"{MANAGEMENT_TOOL_PREFIX}get_stats"

_SESSION_ID_SCHEMA = {
    "type": "object",
    "properties": {
        "sessionId": {"type": "string", "description": "Session ID returned by create_session."},
    },
    "required": ["sessionId"],
}

_TOOL_REF_SCHEMA = {
    "type": "object",
    "properties": {
        "serverName": {"type": "string", "description": 'Backend name, e.g. "filesystem".'},
        "toolName": {"type": "string", "description": 'Tool name, e.g. "read_file".'},
    },
    "required": ["serverName", "toolName"],
}

# ── Tool definitions ─────────────────────────────────────────────────────

CREATE_SESSION_DEF = mcp_types.Tool(
    name=CREATE_SESSION,
    description=(
        "Create a session for independent expand/collapse control and make it "
        "the active session."
    ),
    inputSchema={"type": "object", "properties": {}},
)

DELETE_SESSION_DEF = mcp_types.Tool(
    name=DELETE_SESSION,
    description="Delete a session and its expanded tools.",
    inputSchema=_SESSION_ID_SCHEMA,
)

SET_SESSION_DEF = mcp_types.Tool(
    name=SET_SESSION,
    description="Make an existing session active; listings then honour its expanded tools.",
    inputSchema=_SESSION_ID_SCHEMA,
)

CLEAR_CACHE_DEF = mcp_types.Tool(
    name=CLEAR_CACHE,
    description=(
        "Remove every cached compressed description from memory and disk. "
        "Use when backend tool descriptions changed significantly."
    ),
    inputSchema={"type": "object", "properties": {}},
)

GET_UNCOMPRESSED_DEF = mcp_types.Tool(
    name=GET_UNCOMPRESSED,
    description=(
        "List tools that have no compressed description yet, with their original "
        f"descriptions. Compress them, then call {CACHE_COMPRESSED}; repeat until "
        "none remain."
    ),
    inputSchema={
        "type": "object",
        "properties": {
            "limit": {
                "type": "integer",
                "description": (
                    f"Maximum number of tools to return "
                    f"(default: {DEFAULT_BATCH_LIMIT}, max: {MAX_BATCH_LIMIT})."
                ),
                "default": DEFAULT_BATCH_LIMIT,
            },
            "outputFile": {
                "type": "string",
                "description": "Write the batch as JSON to this file instead of returning it.",
            },
        },
    },
)

CACHE_COMPRESSED_DEF = mcp_types.Tool(
    name=CACHE_COMPRESSED,
    description=(
        f"Store compressed tool descriptions (max {MAX_BATCH_LIMIT} per call) and "
        "persist the cache. Provide either 'descriptions' or 'inputFile', not both."
    ),
    inputSchema={
        "type": "object",
        "properties": {
            "descriptions": {
                "type": "array",
                "description": f"Compressed descriptions (max {MAX_BATCH_LIMIT}).",
                "items": {
                    "type": "object",
                    "properties": {
                        "serverName": {"type": "string"},
                        "toolName": {"type": "string"},
                        "description": {"type": "string"},
                    },
                    "required": ["serverName", "toolName", "description"],
                },
            },
            "inputFile": {
                "type": "string",
                "description": "Read the descriptions array as JSON from this file.",
            },
        },
    },
)

EXPAND_TOOL_DEF = mcp_types.Tool(
    name=EXPAND_TOOL,
    description="Show a tool's full original description in the active session.",
    inputSchema=_TOOL_REF_SCHEMA,
)

COLLAPSE_TOOL_DEF = mcp_types.Tool(
    name=COLLAPSE_TOOL,
    description="Return an expanded tool to its compressed description in the active session.",
    inputSchema=_TOOL_REF_SCHEMA,
)

GET_STATS_DEF = mcp_types.Tool(
    name=GET_STATS,
    description="Report backend, compression and session statistics as JSON.",
    inputSchema={
        "type": "object",
        "properties": {
            "detail": {
                "type": "string",
                "enum": ["summary", "full"],
                "default": "summary",
            },
            "serverName": {"type": "string", "description": "Limit the report to one backend."},
        },
    },
)

META_TOOLS: List[mcp_types.Tool] = [
    CREATE_SESSION_DEF,
    DELETE_SESSION_DEF,
    SET_SESSION_DEF,
    CLEAR_CACHE_DEF,
    GET_UNCOMPRESSED_DEF,
    CACHE_COMPRESSED_DEF,
    EXPAND_TOOL_DEF,
    COLLAPSE_TOOL_DEF,
    GET_STATS_DEF,
]

META_TOOL_NAMES = frozenset(t.name for t in META_TOOLS)
