"""Shared constants for MCP Compression Proxy."""

import os

SERVER_NAME = "mcp-compression-proxy"
SERVER_VERSION = "0.1.0"

# Tool naming
TOOL_NAME_SEPARATOR = "__"  # backend__tool, as shown to the agent
TOOL_KEY_SEPARATOR = ":"  # backend:tool, internal cache/session key
MANAGEMENT_TOOL_PREFIX = f"{SERVER_NAME}{TOOL_NAME_SEPARATOR}"

# Backend connection timeouts
DEFAULT_CONNECT_TIMEOUT = 30.0  # seconds, used when neither backend nor config sets one
BACKEND_CLOSE_TIMEOUT = 5.0  # seconds to wait for a backend to shut down
LIST_TOOLS_TIMEOUT = 10.0  # seconds for a single backend tool listing

# Sessions
SESSION_TTL = 30 * 60.0  # inactivity window in seconds
SESSION_CLEANUP_INTERVAL = 5 * 60.0  # seconds between expiry sweeps

# Compression cache
CACHE_FORMAT_VERSION = 1
DEFAULT_DATA_DIR = os.path.join(os.path.expanduser("~"), ".mcp-compression-proxy")
CACHE_FILE_NAME = "cache.json"
CHARS_PER_TOKEN = 4  # rough estimate used for token savings

# Compression workflow batches
DEFAULT_BATCH_LIMIT = 25
MAX_BATCH_LIMIT = 100

# Configuration discovery
CONFIG_ENV_VAR = "MCP_COMPRESSION_PROXY_CONFIG"
CONFIG_BASENAME = "servers"
CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")

# Logging defaults
LOG_DIR = os.path.join(DEFAULT_DATA_DIR, "logs")
DEFAULT_LOG_LEVEL = "INFO"

# Management API
DEFAULT_MANAGEMENT_HOST = "127.0.0.1"
DEFAULT_MANAGEMENT_PORT = 9100
MANAGEMENT_API_PREFIX = "/manage/v1"
