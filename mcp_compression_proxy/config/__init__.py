"""Configuration loading and validation for MCP Compression Proxy."""

from mcp_compression_proxy.config.env import expand_env_vars
from mcp_compression_proxy.config.loader import (
    discover_config_files,
    load_config,
    load_merged_config,
    load_proxy_config,
)
from mcp_compression_proxy.config.schema import BackendConfig, ManagementSettings, ProxyConfig

__all__ = [
    "BackendConfig",
    "ManagementSettings",
    "ProxyConfig",
    "discover_config_files",
    "expand_env_vars",
    "load_config",
    "load_merged_config",
    "load_proxy_config",
]
