"""Configuration models for MCP Compression Proxy.

Defines the Pydantic models for backend servers, the management API and
the top-level proxy configuration.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from mcp_compression_proxy.constants import (
    DEFAULT_MANAGEMENT_HOST,
    DEFAULT_MANAGEMENT_PORT,
    TOOL_NAME_SEPARATOR,
)

# ── Backend server config ────────────────────────────────────────────────


class BackendConfig(BaseModel):
    """Configuration for a stdio backend MCP server.

    Unknown keys are tolerated and kept as extras so configuration files
    shared with other MCP clients still load.
    """

    model_config = ConfigDict(extra="allow")

    name: str = Field(default="", description="Filled from the mapping key.")
    command: str = Field(..., min_length=1, description="Executable to run")
    args: List[str] = Field(default_factory=list)
    env: Optional[Dict[str, str]] = None
    cwd: Optional[str] = Field(default=None, description="Working directory for the process.")
    enabled: bool = True
    disabled: bool = Field(
        default=False,
        description="Set to true to switch the backend off; always wins over 'enabled'.",
    )
    timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="Connect timeout in seconds; falls back to the global default.",
    )

    @field_validator("command")
    @classmethod
    def _strip_command(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("command must be a non-empty string")
        return v

    @property
    def is_enabled(self) -> bool:
        return self.enabled and not self.disabled


# ── Management API ───────────────────────────────────────────────────────


class ManagementSettings(BaseModel):
    """Management HTTP API configuration."""

    enabled: bool = False
    host: str = DEFAULT_MANAGEMENT_HOST
    port: int = Field(default=DEFAULT_MANAGEMENT_PORT, ge=1, le=65535)


# ── Top-level config ─────────────────────────────────────────────────────


class ProxyConfig(BaseModel):
    """Top-level validated configuration for MCP Compression Proxy.

    Supports version ``"1"`` format::

        {
            "version": "1",
            "default_timeout": 30,
            "exclude_tools": ["*__delete*"],
            "no_compress_tools": ["filesystem__*"],
            "backends": {
                "my-server": {"command": "npx", "args": [...]}
            }
        }
    """

    version: str = "1"
    default_timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="Connect timeout in seconds for backends without their own.",
    )
    exclude_tools: List[str] = Field(
        default_factory=list,
        description="Glob patterns of backend__tool names hidden from listings.",
    )
    no_compress_tools: List[str] = Field(
        default_factory=list,
        description="Glob patterns of backend__tool names that always show the original.",
    )
    blank_uncompressed: bool = Field(
        default=False,
        description="Show an empty description for tools that have no compression yet.",
    )
    cache_dir: Optional[str] = Field(
        default=None,
        description="Directory of the compression cache file.",
    )
    management: ManagementSettings = Field(default_factory=ManagementSettings)
    backends: Dict[str, BackendConfig] = Field(default_factory=dict)

    @field_validator("version", mode="before")
    @classmethod
    def _coerce_version(cls, v: Any) -> Any:
        if isinstance(v, (int, float)):
            return str(v)
        return v

    @field_validator("backends")
    @classmethod
    def _validate_backend_names(cls, v: Dict[str, BackendConfig]) -> Dict[str, BackendConfig]:
        for name in v:
            stripped = name.strip()
            if not stripped:
                raise ValueError("Backend name must be a non-empty string")
            if stripped != name:
                raise ValueError(f"Backend name '{name}' has leading/trailing whitespace")
            if TOOL_NAME_SEPARATOR in name:
                raise ValueError(
                    f"Backend name '{name}' must not contain '{TOOL_NAME_SEPARATOR}'"
                )
        return v

    @model_validator(mode="after")
    def _fill_backend_names(self) -> "ProxyConfig":
        for name, backend in self.backends.items():
            backend.name = name
        return self

    @property
    def enabled_backends(self) -> List[BackendConfig]:
        return [b for b in self.backends.values() if b.is_enabled]
