"""Shared fixtures: in-process fake backends and a scripted connector."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

import pytest
from mcp import types as mcp_types

from mcp_compression_proxy.compression.persistence import CompressionPersistence
from mcp_compression_proxy.config.schema import BackendConfig


class FakeBackend:
    """Stands in for an initialised MCP client session."""

    def __init__(self, tools: Optional[Dict[str, Optional[str]]] = None) -> None:
        self.tools: Dict[str, Optional[str]] = dict(tools or {})
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.list_error: Optional[Exception] = None

    async def list_tools(self) -> mcp_types.ListToolsResult:
        if self.list_error is not None:
            raise self.list_error
        return mcp_types.ListToolsResult(
            tools=[
                mcp_types.Tool(
                    name=name,
                    description=description,
                    inputSchema={"type": "object", "properties": {}},
                )
                for name, description in self.tools.items()
            ]
        )

    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> mcp_types.CallToolResult:
        self.calls.append((name, arguments))
        if name == "explode":
            raise RuntimeError("backend exploded")
        return mcp_types.CallToolResult(
            content=[mcp_types.TextContent(type="text", text=f"{name} ok")]
        )


@dataclass
class _Script:
    backend: FakeBackend
    delay: float = 0.0
    error: Optional[Exception] = None
    close_error: Optional[Exception] = None


class FakeConnector:
    """Connector whose per-backend behaviour is scripted by the test."""

    def __init__(self) -> None:
        self._scripts: Dict[str, _Script] = {}
        self.opened: List[str] = []
        self.closed: List[str] = []

    def add(
        self,
        name: str,
        tools: Optional[Dict[str, Optional[str]]] = None,
        *,
        delay: float = 0.0,
        error: Optional[Exception] = None,
        close_error: Optional[Exception] = None,
    ) -> FakeBackend:
        backend = FakeBackend(tools)
        self._scripts[name] = _Script(backend, delay, error, close_error)
        return backend

    @asynccontextmanager
    async def __call__(self, config: BackendConfig) -> AsyncIterator[FakeBackend]:
        script = self._scripts[config.name]
        if script.delay:
            await asyncio.sleep(script.delay)
        if script.error is not None:
            raise script.error
        self.opened.append(config.name)
        try:
            yield script.backend
        finally:
            self.closed.append(config.name)
        if script.close_error is not None:
            raise script.close_error


def backend_config(name: str, **kwargs: Any) -> BackendConfig:
    return BackendConfig(name=name, command="fake-server", **kwargs)


@pytest.fixture()
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture()
def persistence(tmp_path) -> CompressionPersistence:
    return CompressionPersistence(str(tmp_path / "cache"))


@pytest.fixture()
def make_backend_config():
    return backend_config
