"""Tests for concurrent backend connection and teardown."""

from __future__ import annotations

import time

import pytest

from mcp_compression_proxy.bridge.client_manager import ClientManager


@pytest.mark.asyncio
class TestInitialize:
    async def test_connects_all_backends(self, connector, make_backend_config) -> None:
        connector.add("fs", {"read": "Reads."})
        connector.add("db", {"query": "Queries."})
        manager = ClientManager(connector)
        await manager.initialize([make_backend_config("fs"), make_backend_config("db")])

        assert manager.has_connected_servers()
        assert {c.name for c in manager.get_connected_clients()} == {"fs", "db"}
        assert all(s.connected and s.error is None for s in manager.get_server_statuses())
        await manager.disconnect_all()

    async def test_slow_backend_does_not_block_fast_one(self, connector, make_backend_config) -> None:
        connector.add("fast", delay=0.1)
        connector.add("slow", delay=5.0)
        manager = ClientManager(connector)

        started = time.monotonic()
        await manager.initialize(
            [
                make_backend_config("fast", timeout=5.0),
                make_backend_config("slow", timeout=1.0),
            ]
        )
        elapsed = time.monotonic() - started

        assert elapsed < 3.0
        statuses = {s.name: s for s in manager.get_server_statuses()}
        assert statuses["fast"].connected
        assert not statuses["slow"].connected
        assert "timeout" in statuses["slow"].error.lower()
        assert manager.get_client("slow") is None
        await manager.disconnect_all()
        assert "slow" not in connector.opened

    async def test_default_timeout_applies(self, connector, make_backend_config) -> None:
        connector.add("slow", delay=2.0)
        manager = ClientManager(connector)
        await manager.initialize([make_backend_config("slow")], default_timeout=0.2)
        (status,) = manager.get_server_statuses()
        assert status.error == "Connection timeout after 0.2s"
        await manager.disconnect_all()

    async def test_handshake_failure_recorded(self, connector, make_backend_config) -> None:
        connector.add("bad", error=RuntimeError("handshake refused"))
        connector.add("good")
        manager = ClientManager(connector)
        await manager.initialize([make_backend_config("bad"), make_backend_config("good")])

        statuses = {s.name: s for s in manager.get_server_statuses()}
        assert not statuses["bad"].connected
        assert "handshake refused" in statuses["bad"].error
        assert statuses["good"].connected
        await manager.disconnect_all()

    async def test_missing_command_reported(self, connector, make_backend_config) -> None:
        connector.add("ghost", error=FileNotFoundError(2, "No such file", "ghost-server"))
        manager = ClientManager(connector)
        await manager.initialize([make_backend_config("ghost")])
        (status,) = manager.get_server_statuses()
        assert status.error == "Command not found: ghost-server"
        assert not manager.has_connected_servers()

    async def test_disabled_and_duplicates_skipped(self, connector, make_backend_config) -> None:
        connector.add("fs")
        connector.add("off")
        manager = ClientManager(connector)
        await manager.initialize(
            [
                make_backend_config("fs"),
                make_backend_config("fs"),
                make_backend_config("off", disabled=True),
                make_backend_config("off", enabled=False),
            ]
        )
        assert manager.server_names == ["fs"]
        assert connector.opened == ["fs"]
        await manager.disconnect_all()

    async def test_no_backends(self, connector) -> None:
        manager = ClientManager(connector)
        await manager.initialize([])
        assert not manager.has_connected_servers()
        assert manager.get_server_statuses() == []


@pytest.mark.asyncio
class TestDisconnect:
    async def test_closes_every_backend(self, connector, make_backend_config) -> None:
        connector.add("fs")
        connector.add("db")
        manager = ClientManager(connector)
        await manager.initialize([make_backend_config("fs"), make_backend_config("db")])
        await manager.disconnect_all()

        assert sorted(connector.closed) == ["db", "fs"]
        assert not manager.has_connected_servers()
        assert manager.get_client("fs") is None

    async def test_close_failure_does_not_stop_others(self, connector, make_backend_config) -> None:
        connector.add("broken", close_error=RuntimeError("pipe closed"))
        connector.add("fine")
        manager = ClientManager(connector)
        await manager.initialize([make_backend_config("broken"), make_backend_config("fine")])
        await manager.disconnect_all()
        assert sorted(connector.closed) == ["broken", "fine"]

    async def test_disconnect_twice(self, connector, make_backend_config) -> None:
        connector.add("fs")
        manager = ClientManager(connector)
        await manager.initialize([make_backend_config("fs")])
        await manager.disconnect_all()
        await manager.disconnect_all()
        assert connector.closed == ["fs"]
