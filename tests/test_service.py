"""Tests for the ProxyService lifecycle and health reporting."""

from __future__ import annotations

import logging

import pytest

from mcp_compression_proxy.compression.cache import CompressionCache
from mcp_compression_proxy.config.schema import ProxyConfig
from mcp_compression_proxy.display.logging_config import secret_redaction_filter
from mcp_compression_proxy.runtime.models import ServiceState, is_valid_transition
from mcp_compression_proxy.runtime.service import ProxyService


def _config(**backends) -> ProxyConfig:
    return ProxyConfig.model_validate(
        {"backends": {name: {"command": name, **extra} for name, extra in backends.items()}}
    )


class TestStateMachine:
    def test_valid_transitions(self) -> None:
        assert is_valid_transition(ServiceState.PENDING, ServiceState.STARTING)
        assert is_valid_transition(ServiceState.ERROR, ServiceState.STOPPING)
        assert not is_valid_transition(ServiceState.PENDING, ServiceState.RUNNING)
        assert not is_valid_transition(ServiceState.STOPPED, ServiceState.STARTING)


@pytest.mark.asyncio
class TestProxyService:
    async def test_start_and_stop(self, connector, persistence) -> None:
        connector.add("fs", {"read": "Reads."})
        service = ProxyService(_config(fs={}), connector=connector, persistence=persistence)
        assert service.state == ServiceState.PENDING

        await service.start()
        assert service.is_running
        assert service.started_at is not None
        assert service.manager.get_client("fs") is not None

        await service.stop()
        assert service.state == ServiceState.STOPPED
        assert connector.closed == ["fs"]
        assert service.sessions.active_count == 0

    async def test_stop_twice_is_noop(self, connector, persistence) -> None:
        service = ProxyService(_config(), connector=connector, persistence=persistence)
        await service.start()
        await service.stop()
        await service.stop()
        assert service.state == ServiceState.STOPPED

    async def test_loads_cache_on_start(self, connector, persistence) -> None:
        seed = CompressionCache(persistence)
        seed.save_compressed("fs", "read", "Read")
        await seed.save_to_disk()

        service = ProxyService(_config(), connector=connector, persistence=persistence)
        await service.start()
        assert service.cache.get_compressed_description("fs", "read") == "Read"
        await service.stop()

    async def test_health_levels(self, connector, persistence) -> None:
        connector.add("up")
        connector.add("down", error=RuntimeError("refused"))

        partial = ProxyService(
            _config(up={}, down={}), connector=connector, persistence=persistence
        )
        await partial.start()
        health = partial.get_health()
        assert health.status == "degraded"
        assert health.backends.total == 2
        assert health.backends.connected == 1
        assert health.state == "running"
        await partial.stop()

        broken = ProxyService(_config(down={}), connector=connector, persistence=persistence)
        await broken.start()
        assert broken.get_health().status == "unhealthy"
        await broken.stop()

        empty = ProxyService(_config(), connector=connector, persistence=persistence)
        await empty.start()
        assert empty.get_health().status == "healthy"
        await empty.stop()

    async def test_disabled_backend_not_connected(self, connector, persistence) -> None:
        connector.add("fs")
        connector.add("off")
        service = ProxyService(
            _config(fs={}, off={"disabled": True}), connector=connector, persistence=persistence
        )
        await service.start()
        assert connector.opened == ["fs"]
        assert service.get_health().status == "healthy"
        await service.stop()

    async def test_backend_env_values_redacted(self, connector, persistence) -> None:
        connector.add("gh")
        service = ProxyService(
            _config(gh={"env": {"GITHUB_TOKEN": "ghp_supersecret"}}),
            connector=connector,
            persistence=persistence,
        )
        await service.start()
        record = logging.LogRecord(
            "test", logging.INFO, __file__, 1, "token=%s", ("ghp_supersecret",), None
        )
        secret_redaction_filter.filter(record)
        assert "ghp_supersecret" not in record.getMessage()
        await service.stop()
