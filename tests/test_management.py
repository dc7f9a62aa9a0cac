"""Tests for the management HTTP API and its client."""

from __future__ import annotations

import httpx
import pytest
import pytest_asyncio

from mcp_compression_proxy.config.schema import ProxyConfig
from mcp_compression_proxy.runtime.service import ProxyService
from mcp_compression_proxy.server.management import (
    create_management_app,
    create_management_server,
)
from mcp_compression_proxy.server.management.client import ApiClient, ApiClientError


@pytest_asyncio.fixture
async def service(connector, persistence):
    connector.add("fs", {"read": "Reads a file.", "write": "Writes a file."})
    config = ProxyConfig.model_validate({"backends": {"fs": {"command": "fs"}}})
    svc = ProxyService(config, connector=connector, persistence=persistence)
    await svc.start()
    yield svc
    await svc.stop()


@pytest_asyncio.fixture
async def http(service):
    transport = httpx.ASGITransport(app=create_management_app(service))
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.mark.asyncio
class TestManagementRoutes:
    async def test_health(self, http) -> None:
        resp = await http.get("/manage/v1/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "healthy"
        assert body["backends"] == {"total": 1, "connected": 1}
        assert body["servers"][0]["name"] == "fs"

    async def test_stats(self, http, service) -> None:
        service.cache.save_compressed("fs", "read", "Read")
        resp = await http.get("/manage/v1/stats")
        assert resp.status_code == 200
        body = resp.json()
        assert body["summary"]["tools_compressed"] == 1
        assert body["summary"]["tools_total"] == 2

    async def test_stats_bad_detail(self, http) -> None:
        resp = await http.get("/manage/v1/stats", params={"detail": "verbose"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "bad_request"

    async def test_stats_unknown_server(self, http) -> None:
        resp = await http.get("/manage/v1/stats", params={"server": "ghost"})
        assert resp.status_code == 404

    async def test_sessions(self, http, service) -> None:
        sid = service.sessions.create_session()
        service.sessions.expand_tool(sid, "fs", "read")
        body = (await http.get("/manage/v1/sessions")).json()
        assert body["active_sessions"] == 1
        assert body["sessions"][0]["expanded_tools"] == ["fs:read"]

    async def test_unknown_route(self, http) -> None:
        resp = await http.get("/manage/v1/nope")
        assert resp.status_code == 404


@pytest.mark.asyncio
class TestApiClient:
    async def test_get_health_and_stats(self, service) -> None:
        transport = httpx.ASGITransport(app=create_management_app(service))
        async with ApiClient("http://test/", transport=transport) as client:
            health = await client.get_health()
            assert health.status == "healthy"
            stats = await client.get_stats("full")
            assert stats.detail_level == "full"
            assert stats.servers[0].name == "fs"

    async def test_error_status_raises(self, service) -> None:
        transport = httpx.ASGITransport(app=create_management_app(service))
        async with ApiClient("http://test", transport=transport) as client:
            with pytest.raises(ApiClientError) as excinfo:
                await client.get_stats(server="ghost")
        assert excinfo.value.status_code == 404
        assert "ghost" in excinfo.value.detail

    async def test_requires_connect(self) -> None:
        client = ApiClient("http://test")
        with pytest.raises(RuntimeError):
            await client.get_health()


@pytest.mark.asyncio
class TestManagementServer:
    async def test_server_configuration(self, service) -> None:
        server = create_management_server(service, "127.0.0.1", 9123)
        assert server.config.host == "127.0.0.1"
        assert server.config.port == 9123
        assert not server.should_exit
