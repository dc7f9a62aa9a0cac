"""HTTP client for the MCP Compression Proxy management API.

Async wrapper around the ``/manage/v1/`` endpoints used by the ``stats``
CLI command to query a running proxy.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from mcp_compression_proxy.constants import MANAGEMENT_API_PREFIX
from mcp_compression_proxy.server.management.schemas import HealthResponse, StatsPayload

logger = logging.getLogger(__name__)

# Default timeout for API calls (seconds); stats list every backend's tools.
_DEFAULT_TIMEOUT = 30.0


class ApiClientError(Exception):
    """Raised when the management API returns an unexpected status."""

    def __init__(self, status_code: int, detail: str = "") -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"HTTP {status_code}: {detail}")


class ApiClient:
    """Async HTTP client for the management API.

    Usable as an async context manager.

    Parameters
    ----------
    base_url:
        Root URL of the management API, e.g. ``http://127.0.0.1:9100``.
    transport:
        Optional httpx transport, mainly for tests.
    """

    def __init__(
        self,
        base_url: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_url = f"{self._base_url}{MANAGEMENT_API_PREFIX}/"
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    # ── Lifecycle ────────────────────────────────────────────────

    async def connect(self) -> None:
        """Create the underlying ``httpx.AsyncClient``."""
        self._client = httpx.AsyncClient(
            base_url=self._api_url,
            headers={"Accept": "application/json"},
            timeout=_DEFAULT_TIMEOUT,
            transport=self._transport,
        )
        logger.info("ApiClient connected to %s", self._api_url)

    async def close(self) -> None:
        """Shut down the HTTP client gracefully."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("ApiClient closed")

    async def __aenter__(self) -> "ApiClient":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ── Private helpers ──────────────────────────────────────────

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            raise RuntimeError("ApiClient is not connected; call connect() first")
        return self._client

    @staticmethod
    def _check(resp: httpx.Response) -> None:
        if resp.is_success:
            return
        try:
            detail = resp.json().get("message", resp.text)
        except ValueError:
            detail = resp.text
        raise ApiClientError(resp.status_code, detail)

    # ── Endpoints ────────────────────────────────────────────────

    async def get_health(self) -> HealthResponse:
        """``GET /manage/v1/health``"""
        resp = await self._ensure_client().get("health")
        self._check(resp)
        return HealthResponse.model_validate(resp.json())

    async def get_stats(
        self, detail: str = "summary", server: Optional[str] = None
    ) -> StatsPayload:
        """``GET /manage/v1/stats``"""
        params = {"detail": detail}
        if server:
            params["server"] = server
        resp = await self._ensure_client().get("stats", params=params)
        self._check(resp)
        return StatsPayload.model_validate(resp.json())
