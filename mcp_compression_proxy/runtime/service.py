"""Proxy runtime service: lifecycle management with state machine.

ProxyService owns the ClientManager, CompressionCache, SessionManager,
ToolAggregator and StatsService instances and runs the startup and
shutdown sequences.  It does NOT import the display layer; status
information is available via properties and :meth:`get_health`.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from mcp_compression_proxy.bridge.aggregator import ToolAggregator
from mcp_compression_proxy.bridge.client_manager import ClientManager, Connector
from mcp_compression_proxy.compression.cache import CompressionCache
from mcp_compression_proxy.compression.persistence import CompressionPersistence
from mcp_compression_proxy.config.schema import ProxyConfig
from mcp_compression_proxy.constants import (
    DEFAULT_DATA_DIR,
    SERVER_VERSION,
    SESSION_CLEANUP_INTERVAL,
    SESSION_TTL,
)
from mcp_compression_proxy.display.logging_config import secret_redaction_filter
from mcp_compression_proxy.runtime.models import (
    HealthBackends,
    HealthResponse,
    ServiceState,
    is_valid_transition,
)
from mcp_compression_proxy.runtime.stats import StatsService
from mcp_compression_proxy.server.session.manager import SessionManager

logger = logging.getLogger(__name__)


class _InvalidStateTransition(Exception):
    """Raised internally when an illegal state transition is attempted."""

    def __init__(self, current: ServiceState, target: ServiceState) -> None:
        super().__init__(f"Invalid state transition: {current.value} → {target.value}")
        self.current = current
        self.target = target


class ProxyService:
    """Manages the full lifecycle of the compression proxy.

    State machine::

        PENDING ─► STARTING ─► RUNNING ─► STOPPING ─► STOPPED
                       │                      │
                       └──────► ERROR ◄───────┘

    Usage::

        service = ProxyService(load_config())
        await service.start()
        # ... serve requests through service.aggregator ...
        await service.stop()
    """

    def __init__(
        self,
        config: Optional[ProxyConfig] = None,
        *,
        connector: Optional[Connector] = None,
        persistence: Optional[CompressionPersistence] = None,
        session_ttl: float = SESSION_TTL,
        session_cleanup_interval: float = SESSION_CLEANUP_INTERVAL,
    ) -> None:
        self._config = config or ProxyConfig()
        self._state: ServiceState = ServiceState.PENDING
        self._started_at: Optional[datetime] = None
        self._error_message: Optional[str] = None

        self._manager = ClientManager(connector)
        self._cache = CompressionCache(
            persistence or CompressionPersistence(self._config.cache_dir or DEFAULT_DATA_DIR),
            no_compress_patterns=self._config.no_compress_tools,
            blank_uncompressed=self._config.blank_uncompressed,
        )
        self._sessions = SessionManager(session_ttl, session_cleanup_interval)
        self._stats = StatsService(
            self._manager, self._cache, self._sessions, self._config.exclude_tools
        )
        self._aggregator = ToolAggregator(
            self._manager,
            self._cache,
            self._sessions,
            exclude_patterns=self._config.exclude_tools,
            stats=self._stats,
        )
        logger.info("ProxyService initialized (state=%s).", self._state.value)

    # ------------------------------------------------------------------ #
    #  Properties
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> ServiceState:
        return self._state

    @property
    def config(self) -> ProxyConfig:
        return self._config

    @property
    def manager(self) -> ClientManager:
        return self._manager

    @property
    def cache(self) -> CompressionCache:
        return self._cache

    @property
    def sessions(self) -> SessionManager:
        return self._sessions

    @property
    def aggregator(self) -> ToolAggregator:
        return self._aggregator

    @property
    def stats(self) -> StatsService:
        return self._stats

    @property
    def started_at(self) -> Optional[datetime]:
        return self._started_at

    @property
    def error_message(self) -> Optional[str]:
        return self._error_message

    @property
    def is_running(self) -> bool:
        return self._state == ServiceState.RUNNING

    def _transition(self, target: ServiceState) -> None:
        """Transition to *target* state if the move is valid."""
        if not is_valid_transition(self._state, target):
            raise _InvalidStateTransition(self._state, target)
        prev = self._state
        self._state = target
        logger.info("Service state: %s → %s", prev.value, target.value)

    # ------------------------------------------------------------------ #
    #  Lifecycle
    # ------------------------------------------------------------------ #

    async def start(self) -> None:
        """Execute the full startup sequence.

        1. Load the compression cache from disk (failures are non-fatal)
        2. Register backend environment values for log redaction
        3. Connect every enabled backend concurrently
        4. Start the session expiry sweep
        """
        self._transition(ServiceState.STARTING)
        try:
            loaded = await self._cache.load_from_disk()
            logger.info("Compression cache ready with %d record(s).", loaded)

            for backend in self._config.backends.values():
                for value in (backend.env or {}).values():
                    secret_redaction_filter.register(value)

            await self._manager.initialize(
                self._config.enabled_backends, self._config.default_timeout
            )
            if self._config.backends and not self._manager.has_connected_servers():
                logger.warning("No backend connected; only management tools are available.")

            self._sessions.start()
            self._started_at = datetime.now(timezone.utc)
            self._transition(ServiceState.RUNNING)
        except Exception as exc:
            self._error_message = f"{type(exc).__name__}: {exc}"
            logger.exception("Startup failed: %s", exc)
            self._transition(ServiceState.ERROR)
            raise

    async def stop(self) -> None:
        """Execute the full shutdown sequence.

        Safe to call after a failed start; cleanup is still attempted.
        """
        if self._state in (ServiceState.RUNNING, ServiceState.ERROR):
            self._transition(ServiceState.STOPPING)
        elif self._state == ServiceState.STARTING:
            self._state = ServiceState.ERROR
            logger.warning("Stop requested while still STARTING, forcing ERROR state.")
            self._transition(ServiceState.STOPPING)
        else:
            logger.info(
                "Stop requested but service is already %s, nothing to do.", self._state.value
            )
            return

        try:
            await self._sessions.stop()
            await self._manager.disconnect_all()
            self._transition(ServiceState.STOPPED)
        except Exception as exc:
            self._error_message = f"Shutdown error: {type(exc).__name__}: {exc}"
            logger.exception("Error during shutdown: %s", exc)
            self._transition(ServiceState.ERROR)

    # ------------------------------------------------------------------ #
    #  Health
    # ------------------------------------------------------------------ #

    def get_health(self) -> HealthResponse:
        """healthy: every backend (or none configured) connected;
        degraded: some connected; unhealthy: none of at least one."""
        statuses = self._manager.get_server_statuses()
        total = len(statuses)
        connected = sum(1 for s in statuses if s.connected)
        if connected == total:
            status = "healthy"
        elif connected > 0:
            status = "degraded"
        else:
            status = "unhealthy"

        uptime = None
        if self._started_at is not None:
            uptime = round((datetime.now(timezone.utc) - self._started_at).total_seconds(), 1)
        return HealthResponse(
            status=status,
            state=self._state.value,
            uptime_seconds=uptime,
            version=SERVER_VERSION,
            backends=HealthBackends(total=total, connected=connected),
            servers=statuses,
        )
