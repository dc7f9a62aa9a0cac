"""Backend MCP server connection management.

Every enabled backend is connected concurrently.  Each connection lives in
its own runner task that enters the transport and session contexts, reports
readiness through a future and then parks until shutdown, so the contexts
are entered and exited by the same task.  A connect that misses its deadline
is cancelled rather than abandoned, which releases the child process.
"""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import (
    Any,
    AsyncContextManager,
    AsyncIterator,
    Callable,
    Dict,
    List,
    NamedTuple,
    Optional,
    Sequence,
    Set,
)

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client

from mcp_compression_proxy.config.schema import BackendConfig
from mcp_compression_proxy.constants import BACKEND_CLOSE_TIMEOUT, DEFAULT_CONNECT_TIMEOUT
from mcp_compression_proxy.errors import BackendServerError, ConfigurationError
from mcp_compression_proxy.runtime.models import ServerStatus

logger = logging.getLogger(__name__)

# A connector turns a backend config into an async context manager that
# yields an initialised handle exposing ``list_tools()`` and ``call_tool()``.
Connector = Callable[[BackendConfig], AsyncContextManager[Any]]


class ConnectedClient(NamedTuple):
    name: str
    client: Any


@asynccontextmanager
async def stdio_connector(config: BackendConfig) -> AsyncIterator[ClientSession]:
    """Spawn a stdio backend and yield its initialised :class:`ClientSession`."""
    proc_env = os.environ.copy()
    if config.env:
        proc_env.update(config.env)
    params = StdioServerParameters(
        command=config.command,
        args=config.args,
        env=proc_env,
        cwd=config.cwd,
    )
    logger.info("[%s] Starting local process: '%s' args: %s", config.name, config.command, config.args)
    async with stdio_client(params) as (read_stream, write_stream):
        async with ClientSession(read_stream, write_stream) as session:
            await session.initialize()
            yield session


def _describe_failure(svr_name: str, e: BaseException) -> str:
    """Log a backend connect failure and return the message to record."""
    if isinstance(e, FileNotFoundError):
        logger.error("[%s] Command or file not found '%s'.", svr_name, e.filename)
        return f"Command not found: {e.filename}"
    if isinstance(e, (ConnectionError, BrokenPipeError, ConfigurationError)):
        logger.error("[%s] Connection error: %s: %s", svr_name, type(e).__name__, e)
        return f"{type(e).__name__}: {e}"
    logger.error("[%s] Connect/initialize failed: %s", svr_name, e, exc_info=e)
    return str(e) or type(e).__name__


@dataclass
class _Backend:
    """Live state of one configured backend."""

    name: str
    config: BackendConfig
    connected: bool = False
    last_error: Optional[str] = None
    handle: Any = None
    runner: Optional[asyncio.Task] = None
    stop_event: asyncio.Event = field(default_factory=asyncio.Event)


class ClientManager:
    """Manages connections and sessions for all backend MCP servers.

    Parameters
    ----------
    connector:
        Factory for the per-backend connection context.  Defaults to
        :func:`stdio_connector`.
    """

    def __init__(self, connector: Optional[Connector] = None) -> None:
        self._connector: Connector = connector or stdio_connector
        self._backends: Dict[str, _Backend] = {}
        self._discarded: Set[asyncio.Task] = set()

    # ── Startup ──────────────────────────────────────────────────────

    async def initialize(
        self,
        configs: Sequence[BackendConfig],
        default_timeout: Optional[float] = None,
    ) -> None:
        """Connect every enabled backend concurrently.

        Returns once each attempt has succeeded, failed or timed out; the
        total wait is bounded by the slowest individual timeout.
        """
        fallback = default_timeout or DEFAULT_CONNECT_TIMEOUT
        attempts = []
        for cfg in configs:
            if not cfg.is_enabled:
                logger.info("[%s] Backend disabled, skipping.", cfg.name)
                continue
            if cfg.name in self._backends:
                logger.warning("[%s] Duplicate backend name, skipping.", cfg.name)
                continue
            backend = _Backend(name=cfg.name, config=cfg)
            self._backends[cfg.name] = backend
            attempts.append(self._connect(backend, cfg.timeout or fallback))

        if not attempts:
            logger.info("No enabled backends to connect.")
            return

        logger.info("Connecting %d backend(s)...", len(attempts))
        await asyncio.gather(*attempts)
        connected = sum(1 for b in self._backends.values() if b.connected)
        logger.info(
            "Backend connection complete: %d/%d connected.", connected, len(self._backends)
        )

    async def _connect(self, backend: _Backend, timeout: float) -> None:
        """Race one backend's connect against *timeout*."""
        logger.info("[%s] Attempting connection (timeout: %.1fs)...", backend.name, timeout)
        ready: asyncio.Future = asyncio.get_running_loop().create_future()
        runner = asyncio.create_task(
            self._run_backend(backend, ready), name=f"backend_{backend.name}"
        )
        backend.runner = runner

        done, _ = await asyncio.wait({ready}, timeout=timeout)
        if not done:
            ready.cancel()
            runner.cancel()
            self._discard(runner)
            backend.runner = None
            backend.last_error = f"Connection timeout after {timeout}s"
            logger.error("[%s] %s", backend.name, backend.last_error)
            return

        exc = ready.exception()
        if exc is not None:
            backend.runner = None
            backend.last_error = _describe_failure(backend.name, exc)
            return

        backend.handle = ready.result()
        backend.connected = True
        backend.last_error = None
        logger.info("[%s] MCP connection initialized.", backend.name)

    async def _run_backend(self, backend: _Backend, ready: asyncio.Future) -> None:
        """Own the backend's contexts from connect to shutdown."""
        try:
            async with self._connector(backend.config) as handle:
                if ready.done():
                    # The deadline passed while the handshake was finishing.
                    logger.debug("[%s] Late connection discarded.", backend.name)
                    return
                ready.set_result(handle)
                await backend.stop_event.wait()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if not ready.done():
                ready.set_exception(exc)
            else:
                logger.warning("[%s] Error while closing backend: %s", backend.name, exc)
        finally:
            if not ready.done():
                ready.set_exception(
                    BackendServerError("Connection closed before it was ready", backend.name)
                )

    def _discard(self, task: asyncio.Task) -> None:
        self._discarded.add(task)
        task.add_done_callback(self._discarded.discard)

    # ── Queries ──────────────────────────────────────────────────────

    def get_client(self, name: str) -> Optional[Any]:
        """Return the live handle for *name*, or ``None`` if not connected."""
        backend = self._backends.get(name)
        if backend is None or not backend.connected:
            return None
        return backend.handle

    def get_connected_clients(self) -> List[ConnectedClient]:
        return [
            ConnectedClient(b.name, b.handle) for b in self._backends.values() if b.connected
        ]

    def get_server_statuses(self) -> List[ServerStatus]:
        """Status of every configured, enabled backend, connected or not."""
        return [
            ServerStatus(name=b.name, connected=b.connected, error=b.last_error)
            for b in self._backends.values()
        ]

    def has_connected_servers(self) -> bool:
        return any(b.connected for b in self._backends.values())

    @property
    def server_names(self) -> List[str]:
        return list(self._backends)

    # ── Teardown ─────────────────────────────────────────────────────

    async def disconnect_all(self) -> None:
        """Close every live connection.

        A failure while closing one backend is logged and does not stop
        the others from closing.
        """
        logger.info("Disconnecting %d backend(s)...", len(self._backends))
        runners: Dict[asyncio.Task, str] = {}
        for backend in self._backends.values():
            backend.stop_event.set()
            if backend.runner is not None and not backend.runner.done():
                runners[backend.runner] = backend.name
        for task in list(self._discarded):
            task.cancel()
            runners[task] = task.get_name()

        if runners:
            _, pending = await asyncio.wait(set(runners), timeout=BACKEND_CLOSE_TIMEOUT)
            for task in pending:
                logger.warning(
                    "[%s] Backend did not close within %.1fs, cancelling.",
                    runners[task],
                    BACKEND_CLOSE_TIMEOUT,
                )
                task.cancel()
            results = await asyncio.gather(*runners, return_exceptions=True)
            for task, result in zip(runners, results):
                if isinstance(result, Exception):
                    logger.warning("[%s] Error during disconnect: %s", runners[task], result)

        for backend in self._backends.values():
            backend.connected = False
            backend.handle = None
            backend.runner = None
        self._discarded.clear()
        logger.info("ClientManager closed, all backends disconnected.")
