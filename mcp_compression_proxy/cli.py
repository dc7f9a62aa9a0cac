"""CLI argument parsing and main entry point.

* ``mcp-compression-proxy [serve]`` runs the proxy on stdio (the default,
  as launched by MCP clients).
* ``mcp-compression-proxy clear-cache`` removes every cached compression.
* ``mcp-compression-proxy stats`` / ``health`` query a running proxy's
  management API.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

import httpx
from rich.console import Console

from mcp_compression_proxy.compression.cache import CompressionCache
from mcp_compression_proxy.compression.persistence import CompressionPersistence
from mcp_compression_proxy.config.loader import load_config
from mcp_compression_proxy.constants import (
    DEFAULT_DATA_DIR,
    DEFAULT_LOG_LEVEL,
    DEFAULT_MANAGEMENT_HOST,
    DEFAULT_MANAGEMENT_PORT,
    SERVER_NAME,
    SERVER_VERSION,
)
from mcp_compression_proxy.display.console import render_health, render_stats, render_startup_summary
from mcp_compression_proxy.display.logging_config import setup_logging
from mcp_compression_proxy.errors import CachePersistenceError, ConfigurationError
from mcp_compression_proxy.runtime.service import ProxyService
from mcp_compression_proxy.server.app import run_stdio
from mcp_compression_proxy.server.management import create_management_server
from mcp_compression_proxy.server.management.client import ApiClient, ApiClientError

module_logger = logging.getLogger(__name__)

_SUBCOMMANDS = ("serve", "clear-cache", "stats", "health")

# Seconds to wait for the management API to stop
_MANAGEMENT_STOP_TIMEOUT = 5.0


# ── ``serve`` ────────────────────────────────────────────────────────────


async def _run_server(args: argparse.Namespace) -> int:
    """Async main for the serve subcommand."""
    log_fpath, cfg_log_lvl = setup_logging(args.log_level, to_stderr=args.log_stderr)
    err_console = Console(stderr=True)
    module_logger.info(
        "---- %s v%s starting (file log level: %s) ----",
        SERVER_NAME,
        SERVER_VERSION,
        cfg_log_lvl,
    )

    try:
        config = load_config(args.config)
    except ConfigurationError as exc:
        module_logger.error("Configuration error: %s", exc)
        err_console.print(f"[bold red]Configuration error:[/] {exc}")
        return 1

    if args.clear_cache:
        return await _clear_cache(config.cache_dir or DEFAULT_DATA_DIR, err_console)

    if args.management_port is not None:
        config.management.enabled = True
        config.management.port = args.management_port

    service = ProxyService(config)
    await service.start()
    if not args.quiet:
        render_startup_summary(service.manager.get_server_statuses(), log_fpath, err_console)

    mgmt_server = None
    mgmt_task: Optional[asyncio.Task] = None
    if config.management.enabled:
        mgmt_server = create_management_server(
            service, config.management.host, config.management.port
        )
        mgmt_task = asyncio.create_task(mgmt_server.serve(), name="management-api")

    try:
        await run_stdio(service)
    finally:
        if mgmt_server is not None and mgmt_task is not None:
            mgmt_server.should_exit = True
            try:
                await asyncio.wait_for(mgmt_task, timeout=_MANAGEMENT_STOP_TIMEOUT)
            except asyncio.TimeoutError:
                module_logger.warning("Management API did not stop in time.")
        await service.stop()
        module_logger.info("%s has shut down.", SERVER_NAME)
    return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    try:
        return asyncio.run(_run_server(args))
    except KeyboardInterrupt:
        module_logger.info("Interrupted by user.")
        return 130


# ── ``clear-cache`` ──────────────────────────────────────────────────────


async def _clear_cache(cache_dir: str, console: Console) -> int:
    cache = CompressionCache(CompressionPersistence(cache_dir))
    try:
        await cache.clear_all()
    except CachePersistenceError as exc:
        console.print(f"[bold red]Failed to clear cache:[/] {exc}")
        return 1
    console.print(f"Compression cache cleared ({cache.persistence.cache_file_path}).")
    return 0


def _cmd_clear_cache(args: argparse.Namespace) -> int:
    cache_dir = args.cache_dir
    if cache_dir is None:
        try:
            cache_dir = load_config(args.config).cache_dir
        except ConfigurationError as exc:
            Console(stderr=True).print(f"[bold red]Configuration error:[/] {exc}")
            return 1
    return asyncio.run(_clear_cache(cache_dir or DEFAULT_DATA_DIR, Console()))


# ── ``stats`` / ``health`` ───────────────────────────────────────────────


def _api_url(args: argparse.Namespace) -> str:
    return args.url or f"http://{DEFAULT_MANAGEMENT_HOST}:{DEFAULT_MANAGEMENT_PORT}"


async def _fetch_and_render(args: argparse.Namespace) -> int:
    console = Console()
    try:
        async with ApiClient(_api_url(args)) as client:
            if args.command == "health":
                render_health(await client.get_health(), console)
            else:
                payload = await client.get_stats(args.detail, args.server)
                if args.json:
                    console.print_json(payload.model_dump_json())
                else:
                    render_stats(payload, console)
    except ApiClientError as exc:
        Console(stderr=True).print(f"[bold red]API error:[/] {exc}")
        return 1
    except httpx.HTTPError as exc:
        Console(stderr=True).print(
            f"[bold red]Cannot reach management API at {_api_url(args)}:[/] {exc}"
        )
        return 1
    return 0


def _cmd_query(args: argparse.Namespace) -> int:
    return asyncio.run(_fetch_and_render(args))


# ── Parser ───────────────────────────────────────────────────────────────


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser with the proxy's subcommands."""
    parser = argparse.ArgumentParser(
        prog=SERVER_NAME,
        description=f"{SERVER_NAME} v{SERVER_VERSION}",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {SERVER_VERSION}")
    subparsers = parser.add_subparsers(dest="command")

    config_help = (
        "Path to a configuration file (YAML or JSON). Default: merge "
        "~/.mcp-compression-proxy/servers.* and ./servers.*"
    )

    # ── serve ───────────────────────────────────────────────────
    sp_serve = subparsers.add_parser("serve", help="Run the proxy on stdio (default)")
    sp_serve.add_argument("--config", type=str, default=None, metavar="PATH", help=config_help)
    sp_serve.add_argument(
        "--log-level",
        type=str,
        default=DEFAULT_LOG_LEVEL.lower(),
        choices=["debug", "info", "warning", "error", "critical"],
        help="Set file logging level (default: info)",
    )
    sp_serve.add_argument(
        "--log-stderr",
        action="store_true",
        default=False,
        help="Also write log records to stderr",
    )
    sp_serve.add_argument(
        "--clear-cache",
        action="store_true",
        default=False,
        help="Clear the compression cache and exit",
    )
    sp_serve.add_argument(
        "--management-port",
        type=int,
        default=None,
        metavar="PORT",
        help="Enable the management API on PORT",
    )
    sp_serve.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        default=False,
        help="Do not print the backend summary to stderr",
    )
    sp_serve.set_defaults(func=_cmd_serve)

    # ── clear-cache ─────────────────────────────────────────────
    sp_clear = subparsers.add_parser("clear-cache", help="Remove all cached compressions")
    sp_clear.add_argument("--config", type=str, default=None, metavar="PATH", help=config_help)
    sp_clear.add_argument(
        "--cache-dir", type=str, default=None, metavar="DIR", help="Cache directory override"
    )
    sp_clear.set_defaults(func=_cmd_clear_cache)

    # ── stats / health ──────────────────────────────────────────
    url_help = (
        f"Management API root URL "
        f"(default: http://{DEFAULT_MANAGEMENT_HOST}:{DEFAULT_MANAGEMENT_PORT})"
    )
    sp_stats = subparsers.add_parser("stats", help="Show statistics of a running proxy")
    sp_stats.add_argument("--url", type=str, default=None, help=url_help)
    sp_stats.add_argument("--detail", choices=["summary", "full"], default="summary")
    sp_stats.add_argument("--server", type=str, default=None, help="Limit to one backend")
    sp_stats.add_argument("--json", action="store_true", default=False, help="Print raw JSON")
    sp_stats.set_defaults(func=_cmd_query)

    sp_health = subparsers.add_parser("health", help="Show health of a running proxy")
    sp_health.add_argument("--url", type=str, default=None, help=url_help)
    sp_health.set_defaults(func=_cmd_query)

    return parser


def _normalise_argv(argv: List[str]) -> List[str]:
    """Default to ``serve`` when no subcommand is given."""
    if argv and (argv[0] in _SUBCOMMANDS or argv[0] in ("-h", "--help", "--version")):
        return argv
    return ["serve", *argv]


def main(argv: Optional[List[str]] = None) -> None:
    """Program entry point: parse arguments and dispatch to subcommand."""
    parser = _build_parser()
    args = parser.parse_args(_normalise_argv(list(sys.argv[1:] if argv is None else argv)))
    sys.exit(args.func(args))
