"""Rich console rendering for CLI output.

Everything here writes to a :class:`rich.console.Console`; the ``serve``
command passes one bound to stderr because stdout belongs to MCP.
"""

from __future__ import annotations

from typing import List, Optional

from rich.console import Console
from rich.table import Table

from mcp_compression_proxy.runtime.models import HealthResponse, ServerStatus, StatsPayload


def render_startup_summary(
    statuses: List[ServerStatus],
    log_fpath: Optional[str] = None,
    console: Optional[Console] = None,
) -> None:
    """Print one line per backend after the connection phase."""
    console = console or Console(stderr=True)
    connected = sum(1 for s in statuses if s.connected)
    console.print(f"[bold]Backends connected:[/bold] {connected}/{len(statuses)}")
    for status in statuses:
        if status.connected:
            console.print(f"  [bold bright_green]✓[/] [cyan]{status.name}[/]")
        else:
            console.print(f"  [bold red]✗[/] [cyan]{status.name}[/] [red]{status.error or ''}[/]")
    if log_fpath:
        console.print(f"[dim]Log file: {log_fpath}[/dim]")


def render_health(health: HealthResponse, console: Optional[Console] = None) -> None:
    console = console or Console()
    colour = {"healthy": "green", "degraded": "yellow"}.get(health.status, "red")
    console.print(
        f"[bold {colour}]{health.status}[/] "
        f"({health.backends.connected}/{health.backends.total} backends, "
        f"state {health.state}, version {health.version})"
    )


def render_stats(payload: StatsPayload, console: Optional[Console] = None) -> None:
    """Render a stats report as a per-backend table plus summary lines."""
    console = console or Console()
    summary = payload.summary

    table = Table(title="Backends", show_lines=False)
    table.add_column("Server", style="cyan")
    table.add_column("Connected")
    table.add_column("Tools", justify="right")
    table.add_column("Compressed", justify="right")
    table.add_column("Excluded", justify="right")
    table.add_column("Coverage", justify="right")
    table.add_column("Tokens saved", justify="right")
    table.add_column("Error", style="red")
    for server in payload.servers:
        table.add_row(
            server.name,
            "[green]yes[/]" if server.connected else "[red]no[/]",
            str(server.tools_total),
            str(server.tools_compressed),
            str(server.tools_excluded),
            f"{server.coverage_percent:.1f}%",
            str(server.estimated_tokens_saved),
            server.error or "",
        )
    console.print(table)

    console.print(
        f"[bold]Total:[/bold] {summary.tools_compressed}/{summary.tools_total} tools compressed "
        f"({summary.coverage_percent:.1f}%), ~{summary.estimated_tokens_saved} tokens saved"
    )
    compression = payload.compression
    console.print(
        f"[bold]Cache:[/bold] {compression.total_cached} record(s), "
        f"{compression.cache_size_bytes} bytes, "
        f"{compression.missing_originals} missing original(s)"
    )
    if compression.cache_file:
        console.print(f"[dim]Cache file: {compression.cache_file}[/dim]")
    console.print(
        f"[bold]Sessions:[/bold] {payload.sessions.active_sessions} active, "
        f"{payload.sessions.expanded_tools_total} expanded tool(s)"
    )
    for session in payload.sessions.details or []:
        console.print(f"  {session.get('id')}: {', '.join(session.get('expanded_tools', []))}")
