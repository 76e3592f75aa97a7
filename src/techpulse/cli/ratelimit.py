"""Rate-limit CLI commands: cleanup, show."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from techpulse.cli._common import open_repo
from techpulse.core.config import load_config
from techpulse.ratelimit.limiter import RateLimiter

console = Console()
ratelimit_app = typer.Typer(name="ratelimit", help="Rate-limit window maintenance.")


def _ts(epoch: float) -> str:
    return datetime.fromtimestamp(epoch, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


@ratelimit_app.command("cleanup")
def cleanup() -> None:
    """Delete every expired rate-limit window."""
    limiter = RateLimiter(open_repo(), load_config().rate_limits)
    removed = limiter.cleanup_expired()
    console.print(f"Removed [cyan]{removed}[/cyan] expired windows.")


@ratelimit_app.command("show")
def show(
    function: Optional[str] = typer.Option(None, "-f", "--function", help="Filter by function name"),
    limit: int = typer.Option(20, "-n", "--limit", help="Max windows to show"),
) -> None:
    """Show the most recent rate-limit windows."""
    rows = open_repo().get_rate_limits(function, limit)
    if not rows:
        console.print("[dim]No rate-limit windows recorded.[/dim]")
        return

    table = Table(title="Rate-limit windows")
    table.add_column("Function", style="cyan")
    table.add_column("Client IP")
    table.add_column("Requests", justify="right")
    table.add_column("Blocked", justify="right")
    table.add_column("Window start (UTC)", style="dim")
    table.add_column("Window end (UTC)", style="dim")
    for r in rows:
        blocked = r["blocked_count"]
        table.add_row(
            r["function_name"], r["client_ip"], str(r["request_count"]),
            f"[red]{blocked}[/red]" if blocked else "0",
            _ts(r["window_start"]), _ts(r["window_end"]),
        )
    console.print(table)
