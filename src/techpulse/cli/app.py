"""Root CLI application with init, status and serve commands."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from techpulse.cli.feeds import feeds_app
from techpulse.cli.ratelimit import ratelimit_app
from techpulse.cli.security import security_app
from techpulse.cli.snippets import snippets_app
from techpulse.core.config import load_config, resolve_db_path
from techpulse.core.database import get_schema_version, init_database, seed_settings
from techpulse.db.repository import Repository
from techpulse.security.policy import POLICY_VERSION, TRUSTED_SCRIPT_DOMAINS

console = Console()
app = typer.Typer(
    name="techpulse",
    help="TechPulse: snippet serving, content sanitizing and rate limiting for the tech news site.",
    no_args_is_help=True,
)

# Register sub-command groups
app.add_typer(snippets_app)
app.add_typer(ratelimit_app)
app.add_typer(security_app)
app.add_typer(feeds_app)


@app.command()
def init() -> None:
    """Initialize the database and seed default site settings."""
    cfg = load_config()
    db_path = resolve_db_path(cfg.db_path)

    console.print("[bold]Initializing TechPulse...[/bold]")
    init_database(db_path)
    console.print(f"  Database created at [cyan]{db_path}[/cyan]")

    count = seed_settings(db_path)
    if count > 0:
        console.print(f"  Seeded [green]{count}[/green] default settings")
    else:
        console.print("  Settings already exist")

    ver = get_schema_version(db_path)
    console.print(f"  Schema version: [cyan]{ver}[/cyan]")
    console.print("\n[bold green]Ready![/bold green] Run [cyan]techpulse serve[/cyan] to start the API.")


@app.command()
def status() -> None:
    """Show database and policy status."""
    cfg = load_config()
    db_path = resolve_db_path(cfg.db_path)
    if not Path(db_path).exists():
        console.print("[red]Database not found.[/red] Run [cyan]techpulse init[/cyan] first.")
        raise typer.Exit(1)

    repo = Repository(db_path)
    console.print(f"\n[bold]{cfg.site_name}[/bold]")
    console.print(f"Database: [cyan]{db_path}[/cyan] (schema v{get_schema_version(db_path)})")
    console.print(f"Script policy: [cyan]{POLICY_VERSION}[/cyan], {len(TRUSTED_SCRIPT_DOMAINS)} trusted domains")
    console.print(f"AI: [cyan]{cfg.ai.provider.value}[/cyan] / [cyan]{cfg.ai.model}[/cyan]\n")

    table = Table(title="Rate limit rules")
    table.add_column("Function", style="cyan")
    table.add_column("Max", justify="right")
    table.add_column("Window (s)", justify="right")
    for name, rule in sorted(cfg.rate_limits.rules.items()):
        table.add_row(name, str(rule.max_requests), f"{rule.window_seconds:g}")
    console.print(table)

    counts = repo.get_table_counts()
    console.print(f"\n[dim]Snippets: {counts['html_snippets']} | Rate-limit windows: {counts['rate_limits']} | "
                  f"Feeds: {counts['rss_feeds']} | Feed items: {counts['rss_items']}[/dim]")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Host to bind to"),
    port: int = typer.Option(8000, help="Port to listen on"),
    reload: bool = typer.Option(False, help="Enable auto-reload for development"),
) -> None:
    """Start the API server."""
    import uvicorn

    console.print("\n[bold]TechPulse API[/bold]")
    console.print(f"Starting at [cyan]http://{host}:{port}[/cyan]\n")
    uvicorn.run(
        "techpulse.web.app:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )
