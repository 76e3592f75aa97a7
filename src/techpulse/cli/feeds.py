"""Feed CLI commands: add, list, refresh."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from techpulse.cli._common import open_repo
from techpulse.research.rss import refresh_feeds

console = Console()
feeds_app = typer.Typer(name="feeds", help="RSS feed sources.")


@feeds_app.command("add")
def add_feed(
    name: str = typer.Argument(..., help="Display name"),
    url: str = typer.Argument(..., help="Feed URL"),
    category: str = typer.Option("", "-c", "--category", help="Category label"),
) -> None:
    """Register a feed."""
    if not url.startswith(("http://", "https://")):
        raise typer.BadParameter("feed URL must be http(s)")
    feed_id = open_repo().create_feed(name, url, category)
    console.print(f"[green]Added feed #{feed_id}[/green] {name}")


@feeds_app.command("list")
def list_feeds() -> None:
    """Show registered feeds."""
    feeds = open_repo().get_feeds(active_only=False)
    if not feeds:
        console.print("[dim]No feeds registered.[/dim]")
        return

    table = Table(title="RSS Feeds")
    table.add_column("ID", justify="right")
    table.add_column("Name", style="cyan")
    table.add_column("Category")
    table.add_column("URL", style="dim")
    table.add_column("Last fetched")
    for f in feeds:
        table.add_row(str(f["id"]), f["name"], f["category"] or "", f["url"], str(f["last_fetched_at"] or "never"))
    console.print(table)


@feeds_app.command("refresh")
def refresh() -> None:
    """Fetch every active feed now."""
    repo = open_repo()
    results = refresh_feeds(repo)
    table = Table(title="Feed refresh")
    table.add_column("Feed", style="cyan")
    table.add_column("New Items", justify="right")
    for name, count in results.items():
        table.add_row(name, str(count) if count >= 0 else "[red]failed[/red]")
    console.print(table)
