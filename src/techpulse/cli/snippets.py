"""Snippet CLI commands: list, add, check."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from techpulse.cli._common import open_repo
from techpulse.core.models import MAX_SNIPPET_CODE_LENGTH, parse_location
from techpulse.security.snippets import lint_snippet, sanitize_snippet_html

console = Console()
snippets_app = typer.Typer(name="snippets", help="Injected HTML snippet management.")


def _location(value: str) -> str:
    try:
        return parse_location(value).value
    except ValueError:
        raise typer.BadParameter(f"unknown location '{value}'") from None


@snippets_app.command("list")
def list_snippets(
    location: Optional[str] = typer.Option(None, "-l", "--location", help="Filter by location"),
) -> None:
    """Show stored snippets."""
    repo = open_repo()
    rows = repo.get_snippets(_location(location) if location else None)
    if not rows:
        console.print("[dim]No snippets stored.[/dim]")
        return

    table = Table(title="HTML Snippets")
    table.add_column("ID", justify="right")
    table.add_column("Name", style="cyan")
    table.add_column("Location")
    table.add_column("Priority", justify="right")
    table.add_column("Active")
    table.add_column("Size", justify="right")
    for r in rows:
        table.add_row(
            str(r["id"]), r["name"], r["location"], str(r["priority"]),
            "[green]yes[/green]" if r["is_active"] else "[dim]no[/dim]",
            str(len(r["code"])),
        )
    console.print(table)


@snippets_app.command("add")
def add_snippet(
    name: str = typer.Argument(..., help="Display name"),
    location: str = typer.Argument(..., help="Injection location"),
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="File holding the snippet code"),
    priority: int = typer.Option(0, "-p", "--priority", help="Higher renders first"),
    inactive: bool = typer.Option(False, "--inactive", help="Store without activating"),
) -> None:
    """Store a snippet from a file."""
    code = file.read_text()
    if not code.strip():
        raise typer.BadParameter("snippet file is empty")
    if len(code) > MAX_SNIPPET_CODE_LENGTH:
        raise typer.BadParameter(f"snippet exceeds {MAX_SNIPPET_CODE_LENGTH} characters")

    for warning in lint_snippet(code):
        console.print(f"  [yellow]warning:[/yellow] {warning}")

    repo = open_repo()
    snippet_id = repo.create_snippet(
        name, _location(location), code, is_active=not inactive, priority=priority,
    )
    console.print(f"[green]Stored snippet #{snippet_id}[/green]")


@snippets_app.command("check")
def check_snippet(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="File holding the snippet code"),
) -> None:
    """Show what a page would receive for the snippet in FILE."""
    code = file.read_text()
    warnings = lint_snippet(code)
    result = sanitize_snippet_html(code)

    for warning in warnings:
        console.print(f"[yellow]warning:[/yellow] {warning}")
    if not warnings:
        console.print("[green]No problems found.[/green]")

    console.print("\n[bold]Sanitized HTML[/bold]")
    console.print(result.html or "[dim](empty)[/dim]", markup=False, highlight=False)
    console.print("\n[bold]Trusted scripts[/bold]")
    for url in result.scripts:
        console.print(f"  {url}", markup=False)
    console.print("\n[bold]Inline scripts[/bold]")
    for body in result.inline_scripts:
        console.print(f"  {body}", markup=False, highlight=False)
