"""Security CLI commands: set-password, issue-token, check-auth."""

from __future__ import annotations

import os

import typer
from rich.console import Console

from techpulse.core.config import load_config
from techpulse.core.models import UserRole
from techpulse.web.security import TokenSigner, hash_password

console = Console()
security_app = typer.Typer(name="security", help="Security and authentication management.")


@security_app.command("set-password")
def set_password() -> None:
    """Generate a bcrypt hash for a password."""
    password = typer.prompt("Password", hide_input=True, confirmation_prompt=True)
    hashed = hash_password(password)
    console.print(f"\n[bold]Bcrypt hash:[/bold]\n  {hashed}", markup=True, highlight=False)
    console.print("\n[dim]Set this as TECHPULSE_ADMIN_HASH in your environment,[/dim]")
    console.print("[dim]or use TECHPULSE_ADMIN_PASSWORD for automatic runtime hashing.[/dim]")


@security_app.command("issue-token")
def issue_token(
    subject: str = typer.Argument(..., help="Who the token is for"),
    role: UserRole = typer.Option(UserRole.PUBLISHER, "-r", "--role", help="Role granted by the token"),
) -> None:
    """Sign an API token for a publisher or admin."""
    cfg = load_config()
    if not cfg.auth.secret_key:
        console.print("[red]TECHPULSE_SECRET_KEY is not set.[/red] Tokens would not verify on the server.")
        raise typer.Exit(1)
    token = TokenSigner(cfg.auth.secret_key, cfg.auth.token_max_age).issue(subject, role)
    console.print(f"[bold]{role.value}[/bold] token for [cyan]{subject}[/cyan] "
                  f"(valid {cfg.auth.token_max_age}s):")
    console.print(token, markup=False, highlight=False)


@security_app.command("check-auth")
def check_auth() -> None:
    """Verify auth env vars are configured."""
    console.print("\n[bold]Auth Configuration Check[/bold]\n")

    secret_key = os.environ.get("TECHPULSE_SECRET_KEY", "")
    admin_hash = os.environ.get("TECHPULSE_ADMIN_HASH", "")
    admin_password = os.environ.get("TECHPULSE_ADMIN_PASSWORD", "")

    if secret_key:
        console.print("  TECHPULSE_SECRET_KEY     [green]set[/green]")
    else:
        console.print("  TECHPULSE_SECRET_KEY     [red]not set[/red] (random key used per restart)")

    if admin_hash:
        console.print("  TECHPULSE_ADMIN_HASH     [green]set[/green]")
    elif admin_password:
        console.print("  TECHPULSE_ADMIN_HASH     [yellow]not set[/yellow] (using ADMIN_PASSWORD fallback)")
    else:
        console.print("  TECHPULSE_ADMIN_HASH     [red]not set[/red]")

    if not admin_hash and not admin_password:
        console.print("\n  [red]Admin sign-in is disabled.[/red] Set TECHPULSE_ADMIN_HASH or TECHPULSE_ADMIN_PASSWORD.")
    else:
        console.print("\n  [green]Admin sign-in is enabled.[/green]")
