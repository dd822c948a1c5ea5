"""Session commands: login, logout, whoami."""

from __future__ import annotations

import sys
from typing import Optional

import click
from rich.console import Console

from cardlink.cli_commands import get_app_context
from cardlink.core.exceptions import CardLinkError

console = Console()


@click.command()
@click.option("--phone", help="Phone number with country code")
@click.option("--email", help="Email address (alternative to phone)")
@click.option("--password", prompt=True, hide_input=True, help="Account password")
@click.option("--warmup/--no-warmup", default=True, help="Ping the server before logging in")
@click.pass_context
def login(ctx, phone: Optional[str], email: Optional[str], password: str, warmup: bool):
    """Log in and store the session token."""
    if not phone and not email:
        console.print("[red]Provide --phone or --email[/red]")
        sys.exit(1)

    app = get_app_context(ctx)
    try:
        if warmup:
            app.warmup.warmup()
        body = app.auth.login(password, phone=phone, email=email)
    except CardLinkError as e:
        console.print(f"[red]Login failed:[/red] {e}")
        sys.exit(1)

    user = body.get("user") or {}
    console.print(f"[green]Logged in[/green] as {user.get('name') or phone or email}")


@click.command()
@click.pass_context
def logout(ctx):
    """Forget the stored session."""
    get_app_context(ctx).auth.logout()
    console.print("Logged out")


@click.command()
@click.option("--refresh", is_flag=True, help="Re-fetch the profile from the server")
@click.pass_context
def whoami(ctx, refresh: bool):
    """Show the current user."""
    auth = get_app_context(ctx).auth
    if not auth.is_authenticated():
        console.print("[yellow]Not logged in[/yellow]")
        sys.exit(1)

    user = auth.refresh_profile() if refresh else auth.current_user()
    if user is None:
        console.print("[red]Could not load the profile[/red]")
        sys.exit(1)

    console.print(f"[bold]{user.name or '(no name)'}[/bold]  id={user.id}")
    if user.phone:
        console.print(f"Phone: {user.phone}")
    if user.email:
        console.print(f"Email: {user.email}")
    console.print(f"About: {user.about}")
