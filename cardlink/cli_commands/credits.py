"""Credits commands."""

import sys
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from cardlink.cli_commands import get_app_context
from cardlink.core.exceptions import CardLinkError

console = Console()


@click.group()
def credits():
    """Credit balance, transfers and history."""
    pass


@credits.command()
@click.pass_context
def balance(ctx):
    """Show the current credit balance."""
    try:
        amount = get_app_context(ctx).credits.balance()
    except CardLinkError as e:
        console.print(f"[red]Balance Error:[/red] {e}")
        sys.exit(1)
    console.print(f"Credits: [bold]{amount}[/bold]")


@credits.command()
@click.argument("to_user_id")
@click.argument("amount", type=int)
@click.option("--note", default="", help="Note shown in the history")
@click.option("--idempotency-key", help="Reuse to repeat the same logical transfer safely")
@click.confirmation_option(prompt="Transfer credits?")
@click.pass_context
def transfer(ctx, to_user_id: str, amount: int, note: str, idempotency_key: Optional[str]):
    """Send credits to another user."""
    try:
        result = get_app_context(ctx).credits.transfer(
            to_user_id, amount, note=note, idempotency_key=idempotency_key
        )
    except CardLinkError as e:
        console.print(f"[red]Transfer Error:[/red] {e}")
        sys.exit(1)

    new_balance = result.get("newBalance") if isinstance(result, dict) else None
    console.print(f"[green]Transferred {amount} credits[/green]")
    if new_balance is not None:
        console.print(f"New balance: {new_balance}")


@credits.command()
@click.option("--limit", default=20, help="Number of transactions")
@click.pass_context
def history(ctx, limit: int):
    """List recent credit transactions."""
    try:
        transactions = get_app_context(ctx).credits.transactions(limit)
    except CardLinkError as e:
        console.print(f"[red]History Error:[/red] {e}")
        sys.exit(1)

    if not transactions:
        console.print("No transactions")
        return

    table = Table(title="Credit History")
    table.add_column("Date")
    table.add_column("Type")
    table.add_column("Amount", justify="right")
    table.add_column("Description")
    for tx in transactions:
        table.add_row(
            str(tx.get("createdAt", ""))[:19],
            str(tx.get("type", "")),
            str(tx.get("amount", "")),
            str(tx.get("description") or tx.get("note") or ""),
        )
    console.print(table)
