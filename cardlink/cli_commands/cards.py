"""Card commands."""

import sys

import click
from rich.console import Console
from rich.table import Table

from cardlink.cli_commands import get_app_context
from cardlink.core.exceptions import CardLinkError

console = Console()


def _print_cards(title: str, items: list) -> None:
    if not items:
        console.print(f"No cards ({title.lower()})")
        return

    table = Table(title=title)
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Company")
    table.add_column("Phone")
    for card in items:
        table.add_row(
            str(card.get("_id", "")),
            str(card.get("name", "")),
            str(card.get("companyName", "")),
            str(card.get("personalPhone") or card.get("companyPhone") or ""),
        )
    console.print(table)


@click.group()
def cards():
    """Business cards."""
    pass


@cards.command(name="list")
@click.pass_context
def list_cards(ctx):
    """List your own cards."""
    try:
        items = get_app_context(ctx).cards.list_mine()
    except CardLinkError as e:
        console.print(f"[red]Cards Error:[/red] {e}")
        sys.exit(1)
    _print_cards("My Cards", items)


@cards.command()
@click.option(
    "--source",
    type=click.Choice(["contacts", "public"]),
    default="contacts",
    help="Contacts feed or public feed",
)
@click.pass_context
def feed(ctx, source: str):
    """Show the card feed."""
    service = get_app_context(ctx).cards
    try:
        items = service.contacts_feed() if source == "contacts" else service.public_feed()
    except CardLinkError as e:
        console.print(f"[red]Feed Error:[/red] {e}")
        sys.exit(1)
    _print_cards(f"{source.title()} Feed", items)


@cards.command()
@click.argument("card_id")
@click.pass_context
def show(ctx, card_id: str):
    """Show one card as JSON."""
    try:
        card = get_app_context(ctx).cards.get(card_id)
    except CardLinkError as e:
        console.print(f"[red]Card Error:[/red] {e}")
        sys.exit(1)

    if card is None:
        console.print(f"[yellow]Card {card_id} not found[/yellow]")
        sys.exit(1)
    console.print_json(data=card)
