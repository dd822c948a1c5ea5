"""
Main application entry point for CardLink.

Provides the CLI for diagnostics and everyday backend operations.
"""

import json
import sys
from typing import Optional, Tuple

import click
from rich.console import Console

from cardlink.cli_commands import get_app_context
from cardlink.cli_commands.account import login, logout, whoami
from cardlink.cli_commands.cards import cards
from cardlink.cli_commands.credits import credits
from cardlink.cli_commands.doctor import doctor
from cardlink.core.exceptions import ApiError, CardLinkError
from cardlink.core.logging import set_correlation_id, setup_logging

console = Console()


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--json-logs", is_flag=True, help="Emit JSON logs instead of rich console output")
@click.option("--correlation-id", help="Set correlation ID for request tracing")
@click.pass_context
def main(ctx, debug: bool, json_logs: bool, correlation_id: Optional[str]):
    """Client for the business card sharing backend.

    Log in, check credits, browse cards and diagnose connectivity.
    """
    ctx.ensure_object(dict)

    setup_logging(debug=debug, rich_output=not json_logs)

    if correlation_id:
        set_correlation_id(correlation_id)

    ctx.obj["debug"] = debug
    ctx.obj["correlation_id"] = correlation_id


main.add_command(doctor)
main.add_command(login)
main.add_command(logout)
main.add_command(whoami)
main.add_command(credits)
main.add_command(cards)


def _parse_params(pairs: Tuple[str, ...]) -> dict:
    params = {}
    for pair in pairs:
        if "=" not in pair:
            raise click.BadParameter(f"expected key=value, got {pair!r}", param_hint="--param")
        key, value = pair.split("=", 1)
        params[key] = value
    return params


@main.command()
@click.argument(
    "method", type=click.Choice(["GET", "POST", "PUT", "PATCH", "DELETE"], case_sensitive=False)
)
@click.argument("path")
@click.option("--data", "data", help="JSON request body")
@click.option("--param", "params", multiple=True, help="Query parameter as key=value")
@click.option("--idempotency-key", help="Idempotency key for mutating calls")
@click.pass_context
def request(
    ctx,
    method: str,
    path: str,
    data: Optional[str],
    params: Tuple[str, ...],
    idempotency_key: Optional[str],
):
    """Send a raw request to the backend and print the response body."""
    try:
        body = json.loads(data) if data else None
    except ValueError as e:
        console.print(f"[red]Invalid JSON body:[/red] {e}")
        sys.exit(1)

    try:
        app = get_app_context(ctx)
        response = app.client.request(
            method,
            path,
            body=body,
            params=_parse_params(params),
            idempotency_key=idempotency_key,
        )
    except ApiError as e:
        console.print(f"[red]Request failed ({e.status}):[/red] {e}")
        if e.body is not None:
            console.print(e.body if isinstance(e.body, str) else json.dumps(e.body, indent=2))
        sys.exit(1)
    except CardLinkError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    console.print(f"[green]{response.status}[/green] {response.url}")
    if isinstance(response.body, (dict, list)):
        console.print_json(data=response.body)
    elif response.body is not None:
        console.print(response.body)


if __name__ == "__main__":
    main()
