"""
"Doctor" command: configuration and connectivity diagnostics.

Prints a concise report:
 - Config summary and resolved backend origin
 - Local session state
 - Backend health
 - Required remote app version
"""

from __future__ import annotations

import sys

import click

from cardlink.cli_commands import get_app_context
from cardlink.core.config import print_configuration_summary, validate_required_settings
from cardlink.data.storage import StorageKeys
from cardlink.utils.reliability import HealthChecker


@click.command()
@click.option("--skip-network", is_flag=True, help="Only check local configuration")
@click.pass_context
def doctor(ctx, skip_network: bool):
    """Run CardLink diagnostics and print a summary report."""
    click.echo("CardLink Doctor")
    click.echo("=" * 40)

    app = get_app_context(ctx)
    print_configuration_summary(app.client_config)

    missing = validate_required_settings("api")
    for item in missing:
        click.echo(f"✗ {item}")

    # Session
    if app.store.get_item(StorageKeys.TOKEN):
        user = app.store.get_json(StorageKeys.USER) or {}
        click.echo(f"\n✓ Logged in ({user.get('name') or 'unknown user'})")
    else:
        click.echo("\n- Not logged in")

    if skip_network:
        sys.exit(1 if missing else 0)

    checker = HealthChecker()
    checker.register_check("backend", app.client.health_check)
    results = checker.check_all()

    healthy = True
    for name, result in results.items():
        details = result.get("details") or {}
        if result["status"] == "healthy" and details.get("status") == "healthy":
            click.echo(f"✓ {name} healthy ({result['response_time_ms']:.0f} ms)")
        else:
            healthy = False
            error = details.get("error") or result.get("error") or "unknown"
            click.echo(f"✗ {name} unhealthy: {error}")

    update = app.app_version.check_remote_version() if healthy else None
    if update is not None:
        click.echo(f"⚠ Update required: {update.message or update.minimum_version}")

    sys.exit(0 if healthy and not missing else 1)
