"""CLI subcommands."""

import click

from cardlink.context import AppContext, create_context


def get_app_context(ctx: click.Context) -> AppContext:
    """Build the application context on first use and reuse it afterwards."""
    root = ctx.find_root()
    obj = root.ensure_object(dict)
    if obj.get("context") is None:
        obj["context"] = create_context()
        root.call_on_close(obj["context"].close)
    return obj["context"]
