"""CLI app setup and common utilities.

This module creates the main Typer app and provides the shared state
(the GHL client) used by all commands.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

import typer
from typer import Context, Typer

from ghlbridge.config import config

if TYPE_CHECKING:
    from ghlbridge.ghl.operations import GhlClient

# Initialize Typer app
app = Typer(
    name="ghlbridge",
    help="GoHighLevel bridge: credential diagnostics and messaging from the command line.",
)


class CLIState:
    """Shared state object for CLI commands.

    Holds the GHL client, created on first use so --help never touches the environment.
    """

    def __init__(self):
        self.client: Optional["GhlClient"] = None


def get_client(ctx: Context) -> "GhlClient":
    """Get (or lazily create) the GHL client from the Typer context."""
    from ghlbridge.ghl.operations import GhlClient

    ctx.ensure_object(CLIState)
    if ctx.obj.client is None:
        ctx.obj.client = GhlClient()
    return ctx.obj.client


@app.callback()
def init_app(
    ctx: Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output"),
):
    """Initialize logging and the shared CLI state."""
    level = logging.DEBUG if verbose else getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    ctx.ensure_object(CLIState)
