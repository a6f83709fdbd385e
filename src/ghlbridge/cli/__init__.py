"""CLI package for the GHL bridge.

The main Typer app is created in app.py and commands are registered from each module.
"""

# Import command modules to register commands with the app
import ghlbridge.cli.commands_ghl  # noqa: F401, E402
from ghlbridge.cli.app import app

__all__ = ["app"]
