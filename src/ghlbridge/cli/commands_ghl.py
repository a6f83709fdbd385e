"""GoHighLevel CLI commands.

- ghl test: Resolve the context and show how the provider is addressed
- ghl validate: Check the configured key's shape without network calls
- ghl send-test: Send a test email
- ghl status: Show delivery status of a sent email
- ghl contacts: List contacts for the location
"""

from __future__ import annotations

import asyncio
from typing import Optional

import typer
from typer import Context, Typer

from ghlbridge.cli.app import app, get_client

ghl_app = Typer(help="GoHighLevel connection and messaging commands")
app.add_typer(ghl_app, name="ghl")


@ghl_app.command(name="test")
def ghl_test(
    ctx: Context,
    location_id: Optional[str] = typer.Option(None, "--location-id", "-l", help="Explicit location override"),
):
    """Resolve credentials and print the connection report.

    Examples:
        ghlbridge ghl test
        ghlbridge ghl test --location-id abc123
    """
    client = get_client(ctx)
    report = asyncio.run(client.test_connection(location_id))

    if not report.success:
        typer.echo(f"❌ Error: {report.error}", err=True)
        raise typer.Exit(1)

    typer.echo("✅ GHL API key is configured")
    typer.echo(f"   Token: {report.token_preview} ({report.token_type})")
    typer.echo(f"   Environment: {report.environment}")
    typer.echo(f"   Location: {report.location_id or '-'} ({report.location_source or 'unresolved'})")
    typer.echo(f"   Base URL: {report.versioned_base_url}")
    typer.echo(f"   Auth: {report.auth_strategy}")
    if report.diagnostics:
        typer.echo("   Diagnostics:")
        for line in report.diagnostics:
            typer.echo(f"     - {line}")
    typer.echo(f"   Next: {report.next_steps}")


@ghl_app.command(name="validate")
def ghl_validate(ctx: Context):
    """Check that the configured API key has a usable shape (no network)."""
    from ghlbridge.ghl.classifier import validate_api_key

    client = get_client(ctx)
    validation = validate_api_key(client.config.api_key)
    if validation.ok:
        typer.echo(f"✅ {validation.message}")
    else:
        typer.echo(f"❌ {validation.message}", err=True)
        raise typer.Exit(1)


@ghl_app.command(name="send-test")
def ghl_send_test(
    ctx: Context,
    to: str = typer.Argument(..., help="Recipient email address"),
    subject: str = typer.Option("Test email from Revive", "--subject", "-s", help="Subject line"),
    location_id: Optional[str] = typer.Option(None, "--location-id", "-l", help="Explicit location override"),
):
    """Send a test email through GHL."""
    client = get_client(ctx)
    html = f"<p>This is a test email sent to {to}.</p>"
    result = asyncio.run(
        client.send_message(
            to=to,
            subject=subject,
            html=html,
            text=f"This is a test email sent to {to}.",
            location_id=location_id,
        )
    )

    if result.success:
        typer.echo(f"✅ Email sent (message id: {result.message_id or 'unknown'})")
    else:
        typer.echo(f"❌ Send failed: {result.error}", err=True)
        raise typer.Exit(1)


@ghl_app.command(name="status")
def ghl_status(
    ctx: Context,
    message_id: str = typer.Argument(..., help="Message id returned by send"),
    location_id: Optional[str] = typer.Option(None, "--location-id", "-l", help="Explicit location override"),
):
    """Show delivery status of a sent email."""
    client = get_client(ctx)
    result = asyncio.run(client.get_message_status(message_id, location_id))

    if result.success:
        typer.echo(f"📬 {message_id}: {result.status}")
    else:
        typer.echo(f"❌ Error: {result.error}", err=True)
        raise typer.Exit(1)


@ghl_app.command(name="contacts")
def ghl_contacts(
    ctx: Context,
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum contacts to fetch"),
    location_id: Optional[str] = typer.Option(None, "--location-id", "-l", help="Explicit location override"),
):
    """List contacts for the resolved location."""
    client = get_client(ctx)
    result = asyncio.run(client.list_contacts(limit=limit, location_id=location_id))

    if not result.success:
        typer.echo(f"❌ Error: {result.error}", err=True)
        raise typer.Exit(1)

    if not result.contacts:
        typer.echo("No contacts found.")
        return

    typer.echo(f"👥 Contacts ({len(result.contacts)}):")
    for contact in result.contacts:
        name = " ".join(p for p in (contact.get("firstName"), contact.get("lastName")) if p)
        typer.echo(f"   {contact.get('id', '-')}: {contact.get('email') or '-'} {name}".rstrip())
