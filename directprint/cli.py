"""Command-line interface for the DirectPrint agent."""

import asyncio
import logging
import sys

import click

from directprint import __version__
from directprint.agent import get_agent
from directprint.config import AgentSettings, get_settings
from directprint.errors import PrinterError
from directprint.printer import PrinterGateway


def setup_logging(level: str) -> None:
    """Set up logging configuration.

    Args:
        level: Log level string.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )


def _settings(cloud_url: str | None = None, printer: str | None = None) -> AgentSettings:
    settings = get_settings()
    overrides = {}
    if cloud_url:
        overrides["cloud_url"] = cloud_url.rstrip("/")
    if printer:
        overrides["printer_name"] = printer
    return settings.model_copy(update=overrides) if overrides else settings


@click.group()
@click.version_option(version=__version__)
def main():
    """DirectPrint - Local print agent for cloud print kiosks.

    DirectPrint connects to the cloud hub, receives print jobs, converts
    documents and images to PDF and prints them on the local CUPS printer.
    Configure it with environment variables or a .env file (CLOUD_URL,
    PRINTER_NAME, KIOSK_ID, POLL_INTERVAL).
    """
    pass


@main.command()
@click.option("--cloud-url", "-c", help="Cloud hub URL (overrides CLOUD_URL)")
@click.option("--printer", "-p", help="CUPS printer name or 'auto' (overrides PRINTER_NAME)")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def start(cloud_url: str | None, printer: str | None, verbose: bool):
    """Start the DirectPrint agent.

    The agent connects to the cloud hub and prints incoming jobs until
    interrupted. Press Ctrl+C to stop.
    """
    settings = _settings(cloud_url, printer)
    setup_logging("DEBUG" if verbose else settings.log_level)

    click.echo("Starting DirectPrint agent... (Ctrl+C to stop)")

    agent = get_agent(settings)
    asyncio.run(agent.run())


@main.command()
def status():
    """Show current configuration and printer status."""
    settings = get_settings()

    click.echo("\n=== DirectPrint Status ===\n")
    click.echo(f"Kiosk ID: {settings.kiosk_id}")
    click.echo(f"Cloud URL: {settings.cloud_url}")
    click.echo(f"Printer: {settings.printer_name}")
    click.echo(f"Poll Interval: {settings.poll_interval / 1000:g}s")
    click.echo(f"Scratch Dir: {settings.temp_dir}")

    gateway = PrinterGateway(health_timeout=settings.health_check_timeout)

    async def _printer_status():
        name = await gateway.resolve_printer(settings.printer_name)
        return name, await gateway.check_health(name)

    click.echo("\n=== Printer Status ===\n")
    try:
        name, health = asyncio.run(_printer_status())
    except PrinterError as e:
        click.echo(f"Printer unavailable: {e.detail}")
        return

    click.echo(f"{name} [{health.status}{f' - {health.detail}' if health.detail else ''}]")


@main.command()
def check():
    """Check conversion tools and the printer."""
    settings = get_settings()
    setup_logging("WARNING")

    click.echo("\n=== Checking DirectPrint Setup ===\n")

    results = asyncio.run(get_agent(settings).check())

    tools = results["tools"]
    for label, key in (("LibreOffice", "libreoffice"), ("ImageMagick", "imagemagick")):
        version = tools[key]
        click.echo(f"{'+' if version else '!'} {label}: {version or 'not found'}")

    printer = results["printer"]
    printer_icon = "+" if printer["status"] == "ok" else "x"
    click.echo(f"{printer_icon} Printer: {printer['message']}")
    if results["health"]:
        health = results["health"]
        click.echo(f"  Health: {health['status']} ({health['detail'] or 'ok'})")

    click.echo("")

    if results["success"]:
        click.echo("Printer ready. Run 'directprint start' to start the agent.")
    else:
        click.echo("Printer check failed. Please check CUPS.")
        sys.exit(1)


@main.command()
def printers():
    """List available printers."""
    gateway = PrinterGateway()

    click.echo("\n=== Available Printers ===\n")

    try:
        default, printers_list = asyncio.run(gateway.list_printers())
    except PrinterError as e:
        click.echo(f"CUPS not available: {e.detail}")
        sys.exit(1)

    if not printers_list:
        click.echo("No printers found.")
        return

    for name in printers_list:
        marker = "* " if name == default else "  "
        click.echo(f"{marker}{name}")

    click.echo("\n(* = default printer)")



if __name__ == "__main__":
    main()
