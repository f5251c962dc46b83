"""
Command-Line Interface for BLE receipt printing.

Usage:
    btreceipt discover            - Choose a printer and remember it
    btreceipt show                - Show the saved printer
    btreceipt forget              - Forget the saved printer
    btreceipt status              - Check whether the saved printer is reachable
    btreceipt services            - Dump the printer's GATT layout
    btreceipt test [TEXT]         - Print a short test page
    btreceipt print RECEIPT.json  - Print a receipt document
    btreceipt encode RECEIPT.json -o OUT.bin - Write the ESC/POS bytes to a file
"""

import asyncio
import json
import logging
import re
import sys
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Optional

import click

from .discovery import PrinterDiscovery
from .errors import (
    ChannelNotFoundError,
    ConnectionFailedError,
    DeviceNotFoundError,
    EncodingUnsupportedError,
    NoPrinterConfiguredError,
    PrinterError,
    TransmitError,
    UnsupportedError,
)
from .escpos import PrinterDialect
from .models import PrinterCandidate, PrinterSession, Receipt
from .printer import DEFAULT_TEST_TEXT, ReceiptPrinter
from .receipt import ReceiptEncoder
from .registry import DeviceRegistry
from .settings import load_settings

# Bluetooth MAC address format: XX:XX:XX:XX:XX:XX (hex pairs separated by colons)
BLUETOOTH_MAC_PATTERN = re.compile(r"^([0-9A-Fa-f]{2}:){5}[0-9A-Fa-f]{2}$")

# macOS CoreBluetooth UUID format: XXXXXXXX-XXXX-XXXX-XXXX-XXXXXXXXXXXX
MACOS_UUID_PATTERN = re.compile(
    r"^[0-9A-Fa-f]{8}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{12}$"
)

# Prefix and follow-up hint for each failure kind
ERROR_MESSAGES = [
    (UnsupportedError, "Bluetooth unavailable",
     "Use the standard print path instead."),
    (NoPrinterConfiguredError, "No printer",
     "Run 'btreceipt discover' first."),
    (DeviceNotFoundError, "Printer not found",
     "The saved printer was forgotten. Run 'btreceipt discover' to select it again."),
    (ChannelNotFoundError, "Channel error",
     "Run 'btreceipt discover' and select a different device."),
    (ConnectionFailedError, "Connection error",
     "Run 'btreceipt discover' to select the printer again."),
    (EncodingUnsupportedError, "Encoding error",
     "Remove the unsupported characters or disable strict_encoding."),
    (TransmitError, "Print error",
     "The receipt may be incomplete; check the printer before reprinting."),
]


def validate_bluetooth_address(ctx, param, value):
    """Validate Bluetooth address format.

    Accepts:
        - MAC address format: XX:XX:XX:XX:XX:XX (Linux/Windows)
        - UUID format: XXXXXXXX-XXXX-XXXX-XXXX-XXXXXXXXXXXX (macOS)

    Returns:
        The validated address (uppercased for consistency)

    Raises:
        click.BadParameter: If the address format is invalid
    """
    if value is None:
        return None
    if BLUETOOTH_MAC_PATTERN.match(value) or MACOS_UUID_PATTERN.match(value):
        return value.upper()
    raise click.BadParameter(
        f"Invalid Bluetooth address format: '{value}'. "
        "Expected MAC format XX:XX:XX:XX:XX:XX or "
        "macOS UUID format XXXXXXXX-XXXX-XXXX-XXXX-XXXXXXXXXXXX"
    )


def report_error(error: PrinterError) -> None:
    """Echo a step-specific message and exit with status 1."""
    for kind, prefix, hint in ERROR_MESSAGES:
        if isinstance(error, kind):
            click.echo(f"{prefix}: {error}", err=True)
            click.echo(hint, err=True)
            break
    else:
        click.echo(f"Printer error: {error}", err=True)
    sys.exit(1)


async def prompt_chooser(candidates: list[PrinterCandidate]) -> Optional[PrinterCandidate]:
    """Let the user pick a printer from the scan results.

    Returns:
        Selected candidate, or None if none found or the prompt was aborted
    """
    if not candidates:
        click.echo("No Bluetooth devices found.", err=True)
        return None

    # Auto-select when exactly one device found
    if len(candidates) == 1:
        candidate = candidates[0]
        click.echo(f"Found 1 device: {candidate.name} - using automatically")
        return candidate

    click.echo(f"\nFound {len(candidates)} device(s) (* = known printer service):\n")
    for i, c in enumerate(candidates, 1):
        click.echo(f"  [{i}] {c}")

    click.echo()
    while True:
        try:
            choice = click.prompt(f"Select printer (1-{len(candidates)})", type=int)
        except click.Abort:
            return None
        if 1 <= choice <= len(candidates):
            return candidates[choice - 1]
        click.echo(f"Please enter a number between 1 and {len(candidates)}", err=True)


def address_chooser(address: str):
    """Chooser that picks the candidate with a given address."""

    async def choose(candidates: list[PrinterCandidate]) -> Optional[PrinterCandidate]:
        for candidate in candidates:
            if candidate.address.upper() == address:
                return candidate
        click.echo(f"Printer {address} not found in scan.", err=True)
        return None

    return choose


def load_receipt(path: Path, settings) -> Receipt:
    """Read a receipt document, filling the store identity from settings."""
    data = json.loads(path.read_text())
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")
    data.setdefault("header", {
        "name": settings.store_name,
        "address": settings.address,
        "phone": settings.phone,
        "email": settings.email,
        "logo": settings.logo,
    })
    data.setdefault("footer_text", settings.footer)
    data.setdefault("meta", {})
    data["meta"].setdefault("timestamp", datetime.now().isoformat(timespec="minutes"))
    return Receipt.from_dict(data)


def _receipt_or_exit(path: Path, settings) -> Receipt:
    try:
        return load_receipt(path, settings)
    except (OSError, ValueError) as e:
        click.echo(f"Invalid receipt file {path}: {e}", err=True)
        sys.exit(1)


@click.group()
@click.option("--debug/--no-debug", default=False, help="Enable debug output")
@click.option(
    "--settings",
    "settings_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Settings file (default: ~/.config/btreceipt/settings.json)",
)
@click.pass_context
def main(ctx, debug, settings_path):
    """BLE Receipt Printer CLI."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="[%(name)s] %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["settings"] = load_settings(settings_path)
    ctx.obj["session"] = PrinterSession()
    ctx.obj["registry"] = DeviceRegistry()


def _printer(ctx, dialect: Optional[str] = None) -> ReceiptPrinter:
    settings = ctx.obj["settings"]
    if dialect:
        settings = replace(settings, dialect=PrinterDialect(dialect))
    return ReceiptPrinter(registry=ctx.obj["registry"], settings=settings)


@main.command()
@click.option(
    "--address",
    "-a",
    callback=validate_bluetooth_address,
    help="Select this printer instead of prompting",
)
@click.pass_context
def discover(ctx, address):
    """Scan for printers, choose one and remember it."""
    settings = ctx.obj["settings"]
    chooser = address_chooser(address) if address else prompt_chooser

    async def _discover():
        discovery = PrinterDiscovery(ctx.obj["registry"], timeout=settings.scan_timeout)
        click.echo(f"Scanning for printers ({settings.scan_timeout}s)...")
        try:
            handle = await discovery.discover(ctx.obj["session"], chooser)
        except PrinterError as e:
            report_error(e)

        if handle is None:
            click.echo("No printer selected.")
            return
        click.echo(f"Saved printer: {handle}")

    asyncio.run(_discover())


@main.command()
@click.pass_context
def show(ctx):
    """Show the saved printer."""
    saved = ctx.obj["registry"].saved()
    if saved is None:
        click.echo("No printer saved.")
        return
    click.echo(f"{saved.name} [{saved.id}]")


@main.command()
@click.pass_context
def forget(ctx):
    """Forget the saved printer."""
    if ctx.obj["registry"].forget(ctx.obj["session"]):
        click.echo("Printer forgotten.")
    else:
        click.echo("No printer saved.")


@main.command()
@click.pass_context
def status(ctx):
    """Check whether the saved printer is reachable."""
    printer = _printer(ctx)

    async def _status():
        try:
            link = await printer.status(ctx.obj["session"])
        except PrinterError as e:
            report_error(e)
        handle = ctx.obj["session"].current
        name = handle.display_name if handle else "No printer"
        click.echo(f"{name}: {link.value}")

    asyncio.run(_status())


@main.command()
@click.pass_context
def services(ctx):
    """Dump the GATT services of the saved printer."""
    printer = _printer(ctx)

    async def _services():
        try:
            found = await printer.list_services(ctx.obj["session"])
        except PrinterError as e:
            report_error(e)

        click.echo("\nGATT Services:\n")
        for svc in found:
            click.echo(f"Service: {svc.service_uuid}")
            for char in svc.characteristics:
                props = ", ".join(char["properties"])
                click.echo(f"  Char: {char['uuid']}")
                click.echo(f"        Properties: [{props}]")
            click.echo()

    asyncio.run(_services())


@main.command()
@click.argument("text", default=DEFAULT_TEST_TEXT)
@click.pass_context
def test(ctx, text):
    """Print a short test page on the saved printer."""
    printer = _printer(ctx)

    async def _test():
        click.echo("Sending test page...")
        try:
            await printer.test_print(ctx.obj["session"], text)
        except PrinterError as e:
            report_error(e)
        click.echo("Test print complete!")

    asyncio.run(_test())


@main.command("print")
@click.argument("receipt_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--dialect",
    type=click.Choice([d.value for d in PrinterDialect]),
    default=None,
    help="Printer command dialect (overrides settings)",
)
@click.pass_context
def print_receipt(ctx, receipt_file, dialect):
    """Print a receipt document (JSON)."""
    receipt = _receipt_or_exit(receipt_file, ctx.obj["settings"])
    printer = _printer(ctx, dialect)

    async def _print():
        click.echo(f"Printing {receipt.meta.document_label} #{receipt.meta.document_id}...")
        try:
            await printer.print_receipt(ctx.obj["session"], receipt)
        except PrinterError as e:
            report_error(e)
        click.echo("Print complete!")

    asyncio.run(_print())


@main.command()
@click.argument("receipt_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    required=True,
    help="File the ESC/POS bytes are written to",
)
@click.option(
    "--dialect",
    type=click.Choice([d.value for d in PrinterDialect]),
    default=None,
    help="Printer command dialect (overrides settings)",
)
@click.pass_context
def encode(ctx, receipt_file, output, dialect):
    """Encode a receipt document to ESC/POS bytes without printing."""
    settings = ctx.obj["settings"]
    receipt = _receipt_or_exit(receipt_file, settings)
    encoder = ReceiptEncoder(
        dialect=PrinterDialect(dialect) if dialect else settings.dialect,
        line_width=settings.line_width,
        encoding=settings.text_encoding,
        strict=settings.strict_encoding,
    )
    try:
        payload = encoder.encode(receipt)
    except PrinterError as e:
        report_error(e)
    output.write_bytes(payload)
    click.echo(f"Wrote {len(payload)} bytes to {output}")


if __name__ == "__main__":
    main()
