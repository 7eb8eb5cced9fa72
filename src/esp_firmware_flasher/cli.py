"""
ESP32 Firmware Flasher CLI

Command-line interface for firmware updates, application deployment and
flash backups of ESP32 devices.
"""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from esp_firmware_flasher.config import FlasherSettings
from esp_firmware_flasher.core.actions import backup_flash, update_firmware
from esp_firmware_flasher.core.messages import MessageLevel, ProgressEvent
from esp_firmware_flasher.core.parsing import format_size, parse_partition_table_size as _parse_partition_table_size_core
from esp_firmware_flasher.core.results import OperationResult
from esp_firmware_flasher.device import DeviceInfo
from esp_firmware_flasher.firmware import PackageFirmwareResolver
from esp_firmware_flasher.targets import PartitionTableSize, TARGETS, list_targets as registry_list_targets
from esp_firmware_flasher.transport import EspToolTransport, TransportError

logger = logging.getLogger("esp_firmware_flasher")

# Setup Rich console
console = Console()

app = typer.Typer(help="ESP32 Firmware Flasher - update, deploy and back up ESP32 devices")

_LEVEL_STYLES = {
    MessageLevel.DEBUG: "dim",
    MessageLevel.INFO: "white",
    MessageLevel.WARN: "yellow",
    MessageLevel.ERROR: "red",
    MessageLevel.SUCCESS: "green",
}


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Configure logging before any command runs."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, console=console)],
        force=True,
    )


def print_header(text: str) -> None:
    """Print fancy header."""
    console.print(Panel(text, expand=False, style="bold blue"))


def print_success(text: str) -> None:
    """Print success message."""
    console.print(f"✓ {text}", style="green")


def print_warning(text: str) -> None:
    """Print warning message."""
    console.print(f"⚠️  {text}", style="yellow")


def print_error(text: str) -> None:
    """Print error message."""
    console.print(f"❌ {text}", style="red")


def print_event(event: ProgressEvent) -> None:
    """Render a workflow progress event."""
    console.print(event.message, style=_LEVEL_STYLES.get(event.level, "white"))


def parse_partition_table_size(value: Optional[str]) -> Optional[PartitionTableSize]:
    """
    Parse partition table size from string.

    CLI wrapper around core.parsing.parse_partition_table_size that converts
    ValueError to typer.BadParameter for proper CLI error handling.
    """
    try:
        return _parse_partition_table_size_core(value)
    except ValueError as e:
        raise typer.BadParameter(str(e))


def finish(result: OperationResult, output_json: bool = False) -> None:
    """Print the result and exit with 0 on success, 1 otherwise."""
    if output_json:
        data = result.to_dict()
        data.pop("logs", None)
        console.print_json(json.dumps(data))
    elif result.ok:
        print_success(result.to_summary())
    else:
        print_error(result.to_summary())
    raise typer.Exit(code=0 if result.ok else 1)


def load_settings() -> FlasherSettings:
    """Read settings from the environment, exiting with 1 on bad values."""
    try:
        return FlasherSettings.from_env()
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(code=1)


def open_device(port: str, baud: Optional[int], chip: Optional[str]) -> tuple:
    """Create the transport for ``port`` and read the device descriptor."""
    settings = load_settings()
    transport = EspToolTransport(
        port,
        baud=baud or settings.baud,
        chip=chip or settings.chip,
    )
    try:
        device = transport.read_device_info()
    except TransportError as e:
        print_error(f"Cannot identify device on {port}: {e}")
        raise typer.Exit(code=1)
    return transport, device


def show_device(device: DeviceInfo) -> None:
    table = Table(title="Connected Device")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Chip type", device.chip_type)
    table.add_row("Chip", device.chip_name)
    table.add_row("Revision", "-" if device.revision is None else str(device.revision))
    table.add_row("Flash size", format_size(device.flash_size))
    table.add_row("MAC", device.mac_address)
    table.add_row("Features", ", ".join(sorted(device.features)) or "-")

    console.print(table)


@app.command()
def ports() -> None:
    """List available serial ports."""
    print_header("Available Serial Ports")

    import serial.tools.list_ports

    ports_list = list(serial.tools.list_ports.comports())

    if not ports_list:
        print_warning("No serial ports found")
        return

    table = Table(title="Serial Ports")
    table.add_column("Port", style="cyan")
    table.add_column("Device", style="magenta")
    table.add_column("Description", style="green")

    for port in ports_list:
        table.add_row(port.device, port.name or "-", port.description or "-")

    console.print(table)


@app.command("list-targets")
def list_targets() -> None:
    """List known firmware targets."""
    print_header("Firmware Targets")

    table = Table()
    table.add_column("Target", style="cyan")
    table.add_column("Min revision", style="magenta")
    table.add_column("Bluetooth", style="magenta")
    table.add_column("Description", style="green")

    for name in registry_list_targets():
        info = TARGETS[name]
        table.add_row(
            name,
            str(info.min_revision),
            "yes" if info.requires_bluetooth else "no",
            info.description,
        )

    console.print(table)


@app.command()
def detect(
    port: str = typer.Option(..., "--port", "-p", help="Serial port"),
    baud: Optional[int] = typer.Option(None, "--baud", "-b", help="Baud rate"),
    chip: Optional[str] = typer.Option(None, "--chip", help="esptool chip argument"),
) -> None:
    """Identify the connected ESP32 device."""
    print_header("Detect Device")
    console.print(f"Port: {port}")

    _, device = open_device(port, baud, chip)
    show_device(device)
    print_success("Device detected")


@app.command()
def backup(
    port: str = typer.Option(..., "--port", "-p", help="Serial port"),
    backup_path: Optional[Path] = typer.Option(None, "--backup-path", help="Directory for the backup file"),
    backup_file: Optional[str] = typer.Option(None, "--backup-file", help="Backup file name (requires --backup-path)"),
    baud: Optional[int] = typer.Option(None, "--baud", "-b", help="Baud rate"),
    chip: Optional[str] = typer.Option(None, "--chip", help="esptool chip argument"),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON for scripting"),
) -> None:
    """Back up the whole device flash to a file."""
    print_header("Flash Backup")

    transport, device = open_device(port, baud, chip)
    show_device(device)

    result = backup_flash(
        transport,
        device,
        backup_dir=backup_path,
        file_name=backup_file,
        progress_cb=print_event,
    )
    finish(result, output_json)


@app.command()
def update(
    port: str = typer.Option(..., "--port", "-p", help="Serial port"),
    target: Optional[str] = typer.Option(None, "--target", "-t", help="Firmware target (default ESP32_WROOM_32)"),
    update_fw: bool = typer.Option(True, "--update/--no-update", help="Download and write the firmware package. --no-update reuses the package cached by a prior update of the same target and version"),
    fw_version: Optional[str] = typer.Option(None, "--fw-version", help="Firmware version (default latest)"),
    preview: bool = typer.Option(False, "--preview", help="Use preview firmware packages"),
    deploy: Optional[Path] = typer.Option(None, "--deploy", "-d", help="Application image to deploy"),
    address: Optional[str] = typer.Option(None, "--address", "-a", help="Deployment address, e.g. 0x1B0000 (with --no-update)"),
    clr_file: Optional[Path] = typer.Option(None, "--clr-file", help="Local nanoCLR .bin replacing the package one"),
    partition_table_size: Optional[str] = typer.Option(None, "--partition-table-size", help="2, 4, 8 or 16 (MB)"),
    baud: Optional[int] = typer.Option(None, "--baud", "-b", help="Baud rate"),
    chip: Optional[str] = typer.Option(None, "--chip", help="esptool chip argument"),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON for scripting"),
) -> None:
    """
    Update firmware and/or deploy an application image.

    Example:
        esp-firmware-flasher update -p /dev/ttyUSB0 --target ESP32_WROOM_32
        esp-firmware-flasher update -p /dev/ttyUSB0 --no-update --deploy app.bin --address 0x1B0000
    """
    print_header("Firmware Update" if update_fw else "Application Deployment")

    if not update_fw and deploy is None and clr_file is None:
        raise typer.BadParameter("--no-update needs --deploy or --clr-file: nothing to write")

    table_size = parse_partition_table_size(partition_table_size)
    settings = load_settings()
    resolver = PackageFirmwareResolver(
        settings.package_url,
        settings.cache_dir,
        timeout=settings.download_timeout,
    )

    transport, device = open_device(port, baud, chip)
    show_device(device)

    result = asyncio.run(update_firmware(
        transport,
        resolver,
        device,
        target=target,
        update_fw=update_fw,
        fw_version=fw_version,
        preview=preview,
        application_path=deploy,
        deployment_address=address,
        clr_file=clr_file,
        partition_table_size=table_size,
        progress_cb=print_event,
    ))
    finish(result, output_json)


def main() -> None:
    """Main entry point."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(130)


if __name__ == "__main__":
    main()
