"""Typer CLI entrypoint."""

from __future__ import annotations

import asyncio
import logging
import time

import typer

from netcfgctl.core.errors import NetcfgError
from netcfgctl.core.events import format_event
from netcfgctl.core.model import Command, Event
from netcfgctl.core.scanner import UNKNOWN_DEVICE_NAME
from netcfgctl.core.service import NetcfgService
from netcfgctl.core.status import STATUS_CODES

app = typer.Typer(help="Provision Wi-Fi credentials onto devices over Bluetooth LE")


class EchoEventSink:
    def publish(self, event: Event) -> None:
        stamp = time.strftime("%H:%M:%S", time.localtime(event.timestamp))
        typer.echo(f"[{stamp}] {format_event(event)}")


def _build_service(profile: str | None = None) -> NetcfgService:
    service = NetcfgService(sink=EchoEventSink(), profile_id=profile)
    for warning in service.load_warnings:
        typer.echo(f"Warning: {warning}", err=True)
    return service


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command("profiles")
def list_profiles() -> None:
    """List available device profiles."""
    try:
        service = _build_service()
        for profile in service.list_profiles():
            typer.echo(f"{profile.id}: {profile.name}")
            typer.echo(f"  service: {profile.gatt.service_uuid}")
            typer.echo(f"  write: {profile.gatt.write_char_uuid} status: {profile.gatt.status_char_uuid}")
    except NetcfgError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("codes")
def list_codes() -> None:
    """List known device status codes."""
    for code, (name, classification) in sorted(STATUS_CODES.items()):
        typer.echo(f"0x{code:04X} {name} ({classification.value})")


@app.command("scan")
def scan(
    timeout: float | None = typer.Option(None, "--timeout", help="Scan duration in seconds"),
    show_all: bool = typer.Option(False, "--all", help="Include devices that advertise no name"),
    profile: str | None = typer.Option(None, "--profile", help="Profile ID"),
) -> None:
    """Scan for nearby devices. Matched devices are marked with '*'."""
    try:
        service = _build_service(profile)
        devices = asyncio.run(service.scan(timeout))
        if not show_all:
            devices = [d for d in devices if d.name != UNKNOWN_DEVICE_NAME]
        if not devices:
            typer.echo("No devices found")
            return

        for device in devices:
            tag = " *" if device.matched else ""
            rssi = "-" if device.rssi is None else str(device.rssi)
            typer.echo(f"{device.id} {device.name}{tag} RSSI: {rssi}")
    except NetcfgError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("provision")
def provision(
    address: str,
    ssid: str = typer.Option(..., "--ssid", help="Wi-Fi network name"),
    password: str = typer.Option("", "--password", help="Wi-Fi password (empty for open networks)"),
    scan_timeout: float | None = typer.Option(None, "--scan-timeout", help="Scan duration in seconds"),
    profile: str | None = typer.Option(None, "--profile", help="Profile ID"),
) -> None:
    """Send Wi-Fi credentials to ADDRESS and reboot it onto the network."""
    try:
        service = _build_service(profile)
        outcome = asyncio.run(
            service.provision(address, ssid, password, scan_timeout_s=scan_timeout)
        )
        outcome.raise_for_outcome()
        typer.echo(outcome.describe())
    except NetcfgError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


async def _send_once(service: NetcfgService, address: str, command: Command, payload: bytes) -> None:
    if not service.scanner.seen(address):
        await service.scan()
    await service.connect(address)
    try:
        await service.send_command(command, payload)
    finally:
        await service.disconnect()


@app.command("send")
def send(
    address: str,
    command: Command,
    data: str = typer.Option("", "--data", help="Text payload for ssid/password commands"),
    profile: str | None = typer.Option(None, "--profile", help="Profile ID"),
) -> None:
    """Write a single COMMAND to ADDRESS without waiting for a status."""
    try:
        service = _build_service(profile)
        asyncio.run(_send_once(service, address, command, data.encode("utf-8")))
        typer.echo(f"Sent {command.value} to {address}")
    except NetcfgError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
