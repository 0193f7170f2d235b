"""Worker that keeps the tray state in sync with the daemon and runs tray commands."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable

from .client import ClientError, DaemonClient
from .tray import (
    QuitDaemon,
    SetFace,
    SetLedTheme,
    SetNetworkInterface,
    SetOrientation,
    TrayState,
)
from .wire import DBusError

log = logging.getLogger(__name__)


async def refresh_state(client: DaemonClient, state: TrayState) -> None:
    """Copy what the daemon reports into the tray state; failed queries are skipped."""

    async def fetch(coro):
        try:
            return True, await coro
        except ClientError as exc:
            log.debug("State query failed: %s", exc)
            return False, None

    ok, connected = await fetch(client.is_connected())
    if ok:
        with state.lock:
            state.connected = connected
    ok, web = await fetch(client.is_web_enabled())
    if ok:
        with state.lock:
            state.web_enabled = web
    ok, orientation = await fetch(client.get_orientation())
    if ok:
        with state.lock:
            state.orientation = orientation
    ok, led = await fetch(client.get_led_settings())
    if ok:
        with state.lock:
            state.led_theme, state.led_intensity, state.led_speed = led
    ok, face = await fetch(client.get_face())
    if ok:
        with state.lock:
            state.face = face
    ok, iface = await fetch(client.get_complication_option("network", "interface"))
    if ok:
        with state.lock:
            state.network_interface = iface
    ok, interfaces = await fetch(client.list_network_interfaces())
    if ok:
        with state.lock:
            state.network_interfaces = list(interfaces)


async def handle_command(client: DaemonClient, state: TrayState, command) -> bool:
    """Carry out one tray command; returns False when the client should be reconnected."""
    try:
        match command:
            case SetLedTheme(theme=theme):
                with state.lock:
                    intensity, speed = state.led_intensity, state.led_speed
                await client.set_led(theme, intensity, speed)
                with state.lock:
                    state.led_theme = theme
                log.debug("LED theme set to %s", theme)
            case SetOrientation(orientation=orientation):
                await client.set_orientation(orientation)
                with state.lock:
                    state.orientation = orientation
                log.debug("Orientation set to %s", orientation)
            case SetFace(face=face):
                await client.set_face(face)
                with state.lock:
                    state.face = face
                log.debug("Face set to %s", face)
            case SetNetworkInterface(interface=interface):
                await client.set_complication_option("network", "interface", interface)
                with state.lock:
                    state.network_interface = "" if interface == "auto" else interface
                log.debug("Network interface set to %s", interface)
            case QuitDaemon():
                try:
                    await client.quit()
                    log.info("Daemon quit request sent")
                except ClientError as exc:
                    log.error("Failed to quit daemon: %s", exc)
            case _:
                raise TypeError(f"Unknown tray command {command!r}")
    except ClientError as exc:
        log.error("Failed to run %s: %s", type(command).__name__, exc)
        return False
    return True


async def run_worker(
    state: TrayState,
    commands: asyncio.Queue,
    connect: Callable[[], Awaitable[DaemonClient]] = DaemonClient.connect,
    retry_interval: float = 5.0,
) -> None:
    """Process tray commands until a None arrives, reconnecting to the daemon as needed."""
    client: DaemonClient | None = None
    try:
        while True:
            if client is None:
                try:
                    client = await connect()
                except (ClientError, DBusError) as exc:
                    log.debug("Failed to connect to daemon: %s. Retrying...", exc)
                else:
                    log.info("Connected to daemon via D-Bus")
                    await refresh_state(client, state)

            try:
                command = await asyncio.wait_for(commands.get(), retry_interval)
            except TimeoutError:
                continue
            if command is None:
                break
            if client is not None and not await handle_command(client, state, command):
                with contextlib.suppress(DBusError, OSError):
                    await client.close()
                client = None
    finally:
        if client is not None:
            with contextlib.suppress(DBusError, OSError):
                await client.close()