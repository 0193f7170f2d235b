"""Command-line control tool for the panel daemon."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from .client import BusType, ClientError, DaemonClient

_VERSION = "0.8.0"

_LED_THEMES = {"rainbow": 1, "breathing": 2, "colors": 3, "off": 4, "auto": 5}
_LED_NAMES = {value: name for name, value in _LED_THEMES.items()}


class CliError(Exception):
    """A command failed or was given invalid arguments."""


def led_theme_byte(name: str) -> int:
    """Map an LED theme name (case-insensitive) to its protocol byte."""
    try:
        return _LED_THEMES[name.lower()]
    except KeyError:
        raise CliError(
            f"Invalid theme: {name}. Use: rainbow, breathing, colors, off, auto"
        ) from None


def led_theme_name(value: int) -> str:
    """Map an LED theme byte to its name, or 'unknown'."""
    return _LED_NAMES.get(value, "unknown")


def _text(obj: Any, key: str, default: str = "") -> str:
    value = obj.get(key) if isinstance(obj, dict) else None
    return value if isinstance(value, str) else default


def _number(obj: dict, key: str, default: float) -> str:
    value = obj.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        value = default
    value = float(value)
    return str(int(value)) if value.is_integer() else repr(value)


def format_complication(comp_json: str) -> list[str]:
    """Render one JSON-encoded complication as listing lines; invalid JSON gives none."""
    try:
        comp = json.loads(comp_json)
    except json.JSONDecodeError:
        return []
    if not isinstance(comp, dict):
        comp = {}
    enabled = comp.get("enabled") is True
    status = "[x]" if enabled else "[ ]"
    lines = [
        f"  {status} {_text(comp, 'id')} - {_text(comp, 'name')}",
        f"      {_text(comp, 'description')}",
    ]
    options = comp.get("options")
    if isinstance(options, list):
        for opt in options:
            opt_id = _text(opt, "id")
            opt_name = _text(opt, "name")
            current = _text(opt, "current_value")
            if _text(opt, "type", "choice") == "range":
                lines.append(
                    f"      - {opt_id}: {opt_name} (current: {current}, "
                    f"range: {_number(opt, 'min', 0.0)}-{_number(opt, 'max', 100.0)}, "
                    f"step: {_number(opt, 'step', 1.0)})"
                )
            else:
                lines.append(f"      - {opt_id}: {opt_name} (current: {current})")
    return lines


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for all commands."""
    parser = argparse.ArgumentParser(
        prog="ht32panelctl", description="Control tool for HT32 Panel daemon"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {_VERSION}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument(
        "--bus",
        choices=[b.value for b in (BusType.AUTO, BusType.SESSION, BusType.SYSTEM)],
        default="auto",
        help="D-Bus bus type to use",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    lcd = commands.add_parser("lcd", help="LCD display commands")
    lcd_actions = lcd.add_subparsers(dest="action", required=True)
    orientation = lcd_actions.add_parser("orientation", help="Set display orientation")
    orientation.add_argument(
        "orientation",
        help="landscape, portrait, landscape-upside-down, portrait-upside-down",
    )
    clear = lcd_actions.add_parser("clear", help="Clear the display to a solid color")
    clear.add_argument("--color", default="#000000", help="Color in hex format")
    face = lcd_actions.add_parser("face", help="Set or show the current face")
    face.add_argument("face", nargs="?", default=None, help="Face name (omit to show current)")
    lcd_actions.add_parser("list-faces", help="List available faces")
    lcd_actions.add_parser("info", help="Show device information")

    led = commands.add_parser("led", help="LED strip commands")
    led_actions = led.add_subparsers(dest="action", required=True)
    led_set = led_actions.add_parser("set", help="Set LED theme")
    led_set.add_argument("theme", help="rainbow, breathing, colors, off, auto")
    led_set.add_argument("--intensity", type=int, default=3, help="Intensity (1-5)")
    led_set.add_argument("--speed", type=int, default=3, help="Speed (1-5)")
    led_actions.add_parser("off", help="Turn off LEDs")
    led_actions.add_parser("status", help="Show current LED settings")

    theme = commands.add_parser("theme", help="Color theme settings")
    theme_actions = theme.add_subparsers(dest="action", required=True)
    theme_actions.add_parser("show", help="Show current theme")
    theme_set = theme_actions.add_parser("set", help="Set theme by name")
    theme_set.add_argument("name", help="Theme name")
    theme_actions.add_parser("list", help="List available themes")

    comp = commands.add_parser("complication", help="Face complications settings")
    comp_actions = comp.add_subparsers(dest="action", required=True)
    comp_actions.add_parser("list", help="List complications for the current face")
    enable = comp_actions.add_parser("enable", help="Enable a complication")
    enable.add_argument("id", help="Complication ID")
    disable = comp_actions.add_parser("disable", help="Disable a complication")
    disable.add_argument("id", help="Complication ID")
    get = comp_actions.add_parser("get", help="Get a complication option value")
    get.add_argument("complication", help="Complication ID")
    get.add_argument("option", help="Option ID")
    comp_set = comp_actions.add_parser("set", help="Set a complication option value")
    comp_set.add_argument("complication", help="Complication ID")
    comp_set.add_argument("option", help="Option ID")
    comp_set.add_argument("value", help="Value to set")
    comp_actions.add_parser("list-interfaces", help="List available network interfaces")

    screenshot = commands.add_parser("screenshot", help="Save a screenshot of the display")
    screenshot.add_argument("output", nargs="?", default="screenshot.png", help="Output file path")

    daemon = commands.add_parser("daemon", help="Daemon control commands")
    daemon_actions = daemon.add_subparsers(dest="action", required=True)
    daemon_actions.add_parser("status", help="Check if daemon is running")
    daemon_actions.add_parser("quit", help="Request daemon shutdown")
    return parser


def _yes_no(flag: bool) -> str:
    return "yes" if flag else "no"


async def _lcd(args: argparse.Namespace, client: DaemonClient) -> None:
    match args.action:
        case "orientation":
            await client.set_orientation(args.orientation)
            print(f"Orientation set to: {args.orientation}")
        case "clear":
            await client.clear_display(args.color)
            print(f"Display cleared to: {args.color}")
        case "face":
            if args.face is not None:
                await client.set_face(args.face)
                print(f"Face set to: {args.face}")
            else:
                print(f"Current face: {await client.get_face()}")
        case "list-faces":
            faces = await client.list_face_ids()
            print("Available faces:")
            for face in faces:
                print(f"  {face}")
        case "info":
            connected = await client.is_connected()
            orientation = await client.get_orientation()
            face = await client.get_face()
            print("LCD Status:")
            print(f"  Connected: {_yes_no(connected)}")
            print(f"  Orientation: {orientation}")
            print(f"  Face: {face}")


async def _led(args: argparse.Namespace, client: DaemonClient) -> None:
    match args.action:
        case "set":
            theme_byte = led_theme_byte(args.theme)
            if not 1 <= args.intensity <= 5:
                raise CliError("Intensity must be between 1 and 5")
            if not 1 <= args.speed <= 5:
                raise CliError("Speed must be between 1 and 5")
            await client.set_led(theme_byte, args.intensity, args.speed)
            print(f"LED set to: {args.theme} (intensity: {args.intensity}, speed: {args.speed})")
        case "off":
            await client.led_off()
            print("LEDs turned off")
        case "status":
            theme, intensity, speed = await client.get_led_settings()
            print("LED Status:")
            print(f"  Theme: {led_theme_name(theme)}")
            print(f"  Intensity: {intensity}")
            print(f"  Speed: {speed}")


async def _theme(args: argparse.Namespace, client: DaemonClient) -> None:
    match args.action:
        case "show":
            print(f"Current theme: {await client.get_theme()}")
        case "set":
            await client.set_theme(args.name)
            print(f"Theme set to: {args.name}")
        case "list":
            themes = await client.list_themes()
            print("Available themes:")
            for theme in themes:
                print(f"  {theme}")


async def _complication(args: argparse.Namespace, client: DaemonClient) -> None:
    match args.action:
        case "list":
            face = await client.get_face()
            complications = await client.list_complications_detailed()
            print(f"Complications for '{face}' face:")
            if not complications:
                print("  (none available)")
            for comp_json in complications:
                for line in format_complication(comp_json):
                    print(line)
        case "enable":
            await client.enable_complication(args.id)
            print(f"Enabled complication: {args.id}")
        case "disable":
            await client.disable_complication(args.id)
            print(f"Disabled complication: {args.id}")
        case "get":
            value = await client.get_complication_option(args.complication, args.option)
            print(f"{args.complication}.{args.option} = {value}")
        case "set":
            await client.set_complication_option(args.complication, args.option, args.value)
            print(f"Set {args.complication}.{args.option} = {args.value}")
        case "list-interfaces":
            interfaces = await client.list_network_interfaces()
            print("Available network interfaces:")
            print("  auto (auto-detect)")
            for iface in interfaces:
                print(f"  {iface}")


async def _screenshot(args: argparse.Namespace, client: DaemonClient) -> None:
    png_data = await client.get_screen_png()
    try:
        Path(args.output).write_bytes(png_data)
    except OSError as exc:
        raise CliError(f"Failed to write screenshot file: {exc}") from exc
    print(f"Screenshot saved to: {args.output}")


async def _daemon(args: argparse.Namespace, client: DaemonClient) -> None:
    match args.action:
        case "status":
            connected = await client.is_connected()
            print("Daemon: running")
            print(f"LCD connected: {_yes_no(connected)}")
        case "quit":
            await client.quit()
            print("Shutdown request sent to daemon")


_HANDLERS = {
    "lcd": _lcd,
    "led": _led,
    "theme": _theme,
    "complication": _complication,
    "screenshot": _screenshot,
    "daemon": _daemon,
}


async def run(args: argparse.Namespace, client: DaemonClient) -> None:
    """Carry out a parsed command against a connected client."""
    await _HANDLERS[args.command](args, client)


async def _connect_and_run(args: argparse.Namespace) -> None:
    try:
        client = await DaemonClient.connect_with_bus(BusType(args.bus))
    except ClientError as exc:
        raise CliError(f"Failed to connect to daemon. Is ht32paneld running?: {exc}") from exc
    async with client:
        await run(args, client)


def main(argv: list[str] | None = None) -> int:
    """Entry point for the control tool; returns the exit status."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    try:
        asyncio.run(_connect_and_run(args))
    except (CliError, ClientError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())