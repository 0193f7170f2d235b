"""System tray model: state, commands and the menu the applet shows."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import TypeVar, Union

log = logging.getLogger(__name__)

WEB_UI_URL = "http://localhost:8686"

LED_THEMES: tuple[tuple[str, int], ...] = (
    ("Rainbow", 1),
    ("Breathing", 2),
    ("Colors", 3),
    ("Off", 4),
    ("Auto", 5),
)

ORIENTATIONS: tuple[tuple[str, str], ...] = (
    ("Landscape", "landscape"),
    ("Portrait", "portrait"),
    ("Landscape (Upside Down)", "landscape-upside-down"),
    ("Portrait (Upside Down)", "portrait-upside-down"),
)

FACES: tuple[tuple[str, str], ...] = (("ASCII", "ascii"), ("Professional", "professional"))


@dataclass(frozen=True)
class SetLedTheme:
    """Change the LED theme byte."""

    theme: int


@dataclass(frozen=True)
class SetOrientation:
    """Change the display orientation."""

    orientation: str


@dataclass(frozen=True)
class SetFace:
    """Change the display face."""

    face: str


@dataclass(frozen=True)
class SetNetworkInterface:
    """Change the network interface shown; "auto" means auto-detect."""

    interface: str


@dataclass(frozen=True)
class QuitDaemon:
    """Ask the daemon to shut down."""


TrayCommand = Union[SetLedTheme, SetOrientation, SetFace, SetNetworkInterface, QuitDaemon]


@dataclass
class TrayState:
    """State shared between the tray menu and the worker talking to the daemon."""

    connected: bool = False
    web_enabled: bool = False
    led_theme: int = 2
    led_intensity: int = 3
    led_speed: int = 3
    orientation: str = "landscape"
    face: str = "professional"
    network_interface: str = ""
    network_interfaces: list[str] = field(default_factory=list)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)


@dataclass
class RadioGroup:
    """A set of mutually exclusive options; select is called with the chosen index."""

    selected: int
    options: list[str]
    select: Callable[[int], None]


@dataclass
class SubMenu:
    """A labelled submenu."""

    label: str
    submenu: list


@dataclass
class StandardItem:
    """A clickable menu entry."""

    label: str
    activate: Callable[[], None]


@dataclass(frozen=True)
class Separator:
    """A separator line."""


T = TypeVar("T")


def _pick(items: Sequence[T], index: int) -> T | None:
    return items[index] if 0 <= index < len(items) else None


def _position(values: Sequence, wanted) -> int:
    return next((i for i, value in enumerate(values) if value == wanted), 0)


class HT32PanelTray:
    """The tray icon: builds the menu and turns selections into commands.

    ``open_url`` is the hook that shows the web UI; without one, opening it
    is reported as a failure.
    """

    def __init__(
        self,
        state: TrayState,
        send: Callable[[TrayCommand], None],
        open_url: Callable[[str], object] | None = None,
    ):
        self.state = state
        self._send_command = send
        self._open_url = open_url

    def _send(self, command: TrayCommand) -> None:
        try:
            self._send_command(command)
        except (RuntimeError, asyncio.QueueFull) as exc:
            log.debug("Failed to send %s command: %s", type(command).__name__, exc)

    def id(self) -> str:
        return "ht32-panel-applet"

    def title(self) -> str:
        return "HT32 Panel"

    def icon_name(self) -> str:
        with self.state.lock:
            connected = self.state.connected
        return "display-brightness-symbolic" if connected else "display-brightness-off-symbolic"

    def set_led_theme(self, index: int) -> None:
        entry = _pick(LED_THEMES, index)
        if entry is None:
            return
        theme = entry[1]
        self._send(SetLedTheme(theme))
        with self.state.lock:
            self.state.led_theme = theme

    def set_orientation(self, index: int) -> None:
        entry = _pick(ORIENTATIONS, index)
        if entry is None:
            return
        orientation = entry[1]
        self._send(SetOrientation(orientation))
        with self.state.lock:
            self.state.orientation = orientation

    def set_face(self, index: int) -> None:
        entry = _pick(FACES, index)
        if entry is None:
            return
        face = entry[1]
        self._send(SetFace(face))
        with self.state.lock:
            self.state.face = face

    def set_network_interface(self, index: int) -> None:
        with self.state.lock:
            if index == 0:
                interface = "auto"
            else:
                interface = _pick(self.state.network_interfaces, index - 1) or ""
        if not interface:
            return
        self._send(SetNetworkInterface(interface))
        with self.state.lock:
            self.state.network_interface = "" if interface == "auto" else interface

    def quit_daemon(self) -> None:
        self._send(QuitDaemon())

    def open_web_ui(self) -> None:
        if self._open_url is None:
            log.warning("Failed to open web UI: no URL opener configured")
            return
        try:
            opened = self._open_url(WEB_UI_URL)
        except Exception as exc:  # noqa: BLE001 - any opener failure is only reported
            log.warning("Failed to open web UI: %s", exc)
            return
        if opened is False:
            log.warning("Failed to open web UI: no browser available")

    def menu(self) -> list:
        """Build the menu from the current state."""
        with self.state.lock:
            theme = self.state.led_theme
            orientation = self.state.orientation
            face = self.state.face
            network = self.state.network_interface
            interfaces = list(self.state.network_interfaces)
            web_enabled = self.state.web_enabled

        if network and network in interfaces:
            network_selected = interfaces.index(network) + 1
        else:
            network_selected = 0

        items: list = [
            SubMenu("Display Face", [RadioGroup(
                _position([value for _, value in FACES], face),
                [name for name, _ in FACES],
                self.set_face,
            )]),
            SubMenu("Orientation", [RadioGroup(
                _position([value for _, value in ORIENTATIONS], orientation),
                [name for name, _ in ORIENTATIONS],
                self.set_orientation,
            )]),
            SubMenu("Network Interface", [RadioGroup(
                network_selected,
                ["Auto", *interfaces],
                self.set_network_interface,
            )]),
            SubMenu("LED Theme", [RadioGroup(
                _position([value for _, value in LED_THEMES], theme),
                [name for name, _ in LED_THEMES],
                self.set_led_theme,
            )]),
            Separator(),
        ]
        if web_enabled:
            items.append(StandardItem("Open Web UI", self.open_web_ui))
            items.append(Separator())
        items.append(StandardItem("Quit Daemon", self.quit_daemon))
        return items


def create_tray(state: TrayState) -> tuple[HT32PanelTray, asyncio.Queue]:
    """Create the tray and the queue its commands are delivered to."""
    commands: asyncio.Queue = asyncio.Queue()
    return HT32PanelTray(state, commands.put_nowait), commands