"""Client for the panel daemon's D-Bus interface."""

from __future__ import annotations

import enum
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from .wire import BUS_NAME, BUS_PATH, BusConnection, DBusError

SERVICE = "org.ht32panel.Daemon"
OBJECT_PATH = "/org/ht32panel/Daemon"
INTERFACE = "org.ht32panel.Daemon1"
_PROPERTIES = "org.freedesktop.DBus.Properties"

log = logging.getLogger(__name__)


class BusType(enum.Enum):
    """Which bus to look for the daemon on."""

    SESSION = "session"
    SYSTEM = "system"
    AUTO = "auto"


class ClientError(Exception):
    """A failure talking to the daemon."""


async def _open(opener: Callable[[], Awaitable[BusConnection]], what: str) -> BusConnection:
    try:
        return await opener()
    except DBusError as exc:
        raise ClientError(f"{what}: {exc}") from exc


class DaemonClient:
    """Talks to the daemon over D-Bus."""

    def __init__(self, connection: BusConnection):
        self._conn = connection

    @classmethod
    async def connect(cls) -> DaemonClient:
        """Connect, trying the session bus before the system bus."""
        return await cls.connect_with_bus(BusType.AUTO)

    @classmethod
    async def connect_with_bus(cls, bus_type: BusType) -> DaemonClient:
        """Connect using the given bus type."""
        if bus_type is BusType.SESSION:
            log.debug("Connecting to session bus")
            return cls(await _open(BusConnection.session, "Failed to connect to session bus"))
        if bus_type is BusType.SYSTEM:
            log.debug("Connecting to system bus")
            return cls(await _open(BusConnection.system, "Failed to connect to system bus"))
        try:
            session = await BusConnection.session()
        except DBusError:
            log.debug("Session bus unavailable, trying system bus")
            return cls(await _open(BusConnection.system, "Failed to connect to any D-Bus"))
        if await cls._service_exists(session):
            log.debug("Found daemon on session bus")
            return cls(session)
        await session.close()
        log.debug("Daemon not on session bus, trying system bus")
        system = await _open(BusConnection.system, "Failed to connect to system bus")
        if await cls._service_exists(system):
            log.debug("Found daemon on system bus")
            return cls(system)
        await system.close()
        raise ClientError("Daemon service not found on session or system bus. Is ht32paneld running?")

    @staticmethod
    async def _service_exists(conn: BusConnection) -> bool:
        try:
            (owned,) = await conn.call(BUS_NAME, BUS_PATH, BUS_NAME, "NameHasOwner", "s", SERVICE)
        except DBusError:
            return False
        return bool(owned)

    async def close(self) -> None:
        """Close the underlying bus connection."""
        await self._conn.close()

    async def __aenter__(self) -> DaemonClient:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def _call(self, what: str, member: str, signature: str = "", *args: Any) -> tuple:
        try:
            return await self._conn.call(SERVICE, OBJECT_PATH, INTERFACE, member, signature, *args)
        except DBusError as exc:
            raise ClientError(f"Failed to {what} via D-Bus: {exc}") from exc

    async def _value(self, what: str, member: str, signature: str = "", *args: Any) -> Any:
        return (await self._call(what, member, signature, *args))[0]

    async def _property(self, what: str, name: str) -> Any:
        try:
            (value,) = await self._conn.call(SERVICE, OBJECT_PATH, _PROPERTIES, "Get", "ss",
                                             INTERFACE, name)
        except DBusError as exc:
            raise ClientError(f"Failed to get {what} via D-Bus: {exc}") from exc
        return value

    async def set_orientation(self, orientation: str) -> None:
        await self._call("set orientation", "SetOrientation", "s", orientation)

    async def get_orientation(self) -> str:
        return await self._value("get orientation", "GetOrientation")

    async def clear_display(self, color: str) -> None:
        await self._call("clear display", "ClearDisplay", "s", color)

    async def set_face(self, face: str) -> None:
        await self._call("set face", "SetFace", "s", face)

    async def get_face(self) -> str:
        return await self._value("get face", "GetFace")

    async def set_led(self, theme: int, intensity: int, speed: int) -> None:
        await self._call("set LED", "SetLed", "yyy", theme, intensity, speed)

    async def led_off(self) -> None:
        await self._call("turn off LED", "LedOff")

    async def get_led_settings(self) -> tuple[int, int, int]:
        theme, intensity, speed = await self._call("get LED settings", "GetLedSettings")
        return theme, intensity, speed

    async def get_theme(self) -> str:
        return await self._value("get theme", "GetTheme")

    async def set_theme(self, name: str) -> None:
        await self._call("set theme", "SetTheme", "s", name)

    async def list_themes(self) -> list[str]:
        return await self._value("list themes", "ListThemes")

    async def list_themes_detailed(self) -> list[str]:
        return await self._value("list themes detailed", "ListThemesDetailed")

    async def list_face_ids(self) -> list[str]:
        return await self._value("list face IDs", "ListFaceIds")

    async def list_faces(self) -> list[str]:
        return await self._value("list faces", "ListFaces")

    async def list_network_interfaces(self) -> list[str]:
        return await self._value("list network interfaces", "ListNetworkInterfaces")

    async def get_screen_png(self) -> bytes:
        return await self._value("get screen PNG", "GetScreenPng")

    async def quit(self) -> None:
        await self._call("quit daemon", "Quit")

    async def is_connected(self) -> bool:
        return bool(await self._property("connection status", "Connected"))

    async def is_web_enabled(self) -> bool:
        return bool(await self._property("web enabled status", "WebEnabled"))

    async def list_complications(self) -> list[tuple[str, str, str, bool]]:
        return await self._value("list complications", "ListComplications")

    async def list_complications_detailed(self) -> list[str]:
        return await self._value("list complications detailed", "ListComplicationsDetailed")

    async def get_enabled_complications(self) -> list[str]:
        return await self._value("get enabled complications", "GetEnabledComplications")

    async def enable_complication(self, complication_id: str) -> None:
        await self._call("enable complication", "EnableComplication", "s", complication_id)

    async def disable_complication(self, complication_id: str) -> None:
        await self._call("disable complication", "DisableComplication", "s", complication_id)

    async def get_complication_option(self, complication_id: str, option_id: str) -> str:
        return await self._value("get complication option", "GetComplicationOption", "ss",
                                 complication_id, option_id)

    async def set_complication_option(self, complication_id: str, option_id: str, value: str) -> None:
        await self._call("set complication option", "SetComplicationOption", "sss",
                         complication_id, option_id, value)