"""Daemon configuration loaded from and saved to TOML."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any

import tomli_w


class DbusBusType(StrEnum):
    """Which D-Bus bus the daemon registers on."""

    AUTO = "auto"
    SESSION = "session"
    SYSTEM = "system"


def default_state_dir() -> str:
    """Directory for persisted runtime state, following systemd and XDG conventions."""
    if (state_dir := os.environ.get("STATE_DIRECTORY")) is not None:
        return state_dir
    if (state_home := os.environ.get("XDG_STATE_HOME")) is not None:
        return f"{state_home}/ht32-panel"
    if (home := os.environ.get("HOME")) is not None:
        return f"{home}/.local/state/ht32-panel"
    return "/var/lib/ht32-panel"


def _table(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key, {})
    if not isinstance(value, dict):
        raise ValueError(f"Failed to parse configuration: '{key}' must be a table")
    return value


def _int(data: dict[str, Any], key: str, default: int) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"Failed to parse configuration: '{key}' must be a non-negative integer")
    return value


def _str(data: dict[str, Any], key: str, default: str) -> str:
    value = data.get(key, default)
    if not isinstance(value, str):
        raise ValueError(f"Failed to parse configuration: '{key}' must be a string")
    return value


@dataclass
class WebConfig:
    """Web server settings."""

    enable: bool = False
    listen: str = "[::1]:8686"


@dataclass
class DbusConfig:
    """D-Bus settings."""

    bus: DbusBusType = DbusBusType.AUTO


@dataclass
class DevicesConfig:
    """LCD and LED device paths."""

    lcd: str = "auto"
    led: str = "/dev/ttyUSB0"


@dataclass
class CanvasConfig:
    """Canvas dimensions."""

    width: int = 320
    height: int = 170


@dataclass
class Config:
    """Main daemon configuration."""

    web: WebConfig = field(default_factory=WebConfig)
    dbus: DbusConfig = field(default_factory=DbusConfig)
    state_dir: str = field(default_factory=default_state_dir)
    refresh_interval: int = 2500
    heartbeat: int = 1000
    devices: DevicesConfig = field(default_factory=DevicesConfig)
    canvas: CanvasConfig = field(default_factory=CanvasConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Config:
        """Build a configuration from parsed TOML data, filling in defaults."""
        web = _table(data, "web")
        enable = web.get("enable", False)
        if not isinstance(enable, bool):
            raise ValueError("Failed to parse configuration: 'enable' must be a boolean")
        dbus = _table(data, "dbus")
        try:
            bus = DbusBusType(dbus.get("bus", "auto"))
        except ValueError as exc:
            raise ValueError(f"Failed to parse configuration: unknown bus {dbus.get('bus')!r}") from exc
        devices = _table(data, "devices")
        canvas = _table(data, "canvas")
        state_dir = data.get("state_dir")
        return cls(
            web=WebConfig(enable=enable, listen=_str(web, "listen", WebConfig.listen)),
            dbus=DbusConfig(bus=bus),
            state_dir=default_state_dir() if state_dir is None else _str(data, "state_dir", ""),
            refresh_interval=_int(data, "refresh_interval", 2500),
            heartbeat=_int(data, "heartbeat", 1000),
            devices=DevicesConfig(
                lcd=_str(devices, "lcd", DevicesConfig.lcd),
                led=_str(devices, "led", DevicesConfig.led),
            ),
            canvas=CanvasConfig(
                width=_int(canvas, "width", CanvasConfig.width),
                height=_int(canvas, "height", CanvasConfig.height),
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        """Plain dictionary form, suitable for TOML serialisation."""
        return {
            "web": {"enable": self.web.enable, "listen": self.web.listen},
            "dbus": {"bus": self.dbus.bus.value},
            "state_dir": self.state_dir,
            "refresh_interval": self.refresh_interval,
            "heartbeat": self.heartbeat,
            "devices": {"lcd": self.devices.lcd, "led": self.devices.led},
            "canvas": {"width": self.canvas.width, "height": self.canvas.height},
        }

    @classmethod
    def load(cls, path: str | os.PathLike[str]) -> Config:
        """Load a configuration from a TOML file."""
        content = Path(path).read_text(encoding="utf-8")
        try:
            data = tomllib.loads(content)
        except tomllib.TOMLDecodeError as exc:
            raise ValueError(f"Failed to parse configuration: {exc}") from exc
        return cls.from_dict(data)

    def save(self, path: str | os.PathLike[str]) -> None:
        """Write the configuration to a TOML file."""
        Path(path).write_text(tomli_w.dumps(self.to_dict()), encoding="utf-8")