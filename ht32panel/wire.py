"""Minimal D-Bus wire protocol: marshalling, messages and a bus connection."""

from __future__ import annotations

import asyncio
import enum
import os
import struct
from dataclasses import dataclass
from typing import Any
from urllib.parse import unquote

BUS_NAME = "org.freedesktop.DBus"
BUS_PATH = "/org/freedesktop/DBus"

_FIXED = {"y": "B", "b": "I", "n": "h", "q": "H", "i": "i", "u": "I",
          "x": "q", "t": "Q", "d": "d", "h": "I"}
_ALIGN = {"y": 1, "b": 4, "n": 2, "q": 2, "i": 4, "u": 4, "x": 8, "t": 8, "d": 8,
          "h": 4, "s": 4, "o": 4, "g": 1, "a": 4, "(": 8, "{": 8, "v": 1}
_HEADER_SIGNATURE = "yyyyuua(yv)"


class DBusError(Exception):
    """A D-Bus failure: transport, protocol or an error reply."""

    def __init__(self, message: str, name: str = "org.freedesktop.DBus.Error.Failed"):
        super().__init__(message)
        self.name = name


def _type_end(sig: str, start: int) -> int:
    if start >= len(sig):
        raise DBusError(f"Truncated signature {sig!r}")
    code = sig[start]
    if code == "a":
        return _type_end(sig, start + 1)
    if code in "({":
        close = ")" if code == "(" else "}"
        pos = start + 1
        while pos < len(sig) and sig[pos] != close:
            pos = _type_end(sig, pos)
        if pos >= len(sig):
            raise DBusError(f"Unterminated container in signature {sig!r}")
        return pos + 1
    if code in _ALIGN:
        return start + 1
    raise DBusError(f"Unknown type code {code!r} in signature {sig!r}")


def _split(sig: str) -> list[str]:
    types, pos = [], 0
    while pos < len(sig):
        end = _type_end(sig, pos)
        types.append(sig[pos:end])
        pos = end
    return types


class _Writer:
    def __init__(self) -> None:
        self.buf = bytearray()

    def pad(self, n: int) -> None:
        self.buf.extend(b"\0" * (-len(self.buf) % n))

    def write(self, t: str, value: Any) -> None:
        code = t[0]
        if code in _FIXED:
            self.pad(_ALIGN[code])
            if code == "b":
                value = 1 if value else 0
            try:
                self.buf += struct.pack("<" + _FIXED[code], value)
            except struct.error as exc:
                raise DBusError(f"Value {value!r} does not fit type {code!r}") from exc
        elif code in "so":
            data = value.encode("utf-8")
            self.pad(4)
            self.buf += struct.pack("<I", len(data)) + data + b"\0"
        elif code == "g":
            data = value.encode("ascii")
            if len(data) > 255:
                raise DBusError("Signature too long")
            self.buf.append(len(data))
            self.buf += data + b"\0"
        elif code == "a":
            elem = t[1:]
            self.pad(4)
            at = len(self.buf)
            self.buf += b"\0\0\0\0"
            self.pad(_ALIGN[elem[0]])
            start = len(self.buf)
            if elem == "y" and isinstance(value, (bytes, bytearray)):
                self.buf += value
            else:
                for item in (value.items() if elem[0] == "{" else value):
                    self.write(elem, item)
            struct.pack_into("<I", self.buf, at, len(self.buf) - start)
        elif code in "({":
            self.pad(8)
            inner = _split(t[1:-1])
            items = tuple(value)
            if len(items) != len(inner):
                raise DBusError(f"Expected {len(inner)} fields for {t!r}, got {len(items)}")
            for field_type, item in zip(inner, items):
                self.write(field_type, item)
        elif code == "v":
            sig, inner_value = value
            if len(_split(sig)) != 1:
                raise DBusError(f"Variant signature {sig!r} must be a single type")
            self.write("g", sig)
            self.write(sig, inner_value)


class _Reader:
    def __init__(self, data: bytes, little: bool = True):
        self.data = data
        self.pos = 0
        self.order = "<" if little else ">"

    def take(self, n: int) -> bytes:
        if self.pos + n > len(self.data):
            raise DBusError("Truncated data")
        chunk = bytes(self.data[self.pos:self.pos + n])
        self.pos += n
        return chunk

    def align(self, n: int) -> None:
        self.take(-self.pos % n)

    def _u32(self) -> int:
        return struct.unpack(self.order + "I", self.take(4))[0]

    def read(self, t: str) -> Any:
        code = t[0]
        if code in _FIXED:
            self.align(_ALIGN[code])
            fmt = self.order + _FIXED[code]
            (value,) = struct.unpack(fmt, self.take(struct.calcsize(fmt)))
            return bool(value) if code == "b" else value
        if code in "so":
            self.align(4)
            text = self.take(self._u32()).decode("utf-8")
            self.take(1)
            return text
        if code == "g":
            text = self.take(self.take(1)[0]).decode("ascii")
            self.take(1)
            return text
        if code == "a":
            self.align(4)
            length = self._u32()
            elem = t[1:]
            self.align(_ALIGN[elem[0]])
            if elem == "y":
                return self.take(length)
            end = self.pos + length
            items = []
            while self.pos < end:
                items.append(self.read(elem))
            return dict(items) if elem[0] == "{" else items
        if code in "({":
            self.align(8)
            return tuple(self.read(field_type) for field_type in _split(t[1:-1]))
        if code == "v":
            return self.read(self.read("g"))
        raise DBusError(f"Unknown type code {code!r}")

    def read_all(self, signature: str) -> tuple:
        return tuple(self.read(t) for t in _split(signature))


def marshal(signature: str, values) -> bytes:
    """Encode values (little-endian) according to a D-Bus signature."""
    types = _split(signature)
    values = tuple(values)
    if len(types) != len(values):
        raise DBusError(f"Signature {signature!r} needs {len(types)} values, got {len(values)}")
    writer = _Writer()
    try:
        for t, value in zip(types, values):
            writer.write(t, value)
    except (TypeError, AttributeError, ValueError) as exc:
        raise DBusError(f"Cannot marshal {values!r} as {signature!r}: {exc}") from exc
    return bytes(writer.buf)


def unmarshal(signature: str, data: bytes) -> tuple:
    """Decode little-endian data according to a D-Bus signature."""
    try:
        return _Reader(data).read_all(signature)
    except UnicodeDecodeError as exc:
        raise DBusError(f"Invalid string data: {exc}") from exc


class MessageType(enum.IntEnum):
    """D-Bus message types."""

    METHOD_CALL = 1
    METHOD_RETURN = 2
    ERROR = 3
    SIGNAL = 4


_FIELDS = (("path", 1, "o"), ("interface", 2, "s"), ("member", 3, "s"),
           ("error_name", 4, "s"), ("reply_serial", 5, "u"), ("destination", 6, "s"),
           ("sender", 7, "s"), ("signature", 8, "g"))
_FIELD_NAMES = {code: name for name, code, _ in _FIELDS}


@dataclass
class Message:
    """A D-Bus message."""

    message_type: MessageType
    serial: int = 0
    path: str | None = None
    interface: str | None = None
    member: str | None = None
    error_name: str | None = None
    reply_serial: int | None = None
    destination: str | None = None
    sender: str | None = None
    signature: str = ""
    body: tuple = ()
    flags: int = 0

    def encode(self) -> bytes:
        """Serialise the message (little-endian)."""
        body = marshal(self.signature, self.body)
        fields = [(code, (sig, getattr(self, name))) for name, code, sig in _FIELDS
                  if getattr(self, name) not in (None, "")]
        header = marshal(_HEADER_SIGNATURE, (ord("l"), int(self.message_type), self.flags,
                                             1, len(body), self.serial, fields))
        return header + b"\0" * (-len(header) % 8) + body

    @classmethod
    def decode(cls, data: bytes) -> Message:
        """Parse one complete message."""
        if len(data) < 16:
            raise DBusError("Truncated message header")
        if data[0] not in (ord("l"), ord("B")):
            raise DBusError("Invalid endianness marker")
        reader = _Reader(data, little=data[0] == ord("l"))
        try:
            _, mtype, flags, _, body_len, serial, fields = reader.read_all(_HEADER_SIGNATURE)
            reader.align(8)
            body_reader = _Reader(reader.take(body_len), little=data[0] == ord("l"))
            kwargs = {_FIELD_NAMES[code]: value for code, value in fields if code in _FIELD_NAMES}
            signature = kwargs.pop("signature", "")
            return cls(MessageType(mtype), serial=serial, flags=flags, signature=signature,
                       body=body_reader.read_all(signature), **kwargs)
        except (ValueError, UnicodeDecodeError) as exc:
            raise DBusError(f"Malformed message: {exc}") from exc


def _message_length(head: bytes) -> int:
    order = "<" if head[0] == ord("l") else ">"
    body_len, _, fields_len = struct.unpack(order + "III", head[4:16])
    header_len = 16 + fields_len
    return header_len + (-header_len % 8) + body_len


async def _read_message(reader: asyncio.StreamReader) -> Message:
    head = await reader.readexactly(16)
    rest = await reader.readexactly(_message_length(head) - 16)
    return Message.decode(head + rest)


def _socket_path(entry: str) -> str:
    transport, _, params = entry.partition(":")
    if transport != "unix":
        raise DBusError(f"Unsupported transport {transport!r}")
    keys = dict(part.split("=", 1) for part in params.split(",") if "=" in part)
    if "path" in keys:
        return unquote(keys["path"])
    if "abstract" in keys:
        return "\0" + unquote(keys["abstract"])
    raise DBusError(f"No socket path in address {entry!r}")


class BusConnection:
    """An authenticated connection to a message bus."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self._reader = reader
        self._writer = writer
        self._serial = 0
        self._lock = asyncio.Lock()
        self.unique_name: str | None = None

    @classmethod
    async def session(cls) -> BusConnection:
        """Connect to the session bus."""
        address = os.environ.get("DBUS_SESSION_BUS_ADDRESS")
        if not address:
            runtime = os.environ.get("XDG_RUNTIME_DIR")
            if not runtime:
                raise DBusError("Session bus address is not known")
            address = f"unix:path={runtime}/bus"
        return await cls.open(address)

    @classmethod
    async def system(cls) -> BusConnection:
        """Connect to the system bus."""
        address = os.environ.get("DBUS_SYSTEM_BUS_ADDRESS") or "unix:path=/var/run/dbus/system_bus_socket"
        return await cls.open(address)

    @classmethod
    async def open(cls, address: str) -> BusConnection:
        """Connect to the first reachable entry of a bus address."""
        errors = []
        for entry in filter(None, address.split(";")):
            try:
                reader, writer = await asyncio.open_unix_connection(_socket_path(entry))
            except (OSError, DBusError) as exc:
                errors.append(f"{entry}: {exc}")
                continue
            connection = cls(reader, writer)
            try:
                await connection._authenticate()
                (connection.unique_name,) = await connection.call(
                    BUS_NAME, BUS_PATH, BUS_NAME, "Hello", "")
            except BaseException:
                await connection.close()
                raise
            return connection
        raise DBusError("Cannot connect to bus: " + ("; ".join(errors) or "empty address"))

    async def _authenticate(self) -> None:
        uid = str(os.getuid()).encode().hex().encode()
        try:
            self._writer.write(b"\0AUTH EXTERNAL " + uid + b"\r\n")
            await self._writer.drain()
            line = await self._reader.readline()
            if not line.startswith(b"OK"):
                raise DBusError(f"Authentication rejected: {line.decode(errors='replace').strip()}")
            self._writer.write(b"BEGIN\r\n")
            await self._writer.drain()
        except OSError as exc:
            raise DBusError(f"Authentication failed: {exc}") from exc

    async def call(self, destination, path, interface, member, signature, *args) -> tuple:
        """Call a method and return the reply body."""
        async with self._lock:
            self._serial += 1
            request = Message(MessageType.METHOD_CALL, serial=self._serial, path=path,
                              interface=interface, member=member, destination=destination,
                              signature=signature, body=args)
            try:
                self._writer.write(request.encode())
                await self._writer.drain()
                while True:
                    reply = await _read_message(self._reader)
                    if reply.reply_serial == request.serial:
                        break
            except (OSError, asyncio.IncompleteReadError) as exc:
                raise DBusError(f"Connection lost: {exc}") from exc
        if reply.message_type == MessageType.ERROR:
            name = reply.error_name or "org.freedesktop.DBus.Error.Failed"
            text = reply.body[0] if reply.body and isinstance(reply.body[0], str) else name
            raise DBusError(text, name)
        return reply.body

    async def close(self) -> None:
        """Close the connection."""
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except OSError:
            pass

    async def __aenter__(self) -> BusConnection:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()