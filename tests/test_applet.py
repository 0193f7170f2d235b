import asyncio

import pytest

from ht32panel.applet import handle_command, refresh_state, run_worker
from ht32panel.client import ClientError
from ht32panel.tray import (
    QuitDaemon,
    SetFace,
    SetLedTheme,
    SetNetworkInterface,
    SetOrientation,
    TrayState,
)


class FakeClient:
    def __init__(self, fail=()):
        self.fail = set(fail)
        self.calls = []
        self.closed = False

    async def _do(self, name, *args, result=None):
        self.calls.append((name, *args))
        if name in self.fail:
            raise ClientError(f"{name} failed")
        return result

    async def is_connected(self):
        return await self._do("is_connected", result=True)

    async def is_web_enabled(self):
        return await self._do("is_web_enabled", result=True)

    async def get_orientation(self):
        return await self._do("get_orientation", result="portrait")

    async def get_led_settings(self):
        return await self._do("get_led_settings", result=(1, 4, 5))

    async def get_face(self):
        return await self._do("get_face", result="ascii")

    async def get_complication_option(self, comp, opt):
        return await self._do("get_complication_option", comp, opt, result="eth0")

    async def list_network_interfaces(self):
        return await self._do("list_network_interfaces", result=["eth0", "wlan0"])

    async def set_led(self, theme, intensity, speed):
        return await self._do("set_led", theme, intensity, speed)

    async def set_orientation(self, orientation):
        return await self._do("set_orientation", orientation)

    async def set_face(self, face):
        return await self._do("set_face", face)

    async def set_complication_option(self, comp, opt, value):
        return await self._do("set_complication_option", comp, opt, value)

    async def quit(self):
        return await self._do("quit")

    async def close(self):
        self.closed = True


@pytest.mark.asyncio
async def test_refresh_state_copies_everything():
    state = TrayState()
    await refresh_state(FakeClient(), state)
    assert state.connected and state.web_enabled
    assert state.orientation == "portrait"
    assert (state.led_theme, state.led_intensity, state.led_speed) == (1, 4, 5)
    assert state.face == "ascii"
    assert state.network_interface == "eth0"
    assert state.network_interfaces == ["eth0", "wlan0"]


@pytest.mark.asyncio
async def test_refresh_state_skips_failures():
    state = TrayState()
    await refresh_state(FakeClient(fail={"get_face", "get_led_settings"}), state)
    assert state.face == "professional"
    assert (state.led_theme, state.led_intensity, state.led_speed) == (2, 3, 3)
    assert state.orientation == "portrait"


@pytest.mark.asyncio
async def test_led_theme_uses_current_intensity_and_speed():
    client = FakeClient()
    state = TrayState(led_intensity=4, led_speed=2)
    assert await handle_command(client, state, SetLedTheme(5)) is True
    assert client.calls == [("set_led", 5, 4, 2)]
    assert state.led_theme == 5


@pytest.mark.asyncio
async def test_orientation_and_face_commands():
    client = FakeClient()
    state = TrayState()
    assert await handle_command(client, state, SetOrientation("portrait"))
    assert await handle_command(client, state, SetFace("ascii"))
    assert (state.orientation, state.face) == ("portrait", "ascii")


@pytest.mark.asyncio
async def test_network_interface_auto_clears():
    client = FakeClient()
    state = TrayState(network_interface="eth0")
    assert await handle_command(client, state, SetNetworkInterface("auto"))
    assert client.calls == [("set_complication_option", "network", "interface", "auto")]
    assert state.network_interface == ""


@pytest.mark.asyncio
async def test_failure_requests_reconnect_and_keeps_state():
    client = FakeClient(fail={"set_face"})
    state = TrayState()
    assert await handle_command(client, state, SetFace("ascii")) is False
    assert state.face == "professional"


@pytest.mark.asyncio
async def test_quit_failure_keeps_client():
    client = FakeClient(fail={"quit"})
    assert await handle_command(client, TrayState(), QuitDaemon()) is True
    assert client.calls == [("quit",)]


@pytest.mark.asyncio
async def test_worker_runs_commands_then_stops():
    client = FakeClient()
    state = TrayState()
    queue = asyncio.Queue()
    queue.put_nowait(SetFace("ascii"))
    queue.put_nowait(QuitDaemon())
    queue.put_nowait(None)

    async def connect():
        return client

    await run_worker(state, queue, connect, retry_interval=0.01)
    assert ("set_face", "ascii") in client.calls
    assert client.calls[-1] == ("quit",)
    assert state.connected is True
    assert client.closed


@pytest.mark.asyncio
async def test_worker_retries_connection():
    attempts = []
    queue = asyncio.Queue()
    queue.put_nowait(SetFace("ascii"))
    queue.put_nowait(None)

    async def connect():
        attempts.append(1)
        raise ClientError("no daemon")

    state = TrayState()
    await run_worker(state, queue, connect, retry_interval=0.01)
    assert len(attempts) == 2
    assert state.face == "professional"


@pytest.mark.asyncio
async def test_worker_reconnects_after_failure():
    clients = [FakeClient(fail={"set_face"}), FakeClient()]
    handed = []
    queue = asyncio.Queue()
    for item in (SetFace("ascii"), SetFace("ascii"), None):
        queue.put_nowait(item)

    async def connect():
        client = clients[len(handed)]
        handed.append(client)
        return client

    state = TrayState()
    await run_worker(state, queue, connect, retry_interval=0.01)
    assert handed == clients
    assert clients[0].closed and clients[1].closed
    assert state.face == "ascii"