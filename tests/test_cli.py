import json

import pytest

from ht32panel.cli import (
    CliError,
    build_parser,
    format_complication,
    led_theme_byte,
    led_theme_name,
    main,
    run,
)


class FakeClient:
    def __init__(self, **values):
        self.calls = []
        self.values = {
            "face": "ascii",
            "orientation": "portrait",
            "connected": True,
            "led": (2, 3, 4),
            "theme": "nord",
            "themes": ["default", "nord"],
            "faces": ["ascii", "professional"],
            "complications": [],
            "interfaces": ["eth0", "wlan0"],
            "option": "ipv4",
            "png": b"\x89PNG data",
        }
        self.values.update(values)

    async def set_orientation(self, orientation):
        self.calls.append(("set_orientation", orientation))

    async def get_orientation(self):
        return self.values["orientation"]

    async def clear_display(self, color):
        self.calls.append(("clear_display", color))

    async def set_face(self, face):
        self.calls.append(("set_face", face))

    async def get_face(self):
        return self.values["face"]

    async def list_face_ids(self):
        return self.values["faces"]

    async def is_connected(self):
        return self.values["connected"]

    async def set_led(self, theme, intensity, speed):
        self.calls.append(("set_led", theme, intensity, speed))

    async def led_off(self):
        self.calls.append(("led_off",))

    async def get_led_settings(self):
        return self.values["led"]

    async def get_theme(self):
        return self.values["theme"]

    async def set_theme(self, name):
        self.calls.append(("set_theme", name))

    async def list_themes(self):
        return self.values["themes"]

    async def list_complications_detailed(self):
        return self.values["complications"]

    async def enable_complication(self, cid):
        self.calls.append(("enable", cid))

    async def disable_complication(self, cid):
        self.calls.append(("disable", cid))

    async def get_complication_option(self, cid, oid):
        self.calls.append(("get_option", cid, oid))
        return self.values["option"]

    async def set_complication_option(self, cid, oid, value):
        self.calls.append(("set_option", cid, oid, value))

    async def list_network_interfaces(self):
        return self.values["interfaces"]

    async def get_screen_png(self):
        return self.values["png"]

    async def quit(self):
        self.calls.append(("quit",))


def parse(*argv):
    return build_parser().parse_args(list(argv))


@pytest.mark.parametrize(
    "name,value",
    [("rainbow", 1), ("breathing", 2), ("colors", 3), ("off", 4), ("auto", 5), ("RAINBOW", 1)],
)
def test_led_theme_byte(name, value):
    assert led_theme_byte(name) == value


def test_led_theme_byte_invalid():
    with pytest.raises(CliError, match="Invalid theme: sparkle"):
        led_theme_byte("sparkle")


@pytest.mark.parametrize("name", ["rainbow", "breathing", "colors", "off", "auto"])
def test_led_theme_name_round_trip(name):
    assert led_theme_name(led_theme_byte(name)) == name


@pytest.mark.parametrize("value", [0, 6, 255])
def test_led_theme_name_unknown(value):
    assert led_theme_name(value) == "unknown"


def test_parser_defaults():
    args = parse("led", "set", "rainbow")
    assert (args.intensity, args.speed, args.bus, args.verbose) == (3, 3, "auto", False)
    assert parse("lcd", "clear").color == "#000000"
    assert parse("screenshot").output == "screenshot.png"
    assert parse("lcd", "face").face is None


def test_parser_rejects_unknown_bus():
    with pytest.raises(SystemExit):
        parse("--bus", "nowhere", "daemon", "status")


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        parse()


def test_format_complication_choice():
    comp = {
        "id": "network",
        "name": "Network",
        "description": "Shows traffic",
        "enabled": True,
        "options": [{"id": "interface", "name": "Interface", "current_value": "eth0", "type": "choice"}],
    }
    lines = format_complication(json.dumps(comp))
    assert lines == [
        "  [x] network - Network",
        "      Shows traffic",
        "      - interface: Interface (current: eth0)",
    ]


def test_format_complication_range_defaults():
    comp = {
        "id": "x",
        "name": "X",
        "description": "",
        "options": [{"id": "level", "name": "Level", "current_value": "5", "type": "range"}],
    }
    lines = format_complication(json.dumps(comp))
    assert lines[0].startswith("  [ ] x - X")
    assert lines[2] == "      - level: Level (current: 5, range: 0-100, step: 1)"


def test_format_complication_invalid_json():
    assert format_complication("{not json") == []


@pytest.mark.asyncio
async def test_run_led_set(capsys):
    client = FakeClient()
    await run(parse("led", "set", "Colors", "--intensity", "4", "--speed", "5"), client)
    assert client.calls == [("set_led", 3, 4, 5)]
    assert capsys.readouterr().out.strip() == "LED set to: Colors (intensity: 4, speed: 5)"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "argv,message",
    [
        (("led", "set", "rainbow", "--intensity", "0"), "Intensity must be between 1 and 5"),
        (("led", "set", "rainbow", "--speed", "6"), "Speed must be between 1 and 5"),
        (("led", "set", "glow"), "Invalid theme"),
    ],
)
async def test_run_led_set_rejects(argv, message):
    client = FakeClient()
    with pytest.raises(CliError, match=message):
        await run(parse(*argv), client)
    assert client.calls == []


@pytest.mark.asyncio
async def test_run_led_status(capsys):
    await run(parse("led", "status"), FakeClient(led=(5, 1, 2)))
    out = capsys.readouterr().out.splitlines()
    assert out == ["LED Status:", "  Theme: auto", "  Intensity: 1", "  Speed: 2"]


@pytest.mark.asyncio
async def test_run_lcd_face_show_and_set(capsys):
    client = FakeClient(face="professional")
    await run(parse("lcd", "face"), client)
    assert capsys.readouterr().out.strip() == "Current face: professional"
    await run(parse("lcd", "face", "ascii"), client)
    assert client.calls == [("set_face", "ascii")]
    assert capsys.readouterr().out.strip() == "Face set to: ascii"


@pytest.mark.asyncio
async def test_run_lcd_info(capsys):
    await run(parse("lcd", "info"), FakeClient(connected=False, orientation="landscape", face="ascii"))
    out = capsys.readouterr().out.splitlines()
    assert out == ["LCD Status:", "  Connected: no", "  Orientation: landscape", "  Face: ascii"]


@pytest.mark.asyncio
async def test_run_complication_list_empty(capsys):
    await run(parse("complication", "list"), FakeClient(face="ascii"))
    out = capsys.readouterr().out.splitlines()
    assert out == ["Complications for 'ascii' face:", "  (none available)"]


@pytest.mark.asyncio
async def test_run_complication_set_and_get(capsys):
    client = FakeClient(option="ipv6")
    await run(parse("complication", "set", "ip_address", "ip_type", "ipv6"), client)
    await run(parse("complication", "get", "ip_address", "ip_type"), client)
    assert client.calls == [
        ("set_option", "ip_address", "ip_type", "ipv6"),
        ("get_option", "ip_address", "ip_type"),
    ]
    out = capsys.readouterr().out.splitlines()
    assert out == ["Set ip_address.ip_type = ipv6", "ip_address.ip_type = ipv6"]


@pytest.mark.asyncio
async def test_run_list_interfaces(capsys):
    await run(parse("complication", "list-interfaces"), FakeClient(interfaces=["eth0"]))
    out = capsys.readouterr().out.splitlines()
    assert out == ["Available network interfaces:", "  auto (auto-detect)", "  eth0"]


@pytest.mark.asyncio
async def test_run_screenshot_writes_file(tmp_path, capsys):
    target = tmp_path / "shot.png"
    await run(parse("screenshot", str(target)), FakeClient(png=b"abc"))
    assert target.read_bytes() == b"abc"
    assert capsys.readouterr().out.strip() == f"Screenshot saved to: {target}"


@pytest.mark.asyncio
async def test_run_screenshot_unwritable(tmp_path):
    target = tmp_path / "missing" / "shot.png"
    with pytest.raises(CliError, match="Failed to write screenshot file"):
        await run(parse("screenshot", str(target)), FakeClient())


@pytest.mark.asyncio
async def test_run_daemon_quit(capsys):
    client = FakeClient()
    await run(parse("daemon", "quit"), client)
    assert client.calls == [("quit",)]
    assert capsys.readouterr().out.strip() == "Shutdown request sent to daemon"


def test_main_reports_connection_failure(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("DBUS_SESSION_BUS_ADDRESS", f"unix:path={tmp_path / 'nobus'}")
    code = main(["--bus", "session", "daemon", "status"])
    assert code == 1
    assert "Failed to connect to daemon" in capsys.readouterr().err