# ht32panel

Tools for controlling the front panel of HT32-based mini PCs through the
panel daemon: the small LCD, the LED strip, colour themes, display faces
and their complications. Everything talks to the daemon over D-Bus, on the
`org.ht32panel.Daemon1` interface of the `org.ht32panel.Daemon` service at
`/org/ht32panel/Daemon`.

The package provides:

- `ht32panelctl`, a command-line control tool (`ht32panel.cli`);
- `ht32panel.client.DaemonClient`, an asyncio D-Bus client for the daemon;
- `ht32panel.wire`, the small D-Bus wire-protocol layer the client is built on;
- `ht32panel.config.Config`, the daemon's TOML configuration model;
- `ht32panel.tray` and `ht32panel.applet`, the menu model and background
  worker behind a system tray menu.

## What this package does not do

It contains no daemon: it does not drive the LCD or LED hardware, render
faces, or serve a web UI. All commands need a running daemon to talk to.
It also does not draw a tray icon itself: `ht32panel.tray` builds the menu
as plain Python objects, and showing them in a desktop tray is left to the
caller.

## The `ht32panelctl` command

```
ht32panelctl [--version] [-v|--verbose] [--bus {auto,session,system}] COMMAND ...
```

`--bus auto` (the default) looks for the daemon on the session bus first
and falls back to the system bus. `--verbose` turns on debug logging.
Failures are printed as `Error: ...` on standard error and the command
exits with status 1.

### LCD

```
ht32panelctl lcd orientation portrait
ht32panelctl lcd clear --color "#FF0000"
ht32panelctl lcd face                 # show the current face
ht32panelctl lcd face professional    # switch face
ht32panelctl lcd list-faces
ht32panelctl lcd info
```

Orientations are `landscape`, `portrait`, `landscape-upside-down` and
`portrait-upside-down`. `clear` defaults to `#000000`.

### LEDs

```
ht32panelctl led set breathing --intensity 3 --speed 3
ht32panelctl led off
ht32panelctl led status
```

Themes are `rainbow`, `breathing`, `colors`, `off` and `auto` (case does
not matter); intensity and speed must be between 1 and 5 and both default
to 3.

### Colour themes

```
ht32panelctl theme show
ht32panelctl theme list
ht32panelctl theme set nord
```

### Complications

```
ht32panelctl complication list
ht32panelctl complication enable network
ht32panelctl complication disable disk_io
ht32panelctl complication get network interface
ht32panelctl complication set network interface eth0
ht32panelctl complication list-interfaces
```

`list` shows every complication of the current face, whether it is
enabled (`[x]` or `[ ]`), and its options with their current values, plus
the range and step for range options. Setting the network interface to
`auto` lets the daemon pick one.

### Screenshots and the daemon

```
ht32panelctl screenshot               # writes screenshot.png
ht32panelctl screenshot panel.png
ht32panelctl daemon status
ht32panelctl daemon quit
```

The same commands can be run from Python with `ht32panel.cli.main(argv)`,
which returns the exit status, or with `run(args, client)` on arguments
from `build_parser()` and an already connected client.

## Using the client from Python

```python
import asyncio
from ht32panel.client import BusType, DaemonClient

async def show():
    async with await DaemonClient.connect_with_bus(BusType.AUTO) as client:
        print(await client.get_face())
        print(await client.get_led_settings())

asyncio.run(show())
```

`DaemonClient.connect()` is the same as `connect_with_bus(BusType.AUTO)`;
`BusType.SESSION` and `BusType.SYSTEM` pick a bus explicitly. The client
has one coroutine per daemon call, among them `set_orientation`,
`get_orientation`, `clear_display`, `set_face`, `get_face`, `set_led`,
`led_off`, `get_led_settings`, `get_theme`, `set_theme`, `list_themes`,
`list_faces`, `list_complications_detailed`, `enable_complication`,
`get_complication_option`, `set_complication_option`,
`list_network_interfaces`, `get_screen_png` and `quit`, plus
`is_connected` and `is_web_enabled` for the daemon's properties.
`close()` releases the connection. Failures are raised as `ClientError`.

Bus addresses come from `DBUS_SESSION_BUS_ADDRESS` (or
`$XDG_RUNTIME_DIR/bus`) and `DBUS_SYSTEM_BUS_ADDRESS` (or the standard
system socket). Only Unix-socket transports with EXTERNAL authentication
are supported.

## Configuration file

`Config.load(path)` reads a TOML file and `Config.save(path)` writes one.
Every key is optional; missing keys take the defaults shown here. Values
of the wrong type, or an unknown bus, raise `ValueError`.

```toml
refresh_interval = 2500   # milliseconds
heartbeat = 1000          # milliseconds
# state_dir defaults to $STATE_DIRECTORY, then $XDG_STATE_HOME/ht32-panel,
# then $HOME/.local/state/ht32-panel, then /var/lib/ht32-panel

[web]
enable = false
listen = "[::1]:8686"

[dbus]
bus = "auto"              # auto, session or system

[devices]
lcd = "auto"
led = "/dev/ttyUSB0"

[canvas]
width = 320
height = 170
```

```python
from ht32panel.config import Config

config = Config.load("config.toml")
print(config.devices.led, config.canvas.width)
config.save("config.toml")
```

`Config.from_dict` and `Config.to_dict` convert to and from plain
dictionaries, and `default_state_dir()` returns the state directory that
applies when none is configured.

## Tray model and worker

`create_tray(state)` returns an `HT32PanelTray` and the `asyncio.Queue`
its commands go to. `HT32PanelTray.menu()` builds the menu from a
`TrayState` as `SubMenu`, `RadioGroup`, `StandardItem` and `Separator`
objects: submenus for display face, orientation, network interface and
LED theme, an "Open Web UI" entry when the web UI is enabled, and
"Quit Daemon". Choosing an option queues a command (`SetFace`,
`SetOrientation`, `SetNetworkInterface`, `SetLedTheme`, `QuitDaemon`) and
updates the state at once. Opening the web UI calls the `open_url` hook
given to `HT32PanelTray`, if any.

`ht32panel.applet.run_worker(state, commands)` connects to the daemon,
copies its settings into the state with `refresh_state`, carries out
queued commands with `handle_command`, reconnects after a failure, and
stops when `None` is put on the queue.