"""Control the HT32 panel daemon over D-Bus: client, command-line tool, configuration and tray model."""

__version__ = "0.8.0"