"""Configuration for POSPRINT - runtime settings and the store profile."""

from posprint.config.settings import PrinterSettings, Settings, get_settings
from posprint.config.store import ProfileStore

__all__ = [
    "PrinterSettings",
    "Settings",
    "get_settings",
    "ProfileStore",
]
