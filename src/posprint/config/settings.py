"""
Application settings using Pydantic.

Settings are loaded from environment variables with .env file support.
Store details (name, address, currency, ...) are not settings; they live
in the profile file managed by ``posprint.config.store``.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PrinterSettings(BaseModel):
    """Thermal printer connection (POSPRINT_PRINTER__<FIELD>)."""

    # Default serial port, used when the profile names no printer
    port: str = "/dev/ttyUSB0"
    baudrate: int = 9600

    # Print resolution
    dpi: int = 203

    # Simulate printing without hardware
    mock: bool = False


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="POSPRINT_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    debug: bool = False

    # HTTP server
    host: str = "127.0.0.1"
    port: int = Field(default=8080, ge=1, le=65535)

    # Flat key=value store profile
    profile_path: Path = Field(default_factory=lambda: Path.cwd() / "store-config.txt")

    printer: PrinterSettings = Field(default_factory=PrinterSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
