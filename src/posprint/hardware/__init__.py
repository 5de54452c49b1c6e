"""Printer hardware for POSPRINT."""

from posprint.hardware.printer import ThermalPrinter, create_printer, raster_commands

__all__ = [
    "ThermalPrinter",
    "create_printer",
    "raster_commands",
]
