"""
Tests for the ESC/POS printer driver.
"""

import threading

import pytest
from PIL import Image

from posprint.errors import RenderSurfaceFailure
from posprint.hardware.printer import (
    BAND_HEIGHT,
    CMD_DRAWER_KICK,
    CMD_INIT,
    CMD_PARTIAL_CUT,
    ThermalPrinter,
    feed_command,
    raster_commands,
)


def test_raster_packs_rows_and_pads_to_bytes():
    img = Image.new("L", (10, 2), 0)

    data = raster_commands(img, dither=False)

    header = b'\x1dv0\x00' + bytes([2, 0]) + bytes([2, 0])
    assert data == header + bytes([0xFF, 0xC0, 0xFF, 0xC0])


def test_white_pixels_are_not_burned():
    img = Image.new("L", (8, 1), 255)
    assert raster_commands(img, dither=False).endswith(b'\x00')


def test_tall_images_are_split_into_bands():
    img = Image.new("L", (16, BAND_HEIGHT + 10), 255)

    data = raster_commands(img, dither=False)

    assert data.count(b'\x1dv0\x00') == 2
    first_rows = data[6:8]
    assert first_rows == bytes([BAND_HEIGHT & 0xFF, BAND_HEIGHT >> 8])


def test_feed_command_is_clamped():
    assert feed_command(4) == b'\x1bd\x04'
    assert feed_command(999) == b'\x1bd\xff'


async def test_mock_print_sends_full_job():
    printer = ThermalPrinter(mock=True)
    await printer.connect()

    await printer.print_image(Image.new("L", (16, 4), 255))

    job = printer.sent[-1]
    assert job.startswith(CMD_INIT)
    assert job.endswith(CMD_PARTIAL_CUT)


async def test_mock_cash_drawer_kick():
    printer = ThermalPrinter(mock=True)

    await printer.open_cash_drawer()

    assert printer.sent == [CMD_DRAWER_KICK]
    assert printer.is_connected


async def test_status_reports_mock_mode():
    printer = ThermalPrinter(port="/dev/ttyTEST0", mock=True)
    status = await printer.get_status()

    assert status["mock_mode"] is True
    assert status["port"] == "/dev/ttyTEST0"
    assert status["busy"] is False


async def test_unreachable_printer_fails_the_job():
    printer = ThermalPrinter(port="/nonexistent/ttyPOS")

    with pytest.raises(RenderSurfaceFailure):
        await printer.print_image(Image.new("L", (8, 8), 255))
    assert not printer.is_connected


class RecordingSerial:
    """Stands in for an open serial port and records each write."""

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.chunks = []
        self.threads = set()

    def write(self, data):
        self.threads.add(threading.get_ident())
        self.chunks.append(data)

    def flush(self):
        pass

    def close(self):
        pass


async def test_serial_writes_are_chunked_off_the_event_loop(monkeypatch):
    monkeypatch.setattr("posprint.hardware.printer.serial.Serial", RecordingSerial)
    printer = ThermalPrinter(port="/dev/ttyTEST0", baud=19200)

    await printer.print_image(Image.new("L", (576, 40), 255))

    port = printer._serial
    assert port.kwargs["port"] == "/dev/ttyTEST0"
    assert port.kwargs["baudrate"] == 19200
    assert all(len(chunk) <= 256 for chunk in port.chunks)
    written = b''.join(port.chunks)
    assert written.startswith(CMD_INIT + CMD_INIT)
    assert written.endswith(CMD_PARTIAL_CUT)
    assert threading.get_ident() not in port.threads
