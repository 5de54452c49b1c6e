"""ESC/POS thermal receipt printer driver for POSPRINT.

Prints rendered receipt images on an 80mm ESC/POS printer connected
over a serial port (USB-serial or UART), and kicks the cash drawer
wired to the printer's drawer port.

Hardware specifications:
- Paper width: 80mm (576 dots at 203 DPI)
- Interface: serial (9600 baud default, can be configured)
- Commands: ESC/POS raster bit image (GS v 0)
"""

import asyncio
import logging
import time
from typing import List, Optional

import numpy as np
import serial
from PIL import Image

from posprint.errors import RenderSurfaceFailure

logger = logging.getLogger(__name__)


ESC = b'\x1b'
GS = b'\x1d'

CMD_INIT = ESC + b'@'
CMD_PARTIAL_CUT = GS + b'V' + b'\x01'
# ESC p m t1 t2 - pulse drawer pin 2 for 50ms on, 500ms off
CMD_DRAWER_KICK = ESC + b'p' + bytes([0, 25, 250])

# Rows per GS v 0 command; some printers cap a single raster
BAND_HEIGHT = 256


def feed_command(lines: int) -> bytes:
    """ESC d n - feed n lines."""
    return ESC + b'd' + bytes([max(0, min(lines, 255))])


def raster_commands(image: Image.Image, dither: bool = True) -> bytes:
    """Convert an image to ESC/POS raster bit image commands.

    Args:
        image: Receipt image, any mode
        dither: Apply Floyd-Steinberg dithering for gray areas

    Returns:
        GS v 0 commands, one per band of rows
    """
    mono = image.convert("L").convert(
        "1",
        dither=Image.Dither.FLOYDSTEINBERG if dither else Image.Dither.NONE,
    )
    # True where a dot is burned (black pixel); packbits pads rows to bytes with white
    dots = ~np.asarray(mono, dtype=bool)
    packed = np.packbits(dots, axis=1)
    height, bytes_per_line = packed.shape

    commands = []
    for top in range(0, height, BAND_HEIGHT):
        band = packed[top:top + BAND_HEIGHT]
        rows = band.shape[0]
        # GS v 0 m xL xH yL yH data
        commands.append(GS + b'v0' + b'\x00')
        commands.append(bytes([bytes_per_line & 0xFF, (bytes_per_line >> 8) & 0xFF]))
        commands.append(bytes([rows & 0xFF, (rows >> 8) & 0xFF]))
        commands.append(band.tobytes())

    return b''.join(commands)


class ThermalPrinter:
    """Driver for an ESC/POS thermal receipt printer.

    Jobs are serialized: concurrent print requests wait their turn for
    the device.
    """

    DEFAULT_BAUD = 9600
    DEFAULT_PORT = "/dev/ttyUSB0"

    def __init__(
        self,
        port: str = DEFAULT_PORT,
        baud: int = DEFAULT_BAUD,
        mock: bool = False,
    ):
        """Initialize the printer driver.

        Args:
            port: Serial port path
            baud: Baud rate
            mock: If True, simulate printing without hardware
        """
        self._port = port
        self._baud = baud
        self._mock = mock
        self._serial: Optional[serial.Serial] = None
        self._connected = False
        self._lock = asyncio.Lock()
        # Bytes of every job sent in mock mode
        self.sent: List[bytes] = []

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def is_busy(self) -> bool:
        return self._lock.locked()

    @property
    def port(self) -> str:
        return self._port

    async def connect(self) -> bool:
        """Connect to the printer.

        Returns:
            True if connection successful
        """
        if self._mock:
            logger.info("Thermal printer in mock mode")
            self._connected = True
            return True

        try:
            self._serial = await asyncio.to_thread(
                serial.Serial,
                port=self._port,
                baudrate=self._baud,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=2.0,
            )
        except serial.SerialException as e:
            logger.error(f"Failed to connect to printer on {self._port}: {e}")
            self._connected = False
            return False

        self._connected = True
        logger.info(f"Thermal printer connected on {self._port}")
        await self._send_command(CMD_INIT)
        return True

    async def disconnect(self) -> None:
        """Disconnect from the printer."""
        if self._serial:
            self._serial.close()
            self._serial = None

        self._connected = False
        logger.info("Thermal printer disconnected")

    async def print_image(self, image: Image.Image, feed_lines: int = 4) -> None:
        """Print a rendered receipt image and cut the paper.

        Raises:
            RenderSurfaceFailure: If the printer is unavailable or the
                write fails
        """
        data = CMD_INIT + raster_commands(image) + feed_command(feed_lines) + CMD_PARTIAL_CUT
        await self._run_job(data, f"receipt {image.width}x{image.height}")

    async def open_cash_drawer(self) -> None:
        """Pulse the cash drawer port.

        Raises:
            RenderSurfaceFailure: If the printer is unavailable
        """
        await self._run_job(CMD_DRAWER_KICK, "cash drawer kick")

    async def get_status(self) -> dict:
        """Get printer status.

        Returns:
            Status dictionary
        """
        return {
            "connected": self._connected,
            "busy": self.is_busy,
            "mock_mode": self._mock,
            "port": self._port,
            "baud": self._baud,
        }

    async def _run_job(self, data: bytes, description: str) -> None:
        async with self._lock:
            if not self._connected and not await self.connect():
                raise RenderSurfaceFailure(f"Printer not connected on {self._port}")

            try:
                await self._send_command(data)
            except (serial.SerialException, OSError) as e:
                logger.error(f"Print failed: {e}")
                self._connected = False
                raise RenderSurfaceFailure(f"Printer write failed: {e}") from e

            logger.info(f"Sent {description} ({len(data)} bytes)")

    async def _send_command(self, data: bytes) -> None:
        """Send command data to printer.

        Args:
            data: Command bytes to send
        """
        if self._mock:
            logger.debug(f"Mock send: {len(data)} bytes")
            self.sent.append(data)
            return

        if self._serial:
            await asyncio.to_thread(self._write_chunks, data)

    def _write_chunks(self, data: bytes) -> None:
        """Blocking chunked write; runs in a worker thread."""
        # Send in chunks to avoid buffer overflow
        chunk_size = 256
        for i in range(0, len(data), chunk_size):
            self._serial.write(data[i:i + chunk_size])
            self._serial.flush()

            # Small delay between chunks
            time.sleep(0.01)


def create_printer(port: str, baud: int = ThermalPrinter.DEFAULT_BAUD, mock: bool = False) -> ThermalPrinter:
    """Factory function to create the printer for the given settings."""
    if mock:
        logger.info("Using mock printer")
    return ThermalPrinter(port=port, baud=baud, mock=mock)
