"""Print service for POSPRINT receipts.

Runs one print request end to end: assemble the payload, lay it out
against the current store profile, render it, send it to the printer
and open the cash drawer when asked.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from PIL import Image

from posprint.config.settings import Settings
from posprint.config.store import ProfileStore
from posprint.hardware.printer import ThermalPrinter, create_printer
from posprint.models import Receipt, StoreProfile
from posprint.parsing.assembler import assemble
from posprint.printing.layout import DrawCommand, LayoutEngine
from posprint.printing.surface import PillowSurface, execute

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderedReceipt:
    """A receipt laid out and rendered, ready for printing."""

    receipt: Receipt
    profile: StoreProfile
    commands: Tuple[DrawCommand, ...]
    image: Image.Image
    printed_at: datetime


@dataclass(frozen=True)
class PrintResult:
    """Outcome of a successful print request."""

    order_id: str
    item_count: int
    drawer_opened: bool


def render_receipt(
    receipt: Receipt,
    profile: StoreProfile,
    dpi: int = 203,
    printed_at: Optional[datetime] = None,
) -> RenderedReceipt:
    """Lay out and render a receipt on a fresh Pillow surface.

    Raises:
        RenderSurfaceFailure: If rendering fails
    """
    printed_at = printed_at or datetime.now()
    surface = PillowSurface(profile.page_width, dpi)
    commands = LayoutEngine(surface).layout(receipt, profile, printed_at)
    execute(commands, surface)
    return RenderedReceipt(
        receipt=receipt,
        profile=profile,
        commands=commands,
        image=surface.image,
        printed_at=printed_at,
    )


class PrintService:
    """Turns raw payloads into printed receipts.

    Each request works on its own Receipt and profile snapshot; the
    only shared resource is the printer, which serializes its jobs.
    """

    def __init__(
        self,
        store: ProfileStore,
        settings: Settings,
        printer: Optional[ThermalPrinter] = None,
    ) -> None:
        self._store = store
        self._settings = settings
        self._printer = printer
        self._printer_lock = asyncio.Lock()

    @property
    def store(self) -> ProfileStore:
        return self._store

    def render_payload(self, raw_text: str, printed_at: Optional[datetime] = None) -> RenderedReceipt:
        """Assemble and render a payload without printing it.

        Raises:
            StructuralParseFailure: If the payload cannot be assembled
            RenderSurfaceFailure: If rendering fails
        """
        receipt = assemble(raw_text)
        return render_receipt(receipt, self._store.current(), self._settings.printer.dpi, printed_at)

    async def print_payload(self, raw_text: str) -> PrintResult:
        """Print a receipt payload.

        Raises:
            StructuralParseFailure: If the payload cannot be assembled
            RenderSurfaceFailure: If rendering or printing fails
        """
        receipt = assemble(raw_text)
        profile = self._store.current()

        rendered = await asyncio.to_thread(
            render_receipt, receipt, profile, self._settings.printer.dpi,
        )

        printer = await self._printer_for(profile)
        await printer.print_image(rendered.image)

        drawer_opened = receipt.open_cash_drawer and profile.enable_cash_drawer
        if drawer_opened:
            logger.info("Opening cash drawer...")
            await printer.open_cash_drawer()

        logger.info(f"Receipt printed: order '{receipt.order_id}', {len(receipt.items)} items")
        return PrintResult(
            order_id=receipt.order_id,
            item_count=len(receipt.items),
            drawer_opened=drawer_opened,
        )

    async def printer_status(self) -> dict:
        printer = await self._printer_for(self._store.current())
        return await printer.get_status()

    async def close(self) -> None:
        if self._printer:
            await self._printer.disconnect()

    async def _printer_for(self, profile: StoreProfile) -> ThermalPrinter:
        """Printer for the profile's device, reconnecting if it changed."""
        port = profile.printer_name or self._settings.printer.port

        async with self._printer_lock:
            if self._printer is not None and self._printer.port != port:
                logger.info(f"Printer changed from {self._printer.port} to {port}")
                await self._printer.disconnect()
                self._printer = None

            if self._printer is None:
                self._printer = create_printer(
                    port=port,
                    baud=self._settings.printer.baudrate,
                    mock=self._settings.printer.mock,
                )
            return self._printer
