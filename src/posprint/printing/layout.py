"""Layout engine for thermal printer receipts.

Turns an assembled Receipt and a StoreProfile into an ordered sequence
of draw commands for an 80mm thermal printer (576 dots at 203 DPI).
Heights come from the render surface's text measurement, so the same
engine lays out for any surface that can measure text.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, localcontext
from enum import Enum
from io import BytesIO
from pathlib import Path
from typing import List, Optional, Protocol, Tuple, Union

from posprint.models import ZERO, Receipt, StoreProfile

logger = logging.getLogger(__name__)


TOP_MARGIN = 10
SIDE_MARGIN = 5
RULE_HEIGHT = 2
LOGO_MAX_HEIGHT = 120

CENTS = Decimal("0.01")
THANK_YOU = "Thank you for your business!"


class Alignment(Enum):
    """Horizontal text alignment within a column."""

    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class FontStyle(Enum):
    """Font style for a text command."""

    REGULAR = "regular"
    BOLD = "bold"
    ITALIC = "italic"


@dataclass(frozen=True)
class DrawText:
    """Draw text with its bottom-left corner at (x, y)."""

    text: str
    x: float
    y: float
    font_size: float
    style: FontStyle = FontStyle.REGULAR


@dataclass(frozen=True)
class DrawLine:
    """Draw a horizontal or vertical rule."""

    x1: float
    y1: float
    x2: float
    y2: float


@dataclass(frozen=True)
class DrawImage:
    """Place encoded image bytes in a box with top-left corner (x, y)."""

    source: bytes = field(repr=False)
    x: float
    y: float
    width: float
    height: float


DrawCommand = Union[DrawText, DrawLine, DrawImage]


@dataclass(frozen=True)
class Column:
    """One column of a text row, as a fraction of the content width."""

    text: str
    width: float
    alignment: Alignment = Alignment.LEFT
    font_size: float = 10
    style: FontStyle = FontStyle.REGULAR


class TextMeasurer(Protocol):
    """Anything that can report the rendered size of a text run."""

    def measure_text(
        self,
        text: str,
        font_size: float,
        style: FontStyle = FontStyle.REGULAR,
    ) -> Tuple[float, float]:
        ...


def format_currency(amount: Decimal, symbol: str) -> str:
    """Format money as symbol plus exactly two decimal places."""
    with localcontext() as ctx:
        # Room for every whole digit plus the cents
        ctx.prec = max(ctx.prec, amount.adjusted() + 3)
        cents = amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    if cents.is_zero():
        cents = cents.copy_abs()
    return f"{symbol}{cents}"


def load_logo(path: str) -> Optional[Tuple[bytes, int, int]]:
    """Read and decode a logo image.

    Returns:
        (image bytes, pixel width, pixel height), or None when the file
        is missing or not a readable image
    """
    try:
        from PIL import Image

        data = Path(path).read_bytes()
        with Image.open(BytesIO(data)) as img:
            img.load()
            width, height = img.size
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        logger.warning(f"Could not load logo: {e}")
        return None

    if width <= 0 or height <= 0:
        return None
    return data, width, height


class LayoutCursor:
    """Accumulates draw commands while tracking the vertical cursor.

    Each emit method appends commands, moves the cursor past what it
    drew and returns the height it consumed. Gaps between blocks are
    added with ``advance``.
    """

    def __init__(self, measurer: TextMeasurer, page_width: float, top: float = TOP_MARGIN):
        self.page_width = page_width
        self.y = top
        self._measurer = measurer
        self._commands: List[DrawCommand] = []

    @property
    def content_width(self) -> float:
        return self.page_width - SIDE_MARGIN * 2

    def advance(self, gap: float) -> None:
        self.y += gap

    def text_row(self, *columns: Column) -> float:
        """Draw columns side by side on one shared baseline."""
        sizes = [
            self._measurer.measure_text(col.text, col.font_size, col.style)
            for col in columns
        ]
        row_height = max((height for _, height in sizes), default=0)
        baseline = self.y + row_height

        left = SIDE_MARGIN
        for col, (text_width, _) in zip(columns, sizes):
            col_width = self.content_width * col.width
            if col.alignment == Alignment.CENTER:
                x = left + (col_width - text_width) / 2
            elif col.alignment == Alignment.RIGHT:
                x = left + col_width - text_width
            else:
                x = left
            if col.text:
                self._commands.append(DrawText(
                    text=col.text,
                    x=max(left, x),
                    y=baseline,
                    font_size=col.font_size,
                    style=col.style,
                ))
            left += col_width

        self.y += row_height
        return row_height

    def centered_text(
        self,
        text: str,
        font_size: float,
        style: FontStyle = FontStyle.REGULAR,
    ) -> float:
        """Draw a line of text centered on the page."""
        text_width, height = self._measurer.measure_text(text, font_size, style)
        x = max(0.0, (self.page_width - text_width) / 2)
        self._commands.append(DrawText(text, x, self.y + height, font_size, style))
        self.y += height
        return height

    def rule(self) -> float:
        """Draw a horizontal rule across the content width."""
        self._commands.append(DrawLine(SIDE_MARGIN, self.y, self.page_width - SIDE_MARGIN, self.y))
        self.y += RULE_HEIGHT
        return RULE_HEIGHT

    def image(self, source: bytes, width: float, height: float) -> float:
        """Place an image centered on the page."""
        x = (self.page_width - width) / 2
        self._commands.append(DrawImage(source, x, self.y, width, height))
        self.y += height
        return height

    def finish(self) -> Tuple[DrawCommand, ...]:
        return tuple(self._commands)


class LayoutEngine:
    """Lays out receipts as draw command sequences.

    The engine keeps no state between calls; the same receipt, profile
    and timestamp always give the same commands.
    """

    def __init__(self, measurer: TextMeasurer):
        self._measurer = measurer

    def layout(
        self,
        receipt: Receipt,
        profile: StoreProfile,
        printed_at: Optional[datetime] = None,
    ) -> Tuple[DrawCommand, ...]:
        """Lay out a receipt.

        Args:
            receipt: Assembled receipt
            profile: Store profile snapshot
            printed_at: Footer timestamp, defaults to now

        Returns:
            Draw commands in drawing order
        """
        cursor = LayoutCursor(self._measurer, profile.page_width)
        currency = profile.currency

        self._layout_logo(cursor, profile)
        self._layout_header(cursor, profile)
        self._layout_order_info(cursor, receipt)

        cursor.advance(10)
        cursor.rule()
        cursor.advance(5)

        self._layout_items(cursor, receipt, currency)
        self._layout_totals(cursor, receipt, currency)
        self._layout_payment(cursor, receipt, currency)
        self._layout_notes(cursor, receipt)
        self._layout_footer(cursor, printed_at or datetime.now())

        commands = cursor.finish()
        logger.debug(f"Laid out {len(commands)} draw commands, height {cursor.y:.0f}")
        return commands

    def _layout_logo(self, cursor: LayoutCursor, profile: StoreProfile) -> None:
        if not profile.logo_path:
            return

        logo = load_logo(profile.logo_path)
        if logo is None:
            return

        data, width, height = logo
        display_height = min(LOGO_MAX_HEIGHT, height)
        display_width = width * display_height / height
        if display_width > cursor.content_width:
            display_width = cursor.content_width
            display_height = height * display_width / width

        cursor.image(data, display_width, display_height)
        cursor.advance(10)

    def _layout_header(self, cursor: LayoutCursor, profile: StoreProfile) -> None:
        if profile.store_name:
            cursor.centered_text(profile.store_name, 16, FontStyle.BOLD)
            cursor.advance(5)
        if profile.address:
            cursor.centered_text(profile.address, 10)
            cursor.advance(2)
        if profile.phone:
            cursor.centered_text(profile.phone, 10)
            cursor.advance(10)

    def _layout_order_info(self, cursor: LayoutCursor, receipt: Receipt) -> None:
        if receipt.order_id:
            cursor.text_row(
                Column("Order ID:", 0.6, Alignment.LEFT, 12),
                Column(receipt.order_id, 0.4, Alignment.RIGHT, 12),
            )
        if receipt.order_date is not None:
            cursor.text_row(
                Column("Date:", 0.6, Alignment.LEFT, 10),
                Column(receipt.order_date.strftime("%m/%d/%Y %H:%M"), 0.4, Alignment.RIGHT, 10),
            )
        if receipt.customer is not None and receipt.customer.name:
            cursor.advance(5)
            cursor.text_row(
                Column("Customer:", 0.3, Alignment.LEFT, 10),
                Column(receipt.customer.name, 0.7, Alignment.LEFT, 10),
            )

    def _layout_items(self, cursor: LayoutCursor, receipt: Receipt, currency: str) -> None:
        if not receipt.items:
            return

        cursor.text_row(
            Column("Item", 0.5, Alignment.LEFT),
            Column("Qty", 0.15, Alignment.CENTER),
            Column("Price", 0.175, Alignment.RIGHT),
            Column("Total", 0.175, Alignment.RIGHT),
        )
        cursor.rule()
        cursor.advance(2)

        for item in receipt.items:
            cursor.text_row(
                Column(item.display_name, 0.5, Alignment.LEFT),
                Column(str(item.quantity), 0.15, Alignment.CENTER),
                Column(format_currency(item.price, currency), 0.175, Alignment.RIGHT),
                Column(format_currency(item.total, currency), 0.175, Alignment.RIGHT),
            )

        cursor.advance(10)
        cursor.rule()
        cursor.advance(5)

    def _layout_totals(self, cursor: LayoutCursor, receipt: Receipt, currency: str) -> None:
        lines = [
            ("Subtotal:", receipt.subtotal, ""),
            ("Tax:", receipt.tax, ""),
            ("Discount:", receipt.discount, "-"),
        ]
        for label, amount, sign in lines:
            if amount > ZERO:
                cursor.text_row(
                    Column(label, 0.7, Alignment.LEFT, 11),
                    Column(sign + format_currency(amount, currency), 0.3, Alignment.RIGHT, 11),
                )

        cursor.advance(5)
        cursor.text_row(
            Column("TOTAL:", 0.7, Alignment.LEFT, 14, FontStyle.BOLD),
            Column(format_currency(receipt.total, currency), 0.3, Alignment.RIGHT, 14, FontStyle.BOLD),
        )

    def _layout_payment(self, cursor: LayoutCursor, receipt: Receipt, currency: str) -> None:
        payment = receipt.payment
        if payment is None:
            return

        cursor.advance(10)
        cursor.rule()
        cursor.advance(5)

        if payment.method:
            cursor.text_row(
                Column("Payment:", 0.6, Alignment.LEFT),
                Column(payment.method, 0.4, Alignment.RIGHT),
            )
        if payment.amount_paid > ZERO:
            cursor.text_row(
                Column("Paid:", 0.6, Alignment.LEFT),
                Column(format_currency(payment.amount_paid, currency), 0.4, Alignment.RIGHT),
            )
        if payment.change > ZERO:
            cursor.text_row(
                Column("Change:", 0.6, Alignment.LEFT),
                Column(format_currency(payment.change, currency), 0.4, Alignment.RIGHT),
            )

    def _layout_notes(self, cursor: LayoutCursor, receipt: Receipt) -> None:
        if not receipt.notes:
            return

        cursor.advance(10)
        cursor.rule()
        cursor.advance(5)
        cursor.centered_text(receipt.notes, 10, FontStyle.ITALIC)

    def _layout_footer(self, cursor: LayoutCursor, printed_at: datetime) -> None:
        cursor.advance(15)
        cursor.centered_text(THANK_YOU, 12, FontStyle.BOLD)
        cursor.advance(5)
        cursor.centered_text(printed_at.strftime("%m/%d/%Y %H:%M:%S"), 8)


def preview_lines(commands: Tuple[DrawCommand, ...], width: int = 48) -> List[str]:
    """Text rendition of draw commands, one line per row.

    Text commands sharing a baseline are joined with `` | ``; rules
    become dashes and images a placeholder.
    """
    lines: List[str] = []
    row: List[DrawText] = []

    def flush() -> None:
        if row:
            lines.append(" | ".join(text.text for text in row))
            row.clear()

    for command in commands:
        if isinstance(command, DrawText):
            if row and row[-1].y != command.y:
                flush()
            row.append(command)
            continue

        flush()
        if isinstance(command, DrawLine):
            lines.append("-" * width)
        elif isinstance(command, DrawImage):
            lines.append("[IMAGE]".center(width))

    flush()
    return lines


def preview_text(commands: Tuple[DrawCommand, ...], width: int = 48) -> str:
    """Boxed text preview of a receipt (for the CLI)."""
    lines = ["+" + "-" * width + "+"]
    for line in preview_lines(commands, width):
        lines.append("|" + line[:width].ljust(width) + "|")
    lines.append("+" + "-" * width + "+")
    return "\n".join(lines)
