"""Render surfaces that execute receipt draw commands.

``RenderSurface`` is the contract the layout engine draws against.
``PillowSurface`` renders onto a grayscale Pillow image sized for the
thermal printer, ready for raster printing.
"""

import logging
from abc import ABC, abstractmethod
from io import BytesIO
from typing import Dict, Iterable, Optional, Tuple

from PIL import Image, ImageDraw, ImageFont

from posprint.errors import RenderSurfaceFailure
from posprint.printing.layout import DrawCommand, DrawImage, DrawLine, DrawText, FontStyle

logger = logging.getLogger(__name__)

BOTTOM_MARGIN = 20

Point = Tuple[float, float]

# Font paths to try, per style
FONT_PATHS: Dict[FontStyle, Tuple[str, ...]] = {
    FontStyle.REGULAR: (
        "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
        "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
        "/usr/share/fonts/truetype/freefont/FreeSans.ttf",
        "/System/Library/Fonts/Helvetica.ttc",
        "C:/Windows/Fonts/arial.ttf",
    ),
    FontStyle.BOLD: (
        "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
        "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
        "/usr/share/fonts/truetype/freefont/FreeSansBold.ttf",
        "/System/Library/Fonts/Helvetica.ttc",
        "C:/Windows/Fonts/arialbd.ttf",
    ),
    FontStyle.ITALIC: (
        "/usr/share/fonts/truetype/dejavu/DejaVuSans-Oblique.ttf",
        "/usr/share/fonts/truetype/liberation/LiberationSans-Italic.ttf",
        "/usr/share/fonts/truetype/freefont/FreeSansOblique.ttf",
        "/System/Library/Fonts/Helvetica.ttc",
        "C:/Windows/Fonts/ariali.ttf",
    ),
}


class RenderSurface(ABC):
    """Abstract canvas the receipt is drawn on."""

    @abstractmethod
    def draw_text(self, text: str, position: Point, font_size: float, style: FontStyle) -> None:
        """Draw text with its bottom-left corner at ``position``."""
        ...

    @abstractmethod
    def measure_text(
        self,
        text: str,
        font_size: float,
        style: FontStyle = FontStyle.REGULAR,
    ) -> Tuple[float, float]:
        """Rendered (width, height) of a text run."""
        ...

    @abstractmethod
    def draw_line(self, p1: Point, p2: Point) -> None:
        ...

    @abstractmethod
    def draw_image(self, source: bytes, position: Point, size: Tuple[float, float]) -> None:
        """Draw encoded image bytes scaled into the given box."""
        ...

    def begin(self, height: float) -> None:
        """Prepare a blank page of the given height before drawing."""


class PillowSurface(RenderSurface):
    """Render surface backed by a Pillow grayscale image.

    Coordinates are printer dots; font sizes are points, converted at
    the printer's DPI.
    """

    def __init__(self, width: int, dpi: int = 203):
        self.width = width
        self.dpi = dpi
        self._font_cache: Dict[Tuple[int, FontStyle], ImageFont.ImageFont] = {}
        self._image: Optional[Image.Image] = None
        self._draw: Optional[ImageDraw.ImageDraw] = None

    @property
    def image(self) -> Image.Image:
        if self._image is None:
            raise RenderSurfaceFailure("Surface has no page; call begin() first")
        return self._image

    def _pixel_size(self, font_size: float) -> int:
        return max(1, round(font_size * self.dpi / 72))

    def _get_font(self, font_size: float, style: FontStyle):
        """Get a font for text rendering, with caching."""
        size = self._pixel_size(font_size)
        cache_key = (size, style)
        if cache_key in self._font_cache:
            return self._font_cache[cache_key]

        font = None
        for path in FONT_PATHS[style]:
            try:
                font = ImageFont.truetype(path, size)
                break
            except OSError:
                continue

        if font is None:
            logger.debug(f"No TrueType font for {style.value}, using default")
            font = ImageFont.load_default(size=size)

        self._font_cache[cache_key] = font
        return font

    def measure_text(
        self,
        text: str,
        font_size: float,
        style: FontStyle = FontStyle.REGULAR,
    ) -> Tuple[float, float]:
        font = self._get_font(font_size, style)
        try:
            ascent, descent = font.getmetrics()
        except AttributeError:
            # Bitmap fallback font has no metrics
            ascent, descent = font.getbbox("Ag")[3], 0
        return float(font.getlength(text)), float(ascent + descent)

    def begin(self, height: float) -> None:
        self._image = Image.new("L", (self.width, max(1, int(height))), 255)
        self._draw = ImageDraw.Draw(self._image)

    def _canvas(self) -> ImageDraw.ImageDraw:
        if self._draw is None:
            raise RenderSurfaceFailure("Surface has no page; call begin() first")
        return self._draw

    def draw_text(self, text: str, position: Point, font_size: float, style: FontStyle) -> None:
        font = self._get_font(font_size, style)
        _, height = self.measure_text(text, font_size, style)
        x, y = position
        self._canvas().text((x, y - height), text, font=font, fill=0)

    def draw_line(self, p1: Point, p2: Point) -> None:
        self._canvas().line([p1, p2], fill=0, width=1)

    def draw_image(self, source: bytes, position: Point, size: Tuple[float, float]) -> None:
        self._canvas()
        width, height = max(1, round(size[0])), max(1, round(size[1]))
        with Image.open(BytesIO(source)) as img:
            img = img.convert("RGBA").resize((width, height), Image.Resampling.LANCZOS)
            # Flatten transparency onto white paper
            paper = Image.new("RGBA", img.size, (255, 255, 255, 255))
            paper.alpha_composite(img)
            x, y = round(position[0]), round(position[1])
            self.image.paste(paper.convert("L"), (x, y))


def command_extent(commands: Iterable[DrawCommand]) -> float:
    """Lowest point reached by any command."""
    bottom = 0.0
    for command in commands:
        if isinstance(command, DrawText):
            bottom = max(bottom, command.y)
        elif isinstance(command, DrawLine):
            bottom = max(bottom, command.y1, command.y2)
        elif isinstance(command, DrawImage):
            bottom = max(bottom, command.y + command.height)
    return bottom


def execute(commands: Iterable[DrawCommand], surface: RenderSurface) -> None:
    """Play draw commands onto a surface.

    Raises:
        RenderSurfaceFailure: If the surface fails on any command
    """
    commands = tuple(commands)
    try:
        surface.begin(command_extent(commands) + BOTTOM_MARGIN)
        for command in commands:
            if isinstance(command, DrawText):
                surface.draw_text(command.text, (command.x, command.y), command.font_size, command.style)
            elif isinstance(command, DrawLine):
                surface.draw_line((command.x1, command.y1), (command.x2, command.y2))
            elif isinstance(command, DrawImage):
                surface.draw_image(command.source, (command.x, command.y), (command.width, command.height))
    except RenderSurfaceFailure:
        raise
    except Exception as e:
        logger.error(f"Render surface failed: {e}")
        raise RenderSurfaceFailure(str(e)) from e
