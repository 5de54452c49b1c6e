"""Printing module for POSPRINT - receipt layout and rendering."""

from posprint.printing.layout import (
    Alignment,
    Column,
    DrawCommand,
    DrawImage,
    DrawLine,
    DrawText,
    FontStyle,
    LayoutEngine,
    format_currency,
    preview_lines,
    preview_text,
)
from posprint.printing.surface import PillowSurface, RenderSurface, execute

__all__ = [
    # Layout
    "Alignment",
    "Column",
    "DrawCommand",
    "DrawImage",
    "DrawLine",
    "DrawText",
    "FontStyle",
    "LayoutEngine",
    "format_currency",
    "preview_lines",
    "preview_text",
    # Rendering
    "PillowSurface",
    "RenderSurface",
    "execute",
]
