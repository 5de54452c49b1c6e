"""
Error types for POSPRINT.

Only two conditions are terminal for a print request: a payload too
malformed to assemble, and a failure of the render surface or printer.
Missing or mistyped fields and unreadable logos are never raised.
"""


class PrintError(Exception):
    """Base class for terminal print request failures."""


class StructuralParseFailure(PrintError):
    """Payload is too malformed to assemble any receipt."""

    def __init__(self, message: str, position: int | None = None) -> None:
        if position is not None:
            message = f"{message} (at offset {position})"
        super().__init__(message)
        self.position = position


class RenderSurfaceFailure(PrintError):
    """The render surface or printer failed while executing draw commands."""
