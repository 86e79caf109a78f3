"""
Exception types raised by grid detection and cell extraction.

Every failure a caller is expected to handle derives from
GridExtractionError, so a batch driver can catch that one type, log it and
move on to the next source image.
"""

from typing import Optional


class GridExtractionError(Exception):
    """Base class for grid detection and extraction failures."""


class MissingBorderError(GridExtractionError):
    """
    The scan from the image center never reached an opaque pixel.

    Attributes:
        edge: Which edge could not be located ("left", "right", "top" or
            "bottom").
    """

    def __init__(self, edge: str):
        self.edge = edge
        super().__init__(f"A border was not detected along the {edge} edge")


class BlankNotFoundError(GridExtractionError):
    """An inward scan never reached a blank (alpha == 0) pixel."""

    def __init__(self, edge: Optional[str] = None):
        self.edge = edge
        if edge is None:
            message = "A blank row was not found"
        else:
            message = f"A blank row was not found scanning from the {edge} edge"
        super().__init__(message)


class GridImageError(GridExtractionError):
    """An image could not be read, written, or is in an unsupported format."""
