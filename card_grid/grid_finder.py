"""
Grid detection for sheets of sub-images on a transparent background.

A sheet is expected to look like a printed page of cards: an opaque frame
around the whole grid, opaque grid lines between cells, and a transparent
(alpha == 0) gap between the lines and each cell's content. Detection works
on single rows and columns of the alpha channel:

1. Border locator: scan inward along the image centerlines for the first
   opaque pixel on each side.
2. Thickness measurer: scan inward from each side of the border along the
   border's centerlines for the first blank pixel.
3. Grid line segmenter: just inside the border, collect opaque coordinates
   and group them into contiguous runs (border strokes and grid lines).
4. Cell generator: every gap between two consecutive runs on both axes is
   one cell, numbered row-major.

The scans sample exactly one row or column; there is no noise tolerance.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np

from .errors import BlankNotFoundError, GridExtractionError, GridImageError, MissingBorderError
from .geometry import BorderWidths, Range, Rect

# Configure module logger
logger = logging.getLogger(__name__)

# OpenCV loads 4-channel images as BGRA
ALPHA_CHANNEL = 3


class Axis(str, Enum):
    """Which coordinate a scan walks along."""
    X = "x"  # walk columns on a fixed row
    Y = "y"  # walk rows on a fixed column


@dataclass
class GridDetection:
    """
    Everything detection learned about one source image.

    Attributes:
        bounds: Rectangle enclosing the sheet, border included
        border_widths: Border stroke thickness on each side
        horizontal_lines: Horizontal grid line runs along y, top to bottom
        vertical_lines: Vertical grid line runs along x, left to right
        cells: One rect per cell, row-major
    """
    bounds: Rect
    border_widths: BorderWidths
    horizontal_lines: List[Range] = field(default_factory=list)
    vertical_lines: List[Range] = field(default_factory=list)
    cells: List[Rect] = field(default_factory=list)

    @property
    def rows(self) -> int:
        return max(len(self.horizontal_lines) - 1, 0)

    @property
    def cols(self) -> int:
        return max(len(self.vertical_lines) - 1, 0)

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "rows": self.rows,
            "cols": self.cols,
            "bounds": self.bounds.to_dict(),
            "border_widths": dict(zip(("left", "top", "right", "bottom"), self.border_widths.as_tuple())),
            "horizontal_lines": [[r.start, r.end] for r in self.horizontal_lines],
            "vertical_lines": [[r.start, r.end] for r in self.vertical_lines],
            "cells": [c.to_dict() for c in self.cells],
        }


def check_image(image: np.ndarray) -> None:
    """
    Validate that image is a non-empty BGRA array.

    Raises:
        GridImageError: If image is None, empty, or has no alpha channel.
    """
    if image is None or image.size == 0:
        raise GridImageError("Input image is None or empty")
    if image.ndim != 3 or image.shape[2] != 4:
        raise GridImageError(f"Expected a 4-channel BGRA image, got shape {image.shape}")


def is_blank(image: np.ndarray, x: int, y: int) -> bool:
    """
    Return True if the pixel at (x, y) is fully transparent (alpha == 0).

    Raises:
        IndexError: If (x, y) is outside the image. Negative coordinates are
            rejected rather than wrapped around.
    """
    height, width = image.shape[:2]
    if not (0 <= x < width and 0 <= y < height):
        raise IndexError(f"Pixel ({x}, {y}) is outside the {width}x{height} image")
    return bool(image[y, x, ALPHA_CHANNEL] == 0)


def _alpha_line(image: np.ndarray, axis: Axis, at: int, start: int, stop: int) -> np.ndarray:
    if axis is Axis.X:
        return image[at, start:stop, ALPHA_CHANNEL]
    return image[start:stop, at, ALPHA_CHANNEL]


def _scan(
    image: np.ndarray,
    axis: Axis,
    at: int,
    start: int,
    stop: int,
    blank: bool,
    reverse: bool = False,
) -> Optional[int]:
    """
    First coordinate in [start, stop) along axis whose blankness matches.

    With reverse=True the scan runs from stop - 1 back toward start.
    Returns None when no coordinate matches.
    """
    line = _alpha_line(image, axis, at, start, stop)
    hits = np.flatnonzero(line == 0) if blank else np.flatnonzero(line)
    if hits.size == 0:
        return None
    return start + int(hits[-1] if reverse else hits[0])


def find_bordered_bounds(image: np.ndarray) -> Rect:
    """
    Locate the outer edge of the sheet by scanning in from the image edges.

    Rows and columns are sampled only along the image centerlines, so the
    image center is assumed to lie inside the sheet.

    Raises:
        MissingBorderError: If a centerline holds no opaque pixel.
    """
    height, width = image.shape[:2]
    center_x = width // 2
    center_y = height // 2

    left = _scan(image, Axis.X, center_y, 0, width, blank=False)
    if left is None:
        raise MissingBorderError("left")
    right = _scan(image, Axis.X, center_y, 0, width, blank=False, reverse=True)
    if right is None:
        raise MissingBorderError("right")
    top = _scan(image, Axis.Y, center_x, 0, height, blank=False)
    if top is None:
        raise MissingBorderError("top")
    bottom = _scan(image, Axis.Y, center_x, 0, height, blank=False, reverse=True)
    if bottom is None:
        raise MissingBorderError("bottom")

    return Rect(x=left, y=top, width=right - left + 1, height=bottom - top + 1)


def find_border_widths(image: np.ndarray, bounds: Rect) -> BorderWidths:
    """
    Measure the border stroke on each side of the sheet.

    Each side is scanned inward along the centerline of `bounds` until the
    first blank pixel; the distance covered is that side's thickness.

    Raises:
        BlankNotFoundError: If a scan crosses the whole sheet without
            meeting a blank pixel (borderless or malformed sheet).
    """
    center_x = bounds.x + bounds.width // 2
    center_y = bounds.y + bounds.height // 2

    top_found = _scan(image, Axis.Y, center_x, bounds.y, bounds.bottom, blank=True)
    if top_found is None:
        raise BlankNotFoundError("top")
    bottom_found = _scan(image, Axis.Y, center_x, bounds.y, bounds.bottom, blank=True, reverse=True)
    if bottom_found is None:
        raise BlankNotFoundError("bottom")
    left_found = _scan(image, Axis.X, center_y, bounds.x, bounds.right, blank=True)
    if left_found is None:
        raise BlankNotFoundError("left")
    right_found = _scan(image, Axis.X, center_y, bounds.x, bounds.right, blank=True, reverse=True)
    if right_found is None:
        raise BlankNotFoundError("right")

    # far sides: convert the absolute scan hit into a distance from the far edge
    return BorderWidths(
        left=left_found - bounds.x,
        top=top_found - bounds.y,
        right=bounds.width - (right_found - bounds.x) - 1,
        bottom=bounds.height - (bottom_found - bounds.y) - 1,
    )


def find_opaque_coordinates(image: np.ndarray, axis: Axis, at: int, start: int, stop: int) -> List[int]:
    """Ascending coordinates in [start, stop) along axis that are not blank."""
    line = _alpha_line(image, axis, at, start, stop)
    return [start + int(i) for i in np.flatnonzero(line)]


def group_sequences(coordinates: Iterable[int]) -> List[Range]:
    """
    Fold ascending coordinates into maximal runs of consecutive values.

    A coordinate equal to the current run's end extends it; any other value
    starts a new run.

    Example:
        >>> group_sequences([1, 2, 3, 7, 8, 10])
        [Range(start=1, end=4), Range(start=7, end=9), Range(start=10, end=11)]
    """
    runs: List[List[int]] = []
    for i in coordinates:
        if runs and runs[-1][1] == i:
            runs[-1][1] += 1
        else:
            runs.append([i, i + 1])
    return [Range(start, end) for start, end in runs]


def find_grid_line_ranges(image: np.ndarray, axis: Axis, at: int, start: int, stop: int) -> List[Range]:
    """Opaque runs along axis between start and stop, with the other axis fixed at `at`."""
    return group_sequences(find_opaque_coordinates(image, axis, at, start, stop))


def cells_from_grid_lines(horizontal_lines: Sequence[Range], vertical_lines: Sequence[Range]) -> List[Rect]:
    """
    Build one rect per gap between consecutive grid lines, row-major.

    Fewer than two lines on either axis means no cells.
    """
    cells = []
    for top, bottom in zip(horizontal_lines, horizontal_lines[1:]):
        for left, right in zip(vertical_lines, vertical_lines[1:]):
            cells.append(Rect(
                x=left.end,
                y=top.end,
                width=right.start - left.end,
                height=bottom.start - top.end,
            ))
    return cells


def detect_grid(image: np.ndarray) -> GridDetection:
    """
    Run the full detection pass and keep every intermediate result.

    Args:
        image: BGRA image (uint8 or uint16) with a transparent background.

    Returns:
        GridDetection with bounds, border widths, line runs and cells.

    Raises:
        GridImageError: If image is not a usable BGRA array.
        MissingBorderError: If the sheet's outer edge cannot be found.
        BlankNotFoundError: If the border thickness cannot be measured.
    """
    check_image(image)

    bounds = find_bordered_bounds(image)
    logger.debug(f"Bordered bounds: {bounds}")

    border_widths = find_border_widths(image, bounds)
    logger.debug(f"Border widths (l, t, r, b): {border_widths.as_tuple()}")

    # The first row/column inside the border stroke crosses only grid lines
    scan_row = bounds.y + border_widths.top
    scan_col = bounds.x + border_widths.left

    vertical_lines = find_grid_line_ranges(image, Axis.X, scan_row, bounds.x, bounds.right)
    horizontal_lines = find_grid_line_ranges(image, Axis.Y, scan_col, bounds.y, bounds.bottom)
    logger.debug(f"Vertical line runs at y={scan_row}: {[(r.start, r.end) for r in vertical_lines]}")
    logger.debug(f"Horizontal line runs at x={scan_col}: {[(r.start, r.end) for r in horizontal_lines]}")

    cells = cells_from_grid_lines(horizontal_lines, vertical_lines)
    detection = GridDetection(
        bounds=bounds,
        border_widths=border_widths,
        horizontal_lines=horizontal_lines,
        vertical_lines=vertical_lines,
        cells=cells,
    )
    logger.info(f"Detected {len(cells)} cells ({detection.rows} rows x {detection.cols} cols)")
    return detection


def find_grid_cells(image: np.ndarray) -> List[Rect]:
    """Detect the grid and return only the cell rects, row-major."""
    return detect_grid(image).cells


def find_subject_bounds(image: np.ndarray) -> Rect:
    """
    Find the box around the subject under the image center.

    Walks outward from the center column (and row) until it meets a column
    (row) with no opaque pixel at all. The result is the tight box between
    the blank lines found on each side.

    Raises:
        GridExtractionError: If the center column or row is itself blank.
        BlankNotFoundError: If a walk reaches the image edge without a
            blank column or row.
    """
    check_image(image)
    height, width = image.shape[:2]
    alpha = image[:, :, ALPHA_CHANNEL]
    blank_cols = ~alpha.any(axis=0)
    blank_rows = ~alpha.any(axis=1)

    if blank_cols[width // 2] or blank_rows[height // 2]:
        raise GridExtractionError("No subject found under the image center")

    def walk(blank: np.ndarray, start: int, edge: str, reverse: bool) -> int:
        # nearest blank line before start (reverse) or after it
        if reverse:
            hits = np.flatnonzero(blank[:start])
        else:
            hits = start + np.flatnonzero(blank[start:])
        if hits.size == 0:
            raise BlankNotFoundError(edge)
        return int(hits[-1] if reverse else hits[0])

    left = walk(blank_cols, width // 2, "left", reverse=True)
    right = walk(blank_cols, width // 2, "right", reverse=False)
    top = walk(blank_rows, height // 2, "top", reverse=True)
    bottom = walk(blank_rows, height // 2, "bottom", reverse=False)

    return Rect(x=left + 1, y=top + 1, width=right - left - 1, height=bottom - top - 1)
