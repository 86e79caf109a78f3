"""
Shared fixtures: synthetic BGRA card sheets.
"""

import os
import sys

import numpy as np
import pytest

# Add parent directory to path to import the card_grid package
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from card_grid.geometry import Rect


def build_grid_sheet(
    col_widths,
    row_heights,
    border=2,
    line=2,
    margin=4,
    pad=3,
    dtype=np.uint8,
):
    """
    Build a transparent BGRA image holding a bordered grid of opaque cards.

    The sheet frame and grid lines are opaque black. Each cell holds an
    opaque card inset by `pad` transparent pixels on every side; card i
    (row-major) has blue channel 40 * (i + 1), green 100, red 200.

    Returns:
        (image, expected_cells) where expected_cells are the Rects of the
        gaps between lines, row-major.
    """
    opaque = np.iinfo(dtype).max
    scale = 257 if dtype == np.uint16 else 1

    sheet_w = 2 * border + sum(col_widths) + line * (len(col_widths) - 1)
    sheet_h = 2 * border + sum(row_heights) + line * (len(row_heights) - 1)
    img = np.zeros((sheet_h + 2 * margin, sheet_w + 2 * margin, 4), dtype=dtype)

    x0, y0 = margin, margin
    # frame and lines: fill the sheet opaque, then cut the cells back out
    img[y0:y0 + sheet_h, x0:x0 + sheet_w] = (0, 0, 0, opaque)

    col_starts = []
    x = x0 + border
    for w in col_widths:
        col_starts.append(x)
        x += w + line
    row_starts = []
    y = y0 + border
    for h in row_heights:
        row_starts.append(y)
        y += h + line

    cells = []
    for r, (cy, ch) in enumerate(zip(row_starts, row_heights)):
        for c, (cx, cw) in enumerate(zip(col_starts, col_widths)):
            index = len(cells)
            img[cy:cy + ch, cx:cx + cw] = 0
            card = (40 * (index + 1) * scale, 100 * scale, 200 * scale, opaque)
            img[cy + pad:cy + ch - pad, cx + pad:cx + cw - pad] = card
            cells.append(Rect(cx, cy, cw, ch))

    return img, cells


@pytest.fixture
def grid_sheet_factory():
    """Factory for synthetic grid sheets, see build_grid_sheet."""
    return build_grid_sheet


@pytest.fixture
def sheet_2x3():
    """2 columns x 3 rows, uneven column widths so no line sits on a centerline."""
    return build_grid_sheet(col_widths=[30, 36], row_heights=[50, 50, 50])


@pytest.fixture
def sheet_3x2():
    """3 columns x 2 rows with thicker lines and border."""
    return build_grid_sheet(col_widths=[20, 20, 20], row_heights=[30, 34], border=3, line=4)


@pytest.fixture
def transparent_image():
    """Fully transparent 60x40 BGRA image."""
    return np.zeros((40, 60, 4), dtype=np.uint8)


@pytest.fixture
def frame_image():
    """
    A 2 px opaque frame on a transparent 30x20 canvas. The frame occupies
    x 3..26, y 4..15; its transparent interior is x 5..24, y 6..13.
    """
    img = np.zeros((20, 30, 4), dtype=np.uint8)
    img[4:16, 3:27] = (0, 0, 0, 255)
    img[6:14, 5:25] = 0
    return img


@pytest.fixture
def filled_rect_image():
    """An opaque 20x10 rectangle with no blank interior on a transparent canvas."""
    img = np.zeros((20, 30, 4), dtype=np.uint8)
    img[5:15, 5:25] = (10, 20, 30, 255)
    return img


@pytest.fixture
def white16():
    """Opaque white, 16-bit RGBA."""
    return (65535, 65535, 65535, 65535)
