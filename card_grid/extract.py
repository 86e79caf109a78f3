"""
Extraction pipeline: detect the grid, transform every cell, write PNGs.

Output files are named "{output_stem}-{index}.png" where index is the
row-major cell number from detection. Nothing is written unless every cell
transformed successfully.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Sequence, Union

import cv2
import numpy as np

from .cell_transform import transform_cell
from .colors import RGBA16
from .config import (
    DEBUG_OUTLINE_COLOR,
    DEFAULT_CORNER_RADIUS_FRACTION,
    DEFAULT_OUTPUT_WIDTH,
    DEFAULT_WORKERS,
)
from .errors import GridImageError
from .geometry import Rect
from .grid_finder import check_image, find_grid_cells

# Configure module logger
logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def load_image(path: PathLike) -> np.ndarray:
    """
    Read an image with its alpha channel preserved.

    Images without an alpha channel are rejected.

    Raises:
        GridImageError: If the file cannot be read or has no alpha channel.
    """
    image = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
    if image is None:
        raise GridImageError(f"Could not read image: {path}")

    if image.ndim != 3 or image.shape[2] != 4:
        raise GridImageError(f"Image has no alpha channel: {path} (shape {image.shape})")

    logger.debug(f"Loaded {path}: {image.shape[1]}x{image.shape[0]}, dtype={image.dtype}")
    return image


def save_image(path: PathLike, image: np.ndarray) -> Path:
    """
    Write image as a PNG, creating parent directories.

    Raises:
        GridImageError: If OpenCV fails to encode or write the file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        ok = cv2.imwrite(str(path), image)
    except cv2.error as e:
        raise GridImageError(f"Could not write image: {path}: {e}") from e
    if not ok:
        raise GridImageError(f"Could not write image: {path}")
    return path


def draw_cell_outlines(image: np.ndarray, cells: Sequence[Rect]) -> np.ndarray:
    """Return a copy of image with a 1 px opaque red outline around each cell."""
    overlay = image.copy()
    r, g, b, a = DEBUG_OUTLINE_COLOR
    if overlay.dtype == np.uint16:
        r, g, b, a = (c * 257 for c in (r, g, b, a))
    color = (b, g, r, a)

    for cell in cells:
        cv2.rectangle(
            overlay,
            (cell.x, cell.y),
            (cell.right - 1, cell.bottom - 1),
            color,
            thickness=1,
        )
    return overlay


def write_debug_image(image: np.ndarray, cells: Sequence[Rect], path: PathLike) -> Path:
    """Write the source image with every detected cell outlined."""
    out = save_image(path, draw_cell_outlines(image, cells))
    logger.info(f"Wrote debug overlay with {len(cells)} cells to {out}")
    return out


def extract_cell_images(
    image: np.ndarray,
    cells: Sequence[Rect],
    aspect_ratio: float,
    max_width: int,
    background_color: RGBA16,
    corner_radius: Optional[int] = None,
    corner_radius_fraction: float = DEFAULT_CORNER_RADIUS_FRACTION,
    output_width: int = DEFAULT_OUTPUT_WIDTH,
    workers: int = DEFAULT_WORKERS,
) -> List[np.ndarray]:
    """
    Transform every cell in memory.

    Args:
        image: BGRA source image.
        cells: Cell rects, typically from find_grid_cells.
        aspect_ratio: Output height / width.
        max_width: Widest crop taken from a cell.
        background_color: (r, g, b, a) with 16-bit channels.
        corner_radius: Corner radius in pixels, or None to derive it.
        corner_radius_fraction: Radius as a fraction of the fitted width.
        output_width: Width of every output image.
        workers: Threads to use; 1 transforms cells one after another.

    Returns:
        One uint16 BGRA array per cell, in the order of `cells`.
    """
    check_image(image)

    def run(cell: Rect) -> np.ndarray:
        return transform_cell(
            image,
            cell,
            aspect_ratio=aspect_ratio,
            max_width=max_width,
            background_color=background_color,
            corner_radius=corner_radius,
            corner_radius_fraction=corner_radius_fraction,
            output_width=output_width,
        )

    if workers <= 1 or len(cells) <= 1:
        return [run(cell) for cell in cells]

    logger.debug(f"Transforming {len(cells)} cells on {workers} threads")
    with ThreadPoolExecutor(max_workers=workers) as ex:
        return list(ex.map(run, cells))


def extract_images_from_image_grid(
    image: np.ndarray,
    aspect_ratio: float,
    max_width: int,
    background_color: RGBA16,
    output_dir: PathLike,
    output_stem: str,
    corner_radius: Optional[int] = None,
    corner_radius_fraction: float = DEFAULT_CORNER_RADIUS_FRACTION,
    output_width: int = DEFAULT_OUTPUT_WIDTH,
    debug_path: Optional[PathLike] = None,
    workers: int = DEFAULT_WORKERS,
) -> List[Path]:
    """
    Detect the grid in image and write one PNG per cell.

    Args:
        image: BGRA source image with a transparent background.
        aspect_ratio: Output height / width.
        max_width: Widest crop taken from a cell.
        background_color: (r, g, b, a) with 16-bit channels.
        output_dir: Directory for the output files (created if missing).
        output_stem: File name prefix; files are "{output_stem}-{i}.png".
        corner_radius: Corner radius in pixels, or None to derive it.
        corner_radius_fraction: Radius as a fraction of the fitted width.
        output_width: Width of every output image.
        debug_path: If given, also write the cell outline overlay here.
        workers: Threads used for the per-cell transforms.

    Returns:
        Paths of the written cell images, in row-major cell order.

    Raises:
        GridExtractionError: If detection or any cell transform fails. No
            cell files are written in that case.

    Example:
        >>> image = load_image("sheet.png")
        >>> paths = extract_images_from_image_grid(
        ...     image, 1.4, 1000, (65535, 65535, 65535, 65535), "out", "card"
        ... )
    """
    cells = find_grid_cells(image)

    if debug_path is not None:
        write_debug_image(image, cells, debug_path)

    cell_images = extract_cell_images(
        image,
        cells,
        aspect_ratio=aspect_ratio,
        max_width=max_width,
        background_color=background_color,
        corner_radius=corner_radius,
        corner_radius_fraction=corner_radius_fraction,
        output_width=output_width,
        workers=workers,
    )

    out_dir = Path(output_dir)
    written = []
    for i, cell_image in enumerate(cell_images):
        written.append(save_image(out_dir / f"{output_stem}-{i}.png", cell_image))

    logger.info(f"Wrote {len(written)} cell images to {out_dir}")
    return written
