"""
Per-cell image transforms.

Each detected cell goes through four steps, in order:

1. make_sub_image: crop the cell and composite it over a solid background
2. fit_aspect_ratio: crop to the target aspect ratio, centered
3. round_corners: clear the pixels outside each corner's quarter circle
4. resample_output: resize to the final output width

All steps work on 16-bit BGRA arrays and return new arrays; the source image
is never modified.
"""

import logging
from typing import Optional

import cv2
import numpy as np

from .colors import MAX_CHANNEL_16, RGBA16, rgba16_to_bgra
from .config import DEFAULT_CORNER_RADIUS_FRACTION, DEFAULT_OUTPUT_WIDTH, resolve_corner_radius
from .errors import GridImageError
from .geometry import Rect, round_half_up

# Configure module logger
logger = logging.getLogger(__name__)


def to_bgra16(image: np.ndarray) -> np.ndarray:
    """
    Convert a BGRA image to 16 bits per channel.

    Raises:
        GridImageError: If the dtype is neither uint8 nor uint16.
    """
    if image.dtype == np.uint16:
        return image
    if image.dtype == np.uint8:
        # 255 * 257 == 65535
        return image.astype(np.uint16) * 257
    raise GridImageError(f"Unsupported image dtype: {image.dtype}")


def make_sub_image(image: np.ndarray, rect: Rect, background_color: RGBA16) -> np.ndarray:
    """
    Crop rect out of image and composite it over a solid background.

    The crop is placed at the origin of a canvas exactly rect.width x
    rect.height filled with background_color, using source-over blending
    on straight (non-premultiplied) alpha.

    Args:
        image: BGRA source image, uint8 or uint16.
        rect: Cell to crop; must lie inside the image.
        background_color: (r, g, b, a) with 16-bit channels.

    Returns:
        uint16 BGRA array of shape (rect.height, rect.width, 4).

    Raises:
        ValueError: If rect does not fit inside the image.
    """
    height, width = image.shape[:2]
    if not rect.fits_within(width, height):
        raise ValueError(f"{rect} does not fit inside the {width}x{height} image")

    crop = to_bgra16(image[rect.y:rect.bottom, rect.x:rect.right])
    src = crop.astype(np.float64) / MAX_CHANNEL_16
    bg = np.asarray(rgba16_to_bgra(background_color), dtype=np.float64) / MAX_CHANNEL_16

    src_alpha = src[:, :, 3:4]
    bg_alpha = bg[3]

    out_alpha = src_alpha + bg_alpha * (1.0 - src_alpha)
    premultiplied = src[:, :, :3] * src_alpha + bg[:3] * bg_alpha * (1.0 - src_alpha)
    out_color = np.divide(
        premultiplied,
        out_alpha,
        out=np.zeros_like(premultiplied),
        where=out_alpha > 0,
    )

    composite = np.concatenate([out_color, out_alpha], axis=2)
    return np.rint(np.clip(composite, 0.0, 1.0) * MAX_CHANNEL_16).astype(np.uint16)


def fitted_box(bounds: Rect, aspect_ratio: float, max_width: int) -> Rect:
    """
    Centered box inside bounds with the requested aspect ratio.

    The width is min(bounds.width, max_width) and the height
    round(width * aspect_ratio). When that height overflows bounds, both
    sides are multiplied by bounds.height // height. That floor division is
    always 0 in this branch, so an overflowing box collapses to 0x0; callers
    rely on this exact arithmetic and it is kept as is.
    """
    target_width = min(bounds.width, max_width)
    target_height = round_half_up(target_width * aspect_ratio)
    if target_height > bounds.height:
        scale = bounds.height // target_height
        target_width *= scale
        target_height *= scale

    return Rect(
        x=bounds.x + (bounds.width - target_width) // 2,
        y=bounds.y + (bounds.height - target_height) // 2,
        width=target_width,
        height=target_height,
    )


def fit_aspect_ratio(
    image: np.ndarray,
    aspect_ratio: float,
    max_width: int,
    bounds: Optional[Rect] = None,
) -> np.ndarray:
    """
    Crop image to a centered box of the given aspect ratio and max width.

    Args:
        image: Composited cell image.
        aspect_ratio: Target height / width. Must be positive.
        max_width: Widest allowed result. Must be positive.
        bounds: Region of image to fit inside. Defaults to the whole image.

    Returns:
        The cropped array (a copy). May be empty, see fitted_box.

    Raises:
        ValueError: If aspect_ratio or max_width is not positive.
    """
    if aspect_ratio <= 0:
        raise ValueError(f"aspect_ratio must be positive, got {aspect_ratio}")
    if max_width <= 0:
        raise ValueError(f"max_width must be positive, got {max_width}")

    if bounds is None:
        height, width = image.shape[:2]
        bounds = Rect(0, 0, width, height)

    box = fitted_box(bounds, aspect_ratio, max_width)
    if box.width == 0 or box.height == 0:
        logger.warning(
            f"Aspect ratio {aspect_ratio} does not fit in {bounds.width}x{bounds.height}; box collapsed to 0x0"
        )
    else:
        logger.debug(f"Fitted box {box.as_tuple()} inside {bounds.as_tuple()}")

    return image[box.y:box.bottom, box.x:box.right].copy()


def round_corners(image: np.ndarray, radius: int) -> np.ndarray:
    """
    Make the four corners of image transparent outside a quarter circle.

    For each corner, pixels in the radius x radius square at that corner
    are zeroed (all channels) when they lie farther than radius from the
    point radius pixels in from both edges.

    Args:
        image: BGRA image.
        radius: Corner radius in pixels, clamped to min(width, height) // 2.
            0 leaves the image unchanged.

    Returns:
        A new array; only corner pixels differ from the input.

    Raises:
        ValueError: If radius is negative.
    """
    if radius < 0:
        raise ValueError(f"radius must be non-negative, got {radius}")

    out = image.copy()
    height, width = image.shape[:2]
    r = min(radius, min(height, width) // 2)
    if r == 0:
        return out

    # offsets measured from the top-left corner; mirrored for the others
    j, i = np.ogrid[0:r, 0:r]
    outside = (i - r) ** 2 + (j - r) ** 2 > r * r

    out[:r, :r][outside] = 0
    out[:r, width - r:][outside[:, ::-1]] = 0
    out[height - r:, :r][outside[::-1, :]] = 0
    out[height - r:, width - r:][outside[::-1, ::-1]] = 0
    return out


def resample_output(
    image: np.ndarray,
    aspect_ratio: float,
    output_width: int = DEFAULT_OUTPUT_WIDTH,
) -> np.ndarray:
    """
    Resize to output_width x round(output_width * aspect_ratio), bilinear.

    Raises:
        GridImageError: If image is empty (nothing to resample), the output
            size rounds to zero, or OpenCV rejects the resize.
    """
    if image.size == 0:
        raise GridImageError("Cannot resample an empty image")

    output_height = round_half_up(output_width * aspect_ratio)
    if output_width < 1 or output_height < 1:
        raise GridImageError(
            f"Output size {output_width}x{output_height} is empty "
            f"(output_width={output_width}, aspect_ratio={aspect_ratio})"
        )

    try:
        return cv2.resize(image, (output_width, output_height), interpolation=cv2.INTER_LINEAR)
    except cv2.error as e:
        raise GridImageError(f"Could not resample to {output_width}x{output_height}: {e}") from e


def transform_cell(
    image: np.ndarray,
    rect: Rect,
    aspect_ratio: float,
    max_width: int,
    background_color: RGBA16,
    corner_radius: Optional[int] = None,
    corner_radius_fraction: float = DEFAULT_CORNER_RADIUS_FRACTION,
    output_width: int = DEFAULT_OUTPUT_WIDTH,
) -> np.ndarray:
    """
    Run one cell through composite, fit, corner rounding and resampling.

    When corner_radius is None the radius is derived from the fitted width
    and corner_radius_fraction.

    Returns:
        uint16 BGRA array of shape
        (round(output_width * aspect_ratio), output_width, 4).
    """
    composited = make_sub_image(image, rect, background_color)
    fitted = fit_aspect_ratio(composited, aspect_ratio, max_width)
    radius = resolve_corner_radius(fitted.shape[1], corner_radius, corner_radius_fraction)
    rounded = round_corners(fitted, radius)
    return resample_output(rounded, aspect_ratio, output_width)
