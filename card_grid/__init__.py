"""
Find a grid of cards on a transparent sheet and extract each cell as its
own normalized image.
"""

from .cell_transform import (
    fit_aspect_ratio,
    fitted_box,
    make_sub_image,
    resample_output,
    round_corners,
    transform_cell,
)
from .colors import parse_color
from .config import ExtractionConfig, load_config
from .errors import (
    BlankNotFoundError,
    GridExtractionError,
    GridImageError,
    MissingBorderError,
)
from .extract import (
    extract_cell_images,
    extract_images_from_image_grid,
    load_image,
    write_debug_image,
)
from .geometry import BorderWidths, Range, Rect
from .grid_finder import (
    GridDetection,
    detect_grid,
    find_grid_cells,
    find_subject_bounds,
    is_blank,
)

__all__ = [
    "BlankNotFoundError",
    "BorderWidths",
    "ExtractionConfig",
    "GridDetection",
    "GridExtractionError",
    "GridImageError",
    "MissingBorderError",
    "Range",
    "Rect",
    "detect_grid",
    "extract_cell_images",
    "extract_images_from_image_grid",
    "find_grid_cells",
    "find_subject_bounds",
    "fit_aspect_ratio",
    "fitted_box",
    "is_blank",
    "load_config",
    "load_image",
    "make_sub_image",
    "parse_color",
    "resample_output",
    "round_corners",
    "transform_cell",
    "write_debug_image",
]
