"""
Extraction defaults and run configuration.

Defaults target poker-size cards (2.5" x 3.5") printed at 300 DPI. Aspect
ratios throughout are height divided by width.
"""

import logging
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Dict, Optional, Union

import yaml

from .colors import RGBA16, parse_color
from .geometry import round_half_up

logger = logging.getLogger(__name__)


# Card shape: 3.5" tall over 2.5" wide
DEFAULT_ASPECT_RATIO = 3.5 / 2.5

# Widest crop taken from a cell before resampling
DEFAULT_MAX_WIDTH = 2000

# Final output width: 2.5" at 300 DPI
DEFAULT_OUTPUT_WIDTH = 750

# Card corner radius is 1/8" on a 2.5"-wide card
DEFAULT_CORNER_RADIUS_FRACTION = 0.125 / 2.5

DEFAULT_BACKGROUND = "white"
DEFAULT_OUTPUT_DIR = "."
DEFAULT_WORKERS = 1

# Outline drawn around detected cells in the debug overlay (RGBA, 8-bit)
DEBUG_OUTLINE_COLOR = (255, 0, 0, 255)

# Accepted types per ExtractionConfig field
_FIELD_TYPES = {
    "aspect_ratio": (int, float),
    "max_width": (int,),
    "output_width": (int,),
    "background": (str,),
    "corner_radius": (int,),
    "corner_radius_fraction": (int, float),
    "workers": (int,),
}


def resolve_corner_radius(
    width: int,
    corner_radius: Optional[int] = None,
    corner_radius_fraction: float = DEFAULT_CORNER_RADIUS_FRACTION,
) -> int:
    """
    Pixel corner radius for an image of the given width.

    An explicit corner_radius wins; otherwise the radius is
    round(width * corner_radius_fraction).
    """
    if corner_radius is not None:
        return corner_radius
    return round_half_up(width * corner_radius_fraction)


@dataclass
class ExtractionConfig:
    """
    Settings for one extraction run.

    Attributes:
        aspect_ratio: Output height / width
        max_width: Widest crop taken from a cell, in pixels
        output_width: Width of every written image, in pixels
        background: Color string filling transparent cell areas
        corner_radius: Corner radius in pixels; None derives it from
            corner_radius_fraction and the fitted width
        corner_radius_fraction: Corner radius as a fraction of width
        workers: Threads used to transform cells (1 = sequential)
    """
    aspect_ratio: float = DEFAULT_ASPECT_RATIO
    max_width: int = DEFAULT_MAX_WIDTH
    output_width: int = DEFAULT_OUTPUT_WIDTH
    background: str = DEFAULT_BACKGROUND
    corner_radius: Optional[int] = None
    corner_radius_fraction: float = DEFAULT_CORNER_RADIUS_FRACTION
    workers: int = DEFAULT_WORKERS

    def __post_init__(self):
        # values from YAML arrive untyped; bool is an int subclass, reject it too
        for name, kinds in _FIELD_TYPES.items():
            value = getattr(self, name)
            if value is None and name == "corner_radius":
                continue
            if isinstance(value, bool) or not isinstance(value, kinds):
                expected = " or ".join(k.__name__ for k in kinds)
                raise ValueError(f"{name} must be {expected}, got {type(value).__name__} {value!r}")

        if self.aspect_ratio <= 0:
            raise ValueError(f"aspect_ratio must be positive, got {self.aspect_ratio}")
        if self.max_width <= 0:
            raise ValueError(f"max_width must be positive, got {self.max_width}")
        if self.output_width <= 0:
            raise ValueError(f"output_width must be positive, got {self.output_width}")
        if self.corner_radius is not None and self.corner_radius < 0:
            raise ValueError(f"corner_radius must be non-negative, got {self.corner_radius}")
        if not 0 <= self.corner_radius_fraction <= 0.5:
            raise ValueError(
                f"corner_radius_fraction must be in range [0, 0.5], got {self.corner_radius_fraction}"
            )
        if self.workers < 1:
            raise ValueError(f"workers must be at least 1, got {self.workers}")
        if round_half_up(self.output_width * self.aspect_ratio) < 1:
            raise ValueError(
                f"output_width {self.output_width} at aspect_ratio {self.aspect_ratio} "
                f"gives an output height of 0"
            )
        # fail early on a bad color string
        parse_color(self.background)

    @property
    def background_color(self) -> RGBA16:
        return parse_color(self.background)

    def corner_radius_for(self, width: int) -> int:
        return resolve_corner_radius(width, self.corner_radius, self.corner_radius_fraction)

    def with_overrides(self, **overrides) -> "ExtractionConfig":
        """Copy with every override that is not None applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


def load_config(path: Union[str, Path]) -> ExtractionConfig:
    """
    Load an ExtractionConfig from a YAML (or JSON) file.

    Keys match ExtractionConfig field names; missing keys keep their
    defaults.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is malformed, holds unknown keys, or holds
            invalid values.
    """
    text = Path(path).read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ValueError(f"Could not parse config file {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must hold a mapping, got {type(data).__name__}")

    known = {f.name for f in fields(ExtractionConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown config keys in {path}: {unknown}. Valid keys: {sorted(known)}")

    logger.debug(f"Loaded config from {path}: {data}")
    return ExtractionConfig(**data)
