"""
Small value types shared by detection and extraction.

All coordinates are integer pixel positions in image space with the origin
at the top-left corner.
"""

import math
from dataclasses import dataclass
from typing import Dict, Tuple


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle: x, y of the top-left pixel plus its size."""
    x: int
    y: int
    width: int
    height: int

    def __post_init__(self):
        if min(self.x, self.y, self.width, self.height) < 0:
            raise ValueError(f"Rect fields must be non-negative, got {self}")

    @property
    def right(self) -> int:
        """One past the last column."""
        return self.x + self.width

    @property
    def bottom(self) -> int:
        """One past the last row."""
        return self.y + self.height

    def fits_within(self, width: int, height: int) -> bool:
        return self.right <= width and self.bottom <= height

    def as_tuple(self) -> Tuple[int, int, int, int]:
        return (self.x, self.y, self.width, self.height)

    def to_dict(self) -> Dict[str, int]:
        """Convert to dictionary for JSON serialization."""
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(frozen=True)
class Range:
    """Half-open interval [start, end) of coordinates along one axis."""
    start: int
    end: int

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Range start must be below end, got [{self.start}, {self.end})")

    def __len__(self) -> int:
        return self.end - self.start

    def __contains__(self, i: int) -> bool:
        return self.start <= i < self.end


@dataclass(frozen=True)
class BorderWidths:
    """Thickness of the sheet border on each side, in pixels."""
    left: int
    top: int
    right: int
    bottom: int

    def as_tuple(self) -> Tuple[int, int, int, int]:
        return (self.left, self.top, self.right, self.bottom)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves rounding up."""
    return int(math.floor(value + 0.5))
