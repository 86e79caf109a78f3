"""
Background color parsing.

Colors are carried as RGBA tuples with 16-bit channels (0-65535), the depth
the cell transform works in. Accepted spellings:

- CSS color names and hex/rgb()/hsl() forms, via Pillow's ImageColor
  ("white", "#ff0000", "#00ff0080", "rgb(10, 20, 30)")
- "transparent"
- A raw comma-separated 16-bit channel list: "65535,0,0" or "0,0,0,32768"
"""

from typing import Tuple

from PIL import ImageColor

RGBA16 = Tuple[int, int, int, int]

MAX_CHANNEL_16 = 65535

# 8-bit to 16-bit channel scale (255 * 257 == 65535)
_SCALE_8_TO_16 = 257


def _parse_channel_list(text: str) -> RGBA16:
    parts = [p.strip() for p in text.split(",")]
    if len(parts) not in (3, 4):
        raise ValueError(f"Expected 3 or 4 comma-separated channels, got {len(parts)}: {text!r}")
    try:
        values = [int(p) for p in parts]
    except ValueError as e:
        raise ValueError(f"Channel values must be integers: {text!r}") from e
    if any(not 0 <= v <= MAX_CHANNEL_16 for v in values):
        raise ValueError(f"Channel values must be in range [0, {MAX_CHANNEL_16}]: {text!r}")
    if len(values) == 3:
        values.append(MAX_CHANNEL_16)
    return tuple(values)


def parse_color(text: str) -> RGBA16:
    """
    Parse a color string into a 16-bit RGBA tuple.

    Args:
        text: Color name, hex string, CSS function, "transparent", or a raw
            16-bit channel list.

    Returns:
        (r, g, b, a) with each channel in 0-65535. Colors without alpha are
        fully opaque.

    Raises:
        ValueError: If the text is empty or not a recognized color.
    """
    s = text.strip() if text is not None else ""
    if not s:
        raise ValueError("Color string is empty")

    if s.lower() == "transparent":
        return (0, 0, 0, 0)

    if "," in s and "(" not in s:
        return _parse_channel_list(s)

    try:
        channels = ImageColor.getrgb(s)
    except ValueError as e:
        raise ValueError(f"Unknown color: {text!r}") from e

    rgba = [c * _SCALE_8_TO_16 for c in channels]
    if len(rgba) == 3:
        rgba.append(MAX_CHANNEL_16)
    return tuple(rgba)


def rgba16_to_bgra(color: RGBA16) -> RGBA16:
    """Reorder an RGBA tuple into OpenCV's BGRA channel order."""
    r, g, b, a = color
    return (b, g, r, a)
