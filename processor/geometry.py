"""Target size calculations.

Size specs look like "300", "x200" or "300x200". They are matched from the
start of the string, so trailing garbage is ignored and a spec that doesn't
start with digits or "x" yields no dimensions at all.
"""

import re

from exceptions import InputError
from schemas import Info

_SIZE_RE = re.compile(r"(\d*)x?(\d*)")
_GEOMETRY_RE = re.compile(r"(\d*)x?(\d*)([\^!<>]?)$")

FIT_SIZE_MESSAGE = "size param should be in format WxH"


def parse_size(size: str) -> tuple[int, int]:
    """Return (width, height) from a size spec; missing dimensions are 0."""
    match = _SIZE_RE.match(size or "")
    width = int(match.group(1)) if match.group(1) else 0
    height = int(match.group(2)) if match.group(2) else 0
    return width, height


def compute_resize_target(source: Info, size: str) -> tuple[int, int]:
    """Target size for an aspect-preserving resize.

    Width wins when both are given; the other side follows the source
    aspect ratio.

    Raises:
        InputError: If no positive dimension could be parsed.
    """
    width, height = parse_size(size)
    if width == 0 and height == 0:
        raise InputError(f"Could not parse size [{size}]", size=size)
    if source.width <= 0 or source.height <= 0:
        raise InputError(
            f"Source has no dimensions to resize from: {source.width}x{source.height}",
            size=size,
        )

    aspect_ratio = source.width / source.height
    if width > 0:
        return width, max(1, round(width / aspect_ratio))
    return max(1, round(height * aspect_ratio)), height


def compute_fit_target(size: str) -> tuple[int, int]:
    """Target size for an exact-fit crop. Both dimensions are required.

    Raises:
        InputError: If either dimension is missing.
    """
    width, height = parse_size(size)
    if width == 0 or height == 0:
        raise InputError(FIT_SIZE_MESSAGE, size=size)
    return width, height


def fit_geometry(width: int, height: int, geometry: str) -> tuple[int, int]:
    """Resolve an ImageMagick resize geometry against a source size.

    - "W" / "xH": scale to that side, keep aspect ratio
    - "WxH":  largest size that fits inside the box
    - "WxH^": smallest size that covers the box
    - "WxH!": exactly WxH
    - "<" / ">": only enlarge / only shrink
    """
    match = _GEOMETRY_RE.match(geometry)
    if match is None or not (match.group(1) or match.group(2)):
        raise InputError(f"Invalid resize geometry [{geometry}]", size=geometry)

    box_w = int(match.group(1)) if match.group(1) else 0
    box_h = int(match.group(2)) if match.group(2) else 0
    flag = match.group(3)

    if flag == "!" and box_w and box_h:
        return box_w, box_h

    if box_w and box_h:
        pick = max if flag == "^" else min
        scale = pick(box_w / width, box_h / height)
    elif box_w:
        scale = box_w / width
    else:
        scale = box_h / height

    if (flag == ">" and scale >= 1) or (flag == "<" and scale <= 1):
        return width, height

    return max(1, round(width * scale)), max(1, round(height * scale))
