"""Target-size computation for previews: fixed max width, no upscaling."""

from __future__ import annotations

import math

from drawing_previews.errors import InvalidGeometry

DEFAULT_MAX_WIDTH = 400


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_target_size(source_width: int, source_height: int, max_width: int = DEFAULT_MAX_WIDTH) -> tuple[int, int]:
    """Return ``(width, height)`` for a preview of a ``source_width`` x ``source_height`` raster.

    Sources no wider than ``max_width`` keep their dimensions. Wider sources are
    scaled by ``max_width / source_width`` on both axes, rounded to the nearest
    pixel, with the height clamped to at least one pixel.
    """

    if source_width <= 0 or source_height <= 0:
        raise InvalidGeometry(f"source dimensions must be positive, got {source_width}x{source_height}")
    if max_width <= 0:
        raise InvalidGeometry(f"max_width must be positive, got {max_width}")

    if source_width <= max_width:
        return source_width, source_height

    scale = max_width / source_width
    target_height = max(1, _round_half_up(source_height * scale))
    return max_width, target_height


__all__ = ["DEFAULT_MAX_WIDTH", "compute_target_size"]
