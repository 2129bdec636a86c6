"""Field position to PDF point-space resolution.

Field positions are authored with a top-left origin, either as percentages
of the page or as pixels in the space of the image they were placed on.
PDF drawing uses points with a bottom-left origin.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union

from .errors import NoValidCoordinates
from .schemas import Field, PercentPosition, PixelPosition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Box:
    """A rectangle in PDF points, bottom-left origin."""

    x: float
    y: float
    width: float
    height: float


def _from_percent(pos: PercentPosition, page_width: float, page_height: float) -> Box:
    width = pos.width_percent / 100 * page_width
    height = pos.height_percent / 100 * page_height
    x = pos.left_percent / 100 * page_width
    top_y = pos.top_percent / 100 * page_height
    return Box(x, page_height - top_y - height, width, height)


def _from_pixels(pos: PixelPosition, page_width: float, page_height: float) -> Box:
    original_width = pos.original_width or page_width
    original_height = pos.original_height or page_height
    if not (pos.original_width and pos.original_height):
        logger.warning(
            "Pixel-positioned field has no original size; placing it unscaled on a %.0fx%.0f page",
            page_width,
            page_height,
        )
    scale_x = page_width / original_width
    scale_y = page_height / original_height
    width = pos.width * scale_x
    height = pos.height * scale_y
    x = pos.x * scale_x
    y = page_height - pos.y * scale_y - pos.height * scale_y
    return Box(x, y, width, height)


def clamp(box: Box, page_width: float, page_height: float) -> Box:
    """Shrink *box* so it lies within ``[0, W] x [0, H]``.

    A box that is already on the page is returned unchanged.
    """
    if (
        box.x >= 0
        and box.y >= 0
        and box.width >= 0
        and box.height >= 0
        and box.x + box.width <= page_width
        and box.y + box.height <= page_height
    ):
        return box
    x0 = min(max(box.x, 0.0), page_width)
    y0 = min(max(box.y, 0.0), page_height)
    x1 = min(max(box.x + box.width, x0), page_width)
    y1 = min(max(box.y + box.height, y0), page_height)
    logger.debug("Clamped field box %s to page %.1fx%.1f", box, page_width, page_height)
    return Box(x0, y0, x1 - x0, y1 - y0)


def resolve(field: Union[Field, PercentPosition, PixelPosition, None], page_width: float, page_height: float) -> Box:
    position = field.position if isinstance(field, Field) else field
    if isinstance(position, PercentPosition):
        box = _from_percent(position, page_width, page_height)
    elif isinstance(position, PixelPosition):
        box = _from_pixels(position, page_width, page_height)
    else:
        field_id = field.id if isinstance(field, Field) else None
        raise NoValidCoordinates(f"Field {field_id} has no valid coordinates")
    return clamp(box, page_width, page_height)
