"""
Server-side overlay rendering: burn shapes into an image with Pillow.

Uses the same geometry helpers as the drawing client, so a redrawn overlay
matches what the reviewer saw.
"""

import logging
import math

from PIL import Image, ImageColor, ImageDraw

from core.models import ARROW, CIRCLE, RECT, Shape
from core.shapes import circle_geometry, normalized_rect

logger = logging.getLogger(__name__)

STROKE_WIDTH = 4
ARROW_HEAD_LENGTH = 10
ARROW_HEAD_WIDTH = 10


def _arrow_head(x1: float, y1: float, x2: float, y2: float) -> list[tuple[float, float]]:
    """Triangle with its tip at (x2, y2) pointing away from (x1, y1)."""
    angle = math.atan2(y2 - y1, x2 - x1)
    bx = x2 - ARROW_HEAD_LENGTH * math.cos(angle)
    by = y2 - ARROW_HEAD_LENGTH * math.sin(angle)
    half = ARROW_HEAD_WIDTH / 2
    dx = half * math.sin(angle)
    dy = -half * math.cos(angle)
    return [(x2, y2), (bx + dx, by + dy), (bx - dx, by - dy)]


def render_overlay(image: Image.Image, shapes: list[Shape],
                   stroke_width: int = STROKE_WIDTH) -> Image.Image:
    """
    Draw shapes on a copy of `image`.

    Shapes with a color Pillow cannot parse are skipped with a warning.

    Args:
        image: Original image
        shapes: Shapes in drawing order
        stroke_width: Outline width in pixels

    Returns:
        New RGB image with the markup burned in
    """
    out = image.convert("RGB")
    draw = ImageDraw.Draw(out)

    for shape in shapes:
        try:
            color = ImageColor.getrgb(shape.color)
        except ValueError:
            logger.warning(f"Skipping shape {shape.id}: invalid color {shape.color!r}")
            continue

        if shape.kind == RECT:
            draw.rectangle(normalized_rect(shape), outline=color, width=stroke_width)
        elif shape.kind == CIRCLE:
            cx, cy, r = circle_geometry(shape)
            draw.ellipse((cx - r, cy - r, cx + r, cy + r), outline=color, width=stroke_width)
        elif shape.kind == ARROW:
            x1, y1, x2, y2 = shape.points
            draw.line((x1, y1, x2, y2), fill=color, width=stroke_width)
            if (x1, y1) != (x2, y2):
                draw.polygon(_arrow_head(x1, y1, x2, y2), fill=color)
        else:
            raise ValueError(f"Unknown shape kind: {shape.kind!r}")

    return out
