"""
Shape editing session, shared geometry and the shape wire format.
"""

import json
import numbers
from typing import Optional, Union

from core.errors import ValidationError
from core.models import (
    ARROW, CIRCLE, RECT, SHAPE_KINDS,
    Arrow, Circle, Rectangle, Shape,
)


Point = tuple[float, float]


def new_shape(kind: str, shape_id: str, color: str, point: Point) -> Shape:
    """Create a zero-extent shape of the given kind at `point`."""
    x, y = point
    if kind == RECT:
        return Rectangle(id=shape_id, color=color, x=x, y=y)
    if kind == CIRCLE:
        return Circle(id=shape_id, color=color, x=x, y=y)
    if kind == ARROW:
        return Arrow(id=shape_id, color=color, points=[x, y, x, y])
    raise ValidationError(f"Unknown shape kind: {kind!r}")


class EditingSession:
    """
    Drawing state for one image being annotated.

    Holds the current tool and color and the image's shape list. The shape
    being dragged is always the last element of `shapes`.
    """

    def __init__(
        self,
        tool: str = RECT,
        color: str = "#FF0000",
        shapes: Optional[list[Shape]] = None,
    ):
        self.tool = tool
        self.color = color
        self.shapes: list[Shape] = []
        self._next_id = 0
        self._taken: set[str] = set()
        if shapes:
            self.load(shapes)

    def load(self, shapes: list[Shape]) -> None:
        """Replace the shape list, e.g. with a previously saved annotation."""
        self.shapes = list(shapes)
        self._next_id = len(self.shapes)
        self._taken = {s.id for s in self.shapes}

    def _allocate_id(self) -> str:
        # ids handed out or loaded are never reused, even after undo
        while f"shape-{self._next_id}" in self._taken:
            self._next_id += 1
        shape_id = f"shape-{self._next_id}"
        self._taken.add(shape_id)
        self._next_id += 1
        return shape_id

    def begin_shape(
        self,
        point: Point,
        tool: Optional[str] = None,
        color: Optional[str] = None,
    ) -> Shape:
        """Start a new shape at `point`; it is visible immediately."""
        shape = new_shape(
            tool or self.tool,
            self._allocate_id(),
            color or self.color,
            point,
        )
        self.shapes.append(shape)
        return shape

    def update_last_shape(self, point: Point) -> Optional[Shape]:
        """Move the dynamic end of the shape being drawn to `point`."""
        if not self.shapes:
            return None
        shape = self.shapes[-1]
        px, py = point
        if shape.kind == ARROW:
            shape.points[2] = px
            shape.points[3] = py
        else:
            shape.width = px - shape.x
            shape.height = py - shape.y
        return shape

    def undo_last(self) -> Optional[Shape]:
        if not self.shapes:
            return None
        return self.shapes.pop()


# ==================== Geometry ====================

def normalized_rect(shape: Union[Rectangle, Circle]) -> tuple[float, float, float, float]:
    """Sign-agnostic (x0, y0, x1, y1) bounds of a dragged box."""
    x0, x1 = sorted((shape.x, shape.x + shape.width))
    y0, y1 = sorted((shape.y, shape.y + shape.height))
    return x0, y0, x1, y1


def circle_geometry(shape: Circle) -> tuple[float, float, float]:
    """Centre and radius: radius is max(|w|, |h|) / 2 around the box centre."""
    cx = shape.x + shape.width / 2
    cy = shape.y + shape.height / 2
    radius = max(abs(shape.width), abs(shape.height)) / 2
    return cx, cy, radius


# ==================== Wire format ====================

def _number(value, field_name: str, idx: int) -> float:
    # bool is an int subclass
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ValidationError(f"Shape {idx} field {field_name!r} must be a number")
    return float(value)


def parse_shape(item: dict, idx: int = 0) -> Shape:
    """Validate one decoded shape object."""
    if not isinstance(item, dict):
        raise ValidationError(f"Shape {idx} is not an object")

    kind = item.get("type", item.get("kind"))
    if kind not in SHAPE_KINDS:
        raise ValidationError(f"Shape {idx} has unknown kind {kind!r}")

    shape_id = item.get("id") or f"shape-{idx}"
    color = item.get("color")
    if not isinstance(color, str) or not color:
        raise ValidationError(f"Shape {idx} has no color")

    if kind == ARROW:
        points = item.get("points")
        # an arrow clicked but never dragged arrives as a single point
        if isinstance(points, list) and len(points) == 2:
            points = points * 2
        if not isinstance(points, list) or len(points) != 4:
            raise ValidationError(f"Arrow {idx} needs points [x1, y1, x2, y2]")
        return Arrow(
            id=str(shape_id),
            color=color,
            points=[_number(p, "points", idx) for p in points],
        )

    cls = Rectangle if kind == RECT else Circle
    return cls(
        id=str(shape_id),
        color=color,
        x=_number(item.get("x"), "x", idx),
        y=_number(item.get("y"), "y", idx),
        width=_number(item.get("width"), "width", idx),
        height=_number(item.get("height"), "height", idx),
    )


def parse_shapes(payload: Union[str, list, None]) -> list[Shape]:
    """
    Parse submitted shapes (JSON text or decoded list).

    Raises:
        ValidationError: On malformed JSON, unknown kinds, missing fields
            or repeated shape ids
    """
    if payload is None:
        raise ValidationError("Shapes are required")
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Shapes are not valid JSON: {e}") from e
    if not isinstance(payload, list):
        raise ValidationError("Shapes must be a list")
    shapes = [parse_shape(item, idx) for idx, item in enumerate(payload)]

    seen: set[str] = set()
    for shape in shapes:
        if shape.id in seen:
            raise ValidationError(f"Duplicate shape id {shape.id!r}")
        seen.add(shape.id)
    return shapes


def shape_to_wire(shape: Shape) -> dict:
    """Serialize a shape to the dict form the drawing client sends."""
    if shape.kind == ARROW:
        return {
            "id": shape.id,
            "type": ARROW,
            "color": shape.color,
            "points": list(shape.points),
        }
    if shape.kind in (RECT, CIRCLE):
        return {
            "id": shape.id,
            "type": shape.kind,
            "color": shape.color,
            "x": shape.x,
            "y": shape.y,
            "width": shape.width,
            "height": shape.height,
        }
    raise ValidationError(f"Unknown shape kind: {shape.kind!r}")


def shapes_to_wire(shapes: list[Shape]) -> list[dict]:
    return [shape_to_wire(s) for s in shapes]
