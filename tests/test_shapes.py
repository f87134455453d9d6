"""
Tests for the shape editing session, geometry and wire format.
"""

import json
import pytest

from core.errors import ValidationError
from core.models import Arrow, Circle, Rectangle
from core.shapes import (
    EditingSession,
    circle_geometry,
    normalized_rect,
    parse_shapes,
    shapes_to_wire,
)


class TestEditingSession:
    """Tests for begin/update/undo on an editing session."""

    def test_begin_shape_appends_zero_extent(self):
        """Test that a new rectangle starts with zero extent and is listed immediately."""
        session = EditingSession(tool="rect", color="#FF0000")

        shape = session.begin_shape((10, 20))

        assert session.shapes == [shape]
        assert isinstance(shape, Rectangle)
        assert (shape.x, shape.y, shape.width, shape.height) == (10, 20, 0, 0)
        assert shape.color == "#FF0000"

    def test_begin_arrow_is_degenerate_pair(self):
        """Test that an arrow starts as a point pair at the origin."""
        session = EditingSession()

        shape = session.begin_shape((5, 6), tool="arrow", color="#00FF00")

        assert isinstance(shape, Arrow)
        assert shape.points == [5, 6, 5, 6]
        assert shape.color == "#00FF00"

    def test_begin_unknown_tool(self):
        """Test that an unknown tool is rejected."""
        session = EditingSession()

        with pytest.raises(ValidationError):
            session.begin_shape((0, 0), tool="polygon")
        assert session.shapes == []

    def test_update_rect_signed_extent(self):
        """Test that dragging up-left gives negative width and height."""
        session = EditingSession(tool="rect")
        session.begin_shape((50, 50))

        shape = session.update_last_shape((20, 10))

        assert shape.width == -30
        assert shape.height == -40

    def test_update_arrow_second_point(self):
        """Test that updating an arrow moves only its second point."""
        session = EditingSession(tool="arrow")
        session.begin_shape((1, 2))

        session.update_last_shape((30, 40))

        assert session.shapes[-1].points == [1, 2, 30, 40]

    def test_update_is_idempotent(self):
        """Test that repeating the same update changes nothing."""
        session = EditingSession(tool="circle")
        session.begin_shape((10, 10))

        session.update_last_shape((40, 30))
        first = (session.shapes[-1].width, session.shapes[-1].height)
        session.update_last_shape((40, 30))

        assert (session.shapes[-1].width, session.shapes[-1].height) == first

    def test_update_empty_is_noop(self):
        """Test update with no shapes."""
        session = EditingSession()
        assert session.update_last_shape((1, 1)) is None
        assert session.shapes == []

    def test_undo(self):
        """Test undo removes the last shape and is a no-op when empty."""
        session = EditingSession()
        first = session.begin_shape((0, 0))
        second = session.begin_shape((5, 5), tool="arrow")

        assert session.undo_last() is second
        assert session.shapes == [first]
        assert session.undo_last() is first
        assert session.undo_last() is None

    def test_length_and_ids_under_edit_sequence(self):
        """Test that only begin grows and only undo shrinks the list."""
        session = EditingSession()
        steps = ["begin", "update", "begin", "update", "update", "undo", "begin", "update", "undo", "undo"]

        for step in steps:
            before_len = len(session.shapes)
            before_ids = [s.id for s in session.shapes]
            if step == "begin":
                session.begin_shape((before_len, before_len), tool="arrow" if before_len % 2 else "rect")
                assert len(session.shapes) == before_len + 1
                assert [s.id for s in session.shapes][:-1] == before_ids
            elif step == "update":
                session.update_last_shape((100, 100))
                assert [s.id for s in session.shapes] == before_ids
            else:
                session.undo_last()
                assert len(session.shapes) == max(before_len - 1, 0)

    def test_ids_stay_unique_after_undo(self):
        """Test that a shape created after an undo gets a fresh id."""
        session = EditingSession()
        session.begin_shape((0, 0))
        session.begin_shape((1, 1))
        session.undo_last()

        third = session.begin_shape((2, 2))

        assert len({s.id for s in session.shapes}) == 2
        assert third.id == "shape-2"

    def test_update_never_changes_id_or_kind(self):
        """Test that edits keep id and kind."""
        session = EditingSession(tool="circle")
        shape = session.begin_shape((0, 0))

        session.update_last_shape((-10, 25))

        assert session.shapes[-1].id == shape.id
        assert session.shapes[-1].kind == "circle"

    def test_load_hydrates_existing(self):
        """Test resuming an image's saved shapes."""
        saved = [Rectangle(id="shape-0", color="#FF0000", x=1, y=1, width=5, height=5)]
        session = EditingSession(shapes=saved)

        new = session.begin_shape((3, 3))

        assert len(session.shapes) == 2
        assert new.id == "shape-1"

    def test_reload_with_gaps_keeps_ids_unique(self):
        """Test that ids stay unique when a saved list skips numbers."""
        session = EditingSession()
        for i in range(3):
            session.begin_shape((i, i))
        session.undo_last()
        session.undo_last()
        session.begin_shape((5, 5))
        assert [s.id for s in session.shapes] == ["shape-0", "shape-3"]

        resumed = EditingSession(shapes=parse_shapes(shapes_to_wire(session.shapes)))
        resumed.begin_shape((6, 6))
        resumed.begin_shape((7, 7))

        ids = [s.id for s in resumed.shapes]
        assert len(ids) == len(set(ids)) == 4


class TestGeometry:
    """Tests for shared geometry helpers."""

    def test_circle_radius_uses_larger_side(self):
        """Test circle centre and radius from a signed box."""
        circle = Circle(id="c", color="#FF0000", x=100, y=100, width=-40, height=20)

        cx, cy, r = circle_geometry(circle)

        assert (cx, cy) == (80, 110)
        assert r == 20

    def test_normalized_rect(self):
        """Test sign-agnostic bounds."""
        rect = Rectangle(id="r", color="#FF0000", x=50, y=60, width=-30, height=-10)
        assert normalized_rect(rect) == (20, 50, 50, 60)


class TestWireFormat:
    """Tests for parse_shapes and shapes_to_wire."""

    def test_parse_client_payload(self):
        """Test parsing the JSON the drawing client submits."""
        payload = json.dumps([
            {"id": "shape-0", "type": "rect", "color": "#FF0000",
             "points": [1, 2], "x": 1, "y": 2, "width": 10, "height": -5},
            {"id": "shape-1", "type": "arrow", "color": "#00FF00",
             "points": [0, 0, 50, 60], "x": 0, "y": 0, "width": 0, "height": 0},
        ])

        shapes = parse_shapes(payload)

        assert isinstance(shapes[0], Rectangle)
        assert shapes[0].height == -5
        assert isinstance(shapes[1], Arrow)
        assert shapes[1].points == [0, 0, 50, 60]

    def test_unknown_kind_rejected(self):
        """Test that unknown kinds are a validation error."""
        with pytest.raises(ValidationError, match="unknown kind"):
            parse_shapes([{"type": "triangle", "color": "#FF0000"}])

    def test_missing_field_rejected(self):
        """Test that missing geometry is a validation error."""
        with pytest.raises(ValidationError):
            parse_shapes([{"type": "circle", "color": "#FF0000", "x": 1, "y": 2}])

    def test_bad_arrow_points(self):
        """Test that arrows need exactly four numbers."""
        with pytest.raises(ValidationError):
            parse_shapes([{"type": "arrow", "color": "#FF0000", "points": [1, 2, 3]}])
        with pytest.raises(ValidationError):
            parse_shapes([{"type": "arrow", "color": "#FF0000", "points": [1, 2, 3, "x"]}])

    def test_single_point_arrow_expanded(self):
        """Test that an arrow clicked without dragging saves as a zero-length arrow."""
        shapes = parse_shapes([{"id": "shape-0", "type": "arrow", "color": "#FF0000", "points": [7, 8]}])

        assert shapes[0].points == [7, 8, 7, 8]

    def test_duplicate_ids_rejected(self):
        """Test that two shapes sharing an id are a validation error."""
        rect = {"type": "rect", "color": "#FF0000", "x": 0, "y": 0, "width": 1, "height": 1}
        with pytest.raises(ValidationError, match="Duplicate shape id"):
            parse_shapes([dict(rect, id="shape-0"), dict(rect, id="shape-0")])
        # a generated fallback id may not collide with an explicit one either
        with pytest.raises(ValidationError, match="Duplicate shape id"):
            parse_shapes([dict(rect, id="shape-1"), dict(rect)])

    def test_malformed_payloads(self):
        """Test invalid JSON, non-lists and None."""
        for payload in ["not json", '{"type": "rect"}', None, [42]]:
            with pytest.raises(ValidationError):
                parse_shapes(payload)

    def test_wire_roundtrip_keeps_fields(self):
        """Test that serialized shapes parse back to equal shapes."""
        shapes = [
            Rectangle(id="a", color="#FF0000", x=1, y=2, width=3, height=4),
            Circle(id="b", color="#00FF00", x=5, y=6, width=-7, height=8),
            Arrow(id="c", color="#0000FF", points=[1, 1, 9, 9]),
        ]

        assert parse_shapes(shapes_to_wire(shapes)) == shapes
