"""
Tests for server-side overlay rendering.
"""

from PIL import Image

from core.models import Arrow, Circle, Rectangle
from core.overlay import render_overlay


RED = (255, 0, 0)
WHITE = (255, 255, 255)


def test_rectangle_with_negative_extent():
    """Test that a box dragged up-left is drawn at its normalized bounds."""
    image = Image.new("RGB", (100, 100), WHITE)
    rect = Rectangle(id="r", color="#FF0000", x=60, y=60, width=-40, height=-40)

    out = render_overlay(image, [rect])

    assert out.getpixel((21, 40)) == RED
    assert out.getpixel((40, 40)) == WHITE
    assert image.getpixel((21, 40)) == WHITE  # original untouched


def test_circle_uses_shared_geometry():
    """Test circle drawn around the box centre with the larger half side."""
    image = Image.new("RGB", (100, 100), WHITE)
    circle = Circle(id="c", color="#FF0000", x=10, y=10, width=40, height=20)

    out = render_overlay(image, [circle])

    # centre (30, 20), radius 20
    assert out.getpixel((11, 20)) == RED
    assert out.getpixel((30, 20)) == WHITE


def test_arrow_and_bad_color():
    """Test arrows are drawn and unparseable colors are skipped."""
    image = Image.new("RGB", (100, 100), WHITE)
    arrow = Arrow(id="a", color="#FF0000", points=[0, 50, 90, 50])
    bad = Rectangle(id="b", color="not-a-color", x=0, y=0, width=99, height=10)

    out = render_overlay(image, [arrow, bad])

    assert out.getpixel((45, 50)) == RED
    assert out.getpixel((50, 0)) == WHITE
