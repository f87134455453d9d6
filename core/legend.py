"""
Submission-wide legend: ordered color -> label mapping.
"""

import json
import re
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Union

from core.errors import ValidationError


HEX_COLOR_RE = re.compile(r"^#[0-9a-fA-F]{6}$")


@dataclass
class LegendEntry:
    """A category label keyed by its markup color."""
    color: str
    text: str


def is_hex_color(value) -> bool:
    """Check for a #RRGGBB string."""
    return isinstance(value, str) and bool(HEX_COLOR_RE.match(value))


def hex_to_rgb(color: str) -> tuple[float, float, float]:
    """
    Convert "#RRGGBB" to an (r, g, b) triple in [0, 1].

    Plain integer division by 255, no gamma correction.

    Raises:
        ValueError: If the color is not a #RRGGBB string
    """
    if not is_hex_color(color):
        raise ValueError(f"Invalid hex color: {color!r}")
    return (
        int(color[1:3], 16) / 255,
        int(color[3:5], 16) / 255,
        int(color[5:7], 16) / 255,
    )


def _same_color(a: str, b: str) -> bool:
    return a.lower() == b.lower()


class LegendRegistry:
    """
    Ordered set of legend entries with at most one entry per color.

    Insertion order is kept; the report draws entries in that order.
    """

    def __init__(self, entries: Optional[Iterable[LegendEntry]] = None):
        self._entries: list[LegendEntry] = []
        if entries:
            self.replace_all(entries)

    def add(self, color: str, text: str) -> bool:
        """
        Append an entry.

        Silently ignored when the label is blank or the color is already
        present. Returns True if the entry was added.
        """
        if not text or not text.strip():
            return False
        if any(_same_color(e.color, color) for e in self._entries):
            return False
        self._entries.append(LegendEntry(color=color, text=text))
        return True

    def replace_all(self, entries: Iterable[LegendEntry]) -> None:
        """Replace the whole registry with the given ordered entries."""
        self._entries = [LegendEntry(color=e.color, text=e.text) for e in entries]

    def color_for(self, text: str) -> Optional[str]:
        for entry in self._entries:
            if entry.text == text:
                return entry.color
        return None

    @property
    def entries(self) -> list[LegendEntry]:
        return list(self._entries)

    def __iter__(self) -> Iterator[LegendEntry]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)


def parse_legend(payload: Union[str, list, None]) -> list[LegendEntry]:
    """
    Parse a submitted legend (JSON text or decoded list).

    Entries repeating an earlier color are dropped, the first one wins.

    Raises:
        ValidationError: On malformed JSON, non-list payloads, missing
            fields or colors that are not #RRGGBB
    """
    if payload is None:
        raise ValidationError("Legend is required")
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Legend is not valid JSON: {e}") from e
    if not isinstance(payload, list):
        raise ValidationError("Legend must be a list of {color, text} objects")

    registry = LegendRegistry()
    for idx, item in enumerate(payload):
        if not isinstance(item, dict):
            raise ValidationError(f"Legend entry {idx} is not an object")
        color = item.get("color")
        text = item.get("text")
        if not is_hex_color(color):
            raise ValidationError(f"Legend entry {idx} has invalid color {color!r}")
        if not isinstance(text, str) or not text.strip():
            raise ValidationError(f"Legend entry {idx} has no label text")
        registry.add(color, text)
    return registry.entries


def legend_to_wire(entries: Iterable[LegendEntry]) -> list[dict]:
    return [{"color": e.color, "text": e.text} for e in entries]
