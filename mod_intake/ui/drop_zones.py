"""Cursor position -> semantic drop zone."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class DropZone(str, Enum):
    AUTO_ORGANIZE = "auto-organize"
    ITEM = "item"
    NEW_OBJECT = "new-object"
    NONE = "none"


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    def contains(self, px: float, py: float) -> bool:
        return self.x <= px < self.x + self.width and self.y <= py < self.y + self.height


class DropZoneResolver:
    """Three tracked rectangles, checked toolbar -> bottom bar -> content.

    ``resolve`` runs on every drag-move event: it only compares numbers.
    """

    __slots__ = ("toolbar", "bottom_bar", "content")

    def __init__(self, toolbar: Optional[Rect] = None, bottom_bar: Optional[Rect] = None,
                 content: Optional[Rect] = None):
        self.toolbar = toolbar
        self.bottom_bar = bottom_bar
        self.content = content

    def update(self, toolbar: Optional[Rect] = None, bottom_bar: Optional[Rect] = None,
               content: Optional[Rect] = None) -> None:
        """Replace the given rectangles (layout changed); ``None`` keeps the old one."""
        if toolbar is not None:
            self.toolbar = toolbar
        if bottom_bar is not None:
            self.bottom_bar = bottom_bar
        if content is not None:
            self.content = content

    def resolve(self, x: float, y: float) -> DropZone:
        if self.toolbar is not None and self.toolbar.contains(x, y):
            return DropZone.AUTO_ORGANIZE
        if self.bottom_bar is not None and self.bottom_bar.contains(x, y):
            return DropZone.NEW_OBJECT
        if self.content is not None and self.content.contains(x, y):
            return DropZone.ITEM
        return DropZone.NONE
