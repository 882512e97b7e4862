# -*- coding: utf-8 -*-
"""
Integer 2D value types shared by the grid, selection and layer code.

A Rect is empty when either side is zero; empty rects are falsy so callers
can write `if rect:` the same way they test an empty list.
"""

from typing import Iterator, NamedTuple


class Coord(NamedTuple):
    x: int
    y: int

    def __add__(self, other):
        return Coord(self.x + other[0], self.y + other[1])

    def __sub__(self, other):
        return Coord(self.x - other[0], self.y - other[1])


class Dimen(NamedTuple):
    w: int
    h: int

    def __bool__(self):
        return self.w > 0 and self.h > 0

    def area(self) -> int:
        return self.w * self.h


class Rect(NamedTuple):
    c: Coord
    d: Dimen

    def __bool__(self):
        return bool(self.d)

    @property
    def x(self):
        return self.c.x

    @property
    def y(self):
        return self.c.y

    @property
    def w(self):
        return self.d.w

    @property
    def h(self):
        return self.d.h

    def end(self) -> Coord:
        """One past the bottom-right corner."""
        return Coord(self.c.x + self.d.w, self.c.y + self.d.h)


EMPTY_RECT = Rect(Coord(0, 0), Dimen(0, 0))


# --- Helper Functions ---
def to_rect(d) -> Rect:
    return Rect(Coord(0, 0), Dimen(*d))


def in_bounds(c, d) -> bool:
    return 0 <= c[0] < d[0] and 0 <= c[1] < d[1]


def rect_from_2_coords(a, b) -> Rect:
    """Smallest rect containing both corner cells, inclusive."""
    x0, x1 = min(a[0], b[0]), max(a[0], b[0])
    y0, y1 = min(a[1], b[1]), max(a[1], b[1])
    return Rect(Coord(x0, y0), Dimen(x1 - x0 + 1, y1 - y0 + 1))


def grow_rect_to_contain(rect: Rect, other) -> Rect:
    """Grow `rect` to contain a cell (Coord) or another Rect."""
    if isinstance(other, Rect):
        if not other:
            return rect
        lo, hi = other.c, Coord(other.c.x + other.d.w - 1, other.c.y + other.d.h - 1)
    else:
        lo = hi = Coord(*other)
    if not rect:
        return rect_from_2_coords(lo, hi)
    end = rect.end()
    x0 = min(rect.c.x, lo.x)
    y0 = min(rect.c.y, lo.y)
    x1 = max(end.x - 1, hi.x)
    y1 = max(end.y - 1, hi.y)
    return Rect(Coord(x0, y0), Dimen(x1 - x0 + 1, y1 - y0 + 1))


def crop(rect: Rect, d) -> Rect:
    """Intersect `rect` with the area (0, 0)..d. Returns EMPTY_RECT if nothing is left."""
    x0 = max(rect.c.x, 0)
    y0 = max(rect.c.y, 0)
    x1 = min(rect.c.x + rect.d.w, d[0])
    y1 = min(rect.c.y + rect.d.h, d[1])
    if x1 <= x0 or y1 <= y0:
        return EMPTY_RECT
    return Rect(Coord(x0, y0), Dimen(x1 - x0, y1 - y0))


def rect_range(rect: Rect) -> Iterator[Coord]:
    """Every cell of `rect` in raster order."""
    for y in range(rect.c.y, rect.c.y + rect.d.h):
        for x in range(rect.c.x, rect.c.x + rect.d.w):
            yield Coord(x, y)


def dimen_range(d) -> Iterator[Coord]:
    return rect_range(to_rect(d))
