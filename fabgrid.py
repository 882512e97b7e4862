# -*- coding: utf-8 -*-
"""
Dense 2D storage and the selection map built on top of it.

Grid stores its cells in a numpy array indexed [y, x]. Every coordinate
access goes through an explicit bounds check; numpy's negative indexing
must never leak through as wraparound.
"""

import numpy as np

from fabgeom import (Coord, Dimen, Rect, EMPTY_RECT, to_rect, in_bounds, crop,
                     rect_from_2_coords, grow_rect_to_contain, rect_range)


class Grid:
    def __init__(self, dimen=(0, 0), dtype=np.uint32, fill=0):
        w, h = dimen
        self.data = np.full((h, w), fill, dtype=dtype)

    @classmethod
    def from_array(cls, array):
        grid = cls.__new__(cls)
        grid.data = np.array(array, copy=True)
        return grid

    @property
    def dimen(self) -> Dimen:
        h, w = self.data.shape
        return Dimen(w, h)

    @property
    def dtype(self):
        return self.data.dtype

    def _check(self, c):
        if not in_bounds(c, self.dimen):
            raise IndexError(f"Grid coordinate {tuple(c)} out of bounds for {tuple(self.dimen)}")

    def __getitem__(self, c):
        self._check(c)
        return self.data[c[1], c[0]].item()

    def __setitem__(self, c, value):
        self._check(c)
        self.data[c[1], c[0]] = value

    at = __getitem__

    def __iter__(self):
        """Cell values in raster order (x fastest)."""
        return (v.item() for v in self.data.flat)

    def __len__(self):
        return self.data.size

    def __eq__(self, other):
        if not isinstance(other, Grid):
            return NotImplemented
        return self.data.shape == other.data.shape and np.array_equal(self.data, other.data)

    def __repr__(self):
        return f"Grid({tuple(self.dimen)}, dtype={self.data.dtype})"

    def copy(self):
        return Grid.from_array(self.data)

    def fill(self, value):
        self.data.fill(value)

    def resize(self, dimen, fill=0):
        """Resize in place. Cells keep their coordinate; new cells get `fill`."""
        w, h = dimen
        old = self.data
        self.data = np.full((h, w), fill, dtype=old.dtype)
        keep_h = min(h, old.shape[0])
        keep_w = min(w, old.shape[1])
        self.data[:keep_h, :keep_w] = old[:keep_h, :keep_w]

    def region(self, rect: Rect):
        """Values of `rect` (which must lie inside the grid) in raster order."""
        if not rect:
            return []
        r = crop(rect, self.dimen)
        if r != rect:
            raise IndexError(f"Region {rect} out of bounds for {tuple(self.dimen)}")
        return [v.item() for v in self.data[r.y:r.y + r.h, r.x:r.x + r.w].flat]


class SelectionMap:
    """
    Boolean grid plus the tightest rectangle around the selected cells.

    Growing the selection updates the cached rect incrementally. Shrinking
    rescans the old rect, since the removed cell may have been the extremal
    one. invert() and resize() rescan the whole map.
    """

    def __init__(self, dimen=(0, 0)):
        self._selection = Grid(dimen, dtype=bool, fill=False)
        self._select_rect = EMPTY_RECT

    @property
    def dimen(self) -> Dimen:
        return self._selection.dimen

    @property
    def has_selection(self) -> bool:
        return bool(self._select_rect)

    @property
    def select_rect(self) -> Rect:
        return self._select_rect

    @property
    def selection(self) -> Grid:
        return self._selection

    def __getitem__(self, c) -> bool:
        return bool(self._selection[c])

    def select_all(self, select=True):
        self._selection.fill(select)
        if select and self.dimen:
            self._select_rect = to_rect(self.dimen)
        else:
            self._select_rect = EMPTY_RECT

    def select_invert(self):
        np.logical_not(self._selection.data, out=self._selection.data)
        self._recalc_select_rect(to_rect(self.dimen))

    invert = select_invert

    def select_tile(self, tile: int, select=True):
        """Select by row-major index into the map."""
        w = self.dimen.w
        self.select(Coord(tile % w, tile // w), select)

    def select_transpose(self, tile: int, select=True):
        """Select by column-major index into the map."""
        h = self.dimen.h
        self.select(Coord(tile // h, tile % h), select)

    def select(self, target, select=True):
        """Select or deselect a single Coord or a whole Rect. Cells outside the map are ignored."""
        if isinstance(target, Rect):
            self._select_rect_area(target, select)
            return
        if not in_bounds(target, self.dimen):
            return
        self._selection[target] = select
        if select:
            self._select_rect = grow_rect_to_contain(self._select_rect, Coord(*target))
        else:
            self._recalc_select_rect(self._select_rect)

    def _select_rect_area(self, rect: Rect, select):
        r = crop(rect, self.dimen)
        if not r:
            return
        self._selection.data[r.y:r.y + r.h, r.x:r.x + r.w] = select
        if select:
            self._select_rect = grow_rect_to_contain(self._select_rect, r)
        else:
            self._recalc_select_rect(self._select_rect)

    def resize(self, dimen):
        self._selection.resize(dimen, fill=False)
        self._recalc_select_rect(to_rect(self.dimen))

    def selected(self):
        """Yield every selected cell in raster order."""
        for c in rect_range(self._select_rect):
            if self._selection[c]:
                yield c

    def _recalc_select_rect(self, within: Rect):
        r = crop(within, self.dimen)
        if not r:
            self._select_rect = EMPTY_RECT
            return
        window = self._selection.data[r.y:r.y + r.h, r.x:r.x + r.w]
        ys, xs = np.nonzero(window)
        if len(xs) == 0:
            self._select_rect = EMPTY_RECT
            return
        self._select_rect = rect_from_2_coords(
            (r.x + int(xs.min()), r.y + int(ys.min())),
            (r.x + int(xs.max()), r.y + int(ys.max())))
