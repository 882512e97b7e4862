# -*- coding: utf-8 -*-
"""
Editable tile layers.

A layer owns a canvas grid of 32-bit tile values and two selection maps:
the picker (a fixed catalog of tiles to draw with) and the canvas (the
region being edited). Each layer kind decides how a picker cell encodes
into a canvas value and back.

Values that depend on editor state outside the layer (active attribute,
active CHR bank) are passed in through a Pen instead of being read from
the level.
"""

from dataclasses import dataclass, field
from typing import Any, List, NamedTuple

import numpy as np

from faberrors import BoundsError
from fabgeom import Coord, Dimen, Rect, crop, in_bounds, dimen_range, rect_range
from fabgrid import Grid, SelectionMap
from fabobject import Object
from fabundo import UndoTiles

# --- Constants ---
NO_TILE = 0xFFFFFFFF

LAYER_COLOR = 0
LAYER_CHR = 1
LAYER_COLLISION = 2
LAYER_METATILE = 3
LAYER_OBJECTS = 4

TILE_SIZE = 8

COLOR_PICKER_DIMEN = Dimen(4, 16)
COLOR_CANVAS_DIMEN = Dimen(25, 256)
COLOR_BLACK = 0x0F
EXAMPLE_PALETTE = [
    0x11, 0x2B, 0x39,
    0x13, 0x21, 0x3B,
    0x15, 0x23, 0x31,
    0x17, 0x25, 0x33,

    0x02, 0x14, 0x26,
    0x04, 0x16, 0x28,
    0x06, 0x18, 0x2A,
    0x08, 0x1A, 0x2C,

    0x0F,
]

CHR_PICKER_DIMEN = Dimen(16, 16 * 4)
CHR_CANVAS_DIMEN = Dimen(16 * 3, 16 * 3)

COLLISION_PICKER_DIMEN = Dimen(4, 64)
COLLISION_CANVAS_DIMEN = Dimen(16, 16)


# --- Tile value helpers ---
def chr_id(tile: int) -> int:
    return tile >> 16


def with_chr_id(tile: int, bank: int) -> int:
    return (tile & 0xFFFF) | (bank << 16)


def tile_tile(tile: int) -> int:
    return tile & 0x3FFF


def tile_attr(tile: int) -> int:
    return (tile >> 14) & 0b11


class Pen(NamedTuple):
    attribute: int = 0
    chr_id: int = 0


NO_PEN = Pen()


@dataclass
class TileCopy:
    """Detached clipboard contents: a tile grid, or a list of objects for LAYER_OBJECTS."""
    format: int
    tiles: Any = None
    objects: List[Object] = field(default_factory=list)

    def to_words(self) -> List[int]:
        if self.format == LAYER_OBJECTS:
            words = [self.format, len(self.objects)]
            for obj in self.objects:
                obj.append_words(words)
            return words
        d = self.tiles.dimen
        return [self.format, d.w, d.h] + list(self.tiles)

    @classmethod
    def from_words(cls, words):
        if len(words) < 2:
            raise BoundsError("Data out of bounds.")
        fmt = words[0]
        if fmt == LAYER_OBJECTS:
            objects = []
            pos = 2
            for _ in range(words[1]):
                obj, pos = Object.from_words(words, pos)
                objects.append(obj)
            return cls(fmt, objects=objects)
        if len(words) < 3:
            raise BoundsError("Data out of bounds.")
        w, h = words[1], words[2]
        if len(words) < 3 + w * h:
            raise BoundsError("Data out of bounds.")
        tiles = Grid.from_array(np.array(words[3:3 + w * h], dtype=np.uint32).reshape((h, w)))
        return cls(fmt, tiles)


class TileLayer:
    format = None

    def __init__(self, picker_dimen, canvas_dimen):
        self.picker_selector = SelectionMap(picker_dimen)
        self.canvas_selector = SelectionMap(canvas_dimen)
        self.tiles = Grid(canvas_dimen)

    def tile_size(self, project=None) -> Dimen:
        return Dimen(TILE_SIZE, TILE_SIZE)

    def canvas_dimen(self) -> Dimen:
        return self.tiles.dimen

    def canvas_resize(self, dimen):
        self.canvas_selector.resize(dimen)
        self.tiles.resize(dimen)

    def get(self, c) -> int:
        return self.tiles[c]

    def set(self, c, value):
        self.tiles[c] = value

    def reset(self, c):
        self.set(c, 0)

    def to_tile(self, pick, pen=NO_PEN) -> int:
        return pick[0] + pick[1] * self.picker_selector.dimen.w

    def to_pick(self, tile) -> Coord:
        w = self.picker_selector.dimen.w
        return Coord(tile % w, tile // w)

    # --- Undo snapshots ---
    def save(self, rect: Rect) -> UndoTiles:
        rect = crop(rect, self.canvas_dimen())
        return UndoTiles(self, rect, [self.get(c) for c in rect_range(rect)])

    def save_at(self, at) -> UndoTiles:
        """Snapshot the area a picker stamp at `at` would cover."""
        return self.save(Rect(Coord(*at), self.picker_selector.dimen))

    # --- Editing ---
    def picked(self, pen_at, pen=NO_PEN):
        """Yield (canvas coord, tile) for stamping the picker selection at `pen_at`."""
        origin = self.picker_selector.select_rect.c
        for c in self.picker_selector.selected():
            at = Coord(pen_at[0] + c.x - origin.x, pen_at[1] + c.y - origin.y)
            if in_bounds(at, self.canvas_dimen()):
                yield at, self.to_tile(c, pen)

    def copy(self, rect=None, cut=False):
        """
        Capture the selected canvas cells inside `rect` (default: the canvas
        selection's bounds). Unselected cells are NO_TILE in the copy.
        Returns (TileCopy, undo); undo is None unless `cut` reset the cells.
        """
        if rect is None:
            rect = self.canvas_selector.select_rect
        rect = crop(rect, self.canvas_dimen())
        tiles = Grid(rect.d, fill=NO_TILE)
        undo = self.save(rect) if cut and rect else None

        for c in rect_range(rect):
            if self.canvas_selector[c]:
                tiles[c - rect.c] = self.get(c)
                if cut:
                    self.reset(c)
        return TileCopy(self.format, tiles), undo

    def paste(self, clip: TileCopy, at):
        """Write the non-NO_TILE cells of `clip` at `at`. Returns the undo record for the area."""
        if clip.tiles is None:
            return None
        area = crop(Rect(Coord(*at), clip.tiles.dimen), self.canvas_dimen())
        if not area:
            return None
        undo = self.save(area)
        for c in dimen_range(clip.tiles.dimen):
            value = clip.tiles[c]
            dest = Coord(at[0] + c.x, at[1] + c.y)
            if value != NO_TILE and in_bounds(dest, self.canvas_dimen()):
                self.set(dest, value)
        return undo

    def fill(self, pen=NO_PEN):
        """Tile the picker selection over the canvas selection, wrapping around."""
        canvas_rect = crop(self.canvas_selector.select_rect, self.canvas_dimen())
        picker_rect = self.picker_selector.select_rect
        if not canvas_rect or not picker_rect:
            return None

        undo = self.save(canvas_rect)
        for c in self.canvas_selector.selected():
            if not in_bounds(c, self.canvas_dimen()):
                continue
            o = c - canvas_rect.c
            p = Coord(o.x % picker_rect.w + picker_rect.x, o.y % picker_rect.h + picker_rect.y)
            self.set(c, self.to_tile(p, pen))
        return undo

    def fill_paste(self, clip: TileCopy):
        """Like fill(), but tiles a clipboard grid; NO_TILE cells are skipped."""
        if clip.tiles is None:
            return None
        canvas_rect = crop(self.canvas_selector.select_rect, self.canvas_dimen())
        copy_dimen = clip.tiles.dimen
        if not canvas_rect or not copy_dimen:
            return None

        undo = self.save(canvas_rect)
        for c in self.canvas_selector.selected():
            o = c - canvas_rect.c
            value = clip.tiles[(o.x % copy_dimen.w, o.y % copy_dimen.h)]
            if value != NO_TILE and in_bounds(c, self.canvas_dimen()):
                self.set(c, value)
        return undo

    def dropper(self, at, pen=NO_PEN) -> Pen:
        """Select the picker cell the tile at `at` came from. Returns the pen to keep drawing with."""
        self.picker_selector.select_all(False)
        self.picker_selector.select(self.to_pick(self.get(at)))
        return pen


class ColorLayer(TileLayer):
    """The palette table. Columns 0-23 hold 8 sub-palettes of 3 colors, column 24 the background."""
    format = LAYER_COLOR

    def __init__(self, num=1):
        super().__init__(COLOR_PICKER_DIMEN, COLOR_CANVAS_DIMEN)
        self.num = num
        self.tiles.fill(COLOR_BLACK)
        for i, color in enumerate(EXAMPLE_PALETTE):
            self.tiles[(i, 0)] = color

    def tile_size(self, project=None) -> Dimen:
        return Dimen(16, 16)

    def canvas_dimen(self) -> Dimen:
        return Dimen(self.tiles.dimen.w, self.num)

    def reset(self, c):
        self.set(c, COLOR_BLACK)

    def to_tile(self, pick, pen=NO_PEN) -> int:
        return pick[1] + pick[0] * self.picker_selector.dimen.h

    def to_pick(self, tile) -> Coord:
        h = self.picker_selector.dimen.h
        return Coord(tile // h, tile % h)


class CollisionLayer(TileLayer):
    format = LAYER_COLLISION

    def __init__(self, canvas_dimen=COLLISION_CANVAS_DIMEN):
        super().__init__(COLLISION_PICKER_DIMEN, canvas_dimen)

    def tile_size(self, project=None) -> Dimen:
        scale = project.collision_scale() if project is not None else 1
        return Dimen(TILE_SIZE * scale, TILE_SIZE * scale)


class ChrLayer(TileLayer):
    """
    Level graphics. A tile value packs the tile index in bits 0-13, the
    attribute in bits 14-15 and the CHR bank id from bit 16 up.
    """
    format = LAYER_CHR

    def __init__(self, canvas_dimen=CHR_CANVAS_DIMEN):
        super().__init__(CHR_PICKER_DIMEN, canvas_dimen)

    def to_tile(self, pick, pen=NO_PEN) -> int:
        return super().to_tile(pick) | ((pen.attribute & 0b11) << 14) | (pen.chr_id << 16)

    def to_pick(self, tile) -> Coord:
        return super().to_pick(tile_tile(tile))

    def dropper(self, at, pen=NO_PEN) -> Pen:
        bank = chr_id(self.get(at))
        super().dropper(at)
        return pen._replace(chr_id=bank)

    def fill_attribute(self, pen=NO_PEN):
        """Overwrite only the attribute bits of every selected cell."""
        canvas_rect = crop(self.canvas_selector.select_rect, self.canvas_dimen())
        if not canvas_rect or pen.attribute >= 4:
            return None

        undo = self.save(canvas_rect)
        for c in self.canvas_selector.selected():
            if not in_bounds(c, self.canvas_dimen()):
                continue
            self.set(c, (self.get(c) & 0xFFFF3FFF) | ((pen.attribute & 0b11) << 14))
        return undo
