# -*- coding: utf-8 -*-
"""
The document model: palettes, CHR sources, levels, object classes and the
project that owns them all.

Only tile and object edits go through undo records. Levels, classes and
CHR sources are added and removed directly.
"""

from collections import Counter

from fabgeom import Coord, Dimen
from fabchr import BYTES_PER_TILE, CHR_BANK_SIZE, chr_to_bitmaps, load_chr_source, load_collision_file
from fablayer import ColorLayer, ChrLayer, CollisionLayer, Pen
from fabobject import Object, ObjectClass, lookup_name
from fabundo import (UndoHistory, UndoPaletteNum, UndoLayerTiles, UndoNewObjects,
                     UndoDeleteObjects, UndoEditObject, UndoMoveObjects, apply_undo)

# --- Constants ---
DEFAULT_LEVEL_DIMEN = Dimen(24, 24)
DEFAULT_CHR_NAME = "chr"
DEFAULT_CLASS_NAME = "object"
DEFAULT_LEVEL_NAME = "level"
MAX_PALETTES = 256

ATTR0_LAYER = 0
ATTR1_LAYER = 1
ATTR2_LAYER = 2
ATTR3_LAYER = 3
COLLISION_LAYER = 4
OBJECT_LAYER = 5


class ChrFile:
    """A CHR source. Only id, name and path are persisted; the rest is derived from the file."""

    def __init__(self, id=0, name="", path=""):
        self.id = id
        self.name = name
        self.path = path
        self.chr = bytes(CHR_BANK_SIZE)
        self.indices = []
        self.num_tiles = 0

    def load(self):
        self.chr = bytes(CHR_BANK_SIZE)
        self.indices = []
        self.num_tiles = 0
        patterns = load_chr_source(self.path)
        if not patterns.chr:
            return
        data = patterns.chr[:CHR_BANK_SIZE]
        self.chr = data + bytes(CHR_BANK_SIZE - len(data))
        self.indices = list(patterns.indices)
        self.num_tiles = len(data) // BYTES_PER_TILE

    def set_path(self, path):
        self.path = path
        self.load()


class PaletteModel:
    def __init__(self):
        self.color_layer = ColorLayer(num=1)

    @property
    def num(self):
        return self.color_layer.num

    @num.setter
    def num(self, value):
        self.color_layer.num = value

    def layer(self):
        return self.color_layer


class Level:
    def __init__(self, dimen=DEFAULT_LEVEL_DIMEN, collision_dimen=None):
        self.name = DEFAULT_LEVEL_NAME
        self.macro_name = ""
        self.chr_name = ""
        self.chr_id = 0
        self.palette = 0
        self.chr_layer = ChrLayer()
        self.collision_layer = CollisionLayer()
        self.chr_bitmaps = {}
        self.current_layer = ATTR0_LAYER
        self.active = 0
        self.object_selector = set()
        self.objects = []
        self.resize(dimen, collision_dimen if collision_dimen is not None else dimen)

    def dimen(self) -> Dimen:
        return self.chr_layer.tiles.dimen

    def resize(self, dimen, collision_dimen):
        self.chr_layer.canvas_resize(dimen)
        self.collision_layer.canvas_resize(collision_dimen)

    def save_tiles(self) -> UndoLayerTiles:
        """Snapshot both canvases whole, for undoing a resize."""
        return UndoLayerTiles([(layer, layer.tiles.copy()) for layer in (self.chr_layer, self.collision_layer)])

    def collisions(self) -> bool:
        return self.current_layer == COLLISION_LAYER

    def layer(self):
        return self.collision_layer if self.collisions() else self.chr_layer

    def pen(self) -> Pen:
        return Pen(self.active, self.chr_id)

    def dropper(self, at):
        pen = self.layer().dropper(at, self.pen())
        self.chr_id = pen.chr_id

    # --- Objects ---
    def add_objects(self, objects, at=None):
        """Insert objects at index `at` (default: the end). Returns the undo record."""
        start = len(self.objects) if at is None else at
        for offset, obj in enumerate(objects):
            self.objects.insert(start + offset, obj)
        return UndoNewObjects(self, list(reversed(range(start, start + len(objects)))))

    def delete_objects(self, indices):
        indices = sorted(set(indices))
        if not indices:
            return None
        removed = [(i, self.objects[i]) for i in indices]
        for i in reversed(indices):
            del self.objects[i]
        self.object_selector.clear()
        return UndoDeleteObjects(self, removed)

    def edit_object(self, index, obj):
        old = self.objects[index]
        self.objects[index] = obj
        return UndoEditObject(self, index, old)

    def move_objects(self, indices, delta):
        indices = list(indices)
        if not indices:
            return None
        positions = [self.objects[i].position for i in indices]
        for i in indices:
            self.objects[i].position = self.objects[i].position + delta
        return UndoMoveObjects(self, indices, positions)

    # --- CHR display cache ---
    def clear_chr(self):
        self.chr_bitmaps.clear()

    def refresh_chr(self, chr_files, palette):
        self.chr_bitmaps = {chr_file.id: chr_to_bitmaps(chr_file.chr, palette, chr_file.indices)
                            for chr_file in chr_files}

    # --- Metatiles ---
    def _metatiles(self, size):
        """Yield (x, y, (tiles, collision)) for every size x size block of the CHR canvas."""
        d = self.chr_layer.canvas_dimen()
        tiles = self.chr_layer.tiles.data
        collisions = self.collision_layer.tiles.data.ravel()
        collision_w = (d.w + size - 1) // size
        for y in range(0, d.h, size):
            for x in range(0, d.w, size):
                block = []
                for yy in range(size):
                    for xx in range(size):
                        if x + xx < d.w and y + yy < d.h:
                            block.append(int(tiles[y + yy, x + xx]))
                        else:
                            block.append(0)
                ci = (x // size) + (y // size) * collision_w
                collision = int(collisions[ci]) & 0xFF if ci < len(collisions) else 0
                yield x, y, (tuple(block), collision)

    def count_metatiles(self, size, select=0):
        """
        Number of distinct (tiles, collision) blocks of size x size.
        With `select` > 0, the CHR canvas selection is replaced by every block
        that occurs at most `select` times.
        """
        if size == 0:
            return 0

        if select:
            self.chr_layer.canvas_selector.select_all(False)

        counts = Counter(mt for _, _, mt in self._metatiles(size))

        if select:
            for x, y, mt in self._metatiles(size):
                if counts[mt] <= select:
                    for yy in range(size):
                        for xx in range(size):
                            self.chr_layer.canvas_selector.select(Coord(x + xx, y + yy))

        return len(counts)


class Project:
    def __init__(self):
        self.modified = False
        self.modified_since_save = False
        self.project_path = ""

        self.palette = PaletteModel()
        self.chr_files = [ChrFile(0, DEFAULT_CHR_NAME)]
        self.object_classes = [ObjectClass(DEFAULT_CLASS_NAME)]
        self.object_picker = Object()
        self.levels = [Level()]
        self.levels[0].chr_name = DEFAULT_CHR_NAME

        self.metatile_size = 0
        self.collision_path = ""
        self.collision_bitmaps = []

        self.history = UndoHistory()
        self.paste = None

    # --- Dirty flags ---
    def modify(self):
        self.modified = self.modified_since_save = True

    def mark_saved(self):
        self.modified_since_save = False

    # --- Undo ---
    def apply_undo(self, undo):
        """Perform `undo` and return its inverse."""
        self.modify()
        return apply_undo(self, undo)

    def push(self, undo):
        if undo is not None:
            self.modify()
        self.history.push(undo)

    def undo(self):
        return self.history.undo(self)

    def redo(self):
        return self.history.redo(self)

    # --- Lookups ---
    def lookup_class(self, name):
        return lookup_name(name, self.object_classes)

    def lookup_chr(self, name):
        return lookup_name(name, self.chr_files)

    def lookup_level(self, name):
        return lookup_name(name, self.levels)

    # --- Geometry ---
    def collision_scale(self) -> int:
        return max(self.metatile_size, 1)

    def collision_div(self, d) -> Dimen:
        s = self.collision_scale()
        return Dimen((d[0] + s - 1) // s, (d[1] + s - 1) // s)

    def new_level(self, name=DEFAULT_LEVEL_NAME, dimen=DEFAULT_LEVEL_DIMEN):
        level = Level(dimen, self.collision_div(dimen))
        level.name = name
        if self.chr_files:
            level.chr_name = self.chr_files[0].name
            level.chr_id = self.chr_files[0].id
        self.levels.append(level)
        return level

    def resize_level(self, level, dimen):
        """Resize a level's canvases. Returns the undo record restoring both grids."""
        undo = level.save_tiles()
        level.resize(dimen, self.collision_div(dimen))
        return undo

    def set_metatile_size(self, size):
        self.metatile_size = size
        for level in self.levels:
            level.collision_layer.canvas_resize(self.collision_div(level.dimen()))
        self.load_collisions()

    def set_palette_num(self, num):
        """Change how many palette rows are in use. Returns the undo record."""
        num = max(1, min(num, MAX_PALETTES))
        undo = UndoPaletteNum(self.palette.num)
        self.palette.num = num
        return undo

    # --- Palettes & CHR ---
    def palette_array(self, palette_index=0):
        """The 16 color codes of one palette row: 4 sub-palettes, each background first."""
        tiles = self.palette.color_layer.tiles
        ret = [0] * 16
        for i in range(4):
            ret[i * 4] = tiles[(24, palette_index)]
            for j in range(3):
                ret[i * 4 + j + 1] = tiles[(i * 3 + j, palette_index)]
        return ret

    def load_chr(self):
        for chr_file in self.chr_files:
            chr_file.load()

    def load_collisions(self):
        self.collision_bitmaps = load_collision_file(self.collision_path, self.collision_scale())

    def refresh_chr(self, level=None):
        levels = self.levels if level is None else [level]
        for lvl in levels:
            lvl.refresh_chr(self.chr_files, self.palette_array(lvl.palette))

    def object_fields(self, obj):
        """Field values of `obj` in its class's field order; absent fields are ''."""
        oclass = self.lookup_class(obj.oclass)
        if oclass is None:
            return []
        return [obj.fields.get(f.name, "") for f in oclass.fields]
