# -*- coding: utf-8 -*-
"""
Undo records and the undo/redo history.

Every record describes a mutation. Applying a record to the project performs
that mutation and returns the record that reverses it, so the same function
drives both undo and redo. `None` is the no-op record.
"""

import copy
from collections import deque
from dataclasses import dataclass, field
from typing import Any, List, Tuple

from fabgeom import Rect, rect_range

# --- Constants ---
UNDO_LIMIT = 256
UNDO = 0
REDO = 1


# --- Records ---
@dataclass
class UndoTiles:
    """Values to write back over `rect` of `layer`, in raster order."""
    layer: Any
    rect: Rect
    tiles: List[int] = field(default_factory=list)


@dataclass
class UndoPaletteNum:
    num: int


@dataclass
class UndoLayerTiles:
    """(layer, grid) pairs; each grid is swapped whole into its layer."""
    grids: List[Tuple[Any, Any]] = field(default_factory=list)


@dataclass
class UndoNewObjects:
    """Objects at `indices` were inserted; applying removes them."""
    level: Any
    indices: List[int] = field(default_factory=list)


@dataclass
class UndoDeleteObjects:
    """(index, object) pairs that were removed; applying puts them back."""
    level: Any
    objects: List[Tuple[int, Any]] = field(default_factory=list)


@dataclass
class UndoEditObject:
    level: Any
    index: int
    object: Any


@dataclass
class UndoMoveObjects:
    level: Any
    indices: List[int] = field(default_factory=list)
    positions: List[Any] = field(default_factory=list)


# --- Apply ---
def _apply_tiles(project, undo):
    ret = undo.layer.save(undo.rect)
    for c, value in zip(rect_range(undo.rect), undo.tiles):
        undo.layer.set(c, value)
    return ret


def _apply_palette_num(project, undo):
    ret = UndoPaletteNum(project.palette.num)
    project.palette.num = undo.num
    return ret


def _apply_layer_tiles(project, undo):
    ret = UndoLayerTiles([(layer, layer.tiles.copy()) for layer, _ in undo.grids])
    for layer, tiles in undo.grids:
        layer.tiles = tiles.copy()
        layer.canvas_selector.resize(layer.tiles.dimen)
    return ret


def _apply_new_objects(project, undo):
    objects = undo.level.objects
    indices = sorted(undo.indices, reverse=True)
    removed = [(i, objects[i]) for i in indices]
    for i in indices:
        del objects[i]
    # Ascending order, so re-insertion leaves each object at its old index.
    removed.reverse()
    return UndoDeleteObjects(undo.level, removed)


def _apply_delete_objects(project, undo):
    objects = undo.level.objects
    pairs = sorted(undo.objects, key=lambda pair: pair[0])
    for i, obj in pairs:
        objects.insert(i, copy.deepcopy(obj))
    return UndoNewObjects(undo.level, [i for i, _ in reversed(pairs)])


def _apply_edit_object(project, undo):
    objects = undo.level.objects
    ret = UndoEditObject(undo.level, undo.index, objects[undo.index])
    objects[undo.index] = copy.deepcopy(undo.object)
    return ret


def _apply_move_objects(project, undo):
    objects = undo.level.objects
    ret = UndoMoveObjects(undo.level, list(undo.indices),
                          [objects[i].position for i in undo.indices])
    for i, position in zip(undo.indices, undo.positions):
        objects[i].position = position
    return ret


_HANDLERS = {
    UndoTiles: _apply_tiles,
    UndoPaletteNum: _apply_palette_num,
    UndoLayerTiles: _apply_layer_tiles,
    UndoNewObjects: _apply_new_objects,
    UndoDeleteObjects: _apply_delete_objects,
    UndoEditObject: _apply_edit_object,
    UndoMoveObjects: _apply_move_objects,
}


def apply_undo(project, undo):
    """Perform `undo` on `project` and return the record that reverses it."""
    if undo is None:
        return None
    return _HANDLERS[type(undo)](project, undo)


# --- History ---
class UndoHistory:
    """Two stacks of records, most recent first. The undo stack holds at most UNDO_LIMIT entries."""

    def __init__(self, limit=UNDO_LIMIT):
        self.limit = limit
        self.history = (deque(), deque())

    def push(self, undo):
        if undo is None:
            return
        self.history[REDO].clear()
        self.history[UNDO].appendleft(undo)
        self.cull()

    def cull(self):
        stack = self.history[UNDO]
        while len(stack) > self.limit:
            stack.pop()

    def _step(self, project, kind):
        source = self.history[kind]
        if not source:
            return False
        inverse = project.apply_undo(source.popleft())
        if inverse is not None:
            self.history[REDO if kind == UNDO else UNDO].appendleft(inverse)
        return True

    def undo(self, project) -> bool:
        return self._step(project, UNDO)

    def redo(self, project) -> bool:
        return self._step(project, REDO)

    def empty(self, kind=UNDO) -> bool:
        return not self.history[kind]

    def on_top(self, record_type) -> bool:
        stack = self.history[UNDO]
        return bool(stack) and isinstance(stack[0], record_type)

    def clear(self):
        self.history[UNDO].clear()
        self.history[REDO].clear()

    def __len__(self):
        return len(self.history[UNDO])
