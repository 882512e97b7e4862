"""
Tests for undo records and the undo/redo history.
"""

import copy

from fabfile import read_project, write_project
from fabgeom import Coord, Dimen, Rect
from fablayer import Pen
from fabobject import Object
from fabundo import (UNDO, REDO, UNDO_LIMIT, UndoHistory, UndoPaletteNum, UndoTiles,
                     UndoNewObjects, UndoDeleteObjects, apply_undo)


def make_objects(*names):
    return [Object(Coord(i, i), name, "object") for i, name in enumerate(names)]


def object_names(level):
    return [obj.name for obj in level.objects]


class TestInverseSymmetry:
    """Test that applying a record and then its inverse restores the state."""

    def test_tiles(self, project, level):
        """Test a fill is undone and redone exactly."""
        layer = level.chr_layer
        before = layer.tiles.copy()
        layer.picker_selector.select(Rect(Coord(0, 0), Dimen(2, 2)))
        layer.canvas_selector.select(Rect(Coord(3, 3), Dimen(5, 4)))
        project.push(layer.fill(Pen(1, 0)))
        after = layer.tiles.copy()

        assert project.undo()
        assert layer.tiles == before
        assert project.redo()
        assert layer.tiles == after

    def test_palette_num(self, project):
        """Test the palette count swaps back and forth."""
        project.push(project.set_palette_num(5))
        assert project.palette.num == 5
        project.undo()
        assert project.palette.num == 1
        project.redo()
        assert project.palette.num == 5

    def test_layer_resize(self, project, level):
        """Test a resize is undone with the full previous grids of both layers."""
        level.chr_layer.set(Coord(20, 20), 123)
        level.collision_layer.set(Coord(23, 23), 7)
        before = level.chr_layer.tiles.copy()
        collisions_before = level.collision_layer.tiles.copy()
        project.push(project.resize_level(level, Dimen(30, 10)))
        assert level.dimen() == Dimen(30, 10)
        assert level.collision_layer.canvas_dimen() == Dimen(30, 10)

        project.undo()
        assert level.dimen() == Dimen(24, 24)
        assert level.chr_layer.tiles == before
        assert level.chr_layer.canvas_selector.dimen == Dimen(24, 24)
        assert level.collision_layer.tiles == collisions_before
        assert level.collision_layer.canvas_selector.dimen == Dimen(24, 24)

        project.redo()
        assert level.dimen() == Dimen(30, 10)
        assert level.collision_layer.canvas_dimen() == Dimen(30, 10)

    def test_layer_resize_undo_saves_cleanly(self, project, level):
        """Test a project saved after undoing a resize loads back."""
        project.set_metatile_size(2)
        project.push(project.resize_level(level, Dimen(30, 10)))
        project.undo()

        loaded = read_project(write_project(project), load_assets=False).levels[0]
        assert loaded.dimen() == Dimen(24, 24)
        assert loaded.collision_layer.canvas_dimen() == Dimen(12, 12)

    def test_new_objects_in_the_middle(self, project, level):
        """Test inserted objects are removed and put back at the same indices."""
        level.objects = make_objects("x", "y", "z")
        project.push(level.add_objects(make_objects("a", "b"), at=1))
        assert object_names(level) == ["x", "a", "b", "y", "z"]

        project.undo()
        assert object_names(level) == ["x", "y", "z"]
        project.redo()
        assert object_names(level) == ["x", "a", "b", "y", "z"]
        project.undo()
        assert object_names(level) == ["x", "y", "z"]

    def test_delete_objects(self, project, level):
        """Test deleted objects come back in their original slots."""
        level.objects = make_objects("a", "b", "c", "d")
        before = copy.deepcopy(level.objects)
        project.push(level.delete_objects([2, 0]))
        assert object_names(level) == ["b", "d"]

        project.undo()
        assert level.objects == before
        project.redo()
        assert object_names(level) == ["b", "d"]

    def test_delete_nothing_is_noop(self, level):
        """Test an empty delete returns no record."""
        assert level.delete_objects([]) is None

    def test_edit_object(self, project, level):
        """Test an edited object is swapped back."""
        level.objects = make_objects("a")
        before = copy.deepcopy(level.objects)
        project.push(level.edit_object(0, Object(Coord(9, 9), "renamed", "object", {"hp": "1"})))
        assert level.objects[0].name == "renamed"

        project.undo()
        assert level.objects == before
        project.redo()
        assert level.objects[0].fields == {"hp": "1"}

    def test_move_objects(self, project, level):
        """Test moved objects return to their old positions."""
        level.objects = make_objects("a", "b", "c")
        project.push(level.move_objects([0, 2], (5, -2)))
        assert level.objects[0].position == Coord(5, -2)
        assert level.objects[2].position == Coord(7, 0)
        assert level.objects[1].position == Coord(1, 1)

        project.undo()
        assert [obj.position for obj in level.objects] == [Coord(0, 0), Coord(1, 1), Coord(2, 2)]
        project.redo()
        assert level.objects[2].position == Coord(7, 0)

    def test_inverse_of_inverse(self, project, level):
        """Test apply(apply(C)) reproduces the state after C."""
        level.objects = make_objects("a", "b")
        undo = UndoNewObjects(level, [1])
        snapshot = copy.deepcopy(level.objects)

        inverse = apply_undo(project, undo)
        assert isinstance(inverse, UndoDeleteObjects)
        assert object_names(level) == ["a"]
        again = apply_undo(project, inverse)
        assert isinstance(again, UndoNewObjects)
        assert level.objects == snapshot

    def test_none_is_noop(self, project):
        """Test the no-op record applies to nothing."""
        assert apply_undo(project, None) is None

    def test_apply_marks_project_modified(self, project):
        """Test undo sets both dirty flags."""
        project.push(project.set_palette_num(2))
        project.modified = project.modified_since_save = False
        project.undo()
        assert project.modified
        assert project.modified_since_save


class TestUndoHistory:
    """Test the two bounded stacks."""

    def test_cap_keeps_most_recent(self):
        """Test only the latest UNDO_LIMIT records survive."""
        history = UndoHistory()
        for i in range(UNDO_LIMIT + 44):
            history.push(UndoPaletteNum(i))
        assert len(history) == UNDO_LIMIT
        assert history.history[UNDO][0].num == UNDO_LIMIT + 43
        assert history.history[UNDO][-1].num == 44

    def test_push_clears_redo(self, project):
        """Test a new edit drops the redo stack."""
        project.push(project.set_palette_num(3))
        project.undo()
        assert not project.history.empty(REDO)
        project.push(project.set_palette_num(4))
        assert project.history.empty(REDO)

    def test_push_none_is_ignored(self):
        """Test no-op records never reach the stack."""
        history = UndoHistory()
        history.push(None)
        assert history.empty(UNDO)

    def test_undo_on_empty_stack(self, project):
        """Test undo and redo report when there is nothing to do."""
        assert not project.undo()
        assert not project.redo()

    def test_on_top_and_clear(self, project, level):
        """Test the top record kind and clearing both stacks."""
        layer = level.chr_layer
        project.push(layer.save(Rect(Coord(0, 0), Dimen(1, 1))))
        assert project.history.on_top(UndoTiles)
        assert not project.history.on_top(UndoPaletteNum)
        project.history.clear()
        assert project.history.empty(UNDO)
        assert project.history.empty(REDO)
