# -*- coding: utf-8 -*-
"""
Binary project file (.fab).

Layout, all integers little-endian, strings NUL-terminated:

    magic "8x8Fab\\0", version (1)
    metatile size (1), collision image path
    CHR count (1, 0 = 256), per CHR: id (2), name, path
    palette count (1, 0 = 256), the full 25x256 color table (1 byte each)
    class count (1, 0 = 256), per class: name, macro, r g b (1 each),
        field count (1), per field: name, type
    level count (2), per level: name, macro, CHR name, palette (1),
        width (2), height (2), width*height tiles (4 each),
        one byte per collision cell, object count (2), per object:
        name, class, x (2), y (2), one string per field of its class

Paths are stored relative to the directory of the file being written and
resolved against the directory of the file being read.
"""

import os
import struct

import numpy as np

from faberrors import BoundsError, FormatError
from fabgeom import Coord, Dimen
from fabmodel import ChrFile, Level, Project
from fabobject import ClassField, Object, ObjectClass

# --- Constants ---
MAGIC = b"8x8Fab\0"
SAVE_VERSION = 1
FILE_EXTENSION = ".fab"


# --- Writing ---
class _Writer:
    def __init__(self, base_dir):
        self.base_dir = base_dir
        self.parts = []

    def u8(self, value):
        self.parts.append(struct.pack("<B", value & 0xFF))

    def u16(self, value):
        self.parts.append(struct.pack("<H", value & 0xFFFF))

    def string(self, value):
        data = value.encode("utf-8")
        if b"\0" in data:
            raise FormatError(f"String {value!r} contains a NUL byte.")
        self.parts.append(data + b"\0")

    def path(self, path):
        if not path:
            self.string("")
            return
        rel = os.path.relpath(os.path.abspath(path), os.path.abspath(self.base_dir or "."))
        self.string(rel.replace(os.sep, "/"))

    def raw(self, data):
        self.parts.append(bytes(data))

    def getvalue(self):
        return b"".join(self.parts)


def write_project(project, base_dir="") -> bytes:
    """Encode `project`. Paths are written relative to `base_dir`."""
    w = _Writer(base_dir)
    w.raw(MAGIC)
    w.u8(SAVE_VERSION)

    # Collision file
    w.u8(project.metatile_size)
    w.path(project.collision_path)

    # CHR
    w.u8(len(project.chr_files))
    for chr_file in project.chr_files:
        w.u16(chr_file.id)
        w.string(chr_file.name)
        w.path(chr_file.path)

    # Palettes
    w.u8(project.palette.num)
    w.raw((project.palette.color_layer.tiles.data & 0xFF).astype(np.uint8).tobytes())

    # Object classes
    w.u8(len(project.object_classes))
    for oclass in project.object_classes:
        w.string(oclass.name)
        w.string(oclass.macro)
        for channel in oclass.color:
            w.u8(channel)
        w.u8(len(oclass.fields))
        for class_field in oclass.fields:
            w.string(class_field.name)
            w.string(class_field.type)

    # Levels
    w.u16(len(project.levels))
    for level in project.levels:
        w.string(level.name)
        w.string(level.macro_name)
        w.string(level.chr_name)
        w.u8(level.palette)
        d = level.dimen()
        w.u16(d.w)
        w.u16(d.h)
        w.raw(level.chr_layer.tiles.data.astype("<u4").tobytes())
        w.raw((level.collision_layer.tiles.data & 0xFF).astype(np.uint8).tobytes())
        w.u16(len(level.objects))
        for obj in level.objects:
            w.string(obj.name)
            w.string(obj.oclass)
            w.u16(obj.position.x)
            w.u16(obj.position.y)
            for value in project.object_fields(obj):
                w.string(value)

    return w.getvalue()


def save_project(project, path):
    data = write_project(project, os.path.dirname(os.path.abspath(path)))
    with open(path, "wb") as f:
        f.write(data)
    project.project_path = path
    project.modified = project.modified_since_save = False


# --- Reading ---
class _Reader:
    def __init__(self, data, base_dir):
        self.data = data
        self.pos = 0
        self.base_dir = base_dir

    def _take(self, fmt, what):
        size = struct.calcsize(fmt)
        if self.pos + size > len(self.data):
            raise BoundsError(f"Unable to read {what}.")
        value = struct.unpack_from(fmt, self.data, self.pos)[0]
        self.pos += size
        return value

    def u8(self, adjust=False):
        value = self._take("<B", "8-bit value")
        if adjust and value == 0:
            return 256
        return value

    def u16(self):
        return self._take("<H", "16-bit value")

    def i16(self):
        return self._take("<h", "16-bit value")

    def raw(self, size, what):
        if self.pos + size > len(self.data):
            raise BoundsError(f"Unable to read {what}.")
        chunk = self.data[self.pos:self.pos + size]
        self.pos += size
        return chunk

    def string(self):
        end = self.data.find(b"\0", self.pos)
        if end < 0:
            raise BoundsError("Unable to read 8-bit value.")
        value = self.data[self.pos:end].decode("utf-8", errors="replace")
        self.pos = end + 1
        return value

    def path(self):
        path = self.string()
        if not path:
            return ""
        path = path.replace("/", os.sep)
        if not os.path.isabs(path):
            path = os.path.normpath(os.path.join(self.base_dir, path))
        return path


def read_project(data: bytes, base_dir="", load_assets=True) -> Project:
    """
    Decode a project file into a new Project. Raises FormatError or
    BoundsError; nothing outside the returned project is touched.
    """
    r = _Reader(bytes(data), base_dir)

    if len(data) < len(MAGIC) + 1:
        raise FormatError("Unable to read magic number.")
    if r.raw(len(MAGIC), "magic number") != MAGIC:
        raise FormatError("Incorrect magic number.")
    version = r.u8()
    if version > SAVE_VERSION:
        raise FormatError("File is from a newer version of chrfab.")

    project = Project()

    # Collision file
    project.metatile_size = r.u8()
    project.collision_path = r.path()

    # CHR
    project.chr_files = []
    for _ in range(r.u8(adjust=True)):
        chr_id = r.u16()
        name = r.string()
        project.chr_files.append(ChrFile(chr_id, name, r.path()))

    # Palettes
    project.palette.num = r.u8(adjust=True)
    color_tiles = project.palette.color_layer.tiles
    table = r.raw(len(color_tiles), "palette data")
    color_tiles.data[:] = np.frombuffer(table, dtype=np.uint8).reshape(color_tiles.data.shape)

    # Object classes
    project.object_classes = []
    for _ in range(r.u8(adjust=True)):
        oclass = ObjectClass(r.string(), r.string())
        oclass.color = (r.u8(), r.u8(), r.u8())
        for _ in range(r.u8()):
            field_name = r.string()
            oclass.fields.append(ClassField(field_name, r.string()))
        project.object_classes.append(oclass)

    # Levels
    project.levels = []
    for _ in range(r.u16()):
        level = Level()
        level.name = r.string()
        level.macro_name = r.string()
        level.chr_name = r.string()
        level.palette = r.u8()
        dimen = Dimen(r.u16(), r.u16())
        level.resize(dimen, project.collision_div(dimen))

        tiles = r.raw(dimen.w * dimen.h * 4, "32-bit value")
        level.chr_layer.tiles.data[:] = np.frombuffer(tiles, dtype="<u4").reshape((dimen.h, dimen.w))
        cd = level.collision_layer.tiles.dimen
        collisions = r.raw(cd.w * cd.h, "8-bit value")
        level.collision_layer.tiles.data[:] = np.frombuffer(collisions, dtype=np.uint8).reshape((cd.h, cd.w))

        chr_file = project.lookup_chr(level.chr_name)
        if chr_file is not None:
            level.chr_id = chr_file.id

        for _ in range(r.u16()):
            obj = Object(name=r.string(), oclass=r.string())
            x = r.i16()
            obj.position = Coord(x, r.i16())
            oclass = project.lookup_class(obj.oclass)
            if oclass is not None:
                for class_field in oclass.fields:
                    obj.fields[class_field.name] = r.string()
            level.objects.append(obj)

        project.levels.append(level)

    if load_assets:
        project.load_collisions()
        project.load_chr()
        project.refresh_chr()
    return project


def load_project(path, load_assets=True) -> Project:
    with open(path, "rb") as f:
        data = f.read()
    project = read_project(data, os.path.dirname(os.path.abspath(path)), load_assets)
    project.project_path = path
    return project
