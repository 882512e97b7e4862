# -*- coding: utf-8 -*-
"""
Placeable objects and their classes.

Objects refer to their class by name only. The class is looked up when it
is needed (serialization, display) so classes can be renamed or reordered
without touching every object.
"""

from dataclasses import dataclass, field
from typing import Dict, List

from fabgeom import Coord
from faberrors import BoundsError

# --- Constants ---
DEFAULT_FIELD_TYPE = "U"
DEFAULT_CLASS_COLOR = (255, 255, 255)


@dataclass
class Object:
    position: Coord = Coord(0, 0)
    name: str = ""
    oclass: str = ""
    fields: Dict[str, str] = field(default_factory=dict)

    def append_words(self, words: List[int]):
        """Append this object to a clipboard word stream."""
        def append_str(s):
            words.extend(ord(ch) for ch in s)
            words.append(0)

        words.append(self.position.x & 0xFFFFFFFF)
        words.append(self.position.y & 0xFFFFFFFF)
        append_str(self.name)
        append_str(self.oclass)
        words.append(len(self.fields))
        for key, value in self.fields.items():
            append_str(key)
            append_str(value)

    @classmethod
    def from_words(cls, words, pos=0):
        """Decode one object starting at `pos`. Returns (object, next_pos)."""
        def get():
            nonlocal pos
            if pos >= len(words):
                raise BoundsError("Data out of bounds.")
            pos += 1
            return words[pos - 1]

        def get_signed():
            v = get() & 0xFFFFFFFF
            return v - 0x100000000 if v & 0x80000000 else v

        def get_str():
            chars = []
            while True:
                ch = get()
                if ch == 0:
                    return "".join(chars)
                chars.append(chr(ch))

        x = get_signed()
        y = get_signed()
        obj = cls(Coord(x, y), get_str(), get_str())
        num_fields = get()
        for _ in range(num_fields):
            key = get_str()
            obj.fields[key] = get_str()
        return obj, pos


@dataclass
class ClassField:
    name: str = ""
    type: str = DEFAULT_FIELD_TYPE


@dataclass
class ObjectClass:
    name: str = ""
    macro: str = ""
    color: tuple = DEFAULT_CLASS_COLOR
    fields: List[ClassField] = field(default_factory=list)

    def field_names(self):
        return [f.name for f in self.fields]


def lookup_name(name, items):
    """First item whose `.name` equals `name`, or None."""
    for item in items:
        if item.name == name:
            return item
    return None
