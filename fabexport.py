#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import os
import sys
import struct
import argparse

import numpy as np
from tqdm import tqdm

from faberrors import FabError
from fabfile import load_project
from fablayer import NO_TILE

# --- Constants ---
CHRFAB_VERSION = "<unreleased>"
EXPORTER_VERSION = "0.1.0"
# Banner tile, one digit per cell: the cell's attribute
SPLASH_TILE = ["0123", "1230"]
SPLASH_ATTR_CODES = ["31", "32", "33", "91"]


def print_splash_header(title, version, tool_version):
    """Banner for the CHR Fab tools: a tile of the four attribute colors, then name and versions."""
    use_color = sys.stdout.isatty()

    def paint(code, text):
        return f"\033[{code}m{text}\033[0m" if use_color else text

    tile = ["".join(paint(SPLASH_ATTR_CODES[int(a)], "▓▓") for a in row) for row in SPLASH_TILE]
    print()
    print(f"{tile[0]}  {paint('1;97', title)} (v{tool_version})")
    print(f"{tile[1]}  CHR Fab suite, version {version}")
    print("-" * 60)


def safe_name(name):
    """Identifier-friendly version of a level or CHR name."""
    cleaned = "".join(ch if ch.isalnum() else "_" for ch in name.strip())
    return cleaned or "unnamed"


class ProjectExporter:
    """
    Loads a .fab project and writes its levels and CHR banks out as raw
    binaries and include files.
    """
    def __init__(self, project):
        self.project = project

    @classmethod
    def from_file(cls, filepath):
        if not os.path.exists(filepath):
            raise FileNotFoundError(f"Source file not found: {filepath}")
        return cls(load_project(filepath))

    def export_raw_chr(self, chr_file, f):
        f.write(chr_file.chr[:chr_file.num_tiles * 16])

    def export_raw_palettes(self, f):
        for i in range(self.project.palette.num):
            f.write(bytes(self.project.palette_array(i)))

    def export_raw_tiles(self, level, f):
        """One little-endian word per cell: tile index in bits 0-13, attribute in 14-15."""
        tiles = level.chr_layer.tiles.data
        words = np.where(tiles == NO_TILE, 0, tiles & 0xFFFF).astype("<u2")
        f.write(words.tobytes())

    def export_raw_collisions(self, level, f):
        f.write((level.collision_layer.tiles.data & 0xFF).astype(np.uint8).tobytes())

    def export_objects(self, level, f):
        """Objects as x (2), y (2), class index (1), records in level order."""
        classes = [oc.name for oc in self.project.object_classes]
        f.write(struct.pack("<H", len(level.objects)))
        for obj in level.objects:
            class_index = classes.index(obj.oclass) if obj.oclass in classes else 0xFF
            f.write(struct.pack("<hhB", obj.position.x, obj.position.y, class_index))

    def metatile_report(self, size):
        """(level name, distinct metatile count) for every level."""
        return [(level.name, level.count_metatiles(size)) for level in self.project.levels]

    def generate_c_header(self, filepath, basename):
        header_guard = f"{safe_name(basename).upper()}_META_H"
        project = self.project
        with open(filepath, "w") as f:
            f.write(f"/*\n * CHR Fab Project Metadata: {basename}\n */\n\n")
            f.write(f"#ifndef {header_guard}\n#define {header_guard}\n\n")
            f.write(f"#define PROJECT_PALETTE_COUNT   {project.palette.num}\n")
            f.write(f"#define PROJECT_CHR_COUNT       {len(project.chr_files)}\n")
            f.write(f"#define PROJECT_LEVEL_COUNT     {len(project.levels)}\n")
            f.write(f"#define PROJECT_METATILE_SIZE   {project.metatile_size}\n\n")
            for chr_file in project.chr_files:
                name = safe_name(chr_file.name).upper()
                f.write(f"#define CHR_{name}_ID {chr_file.id}\n")
                f.write(f"#define CHR_{name}_TILES {chr_file.num_tiles}\n")
            f.write("\n")
            for level in project.levels:
                name = safe_name(level.macro_name or level.name).upper()
                d = level.dimen()
                f.write(f"#define LEVEL_{name}_WIDTH {d.w}\n")
                f.write(f"#define LEVEL_{name}_HEIGHT {d.h}\n")
                f.write(f"#define LEVEL_{name}_PALETTE {level.palette}\n")
                f.write(f"#define LEVEL_{name}_OBJECTS {len(level.objects)}\n")
            f.write(f"\n#endif // {header_guard}\n")
        print(f"Generated C metadata header: {os.path.basename(filepath)}")

    def generate_assembly_include(self, filepath, basename):
        project = self.project
        lines = ["; CHR Fab Project Export Data", f"; Project Basename: {basename}", ""]
        lines.append(f"PROJECT_PALETTE_COUNT: .equ {project.palette.num}")
        lines.append(f"PROJECT_LEVEL_COUNT:   .equ {len(project.levels)}")
        for level in project.levels:
            name = safe_name(level.macro_name or level.name).upper()
            d = level.dimen()
            lines.append(f"LEVEL_{name}_WIDTH:  .equ {d.w}")
            lines.append(f"LEVEL_{name}_HEIGHT: .equ {d.h}")
        with open(filepath, "w") as f:
            f.write("\n".join(lines) + "\n")
        print(f"Generated Assembly include file: {os.path.basename(filepath)}")

    def export_all(self, output_dir, basename):
        written = []

        def write(suffix, export_func, *args):
            filepath = os.path.join(output_dir, f"{basename}_{suffix}.bin")
            with open(filepath, "wb") as f:
                export_func(*args, f)
            written.append(filepath)

        write("palettes", self.export_raw_palettes)
        for chr_file in self.project.chr_files:
            write(f"chr_{safe_name(chr_file.name)}", self.export_raw_chr, chr_file)
        for level in tqdm(self.project.levels, desc="   Exporting levels", unit="level", leave=False):
            name = safe_name(level.name)
            write(f"{name}_tiles", self.export_raw_tiles, level)
            write(f"{name}_collisions", self.export_raw_collisions, level)
            write(f"{name}_objects", self.export_objects, level)
        return written


def main(argv=None):
    print_splash_header("CHR Fab Export", CHRFAB_VERSION, EXPORTER_VERSION)

    parser = argparse.ArgumentParser(description="Exports CHR Fab projects to raw binary and include files.",
        formatter_class=argparse.RawTextHelpFormatter
    )
    parser.add_argument("source_filepath", help="Path to the project file (e.g., game.fab).")
    parser.add_argument("--output-dir", default=".", help="Directory to save the exported files (defaults to the current directory).")
    parser.add_argument("--output-basename", help="Base name for exported files. (Defaults to the source file's name).")
    parser.add_argument("--asm", action="store_true", help="Generate an assembly include file (.s).")
    parser.add_argument("--c-header", action="store_true", help="Generate a C header file with metadata (_meta.h).")
    parser.add_argument("--metatiles", type=int, metavar="N",
                        help="Report how many distinct NxN metatiles each level uses.")
    args = parser.parse_args(argv)

    if not args.output_basename:
        args.output_basename = os.path.splitext(os.path.basename(args.source_filepath))[0]

    try:
        if not os.path.isdir(args.output_dir):
            print(f"Output directory not found. Creating '{args.output_dir}'...")
            os.makedirs(args.output_dir, exist_ok=True)

        exporter = ProjectExporter.from_file(args.source_filepath)
        print("Project data loaded successfully.")

        for filepath in exporter.export_all(args.output_dir, args.output_basename):
            print(f"Exported raw binary: {os.path.basename(filepath)}")

        if args.metatiles:
            print(f"\nDistinct {args.metatiles}x{args.metatiles} metatiles:")
            for name, count in exporter.metatile_report(args.metatiles):
                print(f"  - {name}: {count}")

        if args.asm:
            asm_filepath = os.path.join(args.output_dir, f"{args.output_basename}.s")
            exporter.generate_assembly_include(asm_filepath, args.output_basename)

        if args.c_header:
            meta_h_filepath = os.path.join(args.output_dir, f"{args.output_basename}_meta.h")
            exporter.generate_c_header(meta_h_filepath, args.output_basename)

        print("\nExport complete.")
        return 0

    except (FabError, OSError, struct.error) as e:
        print(f"\nERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
