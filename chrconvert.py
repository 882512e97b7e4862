#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import os
import sys
import struct
import argparse

from tqdm import tqdm

from faberrors import FabError
from fabchr import BYTES_PER_TILE, png_to_chr
from fabexport import CHRFAB_VERSION, print_splash_header

# --- Constants ---
SCRIPT_NAME = "CHR Fab Convert"
SCRIPT_VERSION = "0.1.0"
CHR_EXTENSION = ".chr"
INDEX_EXTENSION = ".idx"


def output_paths(input_path, output_dir):
    basename = os.path.splitext(os.path.basename(input_path))[0]
    return (os.path.join(output_dir, basename + CHR_EXTENSION),
            os.path.join(output_dir, basename + INDEX_EXTENSION))


def write_index_file(filepath, indices):
    """Block index list as little-endian 16-bit words."""
    with open(filepath, "wb") as f:
        f.write(struct.pack(f"<{len(indices)}H", *indices))


def convert_file(input_path, output_dir, write_indices=False):
    """
    Convert one PNG into a .chr file (and optionally its .idx block list).
    Returns the number of tiles written.
    """
    with open(input_path, "rb") as f:
        patterns = png_to_chr(f.read())

    chr_path, idx_path = output_paths(input_path, output_dir)
    with open(chr_path, "wb") as f:
        f.write(patterns.chr)
    if write_indices:
        write_index_file(idx_path, patterns.indices)
    return len(patterns.chr) // BYTES_PER_TILE


def main(argv=None):
    print_splash_header(SCRIPT_NAME, CHRFAB_VERSION, SCRIPT_VERSION)

    parser = argparse.ArgumentParser(description="Converts PNG images to 2bpp planar CHR tiles.",
        formatter_class=argparse.RawTextHelpFormatter
    )
    parser.add_argument("inputs", nargs="+", help="PNG files to convert. Width and height must be multiples of 8.")
    parser.add_argument("--output-dir", default=".", help="Directory for output files (defaults to current directory).")
    parser.add_argument("--indices", action="store_true",
                        help="Also write the block index list (.idx).\n"
                             "One 16-bit word per 8x8 source block; fully transparent\n"
                             "blocks repeat the previous entry.")
    args = parser.parse_args(argv)

    try:
        if not os.path.isdir(args.output_dir):
            print(f"Output directory not found. Creating '{args.output_dir}'...")
            os.makedirs(args.output_dir, exist_ok=True)

        results = []
        for input_path in tqdm(args.inputs, desc="   Converting", unit="file", leave=False):
            results.append((input_path, convert_file(input_path, args.output_dir, args.indices)))

        for input_path, num_tiles in results:
            print(f"   [INFO] {os.path.basename(input_path)}: {num_tiles} tiles")
        print("\nConversion complete.")
        return 0

    except (FabError, OSError, struct.error) as e:
        print(f"\nERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
