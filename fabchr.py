# -*- coding: utf-8 -*-
"""
CHR codec.

Images are converted into 2 bits per pixel planar tiles: for each 8x8
block, 8 bytes of low bit plane followed by 8 bytes of high bit plane, one
byte per row, most significant bit = leftmost pixel. Fully transparent
blocks emit no bytes but still get an entry in the index list, which maps
every source block to the ordinal of the next emitted tile.

The reverse direction builds four RGB bitmaps per tile, one per attribute
sub-palette, for display.
"""

import io
import os
from typing import List, NamedTuple

import numpy as np
from PIL import Image, UnidentifiedImageError

from faberrors import FormatError

# --- Constants ---
TILE_WIDTH = 8
TILE_HEIGHT = 8
BYTES_PER_TILE = 16
CHR_BANK_SIZE = 16 * 256 * 4
ALPHA_THRESHOLD = 128
COLLISION_PICKER_COLS = 4
COLLISION_PICKER_ROWS = 64
COLLISION_PAD_COLOR = (255, 0, 255)

# --- NES master palette (2C02) ---
NES_COLORS = np.array([
    (84, 84, 84), (0, 30, 116), (8, 16, 144), (48, 0, 136),
    (68, 0, 100), (92, 0, 48), (84, 4, 0), (60, 24, 0),
    (32, 42, 0), (8, 58, 0), (0, 64, 0), (0, 60, 0),
    (0, 50, 60), (0, 0, 0), (0, 0, 0), (0, 0, 0),

    (152, 150, 152), (8, 76, 196), (48, 50, 236), (92, 30, 228),
    (136, 20, 176), (160, 20, 100), (152, 34, 32), (120, 60, 0),
    (84, 90, 0), (40, 114, 0), (8, 124, 0), (0, 118, 40),
    (0, 102, 120), (0, 0, 0), (0, 0, 0), (0, 0, 0),

    (236, 238, 236), (76, 154, 236), (120, 124, 236), (176, 98, 236),
    (228, 84, 236), (236, 88, 180), (236, 106, 100), (212, 136, 32),
    (160, 170, 0), (116, 196, 0), (76, 208, 32), (56, 204, 108),
    (56, 180, 204), (60, 60, 60), (0, 0, 0), (0, 0, 0),

    (236, 238, 236), (168, 204, 236), (188, 188, 236), (212, 178, 236),
    (236, 174, 236), (236, 174, 212), (236, 180, 176), (228, 196, 144),
    (204, 210, 120), (180, 222, 120), (168, 226, 144), (152, 226, 180),
    (160, 214, 228), (160, 162, 160), (0, 0, 0), (0, 0, 0),
], dtype=np.uint8)

# --- Placeholder for positions with no tile ---
BAD_TILE_COLORS = {
    " ": (0x39, 0x00, 0x00),
    ".": (0x00, 0x39, 0x39),
    "+": (0x00, 0x00, 0x39),
    "@": (0x39, 0x00, 0x39),
}
BAD_TILE_ROWS = [
    "  ....++",
    "   ..+++",
    ".   +++.",
    ".. @@+..",
    "..+@@ ..",
    ".+++   .",
    "+++..   ",
    "++....  ",
]


def make_bad_tile_image():
    pixels = np.array([[BAD_TILE_COLORS[ch] for ch in row] for row in BAD_TILE_ROWS], dtype=np.uint8)
    return Image.fromarray(pixels)


BAD_TILE_IMAGE = make_bad_tile_image()


class ChrPatterns(NamedTuple):
    chr: bytes
    indices: List[int]


# --- Image -> CHR ---
def _palette_alphas(image: Image.Image):
    """Alpha of every palette entry of a 'P' image."""
    palette_mode = image.palette.mode if image.palette else "RGB"
    if palette_mode == "RGBA":
        rgba = image.getpalette("RGBA")
        return [rgba[i] for i in range(3, len(rgba), 4)]

    num_colors = len(image.getpalette() or []) // 3
    alphas = [255] * max(num_colors, 256)
    transparency = image.info.get("transparency")
    if isinstance(transparency, (bytes, bytearray)):
        for i, alpha in enumerate(transparency):
            alphas[i] = alpha
    elif isinstance(transparency, int) and 0 <= transparency < len(alphas):
        alphas[transparency] = 0
    return alphas


def quantize_image(image: Image.Image):
    """
    Reduce an image to 2-bit color indices and a transparency mask.

    Paletted images keep their opaque entries, renumbered from 0; pixels
    using a translucent entry read as index 0 and are marked transparent.
    Grayscale and RGB images use the top two bits of the first channel.
    16-bit grayscale keeps the high byte of each sample. Images carrying
    alpha use the first channel plus alpha < 128 as transparency.

    Returns (indices, transparent) as HxW numpy arrays.
    """
    mode = image.mode
    if mode == "P":
        raw = np.array(image, dtype=np.uint8)
        opaque = [i for i, alpha in enumerate(_palette_alphas(image)) if alpha >= ALPHA_THRESHOLD]
        lut = np.zeros(256, dtype=np.uint8)
        is_alpha = np.ones(256, dtype=bool)
        for new_index, old_index in enumerate(opaque):
            if old_index < 256:
                lut[old_index] = new_index
                is_alpha[old_index] = False
        return lut[raw], is_alpha[raw]

    if mode.startswith("I"):
        # 16-bit samples keep their high byte
        wide = np.clip(np.array(image, dtype=np.int64) >> 8, 0, 255).astype(np.uint8)
        return wide >> 6, np.zeros(wide.shape, dtype=bool)

    if mode in ("1", "L", "F"):
        gray = np.array(image.convert("L"), dtype=np.uint8)
        return gray >> 6, np.zeros(gray.shape, dtype=bool)

    if mode in ("RGB", "CMYK", "YCbCr", "LAB", "HSV"):
        first = np.array(image.convert("RGB"), dtype=np.uint8)[:, :, 0]
        return first >> 6, np.zeros(first.shape, dtype=bool)

    if mode == "LA":
        la = np.array(image, dtype=np.uint8)
        return la[:, :, 0] >> 6, la[:, :, 1] < ALPHA_THRESHOLD

    rgba = np.array(image.convert("RGBA"), dtype=np.uint8)
    return rgba[:, :, 0] >> 6, rgba[:, :, 3] < ALPHA_THRESHOLD


def check_tile_dimensions(width, height):
    if width % TILE_WIDTH != 0:
        raise FormatError("Image width is not a multiple of 8.")
    if height % TILE_HEIGHT != 0:
        raise FormatError("Image height is not a multiple of 8.")


def indices_to_chr(indices, transparent) -> ChrPatterns:
    """Pack 2-bit indices into planar CHR, skipping fully transparent blocks."""
    height, width = indices.shape
    check_tile_dimensions(width, height)

    result = bytearray()
    block_indices = []
    index = 0
    for ty in range(0, height, TILE_HEIGHT):
        for tx in range(0, width, TILE_WIDTH):
            if transparent[ty:ty + TILE_HEIGHT, tx:tx + TILE_WIDTH].all():
                block_indices.append(index)
                continue
            block = indices[ty:ty + TILE_HEIGHT, tx:tx + TILE_WIDTH]
            result += np.packbits(block & 1, axis=1).tobytes()
            result += np.packbits((block >> 1) & 1, axis=1).tobytes()
            index += 1
            block_indices.append(index)
    return ChrPatterns(bytes(result), block_indices)


def image_to_chr(image: Image.Image) -> ChrPatterns:
    check_tile_dimensions(*image.size)
    try:
        image.load()
    except OSError as e:
        raise FormatError(f"png decoder error: {e}") from e
    indices, transparent = quantize_image(image)
    return indices_to_chr(indices, transparent)


def png_to_chr(data: bytes) -> ChrPatterns:
    try:
        image = Image.open(io.BytesIO(data))
    except (UnidentifiedImageError, OSError) as e:
        raise FormatError(f"png decoder error: {e}") from e
    return image_to_chr(image)


def read_binary_file(path) -> bytes:
    """File contents, or b'' if the file can't be read."""
    try:
        with open(path, "rb") as f:
            return f.read()
    except OSError:
        return b""


def load_chr_source(path) -> ChrPatterns:
    """
    Load a CHR source for the model. PNG files are converted; anything else
    is taken as raw CHR, every 16 bytes one emitted tile. A missing or
    empty file yields no data.
    """
    if not path:
        return ChrPatterns(b"", [])
    data = read_binary_file(path)
    if not data:
        return ChrPatterns(b"", [])

    if os.path.splitext(str(path))[1].lower() == ".png":
        return png_to_chr(data)
    return ChrPatterns(data, list(range(1, len(data) // BYTES_PER_TILE + 1)))


# --- CHR -> bitmaps ---
def decode_chr(data) -> np.ndarray:
    """2-bit pixel values of every whole tile in `data`, shape (n, 8, 8)."""
    count = len(data) // BYTES_PER_TILE
    planes = np.frombuffer(bytes(data[:count * BYTES_PER_TILE]), dtype=np.uint8).reshape((count, 2, TILE_HEIGHT))
    bits = np.unpackbits(planes, axis=2).reshape((count, 2, TILE_HEIGHT, TILE_WIDTH))
    return bits[:, 0] | (bits[:, 1] << 1)


def chr_to_bitmaps(data, palette, indices) -> list:
    """
    Build display bitmaps: one 4-tuple of 8x8 RGB images per source block,
    one image per attribute. `palette` holds 16 NES color codes, 4 per
    attribute.

    Block b shows emitted tile indices[b] - 1. Blocks without an index
    entry, or whose entry repeats the previous one (a fully transparent
    block), get the placeholder image.
    """
    entries = decode_chr(data)
    codes = np.array(palette[:16], dtype=np.uint8).reshape((4, 4)) % 64
    attr_colors = NES_COLORS[codes]

    ret = []
    previous = 0
    for b in range(max(len(entries), len(indices))):
        index = indices[b] if b < len(indices) else previous
        tile = index - 1
        if index == previous or not 0 <= tile < len(entries):
            ret.append((BAD_TILE_IMAGE,) * 4)
        else:
            ret.append(tuple(Image.fromarray(attr_colors[attr][entries[tile]]) for attr in range(4)))
        previous = index
    return ret


# --- Collision masks ---
def load_collision_file(path, scale):
    """
    Slice a collision mask image into COLLISION_PICKER_COLS x COLLISION_PICKER_ROWS
    square tiles of 8*scale pixels, row by row. Area past the image is magenta.
    Returns [] if there is nothing to load.
    """
    if not path or scale == 0:
        return []
    try:
        with Image.open(path) as base:
            base = base.convert("RGB")
    except (OSError, UnidentifiedImageError):
        return []

    s = TILE_WIDTH * scale
    sheet = Image.new("RGB", (COLLISION_PICKER_COLS * s, COLLISION_PICKER_ROWS * s), COLLISION_PAD_COLOR)
    sheet.paste(base.crop((0, 0, min(base.width, sheet.width), min(base.height, sheet.height))), (0, 0))

    tiles = []
    for y in range(COLLISION_PICKER_ROWS):
        for x in range(COLLISION_PICKER_COLS):
            tiles.append(sheet.crop((x * s, y * s, (x + 1) * s, (y + 1) * s)))
    return tiles
